"""Load settings from environment (.env and env vars)."""

from __future__ import annotations

import os
from pathlib import Path

# Load .env from the working directory if present
_env_path = Path.cwd() / ".env"
if _env_path.exists():
    from dotenv import load_dotenv
    load_dotenv(_env_path)


def _str(key: str, default: str = "") -> str:
    return (os.environ.get(key) or "").strip() or default


def _float(key: str, default: float) -> float:
    raw = _str(key)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{key} must be a number, got {raw!r}") from None


# Directories
WINDMILL_HOME = Path(_str("WINDMILL_HOME") or Path.home() / ".windmill").expanduser()
WINDMILL_CACHES_DIR = Path(_str("WINDMILL_CACHES_DIR") or WINDMILL_HOME / "caches").expanduser()
WINDMILL_SUPPORT_DIR = Path(_str("WINDMILL_SUPPORT_DIR") or WINDMILL_HOME / "support").expanduser()

# Monitoring: seconds between two source polls once a run completed
WINDMILL_POLL_INTERVAL = _float("WINDMILL_POLL_INTERVAL", 30.0)

# Deploy
WINDMILL_USER = _str("WINDMILL_USER") or None
WINDMILL_DEPLOY_URL = _str("WINDMILL_DEPLOY_URL")

# Logging
WINDMILL_LOG_LEVEL = _str("WINDMILL_LOG_LEVEL", "INFO").upper()
