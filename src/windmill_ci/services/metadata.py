"""Readers for the metadata files discovery steps write: configuration, build settings, devices."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

log = logging.getLogger(__name__)

TEST_TARGET_SUFFIXES = ("Tests", "UITests")


def _load_json(path: Path) -> Any:
    if not path.exists():
        return None
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        log.warning("Could not read %s: %s", path, e)
        return None


class Configuration:
    """Project configuration as listed by ``xcodebuild -list -json``."""

    def __init__(self, path: Path) -> None:
        self.path = path
        data = _load_json(path)
        self._data: dict[str, Any] = data if isinstance(data, dict) else {}

    @property
    def _section(self) -> dict[str, Any]:
        return self._data.get("project") or self._data.get("workspace") or {}

    @property
    def schemes(self) -> list[str]:
        return list(self._section.get("schemes") or [])

    @property
    def targets(self) -> list[str]:
        return list(self._section.get("targets") or [])

    @property
    def has_test_target(self) -> bool:
        explicit = self._data.get("hasTestTarget")
        if isinstance(explicit, bool):
            return explicit
        return any(t.endswith(TEST_TARGET_SUFFIXES) for t in self.targets)

    def detect_scheme(self, name: str) -> str:
        """Prefer the scheme named after the project, else the first one listed."""
        schemes = self.schemes
        if name in schemes or not schemes:
            return name
        return schemes[0]


class BuildSettings:
    def __init__(self, path: Path) -> None:
        self.path = path
        data = _load_json(path)
        if isinstance(data, list):
            data = data[0] if data else {}
        self._settings: dict[str, Any] = (data or {}).get("buildSettings") or {}

    @property
    def product_name(self) -> str | None:
        return self._settings.get("PRODUCT_NAME") or None


@dataclass(frozen=True)
class Destination:
    name: str
    udid: str

    def to_dict(self) -> dict[str, str]:
        return {"name": self.name, "udid": self.udid}


class Devices:
    """Devices available to run tests on.

    Reads a ``destination`` dictionary when present, otherwise the first
    available device of ``xcrun simctl list devices -j`` output, newest
    runtime first.
    """

    def __init__(self, path: Path) -> None:
        self.path = path
        data = _load_json(path)
        self._data: dict[str, Any] = data if isinstance(data, dict) else {}

    @property
    def platform(self) -> str | None:
        return self._data.get("platform")

    @property
    def version(self) -> float | None:
        v = self._data.get("version")
        try:
            return float(v) if v is not None else None
        except (TypeError, ValueError):
            return None

    @property
    def destination(self) -> Destination | None:
        d = self._data.get("destination")
        if isinstance(d, dict) and d.get("udid"):
            return Destination(name=d.get("name", ""), udid=d["udid"])
        runtimes = self._data.get("devices")
        if not isinstance(runtimes, dict):
            return None
        for runtime in sorted(runtimes, reverse=True):
            for device in runtimes[runtime] or []:
                if device.get("isAvailable", True) and device.get("udid"):
                    return Destination(name=device.get("name", ""), udid=device["udid"])
        return None
