"""Command line entry point.

Usage:
    windmill-ci run --name NAME --origin URL [--scheme SCHEME] [--user USER] [--skip-checkout]
    windmill-ci serve [--host HOST] [--port PORT]
"""

from __future__ import annotations

import argparse
import asyncio
import logging
from typing import Any, Iterable

from . import config
from .services.project import Project
from .services.windmill import Windmill

log = logging.getLogger(__name__)


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else config.WINDMILL_LOG_LEVEL,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        datefmt="%H:%M:%S",
    )


def _log_event(name: str, data: dict[str, Any]) -> None:
    activity = data.get("activity")
    if name == "activity.error":
        log.error("%s: %s failed (%s)", data.get("project"), activity, data.get("error"))
    elif activity:
        log.info("%s: %s %s", data.get("project"), name, activity)
    else:
        log.info("%s: %s", data.get("project"), name)


async def _run(project: Project, user: str | None, skip_checkout: bool) -> int:
    windmill, chain = Windmill.make(project, user=user, skip_checkout=skip_checkout)
    windmill.bus.subscribe(_log_event)
    windmill.run(chain)
    try:
        await windmill.wait_closed()
    finally:
        windmill.abandon()
    return 1 if windmill.status == "failed" else 0


def main(argv: Iterable[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="windmill-ci")
    parser.add_argument("--verbose", "-v", action="store_true", help="Log debug output")
    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="Build, test, export and keep watching one project")
    run.add_argument("--name", required=True, help="Project name")
    run.add_argument("--origin", required=True, help="Repository URL to check out")
    run.add_argument("--scheme", default="", help="Scheme to build (defaults to the name)")
    run.add_argument("--workspace", action="store_true", help="The project is a workspace")
    run.add_argument("--user", default=config.WINDMILL_USER, help="Deploy for this user (export only when unset)")
    run.add_argument("--skip-checkout", action="store_true", help="Build the existing source checkout")

    serve = sub.add_parser("serve", help="Run the HTTP daemon")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)

    args = parser.parse_args(list(argv) if argv is not None else None)
    _configure_logging(args.verbose)

    if args.command == "serve":
        import uvicorn

        uvicorn.run("windmill_ci.main:app", host=args.host, port=args.port)
        return 0

    project = Project(name=args.name, scheme=args.scheme, origin=args.origin, is_workspace=args.workspace)
    try:
        return asyncio.run(_run(project, args.user, args.skip_checkout))
    except KeyboardInterrupt:
        log.info("Interrupted")
        return 130


if __name__ == "__main__":
    raise SystemExit(main())
