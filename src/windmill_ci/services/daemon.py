"""Running pipelines, one per project name, and the events they published."""

from __future__ import annotations

import collections
import itertools
import logging
from typing import Any

from .. import config
from .project import Project
from .windmill import Windmill

log = logging.getLogger(__name__)

# Events kept per project for late subscribers of the stream
MAX_EVENTS = 500

# In-memory store: project name -> {"windmill", "events"}
_project_store: dict[str, dict[str, Any]] = {}
_sequence = itertools.count(1)

ACTIVE_STATUSES = {"idle", "running", "monitoring"}


class ProjectRunningError(RuntimeError):
    pass


def start_project(
    name: str,
    origin: str,
    scheme: str = "",
    is_workspace: bool = False,
    user: str | None = None,
    skip_checkout: bool = False,
    **windmill_kwargs: Any,
) -> dict[str, Any]:
    """Create the project's pipeline and launch its first run. Needs a running event loop."""
    current = _project_store.get(name)
    if current is not None and current["windmill"].status in ACTIVE_STATUSES:
        raise ProjectRunningError(f"Project {name!r} is already running")

    project = Project(name=name, scheme=scheme, origin=origin, is_workspace=is_workspace)
    windmill, chain = Windmill.make(
        project,
        user=user or config.WINDMILL_USER,
        skip_checkout=skip_checkout,
        **windmill_kwargs,
    )
    events: collections.deque[dict[str, Any]] = collections.deque(maxlen=MAX_EVENTS)

    def on_event(kind: str, data: dict[str, Any]) -> None:
        events.append({"seq": next(_sequence), "kind": kind, "data": data})

    windmill.bus.subscribe(on_event)
    _project_store[name] = {"windmill": windmill, "events": events}
    windmill.run(chain)
    return windmill.describe()


def get_project(name: str) -> dict[str, Any] | None:
    entry = _project_store.get(name)
    if entry is None:
        return None
    return entry["windmill"].describe()


def get_events(name: str, after: int = 0) -> list[dict[str, Any]]:
    entry = _project_store.get(name)
    if entry is None:
        return []
    return [ev for ev in list(entry["events"]) if ev["seq"] > after]


def is_active(name: str) -> bool:
    entry = _project_store.get(name)
    return entry is not None and entry["windmill"].status in ACTIVE_STATUSES


def list_projects() -> dict[str, Any]:
    projects = [entry["windmill"].describe() for entry in _project_store.values()]
    return {"projects": projects, "total": len(projects)}


def abandon_project(name: str) -> dict[str, Any] | None:
    entry = _project_store.get(name)
    if entry is None:
        return None
    entry["windmill"].abandon()
    return entry["windmill"].describe()


def abandon_all() -> None:
    for name in list(_project_store):
        abandon_project(name)
