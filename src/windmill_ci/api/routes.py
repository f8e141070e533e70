"""API routes: start, inspect, stream and abandon project pipelines."""

from __future__ import annotations

import json
from typing import AsyncGenerator

from fastapi import APIRouter, HTTPException
from sse_starlette.sse import EventSourceResponse

from ..models import ProjectListResponse, ProjectStatus, StartProjectRequest
from ..services.daemon import (
    ProjectRunningError,
    abandon_project,
    get_events,
    get_project,
    is_active,
    list_projects,
    start_project,
)

router = APIRouter(prefix="/api", tags=["api"])

STREAM_POLL_SECONDS = 0.3


@router.post("/projects", response_model=ProjectStatus)
async def api_start_project(body: StartProjectRequest):
    """Start the continuous pipeline for a project. Subscribe to GET /api/projects/{name}/stream for events."""
    try:
        return start_project(
            name=body.name,
            origin=body.origin,
            scheme=body.scheme,
            is_workspace=body.is_workspace,
            user=body.user,
            skip_checkout=body.skip_checkout,
        )
    except ProjectRunningError as e:
        raise HTTPException(409, str(e))
    except ValueError as e:
        raise HTTPException(400, str(e))


@router.get("/projects", response_model=ProjectListResponse)
async def api_list_projects():
    return list_projects()


@router.get("/projects/{name}", response_model=ProjectStatus)
async def api_get_project(name: str):
    project = get_project(name)
    if project is None:
        raise HTTPException(404, "Project not found")
    return project


@router.delete("/projects/{name}", response_model=ProjectStatus)
async def api_abandon_project(name: str):
    """Abandon the pipeline: the step in flight finishes, nothing runs after it."""
    project = abandon_project(name)
    if project is None:
        raise HTTPException(404, "Project not found")
    return project


@router.get("/projects/{name}/stream")
async def api_project_stream(name: str):
    """SSE stream of pipeline events. Ends once the pipeline failed, stopped or was abandoned."""
    if get_project(name) is None:
        raise HTTPException(404, "Project not found")

    async def event_generator() -> AsyncGenerator[str, None]:
        import asyncio
        last_seq = 0
        while True:
            for ev in get_events(name, after=last_seq):
                last_seq = ev["seq"]
                yield json.dumps({"kind": ev["kind"], "data": ev["data"]}, default=str)
            if not is_active(name):
                project = get_project(name)
                if project is not None:
                    yield json.dumps({"kind": "status", "data": project}, default=str)
                break
            await asyncio.sleep(STREAM_POLL_SECONDS)

    return EventSourceResponse(event_generator())
