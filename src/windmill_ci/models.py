"""Pydantic models for API request/response."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class StartProjectRequest(BaseModel):
    name: str = Field(min_length=1)
    origin: str
    scheme: str = ""
    is_workspace: bool = False
    user: str | None = None
    skip_checkout: bool = False


class ProjectInfo(BaseModel):
    name: str
    scheme: str
    origin: str
    is_workspace: bool = False


class ProjectStatus(BaseModel):
    project: ProjectInfo
    state: str | None = None
    status: str
    runs: int = 0
    last_error: dict[str, Any] | None = None


class ProjectListResponse(BaseModel):
    projects: list[ProjectStatus]
    total: int
