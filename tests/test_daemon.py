import asyncio
import sys

import pytest

from windmill_ci.pipeline import Activity
from windmill_ci.services import daemon
from windmill_ci.services.recipe import Recipe, StepRecipe


def _checkout(code):
    return Recipe(steps={Activity.CHECKOUT: StepRecipe(command=[sys.executable, "-c", code])})


def test_failed_run_is_recorded(layout):
    async def scenario():
        daemon.start_project("demo", "file:///nowhere", layout=layout, recipe=_checkout("raise SystemExit(3)"))
        windmill = daemon._project_store["demo"]["windmill"]
        await asyncio.wait_for(windmill.wait_closed(), 30)

    asyncio.run(scenario())
    assert not daemon.is_active("demo")

    info = daemon.get_project("demo")
    assert info["status"] == "failed"
    assert info["state"] == "checkout"
    assert info["last_error"]["exit_status"] == 3

    events = daemon.get_events("demo")
    kinds = [ev["kind"] for ev in events]
    assert kinds == ["will.start", "activity.did.launch", "activity.error"]
    assert daemon.get_events("demo", after=events[0]["seq"]) == events[1:]


def test_running_project_cannot_start_twice(layout):
    async def scenario():
        recipe = _checkout("import time; time.sleep(0.5)")
        daemon.start_project("demo", "file:///nowhere", layout=layout, recipe=recipe)
        assert daemon.is_active("demo")
        with pytest.raises(daemon.ProjectRunningError):
            daemon.start_project("demo", "file:///nowhere", layout=layout, recipe=recipe)

        windmill = daemon._project_store["demo"]["windmill"]
        assert daemon.abandon_project("demo")["status"] == "abandoned"
        await windmill.current_run

    asyncio.run(scenario())
    assert daemon.list_projects()["total"] == 1
    assert not daemon.is_active("demo")


def test_unknown_project():
    assert daemon.get_project("nope") is None
    assert daemon.get_events("nope") == []
    assert daemon.abandon_project("nope") is None
