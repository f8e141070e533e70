import sys

import pytest
from fastapi.testclient import TestClient


@pytest.fixture()
def client() -> TestClient:
    from windmill_ci.main import app

    return TestClient(app)


@pytest.fixture(autouse=True)
def _clear_in_memory_stores():
    # Ensure deterministic tests across runs.
    from windmill_ci.services import daemon

    daemon._project_store.clear()
    yield
    daemon._project_store.clear()


@pytest.fixture()
def py():
    """Build a step running a Python snippet with the test interpreter."""
    from windmill_ci.pipeline import Step

    def make(code: str, *args, **kwargs) -> Step:
        return Step(argv=(sys.executable, "-c", code, *args), **kwargs)

    return make


@pytest.fixture()
def monitor():
    from windmill_ci.pipeline import ProcessMonitor

    class RecordingMonitor(ProcessMonitor):
        def __init__(self):
            self.calls = []
            self.outcomes = []

        def will_launch(self, manager, chain, context):
            self.calls.append(("will_launch", chain.label))

        def did_launch(self, manager, chain, pid, context):
            self.calls.append(("did_launch", chain.label))

        def did_exit(self, manager, chain, outcome, context):
            self.calls.append(("did_exit", chain.label))
            self.outcomes.append((chain.label, outcome))

    return RecordingMonitor()


@pytest.fixture()
def layout(tmp_path):
    from windmill_ci.services.layout import ProjectLayout

    return ProjectLayout(home=tmp_path / "home", caches=tmp_path / "caches", support=tmp_path / "support")
