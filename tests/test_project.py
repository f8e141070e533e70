import pytest

from windmill_ci.pipeline import Activity
from windmill_ci.services.layout import ProjectLayout
from windmill_ci.services.project import Project


def test_equality_is_name_and_origin():
    a = Project(name="demo", scheme="Demo", origin="git@example.com:demo.git")
    b = Project(name="demo", scheme="Other", origin="git@example.com:demo.git", is_workspace=True)
    c = Project(name="demo", origin="git@example.com:fork.git")
    assert a == b
    assert hash(a) == hash(b)
    assert a != c
    assert len({a, b, c}) == 2


def test_scheme_defaults_to_name():
    assert Project(name="demo").scheme == "demo"


@pytest.mark.parametrize("name", ["", "a/b"])
def test_invalid_name(name):
    with pytest.raises(ValueError):
        Project(name=name)


def test_layout_for_project(tmp_path):
    layout = ProjectLayout.for_project(
        Project(name="demo"), home=tmp_path / "home", caches=tmp_path / "caches", support=tmp_path / "support"
    )
    assert layout.home == tmp_path / "home" / "demo"
    assert layout.source_dir == tmp_path / "caches" / "demo" / "Sources"
    assert layout.result_path(Activity.TESTING) == tmp_path / "support" / "demo" / "results" / "testing.json"

    layout.prepare()
    assert layout.home.is_dir()
    assert layout.result_path(Activity.BUILDING).parent.is_dir()
