import json

import pytest

from windmill_ci.pipeline import Activity
from windmill_ci.services.project import Project
from windmill_ci.services.recipe import DEFAULT_RECIPE, XCODEBUILD_NO_TEST_TARGET, Recipe, StepRecipe
from windmill_ci.services.steps import StepFactory


def test_default_build_recovers_without_tests(layout):
    steps = StepFactory(Project(name="demo", origin="git@example.com:demo.git"), layout, DEFAULT_RECIPE)
    status, fallback = steps.make_recovery(Activity.BUILDING, destination_udid="SIM-1")
    assert status == XCODEBUILD_NO_TEST_TARGET == 66
    assert fallback.argv[:2] == ("xcodebuild", "build")
    assert "platform=iOS Simulator,id=SIM-1" in fallback.argv
    assert steps.make_recovery(Activity.TESTING) is None


def test_steps_carry_paths_for_their_activity(layout):
    steps = StepFactory(Project(name="demo", origin="git@example.com:demo.git"), layout, DEFAULT_RECIPE)

    checkout = steps.make(Activity.CHECKOUT)
    assert checkout.cwd is None
    assert checkout.argv[-2:] == (str(layout.source_dir), "git@example.com:demo.git")

    configure = steps.make(Activity.CONFIGURING)
    assert configure.stdout_path == layout.configuration_path
    assert configure.artifact is None
    assert configure.cwd == layout.source_dir

    build = steps.make(Activity.BUILDING, destination_udid="SIM-1")
    assert build.artifact.path == layout.result_path(Activity.BUILDING)
    assert build.log_path == layout.log_path(Activity.BUILDING)
    assert "demo" in build.argv


def test_poll_script_keeps_upstream_braces():
    argv = DEFAULT_RECIPE.render(Activity.POLLING, {"repository": "/src"})
    assert "@{u}" in argv[2]
    assert argv[-1] == "/src"


def test_unknown_placeholder_is_rejected():
    recipe = Recipe(steps={Activity.CHECKOUT: StepRecipe(command=["git", "clone", "{nope}"])})
    with pytest.raises(ValueError, match="Unknown placeholder"):
        recipe.render(Activity.CHECKOUT, {})


def test_missing_activity_is_rejected():
    recipe = Recipe(steps={Activity.CHECKOUT: StepRecipe(command=["true"])})
    with pytest.raises(ValueError):
        recipe.step(Activity.BUILDING)


def test_load_overrides_default(tmp_path):
    path = tmp_path / "recipe.json"
    path.write_text(json.dumps({"steps": {"testing": {"command": ["make", "test"]}}}))
    recipe = Recipe.load(path)
    assert recipe.step(Activity.TESTING).command == ["make", "test"]
    assert recipe.step(Activity.BUILDING) == DEFAULT_RECIPE.step(Activity.BUILDING)


def test_load_without_file_gives_default(tmp_path):
    assert Recipe.load(tmp_path / "recipe.json") is DEFAULT_RECIPE


def test_load_rejects_invalid_recipe(tmp_path):
    path = tmp_path / "recipe.json"
    path.write_text(json.dumps({"steps": {"testing": {"command": []}}}))
    with pytest.raises(ValueError):
        Recipe.load(path)
    path.write_text("not json")
    with pytest.raises(ValueError):
        Recipe.load(path)
