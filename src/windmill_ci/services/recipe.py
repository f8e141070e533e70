"""Command recipe: which tool each activity runs, and which exit status asks for a fallback."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Mapping

from pydantic import BaseModel, Field, ValidationError

from ..pipeline import Activity

log = logging.getLogger(__name__)

# xcodebuild exits 66 when a scheme cannot be built for testing
XCODEBUILD_NO_TEST_TARGET = 66

_CHECKOUT_SCRIPT = (
    'if [ -d "$1/.git" ]; then git -C "$1" pull --ff-only; '
    'else mkdir -p "$1" && git clone "$2" "$1"; fi'
)
# exit 0 only when the upstream branch has commits the checkout does not
_POLL_SCRIPT = (
    'git -C "$1" fetch --quiet && '
    'test "$(git -C "$1" rev-parse HEAD)" != "$(git -C "$1" rev-parse "@{{u}}")"'
)


class StepRecipe(BaseModel):
    """Command template for one activity. Arguments may use ``{placeholder}`` fields."""

    command: list[str] = Field(min_length=1)
    recover_status: int | None = None
    recover_command: list[str] | None = None


class Recipe(BaseModel):
    steps: dict[Activity, StepRecipe]

    def step(self, activity: Activity) -> StepRecipe:
        try:
            return self.steps[activity]
        except KeyError:
            raise ValueError(f"Recipe has no command for {activity.value}") from None

    def render(self, activity: Activity, values: Mapping[str, Any]) -> list[str]:
        return _render(self.step(activity).command, activity, values)

    def render_recovery(self, activity: Activity, values: Mapping[str, Any]) -> tuple[int, list[str]] | None:
        """Trigger status and fallback command, when the activity declares one."""
        recipe = self.step(activity)
        if recipe.recover_status is None or not recipe.recover_command:
            return None
        return recipe.recover_status, _render(recipe.recover_command, activity, values)

    @classmethod
    def load(cls, path: Path) -> Recipe:
        """Default recipe, with the activities defined in ``path`` replaced."""
        if not path.exists():
            return DEFAULT_RECIPE
        try:
            override = cls.model_validate(json.loads(path.read_text(encoding="utf-8")))
        except (OSError, ValueError, ValidationError) as e:
            raise ValueError(f"Invalid recipe at {path}: {e}") from e
        log.info("Using recipe overrides from %s for %s", path, ", ".join(a.value for a in override.steps))
        return cls(steps={**DEFAULT_RECIPE.steps, **override.steps})


def _render(command: list[str], activity: Activity, values: Mapping[str, Any]) -> list[str]:
    try:
        return [arg.format(**values) for arg in command]
    except (KeyError, IndexError) as e:
        raise ValueError(f"Unknown placeholder {e} in {activity.value} command") from None


def _xcodebuild(*args: str) -> list[str]:
    return ["xcodebuild", *args]


_DESTINATION = "platform=iOS Simulator,id={destination_udid}"

DEFAULT_RECIPE = Recipe(
    steps={
        Activity.CHECKOUT: StepRecipe(command=["sh", "-c", _CHECKOUT_SCRIPT, "checkout", "{repository}", "{origin}"]),
        Activity.CONFIGURING: StepRecipe(command=_xcodebuild("-list", "-json")),
        Activity.BUILDING_SETTINGS: StepRecipe(command=_xcodebuild("-showBuildSettings", "-scheme", "{scheme}", "-json")),
        Activity.DISCOVERING_DEVICES: StepRecipe(command=["xcrun", "simctl", "list", "devices", "available", "-j"]),
        Activity.BUILDING: StepRecipe(
            command=_xcodebuild(
                "build-for-testing", "-scheme", "{scheme}", "-destination", _DESTINATION,
                "-derivedDataPath", "{derived_data}", "-resultBundlePath", "{result}",
            ),
            recover_status=XCODEBUILD_NO_TEST_TARGET,
            recover_command=_xcodebuild(
                "build", "-scheme", "{scheme}", "-destination", _DESTINATION,
                "-derivedDataPath", "{derived_data}", "-resultBundlePath", "{result}",
            ),
        ),
        Activity.TESTING: StepRecipe(
            command=_xcodebuild(
                "test-without-building", "-scheme", "{scheme}", "-destination", _DESTINATION,
                "-derivedDataPath", "{derived_data}", "-resultBundlePath", "{result}",
            ),
        ),
        Activity.ARCHIVING: StepRecipe(
            command=_xcodebuild(
                "archive", "-scheme", "{scheme}", "-derivedDataPath", "{derived_data}",
                "-archivePath", "{archive}", "-resultBundlePath", "{result}",
            ),
        ),
        Activity.EXPORTING: StepRecipe(
            command=_xcodebuild(
                "-exportArchive", "-archivePath", "{archive}", "-exportPath", "{export_dir}",
                "-exportOptionsPlist", "{export_dir}/ExportOptions.plist", "-resultBundlePath", "{result}",
            ),
        ),
        Activity.DEPLOYING: StepRecipe(
            command=["curl", "--fail", "--silent", "--show-error", "-F", "ipa=@{export}", "-F", "user={user}", "{deploy_url}"],
        ),
        Activity.POLLING: StepRecipe(command=["sh", "-c", _POLL_SCRIPT, "poll", "{repository}"]),
    }
)
