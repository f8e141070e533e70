"""Step factory: turns recipe templates into concrete steps for one project."""

from __future__ import annotations

from typing import Any

from ..pipeline import Activity, ResultArtifact, Step
from .layout import ProjectLayout
from .project import Project
from .recipe import Recipe

# Activities whose tool writes a result artifact at {result}
REPORTING_ACTIVITIES = {Activity.BUILDING, Activity.TESTING, Activity.ARCHIVING, Activity.EXPORTING}


class StepFactory:
    def __init__(
        self,
        project: Project,
        layout: ProjectLayout,
        recipe: Recipe,
        deploy_url: str = "",
    ) -> None:
        self.project = project
        self.layout = layout
        self.recipe = recipe
        self.deploy_url = deploy_url

    def values(self, activity: Activity, **extra: Any) -> dict[str, Any]:
        layout = self.layout
        values: dict[str, Any] = {
            "name": self.project.name,
            "scheme": self.project.scheme,
            "origin": self.project.origin,
            "repository": layout.source_dir,
            "derived_data": layout.derived_data,
            "configuration": layout.configuration_path,
            "build_settings": layout.build_settings_path,
            "devices": layout.devices_path,
            "export_dir": layout.export_dir,
            "result": layout.result_path(activity),
            "user": "",
            "deploy_url": self.deploy_url,
        }
        values.update(extra)
        return values

    def _step(self, activity: Activity, argv: list[str]) -> Step:
        layout = self.layout
        stdout_path = {
            Activity.CONFIGURING: layout.configuration_path,
            Activity.BUILDING_SETTINGS: layout.build_settings_path,
            Activity.DISCOVERING_DEVICES: layout.devices_path,
        }.get(activity)
        artifact = ResultArtifact(layout.result_path(activity)) if activity in REPORTING_ACTIVITIES else None
        return Step(
            argv=tuple(argv),
            # the checkout creates the source directory
            cwd=None if activity is Activity.CHECKOUT else layout.source_dir,
            artifact=artifact,
            stdout_path=stdout_path,
            log_path=layout.log_path(activity),
        )

    def make(self, activity: Activity, **extra: Any) -> Step:
        return self._step(activity, self.recipe.render(activity, self.values(activity, **extra)))

    def make_recovery(self, activity: Activity, **extra: Any) -> tuple[int, Step] | None:
        """Trigger status and fallback step for ``activity``, if the recipe defines one."""
        recovery = self.recipe.render_recovery(activity, self.values(activity, **extra))
        if recovery is None:
            return None
        status, argv = recovery
        return status, self._step(activity, argv)
