"""Where a project's checkout, metadata, reports and products live on disk."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from .. import config
from ..pipeline import Activity
from .project import Project


@dataclass(frozen=True)
class ProjectLayout:
    """Per-project directories.

    - ``home``: metadata written by discovery steps, archives, exports, logs
    - ``caches``: the source checkout and derived build output
    - ``support``: result artifacts, one per activity
    """

    home: Path
    caches: Path
    support: Path

    @classmethod
    def for_project(
        cls,
        project: Project,
        home: Path | None = None,
        caches: Path | None = None,
        support: Path | None = None,
    ) -> ProjectLayout:
        return cls(
            home=(home or config.WINDMILL_HOME / "projects") / project.name,
            caches=(caches or config.WINDMILL_CACHES_DIR) / project.name,
            support=(support or config.WINDMILL_SUPPORT_DIR) / project.name,
        )

    def prepare(self) -> None:
        for d in (self.home, self.caches, self.support / "results"):
            d.mkdir(parents=True, exist_ok=True)

    @property
    def source_dir(self) -> Path:
        return self.caches / "Sources"

    @property
    def derived_data(self) -> Path:
        return self.caches / "DerivedData"

    @property
    def configuration_path(self) -> Path:
        return self.home / "configuration.json"

    @property
    def build_settings_path(self) -> Path:
        return self.home / "build" / "settings.json"

    @property
    def devices_path(self) -> Path:
        return self.home / "test" / "devices.json"

    @property
    def recipe_path(self) -> Path:
        return self.home / "recipe.json"

    @property
    def export_dir(self) -> Path:
        return self.home / "export"

    def result_path(self, activity: Activity) -> Path:
        return self.support / "results" / f"{activity.value}.json"

    def log_path(self, activity: Activity) -> Path:
        return self.home / "logs" / f"{activity.value}.log"

    def archive_path(self, scheme: str) -> Path:
        return self.home / "archive" / f"{scheme}.xcarchive"

    def export_path(self, scheme: str) -> Path:
        return self.export_dir / f"{scheme}.ipa"

    def app_bundle(self, product_name: str) -> Path:
        return self.derived_data / "Build" / "Products" / "Debug-iphonesimulator" / f"{product_name}.app"

    def published_app_bundle(self, name: str) -> Path:
        """Copy of the last built app bundle, out of reach of the next build."""
        return self.home / f"{name}.app"
