"""Windmill: the canonical build pipeline for one project, repeated every time its source changes.

checkout -> configure -> build settings -> devices -> build -> test -> archive
-> export -> [deploy] -> poll, and on the first poll that sees new commits,
the whole chain again.
"""

from __future__ import annotations

import asyncio
import logging
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable

from .. import config
from ..pipeline import (
    Activity,
    Artefact,
    Context,
    EventBus,
    Events,
    FailureKind,
    Outcome,
    ProcessChain,
    ProcessManager,
    ProcessMonitor,
    RepeatUntil,
    ResultArtifact,
    Step,
    recover,
)
from .layout import ProjectLayout
from .metadata import BuildSettings, Configuration, Destination, Devices
from .project import Project
from .recipe import Recipe
from .steps import REPORTING_ACTIVITIES, StepFactory

log = logging.getLogger(__name__)

# Continuation run once the export succeeded: (context) -> next node or None
ExportContinuation = Callable[[Context], "ProcessChain | None"]


@dataclass
class RunState:
    """Values discovered while one run progresses, closed over by later nodes."""

    scheme: str
    has_test_target: bool = True
    destination: Destination | None = None
    app_bundle: Path | None = None
    archive: Path | None = None
    export: Path | None = None


class ExportRun:
    """One pass through the export chain; each method builds the node for the next state."""

    def __init__(self, windmill: Windmill, skip_checkout: bool, then: ExportContinuation | None) -> None:
        self.windmill = windmill
        self.manager = windmill.manager
        self.steps = windmill.steps
        self.layout = windmill.layout
        self.project = windmill.project
        self.then = then
        self.skip_checkout = skip_checkout
        self.run = RunState(scheme=self.project.scheme)

    def checkout(self) -> ProcessChain:
        step = Step.success() if self.skip_checkout else self.steps.make(Activity.CHECKOUT)
        return self.manager.chain(
            step,
            Activity.CHECKOUT,
            info={"project": self.project.name, "repository": str(self.layout.source_dir)},
            on_success=self.configure,
        )

    def configure(self, context: Context) -> ProcessChain:
        return self.manager.chain(
            self.steps.make(Activity.CONFIGURING),
            Activity.CONFIGURING,
            info={"configuration": str(self.layout.configuration_path)},
            on_success=self.read_build_settings,
        )

    def read_build_settings(self, context: Context) -> ProcessChain:
        configuration = Configuration(self.layout.configuration_path)
        self.run.scheme = configuration.detect_scheme(self.project.scheme)
        self.run.has_test_target = configuration.has_test_target
        return self.manager.chain(
            self.steps.make(Activity.BUILDING_SETTINGS, scheme=self.run.scheme),
            Activity.BUILDING_SETTINGS,
            info={"scheme": self.run.scheme},
            on_success=self.discover_devices,
        )

    def discover_devices(self, context: Context) -> ProcessChain:
        return self.manager.chain(
            self.steps.make(Activity.DISCOVERING_DEVICES, scheme=self.run.scheme),
            Activity.DISCOVERING_DEVICES,
            info={"devices": str(self.layout.devices_path)},
            on_success=self.build,
        )

    def build(self, context: Context) -> ProcessChain | None:
        devices = Devices(self.layout.devices_path)
        destination = devices.destination
        if destination is None:
            log.debug(
                "Destination could not be read from devices at '%s'. Does it define a 'destination' dictionary?",
                devices.path,
            )
            return None
        self.run.destination = destination
        self._remove_published_bundle()

        values = {
            "scheme": self.run.scheme,
            "destination_udid": destination.udid,
            "destination_name": destination.name,
        }
        info = {"destination": destination.to_dict()}
        fallback = self.steps.make_recovery(Activity.BUILDING, **values)

        if fallback is not None and not self.run.has_test_target:
            _, step = fallback
            return self.manager.chain(step, Activity.BUILDING, Artefact.APP_BUNDLE, info=info, on_success=self.test)

        recovery = None
        if fallback is not None:
            status, fallback_step = fallback

            def build_without_testing(chain: ProcessChain, context: Context) -> ProcessChain:
                log.info("%s cannot be built for testing, building without tests", self.run.scheme)
                self.run.has_test_target = False
                return self.manager.chain(fallback_step, Activity.BUILDING, Artefact.APP_BUNDLE, on_success=self.test)

            recovery = recover(status, build_without_testing)

        return self.manager.chain(
            self.steps.make(Activity.BUILDING, **values),
            Activity.BUILDING,
            Artefact.APP_BUNDLE,
            info=info,
            on_success=self.test,
            recovery=recovery,
        )

    def test(self, context: Context) -> ProcessChain:
        product_name = BuildSettings(self.layout.build_settings_path).product_name or self.project.name
        self.run.app_bundle = self._publish_bundle(self.layout.app_bundle(product_name))
        self.windmill.publish(
            Events.DID_BUILD,
            {"app_bundle": str(self.run.app_bundle), "destination": self.run.destination.to_dict()},
        )

        if self.run.has_test_target:
            step = self.steps.make(
                Activity.TESTING,
                scheme=self.run.scheme,
                destination_udid=self.run.destination.udid,
                destination_name=self.run.destination.name,
            )
            artefact = Artefact.TEST_REPORT
        else:
            step = Step.success()
            artefact = None
        return self.manager.chain(
            step,
            Activity.TESTING,
            artefact,
            info={"has_test_target": self.run.has_test_target},
            on_success=self.archive,
        )

    def _remove_published_bundle(self) -> None:
        stale = self.layout.published_app_bundle(self.project.name)
        if stale.exists():
            shutil.rmtree(stale)

    def _publish_bundle(self, built: Path) -> Path:
        """Copy the built app bundle into the project home, so the next build cannot overwrite it."""
        if not built.is_dir():
            log.warning("No app bundle at %s, publishing the build output path", built)
            return built
        published = self.layout.published_app_bundle(self.project.name)
        shutil.copytree(built, published, dirs_exist_ok=True)
        return published

    def archive(self, context: Context) -> ProcessChain:
        if self.run.has_test_target:
            info = ResultArtifact(self.layout.result_path(Activity.TESTING)).read()
            if info is not None and info.tests_count is not None and info.tests_count >= 0:
                self.windmill.publish(
                    Events.DID_TEST,
                    {
                        "destination": self.run.destination.to_dict(),
                        "testsCount": info.tests_count,
                        "testFailureSummaries": info.summaries("test_failure_summaries"),
                    },
                )

        self.run.archive = self.layout.archive_path(self.run.scheme)
        return self.manager.chain(
            self.steps.make(Activity.ARCHIVING, scheme=self.run.scheme, archive=self.run.archive),
            Activity.ARCHIVING,
            Artefact.ARCHIVE_BUNDLE,
            info={"archive": str(self.run.archive)},
            on_success=self.export,
        )

    def export(self, context: Context) -> ProcessChain:
        self.windmill.publish(Events.DID_ARCHIVE, {"archive": str(self.run.archive)})

        self.run.export = self.layout.export_path(self.run.scheme)
        return self.manager.chain(
            self.steps.make(
                Activity.EXPORTING,
                scheme=self.run.scheme,
                archive=self.run.archive,
                export=self.run.export,
            ),
            Activity.EXPORTING,
            Artefact.IPA_FILE,
            info={"export": str(self.run.export)},
            on_success=self.exported,
        )

    def exported(self, context: Context) -> ProcessChain | None:
        data = context.merged({"project": self.project.name, "app_bundle": str(self.run.app_bundle)})
        self.windmill.publish(Events.DID_EXPORT, data)
        if self.then is None:
            return None
        return self.then(context)


class Windmill(ProcessMonitor):
    """Pipeline owner: builds the chain, watches its steps and publishes what happens.

    The pipeline holds the lease its manager and scheduler run under, and the
    event bus its subscribers listen on. ``abandon`` revokes the one and closes
    the other.
    """

    def __init__(
        self,
        project: Project,
        manager: ProcessManager | None = None,
        layout: ProjectLayout | None = None,
        recipe: Recipe | None = None,
        bus: EventBus | None = None,
        poll_interval: float | None = None,
        deploy_url: str | None = None,
    ) -> None:
        self.project = project
        self.layout = layout or ProjectLayout.for_project(project)
        self.recipe = recipe or Recipe.load(self.layout.recipe_path)
        self.bus = bus or EventBus()
        self.manager = manager or ProcessManager()
        self.manager.monitor = self
        self.lease = self.manager.lease
        self.poll_interval = config.WINDMILL_POLL_INTERVAL if poll_interval is None else poll_interval
        self.steps = StepFactory(
            project,
            self.layout,
            self.recipe,
            deploy_url=config.WINDMILL_DEPLOY_URL if deploy_url is None else deploy_url,
        )

        self.state: Activity | None = None
        self.status = "idle"
        self.runs = 0
        self.last_error: dict[str, Any] | None = None
        self.scheduler: RepeatUntil | None = None
        self._task: asyncio.Task[Outcome | None] | None = None
        self._stopped = asyncio.Event()

    @classmethod
    def make(
        cls,
        project: Project,
        user: str | None = None,
        skip_checkout: bool = False,
        **kwargs: Any,
    ) -> tuple[Windmill, ProcessChain]:
        """Pipeline plus its first chain: deploy when a user is known, export only otherwise."""
        windmill = cls(project, **kwargs)
        if user is None:
            return windmill, windmill.repeatable_export(skip_checkout=skip_checkout)
        return windmill, windmill.repeatable_deploy(user, skip_checkout=skip_checkout)

    # -- chains --

    def export_chain(self, skip_checkout: bool = False, then: ExportContinuation | None = None) -> ProcessChain:
        return ExportRun(self, skip_checkout, then).checkout()

    def repeatable_export(self, skip_checkout: bool = False) -> ProcessChain:
        def exported(context: Context) -> None:
            self.monitor(self.repeatable_export)
            return None

        return self.export_chain(skip_checkout=skip_checkout, then=exported)

    def repeatable_deploy(self, user: str, skip_checkout: bool = False) -> ProcessChain:
        def exported(context: Context) -> ProcessChain | None:
            export = context.get("export")
            if not export:
                return None

            def deployed(context: Context) -> None:
                self.publish(Events.DID_DEPLOY, {"export": export, "user": user})
                self.monitor(lambda: self.repeatable_deploy(user))
                return None

            return self.manager.chain(
                self.steps.make(Activity.DEPLOYING, export=export, user=user),
                Activity.DEPLOYING,
                Artefact.OTA_DISTRIBUTION,
                on_success=deployed,
            )

        return self.export_chain(skip_checkout=skip_checkout, then=exported)

    def monitor(self, next_chain: Callable[[], ProcessChain]) -> RepeatUntil:
        """Poll the source every ``poll_interval`` seconds; on the first change run ``next_chain()``."""
        self.publish(Events.WILL_MONITOR)
        log.debug("will start monitoring %s", self.project.name)
        self.status = "monitoring"

        def poll() -> ProcessChain:
            return self.manager.chain(self.steps.make(Activity.POLLING), Activity.POLLING)

        def changed() -> None:
            self.scheduler = None
            self.run(next_chain())

        self.scheduler = self.manager.repeat(poll, every=self.poll_interval, until=1, then=changed)
        if self.scheduler.task is not None:
            self.scheduler.task.add_done_callback(self._monitor_finished)
        return self.scheduler

    def _monitor_finished(self, task: asyncio.Task[None]) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is None:
            return
        log.error("Monitoring %s crashed", self.project.name, exc_info=exc)
        self.scheduler = None
        self.status = "failed"
        self.last_error = {"error": str(exc)}
        self._stopped.set()

    # -- lifecycle --

    @property
    def current_run(self) -> asyncio.Task[Outcome | None] | None:
        return self._task

    def run(self, chain: ProcessChain) -> asyncio.Task[Outcome | None]:
        self.layout.prepare()
        self.runs += 1
        self.status = "running"
        self.last_error = None
        self.publish(Events.WILL_START)
        log.info("Starting run %d of %s", self.runs, self.project.name)
        self._task = chain.launch(context={"project": self.project.name})
        self._task.add_done_callback(self._chain_finished)
        return self._task

    def _chain_finished(self, task: asyncio.Task[Outcome | None]) -> None:
        if task is not self._task or task.cancelled() or self._stopped.is_set():
            return
        exc = task.exception()
        if exc is not None:
            log.error("Run %d of %s crashed", self.runs, self.project.name, exc_info=exc)
            self.status = "failed"
            self.last_error = {"error": str(exc)}
            self._stopped.set()
            return
        outcome = task.result()
        if not self.lease.active:
            return
        if outcome is not None and outcome.is_failed:
            log.error("Run %d of %s failed: %s", self.runs, self.project.name, outcome.failure_reason)
            self.status = "failed"
            self._stopped.set()
        elif self.scheduler is None or not self.scheduler.running:
            log.info("Run %d of %s ended without monitoring", self.runs, self.project.name)
            self.status = "stopped"
            self._stopped.set()

    def abandon(self) -> None:
        """Stop for good: nothing further is launched and no timer fires."""
        if not self.lease.active:
            return
        log.info("Abandoning %s", self.project.name)
        self.lease.revoke()
        self.bus.close()
        self.scheduler = None
        self.status = "abandoned"
        self._stopped.set()

    async def wait_closed(self) -> None:
        """Wait until the pipeline failed, stopped or was abandoned."""
        await self._stopped.wait()

    def describe(self) -> dict[str, Any]:
        return {
            "project": self.project.to_dict(),
            "state": self.state.value if self.state else None,
            "status": self.status,
            "runs": self.runs,
            "last_error": self.last_error,
        }

    # -- events --

    def publish(self, name: str, data: dict[str, Any] | None = None) -> None:
        payload = dict(data or {})
        payload.setdefault("project", self.project.name)
        self.bus.publish(name, payload)

    def _payload(self, chain: ProcessChain, context: Context) -> dict[str, Any]:
        payload = context.merged({"project": self.project.name})
        payload.update(chain.metadata())
        return payload

    # -- ProcessMonitor --

    def will_launch(self, manager: ProcessManager, chain: ProcessChain, context: Context) -> None:
        if chain.activity is not None:
            self.state = chain.activity

    def did_launch(self, manager: ProcessManager, chain: ProcessChain, pid: int, context: Context) -> None:
        if chain.activity is None or chain.tolerate_failure:
            return
        log.debug("activity did launch `%s` (pid %d)", chain.activity.value, pid)
        payload = self._payload(chain, context)
        payload["pid"] = pid
        self.publish(Events.ACTIVITY_DID_LAUNCH, payload)

    def did_exit(self, manager: ProcessManager, chain: ProcessChain, outcome: Outcome, context: Context) -> None:
        if outcome.is_recoverable:
            log.debug("will attempt to recover process '%s'", chain.step.name)
            return
        if chain.activity is None:
            return
        if outcome.is_success:
            if not chain.tolerate_failure:
                log.debug("activity did exit success `%s`", chain.activity.value)
                self.publish(Events.ACTIVITY_DID_EXIT_SUCCESSFULLY, self._payload(chain, context))
            return
        if chain.tolerate_failure:
            return

        log.error("activity '%s' did error: %s", chain.activity.value, outcome.failure_reason)
        base = Context(self._payload(chain, context))
        errors: list[dict[str, Any]] = []
        info = outcome.info
        if chain.activity in REPORTING_ACTIVITIES and info is not None:
            if info.error_count > 0:
                errors.append({"errorCount": info.error_count, "errorSummaries": info.summaries("error_summaries")})
            if info.has_test_failures:
                errors.append(
                    {
                        "testsFailedCount": info.tests_failed_count,
                        "testFailureSummaries": info.summaries("test_failure_summaries"),
                    }
                )
        if not errors:
            errors.append({})

        for extra in errors:
            payload = base.clone()
            payload.merge(
                {
                    "error": outcome.failure_reason,
                    "exit_status": outcome.exit_status,
                    "failure_kind": (outcome.failure_kind or FailureKind.PROCESS).value,
                    **extra,
                }
            )
            self.last_error = payload.snapshot()
            self.publish(Events.ACTIVITY_ERROR, self.last_error)
