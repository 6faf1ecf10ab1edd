"""
Post-install pipeline.

Runs the steps strictly in order:

    version detection -> source reconciliation (PVE 8 or 9)
    -> nag suppression -> HA services -> system update

Version problems and filesystem errors stop the run. Failing host commands
after version detection are recorded as recovered failures and the run
carries on. There is no rollback; running again is the recovery path.
"""

import logging
from pathlib import Path
from typing import Callable, Optional

from .config import PostInstallConfig
from .host import CommandError, HostCommands
from .models import PipelineState, RunReport, StepResult, StepStatus
from .nag import WIDGET_TOOLKIT_PACKAGE, NagInstaller
from .reconcile import SourceReconciler
from .services import ServiceEnabler
from .updater import Updater
from .version import UnsupportedVersionError, VersionError, detect_version, ensure_supported

logger = logging.getLogger(__name__)

# (start title, success message, file actions)
Plan = tuple[str, str, list[Callable[[], list[Path]]]]


class StepReporter:
    """
    Receives progress notifications. The base class ignores them.
    """

    def start(self, title: str) -> None:
        pass

    def finish(self, result: StepResult) -> None:
        pass


def _result(
    title: str,
    status: StepStatus,
    message: str,
    changed: Optional[list[Path]] = None,
    error: Optional[str] = None,
) -> StepResult:
    return StepResult(
        title=title,
        status=status,
        message=message,
        changed=[str(path) for path in changed or []],
        error=error,
    )


class PostInstallPipeline:
    """
    Runs a complete post-install pass over one host.
    """

    def __init__(
        self,
        config: PostInstallConfig,
        host: HostCommands,
        reporter: Optional[StepReporter] = None,
    ):
        """
        Initialize the pipeline.

        Args:
            config: Run configuration, shared by every step.
            host: Runner for pveversion, apt and systemctl.
            reporter: Optional receiver for step progress.
        """
        self.config = config
        self.host = host
        self.reporter = reporter or StepReporter()
        self.nag = NagInstaller(config)
        self.services = ServiceEnabler(config, host)
        self.updater = Updater(host)
        self.report = RunReport()

    def _step(self, title: str, action: Callable[[], StepResult]) -> StepResult:
        self.reporter.start(title)
        try:
            result = action()
        except OSError as e:
            logger.error("%s: %s", title, e)
            result = _result(title, StepStatus.FATAL, f"{title} failed", error=str(e))
        self.reporter.finish(result)
        return self.report.add(result)

    def _apply(
        self, title: str, done: str, *actions: Callable[[], list[Path]]
    ) -> StepResult:
        def action() -> StepResult:
            changed = []
            for fn in actions:
                changed.extend(fn())
            return _result(title, StepStatus.SUCCESS, done, changed)

        return self._step(title, action)

    def _skip(self, title: str, message: str) -> StepResult:
        return self._step(title, lambda: _result(title, StepStatus.SKIPPED, message))

    def _detect_version(self) -> StepResult:
        title = "Detecting Proxmox VE version"
        try:
            version = detect_version(self.host)
        except VersionError as e:
            return _result(title, StepStatus.FATAL, e.message, error=e.message)

        self.report.version = version
        self.report.advance(PipelineState.VERSION_DETECTED)
        try:
            ensure_supported(version)
        except UnsupportedVersionError as e:
            self.report.advance(PipelineState.UNSUPPORTED)
            return _result(title, StepStatus.FATAL, e.message, error=e.message)
        return _result(title, StepStatus.SUCCESS, f"Proxmox VE {version} detected")

    def _plan_8(self, sources: SourceReconciler) -> list[Plan]:
        plan = [
            (
                "Correcting Proxmox VE sources",
                "Sources corrected",
                [sources.write_debian_sources_list, sources.write_firmware_quirk],
            ),
            (
                "Disabling any 'pve-enterprise' repository files",
                "All enterprise repositories disabled",
                [sources.disable_enterprise_repos],
            ),
            (
                "Enabling 'pve-no-subscription' repo",
                "No-subscription repo enabled",
                [sources.write_no_subscription_list],
            ),
            (
                "Correcting Ceph package repositories",
                "Ceph repositories corrected",
                [sources.write_ceph_list],
            ),
        ]
        if self.config.add_pvetest_repo:
            plan.append(
                (
                    "Adding 'pvetest' repository (disabled)",
                    "PVETEST repository added",
                    [sources.write_pvetest_list],
                )
            )
        else:
            plan.append(("Skipping PVETEST repository addition", "PVETEST skipped", []))
        return plan

    def _plan_9(self, sources: SourceReconciler) -> list[Plan]:
        if self.config.migrate_sources:
            plan = [
                (
                    "Migrating sources to deb822 format",
                    "Sources migrated",
                    [sources.migrate_legacy_sources],
                )
            ]
        else:
            legacy = sources.find_legacy_files()
            plan = [
                (
                    "Keeping existing sources format (no migration)",
                    f"Sources unchanged, {len(legacy)} legacy file(s) kept",
                    [],
                )
            ]
        plan += [
            (
                "Disabling any 'pve-enterprise' repository files",
                "All enterprise repositories disabled",
                [sources.disable_enterprise_repos],
            ),
            (
                "Disabling 'ceph enterprise' repo",
                "Ceph enterprise disabled",
                [sources.disable_ceph_enterprise],
            ),
            (
                "Enabling 'pve-no-subscription' if disabled",
                "No-subscription ensured active",
                [sources.enable_no_subscription],
            ),
            (
                "Adding 'pve-no-subscription' if missing",
                "No-subscription repo present",
                [sources.ensure_no_subscription],
            ),
        ]
        if self.config.add_pvetest_repo:
            plan.append(
                (
                    "Adding 'pve-test' repository (disabled)",
                    "PVETEST repository added",
                    [sources.write_pvetest_sources],
                )
            )
        else:
            plan.append(("Skipping Ceph and PVETEST repo additions", "Skipped optional repos", []))
        return plan

    def _reconcile(self, plan: list[Plan]) -> None:
        """
        Run the reconciliation steps, stopping at the first fatal one.

        A step without actions is reported as skipped.
        """
        for title, done, actions in plan:
            if actions:
                result = self._apply(title, done, *actions)
            else:
                result = self._skip(title, done)
            if result.status == StepStatus.FATAL:
                break

    def _reinstall_widget_toolkit(self) -> StepResult:
        title = f"Reinstalling {WIDGET_TOOLKIT_PACKAGE}"
        try:
            self.nag.reapply(self.host)
        except CommandError as e:
            return _result(
                title,
                StepStatus.RECOVERED,
                f"{WIDGET_TOOLKIT_PACKAGE} reinstall failed",
                error=e.message,
            )
        return _result(title, StepStatus.SUCCESS, "Nag patch applied")

    def _enable_services(self) -> StepResult:
        title = "Enabling High Availability"
        outcome = self.services.enable()
        if outcome.skipped:
            return _result(
                title,
                StepStatus.SKIPPED,
                f"{self.config.ha_guard_service} already active, HA left untouched",
            )
        if outcome.failed:
            failed = ", ".join(outcome.failed)
            return _result(
                title,
                StepStatus.RECOVERED,
                f"High Availability partially enabled (failed: {failed})",
                error="; ".join(f"{k}: {v}" for k, v in outcome.failed.items()),
            )
        return _result(title, StepStatus.SUCCESS, "High Availability enabled")

    def _update(self) -> StepResult:
        title = "Updating Proxmox VE"
        try:
            self.updater.update()
        except CommandError as e:
            return _result(title, StepStatus.RECOVERED, "Update failed", error=e.message)
        return _result(title, StepStatus.SUCCESS, "System updated")

    def run(self) -> RunReport:
        """
        Run every step and return the aggregated report.
        """
        self.report = RunReport()

        if self._step("Detecting Proxmox VE version", self._detect_version).status == StepStatus.FATAL:
            self.report.advance(PipelineState.ABORT)
            return self.report

        major = self.report.version.major
        sources = SourceReconciler(self.config, self.config.codename_for(major))
        if major == 8:
            self._reconcile(self._plan_8(sources))
            reconciled = PipelineState.V8_RECONCILED
        else:
            self._reconcile(self._plan_9(sources))
            reconciled = PipelineState.V9_RECONCILED

        if self.report.fatal is not None:
            self.report.advance(PipelineState.ABORT)
            return self.report
        self.report.advance(reconciled)

        if self._apply(
            "Disabling subscription nag", "Subscription nag disabled", self.nag.install
        ).status == StepStatus.FATAL:
            self.report.advance(PipelineState.ABORT)
            return self.report
        if self.config.reinstall_widget_toolkit:
            self._step(f"Reinstalling {WIDGET_TOOLKIT_PACKAGE}", self._reinstall_widget_toolkit)
        self.report.advance(PipelineState.NAG_INSTALLED)

        self._step("Enabling High Availability", self._enable_services)
        self.report.advance(PipelineState.SERVICES_ENABLED)

        if self.config.run_update:
            self._step("Updating Proxmox VE", self._update)
        else:
            self._skip("Updating Proxmox VE", "Update skipped")
        self.report.advance(PipelineState.UPDATED)
        self.report.advance(PipelineState.DONE)
        return self.report


def create_pipeline(
    config: PostInstallConfig, reporter: Optional[StepReporter] = None
) -> PostInstallPipeline:
    """
    Create a pipeline bound to the local host.

    Args:
        config: Run configuration.
        reporter: Optional receiver for step progress.

    Returns:
        Configured PostInstallPipeline.
    """
    return PostInstallPipeline(config, HostCommands(), reporter)
