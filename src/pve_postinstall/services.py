"""
High-availability service enablement.
"""

import logging

from pydantic import BaseModel, Field

from .config import PostInstallConfig
from .host import CommandError, HostCommands

logger = logging.getLogger(__name__)


class ServiceReport(BaseModel):
    """
    Outcome of enabling the HA services.
    """

    enabled: list[str] = Field(default_factory=list)
    failed: dict[str, str] = Field(default_factory=dict)
    skipped: bool = False


class ServiceEnabler:
    """
    Enables and starts the HA and cluster daemons.

    A service that fails to enable is recorded and the rest are still
    attempted; nothing is raised.
    """

    def __init__(self, config: PostInstallConfig, host: HostCommands):
        self.config = config
        self.host = host

    def enable(self) -> ServiceReport:
        report = ServiceReport()

        guard = self.config.ha_guard_service
        if self.config.skip_ha_if_active and self.host.is_active(guard):
            logger.info("%s already active, leaving HA services untouched", guard)
            report.skipped = True
            return report

        for service in self.config.ha_services:
            try:
                self.host.enable_service(service)
            except CommandError as e:
                logger.warning("Failed to enable %s: %s", service, e.message)
                report.failed[service] = e.stderr or e.message
            else:
                report.enabled.append(service)
        return report
