"""
Package index refresh and full upgrade.
"""

import logging

from .host import HostCommands

logger = logging.getLogger(__name__)


class Updater:
    """
    Runs ``apt update`` followed by a non-interactive ``apt dist-upgrade``.

    Dependency resolution and rollback are left to APT.
    """

    def __init__(self, host: HostCommands):
        self.host = host

    def update(self) -> None:
        """
        Refresh the index, then upgrade.

        The upgrade is only attempted after a successful refresh.

        Raises:
            CommandError: If either command fails.
        """
        self.host.apt_update()
        logger.debug("Package index refreshed")
        self.host.apt_dist_upgrade()
        logger.debug("dist-upgrade finished")
