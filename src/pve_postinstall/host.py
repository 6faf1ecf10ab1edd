"""
Thin wrapper around the host commands the post-install run depends on:
``pveversion``, ``apt`` and ``systemctl``.
"""

import logging
import os
import subprocess
from typing import Optional

logger = logging.getLogger(__name__)


class PostInstallError(Exception):
    """
    Base class for errors raised during a post-install run.
    """

    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)


class CommandError(PostInstallError):
    """
    Exception raised when a host command fails or cannot be started.
    """

    def __init__(self, message: str, returncode: Optional[int] = None, stderr: str = ""):
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(message)


class HostCommands:
    """
    Runs external commands on the local host.

    Every call blocks until the command exits. There are no timeouts.
    """

    def __init__(self, env: Optional[dict[str, str]] = None):
        """
        Initialize the command runner.

        Args:
            env: Extra environment variables for every command.
        """
        self.env = dict(env or {})

    def run(self, args: list[str], extra_env: Optional[dict[str, str]] = None) -> str:
        """
        Run a command and return its standard output.

        Raises:
            CommandError: If the command is missing or exits non-zero.
        """
        env = os.environ.copy()
        env.update(self.env)
        if extra_env:
            env.update(extra_env)

        logger.debug("Running: %s", " ".join(args))
        try:
            result = subprocess.run(args, capture_output=True, text=True, env=env)
        except FileNotFoundError:
            raise CommandError(f"Command not found: {args[0]}", returncode=127)

        if result.returncode != 0:
            stderr = result.stderr.strip()
            logger.debug("Command failed (%d): %s", result.returncode, stderr)
            raise CommandError(
                f"'{' '.join(args)}' exited with status {result.returncode}",
                returncode=result.returncode,
                stderr=stderr,
            )
        return result.stdout

    def pve_version(self) -> str:
        return self.run(["pveversion"]).strip()

    def apt_update(self) -> None:
        self.run(["apt", "update", "-qq"], extra_env={"DEBIAN_FRONTEND": "noninteractive"})

    def apt_dist_upgrade(self) -> None:
        self.run(
            ["apt", "-y", "dist-upgrade", "-qq"],
            extra_env={"DEBIAN_FRONTEND": "noninteractive"},
        )

    def apt_reinstall(self, package: str) -> None:
        self.run(
            ["apt", "--reinstall", "-y", "install", package],
            extra_env={"DEBIAN_FRONTEND": "noninteractive"},
        )

    def enable_service(self, name: str) -> None:
        """
        Enable a systemd unit and start it immediately.
        """
        self.run(["systemctl", "enable", "-q", "--now", name])

    def is_active(self, name: str) -> bool:
        """
        Check whether a systemd unit is currently active.
        """
        try:
            self.run(["systemctl", "is-active", "--quiet", name])
        except CommandError:
            return False
        return True
