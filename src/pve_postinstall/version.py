"""
Detection of the installed Proxmox VE release.
"""

import logging

from .host import CommandError, HostCommands, PostInstallError
from .models import PveVersion

logger = logging.getLogger(__name__)

SUPPORTED_MAJORS = (8, 9)


class VersionError(PostInstallError):
    """
    Exception raised when the PVE version cannot be determined.
    """


class UnsupportedVersionError(VersionError):
    """
    Exception raised for a PVE release this tool has no routine for.
    """

    def __init__(self, version: PveVersion):
        self.version = version
        super().__init__(f"Unsupported Proxmox version: {version}")


def parse_version(text: str) -> PveVersion:
    """
    Parse a PVE version string.

    Accepts either the full ``pveversion`` line
    (``pve-manager/8.2.4/faa83925c9641325 (running kernel: ...)``) or the bare
    version (``8.2-1``). The packaging suffix after ``-`` is ignored.

    Raises:
        VersionError: If no numeric major/minor pair can be read.
    """
    value = text.strip()
    if "/" in value:
        value = value.split("/")[1]
    dotted = value.split("-")[0].strip()
    parts = dotted.split(".")

    try:
        major = int(parts[0])
        minor = int(parts[1]) if len(parts) > 1 and parts[1] else 0
    except ValueError:
        raise VersionError(f"Unable to parse Proxmox version: {text.strip()!r}")

    return PveVersion(major=major, minor=minor, raw=dotted)


def detect_version(host: HostCommands) -> PveVersion:
    """
    Ask the host for its PVE version.

    Raises:
        VersionError: If ``pveversion`` fails or prints something unexpected.
    """
    try:
        output = host.pve_version()
    except CommandError as e:
        raise VersionError(f"Unable to query Proxmox version: {e.message}")

    version = parse_version(output)
    logger.debug("Detected Proxmox VE %s from %r", version, output)
    return version


def ensure_supported(version: PveVersion, supported: tuple[int, ...] = SUPPORTED_MAJORS) -> PveVersion:
    if version.major not in supported:
        raise UnsupportedVersionError(version)
    return version
