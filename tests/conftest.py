"""
Shared fixtures: a fake host and seeded APT trees.
"""

from pathlib import Path
from typing import Optional

import pytest

from pve_postinstall.config import PostInstallConfig
from pve_postinstall.host import CommandError, HostCommands

PVE8_VERSION = "pve-manager/8.2.4/faa83925c9641325 (running kernel: 6.8.12-1-pve)"
PVE9_VERSION = "pve-manager/9.0.3/025864202ebb6109 (running kernel: 6.14.8-2-pve)"

ENTERPRISE_STANZA = """\
Types: deb
URIs: https://enterprise.proxmox.com/debian/pve
Suites: trixie
Components: pve-enterprise
Signed-By: /usr/share/keyrings/proxmox-archive-keyring.gpg
"""

NO_SUBSCRIPTION_STANZA = """\
Types: deb
URIs: http://download.proxmox.com/debian/pve
Suites: trixie
Components: pve-no-subscription
Signed-By: /usr/share/keyrings/proxmox-archive-keyring.gpg
"""

CEPH_ENTERPRISE_STANZA = """\
Types: deb
URIs: https://enterprise.proxmox.com/debian/ceph-squid
Suites: trixie
Components: enterprise
Signed-By: /usr/share/keyrings/proxmox-archive-keyring.gpg
"""

DEBIAN_SOURCES = """\
Types: deb
URIs: http://deb.debian.org/debian/
Suites: trixie trixie-updates
Components: main contrib non-free-firmware
Signed-By: /usr/share/keyrings/debian-archive-keyring.gpg

Types: deb
URIs: http://security.debian.org/debian-security/
Suites: trixie-security
Components: main contrib non-free-firmware
Signed-By: /usr/share/keyrings/debian-archive-keyring.gpg
"""


class FakeHost(HostCommands):
    """
    Records commands instead of running them.
    """

    def __init__(
        self,
        version: Optional[str] = PVE8_VERSION,
        failing: tuple[str, ...] = (),
        active: tuple[str, ...] = (),
    ):
        super().__init__()
        self.version = version
        self.failing = failing
        self.active = set(active)
        self.calls: list[list[str]] = []

    def run(self, args: list[str], extra_env: Optional[dict[str, str]] = None) -> str:
        self.calls.append(list(args))
        command = " ".join(args)

        if args[0] == "pveversion" and self.version is None:
            raise CommandError("Command not found: pveversion", returncode=127)
        for pattern in self.failing:
            if pattern in command:
                raise CommandError(
                    f"'{command}' exited with status 100", returncode=100, stderr="E: failed"
                )
        if args[:2] == ["systemctl", "is-active"] and args[-1] not in self.active:
            raise CommandError(f"'{command}' exited with status 3", returncode=3)

        if args[0] == "pveversion":
            return self.version + "\n"
        return ""

    def commands(self) -> list[str]:
        return [" ".join(call) for call in self.calls]


def snapshot(root: Path) -> dict[str, str]:
    """
    Map every file under root to its contents.
    """
    return {
        str(path.relative_to(root)): path.read_text()
        for path in sorted(root.rglob("*"))
        if path.is_file()
    }


@pytest.fixture
def config(tmp_path: Path) -> PostInstallConfig:
    return PostInstallConfig(root=tmp_path)


@pytest.fixture
def pve8_host(config: PostInstallConfig) -> PostInstallConfig:
    """
    APT layout of a fresh PVE 8 installation.
    """
    config.sources_list_d.mkdir(parents=True)
    config.sources_list.write_text(
        "deb http://ftp.debian.org/debian bookworm main contrib\n"
        "deb http://ftp.debian.org/debian bookworm-updates main contrib\n"
        "\n"
        "# security updates\n"
        "deb http://security.debian.org bookworm-security main contrib\n"
    )
    (config.sources_list_d / "pve-enterprise.list").write_text(
        "deb https://enterprise.proxmox.com/debian/pve bookworm pve-enterprise\n"
    )
    (config.sources_list_d / "ceph.list").write_text(
        "deb https://enterprise.proxmox.com/debian/ceph-quincy bookworm enterprise\n"
    )
    return config


@pytest.fixture
def pve9_host(config: PostInstallConfig) -> PostInstallConfig:
    """
    APT layout of a fresh PVE 9 installation.
    """
    config.sources_list_d.mkdir(parents=True)
    (config.sources_list_d / "debian.sources").write_text(DEBIAN_SOURCES)
    (config.sources_list_d / "pve-enterprise.sources").write_text(ENTERPRISE_STANZA)
    (config.sources_list_d / "ceph.sources").write_text(CEPH_ENTERPRISE_STANZA)
    return config
