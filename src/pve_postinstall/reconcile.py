"""
Reconciliation of the APT source declarations on a Proxmox VE host.

The target state is the same for every supported release: no active
enterprise repository, an active ``pve-no-subscription`` repository, and
Ceph enterprise entries commented out. Every operation inspects the current
files first and only writes when they differ from that state, so a second
run leaves the tree untouched.
"""

import logging
from pathlib import Path
from typing import Callable

from .config import PostInstallConfig
from .files import (
    backup,
    matching,
    read_text,
    rename_with_suffix,
    write_if_changed,
    write_text,
)
from .sources import (
    LegacyLine,
    Stanza,
    dump_list,
    dump_sources,
    format_list_entry,
    parse_list,
    parse_sources,
)

logger = logging.getLogger(__name__)

PVE_ENTERPRISE = "pve-enterprise"
PVE_NO_SUBSCRIPTION = "pve-no-subscription"
CEPH_RELEASES = {8: ("quincy", "reef")}
DEBIAN_COMPONENTS = ["main", "contrib"]


class SourceReconciler:
    """
    Brings ``/etc/apt/sources.list`` and ``sources.list.d`` to the target state.

    Each public operation returns the paths it created, modified or renamed.
    """

    def __init__(self, config: PostInstallConfig, codename: str):
        """
        Initialize the reconciler.

        Args:
            config: Run configuration.
            codename: Debian release the host is built on (e.g. ``bookworm``).
        """
        self.config = config
        self.codename = codename

    @property
    def sources_dir(self) -> Path:
        return self.config.sources_list_d

    @property
    def pve_uri(self) -> str:
        return f"{self.config.proxmox_mirror}/pve"

    def _write(self, path: Path, content: str) -> list[Path]:
        return [path] if write_if_changed(path, content) else []

    def _edit_sources(self, path: Path, edit: Callable[[list[Stanza]], bool]) -> bool:
        stanzas = parse_sources(read_text(path))
        if not edit(stanzas):
            return False
        backup(path)
        write_text(path, dump_sources(stanzas))
        logger.debug("Rewrote %s", path)
        return True

    def _edit_list(self, path: Path, edit: Callable[[list[LegacyLine]], bool]) -> bool:
        lines = parse_list(read_text(path))
        if not edit(lines):
            return False
        backup(path)
        write_text(path, dump_list(lines))
        logger.debug("Rewrote %s", path)
        return True

    def _list_files(self) -> list[Path]:
        """
        ``sources.list`` (when present) followed by the ``.list`` files.
        """
        files = matching(self.sources_dir, "*.list")
        if self.config.sources_list.is_file():
            files.insert(0, self.config.sources_list)
        return files

    def _is_ceph_enterprise(self, uri: str) -> bool:
        return self.config.enterprise_host in uri and "ceph" in uri

    # PVE 8 (one-line format)

    def write_debian_sources_list(self) -> list[Path]:
        """
        Overwrite ``sources.list`` with the Debian main, updates and security mirrors.
        """
        entries = [
            format_list_entry(self.config.debian_mirror, self.codename, DEBIAN_COMPONENTS),
            format_list_entry(
                self.config.debian_mirror, f"{self.codename}-updates", DEBIAN_COMPONENTS
            ),
            format_list_entry(
                self.config.debian_security_mirror,
                f"{self.codename}-security",
                DEBIAN_COMPONENTS,
            ),
        ]
        return self._write(self.config.sources_list, "\n".join(entries) + "\n")

    def write_firmware_quirk(self) -> list[Path]:
        """
        Silence APT's warning about the non-free-firmware component.
        """
        path = self.config.apt_conf_d / f"no-{self.codename}-firmware.conf"
        return self._write(
            path, 'APT::Get::Update::SourceListWarnings::NonFreeFirmware "false";\n'
        )

    def write_no_subscription_list(self) -> list[Path]:
        path = self.sources_dir / "pve-install-repo.list"
        entry = format_list_entry(self.pve_uri, self.codename, [PVE_NO_SUBSCRIPTION])
        return self._write(path, entry + "\n")

    def write_ceph_list(self, major: int = 8) -> list[Path]:
        """
        Replace ``ceph.list`` with commented reference entries only.
        """
        lines = []
        for release in CEPH_RELEASES[major]:
            lines.append(
                "# "
                + format_list_entry(
                    f"https://{self.config.enterprise_host}/debian/ceph-{release}",
                    self.codename,
                    ["enterprise"],
                )
            )
            lines.append(
                "# "
                + format_list_entry(
                    f"{self.config.proxmox_mirror}/ceph-{release}",
                    self.codename,
                    ["no-subscription"],
                )
            )
        return self._write(self.sources_dir / "ceph.list", "\n".join(lines) + "\n")

    def write_pvetest_list(self) -> list[Path]:
        """
        Add the pvetest repository, commented out, unless the file exists.
        """
        path = self.sources_dir / "pvetest-for-beta.list"
        if path.exists():
            return []
        entry = format_list_entry(self.pve_uri, self.codename, ["pvetest"])
        return self._write(path, f"# {entry}\n")

    # Shared

    def disable_enterprise_repos(self) -> list[Path]:
        """
        Disable every ``pve-enterprise`` declaration.

        Matching lines in ``sources.list`` and the ``.list`` files, and
        matching paragraphs in ``.sources`` files, are commented out after a
        ``.bak`` copy is taken. Files named after the enterprise repository
        are then renamed to ``.disabled``.
        """
        changed = []

        def comment_lines(lines: list[LegacyLine]) -> bool:
            hits = [line for line in lines if line.enabled and line.mentions(PVE_ENTERPRISE)]
            for line in hits:
                line.disable()
            return bool(hits)

        def comment_stanzas(stanzas: list[Stanza]) -> bool:
            hits = [s for s in stanzas if s.enabled and s.has_component(PVE_ENTERPRISE)]
            for stanza in hits:
                stanza.disable()
            return bool(hits)

        for path in self._list_files():
            if self._edit_list(path, comment_lines):
                logger.info("Commented enterprise lines in %s", path)
                changed.append(path)

        for path in matching(self.sources_dir, "*.sources"):
            if self._edit_sources(path, comment_stanzas):
                logger.info("Commented enterprise stanza(s) in %s", path)
                changed.append(path)

        for path in matching(self.sources_dir, f"*{PVE_ENTERPRISE}*"):
            if path.suffix not in (".list", ".sources"):
                continue
            changed.append(rename_with_suffix(path, ".disabled"))

        return changed

    def has_active_no_subscription(self) -> bool:
        """
        Check whether any source file declares an active no-subscription repo.
        """
        for path in matching(self.sources_dir, "*.sources"):
            for stanza in parse_sources(read_text(path)):
                if stanza.enabled and stanza.has_component(PVE_NO_SUBSCRIPTION):
                    return True

        for path in self._list_files():
            for line in parse_list(read_text(path)):
                if line.enabled and PVE_NO_SUBSCRIPTION in line.components:
                    return True
        return False

    # PVE 9 (deb822 format)

    def find_legacy_files(self) -> list[Path]:
        """
        List one-line-style source files still in use.
        """
        found = []
        if self.config.sources_list.is_file():
            lines = parse_list(read_text(self.config.sources_list))
            if any(line.enabled for line in lines):
                found.append(self.config.sources_list)
        found.extend(matching(self.sources_dir, "*.list"))
        return found

    def debian_stanzas(self) -> list[Stanza]:
        keyring = self.config.debian_keyring
        return [
            Stanza.create(
                uris=[self.config.debian_mirror],
                suites=[self.codename],
                components=DEBIAN_COMPONENTS,
                signed_by=keyring,
            ),
            Stanza.create(
                uris=[self.config.debian_security_mirror],
                suites=[f"{self.codename}-security"],
                components=DEBIAN_COMPONENTS,
                signed_by=keyring,
            ),
            Stanza.create(
                uris=[self.config.debian_mirror],
                suites=[f"{self.codename}-updates"],
                components=DEBIAN_COMPONENTS,
                signed_by=keyring,
            ),
        ]

    def migrate_legacy_sources(self) -> list[Path]:
        """
        Move the host from one-line sources to deb822 paragraphs.

        ``sources.list`` is backed up and its entries commented out; the
        ``.list`` files in ``sources.list.d`` are renamed to ``.bak``. The
        Debian mirrors are then declared in ``debian.sources``.
        """
        changed = []

        def comment_all(lines: list[LegacyLine]) -> bool:
            hits = [line for line in lines if line.enabled]
            for line in hits:
                line.disable()
            return bool(hits)

        if self.config.sources_list.is_file():
            if self._edit_list(self.config.sources_list, comment_all):
                changed.append(self.config.sources_list)

        for path in matching(self.sources_dir, "*.list"):
            changed.append(rename_with_suffix(path, ".bak"))

        changed.extend(
            self._write(self.sources_dir / "debian.sources", dump_sources(self.debian_stanzas()))
        )
        return changed

    def disable_ceph_enterprise(self) -> list[Path]:
        """
        Comment out Ceph repositories served from the enterprise host.
        """
        changed = []

        def comment_stanzas(stanzas: list[Stanza]) -> bool:
            hits = [
                s
                for s in stanzas
                if s.enabled and any(self._is_ceph_enterprise(uri) for uri in s.uris)
            ]
            for stanza in hits:
                stanza.disable()
            return bool(hits)

        def comment_lines(lines: list[LegacyLine]) -> bool:
            hits = [
                line for line in lines if line.enabled and self._is_ceph_enterprise(line.uri)
            ]
            for line in hits:
                line.disable()
            return bool(hits)

        for path in matching(self.sources_dir, "*.sources"):
            if self._edit_sources(path, comment_stanzas):
                changed.append(path)
        for path in self._list_files():
            if self._edit_list(path, comment_lines):
                changed.append(path)
        return changed

    def enable_no_subscription(self) -> list[Path]:
        """
        Re-enable disabled ``pve-no-subscription`` paragraphs.

        Other commented paragraphs, including the enterprise ones, stay as
        they are.
        """
        changed = []

        def uncomment(stanzas: list[Stanza]) -> bool:
            hits = [
                s
                for s in stanzas
                if s.is_paragraph and not s.enabled and s.has_component(PVE_NO_SUBSCRIPTION)
            ]
            for stanza in hits:
                stanza.enable()
            return bool(hits)

        for path in matching(self.sources_dir, "*.sources"):
            if self._edit_sources(path, uncomment):
                changed.append(path)
        return changed

    def no_subscription_stanza(self) -> Stanza:
        return Stanza.create(
            uris=[self.pve_uri],
            suites=[self.codename],
            components=[PVE_NO_SUBSCRIPTION],
            signed_by=self.config.proxmox_keyring,
        )

    def ensure_no_subscription(self) -> list[Path]:
        """
        Declare the no-subscription repository if nothing declares it yet.
        """
        if self.has_active_no_subscription():
            return []

        path = self.sources_dir / "proxmox.sources"
        stanzas = []
        if path.is_file():
            stanzas = parse_sources(read_text(path))
            backup(path)
        stanzas.append(self.no_subscription_stanza())
        path.parent.mkdir(parents=True, exist_ok=True)
        write_text(path, dump_sources(stanzas))
        logger.info("Added %s stanza to %s", PVE_NO_SUBSCRIPTION, path)
        return [path]

    def write_pvetest_sources(self) -> list[Path]:
        """
        Add the pve-test repository, commented out, unless the file exists.
        """
        path = self.sources_dir / "pve-test.sources"
        if path.exists():
            return []
        stanza = Stanza.create(
            uris=[self.pve_uri],
            suites=[self.codename],
            components=["pve-test"],
            signed_by=self.config.proxmox_keyring,
        )
        stanza.disable()
        return self._write(path, dump_sources([stanza]))
