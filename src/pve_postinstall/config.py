"""
Configuration management for pve-postinstall.
"""

import json
from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class PostInstallConfig(BaseSettings):
    """
    Answers for an unattended post-install run.

    Absolute paths are the locations on the target host. The directories the
    pipeline touches are resolved under ``root`` so a run can be pointed at a
    scratch tree instead of ``/``.
    """

    model_config = SettingsConfigDict(
        env_prefix="PVE_POSTINSTALL_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    root: Path = Field(
        default=Path("/"),
        description="Filesystem root that host paths are resolved under",
    )
    codenames: dict[int, str] = Field(
        default_factory=lambda: {8: "bookworm", 9: "trixie"},
        description="Debian release codename for each supported PVE major",
    )

    debian_mirror: str = Field(
        default="http://deb.debian.org/debian",
        description="Debian main and updates mirror",
    )
    debian_security_mirror: str = Field(
        default="http://security.debian.org/debian-security",
        description="Debian security mirror",
    )
    proxmox_mirror: str = Field(
        default="http://download.proxmox.com/debian",
        description="Proxmox public download mirror",
    )
    enterprise_host: str = Field(
        default="enterprise.proxmox.com",
        description="Host serving the subscription-only repositories",
    )
    proxmox_keyring: str = Field(
        default="/usr/share/keyrings/proxmox-archive-keyring.gpg",
        description="Keyring used for Proxmox stanzas",
    )
    debian_keyring: str = Field(
        default="/usr/share/keyrings/debian-archive-keyring.gpg",
        description="Keyring used for Debian stanzas",
    )

    migrate_sources: bool = Field(
        default=False,
        description="On PVE 9, replace legacy .list sources with deb822 stanzas",
    )
    add_pvetest_repo: bool = Field(
        default=False,
        description="Add the pvetest repository in a disabled state",
    )
    patch_mobile_ui: bool = Field(
        default=True,
        description="Also remove the nag dialog from the mobile UI",
    )
    reinstall_widget_toolkit: bool = Field(
        default=True,
        description="Reinstall proxmox-widget-toolkit so the nag patch applies now",
    )

    ha_services: list[str] = Field(
        default_factory=lambda: ["pve-ha-lrm", "pve-ha-crm", "corosync"],
        description="Services to enable and start",
    )
    skip_ha_if_active: bool = Field(
        default=False,
        description="Leave HA untouched when the guard service is already active",
    )
    ha_guard_service: str = Field(
        default="pve-ha-lrm",
        description="Service checked when skip_ha_if_active is set",
    )
    run_update: bool = Field(
        default=True,
        description="Run apt update and dist-upgrade at the end",
    )

    nag_script: str = Field(
        default="/usr/local/bin/pve-remove-nag.sh",
        description="Location of the nag patch script",
    )
    nag_hook: str = Field(
        default="/etc/apt/apt.conf.d/no-nag-script",
        description="APT hook file that runs the nag patch script",
    )
    widget_toolkit_js: str = Field(
        default="/usr/share/javascript/proxmox-widget-toolkit/proxmoxlib.js",
        description="Web UI asset carrying the subscription check",
    )
    mobile_ui_template: str = Field(
        default="/usr/share/pve-yew-mobile-gui/index.html.tpl",
        description="Mobile UI template carrying the subscription dialog",
    )

    def resolve(self, path: str) -> Path:
        """
        Map an absolute host path into the configured root.
        """
        return self.root / path.lstrip("/")

    @property
    def apt_dir(self) -> Path:
        return self.resolve("/etc/apt")

    @property
    def sources_list(self) -> Path:
        return self.apt_dir / "sources.list"

    @property
    def sources_list_d(self) -> Path:
        return self.apt_dir / "sources.list.d"

    @property
    def apt_conf_d(self) -> Path:
        return self.apt_dir / "apt.conf.d"

    def codename_for(self, major: int) -> str:
        """
        Return the Debian codename a PVE major release is built on.
        """
        return self.codenames[major]


def load_config(config_path: Optional[Path] = None, **overrides) -> PostInstallConfig:
    """
    Load configuration from file and environment variables.

    Args:
        config_path: Optional path to a JSON config file.
        **overrides: Values that take precedence over the file contents.

    Returns:
        PostInstallConfig instance with merged configuration.
    """
    config_data = {}
    if config_path and config_path.exists():
        with open(config_path) as f:
            config_data = json.load(f)
    config_data.update(overrides)
    return PostInstallConfig(**config_data)
