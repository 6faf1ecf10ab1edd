"""
Subscription nag suppression.

The web UI asks the API for the subscription status and shows a dialog when
it is not ``active``. A small shell script rewrites that check in
``proxmoxlib.js``; an APT hook runs it after every dpkg invocation so the
patch survives ``proxmox-widget-toolkit`` upgrades.
"""

import logging
from pathlib import Path

from .config import PostInstallConfig
from .files import write_if_changed
from .host import HostCommands

logger = logging.getLogger(__name__)

NAG_SENTINEL = "NoMoreNagging"
MOBILE_MARKER = "<!-- MANAGED BLOCK FOR MOBILE NAG -->"
WIDGET_TOOLKIT_PACKAGE = "proxmox-widget-toolkit"

WEB_PATCH = """\
WEB_JS={web_js}
if [ -s "$WEB_JS" ] && ! grep -q {sentinel} "$WEB_JS"; then
  sed -i -e "/data\\.status/ s/!//" -e "/data\\.status/ s/active/{sentinel}/" "$WEB_JS"
fi
"""

MOBILE_PATCH = """\
MOBILE_TPL={mobile_tpl}
MARKER="{marker}"
if [ -f "$MOBILE_TPL" ] && ! grep -q "$MARKER" "$MOBILE_TPL"; then
  printf "%s\\n" \\
    "$MARKER" \\
    "<script>" \\
    "  function removeSubscriptionElements() {{" \\
    "    document.querySelectorAll('dialog.pwt-outer-dialog').forEach(function (d) {{" \\
    "      if ((d.textContent || '').toLowerCase().includes('subscription')) {{ d.remove(); }}" \\
    "    }});" \\
    "  }}" \\
    "  new MutationObserver(removeSubscriptionElements)" \\
    "    .observe(document.body, {{ childList: true, subtree: true }});" \\
    "  removeSubscriptionElements();" \\
    "</script>" >> "$MOBILE_TPL"
fi
"""


def render_nag_script(config: PostInstallConfig) -> str:
    """
    Build the POSIX shell script that strips the subscription dialog.

    Both patches check for their sentinel first, so running the script
    repeatedly changes the assets only once.
    """
    parts = [
        "#!/bin/sh",
        WEB_PATCH.format(web_js=config.widget_toolkit_js, sentinel=NAG_SENTINEL),
    ]
    if config.patch_mobile_ui:
        parts.append(
            MOBILE_PATCH.format(mobile_tpl=config.mobile_ui_template, marker=MOBILE_MARKER)
        )
    return "\n".join(parts)


def render_hook(config: PostInstallConfig) -> str:
    return f'DPkg::Post-Invoke {{ "{config.nag_script}"; }};\n'


class NagInstaller:
    """
    Installs the nag patch script and the APT hook that runs it.
    """

    def __init__(self, config: PostInstallConfig):
        self.config = config

    @property
    def script_path(self) -> Path:
        return self.config.resolve(self.config.nag_script)

    @property
    def hook_path(self) -> Path:
        return self.config.resolve(self.config.nag_hook)

    def install(self) -> list[Path]:
        """
        Write the patch script and the hook file.

        The hook file is replaced as a whole, so it never holds more than
        the one directive. Whether the UI asset exists right now does not
        matter: the script checks for it each time it runs.

        Returns:
            Paths whose contents changed.
        """
        changed = []
        if write_if_changed(self.script_path, render_nag_script(self.config), mode=0o755):
            changed.append(self.script_path)
        if write_if_changed(self.hook_path, render_hook(self.config), mode=0o644):
            changed.append(self.hook_path)
        return changed

    def reapply(self, host: HostCommands) -> None:
        """
        Reinstall the widget toolkit so the hook patches the current asset.

        Raises:
            CommandError: If the reinstall fails.
        """
        logger.debug("Reinstalling %s", WIDGET_TOOLKIT_PACKAGE)
        host.apt_reinstall(WIDGET_TOOLKIT_PACKAGE)
