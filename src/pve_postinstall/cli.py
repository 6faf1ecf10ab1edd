"""
Command-line interface for pve-postinstall.

Running the command without arguments performs the whole post-install
routine unattended.
"""

import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.status import Status
from rich.table import Table

from . import __version__
from .config import PostInstallConfig, load_config
from .models import RunReport, StepResult, StepStatus
from .pipeline import StepReporter, create_pipeline

app = typer.Typer(
    name="pve-postinstall",
    help="Unattended post-install setup for Proxmox VE hosts",
    add_completion=False,
)
console = Console()

CONFIG_FILE = Path("/etc/pve-postinstall/config.json")

BANNER = r"""
    ____ _    ________   ____             __     ____           __        ____
   / __ \ |  / / ____/  / __ \____  _____/ /_   /  _/___  _____/ /_____ _/ / /
  / /_/ / | / / __/    / /_/ / __ \/ ___/ __/   / // __ \/ ___/ __/ __ `/ / /
 / ____/| |/ / /___   / ____/ /_/ (__  ) /_   _/ // / / (__  ) /_/ /_/ / / /
/_/     |___/_____/  /_/    \____/____/\__/  /___/_/ /_/____/\__/\__,_/_/_/
"""

STATUS_STYLES = {
    StepStatus.SUCCESS: ("[green]✓[/green]", "green"),
    StepStatus.SKIPPED: ("[dim]-[/dim]", "dim"),
    StepStatus.RECOVERED: ("[yellow]![/yellow]", "yellow"),
    StepStatus.FATAL: ("[red]✗[/red]", "red"),
}


class ConsoleReporter(StepReporter):
    """
    Shows a spinner while a step runs and replaces it with a result line.
    """

    def __init__(self, console: Console, verbose: bool = False):
        self.console = console
        self.verbose = verbose
        self._status: Optional[Status] = None

    def start(self, title: str) -> None:
        self._status = self.console.status(f"[yellow]{title}...[/yellow]")
        self._status.start()

    def finish(self, result: StepResult) -> None:
        if self._status is not None:
            self._status.stop()
            self._status = None

        glyph, style = STATUS_STYLES[result.status]
        self.console.print(f" {glyph} [{style}]{escape(result.message)}[/{style}]")
        if result.error and not result.ok:
            self.console.print(f"     [dim]{escape(result.error)}[/dim]")
        if self.verbose:
            for path in result.changed:
                self.console.print(f"     [dim]changed: {escape(path)}[/dim]")


def setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=False)],
        force=True,
    )


def get_config(config_file: Optional[Path], **overrides) -> PostInstallConfig:
    """
    Load configuration from file or environment.
    """
    if config_file is None and CONFIG_FILE.exists():
        config_file = CONFIG_FILE
    return load_config(config_file, **overrides)


def print_summary(report: RunReport) -> None:
    table = Table(title="Summary")
    table.add_column("Step", style="cyan")
    table.add_column("Result")
    table.add_column("Changed", justify="right")

    for step in report.steps:
        _, style = STATUS_STYLES[step.status]
        table.add_row(
            step.title,
            f"[{style}]{step.status.value}[/{style}]",
            str(len(step.changed)) if step.changed else "-",
        )

    console.print()
    console.print(table)


def version_callback(value: bool) -> None:
    if value:
        console.print(f"pve-postinstall version {__version__}")
        raise typer.Exit()


@app.command()
def run(
    config_file: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help=f"JSON config file (default: {CONFIG_FILE} if present)",
    ),
    migrate_sources: bool = typer.Option(
        False,
        "--migrate-sources",
        help="On PVE 9, replace legacy .list sources with deb822 stanzas",
    ),
    skip_update: bool = typer.Option(
        False,
        "--skip-update",
        help="Do not run apt update / dist-upgrade",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Log every file and command operation",
    ),
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        callback=version_callback,
        is_eager=True,
        help="Show version information",
    ),
) -> None:
    """
    Run the Proxmox VE post-install routine.
    """
    setup_logging(verbose)

    overrides = {}
    if migrate_sources:
        overrides["migrate_sources"] = True
    if skip_update:
        overrides["run_update"] = False
    config = get_config(config_file, **overrides)

    console.print(f"[bold blue]{BANNER}[/bold blue]")
    console.print("[bold]Running automated Proxmox VE Post-Install Script...[/bold]\n")

    pipeline = create_pipeline(config, ConsoleReporter(console, verbose=verbose))
    report = pipeline.run()

    print_summary(report)

    if report.exit_code != 0:
        console.print(f"\n[red]Aborted: {escape(report.fatal.message)}[/red]")
        raise typer.Exit(report.exit_code)

    if report.recovered:
        console.print(
            f"\n[yellow]Completed with {len(report.recovered)} warning(s)[/yellow]"
        )
    console.print(
        Panel(
            "Reboot skipped. A manual reboot is recommended.",
            title="Post-install routines complete",
        )
    )


if __name__ == "__main__":
    app()
