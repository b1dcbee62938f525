"""
CLI Application Module
Command-line front end that boots an emulator and reports the result.
"""

import logging
from typing import Optional

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from emuboot.adb import check_adb_available
from emuboot.config import BootSettings
from emuboot.emulator import adb_binary_path, boot_emulator, emulator_binary_path, emulator_version
from emuboot.models import Booted, BootOutcome, Failed
from emuboot.utils import format_duration

logger = logging.getLogger(__name__)

console = Console()
err_console = Console(stderr=True)

EXIT_BOOTED = 0
EXIT_FAILED = 1
EXIT_INVALID_CONFIG = 2

SERIAL_OUTPUT_KEY = "EMULATOR_SERIAL"
LOG_TAIL_LINES = 40


def check_prerequisites(settings: BootSettings) -> bool:
    """Check that adb can be executed before launching anything."""
    adb_path = adb_binary_path(settings.android_home)
    if not check_adb_available(adb_path):
        err_console.print(f"[bold red]ERROR:[/] adb not found ({adb_path}). Install Android SDK Platform Tools.")
        return False

    console.print("[green][OK][/] adb available")
    return True


def display_settings(settings: BootSettings):
    """Show the effective boot configuration."""
    table = Table(show_header=False, box=None)
    table.add_column("Setting", style="bold cyan")
    table.add_column("Value")

    table.add_row("AVD", settings.avd_name)
    table.add_row("Android SDK", settings.android_home or "(PATH)")
    table.add_row("Timeout", format_duration(settings.timeout))
    table.add_row("Max attempts", str(settings.max_attempts))
    table.add_row("Poll interval", format_duration(settings.poll_interval))
    table.add_row("GPU", settings.gpu or "auto")
    if settings.start_flags:
        table.add_row("Extra flags", " ".join(settings.start_flags))

    console.print(Panel(table, title="[bold]Emulator Boot[/]", border_style="cyan"))


def export_serial(serial: str, output_file: Optional[str]):
    """Append EMULATOR_SERIAL=<serial> to the build output file, if any."""
    if not output_file:
        return

    try:
        with open(output_file, "a") as f:
            f.write(f"{SERIAL_OUTPUT_KEY}={serial}\n")
    except OSError as e:
        logger.warning("Failed to export %s to %s: %s", SERIAL_OUTPUT_KEY, output_file, e)
        return

    console.print(f"[green][OK][/] Exported {SERIAL_OUTPUT_KEY} to {output_file}")


def display_outcome(outcome: BootOutcome):
    """Print the final result panel."""
    if isinstance(outcome, Booted):
        summary = f"""[bold cyan]Serial:[/] {outcome.serial}
[bold cyan]Attempts:[/] {outcome.attempts}
[bold cyan]Boot time:[/] {format_duration(outcome.elapsed)}"""
        console.print(Panel(summary, title="[bold green]Device Booted[/]", border_style="green"))
        return

    if outcome.log:
        tail = "\n".join(outcome.log.splitlines()[-LOG_TAIL_LINES:])
        err_console.print(Panel(Text(tail), title="[bold]Last emulator log lines[/]", border_style="dim"))

    summary = f"""[bold red]Reason:[/] {outcome.reason.value}
[bold red]Detail:[/] {escape(outcome.detail)}
[bold red]Attempts:[/] {outcome.attempts}"""
    err_console.print(Panel(summary, title="[bold red]Boot Failed[/]", border_style="red"))


def run_cli(settings: BootSettings) -> int:
    """
    Main CLI entry point.

    Returns:
        Process exit code.
    """
    try:
        settings.validate()
    except ValueError as e:
        err_console.print(f"[bold red]ERROR:[/] {e}")
        return EXIT_INVALID_CONFIG

    display_settings(settings)

    if not check_prerequisites(settings):
        return EXIT_FAILED

    version = emulator_version(emulator_binary_path(settings.android_home))
    if version:
        console.print(f"[green][OK][/] {escape(version)}")

    outcome = boot_emulator(settings, console=console, err_console=err_console)
    display_outcome(outcome)

    if isinstance(outcome, Failed):
        return EXIT_FAILED

    export_serial(outcome.serial, settings.output_file)
    console.print(f"- Device with serial: [bold]{outcome.serial}[/] started")
    return EXIT_BOOTED
