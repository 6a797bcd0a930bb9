"""Thin CLI wrapper for sdflash.

This module provides the command-line interface using Typer.
All business logic is delegated to core modules.
"""

import logging
from pathlib import Path
from typing import Annotated

import click
import typer
from rich.console import Console
from rich.markup import escape
from typer.core import TyperCommand

from sdflash import __version__
from sdflash.config import Settings, get_settings
from sdflash.errors import EXIT_FAILURE, EXIT_INTERRUPTED, FlashError
from sdflash.flash.service import FlashPipeline
from sdflash.types import ConfigOverlay, FieldEdits, FlashOptions

app = typer.Typer(
    name="flash",
    help="Flash an SD card image and customize its boot partition",
    add_completion=False,
)
console = Console()
err_console = Console(stderr=True)


class FlashCommand(TyperCommand):
    """Command whose usage errors exit with the general failure status."""

    def make_context(self, info_name, args, parent=None, **extra):
        try:
            return super().make_context(info_name, args, parent=parent, **extra)
        except click.UsageError as e:
            e.exit_code = EXIT_FAILURE
            raise


def configure_logging(level: str) -> None:
    """Send log records to stderr at the given level."""
    logging.basicConfig(
        level=getattr(logging, level),
        format="%(levelname)s %(name)s: %(message)s",
    )


def build_pipeline(settings: Settings) -> FlashPipeline:
    """Create the pipeline used by the command."""
    return FlashPipeline(settings, console=console)


def help_callback(ctx: typer.Context, value: bool) -> None:
    """Print usage and exit with a failure status."""
    if value:
        typer.echo(ctx.get_help())
        raise typer.Exit(code=EXIT_FAILURE)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"sdflash version {__version__}")
        raise typer.Exit()


@app.command(cls=FlashCommand, add_help_option=False)
def main(
    ctx: typer.Context,
    image: Annotated[
        str | None,
        typer.Argument(
            help="Image to flash: local path, http(s):// URL or s3:// URI",
            show_default=False,
        ),
    ] = None,
    config: Annotated[
        Path | None,
        typer.Option(
            "--config", "-c", help="Copy this file to device-init.yaml or occidentalis.txt"
        ),
    ] = None,
    bootconf: Annotated[
        Path | None,
        typer.Option("--bootconf", "-C", help="Copy this file to config.txt"),
    ] = None,
    hostname: Annotated[
        str | None,
        typer.Option("--hostname", "-n", help="Set hostname for this SD image"),
    ] = None,
    ssid: Annotated[
        str | None,
        typer.Option("--ssid", "-s", help="Set WiFi SSID for this SD image"),
    ] = None,
    password: Annotated[
        str | None,
        typer.Option("--password", "-p", help="Set WiFi password for this SD image"),
    ] = None,
    device: Annotated[
        str | None,
        typer.Option("--device", "-d", help="Card device to flash to (e.g. /dev/sdb)"),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable debug logging"),
    ] = False,
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
    show_help: Annotated[
        bool,
        typer.Option(
            "--help",
            "-h",
            help="Show this message and exit",
            callback=help_callback,
            is_eager=True,
            expose_value=False,
        ),
    ] = False,
) -> None:
    """Flash IMAGE to an SD card and customize its boot partition.

    Without --device the card is detected among the removable media
    mounted on this machine; you are asked to confirm before anything
    is written.
    """
    if image is None:
        typer.echo(ctx.get_help())
        raise typer.Exit(code=EXIT_FAILURE)

    settings = get_settings()
    configure_logging("DEBUG" if verbose else settings.log_level)

    options = FlashOptions(
        image=image,
        device=device,
        overlay=ConfigOverlay(config_file=config, boot_config_file=bootconf),
        edits=FieldEdits(hostname=hostname, ssid=ssid, password=password),
    )

    pipeline = build_pipeline(settings)
    try:
        result = pipeline.run(options)
    except FlashError as e:
        err_console.print(f"[red]{escape(e.message)}[/red]")
        raise typer.Exit(code=e.exit_code) from None
    except KeyboardInterrupt:
        stage = pipeline.stage.value if pipeline.stage else "startup"
        err_console.print(f"[red]Interrupted during {stage}.[/red]")
        if pipeline.device is not None:
            err_console.print(
                f"{escape(pipeline.device)} may be partially written or still "
                f"mounted at {escape(str(settings.mount_point))}."
            )
        raise typer.Exit(code=EXIT_INTERRUPTED) from None

    if not result.success:
        raise typer.Exit(code=EXIT_FAILURE)


if __name__ == "__main__":
    app()
