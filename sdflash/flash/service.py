"""Flash service layer.

This module runs the complete flash pipeline:
- resolve: local path / URL / S3 URI -> raw image
- select: discover or validate the target, confirm with the operator
- write: unmount, stream the image, sync
- customize: mount the boot partition, copy overlays, patch fields
- finalize: sync and unmount everything from the device

The host platform is checked before anything else, so an unsupported OS
never reaches a prompt or a destructive step.
"""

import logging
import time
from collections.abc import Callable, Mapping
from enum import Enum

from rich.console import Console

from sdflash.config import Settings, get_settings
from sdflash.flash.customize import customize_boot_dir, mount_boot_partition
from sdflash.flash.host import HostPlatform, check_tools, get_host, sync_times
from sdflash.flash.selector import DeviceSelector, InputSource
from sdflash.flash.writer import unmount_partitions, write_image
from sdflash.image.archive import Archiver
from sdflash.image.fetch import Downloader
from sdflash.image.resolver import default_downloaders, resolve_image
from sdflash.types import FinalizeResult, FlashOptions, FlashResult, SourceKind

logger = logging.getLogger(__name__)


class Stage(str, Enum):
    """Pipeline stages, in execution order."""

    RESOLVE = "resolve"
    SELECT = "select"
    WRITE = "write"
    CUSTOMIZE = "customize"
    FINALIZE = "finalize"


def finalize_device(device: str, host: HostPlatform) -> FinalizeResult:
    """Sync, then unmount every filesystem still mounted from the device."""
    sync_times(host)
    return FinalizeResult(unmounts=unmount_partitions(device, host))


def report_finalize(result: FinalizeResult, console: Console) -> None:
    """Print the outcome of the final unmount.

    The headline follows the last unmount status; every failed unmount
    is listed as well.
    """
    if result.last_ok:
        console.print("[green]Finished.[/green]")
    else:
        console.print("[red]Something went wrong.[/red]")

    for failure in result.failures:
        console.print(
            f"[yellow]Could not unmount {failure.target}[/yellow]"
            + (f": {failure.message}" if failure.message else "")
        )


class FlashPipeline:
    """Runs one flash from image source to unmounted, customized device.

    Attributes:
        stage: Stage currently executing (None before start).
        device: Target device once selected.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        host: HostPlatform | None = None,
        system: str | None = None,
        console: Console | None = None,
        input_source: InputSource | None = None,
        downloaders: Mapping[SourceKind, Downloader] | None = None,
        archiver: Archiver | None = None,
        sleep: Callable[[float], None] = time.sleep,
        show_progress: bool | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.host = host
        self.system = system
        self.console = console or Console()
        self.input_source = input_source
        self.downloaders = downloaders
        self.archiver = archiver
        self.sleep = sleep
        self.show_progress = show_progress
        self.stage: Stage | None = None
        self.device: str | None = None

    def _enter(self, stage: Stage) -> None:
        logger.debug("Entering stage %s", stage.value)
        self.stage = stage

    def run(self, options: FlashOptions) -> FlashResult:
        """Flash and customize a device.

        Args:
            options: What to flash where, and how to customize it.

        Returns:
            FlashResult with operation details.

        Raises:
            UnsupportedPlatformError: Host OS not supported.
            ToolMissingError: A required external utility is missing.
            DownloadError: Image transfer failed.
            ImageNotFoundError: No image could be resolved.
            ArchiveError: Archive extraction failed.
            DeviceSelectionError: No device, or the operator cancelled.
            WriteError: The raw write failed.
            MountError: The boot partition could not be mounted.
        """
        settings = self.settings
        host = self.host or get_host(self.system, mount_root=settings.mount_root)

        self._enter(Stage.RESOLVE)
        downloaders = self.downloaders or default_downloaders(
            timeout=settings.download_timeout
        )
        image = resolve_image(
            options.image,
            cache_dir=settings.cache_dir,
            downloaders=downloaders,
            archiver=self.archiver,
        )
        check_tools(host)

        self._enter(Stage.SELECT)
        selector = DeviceSelector(
            host,
            console=self.console,
            input_source=self.input_source,
            poll_interval=settings.poll_interval,
            sleep=self.sleep,
        )
        device = selector.select(options.device)
        self.device = device

        self._enter(Stage.WRITE)
        self.console.print(f"Flashing {image.path} to {host.raw_device(device)} ...")
        write_result = write_image(
            image,
            device,
            host=host,
            block_size=settings.block_size,
            console=self.console,
            show_progress=self.show_progress,
        )

        self._enter(Stage.CUSTOMIZE)
        boot_partition = mount_boot_partition(device, host, settings.mount_point)
        try:
            files_written = customize_boot_dir(
                settings.mount_point, options.overlay, options.edits
            )
        finally:
            self._enter(Stage.FINALIZE)
            finalize = finalize_device(device, host)

        for path in files_written:
            self.console.print(f"Updated {path.name} on {boot_partition}")
        report_finalize(finalize, self.console)

        return FlashResult(
            image=image,
            device=device,
            bytes_written=write_result.bytes_written,
            boot_partition=boot_partition,
            files_written=[path.name for path in files_written],
            finalize=finalize,
        )


def flash(options: FlashOptions, **kwargs) -> FlashResult:
    """Run a FlashPipeline with default collaborators."""
    return FlashPipeline(**kwargs).run(options)


__all__ = [
    "FlashPipeline",
    "Stage",
    "finalize_device",
    "flash",
    "report_finalize",
]
