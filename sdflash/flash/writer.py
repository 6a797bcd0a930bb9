"""Writer module for SD card flashing.

This module handles the actual write operations:
- Sync and unmount every mounted partition of the target
- Stream the raw image onto the device in 1 MiB blocks
- Show a progress bar when attached to a terminal
- Sync again so the boot partition can be mounted right away

The write is not verified by reading the device back.
"""

import logging
import os
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import BinaryIO

from rich.console import Console
from rich.progress import (
    BarColumn,
    DownloadColumn,
    Progress,
    TextColumn,
    TimeRemainingColumn,
    TransferSpeedColumn,
)

from sdflash.config import DEFAULT_BLOCK_SIZE
from sdflash.errors import WriteError
from sdflash.flash.device import partitions_of
from sdflash.flash.host import HostPlatform, sync_times
from sdflash.types import LocalImageFile, UnmountReport

logger = logging.getLogger(__name__)

PROGRESS_UNAVAILABLE_HINT = (
    "Progress display is not available (output is not a terminal); "
    "writing silently, this may take a while."
)


@dataclass
class WriteResult:
    """Result of a write operation.

    Attributes:
        device_path: Path the image was written to.
        bytes_written: Number of bytes written.
        unmounts: Unmount attempts made before writing.
    """

    device_path: str
    bytes_written: int
    unmounts: list[UnmountReport] = field(default_factory=list)


def unmount_partitions(device: str, host: HostPlatform) -> list[UnmountReport]:
    """Unmount every mounted filesystem of a device.

    Each unmount is attempted independently; failures are reported and
    logged but do not stop the loop.
    """
    reports: list[UnmountReport] = []
    for entry in partitions_of(device, host.mount_table()):
        logger.info("Unmounting %s (%s)", entry.device, entry.mount_point)
        reports.append(host.unmount(entry.mount_point))
    return reports


def _make_progress(console: Console) -> Progress:
    return Progress(
        TextColumn("[bold blue]{task.description}"),
        BarColumn(),
        DownloadColumn(),
        TransferSpeedColumn(),
        TimeRemainingColumn(),
        console=console,
    )


def copy_blocks(
    source: BinaryIO,
    dest: BinaryIO,
    total_bytes: int,
    block_size: int = DEFAULT_BLOCK_SIZE,
    advance: Callable[[int], None] | None = None,
) -> int:
    """Copy data from source to destination in fixed-size blocks.

    Args:
        source: Source file object.
        dest: Unbuffered destination file object.
        total_bytes: Total bytes to write.
        block_size: Block size for I/O.
        advance: Optional callback receiving the size of each written block.

    Returns:
        Number of bytes written.

    Raises:
        WriteError: The device accepted fewer bytes than offered.
    """
    bytes_written = 0

    while bytes_written < total_bytes:
        chunk = source.read(block_size)
        if not chunk:
            break

        written = dest.write(chunk)
        if written is not None and written != len(chunk):
            raise WriteError(
                f"Short write at offset {bytes_written}: "
                f"{written} of {len(chunk)} bytes",
                code="short_write",
            )
        bytes_written += len(chunk)

        if advance is not None:
            advance(len(chunk))

    return bytes_written


def write_image(
    image: LocalImageFile,
    device: str,
    *,
    host: HostPlatform,
    block_size: int = DEFAULT_BLOCK_SIZE,
    console: Console | None = None,
    show_progress: bool | None = None,
) -> WriteResult:
    """Overwrite a device with the contents of a raw image.

    Args:
        image: Resolved raw image.
        device: Confirmed whole-device path.
        host: Host platform for sync/unmount.
        block_size: Block size for I/O operations.
        console: Console used for progress and hints.
        show_progress: Force the progress bar on/off (default: terminal only).

    Returns:
        WriteResult with operation details.

    Raises:
        WriteError: Permission, I/O or short write error.
    """
    console = console or Console(stderr=True)
    if show_progress is None:
        show_progress = console.is_terminal

    sync_times(host)
    unmounts = unmount_partitions(device, host)

    target = host.raw_device(device)
    logger.info(
        "Writing image %s (%d bytes) to %s",
        image.path.name,
        image.size_bytes,
        target,
    )

    try:
        with open(image.path, "rb") as src, open(target, "r+b", buffering=0) as dst:
            if show_progress:
                with _make_progress(console) as progress:
                    task = progress.add_task(
                        f"Flashing {image.path.name}", total=image.size_bytes
                    )
                    bytes_written = copy_blocks(
                        src,
                        dst,
                        image.size_bytes,
                        block_size=block_size,
                        advance=lambda n: progress.advance(task, n),
                    )
            else:
                console.print(PROGRESS_UNAVAILABLE_HINT)
                bytes_written = copy_blocks(
                    src, dst, image.size_bytes, block_size=block_size
                )

            os.fsync(dst.fileno())

    except PermissionError as e:
        logger.error("Permission denied writing to device: %s", e)
        raise WriteError(
            f"Permission denied writing to device: {target}. "
            "Try running with elevated privileges.",
            code="write_permission_denied",
        ) from e
    except OSError as e:
        logger.error("I/O error writing to device: %s", e)
        raise WriteError(
            f"Error writing to {target}: {e}", code="write_io_error"
        ) from e

    if bytes_written != image.size_bytes:
        raise WriteError(
            f"Wrote {bytes_written} of {image.size_bytes} bytes to {target}",
            code="short_write",
        )

    sync_times(host)
    logger.info("Wrote %d bytes to %s", bytes_written, target)

    return WriteResult(device_path=target, bytes_written=bytes_written, unmounts=unmounts)


__all__ = [
    "PROGRESS_UNAVAILABLE_HINT",
    "WriteResult",
    "copy_blocks",
    "unmount_partitions",
    "write_image",
]
