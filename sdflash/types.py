"""Shared type definitions for sdflash.

This module contains the enums and dataclasses threaded through the
resolve -> select -> write -> customize -> finalize stages.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path


class SourceKind(str, Enum):
    """Where an image source lives."""

    LOCAL = "local"
    HTTP = "http"
    S3 = "s3"


class ContainerKind(str, Enum):
    """Container format of a resolved image file."""

    RAW = "raw"
    ZIP = "zip"


def classify_source(source: str) -> SourceKind:
    """Classify an image source string by its scheme prefix."""
    if source.startswith(("http://", "https://")):
        return SourceKind.HTTP
    if source.startswith("s3://"):
        return SourceKind.S3
    return SourceKind.LOCAL


@dataclass
class LocalImageFile:
    """A raw image on local storage, ready to be written.

    Attributes:
        path: Path to the uncompressed image.
        kind: Container the image was resolved from.
        size_bytes: Exact size of the raw image in bytes.
    """

    path: Path
    kind: ContainerKind
    size_bytes: int


@dataclass
class ConfigOverlay:
    """Optional files copied onto the boot partition."""

    config_file: Path | None = None
    boot_config_file: Path | None = None


@dataclass
class FieldEdits:
    """Values patched into the device-init or legacy config file."""

    hostname: str | None = None
    ssid: str | None = None
    password: str | None = None

    def is_empty(self) -> bool:
        return self.hostname is None and self.ssid is None and self.password is None


@dataclass
class FlashOptions:
    """Everything the operator asked for on the command line.

    Attributes:
        image: Image source (local path, http(s) URL or s3 URI).
        device: Explicit whole-device path, or None to discover one.
        overlay: Files to copy onto the boot partition.
        edits: Hostname/WiFi values to patch in.
    """

    image: str
    device: str | None = None
    overlay: ConfigOverlay = field(default_factory=ConfigOverlay)
    edits: FieldEdits = field(default_factory=FieldEdits)


@dataclass
class MountEntry:
    """One line of the mount table."""

    device: str
    mount_point: str


@dataclass
class UnmountReport:
    """Outcome of a single unmount attempt."""

    target: str
    returncode: int
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


@dataclass
class FinalizeResult:
    """Outcome of the final sync-and-unmount step.

    Attributes:
        unmounts: Every unmount attempted, in order.
    """

    unmounts: list[UnmountReport] = field(default_factory=list)

    @property
    def last_ok(self) -> bool:
        """Whether the last unmount succeeded (True when nothing was mounted)."""
        if not self.unmounts:
            return True
        return self.unmounts[-1].ok

    @property
    def all_ok(self) -> bool:
        return all(report.ok for report in self.unmounts)

    @property
    def failures(self) -> list[UnmountReport]:
        return [report for report in self.unmounts if not report.ok]


@dataclass
class FlashResult:
    """Result of a complete flash run.

    Attributes:
        image: The image that was written.
        device: Target whole device.
        bytes_written: Number of bytes written to the device.
        boot_partition: First partition that was customized.
        files_written: Files created or modified on the boot partition.
        finalize: Final unmount outcome.
    """

    image: LocalImageFile
    device: str
    bytes_written: int
    boot_partition: str
    files_written: list[str] = field(default_factory=list)
    finalize: FinalizeResult = field(default_factory=FinalizeResult)

    @property
    def success(self) -> bool:
        return self.finalize.all_ok


__all__ = [
    "ConfigOverlay",
    "ContainerKind",
    "FieldEdits",
    "FinalizeResult",
    "FlashOptions",
    "FlashResult",
    "LocalImageFile",
    "MountEntry",
    "SourceKind",
    "UnmountReport",
    "classify_source",
]
