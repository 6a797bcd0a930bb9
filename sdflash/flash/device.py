"""Device naming and mount table helpers.

This module handles all device-related bookkeeping before flashing:
- Parse the mount table (/proc/mounts or BSD ``mount`` output)
- Map partitions back to their whole device
- Derive removable-device candidates under the media mount root
- Compute the first (boot) partition of a device
"""

import logging
import os
import re
import stat
from collections.abc import Iterable
from pathlib import Path

from sdflash.errors import DeviceSelectionError, PartitionDeviceError
from sdflash.types import MountEntry

logger = logging.getLogger(__name__)

# Patterns for partition detection
# /dev/sdX1, /dev/hdX1, /dev/vdX1
_PARTITION_PATTERN_SD = re.compile(r"^/dev/[shv]d[a-z]+(\d+)$")
# /dev/nvme0n1p1, /dev/nvme0n1p2
_PARTITION_PATTERN_NVME = re.compile(r"^/dev/nvme\d+n\d+p(\d+)$")
# /dev/mmcblk0p1, /dev/mmcblk0p2
_PARTITION_PATTERN_MMC = re.compile(r"^/dev/mmcblk\d+p(\d+)$")
# /dev/loop0p1
_PARTITION_PATTERN_LOOP = re.compile(r"^/dev/loop\d+p(\d+)$")
# /dev/disk2s1 (macOS)
_PARTITION_PATTERN_DISK = re.compile(r"^/dev/r?disk\d+s(\d+)$")

# Whole devices whose name ends in a digit; partitions get a "p" separator
_MULTI_QUEUE_DEVICE = re.compile(r"(mmcblk\d+|nvme\d+n\d+|loop\d+)$")
# Whole devices that must never lose their trailing digits
_DIGIT_NAMED_DEVICE = re.compile(r"(mmcblk|nvme\d+n|loop|r?disk)\d+$")

# "/dev/sdb1 on /media/pi/boot type vfat (rw,...)" (Linux mount)
# "/dev/disk2s1 on /Volumes/boot (msdos, local, ...)" (macOS mount)
_MOUNT_OUTPUT_LINE = re.compile(r"^(?P<device>\S+) on (?P<mount>.+?)(?: type \S+)? \(")
_OCTAL_ESCAPE = re.compile(r"\\([0-7]{3})")


def is_partition_path(device_path: str) -> bool:
    """Check if a device path looks like a partition.

    This uses naming conventions to detect partitions:
    - /dev/sda1, /dev/sdb2 (SCSI/SATA/USB)
    - /dev/mmcblk0p1, /dev/mmcblk0p2 (MMC/SD cards)
    - /dev/nvme0n1p1 (NVMe)
    - /dev/loop0p1 (Loop devices with partitions)
    - /dev/disk2s1 (macOS)

    Args:
        device_path: Path to the device.

    Returns:
        True if the path appears to be a partition, False otherwise.
    """
    patterns = [
        _PARTITION_PATTERN_SD,
        _PARTITION_PATTERN_NVME,
        _PARTITION_PATTERN_MMC,
        _PARTITION_PATTERN_LOOP,
        _PARTITION_PATTERN_DISK,
    ]

    return any(pattern.match(device_path) for pattern in patterns)


def is_block_device(device_path: str) -> bool:
    """Check if a path is a block device."""
    try:
        mode = os.stat(device_path).st_mode
        return stat.S_ISBLK(mode)
    except OSError:
        return False


def strip_partition_suffix(device: str) -> str:
    """Convert a partition identifier to its whole device.

    Strips the partition number and, for digit-named devices, the
    partition letter separating it from the device number.

    Examples:
        /dev/sdb1 -> /dev/sdb
        /dev/mmcblk0p1 -> /dev/mmcblk0
        /dev/disk2s1 -> /dev/disk2
        /dev/sdb -> /dev/sdb (already whole)
    """
    if _DIGIT_NAMED_DEVICE.search(device):
        return device

    match = re.match(r"^(.*\d)[ps]\d+$", device)
    if match:
        return match.group(1)

    match = re.match(r"^(.*\D)\d+$", device)
    if match:
        return match.group(1)

    return device


def first_partition(device: str) -> str:
    """Return the device path of the first partition.

    Multi-queue style devices (mmcblk, nvme, loop) separate the partition
    number with ``p``; all others get the number appended directly.
    """
    if _MULTI_QUEUE_DEVICE.search(device):
        return f"{device}p1"
    return f"{device}1"


def _decode_mount_field(value: str) -> str:
    # /proc/mounts escapes space, tab, newline and backslash as \ooo
    return _OCTAL_ESCAPE.sub(lambda m: chr(int(m.group(1), 8)), value)


def parse_mount_table(text: str) -> list[MountEntry]:
    """Parse mount table text into entries.

    Accepts either /proc/mounts format (``device mountpoint fstype ...``)
    or the output of the ``mount`` command.

    Args:
        text: Raw mount table content.

    Returns:
        Entries in table order.
    """
    entries: list[MountEntry] = []

    for line in text.splitlines():
        line = line.strip()
        if not line:
            continue

        match = _MOUNT_OUTPUT_LINE.match(line)
        if match:
            entries.append(MountEntry(match.group("device"), match.group("mount")))
            continue

        parts = line.split()
        if len(parts) >= 2:
            entries.append(
                MountEntry(_decode_mount_field(parts[0]), _decode_mount_field(parts[1]))
            )

    return entries


def _is_under(mount_point: str, root: Path) -> bool:
    path = Path(mount_point)
    return path == root or root in path.parents


def derive_candidates(entries: Iterable[MountEntry], mount_root: Path) -> list[str]:
    """Derive whole-device candidates from filesystems under the mount root.

    Partitions of the same device collapse to a single candidate; the
    order of first appearance is kept.

    Args:
        entries: Mount table entries.
        mount_root: Removable media mount root (e.g. /media).

    Returns:
        Distinct whole-device paths.
    """
    candidates: list[str] = []

    for entry in entries:
        if not entry.device.startswith("/dev/"):
            continue
        if not _is_under(entry.mount_point, mount_root):
            continue

        device = strip_partition_suffix(entry.device)
        if device not in candidates:
            candidates.append(device)

    logger.debug("Device candidates under %s: %s", mount_root, candidates)
    return candidates


def belongs_to_device(mounted_device: str, device_path: str) -> bool:
    """Check if a mounted device is the device itself or one of its partitions."""
    if mounted_device == device_path:
        return True
    # sdb1 belongs to sdb, but sdbb1 does not
    return strip_partition_suffix(mounted_device) == device_path


def partitions_of(device_path: str, entries: Iterable[MountEntry]) -> list[MountEntry]:
    """Get mount entries for a device and its partitions.

    Args:
        device_path: Path to the device (e.g., '/dev/sda').
        entries: Mount table entries.

    Returns:
        Matching entries (empty if none mounted).
    """
    return [entry for entry in entries if belongs_to_device(entry.device, device_path)]


def validate_device(device_path: str) -> str:
    """Validate an explicitly given device path.

    Symlinks such as /dev/disk/by-id/... are resolved so the result can be
    matched against the mount table.

    Args:
        device_path: Path given by the operator.

    Returns:
        The resolved absolute device path.

    Raises:
        DeviceSelectionError: Device path does not exist.
        PartitionDeviceError: Path names a partition.
    """
    device_path = os.path.realpath(device_path)

    if not os.path.exists(device_path):
        raise DeviceSelectionError(
            f"Device not found: {device_path}", code="device_not_found"
        )

    if is_partition_path(device_path):
        raise PartitionDeviceError(device_path)

    if not is_block_device(device_path):
        logger.warning("%s is not a block device", device_path)

    return device_path


__all__ = [
    "belongs_to_device",
    "derive_candidates",
    "first_partition",
    "is_block_device",
    "is_partition_path",
    "parse_mount_table",
    "partitions_of",
    "strip_partition_suffix",
    "validate_device",
]
