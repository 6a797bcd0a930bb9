"""Host platform capabilities used by the flash pipeline.

Mount table inspection, mount/unmount, disk usage and sync differ between
Linux and macOS. Each is reached through a HostPlatform so the pipeline can
be exercised with a fake host in tests.
"""

import logging
import os
import platform
from pathlib import Path
from typing import Protocol

from sdflash.errors import MountError, UnsupportedPlatformError
from sdflash.flash.device import first_partition, parse_mount_table
from sdflash.system import require_tool, run_command
from sdflash.types import MountEntry, UnmountReport

logger = logging.getLogger(__name__)

PROC_MOUNTS = "/proc/mounts"


class HostPlatform(Protocol):
    """Operations the pipeline needs from the host OS."""

    name: str
    mount_root: Path
    required_tools: tuple[str, ...]

    def sync(self) -> None: ...

    def mount_table(self) -> list[MountEntry]: ...

    def disk_usage(self) -> str: ...

    def unmount(self, target: str) -> UnmountReport: ...

    def mount(self, partition: str, mount_point: Path) -> None: ...

    def raw_device(self, device: str) -> str: ...

    def first_partition(self, device: str) -> str: ...


def sync_times(host: HostPlatform, times: int = 3) -> None:
    """Flush filesystem buffers several times in a row."""
    for _ in range(times):
        host.sync()


def check_tools(host: HostPlatform) -> None:
    """Fail early if an external utility the host relies on is missing.

    Raises:
        ToolMissingError: A required executable is not on PATH.
    """
    for tool in host.required_tools:
        require_tool(tool)


class _PosixHost:
    name = "posix"
    mount_root = Path("/")
    required_tools: tuple[str, ...] = ("df",)

    def __init__(self, mount_root: Path | None = None) -> None:
        if mount_root is not None:
            self.mount_root = mount_root

    def sync(self) -> None:
        os.sync()

    def disk_usage(self) -> str:
        result = run_command(["df", "-h"])
        return result.stdout

    def raw_device(self, device: str) -> str:
        return device

    def first_partition(self, device: str) -> str:
        return first_partition(device)

    def _unmount_command(self, target: str) -> list[str]:
        raise NotImplementedError

    def unmount(self, target: str) -> UnmountReport:
        result = run_command(self._unmount_command(target))
        message = (result.stderr or result.stdout or "").strip()
        if result.returncode != 0:
            logger.warning("Could not unmount %s: %s", target, message)
        else:
            logger.debug("Unmounted %s", target)
        return UnmountReport(target=target, returncode=result.returncode, message=message)


class LinuxHost(_PosixHost):
    """Linux: /proc/mounts, mount(8) and umount(8)."""

    name = "Linux"
    mount_root = Path("/media")
    required_tools = ("df", "mount", "umount")

    def mount_table(self) -> list[MountEntry]:
        try:
            with open(PROC_MOUNTS) as f:
                return parse_mount_table(f.read())
        except OSError:
            logger.warning("Could not read %s, falling back to mount(8)", PROC_MOUNTS)
            return parse_mount_table(run_command(["mount"]).stdout)

    def _unmount_command(self, target: str) -> list[str]:
        return ["umount", target]

    def mount(self, partition: str, mount_point: Path) -> None:
        mount_point.mkdir(parents=True, exist_ok=True)
        result = run_command(["mount", partition, str(mount_point)])
        if result.returncode != 0:
            raise MountError(partition, str(mount_point), result.stderr.strip())


class DarwinHost(_PosixHost):
    """macOS: mount(8) output and diskutil."""

    name = "Darwin"
    mount_root = Path("/Volumes")
    required_tools = ("df", "mount", "diskutil")

    def mount_table(self) -> list[MountEntry]:
        return parse_mount_table(run_command(["mount"]).stdout)

    def _unmount_command(self, target: str) -> list[str]:
        return ["diskutil", "unmount", target]

    def mount(self, partition: str, mount_point: Path) -> None:
        mount_point.mkdir(parents=True, exist_ok=True)
        result = run_command(
            ["diskutil", "mount", "-mountPoint", str(mount_point), partition]
        )
        if result.returncode != 0:
            raise MountError(partition, str(mount_point), result.stderr.strip())

    def raw_device(self, device: str) -> str:
        # The character device skips the buffer cache and writes much faster
        return device.replace("/dev/disk", "/dev/rdisk", 1)

    def first_partition(self, device: str) -> str:
        return f"{device}s1"


_HOSTS: dict[str, type[_PosixHost]] = {
    "Linux": LinuxHost,
    "Darwin": DarwinHost,
}


def get_host(system: str | None = None, mount_root: Path | None = None) -> HostPlatform:
    """Return the HostPlatform for the running (or given) OS.

    Raises:
        UnsupportedPlatformError: The OS is neither Linux nor macOS.
    """
    if system is None:
        system = platform.system()
    try:
        host_cls = _HOSTS[system]
    except KeyError:
        raise UnsupportedPlatformError(system) from None
    return host_cls(mount_root=mount_root)


__all__ = [
    "DarwinHost",
    "HostPlatform",
    "LinuxHost",
    "check_tools",
    "get_host",
    "sync_times",
]
