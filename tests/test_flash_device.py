"""Tests for flash/device.py - device naming and mount table helpers."""

import os
import stat
import tempfile
from pathlib import Path
from unittest.mock import patch

import pytest

from sdflash.errors import DeviceSelectionError, PartitionDeviceError
from sdflash.flash.device import (
    belongs_to_device,
    derive_candidates,
    first_partition,
    is_block_device,
    is_partition_path,
    parse_mount_table,
    partitions_of,
    strip_partition_suffix,
    validate_device,
)
from sdflash.types import MountEntry

PROC_MOUNTS = """sysfs /sys sysfs rw,nosuid,nodev,noexec,relatime 0 0
/dev/sda1 / ext4 rw,relatime 0 0
/dev/sdb1 /media/pi/HypriotOS vfat rw,nosuid,nodev 0 0
/dev/sdb2 /media/pi/root ext4 rw,nosuid,nodev 0 0
/dev/mmcblk0p1 /media/pi/boot\\040disk vfat rw 0 0
"""

MACOS_MOUNT = """/dev/disk1s1 on / (apfs, local, journaled)
devfs on /dev (devfs, local, nobrowse)
/dev/disk2s1 on /Volumes/boot (msdos, local, nodev, nosuid, noowners)
"""


class TestIsPartitionPath:
    """Tests for is_partition_path function."""

    def test_whole_devices(self):
        for path in ("/dev/sda", "/dev/mmcblk0", "/dev/nvme0n1", "/dev/loop0", "/dev/disk2"):
            assert is_partition_path(path) is False

    def test_partitions(self):
        for path in (
            "/dev/sda1",
            "/dev/sdz10",
            "/dev/mmcblk0p1",
            "/dev/nvme0n1p2",
            "/dev/loop1p2",
            "/dev/disk2s1",
        ):
            assert is_partition_path(path) is True

    def test_regular_file(self):
        assert is_partition_path("/tmp/test.img") is False


class TestStripPartitionSuffix:
    """Tests for strip_partition_suffix."""

    def test_sd_partition(self):
        assert strip_partition_suffix("/dev/sdb1") == "/dev/sdb"
        assert strip_partition_suffix("/dev/sdb12") == "/dev/sdb"

    def test_mmcblk_partition(self):
        assert strip_partition_suffix("/dev/mmcblk0p1") == "/dev/mmcblk0"
        assert strip_partition_suffix("/dev/mmcblk1p2") == "/dev/mmcblk1"

    def test_nvme_partition(self):
        assert strip_partition_suffix("/dev/nvme0n1p1") == "/dev/nvme0n1"

    def test_macos_slice(self):
        assert strip_partition_suffix("/dev/disk2s1") == "/dev/disk2"

    def test_whole_device_unchanged(self):
        assert strip_partition_suffix("/dev/sdb") == "/dev/sdb"
        assert strip_partition_suffix("/dev/mmcblk0") == "/dev/mmcblk0"
        assert strip_partition_suffix("/dev/nvme0n1") == "/dev/nvme0n1"
        assert strip_partition_suffix("/dev/disk2") == "/dev/disk2"


class TestFirstPartition:
    """Tests for first_partition naming rule."""

    def test_plain_suffix(self):
        assert first_partition("/dev/sdb") == "/dev/sdb1"

    def test_multi_queue_devices_use_p(self):
        assert first_partition("/dev/mmcblk0") == "/dev/mmcblk0p1"
        assert first_partition("/dev/nvme0n1") == "/dev/nvme0n1p1"
        assert first_partition("/dev/loop3") == "/dev/loop3p1"


class TestParseMountTable:
    """Tests for parse_mount_table."""

    def test_proc_mounts(self):
        entries = parse_mount_table(PROC_MOUNTS)

        assert entries[0] == MountEntry("sysfs", "/sys")
        assert MountEntry("/dev/sdb1", "/media/pi/HypriotOS") in entries
        # Octal escapes are decoded
        assert MountEntry("/dev/mmcblk0p1", "/media/pi/boot disk") in entries

    def test_mount_command_output(self):
        entries = parse_mount_table(MACOS_MOUNT)

        assert entries == [
            MountEntry("/dev/disk1s1", "/"),
            MountEntry("devfs", "/dev"),
            MountEntry("/dev/disk2s1", "/Volumes/boot"),
        ]

    def test_linux_mount_command_output(self):
        text = "/dev/sdb1 on /media/pi/My Card type vfat (rw,nosuid)\n"
        assert parse_mount_table(text) == [MountEntry("/dev/sdb1", "/media/pi/My Card")]

    def test_blank_lines_ignored(self):
        assert parse_mount_table("\n\n") == []


class TestDeriveCandidates:
    """Tests for derive_candidates."""

    def test_two_partitions_one_candidate(self):
        """Partitions of the same device collapse to one candidate."""
        entries = [
            MountEntry("/dev/sdb1", "/media/pi/boot"),
            MountEntry("/dev/sdb2", "/media/pi/root"),
        ]
        assert derive_candidates(entries, Path("/media")) == ["/dev/sdb"]

    def test_idempotent(self):
        entries = parse_mount_table(PROC_MOUNTS)
        first = derive_candidates(entries, Path("/media"))
        second = derive_candidates(entries + entries, Path("/media"))
        assert first == second == ["/dev/sdb", "/dev/mmcblk0"]

    def test_outside_mount_root_ignored(self):
        entries = [
            MountEntry("/dev/sda1", "/"),
            MountEntry("/dev/sda2", "/mediafiles"),
            MountEntry("tmpfs", "/media/tmp"),
        ]
        assert derive_candidates(entries, Path("/media")) == []

    def test_macos(self):
        entries = parse_mount_table(MACOS_MOUNT)
        assert derive_candidates(entries, Path("/Volumes")) == ["/dev/disk2"]


class TestPartitionsOf:
    """Tests for partitions_of and belongs_to_device."""

    def test_matches_partitions(self):
        entries = parse_mount_table(PROC_MOUNTS)
        mounts = [e.mount_point for e in partitions_of("/dev/sdb", entries)]
        assert mounts == ["/media/pi/HypriotOS", "/media/pi/root"]

    def test_does_not_match_prefix_device(self):
        assert belongs_to_device("/dev/sdbb1", "/dev/sdb") is False
        assert belongs_to_device("/dev/mmcblk10p1", "/dev/mmcblk1") is False

    def test_whole_device_mount(self):
        assert belongs_to_device("/dev/sdc", "/dev/sdc") is True

    def test_no_mounts(self):
        assert partitions_of("/dev/sdc", parse_mount_table(PROC_MOUNTS)) == []


class TestIsBlockDevice:
    """Tests for is_block_device function."""

    def test_regular_file(self):
        with tempfile.NamedTemporaryFile() as f:
            assert is_block_device(f.name) is False

    def test_nonexistent_path(self):
        assert is_block_device("/dev/nonexistent_device_xyz123") is False

    def test_block_device_mock(self):
        block_mode = stat.S_IFBLK | 0o660
        with patch("os.stat") as mock_stat:
            mock_stat.return_value.st_mode = block_mode
            assert is_block_device("/dev/fake_block") is True


class TestValidateDevice:
    """Tests for validate_device function."""

    def test_device_not_found(self):
        with pytest.raises(DeviceSelectionError) as exc_info:
            validate_device("/dev/nonexistent_device_xyz")

        assert exc_info.value.code == "device_not_found"

    def test_partition_rejected(self):
        with patch("os.path.exists", return_value=True):
            with pytest.raises(PartitionDeviceError) as exc_info:
                validate_device("/dev/sdb1")

        assert exc_info.value.code == "partition_not_allowed"

    def test_regular_file_allowed(self, tmp_path):
        target = tmp_path / "card.img"
        target.touch()
        assert validate_device(str(target)) == os.path.realpath(target)

    def test_symlink_resolved(self, tmp_path):
        """A by-id style link resolves to the device it points at."""
        device = tmp_path / "sdz"
        device.touch()
        by_id = tmp_path / "by-id"
        by_id.mkdir()
        link = by_id / "usb-Generic_SD_Reader-0:0"
        link.symlink_to(device)

        resolved = validate_device(str(link))

        assert resolved == os.path.realpath(device)
        # Partitions of the real device are now found in the mount table
        entries = [MountEntry(f"{resolved}1", "/media/pi/boot")]
        assert partitions_of(resolved, entries) == entries
        assert first_partition(resolved) == f"{resolved}1"

    def test_symlink_to_partition_rejected(self):
        with patch("os.path.realpath", return_value="/dev/sdb1"):
            with patch("os.path.exists", return_value=True):
                with pytest.raises(PartitionDeviceError):
                    validate_device("/dev/disk/by-label/boot")
