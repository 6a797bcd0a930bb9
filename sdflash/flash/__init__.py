"""SD card flashing module.

This module handles:
- Device discovery and interactive confirmation
- Unmounting, raw image writes and sync
- Boot partition customization (config.txt, device-init.yaml, occidentalis.txt)
- Final unmount and reporting
"""

from sdflash.flash.customize import (
    BOOT_CONFIG_NAME,
    DEVICE_INIT_NAME,
    LEGACY_CONFIG_NAME,
    customize_boot_dir,
    rewrite_legacy_fields,
    rewrite_yaml_hostname,
)
from sdflash.flash.device import (
    derive_candidates,
    first_partition,
    is_partition_path,
    parse_mount_table,
    strip_partition_suffix,
)
from sdflash.flash.host import DarwinHost, HostPlatform, LinuxHost, get_host
from sdflash.flash.selector import DeviceSelector, SelectionState
from sdflash.flash.service import FlashPipeline, Stage, finalize_device, flash
from sdflash.flash.writer import WriteResult, write_image

__all__ = [
    # Customizer
    "BOOT_CONFIG_NAME",
    "DEVICE_INIT_NAME",
    "LEGACY_CONFIG_NAME",
    "customize_boot_dir",
    "rewrite_legacy_fields",
    "rewrite_yaml_hostname",
    # Device helpers
    "derive_candidates",
    "first_partition",
    "is_partition_path",
    "parse_mount_table",
    "strip_partition_suffix",
    # Host
    "DarwinHost",
    "HostPlatform",
    "LinuxHost",
    "get_host",
    # Selection
    "DeviceSelector",
    "SelectionState",
    # Writer
    "WriteResult",
    "write_image",
    # Service
    "FlashPipeline",
    "Stage",
    "finalize_device",
    "flash",
]
