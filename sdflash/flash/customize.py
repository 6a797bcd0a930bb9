"""Boot partition customization.

This module handles:
- Mounting the first partition of the freshly written device
- Copying the boot options overlay to ``config.txt``
- Copying the network overlay to ``device-init.yaml`` or, for legacy
  files, ``occidentalis.txt``
- Rewriting hostname / WiFi fields in whichever of those files exists

Field rewrites replace the first matching line only. A missing key is
not appended.
"""

import logging
import re
import shutil
from collections.abc import Callable
from pathlib import Path

import yaml

from sdflash.flash.host import HostPlatform
from sdflash.types import ConfigOverlay, FieldEdits

logger = logging.getLogger(__name__)

BOOT_CONFIG_NAME = "config.txt"
DEVICE_INIT_NAME = "device-init.yaml"
LEGACY_CONFIG_NAME = "occidentalis.txt"

# Overlay source files containing this marker use the legacy key=value format
LEGACY_MARKER = "occi"

_YAML_HOSTNAME = re.compile(r"^(?P<indent>[ \t]*)hostname[ \t]*:")

# FieldEdits attribute -> legacy key
LEGACY_KEYS = {
    "hostname": "hostname",
    "ssid": "wifi_ssid",
    "password": "wifi_password",
}


def _split_ending(line: str) -> tuple[str, str]:
    body = line.rstrip("\r\n")
    return body, line[len(body) :]


def _replace_first_line(
    text: str, pattern: re.Pattern[str], build: Callable[[re.Match[str]], str]
) -> str:
    lines = text.splitlines(keepends=True)
    for index, line in enumerate(lines):
        body, ending = _split_ending(line)
        match = pattern.match(body)
        if match:
            lines[index] = build(match) + ending
            break
    return "".join(lines)


def rewrite_yaml_hostname(text: str, hostname: str) -> str:
    """Replace the value of the first ``hostname:`` line.

    Indentation and line endings are preserved; other lines are untouched.
    """
    return _replace_first_line(
        text,
        _YAML_HOSTNAME,
        lambda match: f"{match.group('indent')}hostname: {hostname}",
    )


def rewrite_legacy_fields(text: str, edits: FieldEdits) -> str:
    """Rewrite ``hostname=``, ``wifi_ssid=`` and ``wifi_password=`` lines.

    Each field is rewritten independently and only if its value is set.
    """
    for attribute, key in LEGACY_KEYS.items():
        value = getattr(edits, attribute)
        if value is None:
            continue
        pattern = re.compile(rf"^(?P<indent>[ \t]*){re.escape(key)}[ \t]*=")
        text = _replace_first_line(
            text,
            pattern,
            lambda match, key=key, value=value: f"{match.group('indent')}{key}={value}",
        )
    return text


def overlay_destination(config_file: Path) -> str:
    """Boot partition file name for a network config overlay."""
    if LEGACY_MARKER in config_file.name:
        return LEGACY_CONFIG_NAME
    return DEVICE_INIT_NAME


def _read_text(path: Path) -> str:
    with open(path, encoding="utf-8", newline="") as f:
        return f.read()


def _write_text(path: Path, text: str) -> None:
    with open(path, "w", encoding="utf-8", newline="") as f:
        f.write(text)


def _rewrite_file(path: Path, rewrite: Callable[[str], str]) -> bool:
    original = _read_text(path)
    updated = rewrite(original)
    if updated == original:
        logger.debug("%s unchanged", path)
        return False
    _write_text(path, updated)
    logger.info("Updated %s", path)
    return True


def check_device_init(path: Path) -> bool:
    """Check that a device-init overlay parses as a YAML mapping.

    Only used to warn the operator; the file is copied either way.
    """
    try:
        data = yaml.safe_load(_read_text(path))
    except yaml.YAMLError as e:
        logger.warning("%s is not valid YAML: %s", path, e)
        return False
    if not isinstance(data, dict):
        logger.warning("%s does not contain a YAML mapping", path)
        return False
    return True


def apply_overlays(boot_dir: Path, overlay: ConfigOverlay) -> list[Path]:
    """Copy overlay files onto the mounted boot partition.

    Missing overlay sources are skipped with a warning.

    Returns:
        Destination files written.
    """
    written: list[Path] = []

    copies: list[tuple[Path, str]] = []
    if overlay.boot_config_file is not None:
        copies.append((overlay.boot_config_file, BOOT_CONFIG_NAME))
    if overlay.config_file is not None:
        copies.append((overlay.config_file, overlay_destination(overlay.config_file)))

    for source, name in copies:
        if not source.is_file():
            logger.warning("Overlay file %s does not exist, skipping", source)
            continue
        if name == DEVICE_INIT_NAME:
            check_device_init(source)
        dest = boot_dir / name
        logger.info("Copying %s to %s", source, dest)
        shutil.copyfile(source, dest)
        written.append(dest)

    return written


def apply_field_edits(boot_dir: Path, edits: FieldEdits) -> list[Path]:
    """Patch hostname / WiFi values into existing config files.

    Returns:
        Files whose content changed.
    """
    changed: list[Path] = []

    device_init = boot_dir / DEVICE_INIT_NAME
    if edits.hostname is not None and device_init.is_file():
        hostname = edits.hostname
        if _rewrite_file(device_init, lambda text: rewrite_yaml_hostname(text, hostname)):
            changed.append(device_init)

    legacy = boot_dir / LEGACY_CONFIG_NAME
    if not edits.is_empty() and legacy.is_file():
        if _rewrite_file(legacy, lambda text: rewrite_legacy_fields(text, edits)):
            changed.append(legacy)

    return changed


def customize_boot_dir(
    boot_dir: Path, overlay: ConfigOverlay, edits: FieldEdits
) -> list[Path]:
    """Apply overlays, then field edits, to a mounted boot partition.

    Returns:
        Every file created or modified, in order, without duplicates.
    """
    touched: list[Path] = []
    for path in [*apply_overlays(boot_dir, overlay), *apply_field_edits(boot_dir, edits)]:
        if path not in touched:
            touched.append(path)
    return touched


def mount_boot_partition(device: str, host: HostPlatform, mount_point: Path) -> str:
    """Mount the first partition of a device.

    Returns:
        The partition device path.

    Raises:
        MountError: The partition could not be mounted.
    """
    partition = host.first_partition(device)
    logger.info("Mounting %s at %s", partition, mount_point)
    host.mount(partition, mount_point)
    return partition


__all__ = [
    "BOOT_CONFIG_NAME",
    "DEVICE_INIT_NAME",
    "LEGACY_CONFIG_NAME",
    "LEGACY_MARKER",
    "apply_field_edits",
    "apply_overlays",
    "customize_boot_dir",
    "mount_boot_partition",
    "overlay_destination",
    "rewrite_legacy_fields",
    "rewrite_yaml_hostname",
]
