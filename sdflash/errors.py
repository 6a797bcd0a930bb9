"""Error definitions for sdflash.

Every fatal condition is a FlashError subclass carrying a human-readable
message, a stable code and the process exit status the CLI uses.
"""

# Exit statuses
EXIT_FAILURE = 1
EXIT_IMAGE_NOT_FOUND = 10
EXIT_UNSUPPORTED_PLATFORM = 11
EXIT_INTERRUPTED = 130


class FlashError(Exception):
    """Base exception for all fatal sdflash errors."""

    exit_code = EXIT_FAILURE

    def __init__(self, message: str, code: str) -> None:
        super().__init__(message)
        self.message = message
        self.code = code


class ToolMissingError(FlashError):
    """A required external utility is not installed."""

    def __init__(self, tool: str) -> None:
        super().__init__(
            f"Required tool not found: {tool}. Please install it first.",
            code="tool_missing",
        )
        self.tool = tool


class DownloadError(FlashError):
    """Image transfer failed."""

    def __init__(self, message: str, code: str = "download_error") -> None:
        super().__init__(message, code=code)


class ImageNotFoundError(FlashError):
    """No image file could be resolved."""

    exit_code = EXIT_IMAGE_NOT_FOUND

    def __init__(self, image_path: str, reason: str = "not found") -> None:
        super().__init__(f"Image {reason}: {image_path}", code="image_not_found")
        self.image_path = image_path


class ArchiveError(FlashError):
    """Archive extraction failed or the archive holds no image."""

    def __init__(self, message: str, code: str = "archive_error") -> None:
        super().__init__(message, code=code)


class UnsupportedPlatformError(FlashError):
    """Host operating system is not supported."""

    exit_code = EXIT_UNSUPPORTED_PLATFORM

    def __init__(self, system: str) -> None:
        super().__init__(
            f"Unsupported host operating system: {system}",
            code="unsupported_platform",
        )
        self.system = system


class WriteError(FlashError):
    """Writing the image to the device failed."""

    def __init__(self, message: str, code: str = "write_error") -> None:
        super().__init__(message, code=code)


class MountError(FlashError):
    """The boot partition could not be mounted."""

    def __init__(self, partition: str, mount_point: str, detail: str) -> None:
        super().__init__(
            f"Could not mount {partition} at {mount_point}: {detail}",
            code="mount_error",
        )
        self.partition = partition
        self.mount_point = mount_point


class DeviceSelectionError(FlashError):
    """No usable target device."""

    def __init__(self, message: str, code: str = "device_selection") -> None:
        super().__init__(message, code=code)


class PartitionDeviceError(DeviceSelectionError):
    """Device path names a partition, not a whole device."""

    def __init__(self, device_path: str) -> None:
        super().__init__(
            f"Device appears to be a partition, not a whole device: {device_path}. "
            "Only whole devices (e.g., /dev/sdb, /dev/mmcblk0) are supported.",
            code="partition_not_allowed",
        )
        self.device_path = device_path


class SelectionCancelledError(DeviceSelectionError):
    """Operator declined or cancelled device selection."""

    def __init__(self, message: str = "Aborted, nothing was written.") -> None:
        super().__init__(message, code="cancelled")


__all__ = [
    "EXIT_FAILURE",
    "EXIT_IMAGE_NOT_FOUND",
    "EXIT_INTERRUPTED",
    "EXIT_UNSUPPORTED_PLATFORM",
    "ArchiveError",
    "DeviceSelectionError",
    "DownloadError",
    "FlashError",
    "ImageNotFoundError",
    "MountError",
    "PartitionDeviceError",
    "SelectionCancelledError",
    "ToolMissingError",
    "UnsupportedPlatformError",
    "WriteError",
]
