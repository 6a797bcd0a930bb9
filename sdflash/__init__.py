"""sdflash - flash SD card images for single-board computers.

This package resolves an image (local file, HTTP(S) URL or S3 URI), writes
it to a removable device and customizes the boot partition with hostname
and WiFi settings.
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
