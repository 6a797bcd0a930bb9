"""Image resolution module.

This module handles:
- Classifying image sources (local path, http(s) URL, s3 URI)
- Downloading remote images into the cache directory
- Extracting zip archives to a raw image
"""

from sdflash.image.archive import Archiver, ZipArchiver, select_image_member
from sdflash.image.fetch import Downloader, HttpDownloader, S3Downloader
from sdflash.image.resolver import default_downloaders, resolve_image, source_filename

__all__ = [
    "Archiver",
    "Downloader",
    "HttpDownloader",
    "S3Downloader",
    "ZipArchiver",
    "default_downloaders",
    "resolve_image",
    "select_image_member",
    "source_filename",
]
