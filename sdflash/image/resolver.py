"""Resolve an image source to a raw image on local storage.

Remote sources are cached in the cache directory by file name. A cached
file is reused as-is on later runs; there is no freshness or checksum
check, so a stale file must be removed by hand.
"""

import logging
from collections.abc import Mapping
from pathlib import Path, PurePosixPath
from urllib.parse import urlsplit

from sdflash.errors import ImageNotFoundError
from sdflash.image.archive import Archiver, ZipArchiver
from sdflash.image.fetch import Downloader, HttpDownloader, S3Downloader
from sdflash.types import ContainerKind, LocalImageFile, SourceKind, classify_source

logger = logging.getLogger(__name__)


def source_filename(source: str) -> str:
    """Return the base file name of a path, URL or S3 URI.

    >>> source_filename("https://example.com/images/pi.img.zip?x=1")
    'pi.img.zip'
    """
    if classify_source(source) is SourceKind.LOCAL:
        return Path(source).name
    return PurePosixPath(urlsplit(source).path).name


def default_downloaders(timeout: float | None = None) -> dict[SourceKind, Downloader]:
    http = HttpDownloader() if timeout is None else HttpDownloader(timeout=timeout)
    return {SourceKind.HTTP: http, SourceKind.S3: S3Downloader()}


def resolve_image(
    source: str,
    *,
    cache_dir: Path,
    downloaders: Mapping[SourceKind, Downloader] | None = None,
    archiver: Archiver | None = None,
) -> LocalImageFile:
    """Produce a local raw image file for an image source.

    1. Local paths are used in place.
    2. Remote sources are looked up in the cache by file name and
       downloaded only when missing.
    3. Zip archives are extracted and the first member containing
       ``img`` in its name becomes the image.

    Args:
        source: Local path, http(s):// URL or s3:// URI.
        cache_dir: Directory for downloads and extracted images.
        downloaders: Downloader per remote source kind.
        archiver: Archive handler (zip by default).

    Returns:
        LocalImageFile pointing to an existing, non-empty raw image.

    Raises:
        DownloadError: Transfer failed or transfer tool unavailable.
        ImageNotFoundError: No file exists at the resolved path, or it is empty.
        ArchiveError: Extraction failed or no image member found.
    """
    if downloaders is None:
        downloaders = default_downloaders()
    if archiver is None:
        archiver = ZipArchiver()

    kind = classify_source(source)

    if kind is SourceKind.LOCAL:
        path = Path(source).expanduser()
    else:
        filename = source_filename(source)
        if not filename:
            raise ImageNotFoundError(source, reason="has no file name")
        path = cache_dir / filename
        if path.exists():
            logger.info("Using cached image %s", path)
        else:
            downloaders[kind].fetch(source, path)

    if not path.is_file():
        raise ImageNotFoundError(str(path))

    container = ContainerKind.RAW
    if archiver.is_archive(path):
        container = ContainerKind.ZIP
        path = archiver.extract_image(path, cache_dir)

    size_bytes = path.stat().st_size
    if size_bytes == 0:
        raise ImageNotFoundError(str(path), reason="is empty")

    logger.info("Resolved image %s (%d bytes, %s)", path, size_bytes, container.value)
    return LocalImageFile(path=path, kind=container, size_bytes=size_bytes)


__all__ = ["default_downloaders", "resolve_image", "source_filename"]
