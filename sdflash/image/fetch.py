"""Image download module.

This module handles:
- HTTP(S) downloads with redirect following (httpx)
- S3 downloads through the aws CLI

Downloads land in a ``.part`` file that is renamed into place only after
the transfer completed, so a cached file is never a truncated one.
"""

import contextlib
import logging
import os
from pathlib import Path
from typing import Protocol

import httpx

from sdflash.errors import DownloadError, ToolMissingError
from sdflash.system import run_command

logger = logging.getLogger(__name__)

# Timeout for downloads (seconds)
DOWNLOAD_TIMEOUT = 3600

# Chunk size for downloads (bytes)
DOWNLOAD_CHUNK_SIZE = 64 * 1024  # 64 KB


class Downloader(Protocol):
    """Fetches a remote image source into a local file."""

    def fetch(self, source: str, dest_path: Path) -> Path: ...


def _part_path(dest_path: Path) -> Path:
    return dest_path.with_name(dest_path.name + ".part")


def _discard(path: Path) -> None:
    with contextlib.suppress(OSError):
        path.unlink()


def _local_write_error(dest_path: Path, error: OSError) -> DownloadError:
    return DownloadError(
        f"Cannot write downloaded image to {dest_path}: {error}", code="os_error"
    )


class HttpDownloader:
    """Blocking HTTP GET downloader that follows redirects."""

    def __init__(
        self,
        client: httpx.Client | None = None,
        timeout: float = DOWNLOAD_TIMEOUT,
        chunk_size: int = DOWNLOAD_CHUNK_SIZE,
    ) -> None:
        self.client = client
        self.timeout = timeout
        self.chunk_size = chunk_size

    def fetch(self, source: str, dest_path: Path) -> Path:
        """Download ``source`` to ``dest_path``.

        Args:
            source: http:// or https:// URL.
            dest_path: Final destination of the file.

        Returns:
            The destination path.

        Raises:
            DownloadError: If the transfer fails.
        """
        if self.client is not None:
            return self._download(self.client, source, dest_path)
        with httpx.Client(follow_redirects=True) as client:
            return self._download(client, source, dest_path)

    def _download(self, client: httpx.Client, url: str, dest_path: Path) -> Path:
        logger.info("Downloading %s to %s", url, dest_path)
        tmp_path = _part_path(dest_path)

        try:
            dest_path.parent.mkdir(parents=True, exist_ok=True)
            with client.stream(
                "GET", url, timeout=self.timeout, follow_redirects=True
            ) as response:
                response.raise_for_status()

                total_bytes = 0
                with tmp_path.open("wb") as f:
                    for chunk in response.iter_bytes(self.chunk_size):
                        f.write(chunk)
                        total_bytes += len(chunk)

            os.replace(tmp_path, dest_path)

        except httpx.HTTPStatusError as e:
            _discard(tmp_path)
            raise DownloadError(
                f"HTTP error downloading {url}: "
                f"{e.response.status_code} {e.response.reason_phrase}",
                code="http_error",
            ) from e
        except httpx.TimeoutException as e:
            _discard(tmp_path)
            raise DownloadError(f"Timeout downloading {url}", code="timeout") from e
        except httpx.RequestError as e:
            _discard(tmp_path)
            raise DownloadError(
                f"Network error downloading {url}: {e}", code="network_error"
            ) from e
        except OSError as e:
            _discard(tmp_path)
            raise _local_write_error(dest_path, e) from e

        logger.info("Downloaded %s (%d bytes)", dest_path.name, total_bytes)
        return dest_path


class S3Downloader:
    """Copies an s3:// object with the aws CLI."""

    def __init__(self, aws_command: str = "aws") -> None:
        self.aws_command = aws_command

    def fetch(self, source: str, dest_path: Path) -> Path:
        """Copy an S3 object to ``dest_path``.

        Raises:
            DownloadError: If the aws CLI is missing or the copy fails.
        """
        logger.info("Copying %s to %s", source, dest_path)
        tmp_path = _part_path(dest_path)

        try:
            dest_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise _local_write_error(dest_path, e) from e

        try:
            result = run_command(
                [self.aws_command, "s3", "cp", source, str(tmp_path)],
                capture_output=True,
            )
        except ToolMissingError as e:
            raise DownloadError(
                f"Cannot download {source}: {e.message}", code="tool_missing"
            ) from e

        if result.returncode != 0:
            _discard(tmp_path)
            raise DownloadError(
                f"Failed to copy {source}: {result.stderr.strip()}",
                code="transfer_failed",
            )

        try:
            os.replace(tmp_path, dest_path)
        except OSError as e:
            _discard(tmp_path)
            raise _local_write_error(dest_path, e) from e
        return dest_path


__all__ = [
    "DOWNLOAD_CHUNK_SIZE",
    "DOWNLOAD_TIMEOUT",
    "Downloader",
    "HttpDownloader",
    "S3Downloader",
]
