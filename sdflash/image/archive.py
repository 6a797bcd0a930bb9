"""Zip archive handling for downloaded images.

Images are frequently distributed as ``.zip`` files containing a single
``.img``. Detection is by content (zip signature), never by extension.
"""

import logging
import shutil
import zipfile
from pathlib import Path, PurePosixPath
from typing import Protocol

from sdflash.errors import ArchiveError

logger = logging.getLogger(__name__)


class Archiver(Protocol):
    """Extracts the raw image from an archive."""

    def is_archive(self, path: Path) -> bool: ...

    def extract_image(self, archive_path: Path, dest_dir: Path) -> Path: ...


def select_image_member(names: list[str]) -> str | None:
    """Return the first archive member whose name contains ``img``."""
    for name in names:
        if name.endswith("/"):
            continue
        if "img" in PurePosixPath(name).name:
            return name
    return None


class ZipArchiver:
    """Extracts images from zip archives."""

    def is_archive(self, path: Path) -> bool:
        return zipfile.is_zipfile(path)

    def extract_image(self, archive_path: Path, dest_dir: Path) -> Path:
        """Extract the image member of a zip archive.

        An already extracted member of the same size is reused.

        Args:
            archive_path: Path to the zip file.
            dest_dir: Directory to extract into.

        Returns:
            Path to the extracted raw image.

        Raises:
            ArchiveError: Corrupt archive, unsafe member name or no image member.
        """
        logger.info("Extracting %s to %s", archive_path.name, dest_dir)

        try:
            with zipfile.ZipFile(archive_path) as archive:
                member_name = select_image_member(archive.namelist())
                if member_name is None:
                    raise ArchiveError(
                        f"No image found in archive {archive_path}",
                        code="no_image_member",
                    )

                member_path = PurePosixPath(member_name)
                if member_path.is_absolute() or ".." in member_path.parts:
                    raise ArchiveError(
                        f"Refusing to extract {member_name}: path traversal detected",
                        code="path_traversal",
                    )

                info = archive.getinfo(member_name)
                target = dest_dir / member_path.name
                if target.is_file() and target.stat().st_size == info.file_size:
                    logger.info("Using previously extracted image %s", target)
                    return target

                dest_dir.mkdir(parents=True, exist_ok=True)
                with archive.open(info) as src, target.open("wb") as dst:
                    shutil.copyfileobj(src, dst, length=1024 * 1024)

        except zipfile.BadZipFile as e:
            raise ArchiveError(
                f"Failed to extract {archive_path}: {e}", code="bad_zip"
            ) from e
        except OSError as e:
            raise ArchiveError(
                f"OS error extracting {archive_path}: {e}", code="os_error"
            ) from e

        logger.info("Extracted %s", target)
        return target


__all__ = ["Archiver", "ZipArchiver", "select_image_member"]
