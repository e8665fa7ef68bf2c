"""Filesystem cleanup helpers for stored attachments."""

import logging
from pathlib import Path

import aiofiles.os

from record_uploads.errors import StorageIOError

logger = logging.getLogger(__name__)


async def delete_file(path: str | Path | None) -> bool:
    """
    Delete ``path`` if it is a regular file.

    Returns:
        True if a file was removed, False if there was nothing to remove
    """
    if not path or not await aiofiles.os.path.isfile(path):
        return False
    await aiofiles.os.remove(path)
    logger.info(f"Deleted file {path}")
    return True


async def prune_empty_dir(directory: str | Path) -> bool:
    """
    Remove ``directory`` if it exists and holds no entries.

    Parent directories are never touched.

    Returns:
        True if the directory was removed
    """
    if not await aiofiles.os.path.isdir(directory):
        return False
    if await aiofiles.os.listdir(directory):
        return False
    await aiofiles.os.rmdir(directory)
    logger.info(f"Removed empty directory {directory}")
    return True


async def ensure_dir(directory: str | Path, setting: str = "path") -> None:
    """
    Create ``directory`` recursively if it does not exist.

    Args:
        directory: Directory to create
        setting: Name of the configuration setting the directory came from,
            used in the error message

    Raises:
        StorageIOError: If the directory does not exist and cannot be created
    """
    try:
        await aiofiles.os.makedirs(directory, exist_ok=True)
    except OSError as e:
        raise StorageIOError(
            f"Directory specified in '{setting}' attribute doesn't exist or cannot be created: {e}",
            path=str(directory),
        ) from e
