"""Filename sanitizing and generation for stored attachments."""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from record_uploads.uploaded_file import UploadedFile

logger = logging.getLogger(__name__)

# Characters that are unsafe in filenames on at least one common filesystem
# or in URLs built from the filename.
UNSAFE_FILENAME_CHARS = (" ", '"', "'", "&", "/", "\\", "?", "#")


def sanitize(filename: str) -> str:
    """
    Replace characters that are illegal or unsafe in filenames with ``-``.

    Args:
        filename: The source filename

    Returns:
        The sanitized filename
    """
    for char in UNSAFE_FILENAME_CHARS:
        filename = filename.replace(char, "-")
    return filename


def with_extension(stem: str, extension: str | None) -> str:
    return f"{stem}.{extension}" if extension else stem


def generate_file_name(file: UploadedFile) -> str:
    """Generate a random filename keeping the file's extension."""
    return with_extension(uuid.uuid4().hex, file.extension)


class FileNamer:
    """Decides the on-disk filename of an incoming file."""

    def __init__(self, generate_new_name: bool | Callable[..., str]) -> None:
        self.generate_new_name = generate_new_name

    def name(self, file: UploadedFile, importing: bool = False) -> str:
        """
        Compute the name a pending file is stored under.

        Imported files never get a random name here: their name was already
        decided when they were staged (see ``import_name``).
        """
        if self.generate_new_name and not importing:
            if callable(self.generate_new_name):
                return str(self.generate_new_name(file))
            return generate_file_name(file)
        return sanitize(file.name)

    def import_name(self, temp_id: str, source_stem: str, extension: str | None) -> str:
        """
        Compute the name of a file imported from a URL or local path.

        With unique naming the staging id doubles as the filename, otherwise
        the source's own name is kept so re-importing a resource yields a
        stable name.
        """
        stem = temp_id if self.generate_new_name else (source_stem or temp_id)
        return sanitize(with_extension(stem, extension))
