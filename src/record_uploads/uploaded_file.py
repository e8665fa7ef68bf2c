"""
Pending files awaiting commit, and an upload source backed by a parsed form.
"""

from __future__ import annotations

import asyncio
import logging
import shutil
import uuid
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import aiofiles
import aiofiles.os
from starlette.datastructures import UploadFile

from record_uploads.interfaces import RecordHost

logger = logging.getLogger(__name__)

# Read uploads in 1 MB chunks when spooling them to disk
CHUNK_SIZE = 1024 * 1024


@dataclass
class UploadedFile:
    """
    A file waiting to be committed to its attribute's upload path.

    Attributes:
        name: The filename the file will be stored under
        temp_path: Where the file's content currently lives
        content_type: MIME type, when known
        imported: True for files staged from a URL or local path
    """

    name: str
    temp_path: Path
    content_type: str | None = None
    imported: bool = False

    @property
    def extension(self) -> str:
        """Lower-cased extension of ``name`` without the leading dot."""
        return Path(self.name).suffix.lstrip(".").lower()

    async def save_as(self, path: str | Path, delete_original: bool = True) -> bool:
        """
        Write the file's content to ``path``.

        Args:
            path: Destination file path; its directory must exist
            delete_original: Move the temp file instead of copying it

        Returns:
            True if the file was written, False otherwise
        """
        try:
            if delete_original:
                await asyncio.to_thread(shutil.move, self.temp_path, path)
            else:
                await asyncio.to_thread(shutil.copyfile, self.temp_path, path)
        except OSError as e:
            logger.error(f"Failed to save {self.temp_path} as {path}: {e}")
            return False
        return True


def form_name(record: Any) -> str:  # noqa: ANN401
    """Name of the form a record's fields are submitted under."""
    name = getattr(record, "form_name", None)
    if callable(name):
        name = name()
    return name if isinstance(name, str) and name else type(record).__name__


class FormUploadSource:
    """
    Upload source serving files from a multipart form.

    Files are looked up as ``"{FormName}[{attribute}]"`` for a record, or by
    the bare field name when ``instance_by_name`` is configured.
    """

    def __init__(self, files: Mapping[str, UploadedFile]) -> None:
        self._files = dict(files)

    @classmethod
    async def from_form(
        cls, form: Any, temp_folder: str | Path  # noqa: ANN401
    ) -> FormUploadSource:
        """
        Spool every uploaded file of a parsed form into ``temp_folder``.

        Args:
            form: The parsed form (``await request.form()``)
            temp_folder: Directory receiving the spooled files

        Returns:
            A FormUploadSource over the spooled files
        """
        await aiofiles.os.makedirs(temp_folder, exist_ok=True)
        files: dict[str, UploadedFile] = {}
        items = form.multi_items() if hasattr(form, "multi_items") else form.items()
        for key, value in items:
            if not isinstance(value, UploadFile) or not value.filename:
                continue
            temp_path = Path(temp_folder) / uuid.uuid4().hex
            async with aiofiles.open(temp_path, "wb") as f:
                while chunk := await value.read(CHUNK_SIZE):
                    await f.write(chunk)
            files[key] = UploadedFile(
                name=value.filename,
                temp_path=temp_path,
                content_type=value.content_type,
            )
            logger.debug(f"Spooled upload {key} ({value.filename}) to {temp_path}")
        return cls(files)

    def get_instance(self, record: RecordHost, attribute: str) -> UploadedFile | None:
        return self._files.get(f"{form_name(record)}[{attribute}]")

    def get_instance_by_name(self, attribute: str) -> UploadedFile | None:
        return self._files.get(attribute)
