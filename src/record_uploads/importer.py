"""Staging of files imported from a URL or a local path.

An import copies the source into a temp file, works out its real type from the
content, names it and runs the record's validation for the attribute. A valid
file becomes the attribute's pending upload (committed by the next save) and is
also copied to its upload path right away. Any failure restores the attribute
and removes the temp file.
"""

from __future__ import annotations

import asyncio
import logging
import mimetypes
import shutil
import uuid
from collections.abc import Callable
from pathlib import Path, PurePosixPath
from typing import Any
from urllib.parse import unquote, urlparse

import aiofiles
import aiofiles.os

from record_uploads.config_models import AttachmentConfig
from record_uploads.errors import FetchError, SourceNotFoundError, StorageIOError
from record_uploads.interfaces import HttpFetcher, MimeRegistry, RecordHost
from record_uploads.janitor import delete_file, ensure_dir
from record_uploads.naming import FileNamer
from record_uploads.paths import expand_aliases
from record_uploads.uploaded_file import UploadedFile

logger = logging.getLogger(__name__)


def reconcile_extension(
    source_extension: str | None, mime_extensions: list[str]
) -> str | None:
    """
    Pick the extension of an imported file.

    The source's own extension wins when it is one of the extensions known for
    the detected MIME type; otherwise the first MIME extension is used. Without
    any MIME extension the source's extension is kept as-is.
    """
    if source_extension and source_extension.lower() in mime_extensions:
        return source_extension.lower()
    if mime_extensions:
        return mime_extensions[0]
    return source_extension.lower() if source_extension else None


def _split_name(name: str) -> tuple[str, str | None]:
    path = PurePosixPath(name)
    return path.stem, path.suffix.lstrip(".") or None


class StagingImporter:
    """Imports files from URLs and local paths into an attachment attribute."""

    def __init__(
        self,
        config: AttachmentConfig,
        fetcher: HttpFetcher,
        mime_registry: MimeRegistry,
        namer: FileNamer,
        upload_path: Callable[[RecordHost], str | None],
    ) -> None:
        self.config = config
        self.fetcher = fetcher
        self.mime_registry = mime_registry
        self.namer = namer
        self._upload_path = upload_path

    async def upload_from_url(self, record: RecordHost, url: str) -> bool:
        """
        Import the file at ``url`` into the attribute.

        Returns:
            True if the file passed validation and was staged, False if the
            record's validation rejected it

        Raises:
            FetchError: If the URL cannot be fetched or answers with a non-2xx status
        """

        async def _write(temp_path: Path) -> str | None:
            response = await self.fetcher.get(url)
            if not response.is_ok:
                raise FetchError(
                    f"url {url} not valid: HTTP {response.status}",
                    url=url,
                    status_code=response.status,
                )
            async with aiofiles.open(temp_path, "wb") as f:
                await f.write(response.body)
            return response.content_type

        source_name = unquote(PurePosixPath(urlparse(url).path).name)
        return await self._stage(record, source_name, _write)

    async def upload_from_file(self, record: RecordHost, path: str | Path) -> bool:
        """
        Import a local file into the attribute.

        Returns:
            True if the file passed validation and was staged, False if the
            record's validation rejected it

        Raises:
            SourceNotFoundError: If ``path`` does not exist
        """
        source = Path(expand_aliases(str(path), self.config.aliases))
        if not await aiofiles.os.path.isfile(source):
            raise SourceNotFoundError(f"file {path} does not exist")

        async def _write(temp_path: Path) -> str | None:
            await asyncio.to_thread(shutil.copyfile, source, temp_path)
            return None

        return await self._stage(record, source.name, _write)

    async def _stage(
        self,
        record: RecordHost,
        source_name: str,
        write_temp: Callable[[Path], Any],
    ) -> bool:
        attribute = self.config.attribute
        old_value = record.get_attribute(attribute)
        temp_folder = Path(expand_aliases(self.config.temp_folder, self.config.aliases))
        temp_id = uuid.uuid4().hex
        temp_path = temp_folder / temp_id

        try:
            await ensure_dir(temp_folder, "temp_folder")
            declared_type = await write_temp(temp_path)

            detected_type = await asyncio.to_thread(self.mime_registry.detect, temp_path)
            mime_type = (
                detected_type
                or declared_type
                or mimetypes.guess_type(source_name)[0]
            )
            source_stem, source_extension = _split_name(source_name)
            if mime_type:
                extension = reconcile_extension(
                    source_extension, self.mime_registry.extensions_for(mime_type)
                )
            else:
                logger.warning(
                    f"Could not determine MIME type of imported {source_name!r}, "
                    "keeping its extension"
                )
                extension = source_extension

            upload = UploadedFile(
                name=self.namer.import_name(temp_id, source_stem, extension),
                temp_path=temp_path,
                content_type=mime_type,
                imported=True,
            )
            record.set_attribute(attribute, upload)

            if not record.validate([attribute]):
                logger.warning(
                    f"Imported file {source_name!r} rejected by validation of {attribute}"
                )
                record.set_attribute(attribute, old_value)
                await delete_file(temp_path)
                return False

            target = self._upload_path(record)
            if target is not None:
                await ensure_dir(Path(target).parent)
                try:
                    await asyncio.to_thread(shutil.copyfile, temp_path, target)
                except OSError as e:
                    raise StorageIOError(
                        f"Cannot copy imported file to {target}: {e}", path=target
                    ) from e
            logger.info(f"Imported {source_name!r} into {attribute} as {upload.name}")
            return True
        except (Exception, asyncio.CancelledError):
            record.set_attribute(attribute, old_value)
            await delete_file(temp_path)
            raise
