"""
Attachment lifecycle: binds one record attribute to a file on disk.

An Attachment is driven by the record's phase hooks. ``before_validate`` opens
an UploadOperation holding the incoming file; the same operation object is
passed to ``after_validate``, ``before_save`` and ``after_save``, so the
attachment itself keeps no state between phases and can serve any number of
records concurrently.

Caveat: the attribute is set to the new filename in ``before_save``, i.e.
before ``after_save`` copies the file. If that copy fails the persisted
attribute already names a file that does not exist.
"""

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path
from typing import Any

from record_uploads.config_loader import build_attachment_config
from record_uploads.config_models import AttachmentConfig
from record_uploads.errors import StorageIOError
from record_uploads.fetching import HttpxFetcher
from record_uploads.importer import StagingImporter
from record_uploads.interfaces import (
    AttachmentHooks,
    HttpFetcher,
    MimeRegistry,
    RecordHost,
    UploadSource,
)
from record_uploads.janitor import delete_file, ensure_dir, prune_empty_dir
from record_uploads.mime import FiletypeMimeRegistry
from record_uploads.naming import FileNamer
from record_uploads.paths import expand_aliases, join_path, resolve_path_template
from record_uploads.uploaded_file import UploadedFile

logger = logging.getLogger(__name__)

# Event triggered on the record after a file has been committed to disk
EVENT_AFTER_UPLOAD = "after_upload"


class OperationState(StrEnum):
    """Progress of one save operation through the attachment lifecycle."""

    IDLE = "idle"
    PENDING_VALIDATE = "pending_validate"
    VALIDATED = "validated"
    VALIDATION_FAILED = "validation_failed"
    ROLLED_BACK = "rolled_back"
    COMMITTING = "committing"
    COMMITTED = "committed"


@dataclass
class UploadOperation:
    """
    State of one create/update operation for one attribute.

    Attributes:
        attribute: The attribute being saved
        file: The incoming file, if any
        importing: True when the file was staged from a URL or local path
        temp_file_path: Staged temp file to remove once the file is committed
        state: Current lifecycle state
    """

    attribute: str
    file: UploadedFile | None = None
    importing: bool = False
    temp_file_path: Path | None = None
    state: OperationState = OperationState.IDLE


def stored_filename(value: Any) -> str | None:  # noqa: ANN401
    """Return the filename an attribute value refers to, if any."""
    if isinstance(value, UploadedFile):
        return value.name
    if isinstance(value, str) and value:
        return value
    return None


class Attachment:
    """Lifecycle engine for one file attribute of a record."""

    def __init__(
        self,
        config: AttachmentConfig | Mapping[str, Any],
        upload_source: UploadSource | None = None,
        fetcher: HttpFetcher | None = None,
        mime_registry: MimeRegistry | None = None,
        hooks: AttachmentHooks | None = None,
    ) -> None:
        """
        Initialize the attachment.

        Args:
            config: Attachment configuration, or a mapping validated into one
            upload_source: Where submitted files are looked up during
                ``before_validate``; without one only files already set on the
                attribute are picked up
            fetcher: HTTP client used by ``upload_from_url``
            mime_registry: MIME detection used for imports
            hooks: Extension points called on delete and after upload

        Raises:
            ConfigError: If the configuration is missing required settings
        """
        self.config = build_attachment_config(config)
        self.upload_source = upload_source
        self.hooks = hooks
        self.namer = FileNamer(self.config.generate_new_name)
        self.importer = StagingImporter(
            self.config,
            fetcher=fetcher or HttpxFetcher(),
            mime_registry=mime_registry or FiletypeMimeRegistry(),
            namer=self.namer,
            upload_path=self.get_upload_path,
        )

    @property
    def attribute(self) -> str:
        return self.config.attribute

    def is_active(self, record: RecordHost) -> bool:
        return record.scenario in self.config.scenarios

    # Phase hooks

    def before_validate(self, record: RecordHost) -> UploadOperation:
        """
        Capture the incoming file and give it its final name.

        The renamed file is written back to the attribute so validation rules
        (extension checks and the like) see the name it will be stored under.
        """
        operation = UploadOperation(attribute=self.attribute)
        if not self.is_active(record):
            return operation

        value = record.get_attribute(self.attribute)
        if isinstance(value, UploadedFile):
            file: UploadedFile | None = value
        elif self.upload_source is None:
            file = None
        elif self.config.instance_by_name:
            file = self.upload_source.get_instance_by_name(self.attribute)
        else:
            file = self.upload_source.get_instance(record, self.attribute)

        if file is not None:
            operation.importing = file.imported
            if file.imported:
                operation.temp_file_path = file.temp_path
            file = dataclasses.replace(
                file, name=self.namer.name(file, importing=file.imported)
            )
            operation.file = file
            operation.state = OperationState.PENDING_VALIDATE
            record.set_attribute(self.attribute, file)
        return operation

    def after_validate(self, record: RecordHost, operation: UploadOperation) -> None:
        """Restore the persisted value if the attribute failed validation."""
        if not record.has_errors(self.attribute):
            if operation.state is OperationState.PENDING_VALIDATE:
                operation.state = OperationState.VALIDATED
            return

        if self.config.restore_value_after_fail_validation:
            record.set_attribute(
                self.attribute, record.get_old_attribute(self.attribute)
            )
            operation.state = OperationState.ROLLED_BACK
        else:
            operation.state = OperationState.VALIDATION_FAILED
        operation.file = None
        logger.debug(f"Validation failed for {self.attribute}, state {operation.state}")

    async def before_save(self, record: RecordHost, operation: UploadOperation) -> None:
        """Unlink superseded files and leave a plain filename on the attribute."""
        if self.is_active(record):
            if operation.file is not None:
                await self._unlink_superseded(record)
                record.set_attribute(self.attribute, operation.file.name)
                operation.state = OperationState.COMMITTING
            elif not operation.importing:
                # Protect the attribute from being overwritten with a stale value
                record.unset_attribute(self.attribute)
        else:
            await self._unlink_superseded(record)

    async def after_save(self, record: RecordHost, operation: UploadOperation) -> None:
        """
        Commit the pending file to its upload path.

        Raises:
            StorageIOError: If the target directory cannot be created or the
                file cannot be written
        """
        if operation.file is None:
            return

        path = self.get_upload_path(record)
        if path is None:
            raise StorageIOError(
                f"Cannot commit {operation.file.name}: {self.attribute} holds no filename"
            )
        try:
            await ensure_dir(Path(path).parent)
        except StorageIOError:
            logger.error(f"Cannot commit {self.attribute} to {path}", exc_info=True)
            raise
        if not await operation.file.save_as(path, self.config.delete_temp_file):
            raise StorageIOError(f"Failed to save uploaded file to {path}", path=path)
        if self.config.delete_temp_file and operation.temp_file_path is not None:
            await delete_file(operation.temp_file_path)
            operation.temp_file_path = None
        operation.state = OperationState.COMMITTED
        logger.info(f"Stored {self.attribute} file at {path}")
        await self.after_upload(record)

    async def after_delete(self, record: RecordHost) -> None:
        """Remove the attribute's file once the record has been deleted."""
        if self.config.unlink_on_delete:
            await self.delete(record)

    # Public operations

    def get_upload_path(self, record: RecordHost, old: bool = False) -> str | None:
        """
        Return the file path for the attribute.

        Args:
            record: The record owning the attribute
            old: Use the last persisted value instead of the current one

        Returns:
            The path, or None if the attribute holds no filename
        """
        value = (
            record.get_old_attribute(self.attribute)
            if old
            else record.get_attribute(self.attribute)
        )
        filename = stored_filename(value)
        if not filename:
            return None
        base = resolve_path_template(self.config.path, record)
        return expand_aliases(join_path(base, filename), self.config.aliases)

    def get_upload_url(self, record: RecordHost, old: bool = True) -> str | None:
        """Return the URL of the attribute's persisted file, or None."""
        value = (
            record.get_old_attribute(self.attribute)
            if old
            else record.get_attribute(self.attribute)
        )
        filename = stored_filename(value)
        if not filename:
            return None
        base = resolve_path_template(self.config.url, record)
        return expand_aliases(join_path(base, filename), self.config.aliases)

    async def upload_from_url(self, record: RecordHost, url: str) -> bool:
        """Import a remote file into the attribute; see StagingImporter."""
        return await self.importer.upload_from_url(record, url)

    async def upload_from_file(self, record: RecordHost, path: str | Path) -> bool:
        """Import a local file into the attribute; see StagingImporter."""
        return await self.importer.upload_from_file(record, path)

    async def delete(self, record: RecordHost, old: bool = False) -> None:
        """
        Delete the attribute's file and its derived files.

        The containing directory is removed too when it ends up empty and
        ``delete_empty_dir`` is set.
        """
        path = self.get_upload_path(record, old)
        if self.hooks is not None:
            await self.hooks.before_delete(record, old)
        if path is None:
            return
        await delete_file(path)
        if self.config.delete_empty_dir:
            await prune_empty_dir(Path(path).parent)

    async def after_upload(self, record: RecordHost) -> None:
        """Notify the record and hooks that a file has been committed."""
        record.trigger(EVENT_AFTER_UPLOAD)
        if self.hooks is not None:
            await self.hooks.after_upload(record)

    async def _unlink_superseded(self, record: RecordHost) -> None:
        if (
            self.config.unlink_on_save
            and not record.is_new_record
            and record.is_attribute_changed(self.attribute)
        ):
            await self.delete(record, old=True)
