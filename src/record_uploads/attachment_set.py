"""
Composition of several attachments on one record.

The host calls the AttachmentSet at each phase of a save or delete; the set
fans the call out to every attachment and keeps the per-attribute
UploadOperations of the running save. Attribute-addressed operations are
dispatched to the attachment configured for that attribute.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Iterable, Iterator
from pathlib import Path

from record_uploads.errors import ConfigError, NotSupportedError
from record_uploads.image_attachment import ImageAttachment
from record_uploads.interfaces import RecordHost
from record_uploads.lifecycle import Attachment, UploadOperation

logger = logging.getLogger(__name__)

AnyAttachment = Attachment | ImageAttachment
Operations = dict[str, UploadOperation]


class AttachmentSet:
    """The attachments of one record type, keyed by attribute."""

    def __init__(self, attachments: Iterable[AnyAttachment]) -> None:
        """
        Initialize the set.

        Raises:
            ConfigError: If two attachments are bound to the same attribute
        """
        self._attachments: dict[str, AnyAttachment] = {}
        for attachment in attachments:
            if attachment.attribute in self._attachments:
                raise ConfigError(
                    f"Attribute '{attachment.attribute}' has more than one attachment"
                )
            self._attachments[attachment.attribute] = attachment

    def __iter__(self) -> Iterator[AnyAttachment]:
        return iter(self._attachments.values())

    def __len__(self) -> int:
        return len(self._attachments)

    def __contains__(self, attribute: object) -> bool:
        return attribute in self._attachments

    def get(self, attribute: str) -> AnyAttachment:
        """
        Return the attachment bound to ``attribute``.

        Raises:
            ConfigError: If no attachment is configured for the attribute
        """
        try:
            return self._attachments[attribute]
        except KeyError:
            raise ConfigError(
                f"No attachment configured for attribute '{attribute}'"
            ) from None

    def _image(self, attribute: str) -> ImageAttachment:
        attachment = self.get(attribute)
        if not isinstance(attachment, ImageAttachment):
            raise NotSupportedError(
                f"Attribute '{attribute}' is not an image attachment"
            )
        return attachment

    # Phase fan-out

    def before_validate(self, record: RecordHost) -> Operations:
        return {
            attribute: attachment.before_validate(record)
            for attribute, attachment in self._attachments.items()
        }

    def after_validate(self, record: RecordHost, operations: Operations) -> None:
        for attribute, operation in operations.items():
            self._attachments[attribute].after_validate(record, operation)

    async def before_save(self, record: RecordHost, operations: Operations) -> None:
        for attribute, operation in operations.items():
            await self._attachments[attribute].before_save(record, operation)

    async def after_save(self, record: RecordHost, operations: Operations) -> None:
        for attribute, operation in operations.items():
            await self._attachments[attribute].after_save(record, operation)

    async def after_delete(self, record: RecordHost) -> None:
        for attachment in self._attachments.values():
            await attachment.after_delete(record)

    async def save(
        self, record: RecordHost, persist: Callable[[], Awaitable[None]]
    ) -> bool:
        """
        Run a full save of ``record`` through every attachment.

        Args:
            record: The record being saved
            persist: Coroutine function writing the record to its store

        Returns:
            True if the record was saved, False if validation failed
        """
        operations = self.before_validate(record)
        valid = record.validate()
        self.after_validate(record, operations)
        if not valid:
            logger.info(f"Not saving {type(record).__name__}: validation failed")
            return False
        await self.before_save(record, operations)
        await persist()
        await self.after_save(record, operations)
        return True

    async def delete(
        self, record: RecordHost, remove: Callable[[], Awaitable[None]]
    ) -> None:
        """Delete ``record`` from its store, then its attached files."""
        await remove()
        await self.after_delete(record)

    # Dispatch by attribute

    def get_upload_path(
        self, record: RecordHost, attribute: str, old: bool = False
    ) -> str | None:
        return self.get(attribute).get_upload_path(record, old)

    def get_upload_url(
        self, record: RecordHost, attribute: str, old: bool = True
    ) -> str | None:
        return self.get(attribute).get_upload_url(record, old)

    async def upload_from_url(self, record: RecordHost, attribute: str, url: str) -> bool:
        return await self.get(attribute).upload_from_url(record, url)

    async def upload_from_file(
        self, record: RecordHost, attribute: str, path: str | Path
    ) -> bool:
        return await self.get(attribute).upload_from_file(record, path)

    def get_thumb_upload_path(
        self,
        record: RecordHost,
        attribute: str,
        profile: str = "thumb",
        old: bool = False,
    ) -> str | None:
        return self._image(attribute).get_thumb_upload_path(record, profile, old)

    async def get_thumb_upload_url(
        self, record: RecordHost, attribute: str, profile: str = "thumb"
    ) -> str | None:
        return await self._image(attribute).get_thumb_upload_url(record, profile)

    async def delete_image(
        self, record: RecordHost, attribute: str, old: bool = False
    ) -> None:
        await self._image(attribute).delete_image(record, old)
