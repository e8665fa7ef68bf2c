"""
Image attachments: a file attachment with derived thumbnail variants.

ImageAttachment wraps an Attachment and plugs into it as its AttachmentHooks:
thumbnails are created after a new image has been committed (or lazily when
their URL is requested) and removed before the original is deleted.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import aiofiles.os

from record_uploads.config_loader import build_image_attachment_config
from record_uploads.config_models import ImageAttachmentConfig, ThumbProfile
from record_uploads.errors import ConfigError, NotSupportedError
from record_uploads.image_backends import default_image_backend
from record_uploads.interfaces import (
    HttpFetcher,
    ImageBackend,
    MimeRegistry,
    RecordHost,
    UploadSource,
)
from record_uploads.janitor import delete_file, prune_empty_dir
from record_uploads.lifecycle import Attachment, UploadOperation, stored_filename
from record_uploads.paths import expand_aliases, join_path, resolve_path_template
from record_uploads.thumbnails import ThumbnailEngine, thumb_file_name

logger = logging.getLogger(__name__)

DEFAULT_PROFILE = "thumb"


class ImageAttachment:
    """Lifecycle engine for one image attribute of a record."""

    def __init__(
        self,
        config: ImageAttachmentConfig | Mapping[str, Any],
        upload_source: UploadSource | None = None,
        fetcher: HttpFetcher | None = None,
        mime_registry: MimeRegistry | None = None,
        image_backend: ImageBackend | None = None,
    ) -> None:
        """
        Initialize the image attachment.

        Args:
            config: Image attachment configuration, or a mapping validated into one
            upload_source: Where submitted files are looked up
            fetcher: HTTP client used by ``upload_from_url``
            mime_registry: MIME detection used for imports
            image_backend: Image library used for thumbnails; Pillow by default

        Raises:
            ConfigError: If the configuration or a thumbnail profile is invalid
            NotSupportedError: If ``image_backend`` does not implement ImageBackend
        """
        self.config = build_image_attachment_config(config)
        backend = image_backend if image_backend is not None else default_image_backend()
        if not isinstance(backend, ImageBackend):
            raise NotSupportedError(
                f"{type(backend).__name__} is not an image backend; "
                "thumbnails need open() and thumbnail()"
            )
        self.thumbnails = ThumbnailEngine(backend)
        self.attachment = Attachment(
            self.config,
            upload_source=upload_source,
            fetcher=fetcher,
            mime_registry=mime_registry,
            hooks=self,
        )

    @property
    def attribute(self) -> str:
        return self.config.attribute

    # Phase hooks, delegated to the wrapped attachment

    def before_validate(self, record: RecordHost) -> UploadOperation:
        return self.attachment.before_validate(record)

    def after_validate(self, record: RecordHost, operation: UploadOperation) -> None:
        self.attachment.after_validate(record, operation)

    async def before_save(self, record: RecordHost, operation: UploadOperation) -> None:
        await self.attachment.before_save(record, operation)

    async def after_save(self, record: RecordHost, operation: UploadOperation) -> None:
        await self.attachment.after_save(record, operation)

    async def after_delete(self, record: RecordHost) -> None:
        await self.attachment.after_delete(record)

    # AttachmentHooks

    async def before_delete(self, record: RecordHost, old: bool) -> None:
        """Remove every thumbnail of the file about to be deleted."""
        main_path = self.attachment.get_upload_path(record, old)
        for profile in self.config.thumbs:
            path = self.get_thumb_upload_path(record, profile, old)
            if path is None:
                continue
            await delete_file(path)
            thumb_dir = Path(path).parent
            if (
                self.config.delete_empty_dir
                and main_path is not None
                and thumb_dir != Path(main_path).parent
            ):
                await prune_empty_dir(thumb_dir)

    async def after_upload(self, record: RecordHost) -> None:
        if self.config.create_thumbs_on_save:
            await self.create_thumbs(record)

    # Public operations

    def get_upload_path(self, record: RecordHost, old: bool = False) -> str | None:
        return self.attachment.get_upload_path(record, old)

    def get_upload_url(self, record: RecordHost, old: bool = True) -> str | None:
        return self.attachment.get_upload_url(record, old)

    async def upload_from_url(self, record: RecordHost, url: str) -> bool:
        return await self.attachment.upload_from_url(record, url)

    async def upload_from_file(self, record: RecordHost, path: str | Path) -> bool:
        return await self.attachment.upload_from_file(record, path)

    async def delete(self, record: RecordHost, old: bool = False) -> None:
        await self.attachment.delete(record, old)

    def get_thumb_upload_path(
        self, record: RecordHost, profile: str = DEFAULT_PROFILE, old: bool = False
    ) -> str | None:
        """
        Return the path of a thumbnail of the attribute's image.

        The path is computed whether or not the thumbnail exists.

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
        base = resolve_path_template(self.config.effective_thumb_path, record)
        return expand_aliases(
            join_path(base, thumb_file_name(filename, profile)), self.config.aliases
        )

    async def get_thumb_upload_url(
        self, record: RecordHost, profile: str = DEFAULT_PROFILE
    ) -> str | None:
        """
        Return the URL of a thumbnail of the attribute's persisted image.

        With ``create_thumbs_on_request`` the thumbnail is generated first if
        it is missing. Without a stored image the placeholder's thumbnail URL
        is returned, or None when no placeholder is configured.
        """
        filename = stored_filename(record.get_old_attribute(self.attribute))
        if not filename:
            if self.config.placeholder:
                return await self._placeholder_thumb_url(profile)
            return None

        if self.config.create_thumbs_on_request:
            source = self.attachment.get_upload_path(record, old=True)
            original_exists = source is not None and await aiofiles.os.path.isfile(
                source
            )
            if original_exists or not self.config.delete_original_file:
                await self.create_thumbs(record, profile)

        base = resolve_path_template(self.config.effective_thumb_url, record)
        return expand_aliases(
            join_path(base, thumb_file_name(filename, profile)), self.config.aliases
        )

    async def create_thumbs(
        self, record: RecordHost, profile: str | None = None
    ) -> list[str]:
        """
        Generate missing thumbnails for the attribute's current image.

        Args:
            record: The record owning the attribute
            profile: Only generate this profile; all profiles when None

        Returns:
            The thumbnail paths generated by this call

        Raises:
            ConfigError: If ``profile`` is not configured
            StorageIOError: If a thumbnail directory cannot be created
        """
        profiles = self._select_profiles(profile)
        source = self.attachment.get_upload_path(record)
        if source is None or not await aiofiles.os.path.isfile(source):
            logger.warning(
                f"Skipping thumbnails for {self.attribute}: source image {source} not found"
            )
            return []

        targets: dict[str, tuple[ThumbProfile, str]] = {}
        for name, thumb in profiles.items():
            target = self.get_thumb_upload_path(record, name)
            if target is not None:
                targets[name] = (thumb, target)
        generated = await self.thumbnails.ensure(source, targets)

        if self.config.delete_original_file:
            await delete_file(source)
        return generated

    async def delete_image(self, record: RecordHost, old: bool = False) -> None:
        """Delete the image and its thumbnails, then clear the attribute."""
        await self.attachment.delete(record, old)
        await record.update_attributes({self.attribute: ""})

    def _select_profiles(self, profile: str | None) -> dict[str, ThumbProfile]:
        if profile is None:
            return dict(self.config.thumbs)
        if profile not in self.config.thumbs:
            raise ConfigError(
                f"Unknown thumbnail profile '{profile}' for {self.attribute}"
            )
        return {profile: self.config.thumbs[profile]}

    async def _placeholder_thumb_url(self, profile: str) -> str:
        placeholder = Path(expand_aliases(self.config.placeholder or "", self.config.aliases))
        thumb_name = thumb_file_name(placeholder.name, profile)
        thumb_path = str(placeholder.parent / thumb_name)
        await self.thumbnails.ensure(
            placeholder,
            {profile: (self._select_profiles(profile)[profile], thumb_path)},
            setting="placeholder",
        )
        base = self.config.placeholder_url or str(placeholder.parent)
        return expand_aliases(join_path(base, thumb_name), self.config.aliases)
