"""
Defines the interfaces attachments consume from their collaborators.

The record framework, the HTTP upload layer, the HTTP client, MIME detection
and the image library are all external; attachments only talk to them through
the protocols below.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from record_uploads.uploaded_file import UploadedFile


class RecordHost(Protocol):
    """
    Protocol for the record an attachment is bound to.

    The host owns attribute storage, change tracking, validation and
    persistence. Attribute values for file attributes are filename strings
    once persisted, or an UploadedFile while an upload is in flight.
    """

    @property
    def scenario(self) -> str:
        """The name of the operation mode the record is in (e.g. "insert")."""
        ...

    @property
    def is_new_record(self) -> bool:
        """Whether the record has not been persisted yet."""
        ...

    def get_attribute(self, name: str) -> Any:  # noqa: ANN401
        ...

    def set_attribute(self, name: str, value: Any) -> None:  # noqa: ANN401
        ...

    def unset_attribute(self, name: str) -> None:
        """Drop the attribute from the pending write set."""
        ...

    def get_old_attribute(self, name: str) -> Any:  # noqa: ANN401
        """Return the attribute's last persisted value."""
        ...

    def is_attribute_changed(self, name: str) -> bool:
        ...

    def has_errors(self, name: str) -> bool:
        """Whether the last validation reported errors for the attribute."""
        ...

    def validate(self, attribute_names: Iterable[str] | None = None) -> bool:
        """Run validation rules, optionally restricted to some attributes."""
        ...

    def trigger(self, event: str) -> None:
        """Notify the record that a named event happened."""
        ...

    async def update_attributes(self, values: Mapping[str, Any]) -> None:
        """Persist the given attribute values immediately."""
        ...


class UploadSource(Protocol):
    """Protocol for looking up files submitted with the current request."""

    def get_instance(self, record: RecordHost, attribute: str) -> UploadedFile | None:
        """Return the file submitted for ``attribute`` of the record's form."""
        ...

    def get_instance_by_name(self, attribute: str) -> UploadedFile | None:
        """Return the file submitted under the bare field name ``attribute``."""
        ...


@dataclass(frozen=True)
class FetchResponse:
    """Result of fetching a remote URL."""

    status: int
    headers: Mapping[str, str] = field(default_factory=dict)
    body: bytes = b""

    @property
    def is_ok(self) -> bool:
        return 200 <= self.status < 300

    @property
    def content_type(self) -> str | None:
        """The declared MIME type without parameters, if any."""
        for key, value in self.headers.items():
            if key.lower() == "content-type":
                return value.split(";", 1)[0].strip().lower() or None
        return None


class HttpFetcher(Protocol):
    """Protocol for downloading remote files."""

    async def get(self, url: str) -> FetchResponse:
        """Fetch ``url``. Transport failures raise FetchError."""
        ...


class MimeRegistry(Protocol):
    """Protocol for content-based MIME detection."""

    def detect(self, path: str | Path) -> str | None:
        """Detect the MIME type of a file from its content."""
        ...

    def extensions_for(self, mime_type: str) -> list[str]:
        """Return known extensions (without dots) for a MIME type."""
        ...


@dataclass(frozen=True)
class ImageSize:
    """Pixel dimensions of an image."""

    width: int
    height: int

    @property
    def ratio(self) -> float:
        return self.width / self.height


class Thumbnail(Protocol):
    """A derived image ready to be written to disk."""

    async def save(self, path: str | Path, quality: int) -> None:
        ...


@runtime_checkable
class ImageBackend(Protocol):
    """Protocol for the image library performing the pixel work."""

    async def open(self, path: str | Path) -> ImageSize:
        """Return the dimensions of the image at ``path``."""
        ...

    async def thumbnail(
        self,
        path: str | Path,
        width: int,
        height: int,
        mode: str,
        bg_color: str,
    ) -> Thumbnail:
        """Produce a ``width`` x ``height`` thumbnail of the image at ``path``."""
        ...


class AttachmentHooks(Protocol):
    """
    Extension points an Attachment calls into.

    Wrappers such as ImageAttachment implement this to attach derived files
    to the lifecycle of the original without subclassing it.
    """

    async def before_delete(self, record: RecordHost, old: bool) -> None:
        """Called before the attribute's file is deleted."""
        ...

    async def after_upload(self, record: RecordHost) -> None:
        """Called after a new file has been committed to disk."""
        ...
