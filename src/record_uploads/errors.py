"""
Custom exceptions for record attachment handling.
"""


class AttachmentError(Exception):
    """Base exception for all attachment-related errors."""


class ConfigError(AttachmentError, ValueError):
    """Raised when an attachment is configured with missing or invalid values."""


class StorageIOError(AttachmentError, OSError):
    """Raised when a target directory cannot be created or a file cannot be written."""

    def __init__(self, message: str, path: str | None = None) -> None:
        super().__init__(message)
        self.path = path


class FetchError(AttachmentError):
    """Raised when a remote file cannot be downloaded."""

    def __init__(
        self, message: str, url: str, status_code: int | None = None
    ) -> None:
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class SourceNotFoundError(AttachmentError, FileNotFoundError):
    """Raised when a local file requested for import does not exist."""


class NotSupportedError(AttachmentError):
    """Raised when a required collaborator or capability is unavailable."""
