"""Record Uploads Package."""

import logging
import logging.config
import os

from record_uploads.attachment_set import AttachmentSet
from record_uploads.config_loader import (
    build_attachment_config,
    build_image_attachment_config,
    load_attachment_configs,
)
from record_uploads.config_models import (
    AttachmentConfig,
    ImageAttachmentConfig,
    ThumbProfile,
)
from record_uploads.errors import (
    AttachmentError,
    ConfigError,
    FetchError,
    NotSupportedError,
    SourceNotFoundError,
    StorageIOError,
)
from record_uploads.image_attachment import ImageAttachment
from record_uploads.lifecycle import (
    EVENT_AFTER_UPLOAD,
    Attachment,
    OperationState,
    UploadOperation,
)
from record_uploads.uploaded_file import FormUploadSource, UploadedFile

# Configure logging from a file when the host application provides one
LOGGING_CONFIG = os.getenv("RECORD_UPLOADS_LOGGING_CONFIG", "logging.conf")
if os.path.exists(LOGGING_CONFIG):
    logging.config.fileConfig(LOGGING_CONFIG, disable_existing_loggers=False)

__all__ = [
    "EVENT_AFTER_UPLOAD",
    "Attachment",
    "AttachmentConfig",
    "AttachmentError",
    "AttachmentSet",
    "ConfigError",
    "FetchError",
    "FormUploadSource",
    "ImageAttachment",
    "ImageAttachmentConfig",
    "NotSupportedError",
    "OperationState",
    "SourceNotFoundError",
    "StorageIOError",
    "ThumbProfile",
    "UploadOperation",
    "UploadedFile",
    "build_attachment_config",
    "build_image_attachment_config",
    "load_attachment_configs",
]
