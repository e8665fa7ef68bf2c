"""Content-based MIME detection and MIME-to-extension mapping."""

import logging
import mimetypes
from pathlib import Path

import filetype
from filetype.types import TYPES as FILETYPE_TYPES

logger = logging.getLogger(__name__)


class FiletypeMimeRegistry:
    """MimeRegistry implementation using ``filetype`` signatures.

    Extensions combine filetype's own table with the ``mimetypes`` database so
    that formats filetype cannot sniff (plain text, CSV, ...) still map to
    sensible extensions.
    """

    def detect(self, path: str | Path) -> str | None:
        try:
            kind = filetype.guess(str(path))
        except OSError as e:
            logger.warning(f"Could not read {path} for MIME detection: {e}")
            return None
        if kind is None:
            logger.debug(f"Could not determine file type of {path} from content")
            return None
        return kind.mime

    def extensions_for(self, mime_type: str) -> list[str]:
        extensions: list[str] = []
        for kind in FILETYPE_TYPES:
            if kind.mime == mime_type and kind.extension not in extensions:
                extensions.append(kind.extension)
        for ext in mimetypes.guess_all_extensions(mime_type, strict=False):
            ext = ext.lstrip(".")
            if ext not in extensions:
                extensions.append(ext)
        return extensions
