import logging
from collections.abc import Callable
from pathlib import Path

import pytest
from PIL import Image

from record_uploads.uploaded_file import UploadedFile
from tests.mocks.image_backend import RecordingImageBackend

# Configure logging for tests (optional, but can be helpful)
logging.basicConfig(level=logging.INFO)

logger = logging.getLogger(__name__)


@pytest.fixture
def upload_dir(tmp_path: Path) -> Path:
    """Directory attachments store their files under (not created up front)."""
    return tmp_path / "uploads"


@pytest.fixture
def temp_folder(tmp_path: Path) -> Path:
    """Staging directory for imports and spooled form uploads."""
    folder = tmp_path / "staging"
    folder.mkdir()
    return folder


@pytest.fixture
def incoming_dir(tmp_path: Path) -> Path:
    """Directory holding files as the upload layer leaves them."""
    folder = tmp_path / "incoming"
    folder.mkdir()
    return folder


@pytest.fixture
def make_image() -> Callable[..., Path]:
    """Factory writing a real image file with Pillow."""

    def _make(
        path: Path,
        size: tuple[int, int] = (800, 600),
        color: str = "red",
        image_format: str | None = None,
    ) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        Image.new("RGB", size, color).save(path, format=image_format)
        return path

    return _make


@pytest.fixture
def make_upload(
    incoming_dir: Path, make_image: Callable[..., Path]
) -> Callable[..., UploadedFile]:
    """Factory for a pending upload as an UploadSource would return it.

    Image names (png/jpg/gif) get real image content, anything else plain bytes.
    """
    counter = iter(range(1_000_000))

    def _make(name: str, content: bytes | None = None) -> UploadedFile:
        temp_path = incoming_dir / f"php{next(counter)}"
        suffix = Path(name).suffix.lower()
        if content is None and suffix in {".png", ".jpg", ".jpeg", ".gif"}:
            image_format = {".jpg": "JPEG", ".jpeg": "JPEG"}.get(suffix, suffix[1:].upper())
            make_image(temp_path, image_format=image_format)
        else:
            temp_path.write_bytes(content if content is not None else b"payload")
        return UploadedFile(name=name, temp_path=temp_path)

    return _make


@pytest.fixture
def recording_backend() -> RecordingImageBackend:
    return RecordingImageBackend()
