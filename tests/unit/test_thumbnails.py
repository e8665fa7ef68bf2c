"""Tests for thumbnail geometry and generation."""

from collections.abc import Callable
from pathlib import Path

import pytest
from PIL import Image

from record_uploads.config_models import ThumbProfile
from record_uploads.errors import StorageIOError
from record_uploads.image_backends import PillowImageBackend, parse_color
from record_uploads.interfaces import ImageSize
from record_uploads.thumbnails import (
    ThumbnailEngine,
    compute_thumb_size,
    thumb_file_name,
)
from tests.mocks.image_backend import RecordingImageBackend


class TestComputeThumbSize:
    """Tests for compute_thumb_size."""

    def test_width_only_infers_height(self) -> None:
        assert compute_thumb_size(400, None, ImageSize(800, 600)) == (400, 300)

    def test_height_only_infers_width(self) -> None:
        assert compute_thumb_size(None, 300, ImageSize(800, 600)) == (400, 300)

    def test_both_sides_used_as_given(self) -> None:
        assert compute_thumb_size(50, 70, ImageSize(800, 600)) == (50, 70)

    def test_inferred_side_rounds_up(self) -> None:
        # 100 * 333 / 1000 = 33.3
        assert compute_thumb_size(100, None, ImageSize(1000, 333)) == (100, 34)
        # 7 * 3 / 9 = 2.33...
        assert compute_thumb_size(None, 7, ImageSize(3, 9)) == (3, 7)

    def test_no_side_raises(self) -> None:
        with pytest.raises(ValueError):
            compute_thumb_size(None, 0, ImageSize(10, 10))


def test_thumb_file_name() -> None:
    assert thumb_file_name("a.png") == "thumb-a.png"
    assert thumb_file_name("a.png", "preview") == "preview-a.png"


class TestThumbnailEngine:
    """Tests for ThumbnailEngine with a recording backend."""

    @pytest.mark.asyncio
    async def test_ensure_is_idempotent(
        self, tmp_path: Path, recording_backend: RecordingImageBackend
    ) -> None:
        """A second ensure for the same targets does not call the backend."""
        engine = ThumbnailEngine(recording_backend)
        target = str(tmp_path / "thumbs" / "thumb-a.png")
        targets = {"thumb": (ThumbProfile(width=200, height=200), target)}

        first = await engine.ensure(tmp_path / "a.png", targets)
        second = await engine.ensure(tmp_path / "a.png", targets)

        assert first == [target]
        assert second == []
        assert len(recording_backend.thumbnail_calls) == 1
        assert Path(target).is_file()

    @pytest.mark.asyncio
    async def test_generate_passes_profile_settings(
        self, tmp_path: Path, recording_backend: RecordingImageBackend
    ) -> None:
        engine = ThumbnailEngine(recording_backend)
        profile = ThumbProfile(
            width=120, height=80, quality=75, mode="outbound", bg_color="000"
        )
        target = tmp_path / "out.jpg"
        await engine.generate(profile, "src.jpg", target)

        assert recording_backend.open_calls == []
        assert recording_backend.thumbnail_calls == [
            ("src.jpg", 120, 80, "outbound", "000")
        ]
        assert target.read_bytes() == b"120x80@75"

    @pytest.mark.asyncio
    async def test_generate_with_one_side_reads_source_size(
        self, tmp_path: Path, recording_backend: RecordingImageBackend
    ) -> None:
        engine = ThumbnailEngine(recording_backend)
        await engine.generate(ThumbProfile(width=400), "src.jpg", tmp_path / "t.jpg")

        assert recording_backend.open_calls == ["src.jpg"]
        assert recording_backend.thumbnail_calls[0][1:3] == (400, 300)

    @pytest.mark.asyncio
    async def test_ensure_uncreatable_directory(
        self, tmp_path: Path, recording_backend: RecordingImageBackend
    ) -> None:
        blocker = tmp_path / "blocker"
        blocker.write_text("file")
        engine = ThumbnailEngine(recording_backend)
        targets = {"thumb": (ThumbProfile(width=10), str(blocker / "thumb-a.png"))}
        with pytest.raises(StorageIOError, match="thumb_path"):
            await engine.ensure(tmp_path / "a.png", targets)
        assert recording_backend.thumbnail_calls == []


class TestPillowImageBackend:
    """Tests for the Pillow backend on real images."""

    @pytest.mark.asyncio
    async def test_open_reports_size(
        self, tmp_path: Path, make_image: Callable[..., Path]
    ) -> None:
        source = make_image(tmp_path / "a.png", size=(800, 600))
        assert await PillowImageBackend().open(source) == ImageSize(800, 600)

    @pytest.mark.asyncio
    async def test_inset_pads_to_exact_box(
        self, tmp_path: Path, make_image: Callable[..., Path]
    ) -> None:
        source = make_image(tmp_path / "a.png", size=(800, 600), color="red")
        thumb = await PillowImageBackend().thumbnail(source, 200, 200, "inset", "00F")
        target = tmp_path / "thumb.png"
        await thumb.save(target, quality=90)

        with Image.open(target) as img:
            assert img.size == (200, 200)
            # 800x600 shrinks to 200x150, leaving blue bands top and bottom
            assert img.convert("RGB").getpixel((100, 2)) == (0, 0, 255)
            assert img.convert("RGB").getpixel((100, 100)) == (255, 0, 0)

    @pytest.mark.asyncio
    async def test_inset_keeps_small_source_unpadded(
        self, tmp_path: Path, make_image: Callable[..., Path]
    ) -> None:
        source = make_image(tmp_path / "small.png", size=(50, 40), color="red")
        thumb = await PillowImageBackend().thumbnail(source, 200, 200)
        target = tmp_path / "thumb.png"
        await thumb.save(target, quality=100)

        with Image.open(target) as img:
            # A source that fits inside the box is neither enlarged nor padded
            assert img.size == (50, 40)
            assert img.convert("RGB").getpixel((0, 0)) == (255, 0, 0)

    @pytest.mark.asyncio
    async def test_outbound_crops_to_box(
        self, tmp_path: Path, make_image: Callable[..., Path]
    ) -> None:
        source = make_image(tmp_path / "a.png", size=(800, 600))
        thumb = await PillowImageBackend().thumbnail(source, 100, 100, "outbound")
        target = tmp_path / "thumb.jpg"
        await thumb.save(target, quality=80)

        with Image.open(target) as img:
            assert img.size == (100, 100)
            assert img.format == "JPEG"

    def test_parse_color(self) -> None:
        assert parse_color("FFF") == (255, 255, 255)
        assert parse_color("#1a2b3c") == (26, 43, 60)
