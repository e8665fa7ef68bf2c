"""
Image backend implementations.

This module provides the Pillow-based ImageBackend used to read image
dimensions and render thumbnails. Pillow calls are blocking, so they run in a
worker thread.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from PIL import Image, ImageColor, ImageOps

from record_uploads.interfaces import ImageBackend, ImageSize

logger = logging.getLogger(__name__)

# Formats that cannot store an alpha channel
_OPAQUE_FORMATS = {"JPEG", "BMP"}


def parse_color(color: str) -> tuple[int, int, int]:
    """Parse a hex color with or without the leading ``#`` (``"FFF"``, ``"#1a2b3c"``)."""
    value = color if color.startswith("#") else f"#{color}"
    rgb = ImageColor.getrgb(value)
    return rgb[0], rgb[1], rgb[2]


class PillowThumbnail:
    """A rendered thumbnail held in memory until saved."""

    def __init__(self, image: Image.Image) -> None:
        self.image = image

    @property
    def size(self) -> tuple[int, int]:
        return self.image.size

    async def save(self, path: str | Path, quality: int) -> None:
        await asyncio.to_thread(self._save, Path(path), quality)

    def _save(self, path: Path, quality: int) -> None:
        image_format = Image.registered_extensions().get(path.suffix.lower(), "PNG")
        image = self.image
        if image_format in _OPAQUE_FORMATS and image.mode not in {"RGB", "L"}:
            image = image.convert("RGB")
        image.save(path, format=image_format, quality=quality)
        logger.debug(f"Saved thumbnail {path} ({image_format}, quality {quality})")


class PillowImageBackend:
    """ImageBackend implementation using Pillow."""

    async def open(self, path: str | Path) -> ImageSize:
        return await asyncio.to_thread(self._open, Path(path))

    async def thumbnail(
        self,
        path: str | Path,
        width: int,
        height: int,
        mode: str = "inset",
        bg_color: str = "FFF",
    ) -> PillowThumbnail:
        image = await asyncio.to_thread(
            self._thumbnail, Path(path), width, height, mode, bg_color
        )
        return PillowThumbnail(image)

    def _open(self, path: Path) -> ImageSize:
        with Image.open(path) as img:
            return ImageSize(width=img.width, height=img.height)

    def _thumbnail(
        self, path: Path, width: int, height: int, mode: str, bg_color: str
    ) -> Image.Image:
        with Image.open(path) as source:
            source = ImageOps.exif_transpose(source)
            if source.mode not in {"RGB", "RGBA"}:
                has_alpha = source.mode in {"LA", "PA"} or (
                    source.mode == "P" and "transparency" in source.info
                )
                source = source.convert("RGBA" if has_alpha else "RGB")

            if mode == "outbound":
                # Fill the whole box, cropping whatever overflows
                return ImageOps.fit(
                    source, (width, height), Image.Resampling.LANCZOS
                )

            # A source that already fits inside the box is kept as is, unpadded
            if source.width <= width and source.height <= height:
                return source.copy()

            # Inset: shrink to fit inside the box, then center on a canvas of
            # the exact box size filled with the background color
            thumb = source.copy()
            thumb.thumbnail((width, height), Image.Resampling.LANCZOS)
            if thumb.size == (width, height):
                return thumb

            background = parse_color(bg_color)
            canvas = Image.new(
                thumb.mode,
                (width, height),
                background + (255,) if thumb.mode == "RGBA" else background,
            )
            offset = ((width - thumb.width) // 2, (height - thumb.height) // 2)
            canvas.paste(thumb, offset, thumb if thumb.mode == "RGBA" else None)
            return canvas


def default_image_backend() -> ImageBackend:
    """Return the image backend used when none is configured."""
    return PillowImageBackend()
