"""Thumbnail derivation for image attachments.

A thumbnail is named ``{profile}-{original filename}`` and rendered from the
original image according to its profile: both dimensions given means the image
is fit into that box, a single dimension means the other one is inferred from
the source's aspect ratio. Existing thumbnails are never regenerated.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from pathlib import Path

import aiofiles.os

from record_uploads.config_models import ThumbProfile
from record_uploads.interfaces import ImageBackend, ImageSize
from record_uploads.janitor import ensure_dir

logger = logging.getLogger(__name__)


def thumb_file_name(filename: str, profile: str = "thumb") -> str:
    return f"{profile}-{filename}"


def _ceil_div(numerator: int, denominator: int) -> int:
    return -(-numerator // denominator)


def compute_thumb_size(
    width: int | None, height: int | None, source: ImageSize
) -> tuple[int, int]:
    """
    Compute the target box of a thumbnail.

    When only one side is given the other is derived from the source's aspect
    ratio and rounded up, e.g. width 400 on an 800x600 source gives 400x300.

    Args:
        width: Requested width, or None/0 to infer it
        height: Requested height, or None/0 to infer it
        source: Dimensions of the source image

    Returns:
        Tuple of (width, height)
    """
    if width and height:
        return width, height
    if width:
        return width, _ceil_div(width * source.height, source.width)
    if height:
        return _ceil_div(height * source.width, source.height), height
    raise ValueError("Either width or height must be given")


class ThumbnailEngine:
    """Renders thumbnail files through an ImageBackend."""

    def __init__(self, backend: ImageBackend) -> None:
        self.backend = backend

    async def generate(
        self, profile: ThumbProfile, source: str | Path, target: str | Path
    ) -> None:
        """Render ``source`` into ``target`` according to ``profile``."""
        width, height = profile.width, profile.height
        if not width or not height:
            size = await self.backend.open(source)
            width, height = compute_thumb_size(width, height, size)

        thumbnail = await self.backend.thumbnail(
            source, width, height, profile.mode, profile.bg_color
        )
        await thumbnail.save(target, quality=profile.quality)
        logger.info(f"Generated {width}x{height} thumbnail {target} from {source}")

    async def ensure(
        self,
        source: str | Path,
        targets: Mapping[str, tuple[ThumbProfile, str]],
        setting: str = "thumb_path",
    ) -> list[str]:
        """
        Make sure every target thumbnail exists.

        Args:
            source: Path of the original image
            targets: Mapping of profile name to (profile, thumbnail path)
            setting: Name of the setting the thumbnail directory came from,
                used in error messages

        Returns:
            The thumbnail paths that were generated by this call

        Raises:
            StorageIOError: If a thumbnail directory cannot be created
        """
        generated: list[str] = []
        for profile_name, (profile, target) in targets.items():
            await ensure_dir(Path(target).parent, setting)
            if await aiofiles.os.path.exists(target):
                logger.debug(f"Thumbnail {target} for profile {profile_name} exists")
                continue
            await self.generate(profile, source, target)
            generated.append(target)
        return generated
