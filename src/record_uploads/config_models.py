"""Pydantic models for attachment configuration.

An attachment configuration describes how one record attribute is bound to a
file on disk: where the file lives, how it is named and which cleanup steps run
when the record is updated or deleted. Image attachments add thumbnail
profiles on top.

Models are frozen once validated. Build them through
``record_uploads.config_loader`` so invalid input surfaces as ``ConfigError``.
"""

from __future__ import annotations

import tempfile
from collections.abc import Callable
from typing import Any, Literal

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationInfo,
    field_validator,
    model_validator,
)

# A path/URL template is either a string with ``{field}`` placeholders or a
# callable receiving the record and returning the resolved string.
PathTemplate = str | Callable[..., str]

FitMode = Literal["inset", "outbound"]


class AttachmentConfig(BaseModel):
    """Configuration for a single file attribute."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    attribute: str = Field(min_length=1)
    scenarios: frozenset[str] = frozenset()
    path: PathTemplate
    url: PathTemplate
    instance_by_name: bool = False
    # True generates a unique name, False keeps the sanitized original name,
    # a callable receives the UploadedFile and returns the name to use.
    generate_new_name: bool | Callable[..., str] = True
    unlink_on_save: bool = True
    unlink_on_delete: bool = True
    delete_temp_file: bool = True
    delete_empty_dir: bool = True
    restore_value_after_fail_validation: bool = True
    temp_folder: str = Field(default_factory=tempfile.gettempdir)
    aliases: dict[str, str] = Field(default_factory=dict)

    @field_validator("path", "url")
    @classmethod
    def _template_not_empty(cls, value: Any, info: ValidationInfo) -> Any:  # noqa: ANN401
        if isinstance(value, str) and not value.strip():
            raise ValueError(f'The "{info.field_name}" property must be set.')
        return value

    @field_validator("aliases")
    @classmethod
    def _aliases_start_with_at(cls, value: dict[str, str]) -> dict[str, str]:
        for alias in value:
            if not alias.startswith("@"):
                raise ValueError(f"Alias '{alias}' must start with '@'")
        return value


class ThumbProfile(BaseModel):
    """Configuration for one thumbnail profile."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    width: int | None = None
    height: int | None = None
    quality: int = Field(default=100, ge=1, le=100)
    mode: FitMode = "inset"
    bg_color: str = "FFF"

    @model_validator(mode="after")
    def _check_size(self) -> ThumbProfile:
        # A side may be omitted, but a side that is given must be positive
        sides = [side for side in (self.width, self.height) if side is not None]
        if not sides or min(sides) < 1:
            raise ValueError(
                "Length of either side of thumb cannot be 0 or negative, "
                f"current size is {self.width}x{self.height}"
            )
        return self


def _default_thumbs() -> dict[str, ThumbProfile]:
    return {"thumb": ThumbProfile(width=200, height=200, quality=90)}


class ImageAttachmentConfig(AttachmentConfig):
    """Configuration for an image attribute with derived thumbnails.

    ``thumb_path`` and ``thumb_url`` fall back to ``path`` and ``url`` when
    unset; read them through ``effective_thumb_path``/``effective_thumb_url``.
    """

    placeholder: str | None = None
    placeholder_url: str | None = None
    create_thumbs_on_save: bool = True
    create_thumbs_on_request: bool = False
    delete_original_file: bool = False
    thumbs: dict[str, ThumbProfile] = Field(default_factory=_default_thumbs)
    thumb_path: PathTemplate | None = None
    thumb_url: PathTemplate | None = None

    @property
    def effective_thumb_path(self) -> PathTemplate:
        """Get the thumbnail path template, defaulting to the main path."""
        return self.thumb_path if self.thumb_path is not None else self.path

    @property
    def effective_thumb_url(self) -> PathTemplate:
        """Get the thumbnail URL template, defaulting to the main URL."""
        return self.thumb_url if self.thumb_url is not None else self.url
