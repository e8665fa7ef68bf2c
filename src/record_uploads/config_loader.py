"""Attachment configuration loading.

Configuration is assembled in the following priority order (lowest to highest):
1. Pydantic model defaults (defined in config_models.py)
2. The attachments YAML file (or a dict passed in directly)
3. Environment variables

Every entry point raises ``ConfigError`` for invalid input so callers never
have to know about pydantic's ``ValidationError``.
"""

from __future__ import annotations

import logging
import os
import pathlib
import string
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

import yaml
from dotenv import load_dotenv
from pydantic import ValidationError

from record_uploads.config_models import AttachmentConfig, ImageAttachmentConfig
from record_uploads.errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "attachments.yaml"


@dataclass
class EnvVarMapping:
    """Defines how an environment variable maps to an attachment setting.

    Attributes:
        env_var: Environment variable name
        field: Attachment configuration field the value is applied to
        value_type: Type to convert the value to (str or bool)
    """

    env_var: str
    field: str
    value_type: type = str


# Overrides applied to every attachment entry
ENV_VAR_MAPPINGS: list[EnvVarMapping] = [
    EnvVarMapping("RECORD_UPLOADS_TEMP_FOLDER", "temp_folder"),
    EnvVarMapping("RECORD_UPLOADS_DELETE_EMPTY_DIR", "delete_empty_dir", bool),
]


def parse_env_value(value: str, value_type: type) -> Any:  # noqa: ANN401
    """Parse an environment variable value to the specified type."""
    if value_type is bool:
        return value.lower() in {"true", "1", "yes"}
    return value


def expand_env_vars_in_dict(
    data: Any,  # noqa: ANN401
) -> Any:  # noqa: ANN401
    """Substitute ``${VAR}`` references in attachment settings.

    Lets a YAML entry write ``path: ${MEDIA_ROOT}/docs/{id}`` and have the
    media root come from the environment. Only strings are rewritten, nested
    mappings and lists are walked, and anything else (numbers, callables) is
    returned untouched. A reference to an unset variable, or a ``$`` that does
    not start a reference, stays in the value as written.
    """
    if isinstance(data, Mapping):
        return {key: expand_env_vars_in_dict(value) for key, value in data.items()}
    if isinstance(data, list):
        return [expand_env_vars_in_dict(item) for item in data]
    if not isinstance(data, str) or "$" not in data:
        return data

    expanded = string.Template(data).safe_substitute(os.environ)
    if "${" in expanded:
        logger.debug(f"Unresolved environment reference left in setting: {expanded}")
    return expanded


def apply_env_var_overrides(
    entry: dict[str, Any],
    mappings: list[EnvVarMapping] | None = None,
) -> None:
    """Apply environment variable overrides to one attachment entry in place."""
    if mappings is None:
        mappings = ENV_VAR_MAPPINGS

    for mapping in mappings:
        env_value = os.getenv(mapping.env_var)
        if env_value is not None:
            entry[mapping.field] = parse_env_value(env_value, mapping.value_type)
            logger.debug(f"Applied env var {mapping.env_var} to {mapping.field}")


def _format_validation_error(kind: str, error: ValidationError) -> str:
    problems = "; ".join(
        f"{'.'.join(str(part) for part in err['loc']) or kind}: {err['msg']}"
        for err in error.errors()
    )
    return f"Invalid {kind} configuration: {problems}"


def build_attachment_config(
    data: Mapping[str, Any] | AttachmentConfig,
) -> AttachmentConfig:
    """Validate ``data`` into an AttachmentConfig.

    Raises:
        ConfigError: If required settings are missing or invalid.
    """
    if isinstance(data, AttachmentConfig):
        return data
    try:
        return AttachmentConfig.model_validate(dict(data))
    except ValidationError as e:
        raise ConfigError(_format_validation_error("attachment", e)) from e


def build_image_attachment_config(
    data: Mapping[str, Any] | ImageAttachmentConfig,
) -> ImageAttachmentConfig:
    """Validate ``data`` into an ImageAttachmentConfig.

    Raises:
        ConfigError: If required settings are missing, or a thumbnail profile
            has neither a positive width nor a positive height.
    """
    if isinstance(data, ImageAttachmentConfig):
        return data
    if isinstance(data, AttachmentConfig):
        data = data.model_dump()
    try:
        return ImageAttachmentConfig.model_validate(dict(data))
    except ValidationError as e:
        raise ConfigError(_format_validation_error("image attachment", e)) from e


def load_attachment_configs(
    config_file: str | pathlib.Path = DEFAULT_CONFIG_FILE,
    load_dotenv_file: bool = True,
) -> dict[str, AttachmentConfig]:
    """Load named attachment configurations from a YAML file.

    The file holds an ``attachments`` mapping; each entry has an optional
    ``kind`` (``file`` or ``image``) and the fields of the matching model::

        attachments:
          avatar:
            kind: image
            attribute: avatar
            path: "@uploads/user/{id}"
            url: "/media/user/{id}"
            thumbs:
              preview: {width: 200, height: 200}

    Args:
        config_file: Path to the YAML file
        load_dotenv_file: Whether to load a ``.env`` file before applying
            environment overrides

    Returns:
        Mapping of entry name to AttachmentConfig/ImageAttachmentConfig

    Raises:
        ConfigError: If the file cannot be read or an entry is invalid
    """
    if load_dotenv_file:
        load_dotenv()

    try:
        with open(config_file, encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
    except FileNotFoundError as e:
        raise ConfigError(f"Attachment config file {config_file} not found") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Error parsing {config_file}: {e}") from e

    if not isinstance(raw, dict) or not isinstance(raw.get("attachments", {}), dict):
        raise ConfigError(f"{config_file} must contain an 'attachments' mapping")

    configs: dict[str, AttachmentConfig] = {}
    for name, entry in raw.get("attachments", {}).items():
        if not isinstance(entry, dict):
            raise ConfigError(f"Attachment entry '{name}' must be a mapping")
        entry = expand_env_vars_in_dict(dict(entry))
        kind = entry.pop("kind", "file")
        apply_env_var_overrides(entry)
        if kind == "image":
            configs[name] = build_image_attachment_config(entry)
        elif kind == "file":
            configs[name] = build_attachment_config(entry)
        else:
            raise ConfigError(
                f"Attachment entry '{name}' has unknown kind '{kind}'"
            )

    logger.info(f"Loaded {len(configs)} attachment configurations from {config_file}")
    return configs
