"""Path and URL template resolution for attachments.

Templates are strings such as ``"@uploads/user/{id}"`` whose ``{field}``
placeholders are filled from the record, or callables that build the string
themselves. Placeholders that do not resolve to a string or number are left
in place so a misconfigured template shows up in the resulting path.
"""

import logging
import re
from collections.abc import Callable, Mapping
from numbers import Number
from typing import Any

from record_uploads.errors import ConfigError

logger = logging.getLogger(__name__)

_PLACEHOLDER_RE = re.compile(r"{([^}]+)}")

_MISSING = object()


def read_field(record: Any, name: str) -> Any:  # noqa: ANN401
    """Read a possibly dotted field name (``"owner.id"``) from the record.

    Each segment is looked up as a mapping key or an attribute. The record's
    own attributes fall back to ``get_attribute`` when it has one.
    """
    current = record
    for index, part in enumerate(name.split(".")):
        if isinstance(current, Mapping):
            current = current.get(part, _MISSING)
        else:
            value = getattr(current, part, _MISSING)
            if value is _MISSING and index == 0 and hasattr(current, "get_attribute"):
                value = current.get_attribute(part)
            current = value
        if current is _MISSING or current is None:
            return None
    return current


def _is_scalar(value: Any) -> bool:  # noqa: ANN401
    if isinstance(value, bool):
        return False
    return isinstance(value, str | Number)


def resolve_path_template(
    template: Any,  # noqa: ANN401
    record: Any,  # noqa: ANN401
    get_field: Callable[[Any, str], Any] = read_field,
) -> str:
    """Replace all placeholders in ``template`` with values from ``record``.

    Args:
        template: A string with ``{field}`` placeholders, or a callable
            receiving the record and returning a string
        record: The record supplying field values
        get_field: Accessor used to read a field from the record

    Returns:
        The resolved string

    Raises:
        ConfigError: If the template is neither a string nor a callable
    """
    if isinstance(template, str):

        def _replace(match: re.Match[str]) -> str:
            value = get_field(record, match.group(1))
            if _is_scalar(value):
                return str(value)
            logger.debug(f"Placeholder {match.group(0)} left unresolved")
            return match.group(0)

        return _PLACEHOLDER_RE.sub(_replace, template)
    if callable(template):
        return str(template(record))
    raise ConfigError(
        f"path must be a string or callable: {type(template).__name__} given"
    )


def expand_aliases(path: str, aliases: Mapping[str, str]) -> str:
    """Replace a leading ``@alias`` segment with its configured value.

    Unknown aliases and paths without an alias are returned unchanged.
    """
    if not path.startswith("@"):
        return path
    alias, sep, rest = path.partition("/")
    if alias not in aliases:
        return path
    base = aliases[alias].rstrip("/")
    return f"{base}{sep}{rest}" if sep else base


def join_path(base: str, filename: str) -> str:
    """Join a resolved directory/URL with a filename."""
    return f"{base.rstrip('/')}/{filename}"
