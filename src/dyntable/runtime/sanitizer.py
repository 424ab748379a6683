"""
Identifier sanitization for relation and column names.

Table and column names cannot be bound as statement parameters, so every
caller-supplied name is reduced to the ``[a-z0-9_]`` alphabet before it is
interpolated into generated SQL.
"""

from __future__ import annotations

import re

from dyntable.runtime.errors import ValidationError

# Everything outside the identifier alphabet, after lowercasing
_DISALLOWED_RE = re.compile(r"[^a-z0-9_]")

# Shape of a sanitized identifier
IDENTIFIER_RE = re.compile(r"^[a-z0-9_]*$")


def sanitize(label: str) -> str:
    """Reduce a caller-supplied label to a storage identifier.

    Lowercases, turns spaces into underscores, then deletes every
    character outside ``[a-z0-9_]``. Idempotent and total; the result
    may be empty for pathological input.

    Args:
        label: Requested relation or column name

    Returns:
        Sanitized identifier (possibly empty)
    """
    if not label:
        return ""
    return _DISALLOWED_RE.sub("", label.lower().replace(" ", "_"))


def require_identifier(label: str, context: str = "identifier") -> str:
    """Sanitize a label and reject an empty result.

    Raises:
        ValidationError: If nothing usable survives sanitization
    """
    name = sanitize(label)
    if not name:
        raise ValidationError(f"Invalid {context} {label!r}: no usable characters")
    return name


def quote_identifier(name: str) -> str:
    """Quote a sanitized identifier for interpolation into SQL.

    Raises:
        ValueError: If ``name`` is empty or not already sanitized
    """
    if not name or not IDENTIFIER_RE.match(name):
        raise ValueError(f"Refusing to quote unsanitized identifier {name!r}")
    return f'"{name}"'
