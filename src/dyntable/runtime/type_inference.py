"""
Column type inference.

Maps a candidate column name and a sample value to a storage type. Used
only when a column is introduced; the result is never stored separately,
the live schema is the only record of it.

Resolution order:
1. Name heuristics (substring match, fixed priority, first match wins)
2. Sample value kind
3. TEXT as the fallback
"""

from __future__ import annotations

import re
from typing import Any

from dyntable.specs.relation import StorageType
from dyntable.specs.values import ValueKind, value_kind

EMAIL_PATTERN = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")

# Longest string that still fits the default bounded string column
MAX_BOUNDED_STRING = 255

# Checked in order; the first rule whose any substring occurs wins.
NAME_RULES: list[tuple[tuple[str, ...], StorageType]] = [
    (("email", "mail"), StorageType.string(255)),
    (("phone", "tel"), StorageType.string(20)),
    (("url", "website"), StorageType.text()),
    (("age",), StorageType.integer()),
    (("salary", "price", "amount"), StorageType.decimal(12, 2)),
]


def is_email(value: Any) -> bool:
    """Check whether a value is an email-shaped string."""
    return isinstance(value, str) and EMAIL_PATTERN.match(value) is not None


def infer_from_name(column_name: str) -> StorageType | None:
    """Apply the naming-convention rules, or return None if none match."""
    lowered = column_name.lower()
    for needles, storage_type in NAME_RULES:
        if any(needle in lowered for needle in needles):
            return storage_type
    return None


def infer_from_value(sample_value: Any) -> StorageType:
    """Derive a storage type from the kind of a sample value."""
    kind = value_kind(sample_value)

    if kind == ValueKind.STRING:
        if is_email(sample_value):
            return StorageType.string(255)
        if len(sample_value) > MAX_BOUNDED_STRING:
            return StorageType.text()
        return StorageType.string(255)
    if kind == ValueKind.INTEGER:
        return StorageType.integer()
    if kind == ValueKind.DECIMAL:
        return StorageType.decimal(10, 2)
    if kind == ValueKind.BOOLEAN:
        return StorageType.boolean()
    return StorageType.text()


def infer(column_name: str, sample_value: Any = None) -> StorageType:
    """
    Infer the storage type for a new column.

    Name rules always win over the sample, even when they disagree
    (``infer("email", 42)`` is still a bounded string).

    Args:
        column_name: Candidate (sanitized) column name
        sample_value: Example value for the column, may be None

    Returns:
        Storage type for the column
    """
    return infer_from_name(column_name) or infer_from_value(sample_value)
