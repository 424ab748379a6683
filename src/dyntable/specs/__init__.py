"""
Relation specification types.

This module exports the schema and value types shared by the runtime.
"""

from dyntable.specs.relation import (
    IDENTITY_COLUMN,
    Column,
    RelationDescriptor,
    StorageKind,
    StorageType,
)
from dyntable.specs.values import ValueKind, value_kind

__all__ = [
    "IDENTITY_COLUMN",
    "Column",
    "RelationDescriptor",
    "StorageKind",
    "StorageType",
    "ValueKind",
    "value_kind",
]
