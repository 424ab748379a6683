"""
Schema catalog.

Reads relation and column metadata from the live store. Nothing is cached:
every call is a metadata round trip, so concurrent writers and
out-of-band schema changes are always observed.
"""

from __future__ import annotations

from dyntable.runtime.db_backend import DatabaseStore
from dyntable.specs.relation import Column, StorageType


class SchemaCatalog:
    """Live metadata queries against a store."""

    def __init__(self, store: DatabaseStore):
        self.store = store

    @property
    def _postgres(self) -> bool:
        return self.store.backend_type == "postgres"

    def exists(self, relation: str) -> bool:
        """Check whether a relation exists."""
        if self._postgres:
            rows = self.store.execute(
                "SELECT 1 AS found FROM information_schema.tables "
                "WHERE table_schema = 'public' AND table_name = ?",
                (relation,),
            )
        else:
            rows = self.store.execute(
                "SELECT 1 AS found FROM sqlite_master WHERE type = 'table' AND name = ?",
                (relation,),
            )
        return bool(rows)

    def relations(self) -> list[str]:
        """List user relations, sorted by name."""
        if self._postgres:
            rows = self.store.execute(
                "SELECT table_name AS name FROM information_schema.tables "
                "WHERE table_schema = 'public' AND table_type = 'BASE TABLE' "
                "ORDER BY table_name"
            )
        else:
            rows = self.store.execute(
                "SELECT name FROM sqlite_master "
                "WHERE type = 'table' AND name NOT LIKE 'sqlite_%' ORDER BY name"
            )
        return [row["name"] for row in rows]

    def describe(self, relation: str) -> list[Column]:
        """
        Get the columns of a relation with their storage types.

        Returns:
            Columns in creation order (identity first); empty if the
            relation does not exist
        """
        if self._postgres:
            rows = self.store.execute(
                "SELECT column_name, data_type, character_maximum_length, "
                "numeric_precision, numeric_scale "
                "FROM information_schema.columns "
                "WHERE table_schema = 'public' AND table_name = ? "
                "ORDER BY ordinal_position",
                (relation,),
            )
            return [
                Column(name=row["column_name"], storage_type=_pg_storage_type(row))
                for row in rows
            ]

        rows = self.store.execute(
            "SELECT name, type FROM pragma_table_info(?) ORDER BY cid",
            (relation,),
        )
        return [
            Column(name=row["name"], storage_type=StorageType.from_catalog(row["type"]))
            for row in rows
        ]

    def columns(self, relation: str) -> list[str]:
        """Get column names in creation order (identity first)."""
        return [column.name for column in self.describe(relation)]

    def column_exists(self, relation: str, column: str) -> bool:
        return column in self.columns(relation)


def _pg_storage_type(row: dict[str, object]) -> StorageType:
    """Rebuild a storage type from an information_schema.columns row."""
    data_type = str(row["data_type"])
    if data_type == "character varying" and row["character_maximum_length"]:
        return StorageType.from_catalog(f"{data_type}({row['character_maximum_length']})")
    if data_type == "numeric" and row["numeric_precision"]:
        return StorageType.from_catalog(
            f"numeric({row['numeric_precision']},{row['numeric_scale'] or 0})"
        )
    return StorageType.from_catalog(data_type)
