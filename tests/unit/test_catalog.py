"""
Tests for the schema catalog.

The catalog must always reflect the live schema, including changes made
behind its back.
"""

from __future__ import annotations

from dyntable.runtime.catalog import SchemaCatalog
from dyntable.runtime.db_backend import DatabaseStore
from dyntable.specs.relation import StorageType


class TestSchemaCatalog:
    """Test live metadata queries on SQLite."""

    def test_exists(self, store: DatabaseStore, catalog: SchemaCatalog):
        assert not catalog.exists("things")
        store.execute_modify('CREATE TABLE "things" ("id" INTEGER PRIMARY KEY)')
        assert catalog.exists("things")

    def test_relations_sorted_and_internal_tables_hidden(
        self, store: DatabaseStore, catalog: SchemaCatalog
    ):
        # AUTOINCREMENT creates the internal sqlite_sequence table
        store.execute_modify('CREATE TABLE "zeta" ("id" INTEGER PRIMARY KEY AUTOINCREMENT)')
        store.execute_modify('CREATE TABLE "alpha" ("id" INTEGER PRIMARY KEY AUTOINCREMENT)')
        assert catalog.relations() == ["alpha", "zeta"]

    def test_columns_in_creation_order(self, store: DatabaseStore, catalog: SchemaCatalog):
        store.execute_modify('CREATE TABLE "t" ("id" INTEGER PRIMARY KEY, "b" TEXT, "a" TEXT)')
        store.execute_modify('ALTER TABLE "t" ADD COLUMN "c" INTEGER')
        assert catalog.columns("t") == ["id", "b", "a", "c"]

    def test_columns_of_missing_relation(self, catalog: SchemaCatalog):
        assert catalog.columns("missing") == []

    def test_describe_parses_types(self, store: DatabaseStore, catalog: SchemaCatalog):
        store.execute_modify(
            'CREATE TABLE "t" ("id" INTEGER PRIMARY KEY, "name" VARCHAR(40), '
            '"price" DECIMAL(12,2), "active" BOOLEAN, "created" TIMESTAMP)'
        )
        types = {c.name: c.storage_type for c in catalog.describe("t")}
        assert types == {
            "id": StorageType.integer(),
            "name": StorageType.string(40),
            "price": StorageType.decimal(12, 2),
            "active": StorageType.boolean(),
            "created": StorageType.text(),
        }

    def test_not_cached(self, store: DatabaseStore, catalog: SchemaCatalog):
        store.execute_modify('CREATE TABLE "t" ("id" INTEGER PRIMARY KEY)')
        assert catalog.columns("t") == ["id"]

        # Out-of-band change through a second handle on the same file
        other = DatabaseStore(db_path=store._db_path)
        with other:
            other.execute_modify('ALTER TABLE "t" ADD COLUMN "extra" TEXT')

        assert catalog.columns("t") == ["id", "extra"]
        assert catalog.column_exists("t", "extra")
