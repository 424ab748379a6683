"""
Table manager.

The only component that issues schema-changing statements: creating and
dropping relations, adding and dropping columns. Built on the catalog, the
sanitizer and type inference.

Supported operations:
- Create relations (explicit column types, sample data, or bare)
- Drop relations (except protected ones)
- Add columns with inferred types
- Drop columns (except the identity column)
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from dyntable.runtime.catalog import SchemaCatalog
from dyntable.runtime.db_backend import DatabaseStore
from dyntable.runtime.errors import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from dyntable.runtime.logging import get_schema_logger, log_with_context
from dyntable.runtime.sanitizer import quote_identifier, require_identifier
from dyntable.runtime.type_inference import infer
from dyntable.specs.relation import IDENTITY_COLUMN, RelationDescriptor, StorageType

logger = get_schema_logger()


class TableManager:
    """
    Creates, alters and drops relations.

    Protected relations can never be dropped; default relations are
    created on demand by ``ensure_default_relations``.
    """

    def __init__(
        self,
        store: DatabaseStore,
        catalog: SchemaCatalog | None = None,
        *,
        protected_relations: tuple[str, ...] = ("users",),
        default_relations: tuple[str, ...] = ("users",),
    ):
        self.store = store
        self.catalog = catalog or SchemaCatalog(store)
        self.protected_relations = frozenset(protected_relations)
        self.default_relations = default_relations

    # -------------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------------

    def relation_exists(self, name: str) -> bool:
        return self.catalog.exists(require_identifier(name, "relation name"))

    def list_relations(self) -> list[str]:
        return self.catalog.relations()

    def require_relation(self, name: str) -> str:
        """
        Resolve a requested relation name to an existing relation.

        Raises:
            ValidationError: If the name sanitizes to nothing
            NotFoundError: If the relation does not exist
        """
        relation = require_identifier(name, "relation name")
        if not self.catalog.exists(relation):
            raise NotFoundError(f"Table '{relation}' not found")
        return relation

    def list_columns(self, name: str) -> list[str]:
        """Get column names of an existing relation in creation order."""
        relation = self.require_relation(name)
        return self.catalog.columns(relation)

    def describe_relation(self, name: str) -> RelationDescriptor:
        relation = self.require_relation(name)
        return RelationDescriptor(name=relation, columns=self.catalog.describe(relation))

    def column_exists(self, name: str, column: str) -> bool:
        relation = self.require_relation(name)
        return self.catalog.column_exists(relation, require_identifier(column, "column name"))

    # -------------------------------------------------------------------------
    # Relations
    # -------------------------------------------------------------------------

    def create_relation(
        self,
        name: str,
        columns: Mapping[str, str] | None = None,
        sample_data: Mapping[str, Any] | None = None,
    ) -> RelationDescriptor:
        """
        Create a relation.

        Exactly one of three modes applies: explicit ``columns`` (name to
        declared type), ``sample_data`` (name to sample value, types
        inferred) or neither (identity column only). The identity column is
        always first; any requested column that sanitizes to ``id`` is
        dropped.

        Args:
            name: Requested relation name
            columns: Column name to declared type string
            sample_data: Column name to sample value

        Returns:
            Descriptor of the created relation, read back from the catalog

        Raises:
            ValidationError: Bad name, unknown type, duplicate column, or both modes given
            ConflictError: If the relation already exists
        """
        relation = require_identifier(name, "relation name")
        if columns and sample_data:
            raise ValidationError("Provide either columns or sampleData, not both")

        if columns:
            definitions = self._explicit_columns(columns)
            mode = "columns"
        elif sample_data:
            definitions = self._inferred_columns(sample_data)
            mode = "sample_data"
        else:
            definitions = {}
            mode = "bare"

        if self.catalog.exists(relation):
            raise ConflictError(f"Table '{relation}' already exists")

        column_sql = [self.store.identity_column_sql]
        column_sql.extend(
            f"{quote_identifier(column)} {storage_type.to_sql()}"
            for column, storage_type in definitions.items()
        )
        self.store.execute_modify(
            f"CREATE TABLE {quote_identifier(relation)} ({', '.join(column_sql)})"
        )

        log_with_context(
            logger,
            logging.INFO,
            f"Created table '{relation}'",
            relation=relation,
            mode=mode,
            columns={column: t.to_sql() for column, t in definitions.items()},
        )
        return RelationDescriptor(name=relation, columns=self.catalog.describe(relation))

    def _explicit_columns(self, columns: Mapping[str, str]) -> dict[str, StorageType]:
        definitions: dict[str, StorageType] = {}
        for requested, declared in columns.items():
            column = self._column_name_for_create(requested, definitions)
            if column is None:
                continue
            try:
                definitions[column] = StorageType.parse(declared)
            except ValueError as exc:
                raise ValidationError(f"Column '{requested}': {exc}") from exc
        return definitions

    def _inferred_columns(self, sample_data: Mapping[str, Any]) -> dict[str, StorageType]:
        definitions: dict[str, StorageType] = {}
        for requested, sample in sample_data.items():
            column = self._column_name_for_create(requested, definitions)
            if column is not None:
                definitions[column] = infer(column, sample)
        return definitions

    def _column_name_for_create(
        self, requested: str, seen: Mapping[str, StorageType]
    ) -> str | None:
        column = require_identifier(requested, "column name")
        if column == IDENTITY_COLUMN:
            return None
        if column in seen:
            raise ValidationError(
                f"Column '{requested}' collides with another column named '{column}'"
            )
        return column

    def drop_relation(self, name: str) -> None:
        """
        Drop a relation if it exists.

        Raises:
            ForbiddenError: If the relation is protected, whether or not it exists
        """
        relation = require_identifier(name, "relation name")
        if relation in self.protected_relations or name in self.protected_relations:
            raise ForbiddenError(f"Cannot delete the protected '{relation}' table")

        self.store.execute_modify(f"DROP TABLE IF EXISTS {quote_identifier(relation)}")
        log_with_context(logger, logging.INFO, f"Dropped table '{relation}'", relation=relation)

    def ensure_default_relations(self) -> list[str]:
        """
        Create each default relation that does not exist yet.

        Returns:
            Names of the relations that were created
        """
        created = []
        for name in self.default_relations:
            if not self.catalog.exists(name):
                self.create_relation(name)
                created.append(name)
        return created

    # -------------------------------------------------------------------------
    # Columns
    # -------------------------------------------------------------------------

    def add_column(self, name: str, requested_name: str, sample_value: Any = None) -> str:
        """
        Add a column with an inferred type.

        The stored name may differ from the requested one after
        sanitization; callers reconcile payload keys against the returned
        name. A sanitized name that already exists is rejected rather than
        reusing the existing column.

        Args:
            name: Relation name
            requested_name: Requested column name
            sample_value: Value used to infer the column type

        Returns:
            The actual stored column name

        Raises:
            NotFoundError: If the relation does not exist
            ValidationError: If the column name sanitizes to nothing
            ConflictError: If the sanitized column already exists
        """
        relation = self.require_relation(name)
        column = require_identifier(requested_name, "column name")
        if self.catalog.column_exists(relation, column):
            raise ConflictError(f"Column '{column}' already exists in table '{relation}'")

        storage_type = infer(column, sample_value)
        self.store.execute_modify(
            f"ALTER TABLE {quote_identifier(relation)} "
            f"ADD COLUMN {quote_identifier(column)} {storage_type.to_sql()}"
        )

        log_with_context(
            logger,
            logging.INFO,
            f"Added column '{column}' to table '{relation}'",
            relation=relation,
            column=column,
            requested=requested_name,
            type=storage_type.to_sql(),
        )
        return column

    def drop_column(self, name: str, column_name: str) -> None:
        """
        Drop a column.

        Raises:
            ForbiddenError: If the column is the identity column
            NotFoundError: If the relation or column does not exist
        """
        column = require_identifier(column_name, "column name")
        if column == IDENTITY_COLUMN:
            raise ForbiddenError("Cannot delete ID column")

        relation = self.require_relation(name)
        if not self.catalog.column_exists(relation, column):
            raise NotFoundError(f"Column '{column}' not found in table '{relation}'")

        self.store.execute_modify(
            f"ALTER TABLE {quote_identifier(relation)} DROP COLUMN {quote_identifier(column)}"
        )
        log_with_context(
            logger,
            logging.INFO,
            f"Dropped column '{column}' from table '{relation}'",
            relation=relation,
            column=column,
        )
