"""
Record engine - generic CRUD over relations discovered at runtime.

Every operation re-reads the relation's columns from the live catalog;
nothing about the schema is remembered between calls. Creating a record
grows the schema for unknown fields (best effort), updating never does.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from decimal import Decimal
from typing import Any

from dyntable.runtime.catalog import SchemaCatalog
from dyntable.runtime.db_backend import DatabaseStore
from dyntable.runtime.errors import (
    DyntableError,
    NoFieldsError,
    NotFoundError,
    ValidationError,
)
from dyntable.runtime.logging import get_engine_logger, log_with_context
from dyntable.runtime.sanitizer import quote_identifier
from dyntable.runtime.table_manager import TableManager
from dyntable.runtime.type_inference import is_email
from dyntable.specs.relation import IDENTITY_COLUMN, Column, StorageKind
from dyntable.specs.values import value_kind

logger = get_engine_logger()

Record = dict[str, Any]


# =============================================================================
# Payload Validation
# =============================================================================


def validate_payload(payload: Mapping[str, Any]) -> list[str]:
    """
    Check a payload against the domain rules.

    Rules:
    - Every value is a scalar (string, integer, decimal, boolean or null)
    - ``email``, when present and not null, is an email-shaped string

    Returns:
        List of error messages (empty when valid)
    """
    errors: list[str] = []
    for key, value in payload.items():
        if value_kind(value) is None:
            errors.append(f"Unsupported value for field '{key}': {type(value).__name__}")

    email = payload.get("email")
    if email is not None and not is_email(email):
        errors.append("Invalid email format")
    return errors


def _check_payload(payload: Mapping[str, Any]) -> None:
    if not isinstance(payload, Mapping):
        raise ValidationError("Record payload must be an object")
    errors = validate_payload(payload)
    if errors:
        raise ValidationError(f"validation failed: {'; '.join(errors)}", errors)


def _check_identity(record_id: Any) -> int:
    if isinstance(record_id, bool) or not isinstance(record_id, int):
        raise ValidationError(f"Invalid record ID: {record_id!r}")
    return record_id


# =============================================================================
# Value Conversion
# =============================================================================


def _db_to_python(value: Any, column: Column) -> Any:
    """Convert a stored value back to its Python kind based on the column type."""
    if value is None:
        return None
    kind = column.storage_type.kind
    if kind == StorageKind.BOOLEAN:
        return bool(value)
    if kind == StorageKind.DECIMAL:
        return value if isinstance(value, Decimal) else Decimal(str(value))
    return value


def _row_to_record(row: Mapping[str, Any], columns: list[Column]) -> Record:
    """Build a record from a row; NULL columns are left out."""
    record: Record = {}
    for column in columns:
        value = row.get(column.name)
        if value is not None:
            record[column.name] = _db_to_python(value, column)
    return record


# =============================================================================
# Record Engine
# =============================================================================


class RecordEngine:
    """
    List, get, create, update and delete records of any relation.

    Schema changes are delegated to the table manager; this class only
    issues data-manipulation statements.
    """

    def __init__(self, store: DatabaseStore, tables: TableManager | None = None):
        """
        Initialize the engine.

        Args:
            store: Opened store handle
            tables: Table manager used for schema evolution (built on the
                same store when omitted)
        """
        self.store = store
        self.tables = tables or TableManager(store)
        self.catalog: SchemaCatalog = self.tables.catalog

    def _columns(self, name: str) -> tuple[str, list[Column]]:
        relation = self.tables.require_relation(name)
        return relation, self.catalog.describe(relation)

    def list_records(self, name: str) -> list[Record]:
        """
        Get every record of a relation, ordered by identity.

        The full result is materialized before returning.
        """
        relation, columns = self._columns(name)
        projection = ", ".join(quote_identifier(c.name) for c in columns)
        rows = self.store.execute(
            f"SELECT {projection} FROM {quote_identifier(relation)} "
            f"ORDER BY {quote_identifier(IDENTITY_COLUMN)}"
        )
        return [_row_to_record(row, columns) for row in rows]

    def get_record(self, name: str, record_id: int) -> Record:
        """
        Get a record by identity.

        Raises:
            NotFoundError: If the relation or the row does not exist
        """
        record_id = _check_identity(record_id)
        relation, columns = self._columns(name)
        projection = ", ".join(quote_identifier(c.name) for c in columns)
        rows = self.store.execute(
            f"SELECT {projection} FROM {quote_identifier(relation)} "
            f"WHERE {quote_identifier(IDENTITY_COLUMN)} = ?",
            (record_id,),
        )
        if not rows:
            raise NotFoundError(f"Record {record_id} not found in table '{relation}'")
        return _row_to_record(rows[0], columns)

    def create_record(self, name: str, payload: Mapping[str, Any]) -> Record:
        """
        Create a record, growing the schema for unknown fields.

        Steps:
        1. Validate the payload; nothing is touched if it fails
        2. Add a column for each unknown field, inferring its type from the
           field's value. A failed addition is logged and the field dropped.
        3. Insert the fields that have a column; ``id`` is always assigned
           by the store. When several keys land on the same column the
           first one wins and the rest are logged and dropped.

        Returns:
            The written fields plus ``id``. Keys are the stored column
            names, not the raw payload keys, and dropped fields are not
            echoed back.

        Raises:
            NotFoundError: If the relation does not exist
            ValidationError: If the payload breaks a domain rule
            NoFieldsError: If no field is left to insert
            StoreError: If the store rejects the insert (e.g. an integer
                past 64 bits on SQLite)
        """
        relation = self.tables.require_relation(name)
        _check_payload(payload)

        columns = self.catalog.columns(relation)
        values: dict[str, Any] = {}

        for key, value in payload.items():
            if key == IDENTITY_COLUMN:
                continue
            if key in columns:
                column = key
            else:
                try:
                    column = self.tables.add_column(relation, key, value)
                except DyntableError as exc:
                    log_with_context(
                        logger,
                        logging.WARNING,
                        f"Failed to add column '{key}' to table '{relation}'; field dropped",
                        relation=relation,
                        field=key,
                        error=str(exc),
                    )
                    continue
                columns.append(column)

            # An earlier key already sanitized onto this column
            if column in values:
                log_with_context(
                    logger,
                    logging.WARNING,
                    f"Field '{key}' maps to column '{column}' already written; field dropped",
                    relation=relation,
                    field=key,
                    column=column,
                )
                continue
            values[column] = value

        if not values:
            raise NoFieldsError("no valid fields provided")

        column_sql = ", ".join(quote_identifier(column) for column in values)
        placeholders = ", ".join("?" * len(values))
        new_id = self.store.execute_insert(
            f"INSERT INTO {quote_identifier(relation)} ({column_sql}) VALUES ({placeholders})",
            list(values.values()),
        )

        logger.debug("Created record %s in '%s'", new_id, relation)
        return {IDENTITY_COLUMN: new_id, **values}

    def update_record(self, name: str, record_id: int, payload: Mapping[str, Any]) -> None:
        """
        Update the fields of a record that exist in the current schema.

        Never adds columns. Whether a row with ``record_id`` exists is not
        checked: updating a missing record completes the same way.

        Raises:
            NotFoundError: If the relation does not exist
            ValidationError: If the payload breaks a domain rule
            NoFieldsError: If no payload field matches an existing column
        """
        record_id = _check_identity(record_id)
        relation = self.tables.require_relation(name)
        _check_payload(payload)

        columns = self.catalog.columns(relation)
        values = {
            column: payload[column]
            for column in columns
            if column != IDENTITY_COLUMN and column in payload
        }
        if not values:
            raise NoFieldsError("no valid fields to update")

        set_clause = ", ".join(f"{quote_identifier(column)} = ?" for column in values)
        self.store.execute_modify(
            f"UPDATE {quote_identifier(relation)} SET {set_clause} "
            f"WHERE {quote_identifier(IDENTITY_COLUMN)} = ?",
            [*values.values(), record_id],
        )

    def delete_record(self, name: str, record_id: int) -> None:
        """
        Delete a record by identity.

        Deleting an identity that does not exist completes without error.

        Raises:
            NotFoundError: If the relation does not exist
        """
        record_id = _check_identity(record_id)
        relation = self.tables.require_relation(name)
        self.store.execute_modify(
            f"DELETE FROM {quote_identifier(relation)} "
            f"WHERE {quote_identifier(IDENTITY_COLUMN)} = ?",
            (record_id,),
        )
