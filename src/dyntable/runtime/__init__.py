"""
Record engine runtime.

This package provides:
- DatabaseStore: SQLite/PostgreSQL store handle
- SchemaCatalog: live relation and column metadata
- TableManager: relation and column DDL
- RecordEngine: generic record CRUD with schema evolution on create
- create_app: FastAPI adapter (requires fastapi)
"""

from dyntable.runtime.catalog import SchemaCatalog
from dyntable.runtime.config import EngineConfig
from dyntable.runtime.db_backend import DatabaseStore
from dyntable.runtime.errors import (
    ConflictError,
    DyntableError,
    ForbiddenError,
    NoFieldsError,
    NotFoundError,
    StoreError,
    ValidationError,
)
from dyntable.runtime.record_engine import RecordEngine
from dyntable.runtime.sanitizer import sanitize
from dyntable.runtime.table_manager import TableManager
from dyntable.runtime.type_inference import infer

__all__ = [
    "ConflictError",
    "DatabaseStore",
    "DyntableError",
    "EngineConfig",
    "ForbiddenError",
    "NoFieldsError",
    "NotFoundError",
    "RecordEngine",
    "SchemaCatalog",
    "StoreError",
    "TableManager",
    "ValidationError",
    "infer",
    "sanitize",
]
