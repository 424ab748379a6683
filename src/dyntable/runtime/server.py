"""
HTTP adapter for the record engine.

Exposes tables, columns and records over FastAPI:

    GET    /tables                      list relations
    POST   /tables                      create a relation
    DELETE /tables/{name}               drop a relation
    GET    /columns?table=              list columns
    POST   /columns?table=              add a column
    DELETE /columns?table=&column=      drop a column
    GET    /records?table=users         list records
    POST   /records?table=users         create a record
    GET    /records/{id}?table=users    get a record
    PUT    /records/{id}?table=users    update a record
    DELETE /records/{id}?table=users    delete a record

Endpoints are plain ``def`` functions; FastAPI runs them in its thread
pool and the store serializes access to its connection.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import APIRouter, Body, FastAPI, Query, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, ConfigDict, Field

from dyntable.runtime.config import EngineConfig
from dyntable.runtime.db_backend import DatabaseStore
from dyntable.runtime.exception_handlers import register_exception_handlers
from dyntable.runtime.logging import get_api_logger
from dyntable.runtime.record_engine import RecordEngine
from dyntable.runtime.table_manager import TableManager

DEFAULT_TABLE = "users"

logger = get_api_logger()


# =============================================================================
# Request Models
# =============================================================================


class TableCreateRequest(BaseModel):
    """Body of POST /tables."""

    name: str = Field(description="Requested table name")
    columns: dict[str, str] | None = Field(
        default=None, description="Column name to declared type"
    )
    sample_data: dict[str, Any] | None = Field(
        default=None, alias="sampleData", description="Column name to sample value"
    )

    model_config = ConfigDict(populate_by_name=True)


class ColumnCreateRequest(BaseModel):
    """Body of POST /columns. ``defaultValue`` is the type inference sample."""

    key: str = Field(description="Requested column name")
    label: str | None = None
    type: str | None = None
    required: bool = False
    default_value: Any = Field(default=None, alias="defaultValue")

    model_config = ConfigDict(populate_by_name=True)


# =============================================================================
# Routes
# =============================================================================


def _tables(request: Request) -> TableManager:
    tables: TableManager = request.app.state.tables
    return tables


def _engine(request: Request) -> RecordEngine:
    engine: RecordEngine = request.app.state.engine
    return engine


def build_router() -> APIRouter:
    """Build the tables/columns/records router."""
    router = APIRouter()

    # -- tables ---------------------------------------------------------------

    @router.get("/tables")
    def list_tables(request: Request) -> list[str]:
        return _tables(request).list_relations()

    @router.post("/tables", status_code=201)
    def create_table(request: Request, body: TableCreateRequest) -> dict[str, Any]:
        descriptor = _tables(request).create_relation(
            body.name, columns=body.columns, sample_data=body.sample_data
        )
        return {
            "message": f"Table '{descriptor.name}' created successfully",
            "name": descriptor.name,
            "columns": descriptor.column_names,
        }

    @router.delete("/tables/{name}")
    def drop_table(request: Request, name: str) -> dict[str, str]:
        _tables(request).drop_relation(name)
        return {"message": f"Table '{name}' dropped successfully", "name": name}

    # -- columns --------------------------------------------------------------

    @router.get("/columns")
    def list_columns(request: Request, table: str = Query(...)) -> list[str]:
        return _tables(request).list_columns(table)

    @router.post("/columns", status_code=201)
    def add_column(
        request: Request, body: ColumnCreateRequest, table: str = Query(...)
    ) -> dict[str, str]:
        actual = _tables(request).add_column(table, body.key, body.default_value)
        return {"message": "Column added successfully", "actualColumnName": actual}

    @router.delete("/columns")
    def drop_column(
        request: Request, table: str = Query(...), column: str = Query(...)
    ) -> dict[str, str]:
        _tables(request).drop_column(table, column)
        return {"message": "Column removed successfully"}

    # -- records --------------------------------------------------------------

    @router.get("/records")
    def list_records(request: Request, table: str = DEFAULT_TABLE) -> list[dict[str, Any]]:
        return _engine(request).list_records(table)

    @router.post("/records", status_code=201)
    def create_record(
        request: Request,
        payload: dict[str, Any] = Body(...),
        table: str = DEFAULT_TABLE,
    ) -> dict[str, Any]:
        return _engine(request).create_record(table, payload)

    @router.get("/records/{record_id}")
    def get_record(request: Request, record_id: int, table: str = DEFAULT_TABLE) -> dict[str, Any]:
        return _engine(request).get_record(table, record_id)

    @router.put("/records/{record_id}", status_code=204, response_class=Response)
    def update_record(
        request: Request,
        record_id: int,
        payload: dict[str, Any] = Body(...),
        table: str = DEFAULT_TABLE,
    ) -> Response:
        _engine(request).update_record(table, record_id, payload)
        return Response(status_code=204)

    @router.delete("/records/{record_id}", status_code=204, response_class=Response)
    def delete_record(request: Request, record_id: int, table: str = DEFAULT_TABLE) -> Response:
        _engine(request).delete_record(table, record_id)
        return Response(status_code=204)

    return router


# =============================================================================
# Application Builder
# =============================================================================


def create_app(config: EngineConfig | None = None, store: DatabaseStore | None = None) -> FastAPI:
    """
    Create the FastAPI application.

    When ``store`` is given the caller owns its lifecycle; otherwise one is
    built from ``config`` and opened/closed with the application.

    Args:
        config: Engine configuration (defaults to ``EngineConfig.from_env()``)
        store: Optional externally managed store handle

    Returns:
        FastAPI application
    """
    config = config or EngineConfig.from_env()
    owns_store = store is None
    store = store or config.create_store()

    tables = TableManager(
        store,
        protected_relations=config.protected_relations,
        default_relations=config.default_relations,
    )
    engine = RecordEngine(store, tables)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        store.open()
        created = tables.ensure_default_relations()
        if created:
            logger.info("Created default tables: %s", ", ".join(created))
        logger.info("Serving %s store", store.backend_type)
        try:
            yield
        finally:
            if owns_store:
                store.close()

    app = FastAPI(title="dyntable", lifespan=lifespan)
    app.state.config = config
    app.state.store = store
    app.state.tables = tables
    app.state.engine = engine

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type"],
    )
    register_exception_handlers(app)
    app.include_router(build_router())
    return app
