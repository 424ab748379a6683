"""
Tests for the HTTP adapter.

Runs the FastAPI app in-process with TestClient against a temporary
SQLite file and checks status codes and response bodies.
"""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from dyntable.runtime.config import EngineConfig
from dyntable.runtime.db_backend import DatabaseStore
from dyntable.runtime.errors import (
    ConflictError,
    DyntableError,
    NoFieldsError,
    StoreError,
)
from dyntable.runtime.exception_handlers import status_code_for
from dyntable.runtime.server import create_app


@pytest.fixture
def client(tmp_path: Path) -> Iterator[TestClient]:
    config = EngineConfig(db_path=tmp_path / "api.db", log_dir=None)
    with TestClient(create_app(config)) as client:
        yield client


# =============================================================================
# Status Mapping
# =============================================================================


class TestStatusCodes:
    """Test error to status code mapping."""

    def test_known_errors(self):
        assert status_code_for(ConflictError("x")) == 409
        assert status_code_for(NoFieldsError("x")) == 400
        assert status_code_for(StoreError("x")) == 500

    def test_base_error_is_500(self):
        assert status_code_for(DyntableError("x")) == 500


# =============================================================================
# Tables
# =============================================================================


class TestTablesEndpoints:
    """Test /tables."""

    def test_users_created_at_startup(self, client: TestClient):
        response = client.get("/tables")
        assert response.status_code == 200
        assert response.json() == ["users"]

    def test_create_from_sample_data(self, client: TestClient):
        response = client.post(
            "/tables",
            json={"name": "events", "sampleData": {"title": "hi", "count": 3, "active": True}},
        )
        assert response.status_code == 201
        body = response.json()
        assert body["name"] == "events"
        assert body["columns"] == ["id", "title", "count", "active"]

    def test_create_conflict(self, client: TestClient):
        client.post("/tables", json={"name": "events"})
        response = client.post("/tables", json={"name": "events"})
        assert response.status_code == 409
        assert response.json()["type"] == "conflict"

    def test_create_unknown_type(self, client: TestClient):
        response = client.post("/tables", json={"name": "t", "columns": {"x": "BLOB"}})
        assert response.status_code == 400
        assert response.json()["type"] == "validation_error"

    def test_drop_users_forbidden(self, client: TestClient):
        response = client.delete("/tables/users")
        assert response.status_code == 403
        assert response.json()["type"] == "forbidden"

    def test_drop(self, client: TestClient):
        client.post("/tables", json={"name": "events"})
        assert client.delete("/tables/events").status_code == 200
        assert client.get("/tables").json() == ["users"]


# =============================================================================
# Columns
# =============================================================================


class TestColumnsEndpoints:
    """Test /columns."""

    def test_add_returns_actual_name(self, client: TestClient):
        response = client.post(
            "/columns", params={"table": "users"}, json={"key": "Work Email", "label": "Work"}
        )
        assert response.status_code == 201
        assert response.json()["actualColumnName"] == "work_email"
        assert client.get("/columns", params={"table": "users"}).json() == ["id", "work_email"]

    def test_list_missing_table(self, client: TestClient):
        response = client.get("/columns", params={"table": "missing"})
        assert response.status_code == 404

    def test_drop_id_forbidden(self, client: TestClient):
        response = client.delete("/columns", params={"table": "users", "column": "id"})
        assert response.status_code == 403

    def test_drop(self, client: TestClient):
        client.post("/columns", params={"table": "users"}, json={"key": "nickname"})
        response = client.delete("/columns", params={"table": "users", "column": "nickname"})
        assert response.status_code == 200
        assert client.get("/columns", params={"table": "users"}).json() == ["id"]


# =============================================================================
# Records
# =============================================================================


class TestRecordsEndpoints:
    """Test /records."""

    def test_create_defaults_to_users(self, client: TestClient):
        response = client.post("/records", json={"nickname": "bob"})
        assert response.status_code == 201
        assert response.json() == {"id": 1, "nickname": "bob"}
        assert client.get("/records").json() == [{"id": 1, "nickname": "bob"}]

    def test_get(self, client: TestClient):
        client.post("/records", json={"nickname": "bob"})
        response = client.get("/records/1")
        assert response.status_code == 200
        assert response.json() == {"id": 1, "nickname": "bob"}

    def test_get_missing(self, client: TestClient):
        response = client.get("/records/99")
        assert response.status_code == 404
        assert response.json()["type"] == "not_found"

    def test_invalid_email(self, client: TestClient):
        response = client.post("/records", json={"email": "not-an-email"})
        assert response.status_code == 400
        body = response.json()
        assert body["errors"] == ["Invalid email format"]
        assert client.get("/columns", params={"table": "users"}).json() == ["id"]

    def test_oversized_integer_is_structured_500(self, client: TestClient):
        client.post("/records", json={"count": 1})
        response = client.post("/records", json={"count": 10**20})
        assert response.status_code == 500
        assert response.json()["type"] == "store_error"

    def test_update(self, client: TestClient):
        client.post("/records", json={"nickname": "bob"})
        response = client.put("/records/1", json={"nickname": "rob"})
        assert response.status_code == 204
        assert client.get("/records/1").json()["nickname"] == "rob"

    def test_update_no_fields(self, client: TestClient):
        client.post("/records", json={"nickname": "bob"})
        response = client.put("/records/1", json={"unknownField": 1})
        assert response.status_code == 400
        assert response.json()["type"] == "no_fields"

    def test_delete(self, client: TestClient):
        client.post("/records", json={"nickname": "bob"})
        assert client.delete("/records/1").status_code == 204
        assert client.get("/records/1").status_code == 404

    def test_delete_missing_record(self, client: TestClient):
        assert client.delete("/records/99").status_code == 204

    def test_other_table(self, client: TestClient):
        client.post("/tables", json={"name": "events", "sampleData": {"title": "hi"}})
        response = client.post("/records", params={"table": "events"}, json={"title": "x"})
        assert response.status_code == 201
        assert client.get("/records", params={"table": "events"}).json() == [
            {"id": 1, "title": "x"}
        ]

    def test_missing_table(self, client: TestClient):
        response = client.get("/records", params={"table": "missing"})
        assert response.status_code == 404


class TestExternalStore:
    """Test create_app with a caller-owned store."""

    def test_store_left_open(self, tmp_path: Path):
        store = DatabaseStore(db_path=tmp_path / "shared.db")
        config = EngineConfig(log_dir=None)
        with TestClient(create_app(config, store=store)) as client:
            assert client.get("/tables").json() == ["users"]
        try:
            assert store.is_open
        finally:
            store.close()
