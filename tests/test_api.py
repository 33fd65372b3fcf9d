from __future__ import annotations

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from pymongo.errors import ServerSelectionTimeoutError

from profilebuilder.errors import error_payload, register_exception_handlers
from profilebuilder.repositories.exceptions import (
    DuplicateKeyRepositoryError,
    NotFoundRepositoryError,
    ValidationRepositoryError,
    translate_error,
)


def _failing_app(*, production: bool) -> FastAPI:
    app = FastAPI()
    register_exception_handlers(app, production=production)

    @app.get("/missing")
    async def missing():
        raise NotFoundRepositoryError("profiles", {"slug": "ghost"})

    @app.get("/duplicate")
    async def duplicate():
        raise DuplicateKeyRepositoryError("profiles", "slug", "taken")

    @app.get("/invalid")
    async def invalid():
        raise ValidationRepositoryError("bad input", {"slug": "required"})

    @app.get("/offline")
    async def offline():
        raise translate_error(ServerSelectionTimeoutError("10.0.0.5:27017 timed out"))

    @app.get("/broken")
    async def broken():
        raise translate_error(ValueError("driver internals"), "profiles")

    return app


async def _get(app: FastAPI, path: str):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as client:
        return await client.get(path)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("path", "status", "error"),
    [
        ("/missing", 404, "not_found"),
        ("/duplicate", 409, "duplicate_key"),
        ("/invalid", 400, "validation_error"),
        ("/offline", 503, "database_connection_error"),
        ("/broken", 500, "database_error"),
    ],
)
async def test_error_kinds_map_to_status_codes(path: str, status: int, error: str) -> None:
    response = await _get(_failing_app(production=False), path)
    assert response.status_code == status
    body = response.json()
    assert body["error"] == error
    assert body["status"] == status


@pytest.mark.asyncio
async def test_non_production_exposes_cause() -> None:
    body = (await _get(_failing_app(production=False), "/broken")).json()
    assert "driver internals" in body["message"]
    assert "driver internals" in body["details"]["cause"]


@pytest.mark.asyncio
async def test_production_redacts_server_errors() -> None:
    app = _failing_app(production=True)

    broken = (await _get(app, "/broken")).json()
    assert broken["message"] == "An unexpected error occurred"
    assert "details" not in broken

    offline = (await _get(app, "/offline")).json()
    assert offline["message"] == "An unexpected error occurred"
    assert "10.0.0.5" not in str(offline)

    invalid = (await _get(app, "/invalid")).json()
    assert invalid["details"] == {"errors": {"slug": "required"}}

    missing = (await _get(app, "/missing")).json()
    assert "ghost" in missing["message"]
    assert "details" not in missing


def test_connection_message_is_generic_even_outside_production() -> None:
    error = translate_error(ServerSelectionTimeoutError("secret-host:27017"))
    payload = error_payload(error, production=False)
    assert payload["message"] == "Unable to connect to the database"


def test_unexpected_exceptions_are_500() -> None:
    payload = error_payload(KeyError("x"), production=True)
    assert payload["status"] == 500
    assert payload["message"] == "An unexpected error occurred"


@pytest.mark.asyncio
async def test_health_and_migration_status(api_client) -> None:
    health = await api_client.get("/api/health/db")
    assert health.status_code == 200
    assert health.json()["mongo"] == "connected"

    response = await api_client.get("/api/admin/migrations")
    assert response.status_code == 200, response.text
    payload = response.json()
    assert payload["pending"] == 2
    assert [row["version"] for row in payload["migrations"]] == [1710000000000, 1710000000001]
    assert payload["migrations"][0]["appliedAt"] is None
    assert payload["migrations"][0]["hasSource"] is True
