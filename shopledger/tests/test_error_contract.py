"""Tests for normalized error responses."""

from fastapi import FastAPI, HTTPException
from fastapi.testclient import TestClient

from shopledger.core.errors import (
    AppError,
    ConflictOrStorageError,
    InvalidIdentifierError,
    LedgerWriteError,
    NotFoundError,
    PlanNotFoundError,
    ValidationError,
    app_error_handler,
    http_error_handler,
    unhandled_exception_handler,
)
from shopledger.core.middleware.request_id import RequestIdMiddleware


def _make_app():
    test_app = FastAPI()
    test_app.add_middleware(RequestIdMiddleware)
    test_app.add_exception_handler(AppError, app_error_handler)
    test_app.add_exception_handler(HTTPException, http_error_handler)
    test_app.add_exception_handler(Exception, unhandled_exception_handler)

    @test_app.get("/ledger-down")
    async def ledger_down():
        raise LedgerWriteError("Admin action write failed")

    @test_app.get("/teapot")
    async def teapot():
        raise HTTPException(status_code=418, detail="short and stout")

    @test_app.get("/boom")
    async def boom():
        raise RuntimeError("kaboom")

    return test_app


def test_app_error_has_standard_shape():
    client = TestClient(_make_app())
    resp = client.get("/ledger-down")
    assert resp.status_code == 500
    body = resp.json()
    assert body["error"]["code"] == "admin_audit_failed"
    assert body["error"]["request_id"] == resp.headers.get("x-request-id")


def test_http_exception_normalized():
    client = TestClient(_make_app())
    resp = client.get("/teapot", headers={"X-Request-Id": "rid-418"})
    assert resp.status_code == 418
    body = resp.json()
    assert body["error"] == {"code": "http_error", "message": "short and stout", "request_id": "rid-418"}


def test_unhandled_exception_hides_details():
    client = TestClient(_make_app(), raise_server_exceptions=False)
    resp = client.get("/boom")
    assert resp.status_code == 500
    body = resp.json()
    assert body["error"]["code"] == "internal_error"
    assert "kaboom" not in body["error"]["message"]


def test_error_taxonomy():
    assert (InvalidIdentifierError("x").code, InvalidIdentifierError("x").status_code) == ("invalid_identifier", 400)
    assert (PlanNotFoundError("x").code, PlanNotFoundError("x").status_code) == ("plan_not_found", 404)
    assert (ConflictOrStorageError("x").code, ConflictOrStorageError("x").status_code) == ("storage_conflict", 409)
    assert isinstance(PlanNotFoundError("x"), NotFoundError)
    assert isinstance(InvalidIdentifierError("x"), ValidationError)


def test_code_override():
    err = NotFoundError("No active subscription found", code="subscription_not_found")
    assert err.code == "subscription_not_found"
    assert err.status_code == 404
    assert NotFoundError("x").code == "not_found"
