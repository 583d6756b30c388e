"""Tests for structured logging and request_id propagation."""

import json
import logging

from fastapi.testclient import TestClient

from shopledger.core.logging import JsonFormatter, PrettyFormatter, latency_bucket_ms, log_event
from shopledger.main import app


def test_request_id_in_response_and_logs(caplog):
    client = TestClient(app)
    with caplog.at_level(logging.INFO, logger="shopledger"):
        response = client.get("/healthz")
    rid = response.headers.get("x-request-id")
    assert rid
    records = [r for r in caplog.records if getattr(r, "request_id", None) == rid]
    assert records, "Expected logs to contain request_id from response"
    assert len({r.request_id for r in records}) == 1


def test_request_id_in_error_response():
    client = TestClient(app)
    response = client.post("/v1/shop-settings/backup")
    rid = response.headers.get("x-request-id")
    assert response.status_code == 401
    assert rid
    payload = response.json()
    assert payload["error"]["request_id"] == rid


def test_log_event_carries_admin_fields(caplog):
    with caplog.at_level(logging.INFO, logger="shopledger"):
        log_event(
            "info",
            "admin.committed backup_created",
            request_id="rid-1",
            shop_id="shop-1",
            admin_id="admin-1",
            action_type="backup_created",
            extra={"note": "x" * 600},
        )

    record = [r for r in caplog.records if r.getMessage() == "admin.committed backup_created"][0]
    assert record.shop_id == "shop-1"
    assert record.admin_id == "admin-1"
    assert record.action_type == "backup_created"
    assert record.note.endswith("...<truncated>")


def test_json_formatter_includes_structured_fields():
    record = logging.LogRecord("shopledger", logging.WARNING, __file__, 1, "admin.rollback shop_update", None, None)
    record.request_id = "rid-2"
    record.shop_id = "shop-2"
    record.error_code = "email_taken"

    payload = json.loads(JsonFormatter().format(record))

    assert payload["level"] == "WARNING"
    assert payload["request_id"] == "rid-2"
    assert payload["shop_id"] == "shop-2"
    assert payload["error_code"] == "email_taken"
    assert "admin_id" not in payload


def test_pretty_formatter_shows_shop():
    record = logging.LogRecord("shopledger", logging.INFO, __file__, 1, "admin.committed", None, None)
    record.request_id = "rid-3"
    record.shop_id = "shop-3"

    line = PrettyFormatter().format(record)

    assert "[rid=rid-3]" in line
    assert "[shop=shop-3]" in line


def test_latency_buckets():
    assert latency_bucket_ms(None) == "unknown"
    assert latency_bucket_ms(5) == "<10ms"
    assert latency_bucket_ms(250) == "100-500ms"
    assert latency_bucket_ms(1500) == ">=1000ms"
