from __future__ import annotations

import logging

from fastapi.testclient import TestClient

from sapsync.main import app


client = TestClient(app)


def test_preserves_incoming_request_id_header():
    incoming_id = "sync-run-2024-05-01-001"
    resp = client.get("/health", headers={"X-Request-ID": incoming_id})

    assert resp.status_code == 200
    assert resp.headers.get("X-Request-ID") == incoming_id


def test_generates_request_id_when_missing():
    resp = client.get("/health")

    assert resp.status_code == 200
    generated = resp.headers.get("X-Request-ID")
    assert generated
    assert isinstance(generated, str)

    duration = resp.headers.get("X-Request-Duration-ms")
    assert duration is not None
    assert float(duration) >= 0


def test_error_responses_carry_request_id():
    resp = client.get("/v1/admin/dead-letters", headers={"X-Request-ID": "req-403"})

    assert resp.status_code == 403
    assert resp.headers.get("X-Request-ID") == "req-403"
    assert resp.json()["error"]["request_id"] == "req-403"


def test_emits_one_access_log_event(caplog):
    with caplog.at_level(logging.INFO, logger="sapsync.core.middleware"):
        client.get("/health", headers={"X-Request-ID": "req-log"})

    events = [r for r in caplog.records if r.getMessage() == "http.request"]
    assert len(events) == 1
    assert events[0].request_path == "/health"
    assert events[0].status_code == 200
