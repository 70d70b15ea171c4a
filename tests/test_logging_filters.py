"""Tests for sensitive data filtering in logs."""

from __future__ import annotations

import json
import logging
from io import StringIO

from sapsync.core.logging import (
    JsonFormatter,
    RequestIdFilter,
    SensitiveDataFilter,
    scrub_text,
    sync_context,
)


def test_sensitive_filter_redacts_api_keys():
    """Ensure SensitiveDataFilter redacts API key fields."""
    
    logger = logging.getLogger("test_redaction")
    logger.setLevel(logging.INFO)
    logger.handlers.clear()
    
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.addFilter(SensitiveDataFilter())
    handler.setFormatter(JsonFormatter())
    logger.addHandler(handler)
    
    logger.info(
        "test_event",
        extra={
            "api_key": "sk-secret-123",
            "x-api-key": "another-secret",
            "safe_field": "visible",
        },
    )
    
    output = stream.getvalue()
    
    assert "sk-secret-123" not in output
    assert "another-secret" not in output
    assert "[REDACTED]" in output
    assert "visible" in output


def test_sensitive_filter_redacts_sap_session_and_customer_data():
    """Ensure SAP session cookies and customer contact data are redacted."""
    
    logger = logging.getLogger("test_sap_redaction")
    logger.setLevel(logging.INFO)
    logger.handlers.clear()
    
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.addFilter(SensitiveDataFilter())
    handler.setFormatter(JsonFormatter())
    logger.addHandler(handler)
    
    logger.info(
        "sap.login",
        extra={
            "B1SESSION": "3c2a7b44-5c4e-11ee-8000-0050569f1234",
            "password": "manager",
            "customer": {
                "email": "jane@example.com",
                "billing": {"address_1": "Main Street 1"},
                "card_code": "C0001",
            },
            "attempt": 2,
        },
    )
    
    output = stream.getvalue()
    
    assert "3c2a7b44" not in output
    assert "manager" not in output
    assert "jane@example.com" not in output
    assert "Main Street" not in output
    assert "C0001" in output
    assert "[REDACTED]" in output
    assert "attempt" in output


def test_sensitive_filter_allows_safe_fields():
    """Verify safe fields pass through unmodified."""
    
    logger = logging.getLogger("test_safe_fields")
    logger.setLevel(logging.INFO)
    logger.handlers.clear()
    
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.addFilter(SensitiveDataFilter())
    handler.setFormatter(JsonFormatter())
    logger.addHandler(handler)
    
    logger.info(
        "safe_event",
        extra={
            "request_id": "req-123",
            "route": "/v1/admin/logs",
            "status": 200,
            "duration_ms": 150.5,
        },
    )
    
    output = stream.getvalue()
    
    assert "req-123" in output
    assert "/v1/admin/logs" in output
    assert "200" in output
    assert "[REDACTED]" not in output


def test_sensitive_filter_redacts_nested_dicts():
    """Ensure nested sensitive fields are redacted."""
    
    logger = logging.getLogger("test_nested")
    logger.setLevel(logging.INFO)
    logger.handlers.clear()
    
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.addFilter(SensitiveDataFilter())
    handler.setFormatter(JsonFormatter())
    logger.addHandler(handler)
    
    logger.info(
        "nested_event",
        extra={
            "headers": {
                "x-api-key": "secret-key",
                "user-agent": "pytest",
            },
            "safe_data": {
                "count": 5,
                "type": "test",
            },
        },
    )
    
    output = stream.getvalue()
    
    assert "secret-key" not in output
    assert "[REDACTED]" in output
    assert "pytest" in output
    assert "test" in output


def test_prefixed_credential_keys_are_redacted():
    """Ensure sap_password / wc_consumer_secret style names are caught."""
    
    logger = logging.getLogger("test_prefixed")
    logger.setLevel(logging.INFO)
    logger.handlers.clear()
    
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.addFilter(SensitiveDataFilter())
    handler.setFormatter(JsonFormatter())
    logger.addHandler(handler)
    
    logger.info(
        "config_loaded",
        extra={
            "sap_password": "manager",
            "wc_consumer_secret": "cs_abc123",
            "sap_company_db": "SBODEMOUS",
        },
    )
    
    output = stream.getvalue()
    
    assert "manager" not in output
    assert "cs_abc123" not in output
    assert "SBODEMOUS" in output


def test_session_cookie_values_are_scrubbed_from_text():
    """Ensure B1SESSION/ROUTEID values inside messages never reach the sink."""
    
    logger = logging.getLogger("test_cookie_text")
    logger.setLevel(logging.INFO)
    logger.handlers.clear()
    
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.addFilter(SensitiveDataFilter())
    handler.setFormatter(JsonFormatter())
    logger.addHandler(handler)
    
    logger.warning(
        "sap.request_failed cookie=B1SESSION=abc-123; ROUTEID=.node1",
        extra={"sap_error": "Session B1SESSION=abc-123 expired"},
    )
    
    output = stream.getvalue()
    
    assert "abc-123" not in output
    assert ".node1" not in output
    assert "B1SESSION=[REDACTED]" in output
    assert scrub_text("ROUTEID=.node2, other") == "ROUTEID=[REDACTED], other"


def test_sync_context_is_attached_to_records():
    """Ensure records logged inside sync_context carry the sync fields."""
    
    logger = logging.getLogger("test_sync_context")
    logger.setLevel(logging.INFO)
    logger.handlers.clear()
    
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.addFilter(RequestIdFilter())
    handler.setFormatter(JsonFormatter())
    logger.addHandler(handler)
    
    with sync_context(sync_action="manual_sync", sync_entity="order"):
        logger.info("inside")
    logger.info("outside")
    
    inside, outside = [json.loads(line) for line in stream.getvalue().splitlines()]
    
    assert inside["sync_action"] == "manual_sync"
    assert inside["sync_entity"] == "order"
    assert "sync_action" not in outside
