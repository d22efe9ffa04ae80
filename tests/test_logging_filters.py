"""Tests for log redaction and request correlation."""

from __future__ import annotations

import json
import logging
from io import StringIO

import pytest

from ratelimiter.core.logging import (
    JsonFormatter,
    PlainFormatter,
    Redactor,
    RequestIdFilter,
    SensitiveDataFilter,
    clear_request_id,
    hash_identifier,
    set_request_id,
)


@pytest.fixture
def capture():
    """Attach a JSON handler to a throwaway logger and return (logger, stream)."""

    def _capture(name: str, formatter: logging.Formatter | None = None):
        logger = logging.getLogger(name)
        logger.setLevel(logging.INFO)
        logger.handlers.clear()
        logger.propagate = False

        stream = StringIO()
        handler = logging.StreamHandler(stream)
        handler.addFilter(RequestIdFilter())
        handler.addFilter(SensitiveDataFilter())
        handler.setFormatter(formatter or JsonFormatter())
        logger.addHandler(handler)
        return logger, stream

    return _capture


def test_api_keys_and_identifiers_are_replaced_by_digest(capture):
    logger, stream = capture("test_redaction")

    logger.info(
        "rate_limit.exceeded",
        extra={"api_key": "sk-secret-123", "identifier": "203.0.113.7", "key_type": "IP"},
    )

    record = json.loads(stream.getvalue())
    assert record["event"] == "rate_limit.exceeded"
    assert record["api_key"] == f"[REDACTED:{hash_identifier('sk-secret-123')}]"
    assert record["identifier"] == f"[REDACTED:{hash_identifier('203.0.113.7')}]"
    assert record["key_type"] == "IP"
    assert "sk-secret-123" not in stream.getvalue()
    assert "203.0.113.7" not in stream.getvalue()


def test_nested_headers_are_scrubbed(capture):
    logger, stream = capture("test_nested")

    logger.info("nested_event", extra={"headers": {"API_KEY": "abc123", "user-agent": "pytest"}})

    record = json.loads(stream.getvalue())
    assert record["headers"]["API_KEY"].startswith("[REDACTED")
    assert record["headers"]["user-agent"] == "pytest"


def test_safe_fields_pass_through(capture):
    logger, stream = capture("test_safe_fields")

    logger.info(
        "http.request",
        extra={"path": "/", "status": 429, "duration_ms": 1.5, "key_hash": "deadbeef"},
    )

    record = json.loads(stream.getvalue())
    assert record["status"] == 429
    assert record["key_hash"] == "deadbeef"
    assert "REDACTED" not in stream.getvalue()


def test_request_id_from_context_is_attached(capture):
    logger, stream = capture("test_request_id")

    set_request_id("req-123")
    try:
        logger.info("with_context")
    finally:
        clear_request_id()
    logger.info("without_context")

    first, second = (json.loads(line) for line in stream.getvalue().splitlines())
    assert first["request_id"] == "req-123"
    assert "request_id" not in second


def test_plain_formatter_appends_masked_extras(capture):
    logger, stream = capture("test_plain", PlainFormatter())

    logger.warning("rate_limit.exceeded", extra={"token": "abc123", "limit": 2})

    line = stream.getvalue().strip()
    assert "WARNING test_plain rate_limit.exceeded" in line
    assert "limit=2" in line
    assert "abc123" not in line


def test_redactor_with_custom_keys():
    redactor = Redactor(["Session"])

    assert redactor.scrub({"session": "s1", "token": "t1"}) == {
        "session": f"[REDACTED:{hash_identifier('s1')}]",
        "token": "t1",
    }
    assert redactor.mask("") == "[REDACTED]"


def test_hash_identifier_is_stable_and_opaque():
    hashed = hash_identifier("abc123")

    assert hashed == hash_identifier("abc123")
    assert hashed != hash_identifier("abc124")
    assert len(hashed) == 16
    assert "abc123" not in hashed
