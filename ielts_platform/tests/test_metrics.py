"""Tests for logging/metrics hardening."""

from __future__ import annotations

import json
import logging

from ielts_app.logging_config import JsonFormatter


def test_metrics_endpoint(client):
    client.get("/api/auth/ping")
    resp = client.get("/metrics")
    assert resp.status_code == 200
    assert b"ielts_requests_total" in resp.data
    assert b"ielts_generations_total" in resp.data


def test_request_id_header(client):
    resp = client.get("/api/auth/ping")
    assert resp.status_code == 200
    assert "X-Request-ID" in resp.headers


def test_incoming_request_id_is_echoed(client):
    resp = client.get("/api/auth/ping", headers={"X-Request-ID": "abc123"})
    assert resp.headers["X-Request-ID"] == "abc123"


def test_json_formatter_includes_extra_fields():
    record = logging.LogRecord("ielts", logging.WARNING, __file__, 1, "model %s failed", ("m1",), None)
    record.model = "m1"
    record.failure = "transient"
    payload = json.loads(JsonFormatter().format(record))
    assert payload["message"] == "model m1 failed"
    assert payload["model"] == "m1"
    assert payload["failure"] == "transient"
    assert payload["request_id"] == "-"
