"""
tests/test_health.py -- Integration tests for GET /api/v1/health.

Covers:
  - 200 response with status and version fields
  - No authentication required
  - Untrusted Host headers are rejected before routing
"""

from __future__ import annotations

from api.main import VERSION


def test_health_returns_200_with_version(api_client):
    """Health endpoint returns 200 with status and version."""
    resp = api_client.get("/api/v1/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok", "version": VERSION}


def test_health_no_auth_required(api_client):
    """Health endpoint is accessible without any credential headers."""
    resp = api_client.get("/api/v1/health", headers={})
    assert resp.status_code == 200


def test_untrusted_host_rejected(api_client):
    resp = api_client.get("/api/v1/health", headers={"Host": "evil.example.com"})
    assert resp.status_code == 400


def test_health_answers_without_host_source(unavailable_client):
    """Liveness does not depend on the host data source."""
    assert unavailable_client.get("/api/v1/health").status_code == 200
