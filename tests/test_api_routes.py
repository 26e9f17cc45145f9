"""
tests/test_api_routes.py -- Integration tests for the capability audit routes.

These tests exercise the full stack: FastAPI routing -> admin key dependency
-> CapabilityAuditor against the test snapshot -> response serialization.
Unit testing individual route functions would miss middleware, dependency
injection, and the error envelope.

Coverage:
  - Auth failures: 401 on every audit route without the admin key
  - Happy path: full audit, summary, HTML report
  - Export: 403 without a request token, attachment download with one
  - Host unavailable: 503 with code host_unavailable, HTML error page

Fixtures used (from conftest.py):
  - api_client: TestClient backed by the standard snapshot
  - unavailable_client: TestClient whose source factory always fails
"""

from __future__ import annotations

import json

import pytest
from fastapi.testclient import TestClient

ADMIN_HEADERS = {"X-API-Key": "test-admin-key"}

_PROTECTED_GETS = [
    "/api/v1/audit",
    "/api/v1/audit/summary",
    "/api/v1/audit/report",
    "/api/v1/audit/export-token",
]


def _export_token(client: TestClient) -> str:
    resp = client.get("/api/v1/audit/export-token", headers=ADMIN_HEADERS)
    assert resp.status_code == 200
    return resp.json()["token"]


class TestAuthFailure:
    """Requests without the administrator key must return 401."""

    @pytest.mark.parametrize("path", _PROTECTED_GETS)
    def test_get_without_key(self, api_client: TestClient, path: str) -> None:
        resp = api_client.get(path)
        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == "unauthorized"

    def test_wrong_key(self, api_client: TestClient) -> None:
        resp = api_client.get("/api/v1/audit", headers={"X-API-Key": "nope"})
        assert resp.status_code == 401

    def test_export_without_key(self, api_client: TestClient) -> None:
        token = _export_token(api_client)
        resp = api_client.post("/api/v1/audit/export", headers={"X-CSRF-Token": token})
        assert resp.status_code == 401

    def test_bearer_key_accepted(self, api_client: TestClient) -> None:
        resp = api_client.get("/api/v1/audit/summary", headers={"Authorization": "Bearer test-admin-key"})
        assert resp.status_code == 200


class TestAuditRoutes:
    def test_full_audit(self, api_client: TestClient) -> None:
        resp = api_client.get("/api/v1/audit", headers=ADMIN_HEADERS)
        assert resp.status_code == 200
        data = resp.json()
        assert data["orphan_caps"] == ["edit_products", "manage_woocommerce", "unfiltered_upload", "wpseo_bulk_edit"]
        assert [row["login"] for row in data["direct_user_caps"]] == ["bob", "carol", "root2"]
        assert data["role_drift"]["editor"]["added"] == ["manage_options"]
        assert list(data["custom_roles"]) == ["shop_manager"]

    def test_summary(self, api_client: TestClient) -> None:
        resp = api_client.get("/api/v1/audit/summary", headers=ADMIN_HEADERS)
        assert resp.status_code == 200
        assert resp.json() == {
            "total_roles": 4,
            "custom_roles": 1,
            "direct_user_caps": 3,
            "high_risk_non_admins": 1,
            "orphan_caps": 4,
        }

    def test_html_report(self, api_client: TestClient) -> None:
        resp = api_client.get("/api/v1/audit/report", headers=ADMIN_HEADERS)
        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("text/html")
        assert "Capability Drift Audit" in resp.text

    def test_export_token_shape(self, api_client: TestClient) -> None:
        resp = api_client.get("/api/v1/audit/export-token", headers=ADMIN_HEADERS)
        assert resp.json()["header"] == "X-CSRF-Token"


class TestExport:
    def test_missing_token_forbidden(self, api_client: TestClient) -> None:
        resp = api_client.post("/api/v1/audit/export", headers=ADMIN_HEADERS)
        assert resp.status_code == 403
        assert resp.json()["error"]["code"] == "csrf_failed"

    def test_bad_token_forbidden(self, api_client: TestClient) -> None:
        headers = {**ADMIN_HEADERS, "X-CSRF-Token": "123.deadbeef"}
        assert api_client.post("/api/v1/audit/export", headers=headers).status_code == 403

    def test_download(self, api_client: TestClient) -> None:
        headers = {**ADMIN_HEADERS, "X-CSRF-Token": _export_token(api_client)}
        resp = api_client.post("/api/v1/audit/export", headers=headers)
        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("application/json")
        assert resp.headers["content-disposition"] == 'attachment; filename="capability-drift-audit.json"'
        assert "no-store" in resp.headers["cache-control"]
        doc = json.loads(resp.content)
        assert doc["site_url"] == "http://localhost"
        assert doc["audit"]["summary"]["total_roles"] == 4


class TestHostUnavailable:
    def test_audit_503(self, unavailable_client: TestClient) -> None:
        resp = unavailable_client.get("/api/v1/audit", headers=ADMIN_HEADERS)
        assert resp.status_code == 503
        assert resp.json()["error"]["code"] == "host_unavailable"

    def test_summary_503(self, unavailable_client: TestClient) -> None:
        assert unavailable_client.get("/api/v1/audit/summary", headers=ADMIN_HEADERS).status_code == 503

    def test_report_error_page(self, unavailable_client: TestClient) -> None:
        resp = unavailable_client.get("/api/v1/audit/report", headers=ADMIN_HEADERS)
        assert resp.status_code == 503
        assert "Audit could not run" in resp.text

    def test_export_carries_error(self, unavailable_client: TestClient) -> None:
        headers = {**ADMIN_HEADERS, "X-CSRF-Token": _export_token(unavailable_client)}
        resp = unavailable_client.post("/api/v1/audit/export", headers=headers)
        assert resp.status_code == 200
        assert "error" in json.loads(resp.content)["audit"]
