"""
tests/conftest.py -- Shared test fixtures for the capability audit tests.

This module provides:
  - snapshot_doc: a small host snapshot exercising every audit section
  - _patch_lifespan(): wires a test baseline and source into app.state,
    bypassing real startup
  - api_client / unavailable_client: TestClients for API integration tests

The DEBUG and ADMIN_API_KEY env vars must be set before any api/auth import
so get_settings() auto-generates SECRET_KEY in dev mode rather than raising.
"""

from __future__ import annotations

import copy
import os
from collections.abc import Generator
from contextlib import asynccontextmanager

import pytest

os.environ["DEBUG"] = "true"
os.environ["ADMIN_API_KEY"] = "test-admin-key"
os.environ.pop("SNAPSHOT_PATH", None)
os.environ.pop("HOST_API_URL", None)
os.environ.pop("BASELINE_PATH", None)
os.environ.pop("SITE_URL", None)

from fastapi.testclient import TestClient  # noqa: E402

from api.limiter import limiter  # noqa: E402
from api.main import app  # noqa: E402
from core.baseline import Baseline, default_baseline  # noqa: E402
from core.fetcher import SnapshotSource  # noqa: E402
from core.models import HostUnavailableError  # noqa: E402


def _flags(caps) -> dict[str, bool]:
    return {cap: True for cap in caps}


def _make_snapshot() -> dict:
    """Build a snapshot with one drifted default role, one custom role, and mixed users.

    Expected audit:
      role drift  -- administrator clean, editor +manage_options -read_private_pages, subscriber clean
      custom      -- shop_manager (high risk: edit_theme_options)
      direct caps -- bob [manage_options], carol [wpseo_bulk_edit], root2 [unfiltered_upload]
      high risk   -- bob [manage_options]
      orphans     -- edit_products, manage_woocommerce, unfiltered_upload, wpseo_bulk_edit
    """
    baseline = default_baseline()
    editor_caps = _flags(baseline["editor"])
    editor_caps["read_private_pages"] = False
    editor_caps["manage_options"] = True

    return {
        "roles": {
            "subscriber": {"name": "Subscriber", "capabilities": _flags(baseline["subscriber"])},
            "editor": {"name": "Editor", "capabilities": editor_caps},
            "administrator": {"name": "Administrator", "capabilities": _flags(baseline["administrator"])},
            "shop_manager": {
                "name": "Shop manager",
                "capabilities": {
                    "read": True,
                    "manage_woocommerce": True,
                    "edit_products": True,
                    "edit_theme_options": True,
                },
            },
        },
        "users": [
            {
                "id": 5,
                "login": "root2",
                "email": "root2@example.com",
                "roles": ["administrator"],
                "caps": {"administrator": True, "unfiltered_upload": True},
                "allcaps": _flags(baseline["administrator"] + ["unfiltered_upload", "administrator"]),
            },
            {
                "id": 1,
                "login": "admin",
                "email": "admin@example.com",
                "roles": ["administrator"],
                "caps": {"administrator": True},
                "allcaps": _flags(baseline["administrator"] + ["administrator"]),
            },
            {
                "id": 2,
                "login": "bob",
                "email": "bob@example.com",
                "roles": ["editor"],
                "caps": {"editor": True, "manage_options": True},
                "allcaps": _flags(baseline["editor"] + ["manage_options", "editor"]),
            },
            {
                "id": 3,
                "login": "carol",
                "email": "carol@example.com",
                "roles": ["subscriber"],
                "caps": {"subscriber": True, "wpseo_bulk_edit": True, "broken": False},
                "allcaps": {"read": True, "wpseo_bulk_edit": True, "subscriber": True},
            },
            {
                "id": 4,
                "login": "dave",
                "email": "dave@example.com",
                "roles": [],
                "caps": [],
                "allcaps": [],
            },
        ],
    }


@pytest.fixture
def snapshot_doc() -> dict:
    return _make_snapshot()


# ---------------------------------------------------------------------------
# API fixtures
# ---------------------------------------------------------------------------


def _patch_lifespan(document: dict | None):
    """Return an async context manager that replaces the real lifespan.

    document=None simulates a host with no configured data source.
    """

    def factory():
        if document is None:
            raise HostUnavailableError("No host data source configured")
        return SnapshotSource(copy.deepcopy(document))

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.baseline = Baseline.default()
        app.state.source_factory = factory
        yield

    return test_lifespan


@pytest.fixture(scope="module")
def api_client() -> Generator[TestClient, None, None]:
    """Yield a TestClient backed by the standard test snapshot.

    base_url uses localhost so TrustedHostMiddleware accepts the requests.
    Rate limiting is disabled so repeated calls across tests never hit 429.
    """
    limiter.enabled = False
    app.router.lifespan_context = _patch_lifespan(_make_snapshot())
    with TestClient(app, base_url="http://localhost", raise_server_exceptions=True) as client:
        yield client
    limiter.enabled = True


@pytest.fixture(scope="module")
def unavailable_client() -> Generator[TestClient, None, None]:
    """Yield a TestClient whose host source is never available."""
    limiter.enabled = False
    app.router.lifespan_context = _patch_lifespan(None)
    with TestClient(app, base_url="http://localhost", raise_server_exceptions=True) as client:
        yield client
    limiter.enabled = True
