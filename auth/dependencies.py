"""
auth/dependencies.py -- FastAPI Depends() helpers for the admin-only routes.

Two credential carriers are accepted, checked in priority order:
  1. X-API-Key header -- scripts and CI jobs.
  2. Authorization: Bearer <key> header -- generic API clients.

Both are compared against ADMIN_API_KEY. There is one role here: the caller
either holds the administrator key or is rejected.

require_admin() raises HTTP 401 when no valid key is presented.
require_csrf_token() raises HTTP 403 when the export token is missing or stale.

Layer rule: no imports from api/.
"""

from __future__ import annotations

from fastapi import HTTPException, Request

from auth.tokens import EXPORT_ACTION, verify_admin_key, verify_csrf_token


def _presented_key(request: Request) -> str:
    raw_key = request.headers.get("X-API-Key", "")
    if raw_key:
        return raw_key
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header[7:]
    return ""


def is_admin(request: Request) -> bool:
    """Soft check: True if the request carries the administrator key. Never raises."""
    return verify_admin_key(_presented_key(request))


def require_admin(request: Request) -> None:
    """Require the administrator key. Raises HTTP 401 otherwise.

    Use as a FastAPI dependency:
        router = APIRouter(dependencies=[Depends(require_admin)])
    """
    if not is_admin(request):
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Administrator credentials required."},
        )


def require_csrf_token(request: Request) -> None:
    """Require a valid X-CSRF-Token for the export action. Raises HTTP 403 otherwise."""
    token = request.headers.get("X-CSRF-Token", "")
    if not verify_csrf_token(token, EXPORT_ACTION):
        raise HTTPException(
            status_code=403,
            detail={"code": "csrf_failed", "message": "Missing or expired request token."},
        )
