"""
api/routes/v1/audit.py -- Capability audit route handlers.

Every route runs a fresh audit against the configured host source. Nothing is
cached between requests; the audit is cheap relative to a human reading it.

Auth policy:
  - Every route requires the administrator key (router-level dependency).
  - POST /audit/export additionally requires an X-CSRF-Token minted by
    GET /audit/export-token.

Rate limits are applied via slowapi. The @limiter.limit() decorator must sit
ABOVE @router.get/post so that slowapi can attach the limit string to the
function object before FastAPI wraps it.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import HTMLResponse, JSONResponse, Response

from api.limiter import limiter
from api.models import CsrfTokenResponse, ErrorDetail, SummaryResponse
from auth.dependencies import require_admin, require_csrf_token
from auth.tokens import EXPORT_ACTION, create_csrf_token
from core.config import get_settings
from core.formatter import EXPORT_FILENAME, AuditOutcome, to_dict, to_export_json, to_html
from core.models import AuditError, AuditResult, HostUnavailableError
from core.pipeline import CapabilityAuditor

logger = logging.getLogger("capdrift.api.audit")

router = APIRouter(dependencies=[Depends(require_admin)])


def run_configured_audit(request: Request) -> AuditOutcome:
    """Build the source from app.state and run one audit. Never raises for host failures."""
    try:
        source = request.app.state.source_factory()
    except HostUnavailableError as e:
        logger.warning("Audit source unavailable: %s", e)
        return AuditError(error=str(e))
    return CapabilityAuditor(request.app.state.baseline).run(source)


def _require_result(outcome: AuditOutcome) -> AuditResult:
    if isinstance(outcome, AuditError):
        raise HTTPException(
            status_code=503,
            detail=ErrorDetail(
                code="host_unavailable",
                message="Role data is not available.",
                detail=outcome.error,
            ).model_dump(),
        )
    return outcome


@limiter.limit("30/minute")
@router.get("/audit")
def get_audit(request: Request) -> JSONResponse:
    """Return the full audit result as JSON. 503 when the host has no role data."""
    result = _require_result(run_configured_audit(request))
    return JSONResponse(content=to_dict(result))


@limiter.limit("30/minute")
@router.get("/audit/summary", response_model=SummaryResponse)
def get_audit_summary(request: Request) -> SummaryResponse:
    """Return the headline counts only, for dashboard widgets."""
    result = _require_result(run_configured_audit(request))
    return SummaryResponse.from_summary(result.summary)


@limiter.limit("30/minute")
@router.get("/audit/report", response_class=HTMLResponse)
def get_audit_report(request: Request) -> HTMLResponse:
    """Return the audit as a read-only HTML report.

    A failed audit still renders, as an explicit error page with status 503,
    never as a page of empty tables.
    """
    outcome = run_configured_audit(request)
    status_code = 503 if isinstance(outcome, AuditError) else 200
    return HTMLResponse(content=to_html(outcome), status_code=status_code)


@router.get("/audit/export-token", response_model=CsrfTokenResponse)
def get_export_token(request: Request) -> CsrfTokenResponse:
    """Mint a short-lived request token for POST /audit/export."""
    return CsrfTokenResponse(token=create_csrf_token(EXPORT_ACTION))


@limiter.limit(lambda: get_settings().export_rate_limit)
@router.post("/audit/export", dependencies=[Depends(require_csrf_token)])
def export_audit(request: Request) -> Response:
    """Download the audit as a JSON file.

    The document wraps the audit with generation time and site URL. A failed
    audit is exported as its error value rather than refused.
    """
    outcome = run_configured_audit(request)
    site_url = get_settings().site_url or str(request.base_url).rstrip("/")
    return Response(
        content=to_export_json(outcome, site_url=site_url),
        media_type="application/json; charset=utf-8",
        headers={
            "Content-Disposition": f'attachment; filename="{EXPORT_FILENAME}"',
            "Cache-Control": "no-cache, must-revalidate, max-age=0, no-store, private",
            "Expires": "Wed, 11 Jan 1984 05:00:00 GMT",
        },
    )
