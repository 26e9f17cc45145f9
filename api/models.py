"""
API response models for the capability audit REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in core/models.py, which
own the internal domain representation. Route handlers map between the two.

Separation of concerns: core/ models = domain truth; api/ models = API contract.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict

from core.models import AuditSummary

# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class SummaryResponse(BaseModel):
    """Response for GET /api/v1/audit/summary -- the headline counts only."""

    model_config = ConfigDict(frozen=True)

    total_roles: int
    custom_roles: int
    direct_user_caps: int
    high_risk_non_admins: int
    orphan_caps: int

    @classmethod
    def from_summary(cls, summary: AuditSummary) -> "SummaryResponse":
        """Build a SummaryResponse from the core AuditSummary."""
        return cls(
            total_roles=summary.total_roles,
            custom_roles=summary.custom_roles,
            direct_user_caps=summary.direct_user_caps,
            high_risk_non_admins=summary.high_risk_non_admins,
            orphan_caps=summary.orphan_caps,
        )


class CsrfTokenResponse(BaseModel):
    """Response for GET /api/v1/audit/export-token."""

    model_config = ConfigDict(frozen=True)

    token: str
    header: str = "X-CSRF-Token"


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "ok"
    version: str
