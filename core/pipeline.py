"""
core/pipeline.py -- The capability audit: drift, anomalies, orphans, report.

No side effects beyond logging. No print statements. Designed to be called by
both the CLI (via main.py) and the REST API (via api/routes/v1/audit.py).
A fresh CapabilityAuditor is built for every run; nothing is shared between
runs.
"""

import logging
from collections.abc import Mapping
from typing import Any, Optional, Union

from .anomalies import RoleFlagPredicate, detect_anomalies, role_flag_predicate
from .baseline import Baseline
from .drift import compute_drift, role_name
from .fetcher import AccessControlSource
from .models import (
    AuditError,
    AuditResult,
    AuditSummary,
    CustomRole,
    DirectUserCaps,
    HighRiskUser,
    HostUnavailableError,
    RoleDrift,
    User,
    UserResolutionError,
)
from .orphans import CapabilityLedger, classify_orphans, group_by_prefix

logger = logging.getLogger("capdrift.pipeline")


def assemble_report(
    roles: Mapping[str, Any],
    baseline: Baseline,
    role_drift: dict[str, RoleDrift],
    custom_roles: dict[str, CustomRole],
    direct_user_caps: list[DirectUserCaps],
    high_risk_non_admins: list[HighRiskUser],
    orphan_caps: list[str],
    all_caps_seen: list[str],
) -> AuditResult:
    """Combine the computed sections into one AuditResult.

    Renderers and exporters consume this value as-is; the orphan grouping and
    summary counts are computed here so nothing downstream has to.
    """
    snapshot: dict[str, dict[str, Any]] = {}
    for role_id in sorted(roles, key=str):
        role_data = roles[role_id]
        caps = role_data.get("capabilities") if isinstance(role_data, Mapping) else None
        flags = {str(k): bool(v) for k, v in caps.items()} if isinstance(caps, Mapping) else {}
        snapshot[str(role_id)] = {
            "name": role_name(str(role_id), role_data),
            "capabilities": dict(sorted(flags.items())),
        }
    return AuditResult(
        roles=snapshot,
        baseline={role_id: list(caps) for role_id, caps in baseline.roles.items()},
        high_risk_caps=sorted(baseline.high_risk),
        role_drift=role_drift,
        custom_roles=custom_roles,
        direct_user_caps=direct_user_caps,
        high_risk_non_admins=high_risk_non_admins,
        orphan_caps=orphan_caps,
        orphan_groups=group_by_prefix(orphan_caps),
        all_caps_seen=all_caps_seen,
        summary=AuditSummary(
            total_roles=len(snapshot),
            custom_roles=len(custom_roles),
            direct_user_caps=len(direct_user_caps),
            high_risk_non_admins=len(high_risk_non_admins),
            orphan_caps=len(orphan_caps),
        ),
    )


class CapabilityAuditor:
    """Runs one audit against a source, holding only the baseline as configuration.

    is_role_flag decides which keys of a user's raw capability mapping are
    role membership flags. By default it is built from the live role ids.
    """

    def __init__(self, baseline: Optional[Baseline] = None, is_role_flag: Optional[RoleFlagPredicate] = None) -> None:
        self.baseline = baseline or Baseline.default()
        self.is_role_flag = is_role_flag

    def run(self, source: AccessControlSource) -> Union[AuditResult, AuditError]:
        """Audit the source. Returns a complete AuditResult or a single AuditError.

        Only a total data-source failure produces AuditError; a user that
        cannot be resolved is left out of the user sections and the run goes on.
        """
        try:
            roles = source.list_roles()
        except HostUnavailableError as e:
            logger.warning("Audit aborted: %s", e)
            return AuditError(error=str(e))
        if roles is None:
            logger.warning("Audit aborted: role data not available")
            return AuditError(error="Role data not available")

        try:
            users = self._resolve_users(source)
        except HostUnavailableError as e:
            logger.warning("Audit aborted: %s", e)
            return AuditError(error=str(e))

        return self.audit(roles, users)

    def audit(self, roles: Mapping[str, Any], users: list[User]) -> AuditResult:
        """Audit an already-loaded snapshot. Pure function of its inputs and the baseline."""
        ledger = CapabilityLedger(self.baseline)

        role_drift, custom_roles = compute_drift(roles, self.baseline, ledger)

        is_role_flag = self.is_role_flag or role_flag_predicate(roles)
        direct_user_caps, high_risk_non_admins = detect_anomalies(
            users, is_role_flag, self.baseline.high_risk, ledger
        )

        orphan_caps = classify_orphans(ledger.pending, self.baseline)

        result = assemble_report(
            roles,
            self.baseline,
            role_drift,
            custom_roles,
            direct_user_caps,
            high_risk_non_admins,
            orphan_caps,
            ledger.all_caps_seen,
        )
        logger.info(
            "Audit complete: %d roles (%d custom), %d users scanned, %d direct, %d high-risk, %d orphan caps",
            result.summary.total_roles,
            result.summary.custom_roles,
            len(users),
            result.summary.direct_user_caps,
            result.summary.high_risk_non_admins,
            result.summary.orphan_caps,
        )
        return result

    def _resolve_users(self, source: AccessControlSource) -> list[User]:
        users: list[User] = []
        for user_id in source.list_user_ids():
            try:
                user = source.resolve_user(user_id)
            except UserResolutionError as e:
                logger.warning("Skipping user %s: %s", user_id, e)
                continue
            if user is None:
                logger.warning("Skipping user %s: could not be resolved", user_id)
                continue
            users.append(user)
        return users


def run_audit(source: AccessControlSource, baseline: Optional[Baseline] = None) -> Union[AuditResult, AuditError]:
    """Convenience wrapper: build a fresh auditor and run it once."""
    return CapabilityAuditor(baseline).run(source)
