from dataclasses import dataclass, field
from typing import Any

# ---------------------------------------------------------------------------
# Domain constants
# ---------------------------------------------------------------------------

# The one role whose holders are allowed to carry high-risk capabilities.
ADMIN_ROLE = "administrator"

# Prefix bucket for capabilities that carry no usable prefix.
MISC_PREFIX = "misc"


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class HostUnavailableError(RuntimeError):
    """The host role/capability subsystem could not be reached or returned no data."""


class UserResolutionError(LookupError):
    """A single enumerated user id could not be resolved to full detail."""


# ---------------------------------------------------------------------------
# Snapshot input
# ---------------------------------------------------------------------------


@dataclass
class User:
    id: int
    login: str
    email: str
    roles: list[str] = field(default_factory=list)
    caps: dict[str, bool] = field(default_factory=dict)  # role flags + direct flags, as stored by the host
    allcaps: set[str] = field(default_factory=set)  # effective set, resolved by the host


# ---------------------------------------------------------------------------
# Audit records
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RoleDrift:
    name: str
    added: list[str]
    removed: list[str]
    caps_count: int
    high_risk: list[str]


@dataclass(frozen=True)
class CustomRole:
    name: str
    caps_count: int
    caps: list[str]
    high_risk: list[str]


@dataclass(frozen=True)
class DirectUserCaps:
    id: int
    login: str
    email: str
    roles: list[str]
    direct: list[str]


@dataclass(frozen=True)
class HighRiskUser:
    id: int
    login: str
    email: str
    roles: list[str]
    caps: list[str]


@dataclass(frozen=True)
class OrphanGroup:
    prefix: str
    caps: list[str]


@dataclass(frozen=True)
class AuditSummary:
    total_roles: int = 0
    custom_roles: int = 0
    direct_user_caps: int = 0
    high_risk_non_admins: int = 0
    orphan_caps: int = 0


@dataclass(frozen=True)
class AuditResult:
    """One complete audit run.

    Frozen at the attribute level only. The lists and dicts inside are shared
    with every renderer and exporter, which read them and never modify them.
    """

    roles: dict[str, dict[str, Any]]
    baseline: dict[str, list[str]]
    high_risk_caps: list[str]
    role_drift: dict[str, RoleDrift]
    custom_roles: dict[str, CustomRole]
    direct_user_caps: list[DirectUserCaps]
    high_risk_non_admins: list[HighRiskUser]
    orphan_caps: list[str]
    orphan_groups: list[OrphanGroup]
    all_caps_seen: list[str]
    summary: AuditSummary


@dataclass(frozen=True)
class AuditError:
    """Returned in place of an AuditResult when the whole audit cannot run."""

    error: str
