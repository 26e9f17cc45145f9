"""
anomalies.py -- Per-user scan for direct capability assignments and for
high-risk capabilities held by anyone who is not an administrator.
"""

from collections.abc import Callable, Mapping

from .drift import held_caps
from .models import ADMIN_ROLE, DirectUserCaps, HighRiskUser, User
from .orphans import CapabilityLedger

# Decides whether a key in a user's raw capability mapping is a role flag.
RoleFlagPredicate = Callable[[str], bool]


def role_flag_predicate(role_ids) -> RoleFlagPredicate:
    """Build the default predicate: a key is a role flag iff it names a known role."""
    known = frozenset(str(r) for r in role_ids)
    return lambda key: key in known


def direct_caps(user: User, is_role_flag: RoleFlagPredicate) -> list[str]:
    """Return the sorted capabilities granted on the account itself, outside any role.

    The host stores role membership flags in the same mapping as direct caps,
    so role keys are filtered out first.
    """
    return [cap for cap in held_caps(user.caps) if not is_role_flag(cap)]


def is_administrator(user: User) -> bool:
    return ADMIN_ROLE in user.roles


def high_risk_hits(user: User, high_risk: frozenset[str]) -> list[str]:
    effective = held_caps(user.allcaps) if isinstance(user.allcaps, Mapping) else user.allcaps
    return sorted(cap for cap in effective if cap in high_risk)


def scan_user(
    user: User,
    is_role_flag: RoleFlagPredicate,
    high_risk: frozenset[str],
    ledger: CapabilityLedger,
) -> tuple[DirectUserCaps | None, HighRiskUser | None]:
    """Scan one resolved user. Either record is None when there is nothing to report."""
    roles = list(user.roles)

    direct = direct_caps(user, is_role_flag)
    ledger.observe_all(direct)
    direct_record = None
    if direct:
        direct_record = DirectUserCaps(id=user.id, login=user.login, email=user.email, roles=roles, direct=direct)

    risk_record = None
    if not is_administrator(user):
        hits = high_risk_hits(user, high_risk)
        if hits:
            risk_record = HighRiskUser(id=user.id, login=user.login, email=user.email, roles=roles, caps=hits)

    return direct_record, risk_record


def detect_anomalies(
    users: list[User],
    is_role_flag: RoleFlagPredicate,
    high_risk: frozenset[str],
    ledger: CapabilityLedger,
) -> tuple[list[DirectUserCaps], list[HighRiskUser]]:
    """Scan resolved users in the order given. Output is not re-sorted."""
    direct_user_caps: list[DirectUserCaps] = []
    high_risk_non_admins: list[HighRiskUser] = []

    for user in users:
        direct_record, risk_record = scan_user(user, is_role_flag, high_risk, ledger)
        if direct_record is not None:
            direct_user_caps.append(direct_record)
        if risk_record is not None:
            high_risk_non_admins.append(risk_record)

    return direct_user_caps, high_risk_non_admins
