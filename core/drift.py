"""
drift.py -- Compares live role capability sets against the baseline.

Known roles get added/removed diffs. Custom roles are listed for visibility
and flagged for high-risk caps, but never judged.
"""

from collections.abc import Mapping
from typing import Any

from .baseline import Baseline
from .models import CustomRole, RoleDrift
from .orphans import CapabilityLedger


def held_caps(caps: Any) -> list[str]:
    """Return the sorted names of every truthy entry in a capability mapping.

    Anything that is not a mapping (a missing value, a host's empty-list
    encoding, garbage) degrades to no capabilities.
    """
    if not isinstance(caps, Mapping):
        return []
    return sorted(str(cap) for cap, enabled in caps.items() if enabled)


def role_name(role_id: str, role_data: Any) -> str:
    if isinstance(role_data, Mapping):
        name = role_data.get("name")
        if isinstance(name, str) and name:
            return name
    return str(role_id)


def compute_drift(
    roles: Mapping[str, Any],
    baseline: Baseline,
    ledger: CapabilityLedger,
) -> tuple[dict[str, RoleDrift], dict[str, CustomRole]]:
    """Classify every role as known (with drift) or custom.

    Args:
        roles:    role id -> {"name": str, "capabilities": {cap: bool}}.
        baseline: Reference sets; membership decides known vs custom.
        ledger:   Receives every held capability for all-caps-seen and orphan tracking.

    Returns (role_drift, custom_roles), both keyed by role id in sorted order.
    """
    role_drift: dict[str, RoleDrift] = {}
    custom_roles: dict[str, CustomRole] = {}

    for role_id in sorted(roles, key=str):
        role_data = roles[role_id]
        caps = role_data.get("capabilities") if isinstance(role_data, Mapping) else None
        held = held_caps(caps)
        ledger.observe_all(held)

        high_risk = [cap for cap in held if cap in baseline.high_risk]
        base_caps = baseline.caps_for(str(role_id))

        if base_caps is not None:
            held_set = set(held)
            base_set = set(base_caps)
            role_drift[str(role_id)] = RoleDrift(
                name=role_name(role_id, role_data),
                added=sorted(held_set - base_set),
                removed=sorted(base_set - held_set),
                caps_count=len(held),
                high_risk=high_risk,
            )
        else:
            custom_roles[str(role_id)] = CustomRole(
                name=role_name(role_id, role_data),
                caps_count=len(held),
                caps=held,
                high_risk=high_risk,
            )

    return role_drift, custom_roles
