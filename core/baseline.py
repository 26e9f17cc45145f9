"""
baseline.py -- Reference capability sets for the default roles, and the
capabilities considered dangerous outside the administrator role.

Best effort and intentionally conservative. Hosts shift their defaults over
time and plugins add meta caps; the goal is to catch obvious drift.
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

logger = logging.getLogger("capdrift.baseline")

# ---------------------------------------------------------------------------
# High-risk capabilities
# ---------------------------------------------------------------------------

# Anything here that shows up outside administrators gets reported.
# Some sites intentionally delegate a few of these. Most do not mean to.
HIGH_RISK_CAPS: tuple[str, ...] = (
    "manage_options",
    "edit_theme_options",
    "customize",
    "activate_plugins",
    "install_plugins",
    "update_plugins",
    "delete_plugins",
    "edit_plugins",
    "upload_plugins",
    "switch_themes",
    "install_themes",
    "update_themes",
    "delete_themes",
    "edit_themes",
    "edit_files",
    "edit_users",
    "create_users",
    "delete_users",
    "promote_users",
    "list_users",
    "remove_users",
    "update_core",
    "export",
    "import",
    "unfiltered_html",
    "unfiltered_upload",
)

# ---------------------------------------------------------------------------
# Default role baseline
# ---------------------------------------------------------------------------

_SUBSCRIBER = ["read"]

_CONTRIBUTOR = ["read", "edit_posts", "delete_posts"]

_AUTHOR = [
    "read",
    "edit_posts",
    "delete_posts",
    "publish_posts",
    "upload_files",
    "delete_published_posts",
    "edit_published_posts",
]

_EDITOR = [
    "read",
    "edit_posts",
    "edit_others_posts",
    "edit_published_posts",
    "publish_posts",
    "delete_posts",
    "delete_published_posts",
    "delete_others_posts",
    "manage_categories",
    "moderate_comments",
    "upload_files",
    "edit_pages",
    "edit_others_pages",
    "edit_published_pages",
    "publish_pages",
    "delete_pages",
    "delete_published_pages",
    "delete_others_pages",
    "read_private_pages",
    "read_private_posts",
]

# Simplified. Real admins can do far more via meta caps and plugin additions,
# but non-admins starting to match this set is already a problem.
_ADMINISTRATOR = [
    "read",
    "manage_options",
    "edit_theme_options",
    "customize",
    "activate_plugins",
    "install_plugins",
    "update_plugins",
    "delete_plugins",
    "edit_plugins",
    "upload_plugins",
    "switch_themes",
    "install_themes",
    "update_themes",
    "delete_themes",
    "edit_themes",
    "edit_files",
    "edit_users",
    "create_users",
    "delete_users",
    "promote_users",
    "list_users",
    "remove_users",
    "update_core",
    "export",
    "import",
    "moderate_comments",
    "manage_categories",
    "upload_files",
    "unfiltered_html",
]


def default_baseline() -> dict[str, list[str]]:
    """Return a fresh copy of the default role baseline, keyed by role id."""
    return {
        "subscriber": list(_SUBSCRIBER),
        "contributor": list(_CONTRIBUTOR),
        "author": list(_AUTHOR),
        "editor": list(_EDITOR),
        "administrator": list(_ADMINISTRATOR),
    }


def high_risk_capabilities() -> set[str]:
    return set(HIGH_RISK_CAPS)


# ---------------------------------------------------------------------------
# Baseline value object
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Baseline:
    """The reference data one audit run compares against.

    Construct with Baseline.default() for the built-in sets, or pass any
    mapping/set to audit against a different reference (tests, site policy).
    """

    roles: dict[str, list[str]]
    high_risk: frozenset[str]
    _union: frozenset[str] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        union: set[str] = set()
        for caps in self.roles.values():
            union.update(caps)
        object.__setattr__(self, "_union", frozenset(union))

    @classmethod
    def default(cls) -> "Baseline":
        return cls(roles=default_baseline(), high_risk=frozenset(high_risk_capabilities()))

    @classmethod
    def from_file(cls, path: str) -> "Baseline":
        """Load a baseline override from a JSON file.

        Expected shape: {"baseline": {role_id: [cap, ...]}, "high_risk": [cap, ...]}.
        Either key may be omitted; the missing half falls back to the default.
        Raises ValueError if the file is unreadable or wrongly shaped.
        """
        file_path = Path(path).resolve()
        try:
            data = json.loads(file_path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise ValueError(f"Could not read baseline file '{path}': {e}") from e
        if not isinstance(data, dict):
            raise ValueError(f"Baseline file '{path}' must contain a JSON object.")

        roles = data.get("baseline")
        if roles is None:
            roles = default_baseline()
        elif not isinstance(roles, dict) or not all(isinstance(v, list) for v in roles.values()):
            raise ValueError("'baseline' must map role ids to capability lists.")

        high_risk = data.get("high_risk")
        if high_risk is None:
            high_risk = high_risk_capabilities()
        elif not isinstance(high_risk, list):
            raise ValueError("'high_risk' must be a list of capability names.")

        logger.info("Loaded baseline override from %s (%d roles)", file_path, len(roles))
        return cls(
            roles={str(k): [str(c) for c in v] for k, v in roles.items()},
            high_risk=frozenset(str(c) for c in high_risk),
        )

    def contains(self, cap: str) -> bool:
        """True if cap appears in any baseline role list (exact, case-sensitive)."""
        return cap in self._union

    def caps_for(self, role_id: str) -> Optional[list[str]]:
        return self.roles.get(role_id)


def load_baseline(path: Optional[str] = None) -> Baseline:
    return Baseline.from_file(path) if path else Baseline.default()
