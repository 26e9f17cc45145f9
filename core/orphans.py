"""
orphans.py -- Capabilities that exist on roles or users but belong to no
baseline role. Some belong to active plugins, some to dead plugins, some are
typos.
"""

from typing import Iterable

from .baseline import Baseline
from .models import MISC_PREFIX, OrphanGroup


class CapabilityLedger:
    """Running record of every capability one audit run encounters.

    The drift engine and anomaly detector both feed it; anything outside the
    baseline union is queued as an orphan candidate. One ledger per run.
    """

    def __init__(self, baseline: Baseline) -> None:
        self._baseline = baseline
        self._seen: set[str] = set()
        self._pending: set[str] = set()

    def observe(self, cap: str) -> None:
        self._seen.add(cap)
        if not self._baseline.contains(cap):
            self._pending.add(cap)

    def observe_all(self, caps: Iterable[str]) -> None:
        for cap in caps:
            self.observe(cap)

    @property
    def all_caps_seen(self) -> list[str]:
        return sorted(self._seen)

    @property
    def pending(self) -> set[str]:
        return set(self._pending)


def classify_orphans(pending: Iterable[str], baseline: Baseline) -> list[str]:
    """Return the deduplicated, sorted list of capabilities outside every baseline list.

    Re-checks membership so the result holds for any candidate input, and
    running it on its own output returns the same list.
    """
    return sorted({cap for cap in pending if not baseline.contains(cap)})


def cap_prefix(cap: str) -> str:
    """Return the substring before the first underscore, or "misc".

    "plugin_custom_cap" -> "plugin", "weirdcap" -> "misc", "_private" -> "misc".
    """
    prefix, sep, _ = cap.partition("_")
    if not sep or not prefix:
        return MISC_PREFIX
    return prefix


def group_by_prefix(caps: Iterable[str]) -> list[OrphanGroup]:
    """Group capabilities by prefix for display.

    Members are sorted; groups are ordered by descending size, then by prefix.
    """
    groups: dict[str, set[str]] = {}
    for cap in caps:
        cap = str(cap)
        groups.setdefault(cap_prefix(cap), set()).add(cap)

    ordered = sorted(groups.items(), key=lambda item: (-len(item[1]), item[0]))
    return [OrphanGroup(prefix=prefix, caps=sorted(members)) for prefix, members in ordered]
