"""
formatter.py -- Renders an AuditResult to the terminal, Markdown, HTML, or JSON.

Renderers only read the result. Every list and count they show was computed
by the pipeline; nothing here re-derives audit data.
"""

import html
import json
import os
import re
import sys
from dataclasses import asdict
from datetime import datetime, timezone
from typing import Optional, Union

from .models import AuditError, AuditResult

W = 68  # output width

# Custom roles can hold hundreds of caps; show a sample.
CUSTOM_ROLE_SAMPLE = 14

EXPORT_FILENAME = "capability-drift-audit.json"

AuditOutcome = Union[AuditResult, AuditError]

# ---------------------------------------------------------------------------
# ANSI color control
# ---------------------------------------------------------------------------

_ANSI_RE = re.compile(r"\x1b\[[0-9;]*m")


def strip_ansi(text: str) -> str:
    """Remove ANSI escape sequences from a string."""
    return _ANSI_RE.sub("", text)


def _use_color() -> bool:
    """Return True if stdout is a TTY and color has not been disabled.

    Respects NO_COLOR env var (https://no-color.org) and checks sys.stdout.isatty().
    Can be overridden by calling disable_color() / enable_color().
    """
    if os.environ.get("NO_COLOR"):
        return False
    if os.environ.get("FORCE_COLOR"):
        return True
    return hasattr(sys.stdout, "isatty") and sys.stdout.isatty()


_color_enabled: Optional[bool] = None  # None = auto-detect


def disable_color() -> None:
    """Force-disable color output (called when --no-color flag is set)."""
    global _color_enabled
    _color_enabled = False


def enable_color() -> None:
    global _color_enabled
    _color_enabled = True


def _color_active() -> bool:
    if _color_enabled is not None:
        return _color_enabled
    return _use_color()


def _reset() -> str:
    return "\033[0m" if _color_active() else ""


def _bold() -> str:
    return "\033[1m" if _color_active() else ""


def _dim() -> str:
    return "\033[2m" if _color_active() else ""


def _red() -> str:
    return "\033[91m" if _color_active() else ""


def _green() -> str:
    return "\033[92m" if _color_active() else ""


# ---------------------------------------------------------------------------
# Layout helpers
# ---------------------------------------------------------------------------


def _bar(char: str = "═") -> str:
    return char * W


def _section(title: str) -> str:
    bold = _bold()
    reset = _reset()
    return f"\n  {bold}{title}{reset}\n  {'─' * (W - 2)}"


def _wrap(text: str, indent: int = 4, width: int = W) -> str:
    """Simple word-wrap at `width` chars with leading indent."""
    words = text.split()
    lines = []
    line = " " * indent
    for word in words:
        if len(line) + len(word) + 1 > width:
            lines.append(line)
            line = " " * indent + word
        else:
            line += ("" if line.strip() == "" else " ") + word
    if line.strip():
        lines.append(line)
    return "\n".join(lines)


def _join(caps: list[str]) -> str:
    return ", ".join(caps)


def caps_sample(caps: list[str], size: int = CUSTOM_ROLE_SAMPLE) -> str:
    """Comma-joined first `size` caps, with a trailing ", ..." when truncated."""
    sample = _join(caps[:size])
    if len(caps) > size:
        sample += ", ..."
    return sample


# ---------------------------------------------------------------------------
# Terminal renderer
# ---------------------------------------------------------------------------


def print_report(audit: AuditOutcome) -> None:
    bold = _bold()
    reset = _reset()
    red = _red()
    green = _green()
    dim = _dim()

    print(f"\n{bold}{_bar()}{reset}")
    print(f"  {bold}CAPABILITY DRIFT AUDIT{reset}")
    print(f"{bold}{_bar()}{reset}")

    if isinstance(audit, AuditError):
        print(f"\n  {red}{bold}Audit could not run:{reset} {audit.error}\n")
        print(f"{_bar()}\n")
        return

    # -- Summary --------------------------------------------------------------
    s = audit.summary
    print(_section("SUMMARY"))
    print(f"    {'Total roles':<44} {s.total_roles}")
    print(f"    {'Custom roles':<44} {s.custom_roles}")
    print(f"    {'Users with direct capability assignments':<44} {s.direct_user_caps}")
    risk_color = red if s.high_risk_non_admins else green
    print(f"    {'Non admin users holding high risk caps':<44} {risk_color}{bold}{s.high_risk_non_admins}{reset}")
    print(f"    {'Capabilities that look orphaned':<44} {s.orphan_caps}")

    # -- High risk ------------------------------------------------------------
    print(_section("HIGH RISK CAPABILITIES HELD BY NON ADMINS"))
    if not audit.high_risk_non_admins:
        print(f"    {green}No non admin users currently hold the high risk capability set.{reset}")
    for row in audit.high_risk_non_admins:
        print(f"    {bold}{row.login}{reset} (ID {row.id})  {dim}{row.email}{reset}")
        print(f"      roles: {_join(row.roles) or '-'}")
        print(_wrap(f"{red}{_join(row.caps)}{reset}", indent=6))

    # -- Direct caps ----------------------------------------------------------
    print(_section("USERS WITH DIRECT CAPABILITY ASSIGNMENTS"))
    if not audit.direct_user_caps:
        print("    No users with direct capability assignments detected.")
    for row in audit.direct_user_caps:
        print(f"    {bold}{row.login}{reset} (ID {row.id})  {dim}{row.email}{reset}")
        print(f"      roles: {_join(row.roles) or '-'}")
        print(_wrap(_join(row.direct), indent=6))

    # -- Role drift -----------------------------------------------------------
    print(_section("ROLE DRIFT FOR DEFAULT ROLES"))
    if not audit.role_drift:
        print("    No baseline role drift data available.")
    for role_id, row in audit.role_drift.items():
        print(f"    {bold}{row.name}{reset} ({role_id})")
        added = f"{red}{_join(row.added)}{reset}" if row.added else f"{dim}none{reset}"
        removed = _join(row.removed) if row.removed else f"{dim}none{reset}"
        risk = f"{red}{_join(row.high_risk)}{reset}" if row.high_risk else f"{dim}none{reset}"
        print(f"      added:     {added}")
        print(f"      removed:   {removed}")
        print(f"      high risk: {risk}")

    # -- Custom roles ---------------------------------------------------------
    print(_section("CUSTOM ROLES"))
    if not audit.custom_roles:
        print("    No custom roles detected.")
    for role_id, row in audit.custom_roles.items():
        risk = f"{red}{_join(row.high_risk)}{reset}" if row.high_risk else f"{dim}none{reset}"
        print(f"    {bold}{row.name}{reset} ({role_id})  {row.caps_count} caps")
        print(f"      high risk: {risk}")
        print(_wrap(caps_sample(row.caps), indent=6))

    # -- Orphans --------------------------------------------------------------
    print(_section("CAPABILITIES THAT LOOK ORPHANED"))
    if not audit.orphan_groups:
        print("    No orphan looking capabilities detected.")
    for group in audit.orphan_groups:
        print(f"    {bold}{group.prefix:<20}{reset} ({len(group.caps)})")
        print(_wrap(_join(group.caps), indent=6))

    print(f"\n{_bar()}\n")


# ---------------------------------------------------------------------------
# JSON export
# ---------------------------------------------------------------------------


def to_dict(audit: AuditOutcome) -> dict:
    return asdict(audit)


def to_json(audit: AuditOutcome) -> str:
    return json.dumps(to_dict(audit), indent=2)


def to_export_json(audit: AuditOutcome, site_url: str = "", generated_at: Optional[datetime] = None) -> str:
    """Return the downloadable export document as pretty-printed JSON.

    Shape: {"generated_at": ISO 8601 UTC, "site_url": str, "audit": {...}}.
    """
    generated_at = generated_at or datetime.now(timezone.utc)
    payload = {
        "generated_at": generated_at.astimezone(timezone.utc).isoformat(timespec="seconds"),
        "site_url": site_url,
        "audit": to_dict(audit),
    }
    return json.dumps(payload, indent=2)


# ---------------------------------------------------------------------------
# HTML export
# ---------------------------------------------------------------------------

_HTML_STYLE = """
    body { font-family: Arial, sans-serif; margin: 32px; background: #f9fafb; color: #111827; }
    h1 { font-size: 1.5rem; margin-bottom: 4px; }
    h2 { font-size: 1.1rem; margin-top: 32px; }
    p.subtitle { color: #6b7280; margin-top: 0; margin-bottom: 24px; font-size: 0.9rem; }
    table { border-collapse: collapse; width: 100%; background: #ffffff; }
    th { background: #1f2937; color: #f9fafb; text-align: left; padding: 10px 12px; font-size: 0.85rem; }
    td { padding: 9px 12px; font-size: 0.85rem; border-bottom: 1px solid #e5e7eb; vertical-align: top; }
    tr:nth-child(even) td { background: #f3f4f6; }
    .risk { color: #dc2626; font-weight: bold; }
    .ok   { color: #16a34a; font-weight: bold; }
    .dash { color: #9ca3af; }
    .error { color: #dc2626; font-weight: bold; }
"""


def _code(caps: list[str], css: str = "") -> str:
    if not caps:
        return '<span class="dash">none</span>'
    cls = f' class="{css}"' if css else ""
    return f"<code{cls}>{html.escape(_join(caps))}</code>"


def _user_cell(row) -> str:
    return f"{html.escape(row.login)} (ID {int(row.id)})<br>" f'<span class="dash">{html.escape(row.email)}</span>'


def _table(headers: list[str], rows: list[str], empty: str) -> str:
    if not rows:
        return f"  <p>{html.escape(empty)}</p>\n"
    head = "".join(f"<th>{h}</th>" for h in headers)
    body = "\n".join(rows)
    return f"  <table>\n    <thead><tr>{head}</tr></thead>\n    <tbody>\n{body}\n    </tbody>\n  </table>\n"


def _html_sections(audit: AuditResult) -> str:
    s = audit.summary
    risk_css = "risk" if s.high_risk_non_admins else "ok"
    parts = ["  <h2>Summary</h2>\n"]
    parts.append(
        _table(
            ["Metric", "Count"],
            [
                f"      <tr><td>Total roles</td><td>{s.total_roles}</td></tr>",
                f"      <tr><td>Custom roles</td><td>{s.custom_roles}</td></tr>",
                f"      <tr><td>Users with direct capability assignments</td><td>{s.direct_user_caps}</td></tr>",
                f"      <tr><td>Non admin users holding high risk capabilities</td>"
                f'<td><span class="{risk_css}">{s.high_risk_non_admins}</span></td></tr>',
                f"      <tr><td>Capabilities that look orphaned</td><td>{s.orphan_caps}</td></tr>",
            ],
            "",
        )
    )

    parts.append("  <h2>High risk capabilities held by non admins</h2>\n")
    parts.append(
        _table(
            ["User", "Roles", "High risk caps"],
            [
                f"      <tr><td>{_user_cell(r)}</td><td>{_code(r.roles)}</td><td>{_code(r.caps, 'risk')}</td></tr>"
                for r in audit.high_risk_non_admins
            ],
            "No non admin users currently hold the high risk capability set.",
        )
    )

    parts.append("  <h2>Users with direct capability assignments</h2>\n")
    parts.append(
        _table(
            ["User", "Roles", "Direct caps"],
            [
                f"      <tr><td>{_user_cell(r)}</td><td>{_code(r.roles)}</td><td>{_code(r.direct)}</td></tr>"
                for r in audit.direct_user_caps
            ],
            "No users with direct capability assignments detected.",
        )
    )

    parts.append("  <h2>Role drift for default roles</h2>\n")
    parts.append(
        _table(
            ["Role", "Added caps", "Removed caps", "High risk in role"],
            [
                f"      <tr><td><strong>{html.escape(r.name)}</strong><br><code>{html.escape(role_id)}</code></td>"
                f"<td>{_code(r.added, 'risk')}</td><td>{_code(r.removed)}</td><td>{_code(r.high_risk, 'risk')}</td></tr>"
                for role_id, r in audit.role_drift.items()
            ],
            "No baseline role drift data available.",
        )
    )

    parts.append("  <h2>Custom roles</h2>\n")
    parts.append(
        _table(
            ["Role", "Caps count", "High risk caps", "Caps sample"],
            [
                f"      <tr><td><strong>{html.escape(r.name)}</strong><br><code>{html.escape(role_id)}</code></td>"
                f"<td>{r.caps_count}</td><td>{_code(r.high_risk, 'risk')}</td>"
                f"<td><code>{html.escape(caps_sample(r.caps))}</code></td></tr>"
                for role_id, r in audit.custom_roles.items()
            ],
            "No custom roles detected.",
        )
    )

    parts.append("  <h2>Capabilities that look orphaned</h2>\n")
    parts.append(
        _table(
            ["Prefix", "Count", "Caps"],
            [
                f"      <tr><td><code>{html.escape(g.prefix)}</code></td><td>{len(g.caps)}</td>"
                f"<td>{_code(g.caps)}</td></tr>"
                for g in audit.orphan_groups
            ],
            "No orphan looking capabilities detected.",
        )
    )
    return "".join(parts)


def to_html(audit: AuditOutcome) -> str:
    """Render an audit as a self-contained HTML report.

    No external CSS or JS dependencies -- all styles are inline.
    """
    if isinstance(audit, AuditError):
        body = f'  <p class="error">Audit could not run: {html.escape(audit.error)}</p>\n'
    else:
        body = _html_sections(audit)

    generated = datetime.now(timezone.utc).date().isoformat()
    return (
        "<!DOCTYPE html>\n"
        '<html lang="en">\n'
        "<head>\n"
        '  <meta charset="UTF-8">\n'
        '  <meta name="viewport" content="width=device-width, initial-scale=1">\n'
        "  <title>Capability Drift Audit</title>\n"
        f"  <style>{_HTML_STYLE}  </style>\n"
        "</head>\n"
        "<body>\n"
        "  <h1>Capability Drift Audit</h1>\n"
        f'  <p class="subtitle">Generated {generated} &nbsp;&bull;&nbsp; read-only, no changes applied</p>\n'
        f"{body}"
        "</body>\n"
        "</html>\n"
    )


# ---------------------------------------------------------------------------
# Markdown export
# ---------------------------------------------------------------------------


def _md(text: str) -> str:
    # Escape pipe characters to avoid breaking table layout.
    return text.replace("|", "\\|")


def to_markdown(audit: AuditOutcome) -> str:
    """Render an audit as Markdown tables. Suitable for tickets and chat."""
    if isinstance(audit, AuditError):
        return f"**Audit could not run:** {_md(audit.error)}\n"

    s = audit.summary
    lines = [
        "## Summary",
        "",
        "| Metric | Count |",
        "|--------|-------|",
        f"| Total roles | {s.total_roles} |",
        f"| Custom roles | {s.custom_roles} |",
        f"| Users with direct capability assignments | {s.direct_user_caps} |",
        f"| Non admin users holding high risk capabilities | {s.high_risk_non_admins} |",
        f"| Capabilities that look orphaned | {s.orphan_caps} |",
        "",
        "## High risk capabilities held by non admins",
        "",
        "| User | Roles | High risk caps |",
        "|------|-------|----------------|",
    ]
    for r in audit.high_risk_non_admins:
        lines.append(f"| {_md(r.login)} (ID {r.id}) | {_md(_join(r.roles))} | {_md(_join(r.caps))} |")

    lines += ["", "## Users with direct capability assignments", "", "| User | Roles | Direct caps |", "|------|-------|-------------|"]
    for r in audit.direct_user_caps:
        lines.append(f"| {_md(r.login)} (ID {r.id}) | {_md(_join(r.roles))} | {_md(_join(r.direct))} |")

    lines += ["", "## Role drift", "", "| Role | Added | Removed | High risk |", "|------|-------|---------|-----------|"]
    for role_id, r in audit.role_drift.items():
        lines.append(
            f"| {_md(role_id)} | {_md(_join(r.added)) or '-'} | {_md(_join(r.removed)) or '-'} "
            f"| {_md(_join(r.high_risk)) or '-'} |"
        )

    lines += ["", "## Custom roles", "", "| Role | Caps | High risk |", "|------|------|-----------|"]
    for role_id, r in audit.custom_roles.items():
        lines.append(f"| {_md(role_id)} | {r.caps_count} | {_md(_join(r.high_risk)) or '-'} |")

    lines += ["", "## Orphaned capabilities", "", "| Prefix | Count | Caps |", "|--------|-------|------|"]
    for g in audit.orphan_groups:
        lines.append(f"| {_md(g.prefix)} | {len(g.caps)} | {_md(_join(g.caps))} |")

    return "\n".join(lines) + "\n"
