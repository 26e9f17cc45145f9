#!/usr/bin/env python3
"""
Capability Drift Auditor -- read-only audit of roles, direct user grants, and
high-risk permissions. It does not remove caps or rewrite roles; it reports.

Usage:
  python main.py --snapshot site-roles.json
  python main.py --snapshot site-roles.json --format json > audit.json
  python main.py --snapshot site-roles.json --format html > audit.html
  python main.py --host-url https://admin.example.com/access --host-token TOKEN
  python main.py --snapshot site-roles.json --baseline strict-baseline.json

Exit status:
  0  audit completed
  2  the audit could not run (no role data)
"""

import argparse
import logging
import sys
from typing import Optional

from core.baseline import load_baseline
from core.fetcher import AccessControlSource, HostApiSource, SnapshotSource
from core.formatter import disable_color, print_report, to_export_json, to_html, to_markdown
from core.models import AuditError, HostUnavailableError
from core.pipeline import CapabilityAuditor

logger = logging.getLogger("capdrift.cli")


def _build_source(args: argparse.Namespace) -> Optional[AccessControlSource]:
    if args.snapshot:
        return SnapshotSource.from_file(args.snapshot)
    if args.host_url:
        return HostApiSource(args.host_url, token=args.host_token, timeout=args.timeout)
    return None


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="capdrift",
        description="Audit role capability drift, direct user grants, and high-risk permissions.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py --snapshot site-roles.json
  python main.py --snapshot site-roles.json --format markdown
  python main.py --host-url https://admin.example.com/access --format json
        """,
    )
    parser.add_argument(
        "--snapshot",
        metavar="PATH",
        help="JSON snapshot with 'roles' and 'users' exported from the host",
    )
    parser.add_argument(
        "--host-url",
        metavar="URL",
        help="Base URL of the host access-control API (serves /roles, /users, /users/{id})",
    )
    parser.add_argument(
        "--host-token",
        metavar="TOKEN",
        default=None,
        help="Bearer token for the host API",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=10.0,
        help="Per-request timeout in seconds for the host API (default: 10)",
    )
    parser.add_argument(
        "--baseline",
        metavar="PATH",
        default=None,
        help="JSON file overriding the default baseline and/or high-risk set",
    )
    parser.add_argument(
        "--site-url",
        default="",
        help="Site URL recorded in the JSON export",
    )
    parser.add_argument(
        "--format",
        choices=["terminal", "json", "markdown", "html"],
        default="terminal",
        metavar="FORMAT",
        help="Output format: terminal (default), json, markdown, or html",
    )
    parser.add_argument(
        "--no-color",
        action="store_true",
        help="Disable ANSI color codes in terminal output",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Log progress to stderr",
    )
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stderr,
    )

    # Apply color preference before any output
    if args.no_color:
        disable_color()

    try:
        baseline = load_baseline(args.baseline)
    except ValueError as e:
        parser.error(str(e))

    try:
        source = _build_source(args)
    except HostUnavailableError as e:
        logger.warning("Host source unavailable: %s", e)
        outcome = AuditError(error=str(e))
    else:
        if source is None:
            parser.print_help()
            return 1
        outcome = CapabilityAuditor(baseline).run(source)

    if args.format == "json":
        print(to_export_json(outcome, site_url=args.site_url))
    elif args.format == "markdown":
        print(to_markdown(outcome), end="")
    elif args.format == "html":
        print(to_html(outcome), end="")
    else:
        print_report(outcome)

    return 2 if isinstance(outcome, AuditError) else 0


if __name__ == "__main__":
    sys.exit(main())
