"""CLI commands for glpi-ticket-tracker.

This module provides command-line utilities for:
- Validating configuration
- Dumping configuration (with secrets redacted)
- Running the GLPI operations (fetch a ticket, search, list groups, test a connection)
"""
from __future__ import annotations

import argparse
import asyncio
import json
import sys
from collections.abc import Coroutine, Sequence
from datetime import date
from typing import Any

from glpi_ticket_tracker.adapters.glpi.errors import ConfigurationError, GlpiError
from glpi_ticket_tracker.adapters.glpi.models import GlpiConfig
from glpi_ticket_tracker.app.service import GlpiService
from glpi_ticket_tracker.config.env_aliases import deprecated_in_use
from glpi_ticket_tracker.config.load import load_settings
from glpi_ticket_tracker.config.redact import redact_settings_dict
from glpi_ticket_tracker.config.validate import ConfigValidationError
from glpi_ticket_tracker.domain.time_utils import parse_day


def _print_json(payload: Any) -> None:
    print(json.dumps(payload, indent=2, default=str))


def _run_service(call: Coroutine[Any, Any, Any]) -> tuple[int, Any]:
    """Run a service coroutine. Exit codes: 0 ok, 1 GLPI failure, 2 not configured."""
    try:
        return 0, asyncio.run(call)
    except ConfigurationError as e:
        print(f"✗ {e}", file=sys.stderr)
        return 2, None
    except GlpiError as e:
        print(f"✗ {e}", file=sys.stderr)
        return 1, None


def _service_from_settings() -> GlpiService | None:
    try:
        return GlpiService.from_settings(load_settings())
    except ConfigValidationError as e:
        print(f"✗ {e}", file=sys.stderr)
        return None


def cmd_validate_config(args: argparse.Namespace) -> int:
    """Validate configuration and exit with appropriate code.

    Exit codes:
        0: Configuration is valid
        1: Configuration is invalid (including a missing CONFIG_PATH file)
    """
    try:
        settings = load_settings()
    except ConfigValidationError as e:
        print(f"✗ {e}", file=sys.stderr)
        return 1
    print("✓ Configuration is valid")
    print(f"  - GLPI URL: {settings.glpi.base_url or '(from credential store)'}")
    print(f"  - Credential store: {settings.storage.config_path}")
    print(f"  - Timeout: {settings.glpi.timeout_seconds or 'none'}")
    print(f"  - Metrics enabled: {settings.observability.metrics_enabled}")
    return 0


def cmd_dump_config(args: argparse.Namespace) -> int:
    """Dump current configuration as JSON (with secrets redacted)."""
    try:
        settings = load_settings()
    except ConfigValidationError as e:
        print(f"✗ Failed to load configuration: {e}", file=sys.stderr)
        return 1
    _print_json(redact_settings_dict(settings.model_dump(mode="json")))
    return 0


def cmd_show_deprecated(args: argparse.Namespace) -> int:
    """Show deprecated environment variables that are in use."""
    found = deprecated_in_use()
    if not found:
        print("No deprecated environment variables in use.")
        return 0

    print("Deprecated environment variables detected:")
    for old_name, new_name in found:
        print(f"  {old_name} → {new_name}")
    print("Please migrate to the canonical names.")
    return 0


def cmd_fetch_ticket(args: argparse.Namespace) -> int:
    service = _service_from_settings()
    if service is None:
        return 1
    code, ticket = _run_service(service.fetch_ticket(args.ticket_id))
    if code:
        return code
    if ticket is None:
        print(f"✗ Ticket {args.ticket_id} not found", file=sys.stderr)
        return 1
    _print_json(ticket.model_dump(mode="json"))
    return 0


def cmd_search(args: argparse.Namespace) -> int:
    if args.date_from > args.date_to:
        print("✗ --from must not be after --to", file=sys.stderr)
        return 1
    service = _service_from_settings()
    if service is None:
        return 1
    code, rows = _run_service(
        service.search_tickets(args.group_id, args.date_from, args.date_to)
    )
    if code:
        return code
    _print_json({"count": len(rows), "items": [row.model_dump(mode="json") for row in rows]})
    return 0


def cmd_list_groups(args: argparse.Namespace) -> int:
    service = _service_from_settings()
    if service is None:
        return 1
    code, groups = _run_service(service.list_groups())
    if code:
        return code
    _print_json(
        {"count": len(groups), "items": [group.model_dump(mode="json") for group in groups]}
    )
    return 0


def cmd_test_connection(args: argparse.Namespace) -> int:
    """Test the stored credentials, or the ones given on the command line."""
    service = _service_from_settings()
    if service is None:
        return 1
    if args.base_url or args.app_token or args.user_token:
        if not (args.base_url and args.app_token and args.user_token):
            print(
                "✗ --base-url, --app-token and --user-token must be given together",
                file=sys.stderr,
            )
            return 1
        config: GlpiConfig | None = GlpiConfig(
            base_url=args.base_url, app_token=args.app_token, user_token=args.user_token
        )
    else:
        config = service.store.load()
    if config is None:
        print("✗ GLPI API configuration not found", file=sys.stderr)
        return 2

    result = asyncio.run(service.test_connection(config, args.ticket_id))
    _print_json(result.model_dump(mode="json"))
    return 0 if result.success else 1


def _day(value: str) -> date:
    try:
        return parse_day(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"expected YYYY-MM-DD, got {value!r}") from exc


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="glpi-ticket-tracker",
        description="GLPI ticket tracker CLI utilities",
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    validate_parser = subparsers.add_parser(
        "validate-config",
        help="Validate configuration and exit",
    )
    validate_parser.set_defaults(func=cmd_validate_config)

    dump_parser = subparsers.add_parser(
        "dump-config",
        help="Dump configuration as JSON (secrets redacted)",
    )
    dump_parser.set_defaults(func=cmd_dump_config)

    deprecated_parser = subparsers.add_parser(
        "show-deprecated",
        help="Show deprecated environment variables in use",
    )
    deprecated_parser.set_defaults(func=cmd_show_deprecated)

    fetch_parser = subparsers.add_parser(
        "fetch-ticket",
        help="Fetch one ticket with its merged timeline",
    )
    fetch_parser.add_argument("ticket_id", help="GLPI ticket id")
    fetch_parser.set_defaults(func=cmd_fetch_ticket)

    search_parser = subparsers.add_parser(
        "search",
        help="Search tickets opened within a day range",
    )
    search_parser.add_argument("--group-id", type=int, default=None, help="Group filter")
    search_parser.add_argument(
        "--from", dest="date_from", type=_day, required=True, help="First day (YYYY-MM-DD)"
    )
    search_parser.add_argument(
        "--to", dest="date_to", type=_day, required=True, help="Last day (YYYY-MM-DD)"
    )
    search_parser.set_defaults(func=cmd_search)

    groups_parser = subparsers.add_parser(
        "list-groups",
        help="List GLPI groups",
    )
    groups_parser.set_defaults(func=cmd_list_groups)

    test_parser = subparsers.add_parser(
        "test-connection",
        help="Check GLPI credentials (optionally reading one ticket)",
    )
    test_parser.add_argument("--base-url", default=None)
    test_parser.add_argument("--app-token", default=None)
    test_parser.add_argument("--user-token", default=None)
    test_parser.add_argument("--ticket-id", default=None)
    test_parser.set_defaults(func=cmd_test_connection)

    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
