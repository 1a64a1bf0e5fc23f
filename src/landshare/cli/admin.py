"""Operator CLI for reconciliation and migration tasks.

Every subcommand prints a JSON document to stdout and returns a process exit
code: 0 on success, 1 when the command failed or reported failures.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import Any, Awaitable, Callable, Dict

from landshare.errors import LandshareError
from landshare.services.factories import ServiceBundle, build_services
from landshare.settings import get_settings

LOGGER = logging.getLogger(__name__)
_DEFAULT_OPERATOR = "cli"

Handler = Callable[[ServiceBundle, argparse.Namespace], Awaitable[Dict[str, Any]]]


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Return parsed CLI arguments.

    Args:
        argv: Optional list of CLI arguments. When ``None``, defaults to ``sys.argv``.
    """

    parser = argparse.ArgumentParser(prog="landshare-admin", description="landshare back-office operations")
    parser.add_argument("--operator", default=_DEFAULT_OPERATOR, help="Operator identity recorded in the audit log")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("migration-status", help="Count investments missing an ownership row")
    subparsers.add_parser("migrate", help="Backfill missing ownership rows")
    subparsers.add_parser("duplicates", help="List users sharing a normalized email")

    merge = subparsers.add_parser("merge", help="Merge a duplicate user into a primary user")
    merge.add_argument("primary_id")
    merge.add_argument("secondary_id")

    resume = subparsers.add_parser("resume-merge", help="Finish an interrupted merge")
    resume.add_argument("journal_id")

    delete = subparsers.add_parser("delete-user", help="Hard-delete a user record")
    delete.add_argument("user_id")

    portfolio = subparsers.add_parser("portfolio", help="Show a user's de-duplicated portfolio")
    target = portfolio.add_mutually_exclusive_group(required=True)
    target.add_argument("--user-id")
    target.add_argument("--email")

    return parser.parse_args(argv)


async def _migration_status(services: ServiceBundle, args: argparse.Namespace) -> Dict[str, Any]:
    status = await services.migration.check_migration_status()
    return status.as_dict()


async def _migrate(services: ServiceBundle, args: argparse.Namespace) -> Dict[str, Any]:
    report = await services.migration.run_migration(operator=args.operator)
    return report.as_dict(error_limit=get_settings().migration.error_display_limit)


async def _duplicates(services: ServiceBundle, args: argparse.Namespace) -> Dict[str, Any]:
    groups = await services.duplicates.list_duplicate_groups()
    return {"groups": [group.to_dict() for group in groups], "count": len(groups)}


async def _merge(services: ServiceBundle, args: argparse.Namespace) -> Dict[str, Any]:
    result = await services.duplicates.merge(args.primary_id, args.secondary_id, operator=args.operator)
    return result.as_dict()


async def _resume_merge(services: ServiceBundle, args: argparse.Namespace) -> Dict[str, Any]:
    result = await services.duplicates.resume_merge(args.journal_id, operator=args.operator)
    return result.as_dict()


async def _delete_user(services: ServiceBundle, args: argparse.Namespace) -> Dict[str, Any]:
    await services.duplicates.delete_duplicate(args.user_id, operator=args.operator)
    return {"deleted": args.user_id}


async def _portfolio(services: ServiceBundle, args: argparse.Namespace) -> Dict[str, Any]:
    if args.user_id:
        summary = await services.portfolio.summary(args.user_id)
    else:
        summary = await services.portfolio.summary_for_email(args.email)
    return summary.as_dict()


_HANDLERS: Dict[str, Handler] = {
    "migration-status": _migration_status,
    "migrate": _migrate,
    "duplicates": _duplicates,
    "merge": _merge,
    "resume-merge": _resume_merge,
    "delete-user": _delete_user,
    "portfolio": _portfolio,
}


def _configure_logging() -> None:
    level_name = get_settings().log_level.upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
        stream=sys.stderr,
    )


def run(args: argparse.Namespace, services: ServiceBundle | None = None) -> int:
    """Execute the parsed command and print its JSON result."""

    bundle = services or build_services()
    handler = _HANDLERS[args.command]
    try:
        payload = asyncio.run(handler(bundle, args))
    except LandshareError as exc:
        LOGGER.error("%s failed: %s", args.command, exc)
        print(json.dumps({"error": type(exc).__name__, "detail": str(exc)}, indent=2))
        return 1
    print(json.dumps(payload, indent=2, default=str))
    if payload.get("success") is False:
        return 1
    return 0


def main(argv: list[str] | None = None) -> int:
    """Console-script entry point."""

    args = parse_args(argv)
    _configure_logging()
    return run(args)


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
