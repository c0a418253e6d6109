"""objecthub CLI.

Usage:
    python -m objecthub storage-id --owner <owner> --sha <hex> [--json]
    python -m objecthub migrate [--revision head]
    python -m objecthub migrate --downgrade <revision>
    python -m objecthub migrate --status

Exit codes:
    0: Success
    1: Internal error / database not configured
    2: Invalid input
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Any

from objecthub.persistence.db import DatabaseConfigError, get_admin_engine
from objecthub.services.objects.errors import InvalidShaError
from objecthub.services.objects.identity import canonical_sha, storage_id_for

logger = logging.getLogger(__name__)


def _output_json(data: dict[str, Any]) -> None:
    """Output JSON to stdout with deterministic ordering."""
    print(json.dumps(data, sort_keys=True, indent=2))


def _make_error_result(code: str, message: str) -> dict[str, Any]:
    return {"error": {"code": code, "message": message}, "ok": False}


def cmd_storage_id(args: argparse.Namespace) -> int:
    """Print the storage id an owner's record for a hash is stored under."""
    try:
        storage_id = storage_id_for(args.owner, args.sha)
    except InvalidShaError as e:
        _output_json(_make_error_result("INVALID_SHA", e.message))
        return 2

    if args.json:
        _output_json(
            {
                "ok": True,
                "owner": args.owner,
                "sha256sum": canonical_sha(args.sha),
                "storage-id": storage_id,
            }
        )
    else:
        print(storage_id)
    return 0


def cmd_migrate(args: argparse.Namespace) -> int:
    """Run Alembic migrations against OBJECTHUB_DATABASE_ADMIN_URL."""
    from objecthub.persistence import migrate

    try:
        if args.status:
            current = migrate.get_current_revision(get_admin_engine())
            head = migrate.get_head_revision()
            _output_json(
                {"current": current, "head": head, "ok": True, "up_to_date": current == head}
            )
        elif args.downgrade:
            migrate.run_downgrade(revision=args.downgrade)
            _output_json({"ok": True, "downgraded_to": args.downgrade})
        else:
            migrate.run_upgrade(revision=args.revision)
            _output_json({"ok": True, "upgraded_to": args.revision})
    except DatabaseConfigError as e:
        _output_json(_make_error_result("DATABASE_NOT_CONFIGURED", str(e)))
        return 1
    return 0


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="objecthub",
        description="objecthub - content-addressed object store control plane",
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    storage_id_parser = subparsers.add_parser(
        "storage-id",
        help="Compute the storage id for an owner and content hash",
    )
    storage_id_parser.add_argument("--owner", required=True, help="Owning principal")
    storage_id_parser.add_argument(
        "--sha", required=True, metavar="HEX", help="sha256 of the content (64 hex chars)"
    )
    storage_id_parser.add_argument(
        "--json", action="store_true", help="Print a JSON object instead of the bare id"
    )

    migrate_parser = subparsers.add_parser("migrate", help="Run database migrations")
    migrate_parser.add_argument(
        "--revision", default="head", help="Target revision for upgrade (default: head)"
    )
    migrate_parser.add_argument(
        "--downgrade", default=None, metavar="REVISION", help="Downgrade to REVISION instead"
    )
    migrate_parser.add_argument(
        "--status", action="store_true", help="Report current and head revisions without migrating"
    )

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point.

    Exit codes:
        0: Success
        1: Internal error (unexpected) / database not configured
        2: Invalid input
    """
    try:
        parser = create_parser()
        args = parser.parse_args(argv)

        if args.command is None:
            parser.print_help()
            return 0

        if args.command == "storage-id":
            return cmd_storage_id(args)

        if args.command == "migrate":
            return cmd_migrate(args)

        return 0

    except Exception as e:
        logger.exception("Command failed")
        _output_json(_make_error_result("INTERNAL_ERROR", str(e)))
        return 1


if __name__ == "__main__":
    sys.exit(main())
