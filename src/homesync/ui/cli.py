from __future__ import annotations

import argparse
import logging
import sys
from signal import SIGINT, signal
from typing import TYPE_CHECKING
from uuid import UUID

from dotenv import load_dotenv

from homesync.app import (
    check_duplicates,
    cleanup_deleted_entities,
    list_deleted_entities,
    migrate_source,
    register_internal_entity,
    restore_deleted_entity,
    run_full_sync,
)
from homesync.config import configure_logging, get_sync_config
from homesync.domain.errors import ConstraintViolation, NotFoundError, ValidationError
from homesync.domain.model import ConflictPolicy, DeletionStrategy, EntitySource
from homesync.domain.reconciliation import SyncOptions

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

    from homesync.domain.reconciliation import SyncResult

log = logging.getLogger(__name__)

_VALIDATION_ERRORS = (ValueError, ValidationError, ConstraintViolation, NotFoundError)


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Synchronise the entity registry with Home Assistant"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    sync = subparsers.add_parser("sync", help="Run a full reconciliation pass")
    sync.add_argument(
        "--dry-run",
        action="store_true",
        help="Detect and report without changing the registry",
    )
    sync.add_argument(
        "--conflict-policy",
        choices=[policy.value for policy in ConflictPolicy],
        default=None,
        help="Resolve conflicts automatically or skip certain duplicates (defaults to config)",
    )
    sync.add_argument(
        "--no-deletions",
        action="store_true",
        help="Leave records that disappeared from Home Assistant untouched",
    )
    sync.add_argument(
        "--no-merge-hybrids",
        action="store_true",
        help="Do not merge internal records with matching external ones",
    )
    sync.add_argument(
        "--deletion-strategy",
        choices=[strategy.value for strategy in DeletionStrategy],
        default=None,
        help="How to treat records that disappeared (defaults to config)",
    )

    duplicates = subparsers.add_parser("check-duplicates", help="Check a candidate for duplicates")
    duplicates.add_argument("external_id", help="Candidate identifier, e.g. light.kitchen")
    duplicates.add_argument("--domain", type=str, help="Domain (derived from the id if omitted)")
    duplicates.add_argument("--name", type=str, help="Display name to fuzzy-match")

    migrate = subparsers.add_parser("migrate-source", help="Change the source of a record")
    migrate.add_argument("entity_uuid", help="Registry id of the record")
    migrate.add_argument("target", choices=[source.value for source in EntitySource])
    migrate.add_argument("--external-id", type=str, help="External id to link")

    register = subparsers.add_parser("register", help="Register a locally owned entity")
    register.add_argument("--entity-id", type=str, required=True)
    register.add_argument("--name", type=str, required=True)
    register.add_argument("--domain", type=str)
    register.add_argument("--device-id", type=str, default="local")
    register.add_argument("--icon", type=str)

    deletions = subparsers.add_parser("deletions", help="Inspect and manage deleted records")
    deletions_sub = deletions.add_subparsers(dest="deletions_command", required=True)
    deletions_sub.add_parser("list", help="List records missing from Home Assistant")
    deletions_sub.add_parser("cleanup", help="Purge soft-deleted external records")
    restore = deletions_sub.add_parser("restore", help="Strip deletion markers from a record")
    restore.add_argument("entity_uuid", help="Registry id of the record")

    return parser.parse_args(list(argv))


def _parse_uuid(value: str) -> UUID:
    try:
        return UUID(value)
    except ValueError as exc:
        raise ValueError(f"Invalid UUID: {value}") from exc


def _sync_options(args: argparse.Namespace) -> SyncOptions:
    defaults = get_sync_config()
    return SyncOptions(
        conflict_policy=ConflictPolicy(args.conflict_policy or defaults.conflict_policy),
        handle_deletions=defaults.handle_deletions and not args.no_deletions,
        merge_hybrids=defaults.merge_hybrids and not args.no_merge_hybrids,
        deletion_strategy=DeletionStrategy(args.deletion_strategy or defaults.deletion_strategy),
        dry_run=args.dry_run,
    )


def _report_sync(result: SyncResult) -> None:
    log.info(
        "%s: created=%s, updated=%s, merged=%s, skipped=%s, errors=%s, total=%s",
        "Dry run" if result.dry_run else "Sync",
        result.created,
        result.updated,
        result.merged,
        result.skipped,
        len(result.errors),
        result.total,
    )
    for conflict in result.conflicts:
        log.info(
            "Conflict %s on %s (%s): %s",
            conflict.conflict_type,
            conflict.external_id,
            conflict.entity_id,
            conflict.message,
        )
    for error in result.errors:
        log.warning("Error on %s [%s]: %s", error.external_id, error.kind, error.message)
    if result.deletions is not None:
        deletions = result.deletions
        log.info(
            "Deletions: deleted=%s, unavailable=%s, demoted=%s, restored=%s",
            deletions.deleted,
            deletions.marked_unavailable,
            deletions.converted_to_internal,
            deletions.restored,
        )


def _run_command(args: argparse.Namespace) -> None:
    if args.command == "sync":
        _report_sync(run_full_sync(_sync_options(args)))
    elif args.command == "check-duplicates":
        result = check_duplicates(args.external_id, args.domain, args.name)
        log.info(
            "%s: duplicate=%s, confidence=%s",
            args.external_id,
            result.is_duplicate,
            result.confidence,
        )
        for match in result.duplicates:
            log.info("  %s [%s]: %s", match.entity.entity_id, match.confidence, match.reason)
    elif args.command == "migrate-source":
        migration = migrate_source(
            _parse_uuid(args.entity_uuid), EntitySource(args.target), args.external_id
        )
        migration.raise_for_error()
        log.info(migration.message)
    elif args.command == "register":
        entity = register_internal_entity(
            entity_id=args.entity_id,
            name=args.name,
            domain=args.domain,
            device_id=args.device_id,
            icon=args.icon,
        )
        log.info("Registered %s as %s", entity.entity_id, entity.id)
    elif args.command == "deletions" and args.deletions_command == "list":
        for entity in list_deleted_entities():
            log.info("%s %s (%s, %s)", entity.id, entity.entity_id, entity.source, entity.state)
    elif args.command == "deletions" and args.deletions_command == "cleanup":
        log.info("Removed %s soft-deleted entities", cleanup_deleted_entities())
    elif args.command == "deletions" and args.deletions_command == "restore":
        entity = restore_deleted_entity(_parse_uuid(args.entity_uuid))
        log.info("Restored %s", entity.entity_id)
    else:
        raise ValueError(f"Unsupported command: {args.command}")


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    configure_logging()
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    parsed_args = _parse_args(args_list)

    try:
        _run_command(parsed_args)
    except _VALIDATION_ERRORS:
        log.exception("CLI validation error")
        sys.exit(2)
    except Exception:
        log.exception("Fatal error during command")
        sys.exit(1)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    log.info("Closed by user (Ctrl+C)")
    sys.exit(0)


def run() -> None:
    """Console script entry point."""
    load_dotenv()
    signal(SIGINT, sigint_handler)
    main()


if __name__ == "__main__":
    run()
