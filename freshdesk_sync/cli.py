"""CLI entry point: sync, grant, scheduler, status."""

from __future__ import annotations

import argparse
import logging
import os

from freshdesk_sync.config import SyncConfig, load_config
from freshdesk_sync.connector import Connector
from freshdesk_sync.db import Database
from freshdesk_sync.logging_config import configure_logging
from freshdesk_sync.resources import GROUP, PRINCIPAL, ROLE, Resource, ResourceId, permission_entitlement
from freshdesk_sync.sync_runner import ALL_COLLECTIONS, MemorySink, SyncRunner
from freshdesk_sync.syncers.groups import MEMBER
from freshdesk_sync.syncers.roles import ASSIGNED

logger = logging.getLogger("freshdesk_sync.cli")

COLLECTION_CHOICES = ["all", *ALL_COLLECTIONS]


def run_sync(config: SyncConfig, sink, collections: list[str]) -> dict[str, dict[str, int]]:
    """One sync session: fresh connector and agent cache, torn down afterwards."""
    connector = Connector.from_config(config.freshdesk)
    try:
        runner = SyncRunner(
            connector,
            sink,
            domain=config.freshdesk.domain,
            page_size=config.freshdesk.page_size,
            workers=config.workers,
        )
        return runner.run(collections)
    finally:
        connector.close()


def _collections(choice: str) -> list[str]:
    return list(ALL_COLLECTIONS) if choice == "all" else [choice]


def cmd_sync(args: argparse.Namespace) -> None:
    """Run one full sync of the selected collection(s)."""
    config = load_config(require_database=not args.dry_run)
    collections = _collections(args.collection)

    if args.dry_run:
        sink = MemorySink()
        results = run_sync(config, sink, collections)
        logger.info("Dry run results: %s", results)
        return

    db = Database(config.database, batch_size=config.batch_size)
    try:
        results = run_sync(config, db, collections)
        logger.info("Sync results: %s", results)
    finally:
        db.close()


def cmd_grant(args: argparse.Namespace) -> None:
    """Grant a role or group membership to one agent."""
    config = load_config(require_database=False)
    connector = Connector.from_config(config.freshdesk)
    try:
        principal = Resource(id=ResourceId(PRINCIPAL.id, str(args.agent_id)), display_name="")

        if args.role_id is not None:
            resource_type, target_id, permission = ROLE.id, args.role_id, ASSIGNED
        else:
            resource_type, target_id, permission = GROUP.id, args.group_id, MEMBER
        target = Resource(id=ResourceId(resource_type, str(target_id)), display_name="")

        syncer = connector.syncer_for(resource_type)
        syncer.apply_grant(principal, permission_entitlement(target, permission))
    finally:
        connector.close()


def cmd_scheduler(args: argparse.Namespace) -> None:
    """Start the APScheduler-based sync loop."""
    from freshdesk_sync.scheduler import start_scheduler

    config = load_config()
    db = Database(config.database, batch_size=config.batch_size)
    try:
        start_scheduler(config, db)
    finally:
        db.close()


def cmd_status(args: argparse.Namespace) -> None:
    """Show recent sync runs."""
    config = load_config()
    db = Database(config.database, batch_size=config.batch_size)

    try:
        runs = db.get_recent_runs(
            domain=config.freshdesk.domain,
            collection=args.collection if args.collection != "all" else None,
            limit=args.limit,
        )
        if not runs:
            print("No sync runs found.")
            return

        fmt = "{:<36}  {:<10}  {:<8}  {:<20}  {:<20}  {:>8}  {}"
        print(fmt.format(
            "RUN ID", "COLLECTION", "STATUS", "STARTED", "FINISHED", "UPSERTED", "ERROR",
        ))
        print("-" * 140)
        for r in runs:
            started = str(r["started_at"])[:19] if r["started_at"] else ""
            finished = str(r["finished_at"])[:19] if r["finished_at"] else ""
            print(fmt.format(
                str(r["id"])[:36],
                r["collection"],
                r["status"],
                started,
                finished,
                r.get("records_upserted", 0),
                (r.get("error_message") or "")[:40],
            ))
    finally:
        db.close()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="freshdesk-sync",
        description="Sync Freshdesk agents, roles and groups into a resource graph",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    sync_parser = subparsers.add_parser("sync", help="Run one full sync")
    sync_parser.add_argument(
        "--collection", "-c",
        choices=COLLECTION_CHOICES,
        default="all",
        help="Collection to sync (default: all)",
    )
    sync_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Fetch and map everything but do not write to the database",
    )
    sync_parser.set_defaults(func=cmd_sync)

    grant_parser = subparsers.add_parser("grant", help="Grant a role or group to an agent")
    grant_parser.add_argument("--agent-id", required=True, help="Freshdesk agent id")
    target = grant_parser.add_mutually_exclusive_group(required=True)
    target.add_argument("--role-id", type=int, help="Role to add to the agent")
    target.add_argument("--group-id", type=int, help="Group to add the agent to")
    grant_parser.set_defaults(func=cmd_grant)

    sched_parser = subparsers.add_parser("scheduler", help="Start scheduled sync loop")
    sched_parser.set_defaults(func=cmd_scheduler)

    status_parser = subparsers.add_parser("status", help="Show recent sync runs")
    status_parser.add_argument(
        "--collection", "-c",
        choices=COLLECTION_CHOICES,
        default="all",
        help="Filter by collection",
    )
    status_parser.add_argument(
        "--limit", "-l",
        type=int,
        default=10,
        help="Number of runs to show (default: 10)",
    )
    status_parser.set_defaults(func=cmd_status)
    return parser


def main() -> None:
    """Main CLI entry point."""
    configure_logging(
        os.environ.get("LOG_LEVEL", "INFO"),
        os.environ.get("LOG_FORMAT", "json"),
    )
    args = build_parser().parse_args()
    args.func(args)


if __name__ == "__main__":
    main()
