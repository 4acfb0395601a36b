"""Database helpers: connection pool, batched upserts of the resource graph, run tracking."""

from __future__ import annotations

import json
import logging
import uuid
from contextlib import contextmanager
from typing import Any, Generator, Optional, Sequence

import psycopg2
import psycopg2.extras
import psycopg2.pool

from freshdesk_sync.config import DatabaseConfig
from freshdesk_sync.resources import Entitlement, Grant, Resource

logger = logging.getLogger("freshdesk_sync.db")


class Database:
    """ThreadedConnectionPool wrapper; also the sink the sync runner writes to."""

    def __init__(self, config: DatabaseConfig, batch_size: int = 500) -> None:
        self._pool = psycopg2.pool.ThreadedConnectionPool(
            minconn=config.min_connections,
            maxconn=config.max_connections,
            dsn=config.url,
        )
        self.batch_size = batch_size

    def close(self) -> None:
        self._pool.closeall()

    @contextmanager
    def connection(self) -> Generator:
        conn = self._pool.getconn()
        try:
            yield conn
        finally:
            self._pool.putconn(conn)

    @contextmanager
    def transaction(self) -> Generator:
        """Yield a cursor; commit on success, roll back and re-raise on error."""
        with self.connection() as conn:
            try:
                with conn.cursor() as cur:
                    yield cur
                conn.commit()
            except Exception:
                conn.rollback()
                raise

    def upsert_batch(
        self,
        cur,
        table: str,
        columns: list[str],
        rows: Sequence[tuple],
        conflict_columns: list[str],
        update_columns: list[str],
    ) -> int:
        """INSERT ... ON CONFLICT DO UPDATE via execute_values.

        ``last_synced_at`` is stamped by the database, so rows carry only
        ``columns``. Returns the number of rows affected.
        """
        if not rows:
            return 0

        col_list = ", ".join(columns + ["last_synced_at"])
        template = "(" + ", ".join(["%s"] * len(columns)) + ", NOW())"
        set_clauses = ", ".join(f"{c} = EXCLUDED.{c}" for c in update_columns)
        set_clauses += ", updated_at = NOW(), last_synced_at = NOW()"
        sql = (
            f"INSERT INTO {table} ({col_list}) VALUES %s "
            f"ON CONFLICT ({', '.join(conflict_columns)}) DO UPDATE SET {set_clauses}"
        )
        psycopg2.extras.execute_values(cur, sql, rows, template=template, page_size=self.batch_size)
        logger.debug("Upserted %d rows into %s", cur.rowcount, table)
        return cur.rowcount

    def _batches(self, rows: list[tuple]) -> list[list[tuple]]:
        size = self.batch_size
        return [rows[i : i + size] for i in range(0, len(rows), size)]

    # ------------------------------------------------------------------
    # Resource graph
    # ------------------------------------------------------------------

    def upsert_resources(self, domain: str, resources: Sequence[Resource]) -> int:
        columns = [
            "domain", "resource_type", "resource_id", "display_name",
            "description", "parent_resource_type", "parent_resource_id", "profile",
        ]
        rows = [
            (
                domain,
                r.id.resource_type,
                r.id.resource,
                r.display_name,
                r.description,
                r.parent_id.resource_type if r.parent_id else None,
                r.parent_id.resource if r.parent_id else None,
                json.dumps(dict(r.profile)),
            )
            for r in resources
        ]
        total = 0
        for batch in self._batches(rows):
            with self.transaction() as cur:
                total += self.upsert_batch(
                    cur, "directory_resources", columns, batch,
                    ["domain", "resource_type", "resource_id"],
                    ["display_name", "description", "parent_resource_type",
                     "parent_resource_id", "profile"],
                )
        return total

    def upsert_entitlements(self, domain: str, entitlements: Sequence[Entitlement]) -> int:
        columns = [
            "domain", "entitlement_id", "resource_type", "resource_id",
            "permission", "display_name", "description",
        ]
        rows = [
            (
                domain,
                e.id,
                e.resource.id.resource_type,
                e.resource.id.resource,
                e.permission,
                e.display_name,
                e.description,
            )
            for e in entitlements
        ]
        total = 0
        for batch in self._batches(rows):
            with self.transaction() as cur:
                total += self.upsert_batch(
                    cur, "directory_entitlements", columns, batch,
                    ["domain", "entitlement_id"],
                    ["permission", "display_name", "description"],
                )
        return total

    def upsert_grants(self, domain: str, grants: Sequence[Grant]) -> int:
        columns = [
            "domain", "grant_id", "entitlement_id",
            "principal_type", "principal_id", "permission",
        ]
        rows = [
            (
                domain,
                g.id,
                g.entitlement.id,
                g.principal.resource_type,
                g.principal.resource,
                g.permission,
            )
            for g in grants
        ]
        total = 0
        for batch in self._batches(rows):
            with self.transaction() as cur:
                total += self.upsert_batch(
                    cur, "directory_grants", columns, batch,
                    ["domain", "grant_id"],
                    ["permission"],
                )
        return total

    # ------------------------------------------------------------------
    # Sync run tracking
    # ------------------------------------------------------------------

    def record_run_start(
        self,
        domain: str,
        collection: str,
        metadata: Optional[dict] = None,
    ) -> str:
        """Insert a sync_runs row with status RUNNING. Returns the run id."""
        run_id = str(uuid.uuid4())
        with self.transaction() as cur:
            cur.execute(
                """INSERT INTO sync_runs
                   (id, domain, collection, status, run_metadata)
                   VALUES (%s, %s, %s, 'RUNNING', %s)""",
                (run_id, domain, collection, psycopg2.extras.Json(metadata or {})),
            )
        return run_id

    def record_run_end(
        self,
        run_id: str,
        status: str,
        records_upserted: int = 0,
        error_message: Optional[str] = None,
        error_detail: Optional[dict] = None,
    ) -> None:
        with self.transaction() as cur:
            cur.execute(
                """UPDATE sync_runs
                   SET status = %s,
                       finished_at = NOW(),
                       records_upserted = %s,
                       error_message = %s,
                       error_detail = %s
                   WHERE id = %s""",
                (
                    status,
                    records_upserted,
                    error_message,
                    psycopg2.extras.Json(error_detail) if error_detail else None,
                    run_id,
                ),
            )

    def get_recent_runs(
        self,
        domain: str,
        collection: Optional[str] = None,
        limit: int = 10,
    ) -> list[dict[str, Any]]:
        sql = """SELECT id, collection, status, started_at, finished_at,
                        records_upserted, error_message
                 FROM sync_runs
                 WHERE domain = %s"""
        params: list[Any] = [domain]
        if collection:
            sql += " AND collection = %s"
            params.append(collection)
        sql += " ORDER BY started_at DESC LIMIT %s"
        params.append(limit)

        with self.transaction() as cur:
            cur.execute(sql, params)
            cols = [d[0] for d in cur.description]
            return [dict(zip(cols, row)) for row in cur.fetchall()]
