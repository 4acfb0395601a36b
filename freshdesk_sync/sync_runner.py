"""Drive every collection to exhaustion and hand the resource graph to a sink."""

from __future__ import annotations

import logging
import threading
import time
import traceback
from concurrent.futures import ThreadPoolExecutor
from typing import Iterable, Optional, Protocol, Sequence

from freshdesk_sync.base_syncer import ResourceSyncer
from freshdesk_sync.connector import Connector
from freshdesk_sync.errors import Cancelled
from freshdesk_sync.pagination import DEFAULT_PAGE_SIZE, PageToken, SyncState
from freshdesk_sync.resources import GROUP, PRINCIPAL, ROLE, Entitlement, Grant, Resource

logger = logging.getLogger("freshdesk_sync.runner")

ALL_COLLECTIONS = (PRINCIPAL.id, ROLE.id, GROUP.id)


class SyncSink(Protocol):
    def upsert_resources(self, domain: str, resources: Sequence[Resource]) -> int: ...

    def upsert_entitlements(self, domain: str, entitlements: Sequence[Entitlement]) -> int: ...

    def upsert_grants(self, domain: str, grants: Sequence[Grant]) -> int: ...

    def record_run_start(self, domain: str, collection: str,
                         metadata: Optional[dict] = None) -> str: ...

    def record_run_end(self, run_id: str, status: str, records_upserted: int = 0,
                       error_message: Optional[str] = None,
                       error_detail: Optional[dict] = None) -> None: ...


class MemorySink:
    """Keeps everything in memory. Used for dry runs."""

    def __init__(self) -> None:
        self.resources: list[Resource] = []
        self.entitlements: list[Entitlement] = []
        self.grants: list[Grant] = []
        self.runs: dict[str, dict] = {}
        self._lock = threading.Lock()

    def upsert_resources(self, domain: str, resources: Sequence[Resource]) -> int:
        with self._lock:
            self.resources.extend(resources)
        return len(resources)

    def upsert_entitlements(self, domain: str, entitlements: Sequence[Entitlement]) -> int:
        with self._lock:
            self.entitlements.extend(entitlements)
        return len(entitlements)

    def upsert_grants(self, domain: str, grants: Sequence[Grant]) -> int:
        with self._lock:
            self.grants.extend(grants)
        return len(grants)

    def record_run_start(self, domain: str, collection: str,
                         metadata: Optional[dict] = None) -> str:
        with self._lock:
            run_id = f"run-{len(self.runs) + 1}"
            self.runs[run_id] = {
                "collection": collection, "status": "RUNNING", "metadata": metadata or {},
            }
        return run_id

    def record_run_end(self, run_id: str, status: str, records_upserted: int = 0,
                       error_message: Optional[str] = None,
                       error_detail: Optional[dict] = None) -> None:
        with self._lock:
            self.runs[run_id].update(
                status=status,
                records_upserted=records_upserted,
                error_message=error_message,
                error_detail=error_detail,
            )


class SyncRunner:
    """Runs the per-collection state machines.

    Each collection has its own SyncState. The cursor only advances after a
    page and all of its entitlements and grants have reached the sink, so a
    failed run can be resumed from the page that failed. A failure in one
    collection never touches another collection's state.
    """

    def __init__(
        self,
        connector: Connector,
        sink: SyncSink,
        domain: str,
        page_size: int = DEFAULT_PAGE_SIZE,
        workers: int = 1,
        cancel: Optional[threading.Event] = None,
    ) -> None:
        self.connector = connector
        self.sink = sink
        self.domain = domain
        self.page_size = page_size
        self.workers = max(1, workers)
        self.cancel = cancel
        self.states: dict[str, SyncState] = {}

    def resume(self, resource_type: str, token: str) -> None:
        """Continue ``resource_type`` from a token handed out by an earlier run."""
        self.states.setdefault(resource_type, SyncState()).resume(token)

    def run(self, collections: Optional[Iterable[str]] = None) -> dict[str, dict[str, int]]:
        collections = list(collections or ALL_COLLECTIONS)
        if self.workers == 1 or len(collections) == 1:
            return {rt: self.sync_collection(rt) for rt in collections}

        with ThreadPoolExecutor(max_workers=self.workers,
                                thread_name_prefix="freshdesk-sync") as pool:
            futures = {rt: pool.submit(self.sync_collection, rt) for rt in collections}
        # every collection has finished; surface the first failure in request order
        for rt in collections:
            exc = futures[rt].exception()
            if exc is not None:
                raise exc
        return {rt: futures[rt].result() for rt in collections}

    def sync_collection(self, resource_type: str) -> dict[str, int]:
        syncer = self.connector.syncer_for(resource_type)
        state = self.states.get(resource_type)
        if state is None or state.exhausted:
            state = self.states[resource_type] = SyncState()

        run_id = self.sink.record_run_start(
            self.domain, resource_type, {"resume_token": state.cursor}
        )
        started = time.monotonic()
        try:
            counts = self._drain(syncer, state)
        except Cancelled as exc:
            # a caller abort, not a failure: no traceback, cursor kept for resume
            self.sink.record_run_end(
                run_id,
                "CANCELLED",
                error_message=str(exc)[:1000],
                error_detail={"cursor": state.cursor},
            )
            logger.warning(
                "Sync cancelled",
                extra={"collection": syncer.COLLECTION, "run_id": run_id},
            )
            raise
        except Exception as exc:
            self.sink.record_run_end(
                run_id,
                "FAILED",
                error_message=str(exc)[:1000],
                error_detail={"traceback": traceback.format_exc(), "cursor": state.cursor},
            )
            logger.error(
                "Sync failed: %s",
                exc,
                extra={"collection": syncer.COLLECTION, "run_id": run_id},
            )
            raise

        total = sum(counts.values())
        self.sink.record_run_end(run_id, "SUCCESS", records_upserted=total)
        logger.info(
            "Sync complete",
            extra={
                "collection": syncer.COLLECTION,
                "records": total,
                "run_id": run_id,
                "duration_s": round(time.monotonic() - started, 3),
            },
        )
        return counts

    def _drain(self, syncer: ResourceSyncer, state: SyncState) -> dict[str, int]:
        counts = {"resources": 0, "entitlements": 0, "grants": 0}
        while not state.exhausted:
            resources, next_token = syncer.list_page(
                None, PageToken(self.page_size, state.cursor), self.cancel
            )
            counts["resources"] += self.sink.upsert_resources(self.domain, resources)

            for resource in resources:
                entitlements, _ = syncer.list_entitlements(resource, PageToken(self.page_size))
                grants, _ = syncer.list_grants(resource, PageToken(self.page_size), self.cancel)
                counts["entitlements"] += self.sink.upsert_entitlements(self.domain, entitlements)
                counts["grants"] += self.sink.upsert_grants(self.domain, grants)

            state.advance(next_token)
        return counts
