"""Session-scoped cache of every agent's full detail.

Freshdesk exposes no "members of role X" endpoint; membership lives on the
agent as ``role_ids`` / ``group_ids``. Answering membership therefore needs
every agent's detail, which is loaded once per sync session on first use.

The cache is a populate-once latch: it is never refreshed, so agents that
change mid-session are not seen until the next session.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Optional

from freshdesk_sync.client import AGENTS, FreshdeskClient
from freshdesk_sync.errors import EmptyUpstream, raise_if_cancelled
from freshdesk_sync.models import Agent
from freshdesk_sync.pagination import DEFAULT_PAGE_SIZE, decode_token, encode_token
from freshdesk_sync.resources import PRINCIPAL

logger = logging.getLogger("freshdesk_sync.principal_cache")

ENUMERATION_PAGE_SIZE = DEFAULT_PAGE_SIZE


class AgentCache:
    def __init__(self, client: FreshdeskClient) -> None:
        self._client = client
        self._lock = threading.Lock()
        self._agents: tuple[Agent, ...] = ()

    def ensure_populated(self, cancel: Optional[threading.Event] = None) -> None:
        """Load every agent's detail unless already loaded.

        All-or-nothing: on any failure the cache stays empty and the next
        call starts over.
        """
        with self._lock:
            if self._agents:
                return

            started = time.monotonic()
            agent_ids = self._enumerate_agent_ids(cancel)
            if not agent_ids:
                raise EmptyUpstream("no agents found", collection=AGENTS)

            details: list[Agent] = []
            for agent_id in agent_ids:
                raise_if_cancelled(cancel, collection=AGENTS)
                details.append(self._client.get_agent(agent_id, cancel=cancel))

            self._agents = tuple(details)
            logger.info(
                "Cached %d agents",
                len(details),
                extra={
                    "collection": AGENTS,
                    "records": len(details),
                    "duration_s": round(time.monotonic() - started, 3),
                },
            )

    def _enumerate_agent_ids(self, cancel: Optional[threading.Event]) -> list[int]:
        ids: list[int] = []
        token = ""
        while True:
            raise_if_cancelled(cancel, collection=AGENTS)
            marker = decode_token(token, PRINCIPAL.id)
            page = self._client.list_agents(marker, ENUMERATION_PAGE_SIZE, cancel)
            ids.extend(agent.id for agent in page.items)
            token = encode_token(PRINCIPAL.id, page.next_marker)
            if not token:
                return ids

    def snapshot(self) -> tuple[Agent, ...]:
        """Read-only view of the cached agents, in population order."""
        with self._lock:
            return self._agents
