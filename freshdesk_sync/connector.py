"""Sync session: one client, one agent cache, and the three collection syncers."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from freshdesk_sync.base_syncer import ResourceSyncer
from freshdesk_sync.client import FreshdeskClient
from freshdesk_sync.config import FreshdeskConfig
from freshdesk_sync.membership import MembershipDeriver
from freshdesk_sync.principal_cache import AgentCache
from freshdesk_sync.syncers import AgentSyncer, GroupSyncer, RoleSyncer
from freshdesk_sync.transport import HttpTransport

logger = logging.getLogger("freshdesk_sync.connector")


@dataclass(frozen=True)
class ConnectorMetadata:
    display_name: str
    description: str


class Connector:
    """Holds the session-scoped state shared between the syncers.

    The agent cache lives exactly as long as this object; the role and group
    syncers share it so agent details are fetched at most once per session.
    """

    def __init__(self, client: FreshdeskClient, transport: Optional[HttpTransport] = None) -> None:
        self.client = client
        self._transport = transport
        self.agent_cache = AgentCache(client)
        deriver = MembershipDeriver(self.agent_cache)
        self._syncers: dict[str, ResourceSyncer] = {
            s.resource_type.id: s
            for s in (
                AgentSyncer(client),
                RoleSyncer(client, deriver),
                GroupSyncer(client, deriver),
            )
        }

    @classmethod
    def from_config(cls, config: FreshdeskConfig) -> "Connector":
        transport = HttpTransport.from_config(config)
        return cls(FreshdeskClient(transport, config.api_base_url), transport)

    def close(self) -> None:
        if self._transport is not None:
            self._transport.close()

    def resource_syncers(self) -> list[ResourceSyncer]:
        return list(self._syncers.values())

    def syncer_for(self, resource_type: str) -> ResourceSyncer:
        try:
            return self._syncers[resource_type]
        except KeyError:
            raise ValueError(f"unknown resource type: {resource_type}") from None

    def metadata(self) -> ConnectorMetadata:
        return ConnectorMetadata(
            display_name="Freshdesk Connector",
            description="Connector to obtain data from Freshdesk.",
        )

    def validate(self) -> None:
        """Exercise the credentials with a single one-item agents page."""
        self.client.list_agents(page_size=1)
        logger.info("Freshdesk credentials validated")
