"""Agents syncer: principals only; they offer no entitlements."""

from __future__ import annotations

from typing import Optional

from freshdesk_sync.base_syncer import ResourceSyncer
from freshdesk_sync.client import AGENTS
from freshdesk_sync.mapper import map_agent
from freshdesk_sync.models import Agent
from freshdesk_sync.resources import PRINCIPAL, Resource, ResourceId


class AgentSyncer(ResourceSyncer):
    RESOURCE_TYPE = PRINCIPAL
    COLLECTION = AGENTS

    def map_item(self, item: Agent, parent_id: Optional[ResourceId]) -> Resource:
        return map_agent(item, parent_id)
