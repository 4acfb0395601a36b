"""Per-collection syncers: agents, roles, groups."""

from freshdesk_sync.syncers.agents import AgentSyncer
from freshdesk_sync.syncers.groups import GroupSyncer
from freshdesk_sync.syncers.roles import RoleSyncer

__all__ = ["AgentSyncer", "GroupSyncer", "RoleSyncer"]
