"""Derive role/group membership grants from the agents' owned-id lists.

Also holds the two write operations, which append an id to an agent's list
and PUT it back. Both are read-modify-write without concurrency control: an
update landing between the read and the write is lost, and an id the agent
already holds is appended again.
"""

from __future__ import annotations

import logging
import threading
from typing import Iterable, Optional

from freshdesk_sync.client import FreshdeskClient
from freshdesk_sync.errors import InvalidResourceID
from freshdesk_sync.mapper import map_agent
from freshdesk_sync.models import Agent
from freshdesk_sync.principal_cache import AgentCache
from freshdesk_sync.resources import GROUP, ROLE, Grant, Resource, permission_entitlement

logger = logging.getLogger("freshdesk_sync.membership")


def parse_numeric_id(resource: Resource) -> int:
    raw = resource.id.resource
    try:
        return int(raw)
    except (TypeError, ValueError) as exc:
        raise InvalidResourceID(
            f"resource id {raw!r} is not numeric",
            collection=resource.id.resource_type,
        ) from exc


def _owned_ids(agent: Agent, resource_type: str) -> list[int]:
    if resource_type == ROLE.id:
        return agent.role_ids
    if resource_type == GROUP.id:
        return agent.group_ids
    raise InvalidResourceID(
        f"membership is only derived for roles and groups, not {resource_type!r}",
        collection=resource_type,
    )


def derive_members(
    target: Resource,
    permission: str,
    agents: Iterable[Agent],
) -> list[Grant]:
    """One grant per agent whose owned ids contain the target's id, in agent order."""
    numeric_id = parse_numeric_id(target)
    resource_type = target.id.resource_type
    entitlement = permission_entitlement(target, permission)
    grants = []
    for agent in agents:
        if numeric_id in _owned_ids(agent, resource_type):
            grants.append(Grant(entitlement=entitlement, principal=map_agent(agent).id))
    return grants


class MembershipDeriver:
    """Binds derive_members to a session's agent cache."""

    def __init__(self, cache: AgentCache) -> None:
        self._cache = cache

    def derive(
        self,
        target: Resource,
        permission: str,
        cancel: Optional[threading.Event] = None,
    ) -> list[Grant]:
        self._cache.ensure_populated(cancel)
        return derive_members(target, permission, self._cache.snapshot())


def grant_role(
    client: FreshdeskClient,
    agent_id: int | str,
    role_id: int,
    cancel: Optional[threading.Event] = None,
) -> None:
    agent = client.get_agent(agent_id, cancel=cancel)
    role_ids = agent.role_ids + [role_id]
    client.update_agent(agent.id, {"role_ids": role_ids}, cancel=cancel)
    logger.info("Granted role %s to agent %s", role_id, agent.id,
                extra={"collection": ROLE.id, "resource_id": str(role_id)})


def grant_group(
    client: FreshdeskClient,
    agent_id: int | str,
    group_id: int,
    cancel: Optional[threading.Event] = None,
) -> None:
    agent = client.get_agent(agent_id, cancel=cancel)
    group_ids = agent.group_ids + [group_id]
    client.update_agent(agent.id, {"group_ids": group_ids}, cancel=cancel)
    logger.info("Added agent %s to group %s", agent.id, group_id,
                extra={"collection": GROUP.id, "resource_id": str(group_id)})
