"""Map Freshdesk agents, roles and groups onto resources."""

from __future__ import annotations

from typing import Any, Optional

from freshdesk_sync.errors import InvalidResourceID
from freshdesk_sync.models import Agent, Group, Role
from freshdesk_sync.resources import (
    GROUP,
    PRINCIPAL,
    ROLE,
    Resource,
    ResourceId,
    ResourceType,
    UserTrait,
)


def _resource_id(resource_type: ResourceType, raw_id: Any) -> ResourceId:
    if not isinstance(raw_id, int) or isinstance(raw_id, bool) or raw_id <= 0:
        raise InvalidResourceID(
            f"{resource_type.id} has an invalid id: {raw_id!r}",
            collection=resource_type.id,
        )
    return ResourceId(resource_type.id, str(raw_id))


def agent_display_name(agent: Agent) -> str:
    return agent.contact.name or agent.contact.email


def map_agent(agent: Agent, parent_id: Optional[ResourceId] = None) -> Resource:
    # Freshdesk only exposes a single contact name; both name fields carry it.
    profile = {
        "user_id": agent.id,
        "login": agent.contact.email,
        "first_name": agent.contact.name,
        "last_name": agent.contact.name,
        "email": agent.contact.email,
        "is_agent": True,
    }
    return Resource(
        id=_resource_id(PRINCIPAL, agent.id),
        display_name=agent_display_name(agent),
        profile=profile,
        parent_id=parent_id,
        user_trait=UserTrait(login=agent.contact.email, email=agent.contact.email),
    )


def map_role(role: Role, parent_id: Optional[ResourceId] = None) -> Resource:
    profile = {
        "id": role.id,
        "name": role.name,
        "description": role.description,
    }
    return Resource(
        id=_resource_id(ROLE, role.id),
        display_name=role.name,
        profile=profile,
        description=role.description,
        parent_id=parent_id,
    )


def map_group(group: Group, parent_id: Optional[ResourceId] = None) -> Resource:
    profile = {
        "group_id": group.id,
        "group_name": group.name,
    }
    return Resource(
        id=_resource_id(GROUP, group.id),
        display_name=group.name,
        profile=profile,
        description=group.description,
        parent_id=parent_id,
    )
