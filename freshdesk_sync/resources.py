"""Normalized resource graph: resource types, resources, entitlements, grants."""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping, Optional


@dataclass(frozen=True)
class ResourceType:
    id: str
    display_name: str
    description: str
    trait: str


PRINCIPAL = ResourceType(
    id="principal",
    display_name="User",
    description="The Agents are the users for Freshdesk",
    trait="user",
)
ROLE = ResourceType(
    id="role",
    display_name="Role",
    description=(
        "The Roles allow you to create special privileges and specify what an "
        "agent can see and do within your Freshdesk support portal"
    ),
    trait="role",
)
GROUP = ResourceType(
    id="group",
    display_name="Group",
    description="The Agents can be organized into different groups.",
    trait="group",
)

RESOURCE_TYPES: Mapping[str, ResourceType] = MappingProxyType(
    {rt.id: rt for rt in (PRINCIPAL, ROLE, GROUP)}
)


@dataclass(frozen=True)
class ResourceId:
    resource_type: str
    resource: str

    def __str__(self) -> str:
        return f"{self.resource_type}:{self.resource}"


@dataclass(frozen=True)
class UserTrait:
    login: str
    email: str
    status: str = "enabled"


@dataclass(frozen=True)
class Resource:
    id: ResourceId
    display_name: str
    profile: Mapping[str, Any] = field(default_factory=dict)
    description: str = ""
    parent_id: Optional[ResourceId] = None
    user_trait: Optional[UserTrait] = None


@dataclass(frozen=True)
class Entitlement:
    resource: Resource
    permission: str
    display_name: str = ""
    description: str = ""
    grantable_to: tuple[str, ...] = (PRINCIPAL.id,)

    @property
    def id(self) -> str:
        return f"{self.resource.id}:{self.permission}"


@dataclass(frozen=True)
class Grant:
    """Membership edge: ``principal`` holds ``entitlement`` on its resource."""

    entitlement: Entitlement
    principal: ResourceId

    @property
    def id(self) -> str:
        return f"{self.entitlement.id}:{self.principal}"

    @property
    def permission(self) -> str:
        return self.entitlement.permission


def permission_entitlement(resource: Resource, permission: str) -> Entitlement:
    """The single entitlement a role or group offers to principals."""
    return Entitlement(
        resource=resource,
        permission=permission,
        display_name=resource.display_name,
        description=resource.description,
    )
