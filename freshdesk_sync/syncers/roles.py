"""Roles syncer: one ``assigned`` entitlement per role, grants derived from agents."""

from __future__ import annotations

import threading
from typing import Optional

from freshdesk_sync.base_syncer import ResourceSyncer
from freshdesk_sync.client import ROLES, FreshdeskClient
from freshdesk_sync.mapper import map_role
from freshdesk_sync.membership import MembershipDeriver, grant_role
from freshdesk_sync.models import Role
from freshdesk_sync.pagination import PageToken
from freshdesk_sync.resources import (
    ROLE,
    Entitlement,
    Grant,
    Resource,
    ResourceId,
    permission_entitlement,
)

ASSIGNED = "assigned"


class RoleSyncer(ResourceSyncer):
    RESOURCE_TYPE = ROLE
    COLLECTION = ROLES

    def __init__(self, client: FreshdeskClient, deriver: MembershipDeriver) -> None:
        super().__init__(client)
        self._deriver = deriver

    def map_item(self, item: Role, parent_id: Optional[ResourceId]) -> Resource:
        return map_role(item, parent_id)

    def list_entitlements(
        self, resource: Resource, page_token: PageToken
    ) -> tuple[list[Entitlement], str]:
        return [permission_entitlement(resource, ASSIGNED)], ""

    def list_grants(
        self,
        resource: Resource,
        page_token: PageToken,
        cancel: Optional[threading.Event] = None,
    ) -> tuple[list[Grant], str]:
        return self._deriver.derive(resource, ASSIGNED, cancel), ""

    def apply_grant(
        self,
        principal: Resource,
        entitlement: Entitlement,
        cancel: Optional[threading.Event] = None,
    ) -> None:
        self._apply_membership(principal, entitlement, grant_role, cancel)
