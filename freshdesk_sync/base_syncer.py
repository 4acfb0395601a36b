"""Abstract base class for the per-collection resource syncers."""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from typing import Callable, Optional

from freshdesk_sync.client import FreshdeskClient, Page
from freshdesk_sync.errors import GrantError, SyncError
from freshdesk_sync.membership import parse_numeric_id
from freshdesk_sync.pagination import PageToken, decode_token, encode_token
from freshdesk_sync.resources import (
    PRINCIPAL,
    Entitlement,
    Grant,
    Resource,
    ResourceId,
    ResourceType,
)

logger = logging.getLogger("freshdesk_sync.syncer")


class ResourceSyncer(ABC):
    """Each syncer declares RESOURCE_TYPE and COLLECTION and maps one upstream item."""

    RESOURCE_TYPE: ResourceType
    COLLECTION: str = ""

    def __init__(self, client: FreshdeskClient) -> None:
        self.client = client

    @property
    def resource_type(self) -> ResourceType:
        return self.RESOURCE_TYPE

    @abstractmethod
    def map_item(self, item, parent_id: Optional[ResourceId]) -> Resource:
        """Convert one upstream item into a resource."""

    def list_page(
        self,
        parent_id: Optional[ResourceId],
        page_token: PageToken,
        cancel: Optional[threading.Event] = None,
    ) -> tuple[list[Resource], str]:
        """List one page. Returns ``(resources, next_token)``; "" means done.

        Tokens are decoded and minted with this syncer's own tag, so a token
        from another collection is rejected instead of replayed here.
        """
        marker = decode_token(page_token.token, self.RESOURCE_TYPE.id)
        page: Page = self.client.fetch_page(
            self.COLLECTION, marker, page_token.page_size, cancel
        )
        try:
            resources = [self.map_item(item, parent_id) for item in page.items]
        except SyncError as exc:
            raise exc.with_context(self.COLLECTION, marker or None)

        logger.info(
            "Listed %d %s",
            len(resources),
            self.COLLECTION,
            extra={
                "collection": self.COLLECTION,
                "page": marker or "1",
                "records": len(resources),
            },
        )
        return resources, encode_token(self.RESOURCE_TYPE.id, page.next_marker)

    def list_entitlements(
        self, resource: Resource, page_token: PageToken
    ) -> tuple[list[Entitlement], str]:
        return [], ""

    def list_grants(
        self,
        resource: Resource,
        page_token: PageToken,
        cancel: Optional[threading.Event] = None,
    ) -> tuple[list[Grant], str]:
        return [], ""

    def apply_grant(
        self,
        principal: Resource,
        entitlement: Entitlement,
        cancel: Optional[threading.Event] = None,
    ) -> None:
        raise GrantError(
            f"{self.RESOURCE_TYPE.id} does not support grants",
            collection=self.COLLECTION,
        )

    # ------------------------------------------------------------------
    # Grant helpers
    # ------------------------------------------------------------------

    def _apply_membership(
        self,
        principal: Resource,
        entitlement: Entitlement,
        write: Callable[..., None],
        cancel: Optional[threading.Event],
    ) -> None:
        """Validate a principal -> role/group grant request and hand it to ``write``."""
        if principal.id.resource_type != PRINCIPAL.id:
            logger.warning(
                "Only users can be granted %s membership",
                self.RESOURCE_TYPE.id,
                extra={"collection": self.COLLECTION, "resource_id": str(principal.id)},
            )
            raise GrantError(
                f"only users can be granted {self.RESOURCE_TYPE.id} membership",
                collection=self.COLLECTION,
            )
        target = entitlement.resource.id
        if target.resource_type != self.RESOURCE_TYPE.id:
            raise GrantError(
                f"entitlement {entitlement.id} does not belong to {self.COLLECTION}",
                collection=self.COLLECTION,
            )
        agent_id = parse_numeric_id(principal)
        target_id = parse_numeric_id(entitlement.resource)
        write(self.client, agent_id, target_id, cancel=cancel)
