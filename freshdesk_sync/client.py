"""Freshdesk API client: one page of a collection at a time, plus agent detail/update."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Generic, Mapping, Optional, Protocol, TypeVar
from urllib.parse import parse_qs, urlencode, urlparse

from requests.utils import parse_header_links

from freshdesk_sync.errors import DecodeError, SyncError
from freshdesk_sync.models import Agent, Group, Role
from freshdesk_sync.pagination import DEFAULT_PAGE_SIZE

logger = logging.getLogger("freshdesk_sync.client")

AGENTS = "agents"
ROLES = "roles"
GROUPS = "groups"

T = TypeVar("T")


class Transport(Protocol):
    def fetch_raw(
        self,
        method: str,
        url: str,
        body: Any = None,
        cancel: Optional[threading.Event] = None,
    ) -> tuple[Mapping[str, str], Any]:
        ...


@dataclass(frozen=True)
class Page(Generic[T]):
    items: list[T]
    next_marker: str = ""


_PARSERS: dict[str, Callable[[Any], Any]] = {
    AGENTS: Agent.from_dict,
    ROLES: Role.from_dict,
    GROUPS: Group.from_dict,
}


def next_page_marker(link_header: str) -> str:
    """Return the ``page`` query value of the rel="next" link, or "" when there is none.

    A next link without a ``page`` value raises DecodeError; treating it as
    the last page would end the collection early.
    """
    if not link_header:
        return ""
    for link in parse_header_links(link_header):
        if link.get("rel") == "next":
            url = link.get("url", "")
            page = parse_qs(urlparse(url).query).get("page", [""])[0]
            if not page:
                raise DecodeError(f"next link has no page parameter: {url}")
            return page
    return ""


class FreshdeskClient:
    def __init__(self, transport: Transport, base_url: str) -> None:
        self._transport = transport
        self._base = base_url.rstrip("/")

    def _url(self, *parts: str, params: Optional[dict] = None) -> str:
        url = "/".join([self._base, "api", "v2", *parts])
        if params:
            url = f"{url}?{urlencode(params)}"
        return url

    def fetch_page(
        self,
        collection: str,
        marker: str = "",
        page_size: int = DEFAULT_PAGE_SIZE,
        cancel: Optional[threading.Event] = None,
    ) -> Page:
        """Fetch one page of ``collection`` starting at the upstream ``marker``."""
        parser = _PARSERS.get(collection)
        if parser is None:
            raise ValueError(f"unknown collection: {collection}")

        params = {"per_page": str(page_size or DEFAULT_PAGE_SIZE)}
        if marker:
            params["page"] = marker
        try:
            headers, body = self._transport.fetch_raw(
                "GET", self._url(collection, params=params), cancel=cancel
            )
            if not isinstance(body, list):
                raise DecodeError(
                    f"expected a JSON array, got {type(body).__name__}"
                )
            items = [parser(item) for item in body]
            next_marker = next_page_marker(headers.get("Link", ""))
        except SyncError as exc:
            raise exc.with_context(collection, marker or None)

        logger.debug(
            "Fetched %d %s, next page %r",
            len(items), collection, next_marker,
            extra={"collection": collection, "page": marker or "1", "records": len(items)},
        )
        return Page(items=items, next_marker=next_marker)

    def list_agents(self, marker: str = "", page_size: int = DEFAULT_PAGE_SIZE,
                    cancel: Optional[threading.Event] = None) -> Page[Agent]:
        return self.fetch_page(AGENTS, marker, page_size, cancel)

    def list_roles(self, marker: str = "", page_size: int = DEFAULT_PAGE_SIZE,
                   cancel: Optional[threading.Event] = None) -> Page[Role]:
        return self.fetch_page(ROLES, marker, page_size, cancel)

    def list_groups(self, marker: str = "", page_size: int = DEFAULT_PAGE_SIZE,
                    cancel: Optional[threading.Event] = None) -> Page[Group]:
        return self.fetch_page(GROUPS, marker, page_size, cancel)

    def get_agent(self, agent_id: int | str,
                  cancel: Optional[threading.Event] = None) -> Agent:
        try:
            _, body = self._transport.fetch_raw(
                "GET", self._url(AGENTS, str(agent_id)), cancel=cancel
            )
            return Agent.from_dict(body)
        except SyncError as exc:
            raise exc.with_context(AGENTS)

    def update_agent(self, agent_id: int | str, fields: dict[str, Any],
                     cancel: Optional[threading.Event] = None) -> None:
        """Partial PUT: only ``fields`` are sent."""
        try:
            self._transport.fetch_raw(
                "PUT", self._url(AGENTS, str(agent_id)), body=fields, cancel=cancel
            )
        except SyncError as exc:
            raise exc.with_context(AGENTS)
