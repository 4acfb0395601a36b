"""Pytest configuration and fixtures.

FakeTransport stands in for the HTTP transport: it serves canned Freshdesk
pages with a Link header, agent details, and records every request.
"""

from __future__ import annotations

import threading
from typing import Any, Optional
from urllib.parse import parse_qs, urlparse

import pytest

from freshdesk_sync.client import FreshdeskClient
from freshdesk_sync.connector import Connector
from freshdesk_sync.errors import TransportError, raise_if_cancelled

BASE_URL = "https://acme.freshdesk.com"


def agent_payload(
    agent_id: int,
    name: str = "",
    email: str = "",
    role_ids: Optional[list[int]] = None,
    group_ids: Optional[list[int]] = None,
) -> dict:
    return {
        "id": agent_id,
        "available": True,
        "occasional": False,
        "type": "support_agent",
        "role_ids": role_ids or [],
        "group_ids": group_ids or [],
        "contact": {"name": name, "email": email or f"agent{agent_id}@example.com"},
    }


class FakeTransport:
    def __init__(self) -> None:
        self.pages: dict[str, list[list[dict]]] = {}
        self.details: dict[int, dict] = {}
        self.fail_details: set[int] = set()
        self.fail_pages: set[tuple[str, int]] = set()
        self.calls: list[tuple[str, str, Any]] = []
        self.detail_hook = None
        self._lock = threading.Lock()

    def add_agents(self, *agents: dict, per_page: Optional[int] = None) -> None:
        """Serve ``agents`` both as list pages and as detail documents."""
        agents = list(agents)
        size = per_page or max(len(agents), 1)
        self.pages["agents"] = [agents[i : i + size] for i in range(0, len(agents), size)] or [[]]
        for agent in agents:
            self.details[agent["id"]] = agent

    def calls_to(self, method: str, path_fragment: str) -> list[tuple[str, str, Any]]:
        return [c for c in self.calls if c[0] == method and path_fragment in c[1]]

    def fetch_raw(self, method: str, url: str, body: Any = None,
                  cancel: Optional[threading.Event] = None):
        raise_if_cancelled(cancel)
        with self._lock:
            self.calls.append((method, url, body))

        parsed = urlparse(url)
        parts = parsed.path.strip("/").split("/")  # api, v2, collection[, id]
        collection = parts[2]

        if method == "PUT":
            return {}, None

        if len(parts) == 4:
            agent_id = int(parts[3])
            if self.detail_hook is not None:
                self.detail_hook(agent_id)
            if agent_id in self.fail_details:
                raise TransportError(f"GET {url} returned HTTP 500", status_code=500, url=url)
            return {}, self.details[agent_id]

        query = parse_qs(parsed.query)
        page = int(query.get("page", ["1"])[0])
        if (collection, page) in self.fail_pages:
            raise TransportError(f"GET {url} returned HTTP 503", status_code=503, url=url)
        pages = self.pages.get(collection, [[]])
        headers = {}
        if page < len(pages):
            per_page = query.get("per_page", ["50"])[0]
            headers["Link"] = (
                f'<{BASE_URL}/api/v2/{collection}?per_page={per_page}&page={page + 1}>; rel="next"'
            )
        return headers, pages[page - 1]


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def client(transport):
    return FreshdeskClient(transport, BASE_URL)


@pytest.fixture
def connector(client):
    return Connector(client)
