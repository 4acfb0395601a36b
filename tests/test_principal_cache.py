"""Tests for the populate-once agent cache."""

import threading
import time

import pytest

from freshdesk_sync.errors import Cancelled, EmptyUpstream, TransportError
from freshdesk_sync.principal_cache import AgentCache
from tests.conftest import agent_payload


@pytest.fixture
def cache(client):
    return AgentCache(client)


class TestAgentCache:
    def test_populates_every_agent_in_order(self, transport, cache):
        transport.add_agents(*(agent_payload(i) for i in (3, 1, 2)))

        cache.ensure_populated()

        assert [a.id for a in cache.snapshot()] == [3, 1, 2]
        assert len(transport.calls_to("GET", "/agents/")) == 3

    def test_second_call_is_a_no_op(self, transport, cache):
        transport.add_agents(agent_payload(1), agent_payload(2))

        cache.ensure_populated()
        cache.ensure_populated()

        assert len(transport.calls_to("GET", "/agents/")) == 2

    def test_enumerates_across_pages(self, transport, cache):
        transport.add_agents(*(agent_payload(i) for i in range(1, 6)), per_page=2)

        cache.ensure_populated()

        assert [a.id for a in cache.snapshot()] == [1, 2, 3, 4, 5]
        list_calls = transport.calls_to("GET", "/agents?")
        assert len(list_calls) == 3
        assert "&page=" not in list_calls[0][1]
        assert list_calls[1][1].endswith("&page=2")

    def test_empty_upstream_leaves_cache_empty(self, transport, cache):
        transport.pages["agents"] = [[]]

        with pytest.raises(EmptyUpstream):
            cache.ensure_populated()

        assert cache.snapshot() == ()
        assert transport.calls_to("GET", "/agents/") == []

        transport.add_agents(agent_payload(8))
        cache.ensure_populated()
        assert [a.id for a in cache.snapshot()] == [8]

    def test_failed_detail_fetch_keeps_nothing(self, transport, cache):
        transport.add_agents(*(agent_payload(i) for i in range(1, 6)))
        transport.fail_details.add(3)

        with pytest.raises(TransportError):
            cache.ensure_populated()

        assert cache.snapshot() == ()

        transport.fail_details.clear()
        cache.ensure_populated()
        assert len(cache.snapshot()) == 5
        assert len(transport.calls_to("GET", "/agents/")) == 8

    def test_enumeration_failure_keeps_nothing(self, transport, cache):
        transport.add_agents(*(agent_payload(i) for i in range(1, 5)), per_page=2)
        transport.fail_pages.add(("agents", 2))

        with pytest.raises(TransportError):
            cache.ensure_populated()

        assert cache.snapshot() == ()
        assert transport.calls_to("GET", "/agents/") == []

    def test_cancel_mid_population_keeps_nothing(self, transport, cache):
        transport.add_agents(*(agent_payload(i) for i in range(1, 5)))
        cancel = threading.Event()

        def cancel_on_second(agent_id):
            if agent_id == 2:
                cancel.set()

        transport.detail_hook = cancel_on_second

        with pytest.raises(Cancelled):
            cache.ensure_populated(cancel)

        assert cache.snapshot() == ()

    def test_snapshot_waits_for_population_in_progress(self, transport, cache):
        transport.add_agents(*(agent_payload(i) for i in range(1, 4)))
        fetching = threading.Event()
        release = threading.Event()

        def hold_open(agent_id):
            if agent_id == 1:
                fetching.set()
                release.wait(5)

        transport.detail_hook = hold_open
        seen = []
        populate = threading.Thread(target=cache.ensure_populated)
        reader = threading.Thread(target=lambda: seen.append(cache.snapshot()))

        populate.start()
        assert fetching.wait(5)
        reader.start()
        reader.join(0.1)
        assert reader.is_alive()
        assert seen == []

        release.set()
        populate.join(5)
        reader.join(5)

        assert [a.id for a in seen[0]] == [1, 2, 3]

    def test_concurrent_callers_populate_once(self, transport, cache):
        transport.add_agents(*(agent_payload(i) for i in range(1, 4)))
        transport.detail_hook = lambda agent_id: time.sleep(0.01)
        errors = []

        def worker():
            try:
                cache.ensure_populated()
            except Exception as exc:  # pragma: no cover - surfaced by the assert below
                errors.append(exc)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        assert len(transport.calls_to("GET", "/agents/")) == 3
        assert len(cache.snapshot()) == 3
