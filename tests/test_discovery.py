"""Tests for the dual-producer member discovery stream."""

import asyncio

from queuebot.clients.page_store import Page
from queuebot.exceptions import DiscoveryError, PageStoreError
from queuebot.services.discovery_service import MemberDiscovery, list_category_members, search_query

from tests.conftest import FakePageStore, search_key


async def _collect(discovery):
    items = []
    async with discovery as stream:
        async for item in stream:
            items.append(item)
    return items


def _titles(items):
    return [item.title for item in items if isinstance(item, Page)]


class TestSearchQuery:
    def test_uses_bare_name(self):
        assert search_query("Category:東京都の塔") == 'insource:"東京都の塔"'


class TestMemberDiscovery:
    def test_merges_both_producers(self):
        store = FakePageStore()
        store.members["Category:A"] = ["P1", "P2"]
        store.search_hits[search_key("Category:A")] = ["P3"]

        items = asyncio.run(_collect(list_category_members(store, "Category:A", [0, 14])))

        assert sorted(_titles(items)) == ["P1", "P2", "P3"]

    def test_page_from_both_producers_delivered_once(self):
        store = FakePageStore()
        store.members["Category:A"] = ["P1", "P2", "Shared"]
        store.search_hits[search_key("Category:A")] = ["Shared", "P4", "P1"]

        items = asyncio.run(_collect(list_category_members(store, "Category:A", [0])))

        titles = _titles(items)
        assert sorted(titles) == ["P1", "P2", "P4", "Shared"]
        assert len(titles) == len(set(titles))

    def test_namespace_scope(self):
        store = FakePageStore()
        store.members["Category:A"] = ["Article", "Category:Sub"]

        items = asyncio.run(_collect(list_category_members(store, "Category:A", [14])))

        assert _titles(items) == ["Category:Sub"]

    def test_empty_category(self):
        items = asyncio.run(_collect(list_category_members(FakePageStore(), "Category:A", [0, 14])))
        assert items == []

    def test_failing_producer_is_forwarded_and_other_continues(self):
        store = FakePageStore()
        store.search_hits[search_key("Category:A")] = ["P1", "P2"]

        async def broken_members(category, namespaces):
            yield Page("M1", 0)
            raise PageStoreError("listing failed")

        store.list_members = broken_members

        items = asyncio.run(_collect(list_category_members(store, "Category:A", [0])))

        errors = [item for item in items if isinstance(item, DiscoveryError)]
        assert sorted(_titles(items)) == ["M1", "P1", "P2"]
        assert len(errors) == 1
        assert errors[0].source == "category members"

    def test_per_item_errors_forwarded(self):
        store = FakePageStore()

        async def flaky_search(query, namespaces):
            yield Page("S1", 0)
            yield PageStoreError("one result failed")
            yield Page("S2", 0)

        store.search = flaky_search

        items = asyncio.run(_collect(list_category_members(store, "Category:A", [0])))

        assert sorted(_titles(items)) == ["S1", "S2"]
        assert sum(isinstance(item, DiscoveryError) for item in items) == 1

    def test_backpressure_with_small_buffer(self):
        store = FakePageStore()
        store.members["Category:A"] = [f"P{i}" for i in range(20)]
        store.search_hits[search_key("Category:A")] = [f"P{i}" for i in range(10, 30)]

        items = asyncio.run(_collect(MemberDiscovery(store, "Category:A", [0], buffer_size=1)))

        assert sorted(_titles(items)) == sorted(f"P{i}" for i in range(30))

    def test_closing_early_cancels_producers(self):
        store = FakePageStore()
        store.members["Category:A"] = [f"P{i}" for i in range(100)]

        async def take_one():
            async with MemberDiscovery(store, "Category:A", [0], buffer_size=2) as stream:
                first = await stream.__anext__()
            return first, stream._tasks

        first, tasks = asyncio.run(take_one())

        assert first.title.startswith("P")
        assert all(task.done() for task in tasks)
