"""Shared test fixtures for the QueueBot test suite.

Tests run against an in-memory SQLite audit database and an in-memory page
store, so nothing here talks to a wiki. Async code is driven with
``asyncio.run`` inside the tests.
"""

import os

# Keep settings deterministic regardless of the developer's environment.
os.environ["QUEUEBOT_LOG_FORMAT"] = "text"

from typing import Dict, List, Optional, Sequence, Set

import pytest

from queuebot.clients.page_store import Page, SaveResult
from queuebot.database import create_session_factory
from queuebot.exceptions import PageNotFoundError, PageStoreError
from queuebot.services.audit_service import AuditStore
from queuebot.wikitext.document import Document, strip_category_prefix
from queuebot.wikitext.transcoder import WikitextTranscoder


class FakePageStore:
    """In-memory page store.

    ``members`` maps a category to page titles, ``search_hits`` maps a search
    query to page titles. Titles in ``fail_fetch`` / ``fail_save`` raise
    PageStoreError.
    """

    def __init__(self, pages: Optional[Dict[str, str]] = None):
        self.transcoder = WikitextTranscoder()
        self.pages: Dict[str, str] = dict(pages or {})
        self.page_ids: Dict[str, int] = {title: i + 1 for i, title in enumerate(self.pages)}
        self.members: Dict[str, List[str]] = {}
        self.search_hits: Dict[str, List[str]] = {}
        self.fail_fetch: Set[str] = set()
        self.fail_save: Set[str] = set()
        self.fetched: List[str] = []
        self.saves: List[dict] = []
        self.undone: List[tuple] = []
        self.released: List[str] = []
        self._next_revision = 1000

    def add_page(self, title: str, text: str) -> None:
        self.pages[title] = text
        self.page_ids.setdefault(title, len(self.page_ids) + 1)

    def _page(self, title: str) -> Page:
        namespace = 14 if title.startswith("Category:") else 0
        return Page(title=title, namespace=namespace, page_id=self.page_ids.get(title))

    async def fetch_text(self, title: str) -> str:
        self.fetched.append(title)
        if title in self.fail_fetch:
            raise PageStoreError(f"Could not fetch {title}", title=title)
        if title not in self.pages:
            raise PageNotFoundError(title)
        return self.pages[title]

    async def fetch(self, title: str) -> Document:
        return self.transcoder.parse_sync(await self.fetch_text(title))

    async def exists(self, title: str) -> bool:
        return title in self.pages

    async def save(self, title: str, document: Document, summary: str,
                   section: Optional[int] = None) -> SaveResult:
        if title in self.fail_save:
            raise PageStoreError(f"Could not save {title}", title=title)
        text = self.transcoder.serialize_sync(document)
        self.saves.append({"title": title, "text": text, "summary": summary, "section": section})
        if section is None:
            self.pages[title] = text
        self._next_revision += 1
        return SaveResult(page_id=self.page_ids.setdefault(title, len(self.page_ids) + 1),
                          new_revision_id=self._next_revision)

    async def search(self, query: str, namespaces: Sequence[int]):
        for title in self.search_hits.get(query, []):
            page = self._page(title)
            if page.namespace in namespaces:
                yield page

    async def list_members(self, category: str, namespaces: Sequence[int]):
        for title in self.members.get(category, []):
            page = self._page(title)
            if page.namespace in namespaces:
                yield page

    async def undo(self, page_id: int, revision_id: int, summary: str) -> None:
        self.undone.append((page_id, revision_id, summary))

    def release(self, title: str) -> None:
        self.released.append(title)


class FakeEmergencyStop:
    """Reports "stopped" from the ``stop_after``-th check onwards."""

    def __init__(self, stop_after: Optional[int] = None):
        self.stop_after = stop_after
        self.checks = 0

    async def is_stopped(self) -> bool:
        self.checks += 1
        return self.stop_after is not None and self.checks > self.stop_after

    async def close(self) -> None:
        pass


def search_key(category: str) -> str:
    return f'insource:"{strip_category_prefix(category)}"'


@pytest.fixture
def transcoder():
    return WikitextTranscoder()


@pytest.fixture
def session_factory():
    return create_session_factory("sqlite://")


@pytest.fixture
def audit(session_factory):
    return AuditStore(session_factory, max_attempts=3, base_delay=0)


@pytest.fixture
def store():
    return FakePageStore()
