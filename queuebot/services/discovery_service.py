"""Member discovery: every page that may reference a category.

Category membership alone misses pages that reach a category only through
a redirect-category template or a reference nested inside another template,
so membership listing is merged with a full-text ``insource:`` search. Both
producers run concurrently and feed one bounded queue; a page is delivered
once, by whichever producer surfaces it first.
"""

import asyncio
import logging
import threading
from typing import AsyncIterator, Callable, Optional, Sequence, Set, Union

from ..clients.page_store import Page, PageStore
from ..exceptions import DiscoveryError
from ..wikitext.document import strip_category_prefix

logger = logging.getLogger(__name__)

DEFAULT_BUFFER_SIZE = 50

DiscoveryItem = Union[Page, DiscoveryError]

_DONE = object()


def search_query(category: str) -> str:
    """Search for the bare name so prefixed and unprefixed references both match."""
    return f'insource:"{strip_category_prefix(category)}"'


class MemberDiscovery:
    """Async iterator of ``Page`` / ``DiscoveryError`` items.

    Use as an async context manager so leaving early cancels the producers::

        async with MemberDiscovery(store, "Category:Foo", [0, 14]) as members:
            async for item in members:
                ...
    """

    def __init__(self, store: PageStore, category: str, namespaces: Sequence[int],
                 buffer_size: int = DEFAULT_BUFFER_SIZE):
        self.store = store
        self.category = category
        self.namespaces = list(namespaces)
        self.buffer_size = buffer_size

        self._seen: Set[str] = set()
        self._seen_lock = threading.Lock()
        self._queue: Optional[asyncio.Queue] = None
        self._tasks: list = []
        self._running = 0

    def _claim(self, title: str) -> bool:
        """True for the first sighting of ``title``."""
        with self._seen_lock:
            if title in self._seen:
                return False
            self._seen.add(title)
            return True

    def start(self) -> None:
        if self._queue is not None:
            return
        self._queue = asyncio.Queue(maxsize=self.buffer_size)
        producers = {
            "category members": lambda: self.store.list_members(self.category, self.namespaces),
            "search": lambda: self.store.search(search_query(self.category), self.namespaces),
        }
        for source, factory in producers.items():
            self._tasks.append(asyncio.create_task(self._produce(source, factory)))
        self._running = len(self._tasks)

    async def _produce(self, source: str, factory: Callable[[], AsyncIterator]) -> None:
        delivered = 0
        try:
            async for item in factory():
                if isinstance(item, Exception):
                    await self._queue.put(item if isinstance(item, DiscoveryError) else DiscoveryError(source, item))
                elif self._claim(item.title):
                    delivered += 1
                    await self._queue.put(item)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.warning("Discovery via %s for %s stopped early: %s", source, self.category, exc)
            await self._queue.put(DiscoveryError(source, exc))
        logger.debug("Discovery via %s for %s delivered %d page(s)", source, self.category, delivered)
        await self._queue.put(_DONE)

    def __aiter__(self) -> "MemberDiscovery":
        return self

    async def __anext__(self) -> DiscoveryItem:
        self.start()
        while self._running:
            item = await self._queue.get()
            if item is _DONE:
                self._running -= 1
                continue
            return item
        raise StopAsyncIteration

    async def aclose(self) -> None:
        for task in self._tasks:
            if not task.done():
                task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        self._running = 0

    async def __aenter__(self) -> "MemberDiscovery":
        self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()


def list_category_members(store: PageStore, category: str, namespaces: Sequence[int],
                          buffer_size: int = DEFAULT_BUFFER_SIZE) -> MemberDiscovery:
    """Deduplicated stream of pages that may reference ``category``."""
    return MemberDiscovery(store, category, namespaces, buffer_size)
