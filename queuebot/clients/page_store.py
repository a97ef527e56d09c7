"""MediaWiki page store.

Thin async adapter over mwclient. mwclient is blocking, so every call runs in
the default thread pool; listings are consumed one item at a time so a slow
consumer never makes the store read ahead.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, AsyncIterator, Callable, Dict, Iterator, Optional, Protocol, Sequence

import mwclient
import requests
from mwclient.errors import MwClientError

from ..core.config import Settings
from ..exceptions import PageNotFoundError, PageStoreError
from ..wikitext.document import Document, strip_category_prefix
from ..wikitext.transcoder import Transcoder

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Page:
    """A page surfaced by a listing."""

    title: str
    namespace: int
    page_id: Optional[int] = None


@dataclass(frozen=True)
class SaveResult:
    page_id: int
    # None when MediaWiki reported "nochange"
    new_revision_id: Optional[int] = None


class PageStore(Protocol):
    """What the executor, discovery and worker need from the wiki."""

    async def fetch(self, title: str) -> Document: ...

    async def fetch_text(self, title: str) -> str: ...

    async def exists(self, title: str) -> bool: ...

    async def save(self, title: str, document: Document, summary: str,
                   section: Optional[int] = None) -> SaveResult: ...

    def search(self, query: str, namespaces: Sequence[int]) -> AsyncIterator[Page]: ...

    def list_members(self, category: str, namespaces: Sequence[int]) -> AsyncIterator[Page]: ...

    async def undo(self, page_id: int, revision_id: int, summary: str) -> None: ...

    def release(self, title: str) -> None: ...


_END = object()


async def _iterate_in_thread(factory: Callable[[], Iterator[Any]]) -> AsyncIterator[Any]:
    iterator = await asyncio.to_thread(lambda: iter(factory()))
    while True:
        item = await asyncio.to_thread(next, iterator, _END)
        if item is _END:
            return
        yield item


def _namespace_param(namespaces: Sequence[int]) -> str:
    return "|".join(str(ns) for ns in namespaces)


class MediaWikiPageStore:
    """Page store backed by an mwclient Site."""

    def __init__(self, site: mwclient.Site, transcoder: Transcoder):
        self.site = site
        self.transcoder = transcoder
        # Pages whose text was read, kept so save() detects edit conflicts.
        self._loaded: Dict[str, Any] = {}

    async def fetch_text(self, title: str) -> str:
        def load() -> str:
            page = self.site.pages[title]
            if not page.exists:
                raise PageNotFoundError(title)
            text = page.text()
            self._loaded[title] = page
            return text

        try:
            return await asyncio.to_thread(load)
        except (MwClientError, requests.RequestException) as exc:
            raise PageStoreError(f"Could not fetch {title}", title=title, original_error=exc) from exc

    async def fetch(self, title: str) -> Document:
        return await self.transcoder.parse(await self.fetch_text(title))

    def release(self, title: str) -> None:
        """Drop the page kept from the last read of ``title``."""
        self._loaded.pop(title, None)

    async def exists(self, title: str) -> bool:
        try:
            return await asyncio.to_thread(lambda: self.site.pages[title].exists)
        except (MwClientError, requests.RequestException) as exc:
            raise PageStoreError(f"Could not look up {title}", title=title, original_error=exc) from exc

    async def save(self, title: str, document: Document, summary: str,
                   section: Optional[int] = None) -> SaveResult:
        text = await self.transcoder.serialize(document)

        def edit() -> Dict[str, Any]:
            page = self._loaded.pop(title, None) or self.site.pages[title]
            return page.edit(text, summary=summary, bot=True,
                             section=None if section is None else str(section))

        try:
            result = await asyncio.to_thread(edit)
        except (MwClientError, requests.RequestException) as exc:
            raise PageStoreError(f"Could not save {title}", title=title, original_error=exc) from exc

        if result.get("result") != "Success":
            raise PageStoreError(f"Save of {title} was not accepted: {result}", title=title)

        new_revision_id = result.get("newrevid")
        logger.info("Saved %s (revision %s)", title, new_revision_id or "unchanged")
        return SaveResult(page_id=int(result["pageid"]), new_revision_id=new_revision_id)

    async def search(self, query: str, namespaces: Sequence[int]) -> AsyncIterator[Page]:
        factory = lambda: self.site.search(query, namespace=_namespace_param(namespaces), what="text")  # noqa: E731
        try:
            async for item in _iterate_in_thread(factory):
                yield Page(title=item["title"], namespace=int(item["ns"]), page_id=item.get("pageid"))
        except (MwClientError, requests.RequestException) as exc:
            raise PageStoreError(f"Search for {query!r} failed", original_error=exc) from exc

    async def list_members(self, category: str, namespaces: Sequence[int]) -> AsyncIterator[Page]:
        def factory():
            return self.site.categories[strip_category_prefix(category)].members(
                namespace=_namespace_param(namespaces)
            )

        try:
            async for member in _iterate_in_thread(factory):
                yield Page(title=member.name, namespace=member.namespace, page_id=member.pageid)
        except (MwClientError, requests.RequestException) as exc:
            raise PageStoreError(f"Listing {category} failed", title=category, original_error=exc) from exc

    async def undo(self, page_id: int, revision_id: int, summary: str) -> None:
        def post() -> Dict[str, Any]:
            return self.site.post(
                "edit",
                pageid=page_id,
                undo=revision_id,
                summary=summary,
                bot=True,
                token=self.site.get_token("csrf"),
            )

        try:
            result = await asyncio.to_thread(post)
        except (MwClientError, requests.RequestException) as exc:
            raise PageStoreError(f"Could not undo revision {revision_id}", original_error=exc) from exc
        logger.info("Undid revision %s of page %s: %s", revision_id, page_id, result.get("edit", {}).get("result"))


def connect(settings: Settings, transcoder: Transcoder) -> MediaWikiPageStore:
    """Open a logged-in session to the configured wiki."""
    session = requests.Session()
    session.headers["User-Agent"] = settings.user_agent
    site = mwclient.Site(
        settings.wiki_host,
        path=settings.wiki_path,
        scheme=settings.wiki_scheme,
        pool=session,
        clients_useragent=settings.user_agent,
        connection_options={"timeout": settings.request_timeout},
    )
    if settings.wiki_username:
        site.login(settings.wiki_username, settings.wiki_password)
        logger.info("Logged in to %s as %s", settings.wiki_host, settings.wiki_username)
    else:
        logger.warning("No wiki credentials configured, running anonymously")
    return MediaWikiPageStore(site, transcoder)
