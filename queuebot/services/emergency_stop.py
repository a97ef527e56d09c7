"""Emergency stop flag.

Operators halt the bot by editing one on-wiki page. The bot keeps running
only while that page holds the sentinel text (``動作中``) on a line of its
own; any other content, or any failure to read the page, means stop.
"""

import logging
from typing import Optional

import httpx

from ..core.config import Settings

logger = logging.getLogger(__name__)


def is_running_text(text: str, sentinel: str) -> bool:
    return any(line.strip() == sentinel for line in text.splitlines())


class EmergencyStop:
    """Reads the raw wikitext of the stop page before every page edit."""

    def __init__(self, base_url: str, page_title: str, sentinel: str = "動作中",
                 timeout: float = 30, user_agent: Optional[str] = None,
                 client: Optional[httpx.AsyncClient] = None):
        self.base_url = base_url
        self.page_title = page_title
        self.sentinel = sentinel
        self.timeout = timeout
        self.user_agent = user_agent
        self._client = client

    @classmethod
    def from_settings(cls, settings: Settings) -> "EmergencyStop":
        return cls(
            base_url=settings.wiki_base_url,
            page_title=settings.emergency_stop_page,
            sentinel=settings.emergency_stop_sentinel,
            timeout=settings.request_timeout,
            user_agent=settings.user_agent,
        )

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            headers: dict[str, str] = {}
            if self.user_agent:
                headers["User-Agent"] = self.user_agent
            self._client = httpx.AsyncClient(base_url=self.base_url, headers=headers, timeout=self.timeout)
        return self._client

    async def is_stopped(self) -> bool:
        try:
            client = await self._get_client()
            resp = await client.get("index.php", params={"title": self.page_title, "action": "raw"})
            resp.raise_for_status()
        except httpx.HTTPError as exc:
            logger.warning("Could not read emergency stop page %s, stopping: %s", self.page_title, exc)
            return True

        if is_running_text(resp.text, self.sentinel):
            return False
        logger.warning("Emergency stop page %s no longer says %r", self.page_title, self.sentinel)
        return True

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
