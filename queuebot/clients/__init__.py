"""Clients for external services."""

from .page_store import MediaWikiPageStore, Page, PageStore, SaveResult, connect

__all__ = ["MediaWikiPageStore", "Page", "PageStore", "SaveResult", "connect"]
