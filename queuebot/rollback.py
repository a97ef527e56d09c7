"""
Undo every page edit recorded for the given commands.

Usage:
    python -m queuebot.rollback 01HV5R6ZP4N3Q8D5B7K1C2M9XA [...]
"""

import argparse
import asyncio
import logging
from typing import List, Sequence

from .clients.page_store import PageStore, connect
from .core.config import get_settings
from .core.logging_config import setup_logging
from .database import create_session_factory
from .exceptions import PageStoreError
from .services.audit_service import AuditStore
from .wikitext.transcoder import WikitextTranscoder

logger = logging.getLogger("queuebot.rollback")

UNDO_SUMMARY = "BOT: Undo operation"

_ULID_ALPHABET = set("0123456789ABCDEFGHJKMNPQRSTVWXYZ")


def parse_command_ids(values: Sequence[str]) -> List[str]:
    ids = []
    for value in values:
        value = value.strip().upper()
        if len(value) != 26 or not set(value) <= _ULID_ALPHABET:
            raise ValueError(f"could not parse ULID: {value}")
        ids.append(value)
    return ids


async def rollback(store: PageStore, audit: AuditStore, command_ids: Sequence[str]) -> int:
    """Undo recorded revisions; returns how many were undone."""
    operations = await asyncio.to_thread(audit.get_operations, command_ids)
    logger.info("Rolling back %d operation(s) of %d command(s)", len(operations), len(command_ids))

    undone = 0
    for operation in operations:
        if operation.new_revision_id is None:
            continue
        try:
            await store.undo(operation.page_id, operation.new_revision_id, UNDO_SUMMARY)
            undone += 1
        except PageStoreError as e:
            logger.error(f"Could not undo revision {operation.new_revision_id} of page {operation.page_id}: {e.message}")
    return undone


def main() -> None:
    parser = argparse.ArgumentParser(description="Undo the page edits made by queue commands")
    parser.add_argument("command_ids", nargs="+", help="Command IDs (ULID) to roll back")
    args = parser.parse_args()

    try:
        command_ids = parse_command_ids(args.command_ids)
    except ValueError as e:
        parser.error(str(e))

    settings = get_settings()
    setup_logging(settings.log_level, settings.log_format, secrets=[settings.wiki_password])

    store = connect(settings, WikitextTranscoder())
    audit = AuditStore(create_session_factory(settings.database_url, settings))
    undone = asyncio.run(rollback(store, audit, command_ids))
    logger.info(f"Undid {undone} revision(s)")


if __name__ == "__main__":
    main()
