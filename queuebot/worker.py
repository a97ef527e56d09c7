"""
Queue consumer.

Reads the queue page, runs every ``Bot:`` section that has not been answered
yet, and appends the result ({{BOTREQ|完了}}, {{BOTREQ|不受理}}, ...) to the
section. Sections are handled one at a time, in page order.

Usage:
    python -m queuebot.worker            # one pass
    python -m queuebot.worker --loop     # poll every QUEUEBOT_POLL_INTERVAL seconds
    python -m queuebot.worker --dry-run  # compute rewrites, save nothing
"""

import argparse
import asyncio
import logging
from typing import Optional

from .clients.page_store import PageStore, connect
from .commands.parser import is_command_heading, parse_command
from .core.config import Settings, get_settings
from .core.logging_config import setup_logging
from .database import create_session_factory
from .exceptions import QueueBotException
from .queue_page import Section, append_report, format_rejection, format_report, split_sections
from .services.audit_service import AuditStore
from .services.command_service import CommandExecutor, CommandOutcome
from .services.emergency_stop import EmergencyStop
from .wikitext.document import Document, Text
from .wikitext.transcoder import WikitextTranscoder

logger = logging.getLogger("queuebot.worker")


class QueueWorker:
    """Consumes the queue page once per ``run_once`` call."""

    def __init__(self, settings: Settings, store: PageStore, executor: CommandExecutor,
                 emergency_stop: EmergencyStop):
        self.settings = settings
        self.store = store
        self.executor = executor
        self.emergency_stop = emergency_stop

    async def _answer(self, section: Section, report: str, result: str) -> None:
        if self.executor.dry_run:
            logger.info("Dry run, not answering section %d:\n%s", section.id, report)
            return
        await self.store.save(
            self.settings.queue_page,
            Document([Text(append_report(section, report))]),
            f"BOT: {result}",
            section=section.id,
        )

    async def handle_section(self, section: Section) -> Optional[CommandOutcome]:
        """Run one queue section and answer it; None when the command was rejected."""
        try:
            command = parse_command(section.heading, section.body)
        except QueueBotException as exc:
            logger.info("Rejected section %r: %s", section.heading, exc.message)
            await self._answer(section, format_rejection(exc.message, self.settings.bot_name), "不受理")
            return None

        status = await self.executor.execute(command)
        report = format_report(status, self.settings.bot_name)
        await self._answer(section, report, f"{status.outcome.value} (ID: {command.id})")
        return status.outcome

    async def run_once(self) -> int:
        """Handle every pending section; returns how many were handled."""
        queue_page = self.settings.queue_page
        text = await self.store.fetch_text(queue_page)
        try:
            pending = [
                s for s in split_sections(text)
                if is_command_heading(s.heading) and not s.is_answered
            ]
            logger.info("%d pending command(s) on %s", len(pending), queue_page)

            handled = 0
            for section in pending:
                if await self.emergency_stop.is_stopped():
                    logger.warning("Emergency stop is set, leaving %d command(s) queued", len(pending) - handled)
                    break
                outcome = await self.handle_section(section)
                handled += 1
                if outcome is CommandOutcome.EMERGENCY_STOPPED:
                    break
            return handled
        finally:
            self.store.release(queue_page)


def build_worker(settings: Settings) -> QueueWorker:
    transcoder = WikitextTranscoder()
    store = connect(settings, transcoder)
    audit = AuditStore(
        create_session_factory(settings.database_url, settings),
        max_attempts=settings.audit_max_attempts,
        base_delay=settings.audit_retry_base_delay,
    )
    emergency_stop = EmergencyStop.from_settings(settings)
    executor = CommandExecutor(
        store,
        audit,
        emergency_stop,
        transcoder,
        dry_run=settings.dry_run,
        max_depth=settings.max_descent_depth,
        buffer_size=settings.discovery_buffer_size,
    )
    return QueueWorker(settings, store, executor, emergency_stop)


async def run(settings: Settings, loop: bool) -> None:
    worker = build_worker(settings)
    try:
        while True:
            try:
                await worker.run_once()
            except QueueBotException as e:
                logger.error(f"Queue pass failed: {e.message}", extra={"error_code": e.error_code.value, "details": e.details})
                if not loop:
                    raise
            except Exception as e:
                logger.exception(f"Worker error: {e}")
                if not loop:
                    raise
            if not loop:
                break
            await asyncio.sleep(settings.poll_interval)
    finally:
        await worker.emergency_stop.close()


def main() -> None:
    parser = argparse.ArgumentParser(description="Process category commands from the queue page")
    parser.add_argument("--loop", action="store_true", help="Keep polling the queue page")
    parser.add_argument("--dry-run", action="store_true", help="Compute rewrites without saving")
    args = parser.parse_args()

    settings = get_settings()
    if args.dry_run:
        settings.dry_run = True
    setup_logging(settings.log_level, settings.log_format, secrets=[settings.wiki_password])
    settings.validate_production_config()

    logger.info(f"Worker started for {settings.queue_page} on {settings.wiki_host}")
    try:
        asyncio.run(run(settings, args.loop))
    except KeyboardInterrupt:
        logger.info("Worker shutting down")


if __name__ == "__main__":
    main()
