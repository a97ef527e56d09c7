"""Command execution.

One command walks every page discovered for its source category, rewrites
the category references, saves changed pages and records each edit in the
audit store. Failures on one page are recorded against that page and never
stop the batch; only the emergency stop ends a run early.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple

from ..clients.page_store import Page, PageStore
from ..commands.types import Command, CommandType, OperationRecord, OperationType
from ..core.logging_config import command_id_var
from ..exceptions import AuditWriteError, DiscoveryError, QueueBotException
from ..replacer import DEFAULT_MAX_DEPTH, RecursiveDescender, build_replacer
from ..wikitext.transcoder import Transcoder
from .audit_service import AuditStore
from .discovery_service import DEFAULT_BUFFER_SIZE, list_category_members
from .emergency_stop import EmergencyStop

logger = logging.getLogger(__name__)


class OperationState(str, Enum):
    DONE = "done"
    DUPLICATED = "duplicated"
    REMOVED = "removed"
    SKIPPED = "skipped"
    ERROR = "error"


@dataclass(frozen=True)
class OperationStatus:
    """Outcome for one page."""

    state: OperationState
    reason: Optional[str] = None

    @classmethod
    def error(cls, reason: str) -> "OperationStatus":
        return cls(OperationState.ERROR, reason)

    @property
    def is_error(self) -> bool:
        return self.state is OperationState.ERROR


_SUCCESS_STATES = {
    CommandType.REASSIGNMENT: OperationState.DONE,
    CommandType.DUPLICATE: OperationState.DUPLICATED,
    CommandType.REMOVE: OperationState.REMOVED,
}


class CommandOutcome(str, Enum):
    DONE = "done"
    SKIPPED = "skipped"
    CATEGORY_EMPTY = "category_empty"
    EMERGENCY_STOPPED = "emergency_stopped"
    ERROR = "error"


@dataclass
class CommandStatus:
    """Outcome of one command run; ``statuses`` is keyed by page title in processing order."""

    outcome: CommandOutcome
    command_id: Optional[str] = None
    statuses: Dict[str, OperationStatus] = field(default_factory=dict)
    message: Optional[str] = None

    def count(self, state: OperationState) -> int:
        return sum(1 for status in self.statuses.values() if status.state is state)

    @property
    def errors(self) -> List[Tuple[str, str]]:
        return [(title, status.reason or "") for title, status in self.statuses.items() if status.is_error]


class CommandExecutor:
    """Runs commands against a page store.

    Blocking audit writes run in the default thread pool so discovery keeps
    streaming while a write is retried.
    """

    def __init__(
        self,
        store: PageStore,
        audit: AuditStore,
        emergency_stop: EmergencyStop,
        transcoder: Transcoder,
        dry_run: bool = False,
        max_depth: int = DEFAULT_MAX_DEPTH,
        buffer_size: int = DEFAULT_BUFFER_SIZE,
    ):
        self.store = store
        self.audit = audit
        self.emergency_stop = emergency_stop
        self.transcoder = transcoder
        self.dry_run = dry_run
        self.max_depth = max_depth
        self.buffer_size = buffer_size

    async def execute(self, command: Command) -> CommandStatus:
        token = command_id_var.set(command.id)
        try:
            return await self._execute(command)
        finally:
            command_id_var.reset(token)

    async def _execute(self, command: Command) -> CommandStatus:
        logger.info(
            "Executing %s: %s -> %s (namespaces %s)%s",
            command.command_type.value, command.from_category, command.to_categories,
            list(command.target_namespaces), " [dry run]" if self.dry_run else "",
        )

        try:
            await asyncio.to_thread(self.audit.store_command, command)
        except AuditWriteError as exc:
            logger.error("Could not record command %s, not touching any page: %s", command.id, exc)
            return CommandStatus(CommandOutcome.ERROR, command.id, message=exc.message)

        await self._warn_missing_targets(command)

        replacer = build_replacer(command.from_category, command.to_categories, self.transcoder, self.max_depth)
        statuses: Dict[str, OperationStatus] = {}
        yielded = 0

        async with list_category_members(
            self.store, command.from_category, command.target_namespaces, self.buffer_size
        ) as members:
            async for item in members:
                yielded += 1

                if await self.emergency_stop.is_stopped():
                    logger.warning("Emergency stop after %d page(s) of command %s", len(statuses), command.id)
                    return CommandStatus(CommandOutcome.EMERGENCY_STOPPED, command.id, statuses)

                if isinstance(item, DiscoveryError):
                    logger.warning("Discovery error, skipping item: %s", item.message)
                    continue

                statuses[item.title] = await self._process_page(command, replacer, item)

        if not yielded:
            logger.info("No pages found for %s", command.from_category)
            return CommandStatus(CommandOutcome.CATEGORY_EMPTY, command.id)
        if not statuses:
            return CommandStatus(CommandOutcome.SKIPPED, command.id)

        status = CommandStatus(CommandOutcome.DONE, command.id, statuses)
        logger.info(
            "Command %s finished: %d changed, %d skipped, %d error(s)",
            command.id,
            len(statuses) - status.count(OperationState.SKIPPED) - len(status.errors),
            status.count(OperationState.SKIPPED),
            len(status.errors),
        )
        return status

    async def _warn_missing_targets(self, command: Command) -> None:
        for target in command.destinations:
            try:
                if not await self.store.exists(target):
                    logger.warning("Target category %s does not exist", target)
            except QueueBotException as exc:
                logger.warning("Could not check whether %s exists: %s", target, exc.message)

    async def _process_page(self, command: Command, replacer: RecursiveDescender, page: Page) -> OperationStatus:
        try:
            return await self._rewrite_page(command, replacer, page.title)
        finally:
            self.store.release(page.title)

    async def _rewrite_page(self, command: Command, replacer: RecursiveDescender, title: str) -> OperationStatus:
        try:
            document = await self.store.fetch(title)
        except Exception as exc:
            return self._page_error(title, "fetch", exc)

        try:
            document, changed = await replacer.descend(document)
        except Exception as exc:
            return self._page_error(title, "rewrite", exc)

        if not changed:
            logger.debug("No reference to %s on %s", command.from_category, title)
            return OperationStatus(OperationState.SKIPPED)

        success = OperationStatus(_SUCCESS_STATES[command.command_type])
        if self.dry_run:
            logger.info("Dry run, would save %s", title)
            return success

        try:
            result = await self.store.save(title, document, command.summary())
        except Exception as exc:
            return self._page_error(title, "save", exc)

        record = OperationRecord(
            command_id=command.id,
            page_id=result.page_id,
            new_revision_id=result.new_revision_id,
            operation_type=OperationType.for_command(command.command_type),
        )
        try:
            await asyncio.to_thread(self.audit.store_operation, record)
        except AuditWriteError as exc:
            logger.error(
                "Saved %s (revision %s) but could not record it; reconcile manually",
                title, result.new_revision_id, extra={"page_id": result.page_id},
            )
            return OperationStatus.error(exc.message)

        return success

    @staticmethod
    def _page_error(title: str, stage: str, exc: Exception) -> OperationStatus:
        if isinstance(exc, QueueBotException):
            logger.warning("Could not %s %s: %s", stage, title, exc.message)
            return OperationStatus.error(exc.message)
        logger.exception("Unexpected error during %s of %s", stage, title)
        return OperationStatus.error(str(exc) or type(exc).__name__)
