"""Audit store: append-only record of commands and the page edits they made.

Every insert is retried with exponential backoff and random jitter. When all
attempts fail the last error is raised as ``AuditWriteError`` and the caller
decides what that means for the page being processed.
"""

import logging
import random
import time
from typing import Callable, List, Sequence, TypeVar

import sqlalchemy.exc
from sqlalchemy.orm import Session, sessionmaker

from ..commands.types import Command, OperationRecord
from ..exceptions import AuditWriteError
from ..models.command import CommandFromCategory, CommandRow, CommandTargetNamespace, CommandToCategory
from ..models.operation import OperationRow

logger = logging.getLogger(__name__)

T = TypeVar("T")


class AuditStore:
    """Writes command and operation rows through a session factory."""

    def __init__(self, session_factory: sessionmaker, max_attempts: int = 5, base_delay: float = 0.05):
        self.session_factory = session_factory
        self.max_attempts = max(1, max_attempts)
        self.base_delay = base_delay

    def store_command(self, command: Command) -> None:
        """Insert the command row with its namespace and category rows in one transaction."""

        def write(db: Session) -> None:
            # A retried commit may already have landed.
            if db.get(CommandRow, command.id) is not None:
                return
            row = CommandRow(
                id=command.id,
                command_type=command.command_type.value,
                discussion_link=command.discussion_link,
            )
            row.target_namespaces = [
                CommandTargetNamespace(namespace=ns) for ns in command.target_namespaces
            ]
            row.from_categories = [CommandFromCategory(category=command.from_category)]
            row.to_categories = [
                CommandToCategory(category=category, position=position)
                for position, category in enumerate(command.to_categories)
            ]
            db.add(row)

        self._with_retry(f"command {command.id}", write)
        logger.info("Stored command %s (%s)", command.id, command.command_type.value)

    def store_operation(self, record: OperationRecord) -> None:
        """Insert one operation row."""

        def write(db: Session) -> None:
            if db.get(OperationRow, record.id) is not None:
                return
            db.add(OperationRow(
                id=record.id,
                command_id=record.command_id,
                page_id=record.page_id,
                new_revision_id=record.new_revision_id,
                operation_type=record.operation_type.value,
            ))

        self._with_retry(f"operation {record.id}", write)
        logger.debug("Stored operation %s for page %s", record.id, record.page_id)

    def get_operations(self, command_ids: Sequence[str]) -> List[OperationRow]:
        """Operation rows of the given commands, oldest first."""
        db = self.session_factory()
        try:
            rows = (
                db.query(OperationRow)
                .filter(OperationRow.command_id.in_(list(command_ids)))
                .order_by(OperationRow.id.asc())
                .all()
            )
            db.expunge_all()
            return rows
        finally:
            db.close()

    def _backoff(self, attempt: int) -> float:
        return self.base_delay * (2 ** attempt) + random.uniform(0, self.base_delay)

    def _with_retry(self, what: str, write: Callable[[Session], None]) -> None:
        last_error = None
        for attempt in range(self.max_attempts):
            db = self.session_factory()
            try:
                write(db)
                db.commit()
                return
            except sqlalchemy.exc.SQLAlchemyError as exc:
                db.rollback()
                last_error = exc
                if attempt < self.max_attempts - 1:
                    wait = self._backoff(attempt)
                    logger.warning(
                        "Audit write for %s failed (attempt %d/%d), retrying in %.2fs: %s",
                        what, attempt + 1, self.max_attempts, wait, exc,
                    )
                    time.sleep(wait)
            finally:
                db.close()

        logger.error("Audit write for %s failed after %d attempts", what, self.max_attempts)
        raise AuditWriteError(
            f"Audit write for {what} failed after {self.max_attempts} attempts",
            attempts=self.max_attempts,
            original_error=last_error,
        )
