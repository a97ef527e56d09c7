"""Command and audit record types."""

import os
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple

ARTICLE_NAMESPACE = 0
CATEGORY_NAMESPACE = 14

_CROCKFORD = "0123456789ABCDEFGHJKMNPQRSTVWXYZ"


def generate_id(timestamp_ms: Optional[int] = None) -> str:
    """Return a 26-character ULID (48-bit millisecond time + 80 random bits).

    IDs sort lexicographically by creation time.
    """
    if timestamp_ms is None:
        timestamp_ms = time.time_ns() // 1_000_000
    value = (timestamp_ms << 80) | int.from_bytes(os.urandom(10), "big")
    chars = []
    for _ in range(26):
        chars.append(_CROCKFORD[value & 0x1F])
        value >>= 5
    return "".join(reversed(chars))


class CommandType(str, Enum):
    REASSIGNMENT = "reassignment"
    DUPLICATE = "duplicate"
    REMOVE = "remove"


class OperationType(str, Enum):
    REASSIGNMENT = "reassignment"
    REMOVE = "remove"
    DUPLICATE = "duplicate"

    @classmethod
    def for_command(cls, command_type: CommandType) -> "OperationType":
        return cls(command_type.value)


class Scope(str, Enum):
    """Which namespaces a command walks."""

    ARTICLES = "articles"
    CATEGORIES = "categories"
    BOTH = "both"

    @property
    def namespaces(self) -> Tuple[int, ...]:
        if self is Scope.ARTICLES:
            return (ARTICLE_NAMESPACE,)
        if self is Scope.CATEGORIES:
            return (CATEGORY_NAMESPACE,)
        return (ARTICLE_NAMESPACE, CATEGORY_NAMESPACE)


@dataclass
class Command:
    """A parsed queue command; also the CommandRecord persisted before execution.

    For duplicates ``to_categories`` already ends with ``from_category`` so
    the source tag survives the rewrite. Removals have no targets.
    """

    command_type: CommandType
    from_category: str
    to_categories: List[str]
    discussion_link: str
    scope: Scope = Scope.BOTH
    id: str = field(default_factory=generate_id)

    @property
    def target_namespaces(self) -> Tuple[int, ...]:
        return self.scope.namespaces

    @property
    def destinations(self) -> List[str]:
        """Targets other than the source category."""
        return [c for c in self.to_categories if c != self.from_category]

    def summary(self) -> str:
        """Edit summary written on every page touched by this command."""
        discussion = f"([[{self.discussion_link}|議論場所]]) (ID: {self.id})"
        if self.command_type is CommandType.REMOVE:
            return f"BOT: [[:{self.from_category}]]を除去 {discussion}"
        targets = ",".join(f"[[:{c}]]" for c in self.to_categories)
        if self.command_type is CommandType.DUPLICATE:
            return f"BOT: [[:{self.from_category}]]を{targets}へ複製 {discussion}"
        return f"BOT: [[:{self.from_category}]]から{targets}へ変更 {discussion}"


@dataclass
class OperationRecord:
    """One saved page edit under a command."""

    command_id: str
    page_id: int
    new_revision_id: Optional[int]
    operation_type: OperationType
    id: str = field(default_factory=generate_id)
