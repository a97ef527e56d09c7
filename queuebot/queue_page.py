"""Queue page sections and the result messages the bot appends to them."""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional

import mwparserfromhell
from mwparserfromhell.nodes import Heading

from .services.command_service import CommandOutcome, CommandStatus, OperationState

ANSWERED_MARKER = "{{BOTREQ"

_RESULT_LABELS = {
    CommandOutcome.DONE: "完了",
    CommandOutcome.SKIPPED: "完了",
    CommandOutcome.CATEGORY_EMPTY: "不受理",
    CommandOutcome.EMERGENCY_STOPPED: "中断",
    CommandOutcome.ERROR: "失敗",
}


@dataclass
class Section:
    """One section as MediaWiki numbers it for ``section=`` edits.

    ``text`` runs from the heading line up to the next heading of the same
    or a higher level, subsections included.
    """

    id: int
    level: int
    heading: str
    text: str

    @property
    def body(self) -> str:
        return self.text.split("\n", 1)[1] if "\n" in self.text else ""

    @property
    def is_answered(self) -> bool:
        return ANSWERED_MARKER in self.body


def split_sections(text: str) -> List[Section]:
    """Sections of ``text``, numbered in the order MediaWiki numbers them.

    Only top-level headings count; a heading inside a comment, ``<nowiki>``
    or ``<pre>`` is not a section.
    """
    nodes = mwparserfromhell.parse(text).nodes
    headings = [(index, node) for index, node in enumerate(nodes) if isinstance(node, Heading)]

    sections = []
    for number, (start, heading) in enumerate(headings):
        end = len(nodes)
        for other_start, other in headings[number + 1:]:
            if other.level <= heading.level:
                end = other_start
                break
        sections.append(Section(
            id=number + 1,
            level=heading.level,
            heading=str(heading.title).strip(),
            text="".join(str(node) for node in nodes[start:end]),
        ))
    return sections


def signature(bot_name: str, now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    return f"--[[User:{bot_name}|{bot_name}]] {now.strftime('%Y年%m月%d日 %H:%M')} (UTC)"


def _message(status: CommandStatus) -> str:
    changed = sum(
        1 for s in status.statuses.values()
        if s.state in (OperationState.DONE, OperationState.DUPLICATED, OperationState.REMOVED)
    )
    if status.outcome is CommandOutcome.CATEGORY_EMPTY:
        return "カテゴリに所属するページが見つかりませんでした"
    if status.outcome is CommandOutcome.SKIPPED:
        return "変更が必要なページはありませんでした"
    if status.outcome is CommandOutcome.EMERGENCY_STOPPED:
        return f"緊急停止されました. {changed}件のページを編集済みです"
    if status.outcome is CommandOutcome.ERROR:
        return status.message or "実行中にエラーが発生しました"
    return f"{changed}件のページを編集しました"


def format_report(status: CommandStatus, bot_name: str, now: Optional[datetime] = None) -> str:
    """``{{BOTREQ|完了}}(ID: ...) - message.`` followed by per-page errors and a signature."""
    lines = [
        f"{{{{BOTREQ|{_RESULT_LABELS[status.outcome]}}}}}(ID: {status.command_id}) - "
        f"{_message(status).rstrip('.')}."
    ]
    lines.extend(f"# {title} - {reason}" for title, reason in status.errors)
    lines.append(signature(bot_name, now))
    return "\n".join(lines)


def format_rejection(message: str, bot_name: str, now: Optional[datetime] = None) -> str:
    return f"{{{{BOTREQ|不受理}}}} - {message.rstrip('.')}.\n{signature(bot_name, now)}"


def append_report(section: Section, report: str) -> str:
    """Section text with ``report`` appended on its own lines."""
    return f"{section.text.rstrip()}\n{report}\n"
