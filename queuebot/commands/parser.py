"""Queue heading parser.

A command is the heading of one queue-page section::

    == Bot: [[:Category:A]]を[[:Category:B]]と[[:Category:C]]へ ==
    == Bot: (記事) [[:Category:A]]を[[:Category:B]]に複製 ==
    == Bot: (カテゴリ) [[:Category:A]]を除去 ==

The section body must link to the discussion that approved the command.
"""

import logging
import re
from typing import List, Optional, Sequence

from ..exceptions import DiscussionLinkMissingError, InvalidCommandError
from ..wikitext.document import Document, Node, Text, WikiLink, is_category_title
from ..wikitext.transcoder import WikitextTranscoder
from .types import Command, CommandType, Scope

logger = logging.getLogger(__name__)

MAX_TARGETS = 5

_PREFIX_RE = re.compile(r"^Bot:\s*(?:\((記事|カテゴリ)\))?$")
_SCOPES = {None: Scope.BOTH, "記事": Scope.ARTICLES, "カテゴリ": Scope.CATEGORIES}
_SUFFIXES = {
    "へ": CommandType.REASSIGNMENT,
    "に複製": CommandType.DUPLICATE,
    "を除去": CommandType.REMOVE,
}


def is_command_heading(heading: str) -> bool:
    return heading.strip().startswith("Bot:")


def find_discussion_link(documents: Sequence[Document]) -> Optional[str]:
    """First link in the section that does not point at a category."""
    for document in documents:
        for link in document.links():
            if not is_category_title(link.target):
                return link.target
    return None


def _category_link(node: Node) -> Optional[str]:
    if isinstance(node, WikiLink) and is_category_title(node.target):
        return node.target
    return None


def _text(node: Node) -> Optional[str]:
    return node.value.strip() if isinstance(node, Text) else None


def _parse_from_to(nodes: List[Node]) -> Optional[tuple]:
    """``[[A]] を [[B]] (と [[C]])*`` -> (A, [B, C, ...])."""
    if len(nodes) < 3 or len(nodes) % 2 == 0:
        return None

    source = _category_link(nodes[0])
    if source is None or _text(nodes[1]) != "を":
        return None

    targets = []
    for index in range(2, len(nodes), 2):
        if index > 2 and _text(nodes[index - 1]) != "と":
            return None
        target = _category_link(nodes[index])
        if target is None:
            return None
        targets.append(target)

    return source, targets


def parse_command(heading: str, body: str = "", transcoder: Optional[WikitextTranscoder] = None) -> Command:
    """Parse one queue section into a Command.

    Raises:
        DiscussionLinkMissingError: the section links to no discussion.
        InvalidCommandError: the heading matches no command form.
    """
    transcoder = transcoder or WikitextTranscoder()
    heading = heading.strip()
    heading_doc = transcoder.parse_sync(heading)
    body_doc = transcoder.parse_sync(body)

    discussion_link = find_discussion_link([heading_doc, body_doc])
    if discussion_link is None:
        raise DiscussionLinkMissingError(heading=heading)

    nodes = [n for n in heading_doc.nodes if not (isinstance(n, Text) and not n.value.strip())]
    if len(nodes) < 3:
        raise InvalidCommandError(heading=heading)

    prefix, suffix = _text(nodes[0]), _text(nodes[-1])
    prefix_match = _PREFIX_RE.match(prefix) if prefix is not None else None
    if prefix_match is None or suffix not in _SUFFIXES:
        raise InvalidCommandError(heading=heading)

    scope = _SCOPES[prefix_match.group(1)]
    command_type = _SUFFIXES[suffix]
    middle = nodes[1:-1]

    if command_type is CommandType.REMOVE:
        source = _category_link(middle[0]) if len(middle) == 1 else None
        if source is None:
            raise InvalidCommandError(heading=heading)
        targets: List[str] = []
    else:
        parsed = _parse_from_to(middle)
        if parsed is None:
            raise InvalidCommandError(heading=heading)
        source, targets = parsed
        if not 1 <= len(targets) <= MAX_TARGETS:
            raise InvalidCommandError(heading=heading)
        if command_type is CommandType.DUPLICATE:
            targets.append(source)

    command = Command(
        command_type=command_type,
        from_category=source,
        to_categories=targets,
        discussion_link=discussion_link,
        scope=scope,
    )
    logger.debug("Parsed %s command %s: %s -> %s", command_type.value, command.id, source, targets)
    return command
