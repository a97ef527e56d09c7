"""Wikitext <-> Document transcoding.

``WikitextTranscoder`` is the transcoder the bot runs with. It tokenizes
wikitext with mwparserfromhell and flattens containers (HTML and extension
tags, wikitables, headings, file captions) into the node list, so a category
tag or template written inside one is a node of the document like any other.
Template parameters are the exception: they stay plain strings on the
Template node and are transcoded again on demand by the recursive replacer.
"""

import logging
from typing import Iterator, List, Protocol

import mwparserfromhell
from mwparserfromhell.nodes import Heading as MwHeading
from mwparserfromhell.nodes import Tag as MwTag
from mwparserfromhell.nodes import Template as MwTemplate
from mwparserfromhell.nodes import Wikilink as MwWikilink

from ..exceptions import TranscoderError
from .document import (
    CategoryTag,
    Document,
    Node,
    Template,
    Text,
    WikiLink,
    is_file_title,
    normalize_title,
)

logger = logging.getLogger(__name__)


class Transcoder(Protocol):
    """Boundary contract used by the recursive replacer and the page store."""

    async def parse(self, text: str) -> Document: ...

    async def serialize(self, document: Document) -> str: ...


def _tag_tail(tag: MwTag) -> str:
    if tag.wiki_markup:
        return tag.closing_wiki_markup or ""
    return "</" + str(tag.closing_tag) + ">"


class WikitextTranscoder:
    """Parse wikitext into a Document and render it back."""

    async def parse(self, text: str) -> Document:
        return self.parse_sync(text)

    async def serialize(self, document: Document) -> str:
        return self.serialize_sync(document)

    def parse_sync(self, text: str) -> Document:
        try:
            wikicode = mwparserfromhell.parse(text)
        except Exception as exc:
            raise TranscoderError("could not parse wikitext", original_error=exc) from exc

        nodes: List[Node] = []
        for node in self._flatten(wikicode):
            # Merge runs of passthrough text so detach() sees whole lines.
            if isinstance(node, Text) and nodes and isinstance(nodes[-1], Text):
                nodes[-1].value += node.value
            else:
                nodes.append(node)
        return Document(nodes)

    def serialize_sync(self, document: Document) -> str:
        try:
            return document.to_wikitext()
        except Exception as exc:
            raise TranscoderError("could not serialize document", original_error=exc) from exc

    def _flatten(self, wikicode) -> Iterator[Node]:
        """Convert ``wikicode`` node by node, opening up containers in place.

        A container is emitted as its opening markup, its converted contents
        and its closing markup, which concatenate back to the original source.
        Tags whose contents are not wikitext (``<nowiki>``, ``<pre>``,
        ``<math>``...) arrive from mwparserfromhell holding only text, so
        nothing inside them becomes a rewritable node.
        """
        for mw_node in wikicode.nodes:
            if isinstance(mw_node, MwTag) and not mw_node.self_closing and mw_node.contents:
                source = str(mw_node)
                body = str(mw_node.contents)
                tail = _tag_tail(mw_node)
                yield Text(source[:len(source) - len(body) - len(tail)])
                yield from self._flatten(mw_node.contents)
                yield Text(tail)
            elif isinstance(mw_node, MwHeading):
                marks = "=" * mw_node.level
                yield Text(marks)
                yield from self._flatten(mw_node.title)
                yield Text(marks)
            elif (isinstance(mw_node, MwWikilink) and mw_node.text is not None
                    and is_file_title(str(mw_node.title))):
                # Only file captions can hold further links and tags.
                yield Text("[[" + str(mw_node.title) + "|")
                yield from self._flatten(mw_node.text)
                yield Text("]]")
            else:
                yield self._convert(mw_node)

    @staticmethod
    def _convert(mw_node) -> Node:
        source = str(mw_node)

        if isinstance(mw_node, MwWikilink):
            written = str(mw_node.title).strip()
            label = str(mw_node.text) if mw_node.text is not None else None
            target = normalize_title(written)
            # [[:Category:Foo]] is a link to the category page, not a tag.
            if not written.startswith(":") and target.startswith("Category:"):
                return CategoryTag(target=target, sort_key=label, source=source)
            return WikiLink(target=target, label=label, source=source)

        if isinstance(mw_node, MwTemplate):
            params = {}
            for param in mw_node.params:
                params[str(param.name).strip()] = str(param.value).strip()
            return Template(title=str(mw_node.name).strip(), params=params, source=source)

        return Text(source)
