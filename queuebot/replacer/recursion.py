"""Recursive descent into template parameters.

Category tags and templates are often written inside another template's
parameter (infoboxes, navboxes, ``{{Pathnav}}`` wrappers...). The descender
runs the rule chain on the top-level document, then parses every parameter
value of every template as a nested document and descends into it. Values
whose subtree changed are serialized back into the owning template.
"""

import asyncio
import logging
from typing import Optional, Tuple

from ..wikitext.document import Document, Template
from ..wikitext.transcoder import Transcoder
from .chain import RuleChain

logger = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 16


class RecursiveDescender:
    """Apply a RuleChain to a document and every template parameter inside it."""

    def __init__(self, chain: RuleChain, transcoder: Transcoder, max_depth: int = DEFAULT_MAX_DEPTH):
        self.chain = chain
        self.transcoder = transcoder
        self.max_depth = max_depth

    async def descend(self, document: Document, depth: int = 0) -> Tuple[Document, bool]:
        document, changed = self.chain.apply(document)

        if depth >= self.max_depth:
            logger.warning("Maximum template nesting depth %d reached, not descending further", depth)
            return document, changed

        for template in document.templates():
            if await self._descend_template(template, depth):
                changed = True

        return document, changed

    async def _descend_template(self, template: Template, depth: int) -> bool:
        if not template.params:
            return False

        keys = list(template.params)
        results = await asyncio.gather(
            *(self._rewrite_value(template.params[key], depth) for key in keys)
        )

        if all(result is None for result in results):
            return False

        template.set_params({
            key: template.params[key] if result is None else result
            for key, result in zip(keys, results)
        })
        return True

    async def _rewrite_value(self, value: str, depth: int) -> Optional[str]:
        """Rewritten value of one parameter, or None when it is left alone."""
        try:
            nested = await self.transcoder.parse(value)
        except Exception as exc:
            logger.warning("Could not parse template parameter, leaving it untouched: %s", exc)
            return None

        nested, changed = await self.descend(nested, depth + 1)
        if not changed:
            return None

        try:
            return await self.transcoder.serialize(nested)
        except Exception as exc:
            logger.warning("Could not serialize template parameter, leaving it untouched: %s", exc)
            return None
