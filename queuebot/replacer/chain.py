"""Ordered composition of rewrite rules."""

import logging
from typing import List, Sequence, Tuple

from ..wikitext.document import Document
from .rules import RewriteRule, get_category_rules

logger = logging.getLogger(__name__)


class RuleChain:
    """Apply every rule in order, each seeing the previous rule's output.

    Returns the final document and whether any rule reported a change.
    """

    def __init__(self, rules: Sequence[RewriteRule]):
        self.rules: List[RewriteRule] = list(rules)

    @classmethod
    def for_categories(cls, from_category: str, to_categories: Sequence[str]) -> "RuleChain":
        return cls(get_category_rules(from_category, to_categories))

    def apply(self, document: Document) -> Tuple[Document, bool]:
        changed = False
        for rule in self.rules:
            result = rule.apply(document)
            if result is not None:
                logger.debug("Rule %r rewrote the document", rule)
                document = result
                changed = True
        return document, changed
