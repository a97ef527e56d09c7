"""Category replacement engine."""

from typing import Sequence, Tuple

from ..wikitext.document import Document
from ..wikitext.transcoder import Transcoder
from .chain import RuleChain
from .recursion import DEFAULT_MAX_DEPTH, RecursiveDescender
from .rules import (
    CategoryTagRule,
    ImageRequestRule,
    RedirectCategoryGroupRule,
    RedirectCategoryListRule,
    RewriteRule,
    get_category_rules,
)


def build_replacer(
    from_category: str,
    to_categories: Sequence[str],
    transcoder: Transcoder,
    max_depth: int = DEFAULT_MAX_DEPTH,
) -> RecursiveDescender:
    return RecursiveDescender(RuleChain.for_categories(from_category, to_categories), transcoder, max_depth)


async def replace_category(
    document: Document,
    from_category: str,
    to_categories: Sequence[str],
    transcoder: Transcoder,
    max_depth: int = DEFAULT_MAX_DEPTH,
) -> Tuple[Document, bool]:
    """Rewrite every reference to ``from_category`` in ``document``.

    An empty ``to_categories`` removes the category. Returns the rewritten
    document and whether anything changed.
    """
    replacer = build_replacer(from_category, to_categories, transcoder, max_depth)
    return await replacer.descend(document)


__all__ = [
    "DEFAULT_MAX_DEPTH",
    "CategoryTagRule",
    "ImageRequestRule",
    "RecursiveDescender",
    "RedirectCategoryGroupRule",
    "RedirectCategoryListRule",
    "RewriteRule",
    "RuleChain",
    "build_replacer",
    "get_category_rules",
    "replace_category",
]
