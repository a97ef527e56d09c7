"""Category rewrite rules.

Each rule recognizes one syntactic shape that can attach a page to a category
and rewrites references to ``from_category`` into ``to_categories``:

    CategoryTagRule            [[Category:Name]]
    RedirectCategoryListRule   {{リダイレクトの所属カテゴリ|Category:A|Category:B}}
    RedirectCategoryGroupRule  {{リダイレクトの所属カテゴリ|redirect1=X|1-1=A|1-2=B}}
    ImageRequestRule           {{画像提供依頼|cat=A|cat2=B}}

``apply`` mutates the document in place and returns it when something
changed, or returns ``None`` (leaving the document untouched) when the rule
had nothing to do. An empty ``to_categories`` means removal.
"""

import re
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Sequence

from ..wikitext.document import (
    CategoryTag,
    Document,
    Node,
    Template,
    Text,
    strip_category_prefix,
)

REDIRECT_CATEGORY_TEMPLATE = "Template:リダイレクトの所属カテゴリ"
REDIRECT_CATEGORY_FLAGS = ("collapse", "header")
REDIRECT_GROUP_MAX = 10

IMAGE_REQUEST_TEMPLATES = (
    "Template:画像提供依頼",
    "Template:画像募集中",
    "Template:画像改訂依頼",
)
IMAGE_REQUEST_SUFFIX = "の画像提供依頼"

_CAT_KEY_RE = re.compile(r"^cat(\d*)$")


def splice(values: Sequence[str], index: int, replacements: Sequence[str]) -> List[str]:
    """Replace ``values[index]`` with ``replacements``.

    Replacements already present in the list (or repeated) are dropped, so
    the result never holds the same entry twice.
    """
    remaining = list(values[:index]) + list(values[index + 1:])
    novel: List[str] = []
    for replacement in replacements:
        if replacement not in remaining and replacement not in novel:
            novel.append(replacement)
    return remaining[:index] + novel + remaining[index:]


class RewriteRule(ABC):
    """One category-reference shape."""

    def __init__(self, from_category: str, to_categories: Sequence[str]):
        self.from_category = from_category
        self.to_categories = list(to_categories)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.from_category!r}, {self.to_categories!r})"

    @abstractmethod
    def apply(self, document: Document) -> Optional[Document]:
        """Rewrite ``document`` in place; ``None`` means unchanged."""


class CategoryTagRule(RewriteRule):
    """Rewrite a direct ``[[Category:...]]`` tag.

    Targets that are already tagged elsewhere on the page are not added a
    second time. A target equal to the source category keeps the original
    tag, sort key included.
    """

    def apply(self, document: Document) -> Optional[Document]:
        tags = document.categories()
        matched = next((tag for tag in tags if tag.target == self.from_category), None)
        if matched is None:
            return None

        if not self.to_categories:
            document.detach(matched)
            return document

        existing = {tag.target for tag in tags if tag is not matched}
        targets: List[str] = []
        for target in self.to_categories:
            if target not in existing and target not in targets:
                targets.append(target)

        if targets == [self.from_category]:
            return None

        replacements: List[Node] = []
        for target in targets:
            if replacements:
                replacements.append(Text("\n"))
            replacements.append(matched if target == self.from_category else CategoryTag(target))

        document.replace(matched, replacements)
        return document


def _redirect_category_templates(document: Document) -> List[Template]:
    return [t for t in document.templates() if t.name == REDIRECT_CATEGORY_TEMPLATE]


def _is_positional(template: Template) -> bool:
    keys = [key for key in template.params if key not in REDIRECT_CATEGORY_FLAGS]
    return bool(keys) and all(key.isdigit() for key in keys)


class RedirectCategoryListRule(RewriteRule):
    """``{{リダイレクトの所属カテゴリ}}`` written as a positional category list."""

    def apply(self, document: Document) -> Optional[Document]:
        changed = False
        bare_from = strip_category_prefix(self.from_category)

        for template in _redirect_category_templates(document):
            if not _is_positional(template):
                continue

            flags = {k: v for k, v in template.params.items() if k in REDIRECT_CATEGORY_FLAGS}
            values = [
                value for _, value in sorted(
                    (int(key), value) for key, value in template.params.items()
                    if key not in REDIRECT_CATEGORY_FLAGS
                )
            ]

            if self.from_category in values:
                index = values.index(self.from_category)
                targets = self.to_categories
            elif bare_from in values:
                index = values.index(bare_from)
                targets = [strip_category_prefix(t) for t in self.to_categories]
            else:
                continue

            updated = splice(values, index, targets)
            if updated == values:
                continue

            changed = True
            if not updated:
                document.detach(template)
                continue

            params = dict(flags)
            params.update((str(i + 1), value) for i, value in enumerate(updated))
            template.set_params(params)

        return document if changed else None


class RedirectCategoryGroupRule(RewriteRule):
    """``{{リダイレクトの所属カテゴリ}}`` written as ``redirectN`` / ``N-M`` groups.

    Group values are bare category names without the namespace prefix.
    """

    def apply(self, document: Document) -> Optional[Document]:
        changed = False
        bare_from = strip_category_prefix(self.from_category)
        bare_to = [strip_category_prefix(t) for t in self.to_categories]

        for template in _redirect_category_templates(document):
            if _is_positional(template):
                continue

            params = template.params
            group_keys = set()
            groups = []
            found = False

            for number in range(1, REDIRECT_GROUP_MAX + 1):
                redirect_key = f"redirect{number}"
                if redirect_key not in params:
                    continue
                prefix = f"{number}-"
                members = sorted(
                    (int(key[len(prefix):]), key, value) for key, value in params.items()
                    if key.startswith(prefix) and key[len(prefix):].isdigit()
                )
                group_keys.add(redirect_key)
                group_keys.update(key for _, key, _ in members)

                values = [value for _, _, value in members]
                if bare_from in values:
                    found = True
                    updated = splice(values, values.index(bare_from), bare_to)
                    groups.append((redirect_key, number, updated, None))
                else:
                    groups.append((redirect_key, number, values, members))

            if not found:
                continue

            result: Dict[str, str] = {k: v for k, v in params.items() if k not in group_keys}
            kept_groups = 0
            for redirect_key, number, values, members in groups:
                if not values:
                    continue
                kept_groups += 1
                result[redirect_key] = params[redirect_key]
                if members is not None:
                    result.update((key, value) for _, key, value in members)
                else:
                    result.update((f"{number}-{i + 1}", value) for i, value in enumerate(values))

            if not kept_groups:
                document.detach(template)
                changed = True
                continue

            if list(result.items()) != list(params.items()):
                template.set_params(result)
                changed = True

        return document if changed else None


def _cat_key_order(key: str) -> int:
    digits = _CAT_KEY_RE.match(key).group(1)
    return int(digits) if digits else 1


class ImageRequestRule(RewriteRule):
    """``cat=`` parameters of the image-request templates.

    These templates take the category stem and append "の画像提供依頼"
    themselves, so the rule only applies when every operand is an
    image-request category. Otherwise it is inert.
    """

    def __init__(self, from_category: str, to_categories: Sequence[str]):
        super().__init__(from_category, to_categories)
        self.active = from_category.endswith(IMAGE_REQUEST_SUFFIX) and all(
            t.endswith(IMAGE_REQUEST_SUFFIX) for t in to_categories
        )
        self.from_stem = self._stem(from_category)
        self.to_stems = [self._stem(t) for t in to_categories]

    @staticmethod
    def _stem(category: str) -> str:
        stem = strip_category_prefix(category)
        if stem.endswith(IMAGE_REQUEST_SUFFIX):
            stem = stem[:-len(IMAGE_REQUEST_SUFFIX)]
        return stem

    def apply(self, document: Document) -> Optional[Document]:
        if not self.active:
            return None

        changed = False
        for template in document.templates():
            if template.name not in IMAGE_REQUEST_TEMPLATES:
                continue

            cat_keys = sorted((k for k in template.params if _CAT_KEY_RE.match(k)), key=_cat_key_order)
            values = [template.params[k] for k in cat_keys]
            if self.from_stem not in values:
                continue

            updated = splice(values, values.index(self.from_stem), self.to_stems)
            if updated == values:
                continue

            changed = True
            if not updated:
                document.detach(template)
                continue

            params = {k: v for k, v in template.params.items() if not _CAT_KEY_RE.match(k)}
            for i, value in enumerate(updated):
                params["cat" if i == 0 else f"cat{i + 1}"] = value
            template.set_params(params)

        return document if changed else None


def get_category_rules(from_category: str, to_categories: Sequence[str]) -> List[RewriteRule]:
    """The rule set applied for one reassignment, duplication or removal."""
    return [
        CategoryTagRule(from_category, to_categories),
        RedirectCategoryListRule(from_category, to_categories),
        RedirectCategoryGroupRule(from_category, to_categories),
        ImageRequestRule(from_category, to_categories),
    ]
