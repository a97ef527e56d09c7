"""In-memory wikitext document model.

A Document is an ordered list of nodes. Containers such as tags, tables
and headings are flattened into the list by the transcoder. Only the shapes
the category rewriter cares about get their own node type:

    Text         raw wikitext that is passed through untouched
    WikiLink     [[Target|label]]
    CategoryTag  [[Category:Name|sort key]]
    Template     {{Name|key=value|...}}

Every node parsed from source keeps that source. A node that has not been
modified serializes to exactly the text it came from, so a rewrite only
touches the constructs it changed.
"""

import copy
import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Union

CATEGORY_NAMESPACE = "Category"
TEMPLATE_NAMESPACE = "Template"

# Localized aliases accepted for the namespaces we normalize.
_CATEGORY_ALIASES = ("category", "カテゴリ")
_TEMPLATE_ALIASES = ("template", "テンプレート")
_FILE_ALIASES = ("file", "image", "ファイル", "画像")

_WHITESPACE_RE = re.compile(r"[\s_]+")


def _ucfirst(text: str) -> str:
    return text[:1].upper() + text[1:]


def _split_namespace(title: str) -> tuple[Optional[str], str]:
    if ":" not in title:
        return None, title
    prefix, rest = title.split(":", 1)
    return prefix.strip(), rest.strip()


def normalize_title(title: str) -> str:
    """Normalize a page title the way MediaWiki compares them.

    Underscores and runs of whitespace become single spaces, a leading
    colon is dropped, and the category namespace prefix is canonicalized.
    """
    title = _WHITESPACE_RE.sub(" ", title).strip().lstrip(":").strip()
    namespace, rest = _split_namespace(title)
    if namespace is not None and namespace.lower() in _CATEGORY_ALIASES:
        return f"{CATEGORY_NAMESPACE}:{_ucfirst(rest)}"
    return title


def is_category_title(title: str) -> bool:
    return normalize_title(title).startswith(f"{CATEGORY_NAMESPACE}:")


def is_file_title(title: str) -> bool:
    namespace, _ = _split_namespace(_WHITESPACE_RE.sub(" ", title).strip().lstrip(":"))
    return namespace is not None and namespace.lower() in _FILE_ALIASES


def strip_category_prefix(title: str) -> str:
    """``Category:Foo`` -> ``Foo``; titles without the prefix are returned as-is."""
    prefix = f"{CATEGORY_NAMESPACE}:"
    return title[len(prefix):] if title.startswith(prefix) else title


def normalize_template_name(name: str) -> str:
    """Resolve the written name of a template to its page title.

    ``{{リダイレクトの所属カテゴリ}}`` and ``{{Template:リダイレクトの所属カテゴリ}}``
    both refer to ``Template:リダイレクトの所属カテゴリ``. Parser functions and
    transclusions from other namespaces keep their written form.
    """
    name = _WHITESPACE_RE.sub(" ", name).strip()
    if name.startswith("#"):
        return name
    if name.startswith(":"):
        return normalize_title(name)
    namespace, rest = _split_namespace(name)
    if namespace is None:
        return f"{TEMPLATE_NAMESPACE}:{_ucfirst(name)}"
    if namespace.lower() in _TEMPLATE_ALIASES:
        return f"{TEMPLATE_NAMESPACE}:{_ucfirst(rest)}"
    return name


@dataclass(eq=False)
class Text:
    value: str

    def to_wikitext(self) -> str:
        return self.value


@dataclass(eq=False)
class WikiLink:
    target: str
    label: Optional[str] = None
    source: Optional[str] = None

    def to_wikitext(self) -> str:
        if self.source is not None:
            return self.source
        if self.label is None:
            return f"[[{self.target}]]"
        return f"[[{self.target}|{self.label}]]"


@dataclass(eq=False)
class CategoryTag:
    target: str
    sort_key: Optional[str] = None
    source: Optional[str] = None

    def to_wikitext(self) -> str:
        if self.source is not None:
            return self.source
        if self.sort_key is None:
            return f"[[{self.target}]]"
        return f"[[{self.target}|{self.sort_key}]]"


@dataclass(eq=False)
class Template:
    """A template transclusion.

    ``title`` is the name as written, ``params`` maps parameter keys to their
    trimmed values in source order. Implicit positional parameters use the
    keys ``"1"``, ``"2"``, ...
    """

    title: str
    params: Dict[str, str] = field(default_factory=dict)
    source: Optional[str] = None

    @property
    def name(self) -> str:
        return normalize_template_name(self.title)

    def set_params(self, params: Dict[str, str]) -> None:
        """Replace every parameter; the template is re-rendered on serialize."""
        self.params = dict(params)
        self.source = None

    def to_wikitext(self) -> str:
        if self.source is not None:
            return self.source
        parts = [self.title]
        next_positional = 1
        for key, value in self.params.items():
            if key == str(next_positional) and "=" not in value:
                parts.append(value)
                next_positional += 1
            else:
                parts.append(f"{key}={value}")
        return "{{" + "|".join(parts) + "}}"


Node = Union[Text, WikiLink, CategoryTag, Template]


class Document:
    """Ordered, mutable list of wikitext nodes."""

    def __init__(self, nodes: Optional[Iterable[Node]] = None):
        self.nodes: List[Node] = list(nodes or [])

    def __repr__(self) -> str:
        return f"Document({self.to_wikitext()!r})"

    # ----- queries ---------------------------------------------------------

    def categories(self) -> List[CategoryTag]:
        return [node for node in self.nodes if isinstance(node, CategoryTag)]

    def templates(self) -> List[Template]:
        return [node for node in self.nodes if isinstance(node, Template)]

    def links(self) -> List[WikiLink]:
        return [node for node in self.nodes if isinstance(node, WikiLink)]

    def index_of(self, node: Node) -> int:
        for index, candidate in enumerate(self.nodes):
            if candidate is node:
                return index
        raise ValueError("node is not part of this document")

    def plain_text(self) -> str:
        """Concatenated text nodes, with links reduced to their label or target."""
        chunks = []
        for node in self.nodes:
            if isinstance(node, Text):
                chunks.append(node.value)
            elif isinstance(node, WikiLink):
                chunks.append(node.label if node.label is not None else node.target)
        return "".join(chunks)

    # ----- mutation --------------------------------------------------------

    def replace(self, node: Node, replacements: List[Node]) -> None:
        """Put ``replacements`` where ``node`` was; an empty list detaches it."""
        if not replacements:
            self.detach(node)
            return
        index = self.index_of(node)
        self.nodes[index:index + 1] = replacements

    def detach(self, node: Node) -> None:
        """Remove ``node``, dropping the line break it leaves behind on an emptied line."""
        index = self.index_of(node)
        del self.nodes[index]

        at_line_start = index == 0 or (
            isinstance(self.nodes[index - 1], Text) and self.nodes[index - 1].value.endswith("\n")
        )
        if at_line_start and index < len(self.nodes):
            following = self.nodes[index]
            if isinstance(following, Text) and following.value.startswith("\n"):
                following.value = following.value[1:]
                if not following.value:
                    del self.nodes[index]

    def copy(self) -> "Document":
        return Document(copy.deepcopy(self.nodes))

    # ----- output ----------------------------------------------------------

    def to_wikitext(self) -> str:
        return "".join(node.to_wikitext() for node in self.nodes)
