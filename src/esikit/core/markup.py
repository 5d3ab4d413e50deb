"""Document model helpers built on BeautifulSoup.

ESI elements are recognised both in their namespaced form (``esi:include``)
and bare (``include``). Helpers in this module hide that duality from the
handlers and restrict tree mutation to three operations: attribute reads,
replacing an element with markup, and removing an element.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
import re
import warnings

from bs4 import BeautifulSoup, MarkupResemblesLocatorWarning, ParserRejectedMarkup
from bs4.element import Tag

from .exceptions import MarkupParseError


ESI_NAMESPACE = "esi"
PARSER = "html.parser"

_COMMENT_BLOCK = re.compile(r"<!--esi(?=\s|-->)\s*(.*?)\s*-->", re.DOTALL)


def normalize_comment_blocks(markup: str) -> str:
    """Unwrap ``<!--esi ... -->`` regions so their content becomes live markup."""
    return _COMMENT_BLOCK.sub(lambda match: match.group(1), markup)


def ensure_text(markup: str | bytes) -> str:
    """Decode UTF-8 input, rejecting anything else."""
    if isinstance(markup, str):
        return markup
    if isinstance(markup, bytes):
        try:
            return markup.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise MarkupParseError("failed to parse HTML: input is not valid UTF-8") from exc
    kind = type(markup).__name__
    raise MarkupParseError(f"failed to parse HTML: unsupported input type {kind}")


def parse_markup(markup: str | bytes) -> BeautifulSoup:
    """Build a document tree, rejecting markup the parser cannot handle.

    Documents and replacement fragments are parsed with the same built-in
    ``html.parser`` backend.
    """
    markup = ensure_text(markup)
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", MarkupResemblesLocatorWarning)
        try:
            return BeautifulSoup(markup, PARSER)
        except ParserRejectedMarkup as exc:
            raise MarkupParseError(f"failed to parse HTML: {exc}") from exc


def element_names(*kinds: str) -> frozenset[str]:
    """Return the tag names matching ESI element kinds in both spellings."""
    names: set[str] = set()
    for kind in kinds:
        names.add(kind)
        names.add(f"{ESI_NAMESPACE}:{kind}")
    return frozenset(names)


def element_kind(node: Tag) -> str | None:
    """Return the ESI kind of a tag, stripping the namespace prefix."""
    name = getattr(node, "name", None)
    if not name:
        return None
    prefix = f"{ESI_NAMESPACE}:"
    return name[len(prefix) :] if name.startswith(prefix) else name


def find_elements(root: Tag, kinds: Iterable[str], *, recursive: bool = True) -> list[Tag]:
    """Return the elements of the given kinds in document order."""
    names = element_names(*kinds)
    return list(root.find_all(lambda tag: tag.name in names, recursive=recursive))


def first_child(element: Tag, kind: str) -> Tag | None:
    """Return the first direct child of the given kind."""
    matches = find_elements(element, (kind,), recursive=False)
    return matches[0] if matches else None


def iter_ancestors(node: Tag) -> Iterator[Tag]:
    parent = node.parent
    while parent is not None:
        yield parent
        parent = parent.parent


def is_attached(node: Tag, root: Tag) -> bool:
    """Return True while the node still hangs below ``root``."""
    return any(ancestor is root for ancestor in iter_ancestors(node))


def attribute(element: Tag, name: str) -> str | None:
    """Return an attribute value as text, or ``None`` when absent."""
    value = element.get(name)
    if value is None:
        return None
    if isinstance(value, list):
        return " ".join(value)
    return str(value)


def inner_markup(element: Tag) -> str:
    """Serialise the children of an element."""
    return element.decode_contents()


def replace_with_markup(element: Tag, markup: str) -> None:
    """Substitute an element with the nodes parsed from ``markup``."""
    if markup:
        fragment = parse_markup(markup)
        for node in list(fragment.contents):
            element.insert_before(node.extract())
    element.extract()


def remove(element: Tag) -> None:
    """Detach an element and its subtree from the document."""
    element.extract()


def serialize(soup: BeautifulSoup) -> str:
    return soup.decode(formatter="minimal")


__all__ = [
    "ESI_NAMESPACE",
    "PARSER",
    "attribute",
    "element_kind",
    "element_names",
    "ensure_text",
    "find_elements",
    "first_child",
    "inner_markup",
    "is_attached",
    "iter_ancestors",
    "normalize_comment_blocks",
    "parse_markup",
    "remove",
    "replace_with_markup",
    "serialize",
]
