"""Generic markup element tree.

HTML (either a fragment or a full document) is tokenized with
:mod:`lxml.html` and copied into a small tree of :class:`MarkupText` and
:class:`MarkupElement` nodes.  The normalizer only ever sees this tree, so it
does not depend on lxml's element API.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field

import lxml.html
from lxml import etree

logger = logging.getLogger(__name__)

# Elements whose content never contributes text to the document.
_DROPPED_TAGS = frozenset({"script", "style", "meta", "link", "head", "title"})

_FULL_DOCUMENT_RE = re.compile(r"^\s*<(?:html|!doctype)", re.IGNORECASE)


@dataclass
class MarkupText:
    """A text leaf."""
    content: str


@dataclass
class MarkupElement:
    """An element with a lower-cased tag and lower-cased attribute names."""
    tag: str
    attributes: dict[str, str] = field(default_factory=dict)
    children: list[MarkupNode] = field(default_factory=list)

    def get(self, name: str) -> str | None:
        return self.attributes.get(name)


MarkupNode = MarkupText | MarkupElement


def _clean_text(value: str) -> str:
    return value.replace("\xa0", " ")


def _convert_children(element) -> list[MarkupNode]:
    """Copy the text, child elements and tails of an lxml *element*."""
    nodes: list[MarkupNode] = []
    if element.text:
        nodes.append(MarkupText(_clean_text(element.text)))

    for child in element:
        # Comments and processing instructions have a non-string tag.
        if isinstance(child.tag, str):
            tag = etree.QName(child.tag).localname.lower()
            if tag not in _DROPPED_TAGS:
                nodes.append(
                    MarkupElement(
                        tag=tag,
                        attributes={
                            str(k).lower(): str(v) for k, v in child.attrib.items()
                        },
                        children=_convert_children(child),
                    )
                )
        if child.tail:
            nodes.append(MarkupText(_clean_text(child.tail)))

    return nodes


def parse_html(html: str) -> list[MarkupNode]:
    """Parse *html* into a list of top-level markup nodes.

    Full documents contribute the children of their ``body``.  Returns an
    empty list for blank input, for a document without a body and for
    markup the parser reduces to nothing.
    """
    if not html or not html.strip():
        return []

    try:
        if _FULL_DOCUMENT_RE.match(html):
            body = lxml.html.document_fromstring(html).find("body")
            if body is None:
                logger.debug("HTML document has no body")
                return []
            root = body
        else:
            root = lxml.html.fragment_fromstring(html, create_parent="root")
    except etree.ParserError as exc:
        logger.debug("HTML parsed to an empty document: %s", exc)
        return []

    nodes = _convert_children(root)
    logger.debug("Parsed HTML into %d top-level node(s)", len(nodes))
    return nodes


def element(tag: str, *children: MarkupNode | str, **attributes: str) -> MarkupElement:
    """Build a :class:`MarkupElement`; plain strings become text leaves.

    Convenient for callers that assemble markup trees directly instead of
    parsing HTML.
    """
    return MarkupElement(
        tag=tag.lower(),
        attributes={k.lower(): v for k, v in attributes.items()},
        children=[MarkupText(c) if isinstance(c, str) else c for c in children],
    )
