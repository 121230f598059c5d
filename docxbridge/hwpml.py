"""HWPML and generic XML text input.

An HWPML document keeps its summary under ``HWPML/HEAD/DOCSUMMARY`` and its
paragraphs under ``HWPML/BODY/SECTION/P``.  Any other XML document is read as
a flat sequence of non-blank text nodes.  The plain text produced here goes
through :func:`text_to_html` and then the markup normalizer.
"""

from __future__ import annotations

import html
import logging
from typing import Iterator, Optional

from lxml import etree

from docxbridge.errors import MalformedXmlError
from docxbridge.models import Metadata

logger = logging.getLogger(__name__)

HWPML_VERSION = "HWPML"
GENERIC_XML_VERSION = "HWPX"


def _local(element: etree._Element) -> str:
    return etree.QName(element).localname.upper()


def _children(element: Optional[etree._Element], name: str) -> list[etree._Element]:
    if element is None:
        return []
    return [
        child for child in element
        if isinstance(child.tag, str) and _local(child) == name
    ]


def _child(element: Optional[etree._Element], name: str) -> Optional[etree._Element]:
    found = _children(element, name)
    return found[0] if found else None


def _iter_text(element: etree._Element) -> Iterator[str]:
    """Yield element text and tails in document order, skipping comments."""
    if isinstance(element.tag, str) and element.text:
        yield element.text
    for child in element:
        yield from _iter_text(child)
        if child.tail:
            yield child.tail


def _element_text(element: Optional[etree._Element]) -> Optional[str]:
    if element is None:
        return None
    text = "".join(_iter_text(element)).strip()
    return text or None


def _parse_xml(xml: str | bytes) -> etree._Element:
    parser = etree.XMLParser(resolve_entities=False, no_network=True, huge_tree=False)
    data = xml.encode("utf-8") if isinstance(xml, str) else xml
    try:
        return etree.fromstring(data, parser=parser)
    except etree.XMLSyntaxError as exc:
        raise MalformedXmlError("Invalid XML document", {"cause": str(exc)}) from exc


def parse_hwpml(xml: str | bytes) -> tuple[str, Metadata]:
    """Extract plain text and metadata from an HWPML or generic XML document.

    HWPML yields one line per non-blank ``P`` plus title and author from the
    document summary.  Other XML yields every non-blank text node.

    Raises
    ------
    MalformedXmlError
        If *xml* is not well-formed.
    """
    root = _parse_xml(xml)

    if _local(root) != HWPML_VERSION:
        parts = [part.strip() for part in _iter_text(root)]
        text = "\n".join(part for part in parts if part)
        logger.info("Read %d text node(s) from generic XML", len(text.splitlines()))
        return text, Metadata(version=GENERIC_XML_VERSION)

    summary = _child(_child(root, "HEAD"), "DOCSUMMARY")
    metadata = Metadata(
        version=HWPML_VERSION,
        title=_element_text(_child(summary, "TITLE")),
        author=_element_text(_child(summary, "AUTHOR")),
    )

    lines: list[str] = []
    for section in _children(_child(root, "BODY"), "SECTION"):
        for paragraph in _children(section, "P"):
            line = _element_text(paragraph)
            if line:
                lines.append(line)

    logger.info("Read %d paragraph(s) from HWPML", len(lines))
    return "\n".join(lines), metadata


def text_to_html(text: str) -> str:
    """Wrap each non-blank line of *text* in an escaped ``<p>`` element."""
    return "".join(
        f"<p>{html.escape(line.strip(), quote=False)}</p>"
        for line in text.splitlines()
        if line.strip()
    )
