"""OOXML serializer for the canonical block model.

Renders a :class:`Document` plus :class:`Metadata` into the parts of a
word-processing package (document body, styles, numbering definitions,
content types, relationships, core and extended properties) and zips them
into a ``.docx`` container.

Element trees are built with :mod:`lxml.etree`, using python-docx's
namespace helpers for qualified names, so all text and attribute escaping is
handled by the XML library.

Usage::

    from docxbridge.serializer import DocxSerializer

    package = DocxSerializer().serialize(document, metadata)
    package.save("output/report.docx")
"""

from __future__ import annotations

import io
import logging
import re
import zipfile
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from docx.opc.constants import CONTENT_TYPE as CT
from docx.opc.constants import RELATIONSHIP_TYPE as RT
from docx.oxml.ns import qn
from lxml import etree

from docxbridge.config import ConverterConfig
from docxbridge.errors import EmptyCellError, EmptyContentError
from docxbridge.models import (
    MAX_LIST_LEVEL,
    Alignment,
    Block,
    Cell,
    Document,
    ListKind,
    Metadata,
    Paragraph,
    Style,
    Table,
    TextRun,
    round_half_up,
)
from docxbridge.tables import coalesce_continuations

logger = logging.getLogger(__name__)

# ── Namespaces ─────────────────────────────────────────────────────────

W_NS = "http://schemas.openxmlformats.org/wordprocessingml/2006/main"
CT_NS = "http://schemas.openxmlformats.org/package/2006/content-types"
PR_NS = "http://schemas.openxmlformats.org/package/2006/relationships"
CP_NS = "http://schemas.openxmlformats.org/package/2006/metadata/core-properties"
DC_NS = "http://purl.org/dc/elements/1.1/"
DCTERMS_NS = "http://purl.org/dc/terms/"
DCMITYPE_NS = "http://purl.org/dc/dcmitype/"
XSI_NS = "http://www.w3.org/2001/XMLSchema-instance"
EP_NS = "http://schemas.openxmlformats.org/officeDocument/2006/extended-properties"
VT_NS = "http://schemas.openxmlformats.org/officeDocument/2006/docPropsVTypes"

_XML_SPACE = "{http://www.w3.org/XML/1998/namespace}space"

# ── Part names ─────────────────────────────────────────────────────────

CONTENT_TYPES_PART = "[Content_Types].xml"
PACKAGE_RELS_PART = "_rels/.rels"
DOCUMENT_PART = "word/document.xml"
STYLES_PART = "word/styles.xml"
NUMBERING_PART = "word/numbering.xml"
DOCUMENT_RELS_PART = "word/_rels/document.xml.rels"
CORE_PART = "docProps/core.xml"
APP_PART = "docProps/app.xml"

# ── Constants ──────────────────────────────────────────────────────────

BULLET_NUM_ID = 1
NUMBER_NUM_ID = 2

_NUM_IDS = {ListKind.BULLET: BULLET_NUM_ID, ListKind.NUMBER: NUMBER_NUM_ID}

_JUSTIFICATION = {
    Alignment.LEFT: "left",
    Alignment.CENTER: "center",
    Alignment.RIGHT: "right",
    Alignment.JUSTIFY: "both",
}

_BORDER_SIDES = ("top", "left", "bottom", "right", "insideH", "insideV")

# Characters that XML 1.0 does not allow anywhere in a document.
_XML_INVALID_RE = re.compile("[\x00-\x08\x0b\x0c\x0e-\x1f\ufffe\uffff]")

_W3CDTF = "%Y-%m-%dT%H:%M:%SZ"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _to_xml(root: etree._Element) -> bytes:
    return etree.tostring(root, xml_declaration=True, encoding="UTF-8", standalone=True)


def _sub(parent: etree._Element, tag: str, **attrs: str) -> etree._Element:
    """Append a ``w:`` element; keyword names are ``w:`` attribute names."""
    element = etree.SubElement(parent, qn(f"w:{tag}"))
    for name, value in attrs.items():
        element.set(qn(f"w:{name}"), value)
    return element


def _clean_text(text: str) -> str:
    return _XML_INVALID_RE.sub("", text)


def needs_preserve(text: str) -> bool:
    """Return *True* when *text* would lose whitespace without ``xml:space``."""
    return bool(text) and (text != text.strip() or "  " in text)


def _toggle(parent: etree._Element, tag: str, value: Optional[bool]) -> None:
    if value is True:
        _sub(parent, tag)
    elif value is False:
        _sub(parent, tag, val="0")


# ---------------------------------------------------------------------------
# Package container
# ---------------------------------------------------------------------------


@dataclass
class DocxPackage:
    """The serialized parts of a word-processing package (UTF-8 XML bytes)."""

    content_types_xml: bytes
    package_rels_xml: bytes
    document_xml: bytes
    styles_xml: bytes
    numbering_xml: bytes
    document_rels_xml: bytes
    core_xml: bytes
    app_xml: bytes

    def parts(self) -> dict[str, bytes]:
        """Return ``{part name: bytes}`` with the content-type manifest first."""
        return {
            CONTENT_TYPES_PART: self.content_types_xml,
            PACKAGE_RELS_PART: self.package_rels_xml,
            DOCUMENT_PART: self.document_xml,
            STYLES_PART: self.styles_xml,
            NUMBERING_PART: self.numbering_xml,
            DOCUMENT_RELS_PART: self.document_rels_xml,
            CORE_PART: self.core_xml,
            APP_PART: self.app_xml,
        }

    def to_bytes(self) -> bytes:
        """Zip every part into a ``.docx`` byte string."""
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as archive:
            for name, data in self.parts().items():
                archive.writestr(name, data)
        return buffer.getvalue()

    def save(self, path: str | Path) -> Path:
        """Write the package to *path* and return the resolved location.

        A ``.docx`` suffix is appended when missing and parent directories
        are created as needed.
        """
        target = Path(path)
        if target.suffix.lower() != ".docx":
            target = target.with_name(target.name + ".docx")
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(self.to_bytes())
        logger.info("Package saved to %s", target)
        return target.resolve()


# ---------------------------------------------------------------------------
# Serializer
# ---------------------------------------------------------------------------


class DocxSerializer:
    """Render :class:`Document` instances into :class:`DocxPackage` parts.

    Parameters
    ----------
    config : ConverterConfig or None, optional
        Page, font, numbering, table and package settings.  Defaults to
        the bundled ``converter.yaml``.
    """

    def __init__(self, config: ConverterConfig | None = None) -> None:
        self._config = config or ConverterConfig()

    @property
    def config(self) -> ConverterConfig:
        return self._config

    # ── Public API ─────────────────────────────────────────────────

    def serialize(
        self,
        document: Document,
        metadata: Metadata | None = None,
        now: datetime | None = None,
    ) -> DocxPackage:
        """Build every package part for *document*.

        Parameters
        ----------
        document : Document
            The normalized block model.
        metadata : Metadata or None, optional
            Title, author, version and page count for the property parts.
        now : datetime or None, optional
            Creation/modification timestamp; defaults to the current UTC time.

        Raises
        ------
        EmptyContentError
            If *document* has no blocks.
        EmptyCellError
            If a real table cell carries no block.
        """
        if not document.blocks:
            raise EmptyContentError("Cannot serialize a document without content blocks")

        metadata = metadata or Metadata()
        package = DocxPackage(
            content_types_xml=self.content_types_xml(),
            package_rels_xml=self.package_rels_xml(),
            document_xml=self.document_xml(document),
            styles_xml=self.styles_xml(),
            numbering_xml=self.numbering_xml(),
            document_rels_xml=self.document_rels_xml(),
            core_xml=self.core_xml(metadata, now),
            app_xml=self.app_xml(metadata),
        )
        logger.info("Serialized %d block(s) into package parts", len(document.blocks))
        return package

    # ── Document body ──────────────────────────────────────────────

    def document_xml(self, document: Document) -> bytes:
        root = etree.Element(qn("w:document"), nsmap={"w": W_NS})
        body = _sub(root, "body")
        self._render_blocks(body, document.blocks)
        self._render_section(body)
        return _to_xml(root)

    def _render_blocks(self, parent: etree._Element, blocks: list[Block]) -> None:
        for block in blocks:
            match block:
                case Paragraph():
                    self._render_paragraph(parent, block)
                case Table():
                    self._render_table(parent, block)

    def _render_section(self, body: etree._Element) -> None:
        page = self._config.get_page_config()
        margins = page["margins"]
        sect_pr = _sub(body, "sectPr")
        _sub(sect_pr, "pgSz", w=str(page["width"]), h=str(page["height"]))
        _sub(
            sect_pr,
            "pgMar",
            top=str(margins["top"]),
            right=str(margins["right"]),
            bottom=str(margins["bottom"]),
            left=str(margins["left"]),
            header=str(margins["header"]),
            footer=str(margins["footer"]),
            gutter=str(margins["gutter"]),
        )

    # ── Paragraphs and runs ────────────────────────────────────────

    def _render_paragraph(self, parent: etree._Element, paragraph: Paragraph) -> None:
        p = _sub(parent, "p")

        if paragraph.list_info is not None or paragraph.align is not None:
            p_pr = _sub(p, "pPr")
            if paragraph.list_info is not None:
                level = min(max(paragraph.list_info.level, 0), MAX_LIST_LEVEL)
                num_pr = _sub(p_pr, "numPr")
                _sub(num_pr, "ilvl", val=str(level))
                _sub(num_pr, "numId", val=str(_NUM_IDS[paragraph.list_info.kind]))
            if paragraph.align is not None:
                _sub(p_pr, "jc", val=_JUSTIFICATION[paragraph.align])

        for run in paragraph.runs:
            self._render_run(p, run)

    def _render_run(self, parent: etree._Element, run: TextRun) -> None:
        r = _sub(parent, "r")
        if run.is_break:
            _sub(r, "br")
            return

        self._render_run_properties(r, run.style)
        text = _clean_text(run.text or "")
        t = _sub(r, "t")
        if needs_preserve(text):
            t.set(_XML_SPACE, "preserve")
        t.text = text

    def _render_run_properties(self, r: etree._Element, style: Style) -> None:
        """Write ``w:rPr`` in schema order; unset fields write nothing."""
        if style.is_plain():
            return

        r_pr = _sub(r, "rPr")
        if style.font:
            _sub(
                r_pr,
                "rFonts",
                ascii=style.font,
                hAnsi=style.font,
                eastAsia=style.font,
                cs=style.font,
            )
        _toggle(r_pr, "b", style.bold)
        _toggle(r_pr, "i", style.italic)

        half_points = style.half_points
        if half_points is not None:
            _sub(r_pr, "sz", val=str(half_points))
            _sub(r_pr, "szCs", val=str(half_points))

        if style.underline is True:
            _sub(r_pr, "u", val="single")
        elif style.underline is False:
            _sub(r_pr, "u", val="none")

        if len(r_pr) == 0:
            r.remove(r_pr)

    # ── Tables ─────────────────────────────────────────────────────

    def _render_table(self, parent: etree._Element, table: Table) -> None:
        tbl = _sub(parent, "tbl")

        tbl_pr = _sub(tbl, "tblPr")
        _sub(tbl_pr, "tblW", w="0", type="auto")
        if table.has_borders:
            size = str(self._config.get_table_config()["border_size"])
            borders = _sub(tbl_pr, "tblBorders")
            for side in _BORDER_SIDES:
                _sub(borders, side, val="single", sz=size, space="0", color="auto")
        if table.column_widths:
            _sub(tbl_pr, "tblLayout", type="fixed")

        grid = _sub(tbl, "tblGrid")
        if table.column_widths:
            for width in table.column_widths:
                _sub(grid, "gridCol", w=str(max(1, round_half_up(width))))
        else:
            for _ in range(table.column_count):
                _sub(grid, "gridCol")

        for row_index, row in enumerate(table.rows):
            for column_index, cell in enumerate(row.cells):
                if not cell.is_continuation and not cell.blocks:
                    raise EmptyCellError(
                        "Table cell has no content blocks",
                        {"row": row_index, "cell": column_index},
                    )

        for entries in coalesce_continuations(table.rows):
            tr = _sub(tbl, "tr")
            for cell, grid_span in entries:
                self._render_cell(tr, cell, grid_span)

    def _render_cell(self, tr: etree._Element, cell: Cell, grid_span: int) -> None:
        tc = _sub(tr, "tc")
        has_props = (
            cell.width_twips
            or grid_span > 1
            or cell.row_span is not None
        )
        if has_props:
            tc_pr = _sub(tc, "tcPr")
            if cell.width_twips:
                _sub(tc_pr, "tcW", w=str(max(1, round_half_up(cell.width_twips))), type="dxa")
            if grid_span > 1:
                _sub(tc_pr, "gridSpan", val=str(grid_span))
            if cell.row_span is not None and cell.row_span > 1:
                _sub(tc_pr, "vMerge", val="restart")
            elif cell.is_continuation:
                _sub(tc_pr, "vMerge")

        if cell.is_continuation:
            _sub(tc, "p")
            return

        self._render_blocks(tc, cell.blocks)
        # A cell must end with a paragraph.
        if isinstance(cell.blocks[-1], Table):
            _sub(tc, "p")

    # ── Styles and numbering ───────────────────────────────────────

    def styles_xml(self) -> bytes:
        fonts = self._config.get_font_config()
        language = self._config.get_language_config()

        root = etree.Element(qn("w:styles"), nsmap={"w": W_NS})
        r_pr = _sub(_sub(_sub(root, "docDefaults"), "rPrDefault"), "rPr")
        _sub(
            r_pr,
            "rFonts",
            ascii=fonts["ascii"],
            hAnsi=fonts["h_ansi"],
            eastAsia=fonts["east_asia"],
            cs=fonts["cs"],
        )
        _sub(r_pr, "lang", val=language["default"], eastAsia=language["east_asia"])

        normal = _sub(root, "style", type="paragraph", default="1", styleId="Normal")
        _sub(normal, "name", val="Normal")
        _sub(normal, "qFormat")
        return _to_xml(root)

    def numbering_xml(self) -> bytes:
        """Two abstract definitions: bullets (id 1) and decimals (id 2)."""
        numbering = self._config.get_numbering_config()
        levels = min(max(int(numbering["defined_levels"]), 1), MAX_LIST_LEVEL + 1)
        indent_step = int(numbering["indent_step"])
        hanging = str(numbering["hanging"])

        root = etree.Element(qn("w:numbering"), nsmap={"w": W_NS})
        for kind, num_id in _NUM_IDS.items():
            abstract = _sub(root, "abstractNum", abstractNumId=str(num_id))
            for ilvl in range(levels):
                lvl = _sub(abstract, "lvl", ilvl=str(ilvl))
                _sub(lvl, "start", val="1")
                if kind is ListKind.BULLET:
                    _sub(lvl, "numFmt", val="bullet")
                    _sub(lvl, "lvlText", val=str(numbering["bullet_text"]))
                else:
                    _sub(lvl, "numFmt", val="decimal")
                    _sub(lvl, "lvlText", val=f"%{ilvl + 1}.")
                _sub(lvl, "lvlJc", val="left")
                p_pr = _sub(lvl, "pPr")
                _sub(p_pr, "ind", left=str(indent_step * (ilvl + 1)), hanging=hanging)
                if kind is ListKind.BULLET:
                    font = str(numbering["bullet_font"])
                    _sub(_sub(lvl, "rPr"), "rFonts", ascii=font, hAnsi=font)

        for num_id in _NUM_IDS.values():
            num = _sub(root, "num", numId=str(num_id))
            _sub(num, "abstractNumId", val=str(num_id))
        return _to_xml(root)

    # ── Package plumbing ───────────────────────────────────────────

    @staticmethod
    def content_types_xml() -> bytes:
        root = etree.Element(f"{{{CT_NS}}}Types", nsmap={None: CT_NS})
        for extension, content_type in (("rels", CT.OPC_RELATIONSHIPS), ("xml", CT.XML)):
            etree.SubElement(
                root, f"{{{CT_NS}}}Default", Extension=extension, ContentType=content_type
            )
        for part, content_type in (
            (DOCUMENT_PART, CT.WML_DOCUMENT_MAIN),
            (STYLES_PART, CT.WML_STYLES),
            (NUMBERING_PART, CT.WML_NUMBERING),
            (CORE_PART, CT.OPC_CORE_PROPERTIES),
            (APP_PART, CT.OFC_EXTENDED_PROPERTIES),
        ):
            etree.SubElement(
                root, f"{{{CT_NS}}}Override", PartName=f"/{part}", ContentType=content_type
            )
        return _to_xml(root)

    @staticmethod
    def _relationships(entries: list[tuple[str, str]]) -> bytes:
        root = etree.Element(f"{{{PR_NS}}}Relationships", nsmap={None: PR_NS})
        for index, (rel_type, target) in enumerate(entries, start=1):
            etree.SubElement(
                root,
                f"{{{PR_NS}}}Relationship",
                Id=f"rId{index}",
                Type=rel_type,
                Target=target,
            )
        return _to_xml(root)

    def package_rels_xml(self) -> bytes:
        return self._relationships(
            [
                (RT.OFFICE_DOCUMENT, DOCUMENT_PART),
                (RT.CORE_PROPERTIES, CORE_PART),
                (RT.EXTENDED_PROPERTIES, APP_PART),
            ]
        )

    def document_rels_xml(self) -> bytes:
        return self._relationships(
            [
                (RT.STYLES, "styles.xml"),
                (RT.NUMBERING, "numbering.xml"),
            ]
        )

    # ── Properties ─────────────────────────────────────────────────

    def core_xml(self, metadata: Metadata, now: datetime | None = None) -> bytes:
        """Core properties; absent or empty title/author/version are omitted."""
        package = self._config.get_package_config()
        timestamp = (now or datetime.now(timezone.utc)).astimezone(timezone.utc)
        stamp = timestamp.strftime(_W3CDTF)

        root = etree.Element(
            f"{{{CP_NS}}}coreProperties",
            nsmap={
                "cp": CP_NS,
                "dc": DC_NS,
                "dcterms": DCTERMS_NS,
                "dcmitype": DCMITYPE_NS,
                "xsi": XSI_NS,
            },
        )
        if metadata.title:
            etree.SubElement(root, f"{{{DC_NS}}}title").text = _clean_text(metadata.title)
        if metadata.author:
            etree.SubElement(root, f"{{{DC_NS}}}creator").text = _clean_text(metadata.author)
        etree.SubElement(root, f"{{{CP_NS}}}lastModifiedBy").text = str(
            package["last_modified_by"]
        )
        if metadata.version:
            etree.SubElement(root, f"{{{CP_NS}}}version").text = _clean_text(metadata.version)
        for name in ("created", "modified"):
            element = etree.SubElement(root, f"{{{DCTERMS_NS}}}{name}")
            element.set(f"{{{XSI_NS}}}type", "dcterms:W3CDTF")
            element.text = stamp
        return _to_xml(root)

    def app_xml(self, metadata: Metadata) -> bytes:
        package = self._config.get_package_config()
        root = etree.Element(f"{{{EP_NS}}}Properties", nsmap={None: EP_NS, "vt": VT_NS})
        etree.SubElement(root, f"{{{EP_NS}}}Application").text = str(package["application"])
        if metadata.pages is not None and metadata.pages > 0:
            etree.SubElement(root, f"{{{EP_NS}}}Pages").text = str(metadata.pages)
        return _to_xml(root)
