"""Test suite for docx-bridge output and metadata.

Tests cover property-set metadata, configuration, the OOXML serializer, the
conversion pipeline and the CLI, verifying packages by reopening them with
python-docx.
"""

from __future__ import annotations

import io
import struct
import sys
import zipfile
from datetime import datetime, timezone
from pathlib import Path

import pytest
from docx import Document as open_docx
from docx.oxml.ns import qn
from lxml import etree

from docxbridge.config import ConverterConfig
from docxbridge.errors import (
    EmptyCellError,
    EmptyContentError,
    MalformedPropertySetError,
    format_error,
)
from docxbridge.models import (
    Alignment,
    Cell,
    Document,
    ListInfo,
    ListKind,
    Metadata,
    Paragraph,
    Row,
    Style,
    Table,
    TextRun,
)
from docxbridge.propset import (
    PID_AUTHOR,
    PID_CODEPAGE,
    PID_LASTAUTHOR,
    PID_PAGECOUNT,
    PID_TITLE,
    PropertyType,
    decode_ansi,
    extract_container_metadata,
    extract_summary_info,
    parse_property_set,
)
from docxbridge.serializer import DocxSerializer
from docxbridge.tables import normalize_table_rows

FIXED_NOW = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)


# ── Property-set builders ───────────────────────────────────────────


def _property_set(properties: list[tuple[int, bytes]]) -> bytes:
    """Build a one-section property-set stream from ``(id, value)`` pairs."""
    header = struct.pack("<HHI16sI", 0xFFFE, 0, 0, b"\x00" * 16, 1)
    section_offset = len(header) + 20
    entry = struct.pack("<16sI", b"\x00" * 16, section_offset)

    table_size = 8 + 8 * len(properties)
    table = b""
    values = b""
    for prop_id, value in properties:
        table += struct.pack("<II", prop_id, table_size + len(values))
        values += value
    section = struct.pack("<II", table_size + len(values), len(properties)) + table + values
    return header + entry + section


def _lpwstr(text: str) -> bytes:
    return struct.pack("<II", PropertyType.VT_LPWSTR, len(text) + 1) + (text + "\x00").encode(
        "utf-16-le"
    )


def _lpstr(raw: bytes) -> bytes:
    return struct.pack("<II", PropertyType.VT_LPSTR, len(raw) + 1) + raw + b"\x00"


def _i2(value: int) -> bytes:
    return struct.pack("<IHH", PropertyType.VT_I2, value, 0)


def _i4(value: int) -> bytes:
    return struct.pack("<II", PropertyType.VT_I4, value)


def _xml(data: bytes) -> etree._Element:
    return etree.fromstring(data)


def _simple_doc(*blocks) -> Document:
    return Document(blocks=list(blocks) or [Paragraph(runs=[TextRun.of("x")])])


# ── Property-set tests ──────────────────────────────────────────────


class TestPropertySet:
    def test_lpwstr_title_round_trip(self):
        props = parse_property_set(_property_set([(PID_TITLE, _lpwstr("연간 보고서 2024"))]))
        assert props[PID_TITLE].type is PropertyType.VT_LPWSTR
        assert props[PID_TITLE].as_text() == "연간 보고서 2024"
        assert props[PID_TITLE].as_int() is None

    def test_integer_kinds(self):
        props = parse_property_set(
            _property_set([(PID_CODEPAGE, _i2(65001)), (PID_PAGECOUNT, _i4(12))])
        )
        assert props[PID_CODEPAGE].as_int() == 65001
        assert props[PID_PAGECOUNT].as_int() == 12
        assert props[PID_PAGECOUNT].as_text() is None

    def test_bad_marker(self):
        blob = bytearray(_property_set([]))
        blob[0:2] = b"\x00\x00"
        with pytest.raises(MalformedPropertySetError):
            parse_property_set(bytes(blob))

    def test_short_header(self):
        with pytest.raises(MalformedPropertySetError):
            parse_property_set(b"\xfe\xff" + b"\x00" * 10)

    def test_value_past_end_is_absent(self):
        blob = _property_set([(PID_TITLE, _lpwstr("Title"))])
        props = parse_property_set(blob[:-4])
        assert PID_TITLE not in props

    def test_section_past_end_is_skipped(self):
        blob = bytearray(_property_set([(PID_TITLE, _lpwstr("T"))]))
        struct.pack_into("<I", blob, 44, 10_000)
        assert parse_property_set(bytes(blob)) == {}

    def test_summary_info(self):
        summary = _property_set(
            [
                (PID_CODEPAGE, _i2(949)),
                (PID_TITLE, _lpstr("제목".encode("cp949"))),
                (PID_LASTAUTHOR, _lpstr(b"editor")),
            ]
        )
        doc_summary = _property_set(
            [(PID_AUTHOR, _lpwstr("ignored")), (PID_PAGECOUNT, _i4(7))]
        )
        metadata = extract_summary_info(summary, doc_summary)
        assert metadata.title == "제목"
        assert metadata.author == "editor"
        assert metadata.pages == 7
        assert metadata.version is None

    def test_summary_author_preferred_over_last_author(self):
        summary = _property_set(
            [(PID_LASTAUTHOR, _lpwstr("last")), (PID_AUTHOR, _lpwstr("first"))]
        )
        assert extract_summary_info(summary).author == "first"

    def test_document_summary_fallback(self):
        doc_summary = _property_set([(PID_TITLE, _lpwstr("Fallback"))])
        metadata = extract_summary_info(None, doc_summary)
        assert metadata.title == "Fallback"

    def test_malformed_streams_give_empty_metadata(self):
        assert extract_summary_info(b"garbage", b"\x00" * 40).is_empty()
        assert extract_summary_info(None, None).is_empty()

    def test_container_metadata_never_raises(self):
        assert extract_container_metadata(b"not a compound file").is_empty()

    def test_decode_ansi(self):
        raw = "한글".encode("cp949")
        assert decode_ansi(raw) == "한글"
        assert decode_ansi(raw, 949) == "한글"
        assert decode_ansi("añb".encode("utf-8") + b"\x00\x00") == "añb"
        assert decode_ansi("x".encode("utf-16-le"), 1200) == "x"
        assert decode_ansi(b"plain", 65001) == "plain"

    def test_decode_ansi_unknown_codepage(self):
        assert decode_ansi("가".encode("cp949"), 99999) == "가"


# ── Configuration tests ─────────────────────────────────────────────


class TestConfig:
    def test_load_default_config(self):
        config = ConverterConfig()
        page = config.get_page_config()
        assert page["width"] == 11906
        assert page["height"] == 16838
        assert page["margins"]["left"] == 1440
        assert config.get_font_config()["east_asia"] == "Malgun Gothic"
        assert config.get_numbering_config()["defined_levels"] == 2
        assert config.legacy_codepage == "cp949"

    def test_default_config_ships_inside_package(self):
        import docxbridge

        config = ConverterConfig()
        assert config.config_path.name == "converter.yaml"
        assert config.config_path.is_file()
        bundled = Path(docxbridge.__file__).resolve().parent / "converter.yaml"
        assert bundled.is_file()

    def test_overlay_deep_merge(self, tmp_path):
        overlay = tmp_path / "overlay.yaml"
        overlay.write_text("page:\n  margins:\n    top: 720\n", encoding="utf-8")
        config = ConverterConfig(overlay_path=overlay)
        margins = config.get_page_config()["margins"]
        assert margins["top"] == 720
        assert margins["left"] == 1440

    def test_overlay_not_mapping_is_skipped(self, tmp_path):
        overlay = tmp_path / "overlay.yaml"
        overlay.write_text("- a\n- b\n", encoding="utf-8")
        config = ConverterConfig(overlay_path=overlay)
        assert config.get_page_config()["width"] == 11906

    def test_missing_config(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            ConverterConfig(tmp_path / "missing.yaml")
        with pytest.raises(FileNotFoundError):
            ConverterConfig(overlay_path=tmp_path / "missing.yaml")

    def test_base_not_mapping(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("just a string\n", encoding="utf-8")
        with pytest.raises(ValueError):
            ConverterConfig(path)

    def test_getters_return_copies(self):
        config = ConverterConfig()
        config.get_page_config()["margins"]["top"] = 1
        assert config.get_page_config()["margins"]["top"] == 1440


# ── Error formatting tests ──────────────────────────────────────────


class TestErrors:
    def test_format_with_details(self):
        error = EmptyCellError("Table cell has no content blocks", {"row": 1, "cell": 0})
        assert format_error(error) == (
            '[EMPTY_CELL] Table cell has no content blocks {"cell": 0, "row": 1}'
        )

    def test_format_without_details(self):
        assert format_error(EmptyContentError("nothing")) == "[EMPTY_CONTENT] nothing"

    def test_conversion_errors_are_value_errors(self):
        assert isinstance(EmptyContentError("x"), ValueError)


# ── Serializer tests ────────────────────────────────────────────────


class TestSerializer:
    def setup_method(self):
        self.serializer = DocxSerializer()

    def _body(self, *blocks) -> etree._Element:
        return _xml(self.serializer.document_xml(_simple_doc(*blocks))).find(qn("w:body"))

    def test_empty_document_raises(self):
        with pytest.raises(EmptyContentError):
            self.serializer.serialize(Document())

    def test_run_properties_in_schema_order(self):
        style = Style(bold=True, italic=False, underline=True, font="Batang", size=12)
        body = self._body(Paragraph(runs=[TextRun.of("x", style)]))
        r_pr = body.find(f"{qn('w:p')}/{qn('w:r')}/{qn('w:rPr')}")
        assert [etree.QName(c).localname for c in r_pr] == ["rFonts", "b", "i", "sz", "szCs", "u"]
        fonts = r_pr.find(qn("w:rFonts"))
        assert {fonts.get(qn(f"w:{slot}")) for slot in ("ascii", "hAnsi", "eastAsia", "cs")} == {
            "Batang"
        }
        assert r_pr.find(qn("w:b")).get(qn("w:val")) is None
        assert r_pr.find(qn("w:i")).get(qn("w:val")) == "0"
        assert r_pr.find(qn("w:sz")).get(qn("w:val")) == "24"
        assert r_pr.find(qn("w:u")).get(qn("w:val")) == "single"

    def test_plain_run_has_no_properties(self):
        body = self._body(Paragraph(runs=[TextRun.of("x")]))
        assert body.find(f".//{qn('w:rPr')}") is None

    def test_underline_off(self):
        body = self._body(Paragraph(runs=[TextRun.of("x", Style(underline=False))]))
        assert body.find(f".//{qn('w:u')}").get(qn("w:val")) == "none"

    def test_whitespace_preservation(self):
        body = self._body(
            Paragraph(runs=[TextRun.of(" lead"), TextRun.of("a  b"), TextRun.of("plain")])
        )
        space = "{http://www.w3.org/XML/1998/namespace}space"
        texts = body.findall(f".//{qn('w:t')}")
        assert [t.get(space) for t in texts] == ["preserve", "preserve", None]
        assert texts[0].text == " lead"

    def test_text_is_escaped(self):
        data = self.serializer.document_xml(
            _simple_doc(Paragraph(runs=[TextRun.of("a<b & c>d")]))
        )
        assert b"a&lt;b &amp; c&gt;d" in data

    def test_control_characters_are_removed(self):
        body = self._body(Paragraph(runs=[TextRun.of("a\x01b")]))
        assert body.find(f".//{qn('w:t')}").text == "ab"

    def test_break_run(self):
        body = self._body(Paragraph(runs=[TextRun.of("a"), TextRun.line_break(), TextRun.of("b")]))
        runs = body.findall(f"{qn('w:p')}/{qn('w:r')}")
        assert runs[1].find(qn("w:br")) is not None
        assert runs[1].find(qn("w:t")) is None

    def test_list_and_alignment(self):
        body = self._body(
            Paragraph(
                runs=[TextRun.of("item")],
                align=Alignment.JUSTIFY,
                list_info=ListInfo(ListKind.NUMBER, 1),
            ),
            Paragraph(runs=[TextRun.of("b")], list_info=ListInfo(ListKind.BULLET, 0)),
        )
        first, second = body.findall(qn("w:p"))
        p_pr = first.find(qn("w:pPr"))
        assert [etree.QName(c).localname for c in p_pr] == ["numPr", "jc"]
        assert p_pr.find(f"{qn('w:numPr')}/{qn('w:ilvl')}").get(qn("w:val")) == "1"
        assert p_pr.find(f"{qn('w:numPr')}/{qn('w:numId')}").get(qn("w:val")) == "2"
        assert p_pr.find(qn("w:jc")).get(qn("w:val")) == "both"
        assert second.find(f".//{qn('w:numId')}").get(qn("w:val")) == "1"

    def test_table_with_widths_and_borders(self):
        table = Table(
            rows=[Row(cells=[Cell(blocks=[Paragraph.empty()], width_twips=1000)] * 2)],
            column_widths=[1000, 2000],
            has_borders=True,
        )
        tbl = self._body(table).find(qn("w:tbl"))
        tbl_pr = tbl.find(qn("w:tblPr"))
        assert [etree.QName(c).localname for c in tbl_pr] == ["tblW", "tblBorders", "tblLayout"]
        assert len(tbl_pr.find(qn("w:tblBorders"))) == 6
        assert [c.get(qn("w:w")) for c in tbl.find(qn("w:tblGrid"))] == ["1000", "2000"]
        tc_w = tbl.find(f".//{qn('w:tcW')}")
        assert tc_w.get(qn("w:w")) == "1000"
        assert tc_w.get(qn("w:type")) == "dxa"

    def test_table_without_widths(self):
        table = Table(
            rows=[
                Row(
                    cells=[
                        Cell(blocks=[Paragraph.empty()], col_span=2),
                        Cell(blocks=[Paragraph.empty()]),
                    ]
                )
            ]
        )
        tbl = self._body(table).find(qn("w:tbl"))
        tbl_pr = tbl.find(qn("w:tblPr"))
        assert [etree.QName(c).localname for c in tbl_pr] == ["tblW"]
        grid = tbl.find(qn("w:tblGrid"))
        assert len(grid) == 3
        assert all(c.get(qn("w:w")) is None for c in grid)
        assert tbl.find(f".//{qn('w:gridSpan')}").get(qn("w:val")) == "2"

    def test_vertical_merge(self):
        table = Table(
            rows=[
                Row(cells=[Cell(blocks=[Paragraph(runs=[TextRun.of("A")])], row_span=2)]),
                Row(cells=[Cell(blocks=[], row_span=0)]),
            ]
        )
        rows = self._body(table).findall(f"{qn('w:tbl')}/{qn('w:tr')}")
        start = rows[0].find(f".//{qn('w:vMerge')}")
        cont = rows[1].find(f".//{qn('w:vMerge')}")
        assert start.get(qn("w:val")) == "restart"
        assert cont.get(qn("w:val")) is None
        cont_paragraphs = rows[1].findall(f"{qn('w:tc')}/{qn('w:p')}")
        assert len(cont_paragraphs) == 1
        assert len(cont_paragraphs[0]) == 0

    def test_wide_vertical_merge_renders_one_continuation(self):
        rows = normalize_table_rows(
            [
                Row(cells=[Cell(blocks=[Paragraph(runs=[TextRun.of("A")])], col_span=2, row_span=2)]),
                Row(),
            ]
        )
        tbl = self._body(Table(rows=rows)).find(qn("w:tbl"))
        trs = tbl.findall(qn("w:tr"))
        continued = trs[1].findall(qn("w:tc"))
        assert len(continued) == 1
        tc_pr = continued[0].find(qn("w:tcPr"))
        assert [etree.QName(c).localname for c in tc_pr] == ["gridSpan", "vMerge"]
        assert tc_pr.find(qn("w:gridSpan")).get(qn("w:val")) == "2"

    def test_empty_cell_raises(self):
        table = Table(rows=[Row(cells=[Cell(blocks=[])])])
        with pytest.raises(EmptyCellError) as exc_info:
            self.serializer.serialize(_simple_doc(table))
        assert exc_info.value.details == {"row": 0, "cell": 0}

    def test_nested_table_cell_ends_with_paragraph(self):
        inner = Table(rows=[Row(cells=[Cell(blocks=[Paragraph.empty()])])])
        outer = Table(rows=[Row(cells=[Cell(blocks=[inner])])])
        tc = self._body(outer).find(f"{qn('w:tbl')}/{qn('w:tr')}/{qn('w:tc')}")
        assert [etree.QName(c).localname for c in tc] == ["tbl", "p"]

    def test_section_properties_from_config(self):
        sect_pr = self._body().find(qn("w:sectPr"))
        assert sect_pr.find(qn("w:pgSz")).get(qn("w:w")) == "11906"
        assert sect_pr.find(qn("w:pgMar")).get(qn("w:top")) == "1440"

    def test_numbering_levels(self):
        root = _xml(self.serializer.numbering_xml())
        abstracts = root.findall(qn("w:abstractNum"))
        assert [a.get(qn("w:abstractNumId")) for a in abstracts] == ["1", "2"]
        assert all(len(a.findall(qn("w:lvl"))) == 2 for a in abstracts)
        formats = [a.find(f"{qn('w:lvl')}/{qn('w:numFmt')}").get(qn("w:val")) for a in abstracts]
        assert formats == ["bullet", "decimal"]
        second_level = abstracts[1].findall(qn("w:lvl"))[1]
        assert second_level.find(qn("w:lvlText")).get(qn("w:val")) == "%2."
        assert second_level.find(f"{qn('w:pPr')}/{qn('w:ind')}").get(qn("w:left")) == "1440"
        assert [n.get(qn("w:numId")) for n in root.findall(qn("w:num"))] == ["1", "2"]

    def test_numbering_levels_from_config(self):
        config = ConverterConfig.from_mapping({"numbering": {"defined_levels": 3}})
        root = _xml(DocxSerializer(config).numbering_xml())
        assert all(len(a.findall(qn("w:lvl"))) == 3 for a in root.findall(qn("w:abstractNum")))

    def test_styles_defaults(self):
        root = _xml(self.serializer.styles_xml())
        fonts = root.find(f".//{qn('w:rFonts')}")
        assert fonts.get(qn("w:eastAsia")) == "Malgun Gothic"
        assert root.find(f".//{qn('w:lang')}").get(qn("w:eastAsia")) == "ko-KR"
        assert root.find(qn("w:style")).get(qn("w:styleId")) == "Normal"

    def test_core_properties(self):
        metadata = Metadata(version="5.0.0.0", title="T & C", author="Kim", pages=3)
        root = _xml(self.serializer.core_xml(metadata, FIXED_NOW))
        ns = {
            "dc": "http://purl.org/dc/elements/1.1/",
            "cp": "http://schemas.openxmlformats.org/package/2006/metadata/core-properties",
            "dcterms": "http://purl.org/dc/terms/",
        }
        assert root.findtext("dc:title", namespaces=ns) == "T & C"
        assert root.findtext("dc:creator", namespaces=ns) == "Kim"
        assert root.findtext("cp:version", namespaces=ns) == "5.0.0.0"
        assert root.findtext("cp:lastModifiedBy", namespaces=ns) == "docx-bridge"
        assert root.findtext("dcterms:created", namespaces=ns) == "2024-01-02T03:04:05Z"

    def test_absent_metadata_is_omitted(self):
        root = _xml(self.serializer.core_xml(Metadata(title=""), FIXED_NOW))
        assert root.find("{http://purl.org/dc/elements/1.1/}title") is None
        assert root.find("{http://purl.org/dc/elements/1.1/}creator") is None
        app = self.serializer.app_xml(Metadata(pages=0))
        assert b"Pages" not in app
        assert b"<Pages>4</Pages>" in self.serializer.app_xml(Metadata(pages=4))


# ── Package tests ───────────────────────────────────────────────────


class TestPackage:
    HTML = (
        "<p>Hello <b>World</b></p>"
        "<table><tr><td rowspan='2'>A</td><td>B</td></tr><tr><td>C</td></tr></table>"
        "<ul><li>Item</li></ul>"
    )

    def test_zip_layout(self):
        from docxbridge.pipeline import DocxConverter

        package = DocxConverter().convert_html(self.HTML, now=FIXED_NOW)
        with zipfile.ZipFile(io.BytesIO(package.to_bytes())) as archive:
            names = archive.namelist()
        assert names[0] == "[Content_Types].xml"
        assert set(names) == set(package.parts())
        assert "word/numbering.xml" in names

    def test_relationship_and_content_types(self):
        serializer = DocxSerializer()
        rels = _xml(serializer.package_rels_xml())
        types = [r.get("Type").rsplit("/", 1)[-1] for r in rels]
        assert types == ["officeDocument", "core-properties", "extended-properties"]
        doc_rels = _xml(serializer.document_rels_xml())
        assert [r.get("Target") for r in doc_rels] == ["styles.xml", "numbering.xml"]
        manifest = _xml(serializer.content_types_xml())
        overrides = {o.get("PartName"): o.get("ContentType") for o in manifest if o.get("PartName")}
        assert overrides["/word/document.xml"] == (
            "application/vnd.openxmlformats-officedocument.wordprocessingml.document.main+xml"
        )
        defaults = {d.get("Extension"): d.get("ContentType") for d in manifest if d.get("Extension")}
        assert defaults == {
            "rels": "application/vnd.openxmlformats-package.relationships+xml",
            "xml": "application/xml",
        }

    def test_reopen_with_python_docx(self):
        from docxbridge.pipeline import DocxConverter

        package = DocxConverter().convert_html(
            self.HTML, Metadata(title="Report", author="Lee"), now=FIXED_NOW
        )
        doc = open_docx(io.BytesIO(package.to_bytes()))
        assert [p.text for p in doc.paragraphs] == ["Hello World", "Item"]
        assert len(doc.tables) == 1
        assert doc.tables[0].cell(0, 0).text == "A"
        assert doc.tables[0].cell(0, 1).text == "B"
        assert doc.core_properties.title == "Report"
        assert doc.core_properties.author == "Lee"

    def test_save_appends_suffix(self, tmp_path):
        from docxbridge.pipeline import DocxConverter

        package = DocxConverter().convert_html("<p>x</p>", now=FIXED_NOW)
        saved = package.save(tmp_path / "nested" / "report")
        assert saved.name == "report.docx"
        assert saved.is_file()
        assert len(open_docx(str(saved)).paragraphs) == 1

    def test_convert_native_merges_metadata(self):
        from docxbridge.native import NativeChar, NativeDocument, NativeParagraph, NativeSection
        from docxbridge.pipeline import DocxConverter

        native = NativeDocument(
            sections=[NativeSection(paragraphs=[NativeParagraph(chars=[NativeChar("hi")])])],
            version="5.0.3.0",
        )
        package = DocxConverter().convert_native(
            native, metadata=Metadata(title="Given"), now=FIXED_NOW
        )
        core = _xml(package.core_xml)
        assert core.findtext("{http://purl.org/dc/elements/1.1/}title") == "Given"
        version = "{http://schemas.openxmlformats.org/package/2006/metadata/core-properties}version"
        assert core.findtext(version) == "5.0.3.0"

    def test_convert_xml(self):
        from docxbridge.pipeline import DocxConverter

        xml = (
            "<HWPML><HEAD><DOCSUMMARY><TITLE>Title</TITLE></DOCSUMMARY></HEAD>"
            "<BODY><SECTION><P>first</P><P>second</P></SECTION></BODY></HWPML>"
        )
        package = DocxConverter().convert_xml(xml, now=FIXED_NOW)
        doc = open_docx(io.BytesIO(package.to_bytes()))
        assert [p.text for p in doc.paragraphs] == ["first", "second"]
        assert doc.core_properties.title == "Title"

    def test_text_to_document(self):
        from docxbridge.pipeline import DocxConverter

        document = DocxConverter().text_to_document("one\n\n<two>\n")
        assert [b.text for b in document.blocks] == ["one", "<two>"]


# ── CLI tests ───────────────────────────────────────────────────────


class TestCli:
    def test_converts_html_file(self, tmp_path, monkeypatch):
        import main

        source = tmp_path / "input.html"
        source.write_text("<p>From the command line</p>", encoding="utf-8")
        monkeypatch.chdir(tmp_path)
        monkeypatch.setattr(sys, "argv", ["docx-bridge", str(source), "--title", "CLI"])

        main.main()

        output = tmp_path / "input.docx"
        assert output.is_file()
        doc = open_docx(str(output))
        assert doc.paragraphs[0].text == "From the command line"
        assert doc.core_properties.title == "CLI"

    def test_empty_input_exits_with_error(self, tmp_path, monkeypatch, capsys):
        import main

        source = tmp_path / "empty.html"
        source.write_text("<script>x</script>", encoding="utf-8")
        monkeypatch.chdir(tmp_path)
        monkeypatch.setattr(sys, "argv", ["docx-bridge", str(source)])

        with pytest.raises(SystemExit) as exc_info:
            main.main()
        assert exc_info.value.code == 1
        assert "[EMPTY_CONTENT]" in capsys.readouterr().err

    def test_log_dir_option(self, tmp_path, monkeypatch):
        import main

        source = tmp_path / "input.html"
        source.write_text("<p>Logged</p>", encoding="utf-8")
        monkeypatch.chdir(tmp_path)
        monkeypatch.setattr(
            sys, "argv", ["docx-bridge", str(source), "--log-dir", str(tmp_path / "run-logs")]
        )

        main.main()

        assert (tmp_path / "run-logs").is_dir()
        assert not (tmp_path / "logs").exists()

    def test_empty_log_dir_skips_log_file(self, tmp_path, monkeypatch):
        import main

        source = tmp_path / "input.html"
        source.write_text("<p>Quiet</p>", encoding="utf-8")
        monkeypatch.chdir(tmp_path)
        monkeypatch.setattr(sys, "argv", ["docx-bridge", str(source), "--log-dir", ""])

        main.main()

        assert (tmp_path / "input.docx").is_file()
        assert not (tmp_path / "logs").exists()

    def test_unsupported_suffix(self, tmp_path, monkeypatch):
        import main

        source = tmp_path / "input.pdf"
        source.write_bytes(b"%PDF")
        monkeypatch.chdir(tmp_path)
        monkeypatch.setattr(sys, "argv", ["docx-bridge", str(source)])

        with pytest.raises(SystemExit) as exc_info:
            main.main()
        assert exc_info.value.code == 1
