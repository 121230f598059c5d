"""Structured-storage property-set parsing.

Recovers title, author and page count from the ``SummaryInformation`` and
``DocumentSummaryInformation`` streams of a legacy compound file.  Input is
untrusted: anything that would read past the end of a buffer makes the
affected property absent, and every failure degrades to empty metadata.

Layout of a property-set stream (all integers little-endian)::

    0   u16  byte-order marker (0xFFFE)
    24  u32  section count
    28  per section: 16-byte FMTID + u32 section offset
    section: u32 size, u32 property count, count x (u32 id, u32 offset)
    value at section offset + property offset: u32 type tag, payload
"""

from __future__ import annotations

import codecs
import io
import logging
import struct
from dataclasses import dataclass
from enum import IntEnum
from typing import Optional

import olefile

from docxbridge.errors import MalformedPropertySetError
from docxbridge.models import Metadata

logger = logging.getLogger(__name__)

# ── Constants ──────────────────────────────────────────────────────────

BYTE_ORDER_MARK = 0xFFFE

_HEADER_SIZE = 28
_SECTION_COUNT_OFFSET = 24
_SECTION_ENTRY_SIZE = 20
_FMTID_SIZE = 16

PID_CODEPAGE = 0x01
PID_TITLE = 0x02
PID_AUTHOR = 0x04
PID_LASTAUTHOR = 0x08
PID_PAGECOUNT = 0x0E

CODEPAGE_UTF8 = 65001
CODEPAGE_UTF16LE = 1200

SUMMARY_STREAM = "\x05SummaryInformation"
DOC_SUMMARY_STREAM = "\x05DocumentSummaryInformation"

DEFAULT_LEGACY_CODEC = "cp949"

_U16 = struct.Struct("<H")
_U32 = struct.Struct("<I")


class PropertyType(IntEnum):
    VT_I2 = 0x0002
    VT_I4 = 0x0003
    VT_UI4 = 0x0013
    VT_LPSTR = 0x001E
    VT_LPWSTR = 0x001F


_INTEGER_TYPES = frozenset({PropertyType.VT_I2, PropertyType.VT_I4, PropertyType.VT_UI4})


@dataclass(frozen=True)
class PropertyValue:
    """A typed property value.

    Integers are stored as ``int``; both string kinds keep their raw bytes so
    decoding can wait until the code page is known.
    """
    type: PropertyType
    value: int | bytes

    def as_int(self) -> Optional[int]:
        if self.type in _INTEGER_TYPES and isinstance(self.value, int):
            return self.value
        return None

    def as_text(
        self,
        codepage: Optional[int] = None,
        legacy_codec: str = DEFAULT_LEGACY_CODEC,
    ) -> Optional[str]:
        if not isinstance(self.value, bytes):
            return None
        if self.type == PropertyType.VT_LPWSTR:
            return self.value.decode("utf-16-le", errors="replace").rstrip("\x00")
        if self.type == PropertyType.VT_LPSTR:
            return decode_ansi(self.value, codepage, legacy_codec)
        return None


# ── Decoding ───────────────────────────────────────────────────────────


def _known_codec(name: str) -> bool:
    try:
        codecs.lookup(name)
    except LookupError:
        return False
    return True


def decode_ansi(
    raw: bytes,
    codepage: Optional[int] = None,
    legacy_codec: str = DEFAULT_LEGACY_CODEC,
) -> str:
    """Decode a single-byte property string.

    An explicit *codepage* is honoured; without one, UTF-8 is tried first and
    the legacy code page is used when that produces replacement characters.
    Trailing NUL padding is always stripped.
    """
    if codepage == CODEPAGE_UTF8:
        text = raw.decode("utf-8", errors="replace")
    elif codepage == CODEPAGE_UTF16LE:
        text = raw.decode("utf-16-le", errors="replace")
    elif codepage is not None:
        codec = f"cp{codepage}"
        if not _known_codec(codec):
            logger.debug("Unknown code page %d; using %s", codepage, legacy_codec)
            codec = legacy_codec
        text = raw.decode(codec, errors="replace")
    else:
        text = raw.decode("utf-8", errors="replace")
        if "\ufffd" in text:
            text = raw.decode(legacy_codec, errors="replace")
    return text.rstrip("\x00")


# ── Parsing ────────────────────────────────────────────────────────────


def _read(fmt: struct.Struct, buffer: bytes, offset: int) -> Optional[int]:
    """Read one integer at *offset*, or ``None`` if it would pass the end."""
    if offset < 0 or offset + fmt.size > len(buffer):
        return None
    return fmt.unpack_from(buffer, offset)[0]


def _read_value(buffer: bytes, offset: int) -> Optional[PropertyValue]:
    """Read the typed value starting at *offset*; ``None`` means absent."""
    tag = _read(_U32, buffer, offset)
    if tag is None:
        return None
    try:
        vtype = PropertyType(tag & 0xFFFF)
    except ValueError:
        return None

    start = offset + 4
    if vtype == PropertyType.VT_I2:
        number = _read(_U16, buffer, start)
        return None if number is None else PropertyValue(vtype, number)
    if vtype in (PropertyType.VT_I4, PropertyType.VT_UI4):
        number = _read(_U32, buffer, start)
        return None if number is None else PropertyValue(vtype, number)

    length = _read(_U32, buffer, start)
    if length is None:
        return None
    byte_length = length * 2 if vtype == PropertyType.VT_LPWSTR else length
    end = start + 4 + byte_length
    if end > len(buffer):
        return None
    return PropertyValue(vtype, bytes(buffer[start + 4:end]))


def parse_property_set(blob: bytes) -> dict[int, PropertyValue]:
    """Parse a property-set stream into ``{property id: value}``.

    Raises
    ------
    MalformedPropertySetError
        If the header is truncated or the byte-order marker is wrong.
    """
    if len(blob) < _HEADER_SIZE:
        raise MalformedPropertySetError(
            "Property set header is truncated", {"length": len(blob)}
        )
    marker = _U16.unpack_from(blob, 0)[0]
    if marker != BYTE_ORDER_MARK:
        raise MalformedPropertySetError(
            "Unexpected property set byte-order marker", {"marker": hex(marker)}
        )

    properties: dict[int, PropertyValue] = {}
    section_count = _U32.unpack_from(blob, _SECTION_COUNT_OFFSET)[0]
    cursor = _HEADER_SIZE

    for _ in range(section_count):
        section_offset = _read(_U32, blob, cursor + _FMTID_SIZE)
        cursor += _SECTION_ENTRY_SIZE
        if section_offset is None:
            break
        if section_offset + 8 > len(blob):
            continue

        property_count = _U32.unpack_from(blob, section_offset + 4)[0]
        for index in range(property_count):
            entry = section_offset + 8 + index * 8
            prop_id = _read(_U32, blob, entry)
            prop_offset = _read(_U32, blob, entry + 4)
            if prop_id is None or prop_offset is None:
                break
            value = _read_value(blob, section_offset + prop_offset)
            if value is not None:
                properties[prop_id] = value

    return properties


def _safe_parse(blob: Optional[bytes], label: str) -> dict[int, PropertyValue]:
    if not blob:
        return {}
    try:
        return parse_property_set(blob)
    except MalformedPropertySetError as exc:
        logger.debug("Ignoring %s property set: %s", label, exc)
        return {}


# ── Metadata extraction ────────────────────────────────────────────────


def extract_summary_info(
    summary: Optional[bytes],
    doc_summary: Optional[bytes] = None,
    legacy_codec: str = DEFAULT_LEGACY_CODEC,
) -> Metadata:
    """Return title, author and page count from the two summary streams.

    Values from the summary stream win over the document-summary stream.
    Never raises; unreadable input gives empty :class:`Metadata`.
    """
    try:
        sources = [
            _safe_parse(summary, "summary"),
            _safe_parse(doc_summary, "document summary"),
        ]

        codepage: Optional[int] = None
        for props in sources:
            entry = props.get(PID_CODEPAGE)
            if entry is not None and entry.as_int() is not None:
                codepage = entry.as_int()
                break

        def text(*prop_ids: int) -> Optional[str]:
            for props in sources:
                for prop_id in prop_ids:
                    entry = props.get(prop_id)
                    if entry is None:
                        continue
                    value = entry.as_text(codepage, legacy_codec)
                    if value is not None:
                        return value
            return None

        def number(prop_id: int) -> Optional[int]:
            for props in sources:
                entry = props.get(prop_id)
                if entry is not None and entry.as_int() is not None:
                    return entry.as_int()
            return None

        title = text(PID_TITLE)
        author = text(PID_AUTHOR, PID_LASTAUTHOR)
        pages = number(PID_PAGECOUNT)
    except (LookupError, struct.error, UnicodeError):
        logger.debug("Property set extraction failed", exc_info=True)
        return Metadata()

    return Metadata(title=title, author=author, pages=pages)


def read_property_streams(container: bytes) -> tuple[Optional[bytes], Optional[bytes]]:
    """Return the raw summary and document-summary streams of *container*."""
    with olefile.OleFileIO(io.BytesIO(container)) as ole:
        summary = (
            ole.openstream(SUMMARY_STREAM).read()
            if ole.exists(SUMMARY_STREAM)
            else None
        )
        doc_summary = (
            ole.openstream(DOC_SUMMARY_STREAM).read()
            if ole.exists(DOC_SUMMARY_STREAM)
            else None
        )
    return summary, doc_summary


def extract_container_metadata(
    container: bytes,
    legacy_codec: str = DEFAULT_LEGACY_CODEC,
) -> Metadata:
    """Best-effort metadata from a whole structured-storage file."""
    try:
        summary, doc_summary = read_property_streams(container)
    except Exception:
        logger.debug("Could not read property streams from container", exc_info=True)
        return Metadata()
    metadata = extract_summary_info(summary, doc_summary, legacy_codec)
    logger.debug(
        "Container metadata: title=%r author=%r pages=%r",
        metadata.title,
        metadata.author,
        metadata.pages,
    )
    return metadata
