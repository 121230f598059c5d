"""Inline style resolution.

Maps presentational CSS declarations onto :class:`Style` records and merges
nested scopes field by field.  Declarations that are not understood are
ignored rather than reported.
"""

from __future__ import annotations

import logging
import re
from typing import Optional

from docxbridge.models import Alignment, Style, round_half_up

logger = logging.getLogger(__name__)

# ── Constants ──────────────────────────────────────────────────────────

# Fixed display assumption: 96 px per inch, 72 pt per inch.
_PX_TO_PT = 0.75

_BOLD_WEIGHT = 600

_LEADING_NUMBER_RE = re.compile(r"^[+-]?(?:\d+(?:\.\d*)?|\.\d+)")

_TEXT_ALIGN_RE = re.compile(
    r"text-align\s*:\s*(left|center|right|justify)", re.IGNORECASE
)


# ── Merging ────────────────────────────────────────────────────────────


def merge_style(base: Style, override: Style) -> Style:
    """Return *base* with every explicitly set field of *override* applied.

    Each field merges independently: an explicit ``False`` in *override*
    replaces an inherited ``True``, while an unset field keeps *base*'s value.
    """
    return Style(
        bold=override.bold if override.bold is not None else base.bold,
        italic=override.italic if override.italic is not None else base.italic,
        underline=(
            override.underline if override.underline is not None else base.underline
        ),
        font=override.font if override.font is not None else base.font,
        size=override.size if override.size is not None else base.size,
    )


# ── Parsing ────────────────────────────────────────────────────────────


def _parse_number(value: str) -> Optional[float]:
    match = _LEADING_NUMBER_RE.match(value.strip())
    if match is None:
        return None
    return float(match.group(0))


def _parse_font_size(raw_value: str) -> Optional[float]:
    """Return a font size in points from a CSS ``font-size`` value."""
    size = _parse_number(raw_value)
    if size is None:
        return None
    if raw_value.strip().lower().endswith("px"):
        return round_half_up(size * _PX_TO_PT * 10) / 10
    return size


def parse_inline_style(text: Optional[str]) -> Style:
    """Parse a ``style`` attribute value into a :class:`Style`.

    Recognised declarations: ``font-weight``, ``font-style``,
    ``text-decoration``, ``font-family`` and ``font-size``.
    """
    if not text:
        return Style()

    bold: Optional[bool] = None
    italic: Optional[bool] = None
    underline: Optional[bool] = None
    font: Optional[str] = None
    size: Optional[float] = None

    for part in text.split(";"):
        raw_key, sep, raw_value = part.partition(":")
        raw_key = raw_key.strip()
        raw_value = raw_value.strip()
        if not sep or not raw_key or not raw_value:
            continue

        key = raw_key.lower()
        value = raw_value.lower()

        if key == "font-weight":
            weight = _parse_number(value)
            if value == "bold" or (weight is not None and weight >= _BOLD_WEIGHT):
                bold = True
        elif key == "font-style":
            if "italic" in value:
                italic = True
        elif key == "text-decoration":
            if "underline" in value:
                underline = True
        elif key == "font-family":
            family = raw_value.split(",")[0].strip().replace('"', "").replace("'", "")
            if family:
                font = family
        elif key == "font-size":
            parsed = _parse_font_size(raw_value)
            if parsed is not None:
                size = parsed
            else:
                logger.debug("Ignoring unsupported font-size value: %s", raw_value)

    return Style(bold=bold, italic=italic, underline=underline, font=font, size=size)


def parse_alignment(
    style_text: Optional[str],
    align_attr: Optional[str] = None,
) -> Optional[Alignment]:
    """Return the paragraph alignment from a ``text-align`` declaration.

    The legacy ``align`` attribute is consulted only when the style text does
    not declare an alignment.
    """
    if style_text:
        match = _TEXT_ALIGN_RE.search(style_text)
        if match:
            return Alignment(match.group(1).lower())
    if align_attr:
        try:
            return Alignment(align_attr.strip().lower())
        except ValueError:
            logger.debug("Ignoring unsupported align attribute: %s", align_attr)
    return None
