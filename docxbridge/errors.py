"""Error taxonomy for document conversion.

Conversion errors subclass :class:`ValueError` so callers that treat bad
input generically keep working, while the ``code`` attribute lets the
surrounding service map each failure precisely.
"""

from __future__ import annotations

import json
from enum import Enum
from typing import Any, Optional


class ErrorCode(Enum):
    EMPTY_CONTENT = "EMPTY_CONTENT"
    EMPTY_CELL = "EMPTY_CELL"
    MALFORMED_PROPERTY_SET = "MALFORMED_PROPERTY_SET"
    ENCRYPTED = "ENCRYPTED"
    PARSE_ERROR = "PARSE_ERROR"


class ConversionError(ValueError):
    """Base class for failures intrinsic to the conversion pipeline."""

    code: ErrorCode = ErrorCode.PARSE_ERROR

    def __init__(
        self,
        message: str,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class EmptyContentError(ConversionError):
    """The source produced no blocks at all."""

    code = ErrorCode.EMPTY_CONTENT


class EmptyCellError(ConversionError):
    """A real table cell reached serialization without any block."""

    code = ErrorCode.EMPTY_CELL


class MalformedPropertySetError(ConversionError):
    """A property-set stream could not be parsed.

    Only raised inside :mod:`docxbridge.propset`; metadata extraction absorbs
    it and reports empty metadata instead.
    """

    code = ErrorCode.MALFORMED_PROPERTY_SET


class MalformedXmlError(ConversionError):
    """An XML source document is not well-formed."""

    code = ErrorCode.PARSE_ERROR


class EncryptedDocumentError(ConversionError):
    """The source document is encrypted and is rejected."""

    code = ErrorCode.ENCRYPTED


def format_error(error: ConversionError) -> str:
    """Render *error* as ``[CODE] message {details}``."""
    base = f"[{error.code.value}] {error.message}"
    if not error.details:
        return base
    return f"{base} {json.dumps(error.details, ensure_ascii=False, sort_keys=True)}"
