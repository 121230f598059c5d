"""End-to-end conversion pipeline.

Wires the input adapters (HTML, HWPML/XML, native paragraph streams), the
markup normalizer and the serializer behind one object.

Usage::

    from docxbridge.pipeline import DocxConverter

    converter = DocxConverter()
    package = converter.convert_html("<p>Hello</p>", Metadata(title="Greeting"))
    package.save("output/greeting.docx")
"""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path

from docxbridge.config import ConverterConfig
from docxbridge.hwpml import parse_hwpml, text_to_html
from docxbridge.models import Document, Metadata
from docxbridge.native import NativeConverter, NativeDocument
from docxbridge.normalizer import MarkupNormalizer
from docxbridge.serializer import DocxPackage, DocxSerializer

logger = logging.getLogger(__name__)


class DocxConverter:
    """Convert HTML, XML or native documents into ``.docx`` packages.

    Parameters
    ----------
    config : ConverterConfig or None, optional
        Loaded configuration.  Takes precedence over *config_path*.
    config_path : str or Path or None, optional
        Overlay YAML applied on top of the bundled configuration when
        *config* is not given.
    """

    def __init__(
        self,
        config: ConverterConfig | None = None,
        config_path: str | Path | None = None,
    ) -> None:
        self._config = config or ConverterConfig(overlay_path=config_path)
        self._normalizer = MarkupNormalizer()
        self._native = NativeConverter(legacy_codec=self._config.legacy_codepage)
        self._serializer = DocxSerializer(self._config)

    @property
    def config(self) -> ConverterConfig:
        return self._config

    # ── Document building ──────────────────────────────────────────

    def html_to_document(self, html: str) -> Document:
        return self._normalizer.html_to_document(html)

    def text_to_document(self, text: str) -> Document:
        """One paragraph per non-blank line of *text*."""
        return self._normalizer.html_to_document(text_to_html(text))

    def native_to_document(
        self,
        native: NativeDocument,
        container: bytes | None = None,
    ) -> tuple[Document, Metadata]:
        return self._native.to_document(native, container)

    def serialize(
        self,
        document: Document,
        metadata: Metadata | None = None,
        now: datetime | None = None,
    ) -> DocxPackage:
        return self._serializer.serialize(document, metadata, now)

    # ── One-shot conversions ───────────────────────────────────────

    def convert_html(
        self,
        html: str,
        metadata: Metadata | None = None,
        now: datetime | None = None,
    ) -> DocxPackage:
        """Normalize *html* and serialize it with *metadata*."""
        document = self.html_to_document(html)
        logger.debug("HTML document summary: %s", document.summary())
        return self.serialize(document, metadata, now)

    def convert_native(
        self,
        native: NativeDocument,
        container: bytes | None = None,
        metadata: Metadata | None = None,
        now: datetime | None = None,
    ) -> DocxPackage:
        """Convert a decoded native document.

        Explicit *metadata* fields win over those recovered from the
        document version and the structured-storage *container*.
        """
        document, extracted = self.native_to_document(native, container)
        merged = metadata.merged_with(extracted) if metadata else extracted
        logger.debug("Native document summary: %s", document.summary())
        return self.serialize(document, merged, now)

    def convert_xml(
        self,
        xml: str | bytes,
        metadata: Metadata | None = None,
        now: datetime | None = None,
    ) -> DocxPackage:
        """Convert an HWPML or generic XML document via its plain text."""
        text, extracted = parse_hwpml(xml)
        document = self.text_to_document(text)
        merged = metadata.merged_with(extracted) if metadata else extracted
        return self.serialize(document, merged, now)
