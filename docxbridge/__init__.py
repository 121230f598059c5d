"""Convert HTML, HWPML and decoded word-processor documents to ``.docx``."""

from docxbridge.errors import ConversionError, format_error
from docxbridge.models import Document, Metadata
from docxbridge.pipeline import DocxConverter

__all__ = ["ConversionError", "Document", "DocxConverter", "Metadata", "format_error"]

__version__ = "0.1.0"
