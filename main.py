"""CLI entry point for docx-bridge.

Usage::

    python main.py input.html [-o output.docx] [--config overlay.yaml] \\
        [--metadata-source original.hwp] [--title "Title"] [--author "Name"] [--log-dir DIR] [-v]
"""

import argparse
import logging
import sys
import os
from pathlib import Path

from docxbridge.config import ConverterConfig
from docxbridge.errors import ConversionError, format_error
from docxbridge.hwpml import parse_hwpml
from docxbridge.models import Metadata
from docxbridge.pipeline import DocxConverter
from docxbridge.propset import extract_container_metadata

logger = logging.getLogger("docx-bridge")

_HTML_SUFFIXES = frozenset({".html", ".htm"})
_XML_SUFFIXES = frozenset({".xml", ".hml"})
_TEXT_SUFFIXES = frozenset({".txt"})


def _build_argument_parser() -> argparse.ArgumentParser:
    """Create and return the CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="docx-bridge",
        description="Convert HTML, HWPML or plain-text documents into .docx packages.",
    )

    parser.add_argument(
        "input",
        help="Path to the input .html, .htm, .xml, .hml or .txt file.",
    )
    parser.add_argument(
        "-o", "--output",
        default=None,
        help="Path to the output .docx file. Defaults to {input_stem}.docx beside the input.",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to a YAML overlay merged over the bundled configuration.",
    )

    # Metadata
    parser.add_argument(
        "--metadata-source",
        default=None,
        help="Structured-storage file (e.g. the original .hwp) to read title/author/pages from.",
    )
    parser.add_argument(
        "--title",
        default=None,
        help="Document title (overrides any extracted title).",
    )
    parser.add_argument(
        "--author",
        default=None,
        help="Document author (overrides any extracted author).",
    )

    # Logging
    parser.add_argument(
        "--log-dir",
        default="logs",
        help="Directory for docx-bridge.log (default: ./logs). Pass an empty string to log to stderr only.",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        default=False,
        help="Enable verbose (DEBUG) logging output.",
    )

    return parser


def _setup_logging(verbose: bool, log_dir: str | None = "logs") -> None:
    """Configure the root logger for the application.

    Records always go to stderr; they are also written to
    ``<log_dir>/docx-bridge.log`` unless *log_dir* is empty.
    """
    level = logging.DEBUG if verbose else logging.INFO

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_dir:
        directory = Path(log_dir)
        directory.mkdir(parents=True, exist_ok=True)
        handlers.append(
            logging.FileHandler(directory / "docx-bridge.log", encoding="utf-8")
        )

    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=handlers,
    )


def _resolve_output_path(input_path: str, output_arg: str | None) -> str:
    """Determine the output file path.

    If *output_arg* is provided it is returned as-is.  Otherwise the output
    is placed alongside the input file with a ``.docx`` suffix.
    """
    if output_arg:
        return output_arg

    return str(Path(input_path).with_suffix(".docx"))


def _collect_metadata(args: argparse.Namespace, config: ConverterConfig) -> Metadata:
    """Command-line values first, then the optional metadata source file."""
    metadata = Metadata(title=args.title, author=args.author)
    if args.metadata_source:
        source = Path(args.metadata_source)
        if not source.is_file():
            raise FileNotFoundError(f"Metadata source not found: {source}")
        extracted = extract_container_metadata(source.read_bytes(), config.legacy_codepage)
        metadata = metadata.merged_with(extracted)
    return metadata


def _print_summary(summary: dict) -> None:
    """Print a human-readable document summary to stdout."""
    print("\n--- Conversion Summary ---")
    print(f"  Paragraphs   : {summary.get('paragraphs', 0)}")
    print(f"  List items   : {summary.get('list_items', 0)}")
    print(f"  Tables       : {summary.get('tables', 0)}")
    print(f"  Table rows   : {summary.get('rows', 0)}")
    print(f"  Merged cells : {summary.get('merged_cells', 0)}")
    print("--------------------------\n")


def main() -> None:
    """Run the docx-bridge conversion pipeline."""
    parser = _build_argument_parser()
    args = parser.parse_args()

    # -- Logging -----------------------------------------------------------
    _setup_logging(args.verbose, args.log_dir)

    # -- Validate input ----------------------------------------------------
    input_path = args.input
    if not os.path.isfile(input_path):
        logger.error("Input file not found: %s", input_path)
        print(f"Error: Input file not found: {input_path}", file=sys.stderr)
        sys.exit(1)

    suffix = Path(input_path).suffix.lower()
    if suffix not in _HTML_SUFFIXES | _XML_SUFFIXES | _TEXT_SUFFIXES:
        logger.error("Unsupported input type: %s", input_path)
        print(
            f"Error: Input must be an .html, .htm, .xml, .hml or .txt file: {input_path}",
            file=sys.stderr,
        )
        sys.exit(1)

    output_path = _resolve_output_path(input_path, args.output)
    logger.info("Input : %s", input_path)
    logger.info("Output: %s", output_path)

    try:
        config = ConverterConfig(overlay_path=args.config)
        converter = DocxConverter(config=config)
        metadata = _collect_metadata(args, config)

        # -- Step 1: Normalize ---------------------------------------------
        logger.info("Normalizing input...")
        if suffix in _XML_SUFFIXES:
            text, extracted = parse_hwpml(Path(input_path).read_bytes())
            metadata = metadata.merged_with(extracted)
            document = converter.text_to_document(text)
        else:
            content = Path(input_path).read_text(encoding="utf-8")
            if suffix in _HTML_SUFFIXES:
                document = converter.html_to_document(content)
            else:
                document = converter.text_to_document(content)

        # -- Step 2: Serialize ---------------------------------------------
        logger.info("Serializing package...")
        package = converter.serialize(document, metadata)
        saved = package.save(output_path)

        # -- Summary -------------------------------------------------------
        _print_summary(document.summary())
        print(f"Document saved to: {saved}")
        logger.info("Conversion complete: %s", saved)

    except FileNotFoundError as exc:
        logger.error("File not found: %s", exc)
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)
    except ConversionError as exc:
        logger.error("Conversion failed: %s", format_error(exc))
        print(f"Error: {format_error(exc)}", file=sys.stderr)
        sys.exit(1)
    except ValueError as exc:
        logger.error("Invalid input: %s", exc)
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)
    except Exception as exc:
        logger.exception("Unexpected error during conversion.")
        print(
            f"Error: An unexpected error occurred: {exc}\n"
            "Run with -v for detailed debug output.",
            file=sys.stderr,
        )
        sys.exit(2)


if __name__ == "__main__":
    main()
