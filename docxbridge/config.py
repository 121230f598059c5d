"""Converter configuration loaded from YAML.

The base file ``converter.yaml`` (shipped inside the package) holds page geometry, default fonts
and languages, numbering layout, table borders, package properties and the
legacy text code page.  An optional overlay file is deep-merged on top, so a
deployment only needs to restate the values it changes.

Classes
-------
ConverterConfig
    Loads and queries the converter configuration.
"""

from __future__ import annotations

import logging
from copy import deepcopy
from importlib import resources
from importlib.resources.abc import Traversable
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

# ── Constants ──────────────────────────────────────────────────────────

_DEFAULT_CONFIG = resources.files("docxbridge") / "converter.yaml"

_DEFAULT_LEGACY_CODEPAGE = "cp949"


class ConverterConfig:
    """Loads and queries the converter YAML configuration.

    Parameters
    ----------
    config_path : str or Path, optional
        Path to the YAML configuration file.  Defaults to the
        ``converter.yaml`` bundled with the package.
    overlay_path : str or Path or None, optional
        Path to an optional overlay YAML.  Values in the overlay are
        deep-merged on top of the base configuration.

    Raises
    ------
    FileNotFoundError
        If a requested configuration file does not exist.
    ValueError
        If the base file does not contain a YAML mapping.
    yaml.YAMLError
        If the YAML is malformed.
    """

    def __init__(
        self,
        config_path: str | Path | None = None,
        overlay_path: str | Path | None = None,
    ) -> None:
        self._config_path: Path | Traversable = (
            Path(config_path) if config_path else _DEFAULT_CONFIG
        )
        self._raw: dict[str, Any] = {}

        self._load(self._config_path)

        if overlay_path is not None:
            self._apply_overlay(Path(overlay_path))

        logger.info("Converter configuration loaded from %s", self._config_path)

    @classmethod
    def from_mapping(cls, data: dict[str, Any]) -> ConverterConfig:
        """Build a configuration from an in-memory mapping over the defaults."""
        config = cls()
        config._raw = cls._deep_merge(config._raw, data)
        return config

    # ── Loading / merging ──────────────────────────────────────────

    @staticmethod
    def _read_yaml(path: Path | Traversable) -> Any:
        with path.open("r", encoding="utf-8") as fh:
            return yaml.safe_load(fh)

    def _load(self, path: Path | Traversable) -> None:
        """Load the base YAML configuration from *path*."""
        if not path.is_file():
            raise FileNotFoundError(f"Converter configuration not found: {path}")

        data = self._read_yaml(path)
        if not isinstance(data, dict):
            raise ValueError(f"Expected a YAML mapping at the top level in {path}")

        self._raw = data
        logger.debug("Loaded %d configuration section(s) from %s", len(data), path)

    def _apply_overlay(self, overlay_path: Path) -> None:
        """Deep-merge an overlay on top of the current configuration."""
        if not overlay_path.is_file():
            raise FileNotFoundError(f"Overlay configuration not found: {overlay_path}")

        overlay = self._read_yaml(overlay_path)
        if not isinstance(overlay, dict):
            logger.warning(
                "Overlay file %s does not contain a YAML mapping; skipping", overlay_path
            )
            return

        self._raw = self._deep_merge(self._raw, overlay)
        logger.info("Applied configuration overlay from %s", overlay_path)

    @staticmethod
    def _deep_merge(base: dict, overlay: dict) -> dict:
        """Recursively merge *overlay* into a copy of *base*.

        Overlay values take precedence.  Nested dicts are merged rather than
        replaced outright.
        """
        result = deepcopy(base)
        for key, value in overlay.items():
            if (
                key in result
                and isinstance(result[key], dict)
                and isinstance(value, dict)
            ):
                result[key] = ConverterConfig._deep_merge(result[key], value)
            else:
                result[key] = deepcopy(value)
        return result

    def _section(self, name: str) -> dict[str, Any]:
        section = self._raw.get(name) or {}
        return deepcopy(section) if isinstance(section, dict) else {}

    # ── Section getters ────────────────────────────────────────────

    def get_page_config(self) -> dict[str, Any]:
        """Return page size and margins in twips.

        Returns
        -------
        dict
            ``width``, ``height`` and a nested ``margins`` dict with
            ``top``, ``right``, ``bottom``, ``left``, ``header``,
            ``footer`` and ``gutter``.
        """
        page = self._section("page")
        page.setdefault("width", 11906)
        page.setdefault("height", 16838)
        margins = page.setdefault("margins", {})
        for side in ("top", "right", "bottom", "left"):
            margins.setdefault(side, 1440)
        margins.setdefault("header", 708)
        margins.setdefault("footer", 708)
        margins.setdefault("gutter", 0)
        return page

    def get_font_config(self) -> dict[str, str]:
        """Return the default run fonts for each script slot."""
        fonts = self._section("fonts")
        fonts.setdefault("ascii", "Calibri")
        fonts.setdefault("h_ansi", fonts["ascii"])
        fonts.setdefault("east_asia", fonts["ascii"])
        fonts.setdefault("cs", fonts["ascii"])
        return fonts

    def get_language_config(self) -> dict[str, str]:
        language = self._section("language")
        language.setdefault("default", "en-US")
        language.setdefault("east_asia", language["default"])
        return language

    def get_numbering_config(self) -> dict[str, Any]:
        """Return the list numbering layout.

        Returns
        -------
        dict
            ``defined_levels`` (levels written per abstract numbering),
            ``indent_step`` and ``hanging`` (twips), ``bullet_text`` and
            ``bullet_font``.
        """
        numbering = self._section("numbering")
        numbering.setdefault("defined_levels", 2)
        numbering.setdefault("indent_step", 720)
        numbering.setdefault("hanging", 360)
        numbering.setdefault("bullet_text", "•")
        numbering.setdefault("bullet_font", "Symbol")
        return numbering

    def get_table_config(self) -> dict[str, Any]:
        tables = self._section("tables")
        tables.setdefault("border_size", 4)
        return tables

    def get_package_config(self) -> dict[str, str]:
        package = self._section("package")
        package.setdefault("application", "docx-bridge")
        package.setdefault("last_modified_by", "docx-bridge")
        return package

    @property
    def legacy_codepage(self) -> str:
        """Codec for legacy single-byte metadata strings."""
        decoding = self._section("decoding")
        return str(decoding.get("legacy_codepage", _DEFAULT_LEGACY_CODEPAGE))

    @property
    def config_path(self) -> Path | Traversable:
        return self._config_path
