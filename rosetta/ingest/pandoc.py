"""
Pandoc-backed document parser.

Any format pandoc reads is converted to markdown with line wrapping turned
off, then segmented. Markdown and plain text are read directly.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from pathlib import Path

import pypandoc

from rosetta.errors import ParseError, UnsupportedFormatError
from rosetta.models import Section
from rosetta.segment import segment

logger = logging.getLogger(__name__)

# File extension -> pandoc input format
SUPPORTED_FORMATS = {
    ".md": "markdown",
    ".markdown": "markdown",
    ".txt": "markdown",
    ".docx": "docx",
    ".odt": "odt",
    ".rtf": "rtf",
    ".epub": "epub",
    ".html": "html",
    ".htm": "html",
    ".rst": "rst",
    ".tex": "latex",
    ".org": "org",
    ".fb2": "fb2",
}


class Parser(ABC):
    """Turns an input file into ordered sections."""

    @abstractmethod
    def parse(self, path: Path, max_section_len: int) -> list[Section]:
        pass


def input_format(path: Path) -> str:
    """Pandoc input format for a file, by extension."""
    fmt = SUPPORTED_FORMATS.get(path.suffix.lower())
    if fmt is None:
        raise UnsupportedFormatError(
            f"Unsupported format: {path.suffix or path.name}",
            supported_formats=sorted(ext.lstrip(".") for ext in SUPPORTED_FORMATS),
        )
    return fmt


def to_markdown(path: Path) -> str:
    fmt = input_format(path)
    try:
        if fmt == "markdown":
            return path.read_text(encoding="utf-8")
        logger.info("Converting %s from %s to markdown", path, fmt)
        return pypandoc.convert_file(
            str(path), "markdown", format=fmt, extra_args=["--wrap=none"]
        )
    except (RuntimeError, OSError, UnicodeDecodeError) as e:
        raise ParseError(f"Cannot read {path}: {e}", path=str(path)) from e


class PandocParser(Parser):
    """Parser for every format in SUPPORTED_FORMATS."""

    def parse(self, path: Path, max_section_len: int) -> list[Section]:
        sections = segment(to_markdown(Path(path)), max_section_len)
        logger.info("Parsed %d sections from %s", len(sections), path)
        return sections
