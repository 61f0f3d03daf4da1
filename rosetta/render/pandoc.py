"""
Pandoc-backed output sink.

For an output path ``P`` the run keeps two files next to it:

- ``P.with_suffix(".md")``: the partial translation, one paragraph per
  section, subsections on separate lines. If ``P`` is itself markdown this
  is ``P``.
- ``P.with_suffix(".sqlite")``: the translation cache (see
  ``rosetta.cache``).

Both are found again from ``P`` alone when a run is continued.
"""

from __future__ import annotations

import errno
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional, TextIO

import pypandoc

from rosetta.errors import ParseError, UnsupportedFormatError
from rosetta.ingest.pandoc import PandocParser, Parser
from rosetta.models import Section

logger = logging.getLogger(__name__)

MARKDOWN_SUFFIXES = {".md", ".markdown"}

# File extension -> pandoc output format
OUTPUT_FORMATS = {
    ".md": "markdown",
    ".markdown": "markdown",
    ".txt": "plain",
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


def partial_path(output_path: Path) -> Path:
    if output_path.suffix.lower() in MARKDOWN_SUFFIXES:
        return output_path
    return output_path.with_suffix(".md")


def cache_path(output_path: Path) -> Path:
    return output_path.with_suffix(".sqlite")


class OutputSink(ABC):
    """Receives translated sections in document order."""

    @abstractmethod
    def write(self, section: Section) -> None:
        pass

    @abstractmethod
    def finalize(self) -> None:
        """Produce the final output once every section is written."""

    def close(self) -> None:
        """Release open files; written sections stay on disk."""


class OutputSinkBuilder(ABC):
    @abstractmethod
    def build(
        self,
        output_path: Path,
        continue_translation: bool,
        max_section_len: int,
    ) -> tuple[OutputSink, list[Section]]:
        """Open the sink for ``output_path``.

        Returns:
            The sink and the sections of a previous partial translation
            (empty unless continuing)
        """


class PandocGeneratorBuilder(OutputSinkBuilder):
    """Builds PandocGenerator sinks.

    Args:
        parser: Parser used to read back a partial translation
    """

    def __init__(self, parser: Optional[Parser] = None):
        self.parser = parser or PandocParser()

    def build(
        self,
        output_path: Path,
        continue_translation: bool,
        max_section_len: int,
    ) -> tuple[PandocGenerator, list[Section]]:
        output_path = Path(output_path)
        output_format = OUTPUT_FORMATS.get(output_path.suffix.lower())
        if output_format is None:
            raise UnsupportedFormatError(
                f"Unsupported output format: {output_path.suffix or output_path.name}",
                supported_formats=sorted(ext.lstrip(".") for ext in OUTPUT_FORMATS),
            )

        translated_md_path = partial_path(output_path)
        already_translated: list[Section] = []

        if not continue_translation:
            if translated_md_path.exists():
                raise FileExistsError(
                    errno.EEXIST, "File already exists", str(translated_md_path)
                )
        elif translated_md_path.exists():
            already_translated = self.parser.parse(translated_md_path, max_section_len)
            logger.info(
                "Continuing from %d translated sections in %s",
                len(already_translated),
                translated_md_path,
            )
        else:
            logger.info("No partial translation at %s, starting from scratch", translated_md_path)

        generator = PandocGenerator(output_path, translated_md_path, output_format)
        return generator, already_translated


class PandocGenerator(OutputSink):
    """Writes sections to the partial markdown and converts it on finalize."""

    def __init__(self, output_path: Path, translated_md_path: Path, output_format: str):
        self.output_path = output_path
        self.translated_md_path = translated_md_path
        self.output_format = output_format
        self._file: Optional[TextIO] = None

    def write(self, section: Section) -> None:
        if self._file is None:
            # Truncates any previous partial translation; continued runs
            # write the reused sections again first
            self._file = open(self.translated_md_path, "w", encoding="utf-8")
        self._file.write(section.to_markdown())
        self._file.write("\n\n")
        self._file.flush()

    def close(self) -> None:
        if self._file is not None:
            self._file.close()
            self._file = None

    def finalize(self) -> None:
        self.close()
        if not self.translated_md_path.exists():
            # Nothing was translated; leave an empty document behind
            self.translated_md_path.write_text("", encoding="utf-8")

        # If output file itself is Markdown, no need to run pandoc
        if self.translated_md_path == self.output_path:
            return

        logger.info("Converting %s to %s", self.translated_md_path, self.output_path)
        try:
            pypandoc.convert_file(
                str(self.translated_md_path),
                self.output_format,
                format="markdown",
                outputfile=str(self.output_path),
            )
        except (RuntimeError, OSError) as e:
            raise ParseError(
                f"Cannot write {self.output_path}: {e}", path=str(self.output_path)
            ) from e
