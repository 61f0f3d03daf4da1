"""
Main translation pipeline for Rosetta.

This module orchestrates the complete translation workflow:
1. Parse the input document into sections
2. Open the translation cache and any partial translation left behind
3. Translate each section, preferring (in order) the partial translation,
   the cache, and finally one remote session call per section
4. Append every translated section to the output as it is produced
5. Finalize the output (format conversion)

Design Philosophy:
- Parser, translator builder and output sink builder are injected, so each
  stage is independent and testable
- Work is never paid for twice: the partial output and the cache survive a
  crash, and a continued run picks up where the last one stopped
- Progress callbacks for GUI/CLI integration
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from rosetta.cache import TranslationCache
from rosetta.errors import OutputConflictError, TranslationCancelled
from rosetta.ingest.pandoc import PandocParser, Parser
from rosetta.models import (
    Progress,
    ProgressCallback,
    Section,
    TranslationConfig,
    ignore_progress,
)
from rosetta.render.pandoc import (
    OutputSink,
    OutputSinkBuilder,
    PandocGeneratorBuilder,
    cache_path,
    partial_path,
)
from rosetta.translate.base import Translator, TranslatorBuilder, create_translator_builder
from rosetta.utils import truncate

logger = logging.getLogger(__name__)


@dataclass
class PipelineResult:
    """Result of running the translation pipeline.

    Counts how each section was obtained (useful for debugging resumes).
    """
    output_path: Path
    total_sections: int = 0
    reused_sections: int = 0
    cached_sections: int = 0
    translated_sections: int = 0
    stats: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "output_path": str(self.output_path),
            "total_sections": self.total_sections,
            "reused_sections": self.reused_sections,
            "cached_sections": self.cached_sections,
            "translated_sections": self.translated_sections,
            **self.stats,
        }


class TranslationPipeline:
    """Translation pipeline over injected parser, translator and output sink.

    Usage:
        pipeline = TranslationPipeline(
            translator_builder=create_translator_builder("openai"),
        )
        config = TranslationConfig(src_lang="English", dst_lang="French")
        pipeline.run(Path("book.docx"), Path("book_fr.docx"), config)
    """

    def __init__(
        self,
        parser: Parser | None = None,
        translator_builder: TranslatorBuilder | None = None,
        generator_builder: OutputSinkBuilder | None = None,
        progress_callback: ProgressCallback | None = None,
        cancel_event: Optional[threading.Event] = None,
    ):
        self.parser = parser or PandocParser()
        self.translator_builder = translator_builder or create_translator_builder("dummy")
        self.generator_builder = generator_builder or PandocGeneratorBuilder(self.parser)
        self.progress_callback = progress_callback or ignore_progress
        self.cancel_event = cancel_event or threading.Event()

    def run(
        self,
        input_path: Path,
        output_path: Path,
        config: TranslationConfig | None = None,
    ) -> PipelineResult:
        """Translate ``input_path`` into ``output_path``.

        Args:
            input_path: Document to translate
            output_path: Where the translated document goes; the partial
                markdown and the cache are kept next to it
            config: Languages, prompt and segmentation settings

        Returns:
            PipelineResult with per-source section counts

        Raises:
            FileNotFoundError: Input does not exist
            FileExistsError: A partial translation exists and
                ``continue_translation`` is off
            OutputConflictError: The partial output would overwrite the input
            TranslationCancelled: The cancel event was set
        """
        config = config or TranslationConfig()
        input_path = Path(input_path)
        output_path = Path(output_path)

        if not input_path.exists():
            raise FileNotFoundError(f"Input file not found: {input_path}")
        if partial_path(output_path).resolve() == input_path.resolve():
            raise OutputConflictError(
                "Output would overwrite the input file",
                input=str(input_path),
                partial_output=str(partial_path(output_path)),
            )
        output_path.parent.mkdir(parents=True, exist_ok=True)

        logger.info("Parsing %s", input_path)
        sections = self.parser.parse(input_path, config.max_section_len)
        total = len(sections)
        result = PipelineResult(output_path=output_path, total_sections=total)

        with TranslationCache(
            cache_path(output_path), config.src_lang, config.dst_lang
        ) as cache:
            generator, already_translated = self.generator_builder.build(
                output_path, config.continue_translation, config.max_section_len
            )
            try:
                with self.translator_builder.build(config) as translator:
                    self._translate_sections(
                        sections, already_translated, cache, translator, generator, result
                    )
                generator.finalize()
            finally:
                generator.close()

        logger.info(
            "Translated %d sections (%d reused, %d from cache, %d remote)",
            total,
            result.reused_sections,
            result.cached_sections,
            result.translated_sections,
        )
        return result

    def _translate_sections(
        self,
        sections: list[Section],
        already_translated: list[Section],
        cache: TranslationCache,
        translator: Translator,
        generator: OutputSink,
        result: PipelineResult,
    ) -> None:
        total = len(sections)
        reusable = list(already_translated)

        for i, section in enumerate(sections):
            self._check_cancelled()

            if i < len(reusable) and len(reusable[i]) != len(section):
                logger.info(
                    "Partial translation diverges at section %d, retranslating the rest", i + 1
                )
                del reusable[i:]

            if i < len(reusable):
                translated = reusable[i]
                result.reused_sections += 1
            else:
                translated = self._translate_section(section, cache, translator, result)

            logger.info(
                "Section %d/%d: %s -> %s",
                i + 1,
                total,
                truncate(section.to_markdown()),
                truncate(translated.to_markdown()),
            )
            generator.write(translated)
            self.progress_callback(Progress(i + 1, total))

    def _translate_section(
        self,
        section: Section,
        cache: TranslationCache,
        translator: Translator,
        result: PipelineResult,
    ) -> Section:
        cached = [cache.get(subsection) for subsection in section]
        if all(hit is not None for hit in cached):
            result.cached_sections += 1
            return Section.from_subsections(cached)

        translated = translator.translate_section(section)
        if len(translated) != len(section):
            # Translators return one subsection per source subsection
            raise RuntimeError(
                f"Translator {translator.name} returned {len(translated)} subsections "
                f"for a section of {len(section)}"
            )
        for src, dst in zip(section, translated):
            cache.insert(src, dst)
        result.translated_sections += 1
        return translated

    def _check_cancelled(self) -> None:
        if self.cancel_event.is_set():
            raise TranslationCancelled("Translation cancelled")


def translate_document(
    input_path: Path,
    output_path: Path,
    config: TranslationConfig | None = None,
    backend: str = "openai",
    settings=None,
    progress_callback: ProgressCallback | None = None,
    cancel_event: Optional[threading.Event] = None,
    **backend_kwargs,
) -> PipelineResult:
    """Convenience function to translate a document file.

    Args:
        input_path: Document to translate
        output_path: Translated document
        config: TranslationConfig (defaults: English to Russian)
        backend: Translator backend name ('openai', 'dummy')
        settings: rosetta.config.Settings; loaded from disk if None
        progress_callback: Called with Progress after every section
        cancel_event: Set to stop the run between sections or polls
        **backend_kwargs: Passed to create_translator_builder

    Returns:
        PipelineResult
    """
    cancel_event = cancel_event or threading.Event()
    builder = create_translator_builder(
        backend, settings=settings, cancel_event=cancel_event, **backend_kwargs
    )
    pipeline = TranslationPipeline(
        translator_builder=builder,
        progress_callback=progress_callback,
        cancel_event=cancel_event,
    )
    return pipeline.run(Path(input_path), Path(output_path), config)
