"""
Tests for the translation pipeline.

These tests verify:
- Cache use before remote calls, and cache population after them
- Resuming from a partial translation, including invalidation
- Progress reporting, cancellation and error propagation
- End-to-end runs on markdown files (no pandoc binary needed)

Run with: pytest tests/test_pipeline.py -v
"""

import threading

import pytest

from conftest import FakeEndpoint, FakeParser, FakeSinkBuilder
from rosetta.cache import TranslationCache
from rosetta.errors import OutputConflictError, RemoteApiError, TranslationCancelled
from rosetta.models import Progress, Section, Subsection, TranslationConfig
from rosetta.pipeline import TranslationPipeline, translate_document
from rosetta.render.pandoc import cache_path
from rosetta.translate.base import DummyTranslatorBuilder, Translator, TranslatorBuilder
from rosetta.translate.session import AssistantSessionBuilder

EN_FR = TranslationConfig(src_lang="en", dst_lang="fr")


class FailingTranslator(Translator):
    """Translates the first ``ok`` sections, then fails."""

    def __init__(self, ok: int):
        self.ok = ok
        self.closed = False

    @property
    def name(self) -> str:
        return "failing"

    def translate_section(self, section: Section) -> Section:
        if self.ok == 0:
            raise RemoteApiError("server said no", status_code=500)
        self.ok -= 1
        return Section.of(*(t.upper() for t in section.texts))

    def close(self) -> None:
        self.closed = True


class FailingTranslatorBuilder(TranslatorBuilder):
    def __init__(self, ok: int):
        self.translator = FailingTranslator(ok)

    def build(self, config):
        return self.translator


def make_pipeline(sections, prior=None, mode="upper", **kwargs):
    translators = DummyTranslatorBuilder(mode=mode)
    sinks = FakeSinkBuilder(prior)
    pipeline = TranslationPipeline(
        parser=FakeParser(sections),
        translator_builder=translators,
        generator_builder=sinks,
        **kwargs,
    )
    return pipeline, translators, sinks


class TestCacheUse:
    """Tests for cache lookups around remote calls."""

    def test_fully_cached_section_skips_translator(self, tmp_path, input_file):
        """A section whose subsections are all cached is never sent."""
        output = tmp_path / "out.md"
        with TranslationCache(cache_path(output), "en", "fr") as cache:
            cache.insert(Subsection("Hi."), Subsection("Salut."))
        pipeline, translators, sinks = make_pipeline([Section.of("Hi.")])

        result = pipeline.run(input_file, output, EN_FR)

        assert translators.built[0].translated == []
        assert sinks.sink.written == [Section.of("Salut.")]
        assert result.cached_sections == 1

    def test_partially_cached_section_is_sent_whole(self, tmp_path, input_file):
        output = tmp_path / "out.md"
        with TranslationCache(cache_path(output), "en", "fr") as cache:
            cache.insert(Subsection("A."), Subsection("cached a"))
        pipeline, translators, sinks = make_pipeline([Section.of("A.", "B.")])

        pipeline.run(input_file, output, EN_FR)

        assert translators.built[0].translated == [Section.of("A.", "B.")]
        assert sinks.sink.written == [Section.of("A.", "B.")]
        with TranslationCache(cache_path(output), "en", "fr") as cache:
            # First write wins
            assert cache.get(Subsection("A.")) == Subsection("cached a")
            assert cache.get(Subsection("B.")) == Subsection("B.")

    def test_translations_are_cached(self, tmp_path, input_file):
        output = tmp_path / "out.md"
        pipeline, _, _ = make_pipeline([Section.of("one.", "two."), Section.of("three.")])

        pipeline.run(input_file, output, EN_FR)

        with TranslationCache(cache_path(output), "EN", "FR") as cache:
            assert len(cache) == 3
            assert cache.get(Subsection("three.")) == Subsection("THREE.")

    def test_cache_is_scoped_by_language_pair(self, tmp_path, input_file):
        output = tmp_path / "out.md"
        with TranslationCache(cache_path(output), "en", "de") as cache:
            cache.insert(Subsection("Hi."), Subsection("Hallo."))
        pipeline, translators, sinks = make_pipeline([Section.of("Hi.")])

        pipeline.run(input_file, output, EN_FR)

        assert sinks.sink.written == [Section.of("HI.")]

    def test_cache_survives_a_failed_run(self, tmp_path, input_file):
        """Sections translated before a failure are not paid for again."""
        output = tmp_path / "out.md"
        sections = [Section.of("first."), Section.of("second.")]
        failing = FailingTranslatorBuilder(ok=1)
        pipeline = TranslationPipeline(
            parser=FakeParser(sections),
            translator_builder=failing,
            generator_builder=FakeSinkBuilder(),
        )

        with pytest.raises(RemoteApiError):
            pipeline.run(input_file, output, EN_FR)

        assert failing.translator.closed
        with TranslationCache(cache_path(output), "en", "fr") as cache:
            assert cache.get(Subsection("first.")) == Subsection("FIRST.")
            assert cache.get(Subsection("second.")) is None


class TestResume:
    """Tests for continuing from a partial translation."""

    def test_matching_prior_sections_are_reused(self, tmp_path, input_file):
        sections = [Section.of("a."), Section.of("b.", "c.")]
        prior = [Section.of("prior a"), Section.of("prior b", "prior c")]
        pipeline, translators, sinks = make_pipeline(sections, prior)

        result = pipeline.run(input_file, tmp_path / "out.md", EN_FR)

        assert translators.built[0].translated == []
        assert sinks.sink.written == prior
        assert result.reused_sections == 2

    def test_mismatch_invalidates_the_rest(self, tmp_path, input_file):
        """A count mismatch at section 2 retranslates 2 and everything after."""
        sections = [Section.of("s1."), Section.of("s2a.", "s2b."), Section.of("s3.")]
        prior = [Section.of("p1"), Section.of("p2a", "p2b", "p2c"), Section.of("p3")]
        pipeline, translators, sinks = make_pipeline(sections, prior)

        result = pipeline.run(input_file, tmp_path / "out.md", EN_FR)

        assert translators.built[0].translated == sections[1:]
        assert sinks.sink.written == [
            Section.of("p1"),
            Section.of("S2A.", "S2B."),
            Section.of("S3."),
        ]
        assert result.reused_sections == 1
        assert result.translated_sections == 2

    def test_shorter_prior_output(self, tmp_path, input_file):
        sections = [Section.of("a."), Section.of("b.")]
        pipeline, translators, sinks = make_pipeline(sections, [Section.of("prior a")])

        pipeline.run(input_file, tmp_path / "out.md", EN_FR)

        assert sinks.sink.written == [Section.of("prior a"), Section.of("B.")]

    def test_continue_flag_is_passed_to_sink(self, tmp_path, input_file):
        pipeline, _, sinks = make_pipeline([Section.of("a.")])
        config = TranslationConfig(continue_translation=True, max_section_len=123)

        pipeline.run(input_file, tmp_path / "out.md", config)

        assert sinks.builds == [(tmp_path / "out.md", True, 123)]


class TestRunLifecycle:
    """Tests for progress, cancellation and cleanup."""

    def test_progress_is_reported_per_section(self, tmp_path, input_file):
        reports = []
        sections = [Section.of("a."), Section.of("b."), Section.of("c.")]
        pipeline, _, _ = make_pipeline(sections, progress_callback=reports.append)

        pipeline.run(input_file, tmp_path / "out.md", EN_FR)

        assert reports == [Progress(1, 3), Progress(2, 3), Progress(3, 3)]

    def test_sections_are_written_in_order_and_finalized(self, tmp_path, input_file):
        sections = [Section.of("a."), Section.of("b.")]
        pipeline, translators, sinks = make_pipeline(sections)

        pipeline.run(input_file, tmp_path / "out.md", EN_FR)

        assert sinks.sink.written == [Section.of("A."), Section.of("B.")]
        assert sinks.sink.finalized
        assert sinks.sink.closed
        assert translators.built[0].closed

    def test_one_translator_per_run(self, tmp_path, input_file):
        sections = [Section.of("a."), Section.of("b."), Section.of("c.")]
        pipeline, translators, _ = make_pipeline(sections)

        pipeline.run(input_file, tmp_path / "out.md", EN_FR)

        assert len(translators.built) == 1

    def test_missing_input(self, tmp_path):
        pipeline, translators, sinks = make_pipeline([Section.of("a.")])

        with pytest.raises(FileNotFoundError):
            pipeline.run(tmp_path / "nope.md", tmp_path / "out.md", EN_FR)

        assert translators.built == []
        assert sinks.builds == []

    def test_output_directory_is_created(self, tmp_path, input_file):
        pipeline, _, _ = make_pipeline([Section.of("a.")])

        pipeline.run(input_file, tmp_path / "nested" / "dir" / "out.md", EN_FR)

        assert (tmp_path / "nested" / "dir" / "out.sqlite").exists()

    def test_cancel_before_start(self, tmp_path, input_file):
        cancel = threading.Event()
        cancel.set()
        pipeline, translators, sinks = make_pipeline([Section.of("a.")], cancel_event=cancel)

        with pytest.raises(TranslationCancelled):
            pipeline.run(input_file, tmp_path / "out.md", EN_FR)

        assert sinks.sink.written == []
        assert not sinks.sink.finalized
        assert sinks.sink.closed
        assert translators.built[0].closed

    def test_cancel_between_sections(self, tmp_path, input_file):
        cancel = threading.Event()
        sections = [Section.of("a."), Section.of("b."), Section.of("c.")]
        pipeline, _, sinks = make_pipeline(
            sections, cancel_event=cancel, progress_callback=lambda p: cancel.set()
        )

        with pytest.raises(TranslationCancelled):
            pipeline.run(input_file, tmp_path / "out.md", EN_FR)

        assert sinks.sink.written == [Section.of("A.")]

    def test_translator_error_propagates(self, tmp_path, input_file):
        failing = FailingTranslatorBuilder(ok=0)
        sinks = FakeSinkBuilder()
        pipeline = TranslationPipeline(
            parser=FakeParser([Section.of("a.")]),
            translator_builder=failing,
            generator_builder=sinks,
        )

        with pytest.raises(RemoteApiError):
            pipeline.run(input_file, tmp_path / "out.md", EN_FR)

        assert not sinks.sink.finalized
        assert sinks.sink.closed


class TestAssistantPipeline:
    """The pipeline driving a real session over a fake endpoint."""

    def test_end_to_end_with_session(self, tmp_path, input_file, fast_policy, sleeps):
        endpoint = FakeEndpoint()
        builder = AssistantSessionBuilder(endpoint, model="gpt-4o", policy=fast_policy, sleep=sleeps.append)
        sinks = FakeSinkBuilder()
        pipeline = TranslationPipeline(
            parser=FakeParser([Section.of("One.", "Two."), Section.of("Three.")]),
            translator_builder=builder,
            generator_builder=sinks,
        )

        pipeline.run(input_file, tmp_path / "out.md", EN_FR)

        assert sinks.sink.written == [Section.of("<One.>", "<Two.>"), Section.of("<Three.>")]
        assert len(endpoint.conversations) == 1
        assert [text for _, text in endpoint.posted] == ["One.", "Two.", "Three."]


class TestMarkdownRoundTrip:
    """End-to-end runs through the real parser and generator on markdown."""

    def test_translate_markdown(self, tmp_path):
        source = tmp_path / "story.md"
        source.write_text("Hello world.\nIt is fine.\n\nSecond paragraph.\n", encoding="utf-8")
        output = tmp_path / "story_fr.md"

        translate_document(source, output, EN_FR, backend="dummy")

        assert output.read_text(encoding="utf-8") == (
            "[TRANSLATED] Hello world. It is fine.\n\n"
            "[TRANSLATED] Second paragraph.\n\n"
        )
        assert (tmp_path / "story_fr.sqlite").exists()

    def test_existing_output_needs_continue(self, tmp_path):
        source = tmp_path / "story.md"
        source.write_text("Hello world.\n", encoding="utf-8")
        output = tmp_path / "story_fr.md"
        output.write_text("Bonjour le monde.\n", encoding="utf-8")

        with pytest.raises(FileExistsError):
            translate_document(source, output, EN_FR, backend="dummy")

        assert output.read_text(encoding="utf-8") == "Bonjour le monde.\n"

    def test_continue_reuses_partial_output(self, tmp_path):
        source = tmp_path / "story.md"
        source.write_text("Hello world.\n\nSecond paragraph.\n\nThird one.\n", encoding="utf-8")
        output = tmp_path / "story_fr.md"
        output.write_text("Bonjour le monde.\n\nDeuxième paragraphe.\n\n", encoding="utf-8")
        config = TranslationConfig(src_lang="en", dst_lang="fr", continue_translation=True)

        result = translate_document(source, output, config, backend="dummy")

        assert result.reused_sections == 2
        assert result.translated_sections == 1
        assert output.read_text(encoding="utf-8") == (
            "Bonjour le monde.\n\n"
            "Deuxième paragraphe.\n\n"
            "[TRANSLATED] Third one.\n\n"
        )

    def test_continue_without_partial_starts_fresh(self, tmp_path):
        source = tmp_path / "story.md"
        source.write_text("Hello world.\n", encoding="utf-8")
        output = tmp_path / "story_fr.md"
        config = TranslationConfig(continue_translation=True)

        translate_document(source, output, config, backend="dummy")

        assert output.read_text(encoding="utf-8") == "[TRANSLATED] Hello world.\n\n"

    @pytest.mark.parametrize("output_name", ["book.txt", "book.docx", "book.md"])
    def test_partial_output_cannot_be_the_input(self, tmp_path, output_name):
        """An output whose partial markdown is the input file is rejected up front."""
        source = tmp_path / "book.md"
        source.write_text("Hello world.\n\nSecond one.\n", encoding="utf-8")
        config = TranslationConfig(src_lang="en", dst_lang="fr", continue_translation=True)

        with pytest.raises(OutputConflictError):
            translate_document(source, tmp_path / output_name, config, backend="dummy")

        assert source.read_text(encoding="utf-8") == "Hello world.\n\nSecond one.\n"
        assert not (tmp_path / "book.sqlite").exists()

    def test_conflict_is_checked_before_any_work(self, tmp_path):
        source = tmp_path / "book.md"
        source.write_text("Hello world.\n", encoding="utf-8")
        pipeline, translators, sinks = make_pipeline([Section.of("Hello world.")])

        with pytest.raises(OutputConflictError):
            pipeline.run(source, tmp_path / "book.html", EN_FR)

        assert sinks.builds == []
        assert translators.built == []
