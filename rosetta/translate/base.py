"""
Base translator interface and implementations.

This module defines:
- Translator: a live translation session, used once per pipeline run
- TranslatorBuilder: opens a Translator for a TranslationConfig
- DummyTranslator for testing (echo or simple transformations)
- create_translator_builder: factory by backend name

Design Philosophy:
- A Translator is stateful: it owns a remote conversation, so sections must
  be sent in document order and the session closed when the run ends
- Translators are context managers; ``close`` is best-effort and never
  raises
- The pipeline only sees these two interfaces, so fakes can be injected
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from typing import Optional

from rosetta.models import Section, Subsection, TranslationConfig


class Translator(ABC):
    """A translation session.

    ``translate_section`` returns a section with exactly one translated
    subsection per source subsection, in the same order.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Return the translator name (e.g., 'openai-gpt-4o', 'dummy-echo')."""
        pass

    @abstractmethod
    def translate_section(self, section: Section) -> Section:
        pass

    def close(self) -> None:
        """Release remote resources. Must not raise or block."""

    def __enter__(self) -> Translator:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class TranslatorBuilder(ABC):
    """Opens a Translator configured for one run."""

    @abstractmethod
    def build(self, config: TranslationConfig) -> Translator:
        pass


class DummyTranslator(Translator):
    """A dummy translator for testing.

    Modes:
    - 'echo': Return the input unchanged
    - 'upper': Return uppercase version
    - 'prefix': Add [TRANSLATED] prefix
    - 'reverse': Reverse the text (for debugging)
    """

    def __init__(self, mode: str = "prefix"):
        self.mode = mode
        self.translated: list[Section] = []
        self.closed = False

    @property
    def name(self) -> str:
        return f"dummy-{self.mode}"

    def _transform(self, text: str) -> str:
        if self.mode == "echo":
            return text
        elif self.mode == "upper":
            return text.upper()
        elif self.mode == "reverse":
            return text[::-1]
        else:  # prefix
            return f"[TRANSLATED] {text}"

    def translate_section(self, section: Section) -> Section:
        self.translated.append(section)
        return Section.from_subsections(Subsection(self._transform(s.text)) for s in section)

    def close(self) -> None:
        self.closed = True


class DummyTranslatorBuilder(TranslatorBuilder):
    def __init__(self, mode: str = "prefix"):
        self.mode = mode
        self.built: list[DummyTranslator] = []

    def build(self, config: TranslationConfig) -> DummyTranslator:
        translator = DummyTranslator(self.mode)
        self.built.append(translator)
        return translator


def create_translator_builder(
    backend: str,
    settings=None,
    api_key: Optional[str] = None,
    cancel_event: Optional[threading.Event] = None,
    **kwargs,
) -> TranslatorBuilder:
    """Factory function to create a translator builder by name.

    Args:
        backend: Backend name ('openai', 'dummy', ...)
        settings: ``rosetta.config.Settings``; loaded from disk if None
        api_key: API key, overriding the key manager lookup
        cancel_event: Cancellation token shared with the pipeline
        **kwargs: Backend-specific arguments (``mode`` for dummy, ``model``)

    Supported backends and aliases:
        - openai, gpt, assistants: OpenAI Assistants conversation session
        - dummy, echo, test: Offline transformation (useful for pipeline testing)
    """
    backend_lower = backend.lower().replace("_", "-")

    if backend_lower in ("dummy", "echo", "test"):
        mode = kwargs.get("mode", "echo" if backend_lower == "echo" else "prefix")
        return DummyTranslatorBuilder(mode=mode)

    elif backend_lower in ("openai", "gpt", "assistants"):
        from rosetta.config import load_settings
        from rosetta.keys import KeyManager
        from rosetta.translate.openai_assistants import OpenAIAssistantsEndpoint
        from rosetta.translate.session import AssistantSessionBuilder

        settings = settings or load_settings()
        key = api_key or KeyManager({"openai": settings.openai.api_key}).require_key("openai")
        endpoint = OpenAIAssistantsEndpoint(api_key=key, base_url=settings.openai.base_url)
        return AssistantSessionBuilder(
            endpoint,
            model=kwargs.get("model") or settings.openai.model,
            temperature=settings.openai.temperature,
            top_p=settings.openai.top_p,
            policy=settings.retry,
            cancel_event=cancel_event,
        )

    else:
        available = ["openai", "dummy"]
        raise ValueError(
            f"Unknown translator backend: {backend}. "
            f"Available backends: {', '.join(available)}"
        )
