"""
Translation backends.

- base: Translator / TranslatorBuilder interfaces, the dummy backend and
  the backend factory
- session: conversational session over an assistant Endpoint
- endpoint: the remote endpoint interface and its value types
- openai_assistants: Endpoint backed by the OpenAI Assistants API
- retry: retry policy, sequential-error budget and backoff
"""

from rosetta.translate.base import (
    DummyTranslator,
    Translator,
    TranslatorBuilder,
    create_translator_builder,
)
from rosetta.translate.retry import RetryPolicy

__all__ = [
    "DummyTranslator",
    "RetryPolicy",
    "Translator",
    "TranslatorBuilder",
    "create_translator_builder",
]
