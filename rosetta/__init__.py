"""
Rosetta: document translation through an LLM assistant

Translates whole documents (any format pandoc reads) paragraph by
paragraph, through one remote conversation per run.

Features:
1. Sentence-aware segmentation into length-bounded messages
2. Persistent translation cache next to the output
3. Resumable runs: a stopped translation continues where it left off
"""

__version__ = "0.2.0"

from rosetta.models import LanguagePair, Progress, Section, Subsection, TranslationConfig
from rosetta.pipeline import TranslationPipeline, translate_document

__all__ = [
    "LanguagePair",
    "Progress",
    "Section",
    "Subsection",
    "TranslationConfig",
    "TranslationPipeline",
    "translate_document",
]
