"""
Ingestion module for reading source documents.

This module provides:
- Conversion of any pandoc-readable document to markdown
- Segmentation of the markdown into length-bounded sections
"""

from rosetta.ingest.pandoc import (
    SUPPORTED_FORMATS,
    PandocParser,
    Parser,
    input_format,
    to_markdown,
)

__all__ = [
    "SUPPORTED_FORMATS",
    "PandocParser",
    "Parser",
    "input_format",
    "to_markdown",
]
