"""
Rendering module for writing translated documents.

Translated sections are appended to a markdown file next to the output as
they arrive, so an interrupted run leaves a partial translation that a
later run can continue from. Finalizing converts the markdown to the
output format.
"""

from rosetta.render.pandoc import (
    OUTPUT_FORMATS,
    OutputSink,
    OutputSinkBuilder,
    PandocGenerator,
    PandocGeneratorBuilder,
    cache_path,
    partial_path,
)

__all__ = [
    "OUTPUT_FORMATS",
    "OutputSink",
    "OutputSinkBuilder",
    "PandocGenerator",
    "PandocGeneratorBuilder",
    "cache_path",
    "partial_path",
]
