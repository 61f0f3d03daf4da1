"""
Length-bounded text segmentation.

Splits markdown text into sections (one per paragraph) and splits long
paragraphs further into subsections at sentence boundaries, so every piece
sent to the translator stays under a configured length.

Splitting rule:
    A paragraph longer than ``max_len`` is cut at the first sentence boundary
    found at or after ``max_len // 2``, which must also leave the head within
    ``max_len``. A sentence boundary is ``.``, ``!`` or ``?`` followed by
    whitespace and an uppercase letter. The cut goes right after the
    punctuation mark and both halves are trimmed. Starting the search at the
    midpoint keeps the pieces roughly balanced.

Example:
    >>> sections = segment("This is a test document, just like that. It has multiple sentences.", 60)
    >>> sections[0].texts
    ['This is a test document, just like that.', 'It has multiple sentences.']
"""

from __future__ import annotations

import re

from rosetta.errors import SegmentationError
from rosetta.models import Section, Subsection

PARAGRAPH_SEPARATOR = "\n\n"

# Punctuation and the whitespace after it; the uppercase check is done on
# the following character so that it covers every script str.isupper knows
SENTENCE_BREAK = re.compile(r"[.!?]\s+")

# A line opening one of these markdown blocks keeps its line break
BLOCK_START = re.compile(r"^\s*(?:[-*+]\s|\d+[.)]\s|\||#|>)")


def reflow(paragraph: str) -> str:
    """Join soft-wrapped lines of a paragraph with single spaces.

    Line breaks in front of list items, table rows, headings and block
    quotes are kept.
    """
    lines = [line.strip() for line in paragraph.split("\n")]
    lines = [line for line in lines if line]
    if not lines:
        return ""

    parts = [lines[0]]
    for line in lines[1:]:
        parts.append("\n" if BLOCK_START.match(line) else " ")
        parts.append(line)
    return "".join(parts)


def find_break(text: str, start: int) -> int | None:
    """Return the cut position (just after the punctuation) or None."""
    for match in SENTENCE_BREAK.finditer(text, start):
        following = match.end()
        if following < len(text) and text[following].isupper():
            return match.start() + 1
    return None


def split_paragraph(paragraph: str, max_len: int) -> list[Subsection]:
    """Split one trimmed paragraph into subsections of at most ``max_len``."""
    pieces: list[Subsection] = []
    rest = paragraph.strip()

    while len(rest) > max_len:
        cut = find_break(rest, max_len // 2)
        # A first boundary past max_len means every later one is too
        if cut is None or cut > max_len:
            raise SegmentationError(
                "Could not find a suitable break point to split a section",
                max_len=max_len,
                excerpt=rest[:80],
            )
        pieces.append(Subsection(rest[:cut].strip()))
        rest = rest[cut:].strip()

    if rest:
        pieces.append(Subsection(rest))
    return pieces


def segment(text: str, max_len: int, reflow_lines: bool = True) -> list[Section]:
    """Split text into ordered sections of length-bounded subsections.

    Args:
        text: Markdown or plain text; paragraphs are separated by blank lines
        max_len: Maximum subsection length in characters
        reflow_lines: Join soft-wrapped lines inside a paragraph first

    Returns:
        Sections in document order. Empty paragraphs produce no section.

    Raises:
        ValueError: If ``max_len`` is not positive
        SegmentationError: If a long paragraph has no usable sentence break
    """
    if max_len <= 0:
        raise ValueError(f"max_len must be positive, got {max_len}")

    text = text.replace("\r\n", "\n")
    sections: list[Section] = []

    for paragraph in text.split(PARAGRAPH_SEPARATOR):
        paragraph = reflow(paragraph) if reflow_lines else paragraph.strip()
        subsections = split_paragraph(paragraph, max_len)
        if subsections:
            sections.append(Section(tuple(subsections)))

    return sections
