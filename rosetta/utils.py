"""
Utility functions used across the pipeline, the session and the CLI.

Functions:
    truncate: Shorten text for log output
    first_line: First line of a text, shortened for log output
    default_output_path: Output path suggested for an input file
"""

from pathlib import Path

# Longest source/translation excerpt written to the log
MAX_LOG_SRC_LEN = 100


def truncate(text: str, max_len: int = MAX_LOG_SRC_LEN) -> str:
    """
    Shorten text to at most ``max_len`` characters.

    Example:
        >>> truncate("abcdef", 3)
        'abc'
    """
    return text[:max_len] if len(text) > max_len else text


def first_line(text: str, max_len: int = MAX_LOG_SRC_LEN) -> str:
    lines = text.strip().splitlines()
    return truncate(lines[0] if lines else "", max_len)


def default_output_path(input_path: Path) -> Path:
    """
    Suggest an output path next to the input.

    Example:
        >>> default_output_path(Path("books/novel.docx"))
        PosixPath('books/novel_translated.docx')
    """
    return input_path.with_name(f"{input_path.stem}_translated{input_path.suffix}")
