"""
Persistent translation cache.

Every subsection the remote translator returns is stored in a SQLite file
next to the output, keyed by the normalized language pair and the exact
source text. A run that crashed or was stopped can then be restarted
without paying for the same translations again.

The first translation stored for a source text wins: inserting the same
source text again for the same language pair is a no-op.

Usage:
    with TranslationCache(Path("book.sqlite"), "English", "French") as cache:
        cache.insert(Subsection("Hi."), Subsection("Salut."))
        cache.get(Subsection("Hi."))  # -> Subsection("Salut.")
"""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path

from rosetta.errors import CacheError
from rosetta.models import LanguagePair, Subsection

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS translated (
    id           INTEGER PRIMARY KEY AUTOINCREMENT,
    src_section  TEXT NOT NULL,
    dst_section  TEXT NOT NULL,
    src_lang_lc  TEXT NOT NULL,
    dst_lang_lc  TEXT NOT NULL
);
CREATE UNIQUE INDEX IF NOT EXISTS translated_src
    ON translated (src_section, src_lang_lc, dst_lang_lc);
"""


class TranslationCache:
    """SQLite-backed memo of subsection translations.

    The cache is bound to one language pair at construction; the
    ``*_for`` methods take an explicit pair for callers that need another
    partition of the same file.
    """

    def __init__(self, db_path: Path | str, src_lang: str, dst_lang: str):
        self.db_path = Path(db_path)
        self.pair = LanguagePair(src_lang, dst_lang)
        try:
            self._conn = sqlite3.connect(self.db_path)
            self._conn.executescript(SCHEMA)
            self._conn.commit()
        except sqlite3.Error as e:
            raise CacheError(f"Cannot open translation cache {self.db_path}: {e}") from e
        logger.debug("Opened translation cache %s for %s", self.db_path, self.pair)

    def get(self, src: Subsection) -> Subsection | None:
        return self.get_for(self.pair, src)

    def insert(self, src: Subsection, dst: Subsection) -> None:
        """Store a translation unless one is already cached for ``src``."""
        self.insert_for(self.pair, src, dst)

    def get_for(self, pair: LanguagePair, src: Subsection) -> Subsection | None:
        try:
            row = self._conn.execute(
                """
                SELECT dst_section
                FROM translated
                WHERE src_section = ?
                  AND src_lang_lc = ?
                  AND dst_lang_lc = ?
                """,
                (src.text, pair.source, pair.destination),
            ).fetchone()
        except sqlite3.Error as e:
            raise CacheError(f"Cache lookup failed: {e}") from e
        return Subsection(row[0]) if row else None

    def insert_for(self, pair: LanguagePair, src: Subsection, dst: Subsection) -> None:
        try:
            with self._conn:
                self._conn.execute(
                    """
                    INSERT OR IGNORE INTO translated (src_section, dst_section, src_lang_lc, dst_lang_lc)
                    VALUES (?, ?, ?, ?)
                    """,
                    (src.text, dst.text, pair.source, pair.destination),
                )
        except sqlite3.Error as e:
            raise CacheError(f"Cache insert failed: {e}") from e

    def __len__(self) -> int:
        try:
            row = self._conn.execute(
                "SELECT COUNT(*) FROM translated WHERE src_lang_lc = ? AND dst_lang_lc = ?",
                (self.pair.source, self.pair.destination),
            ).fetchone()
        except sqlite3.Error as e:
            raise CacheError(f"Cache count failed: {e}") from e
        return row[0]

    def close(self) -> None:
        self._conn.close()

    def __enter__(self) -> TranslationCache:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
