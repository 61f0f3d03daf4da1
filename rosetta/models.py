"""
Core data models for Rosetta.

Design Philosophy:
- Immutable: text fragments, sections and configuration are frozen
  dataclasses, so they can be shared between the pipeline thread and a UI
- Structural equality: two subsections with the same text are the same
  subsection, which is what the cache relies on
- Order is the only guarantee: a document is a list of sections in source
  order, and a section is a tuple of subsections in split order
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Iterable, Iterator, Union


@dataclass(frozen=True)
class Subsection:
    """An atomic unit of translation (one conversation turn)."""
    text: str

    def __str__(self) -> str:
        return self.text

    def __len__(self) -> int:
        return len(self.text)


@dataclass(frozen=True)
class Section:
    """An ordered group of subsections derived from one paragraph.

    Sections produced by the segmenter are never empty; an empty section is
    only ever seen transiently while a translator assembles its output.
    """
    subsections: tuple[Subsection, ...] = ()

    @classmethod
    def of(cls, *texts: str) -> Section:
        return cls(tuple(Subsection(t) for t in texts))

    @classmethod
    def from_subsections(cls, subsections: Iterable[Subsection]) -> Section:
        return cls(tuple(subsections))

    @property
    def texts(self) -> list[str]:
        return [s.text for s in self.subsections]

    def __len__(self) -> int:
        return len(self.subsections)

    def __iter__(self) -> Iterator[Subsection]:
        return iter(self.subsections)

    def __getitem__(self, index: int) -> Subsection:
        return self.subsections[index]

    def to_markdown(self) -> str:
        """Render as the partial-output markdown paragraph."""
        return "\n".join(self.texts)


@dataclass(frozen=True)
class LanguagePair:
    """Normalized (source, destination) language pair.

    Languages are trimmed and case-folded on construction, so pairs that
    differ only in case or surrounding whitespace compare equal.
    """
    source: str
    destination: str

    def __post_init__(self):
        object.__setattr__(self, "source", self.source.strip().casefold())
        object.__setattr__(self, "destination", self.destination.strip().casefold())

    def __str__(self) -> str:
        return f"{self.source}->{self.destination}"


@dataclass(frozen=True)
class TranslationConfig:
    """Settings for one translation run. Never mutated during the run."""
    src_lang: str = "English"
    dst_lang: str = "Russian"
    subject: str = "Unknown"
    tone: str = "formal"
    additional_instructions: str = ""
    max_section_len: int = 5000
    continue_translation: bool = False

    @property
    def language_pair(self) -> LanguagePair:
        return LanguagePair(self.src_lang, self.dst_lang)

    def to_dict(self) -> dict:
        """Serialize config for logging/debugging."""
        return {
            "src_lang": self.src_lang,
            "dst_lang": self.dst_lang,
            "subject": self.subject,
            "tone": self.tone,
            "additional_instructions": self.additional_instructions,
            "max_section_len": self.max_section_len,
            "continue_translation": self.continue_translation,
        }


@dataclass(frozen=True)
class Progress:
    """How many sections of the document are done."""
    processed_sections: int
    total_sections: int


ProgressCallback = Callable[[Progress], None]


def ignore_progress(progress: Progress) -> None:
    pass


# ============================================================================
# Front-end status stream
# ============================================================================

@dataclass(frozen=True)
class Started:
    pass


@dataclass(frozen=True)
class InProgress:
    progress: Progress


@dataclass(frozen=True)
class Succeeded:
    pass


@dataclass(frozen=True)
class Failed:
    error: BaseException = field(compare=False)

    @property
    def message(self) -> str:
        return str(self.error) or self.error.__class__.__name__


TranslationStatus = Union[Started, InProgress, Succeeded, Failed]
