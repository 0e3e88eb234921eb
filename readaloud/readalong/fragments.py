"""
Fragment and Sentence Data Model

Positioned text fragments as produced by extraction, and the sentences
built from them by the segmenter or the aligner.
"""

from dataclasses import dataclass, field
from typing import List, Sequence, Tuple


@dataclass(frozen=True)
class TextFragment:
    """Smallest positioned unit of extracted text.

    Box values are percentages of the page box, so highlights survive
    zooming and re-rendering.
    """

    text: str
    page: int
    left: float = 0.0
    top: float = 0.0
    width: float = 0.0
    height: float = 0.0

    @property
    def stripped(self) -> str:
        return self.text.strip()

    @property
    def is_blank(self) -> bool:
        return not self.text.strip()

    @property
    def bottom(self) -> float:
        return self.top + self.height

    @property
    def right(self) -> float:
        return self.left + self.width

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON export."""
        return {
            "text": self.text,
            "page": self.page,
            "left": round(self.left, 3),
            "top": round(self.top, 3),
            "width": round(self.width, 3),
            "height": round(self.height, 3),
        }


@dataclass(frozen=True)
class Sentence:
    """A sentence with the fragments it was built from."""

    text: str
    fragments: Tuple[TextFragment, ...]
    page: int = field(default=0)

    def __post_init__(self):
        if not self.fragments:
            raise ValueError("Sentence requires at least one fragment")
        # Tuples keep the sentence hashable and immutable
        object.__setattr__(self, "fragments", tuple(self.fragments))
        object.__setattr__(self, "page", self.fragments[0].page)

    @property
    def joined_text(self) -> str:
        """Fragment texts joined with single spaces."""
        return " ".join(fragment.text for fragment in self.fragments).strip()

    @property
    def pages(self) -> List[int]:
        """Distinct pages touched by the sentence, in reading order."""
        seen: List[int] = []
        for fragment in self.fragments:
            if fragment.page not in seen:
                seen.append(fragment.page)
        return seen

    def to_dict(self) -> dict:
        return {
            "text": self.text,
            "page": self.page,
            "fragments": [fragment.to_dict() for fragment in self.fragments],
        }


@dataclass(frozen=True)
class ValidationReport:
    """Structured result of a consistency check."""

    is_valid: bool
    issues: List[str] = field(default_factory=list)


def validate_sentences(sentences: Sequence[Sentence]) -> ValidationReport:
    """
    Check that sentences are well formed.

    Reports empty text and text that diverges from the joined fragment
    text. Divergence is expected with noisy extraction, so nothing is
    raised; callers decide what to do with the issues.
    """
    issues: List[str] = []

    for i, sentence in enumerate(sentences):
        if not sentence.text.strip():
            issues.append(f"Sentence {i} has empty text")

        combined = sentence.joined_text
        if combined != sentence.text:
            issues.append(
                f'Sentence {i} text mismatch: "{sentence.text}" vs "{combined}"'
            )

    return ValidationReport(is_valid=not issues, issues=issues)
