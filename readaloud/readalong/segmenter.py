"""
Sentence Boundary Segmenter

Groups positioned text fragments into sentences in reading order.
This is the single source of truth for sentence boundaries: highlighting,
speech and auto-scroll all index into its output.
"""

import re
from dataclasses import dataclass, field
from typing import Iterable, Iterator, List, Optional

from readaloud.readalong.fragments import Sentence, TextFragment


# Period, whitespace, capital letter: the start of a new sentence
_PERIOD_BOUNDARY = re.compile(r"\.\s+[A-Z]")
_TERMINAL = re.compile(r"[.!?]$")


@dataclass
class _Buffer:
    """Fragments waiting to be closed into a sentence."""

    fragments: List[TextFragment] = field(default_factory=list)
    text: str = ""
    # Leading characters of ``text`` owned by an already emitted fragment
    carry: int = 0

    def append(self, fragment: TextFragment) -> None:
        self.fragments.append(fragment)
        piece = fragment.text.strip()
        self.text = f"{self.text} {piece}" if self.text else piece


class SentenceSegmenter:
    """
    Heuristic sentence segmenter over text fragments.

    Handles:
    - Periods followed by a capitalised word
    - Terminal . ! ? at the end of the accumulated text
    - Abbreviations (Dr., Inc., U.S., e.g., months)
    - Initials (single capital letter before the period)
    """

    # Stems compared against the text right before a period
    ABBREVIATIONS = (
        "Dr", "Mr", "Mrs", "Ms", "Prof",
        "Inc", "Ltd", "Corp", "Co",
        "U.S", "U.K", "etc", "vs", "i.e", "e.g", "a.m", "p.m",
        "Jan", "Feb", "Mar", "Apr", "Jun", "Jul", "Aug",
        "Sep", "Oct", "Nov", "Dec",
    )

    LOOKBEHIND = 10

    def segment(self, fragments: Iterable[TextFragment]) -> List[Sentence]:
        """
        Split a fragment stream into sentences.

        Args:
            fragments: Fragments in natural reading order

        Returns:
            List of Sentence objects; blank fragments are dropped
        """
        return list(self.iter_sentences(fragments))

    def iter_sentences(self, fragments: Iterable[TextFragment]) -> Iterator[Sentence]:
        """Generator version of segment."""
        buffer = _Buffer()

        for fragment in fragments:
            if fragment.is_blank:
                continue

            buffer.append(fragment)

            while True:
                sentence = self._close_sentence(buffer)
                if sentence is None:
                    break
                yield sentence

        # Whatever is left has no ending punctuation; emit it as is
        if buffer.fragments and buffer.text.strip():
            yield Sentence(text=buffer.text.strip(), fragments=tuple(buffer.fragments))

    def _close_sentence(self, buffer: _Buffer) -> Optional[Sentence]:
        """Emit the first sentence the buffer can close, updating it in place."""
        for end in self._candidate_endings(buffer.text):
            sentence_text = buffer.text[:end].strip()
            count = self._fragments_for_sentence(len(sentence_text), buffer)
            if count == 0:
                continue

            remaining_text = buffer.text[end:].strip()
            remaining = buffer.fragments[count:]
            if remaining_text and not remaining:
                # The boundary splits the last fragment; fragments are atomic
                continue

            sentence = Sentence(text=sentence_text, fragments=tuple(buffer.fragments[:count]))

            joined_rest = " ".join(f.text.strip() for f in remaining)
            buffer.fragments = list(remaining)
            buffer.text = remaining_text
            buffer.carry = max(0, len(remaining_text) - len(joined_rest) - 1)
            return sentence

        return None

    def _candidate_endings(self, text: str) -> Iterator[int]:
        """Yield end offsets (just past the punctuation) of sentence endings."""
        for match in _PERIOD_BOUNDARY.finditer(text):
            period = match.start()
            if not self.is_abbreviation(text, period):
                yield period + 1

        terminal = _TERMINAL.search(text)
        if terminal:
            punct = terminal.start()
            if text[punct] != "." or not self.is_abbreviation(text, punct):
                yield punct + 1

    def is_abbreviation(self, text: str, period_index: int) -> bool:
        """Check whether the period at ``period_index`` ends an abbreviation."""
        before = text[max(0, period_index - self.LOOKBEHIND):period_index]

        if before.endswith(self.ABBREVIATIONS):
            return True

        # Lowercase right after the period, as in "e.g.x" or "a.m.o"
        after = text[period_index + 1:period_index + 2]
        if after.islower():
            return True

        # Initials: a lone capital letter before the period ("U.", "J.")
        if before and before[-1].isupper():
            preceding = before[-2] if len(before) > 1 else ""
            if not preceding.isalpha():
                return True

        return False

    def _fragments_for_sentence(self, target_length: int, buffer: _Buffer) -> int:
        """Number of leading fragments whose joined length covers the sentence."""
        current = buffer.carry
        if current >= target_length:
            return 0

        for i, fragment in enumerate(buffer.fragments):
            if current > 0:
                current += 1
            current += len(fragment.text.strip())
            if current >= target_length:
                return i + 1

        return len(buffer.fragments)


def segment(fragments: Iterable[TextFragment]) -> List[Sentence]:
    """
    Convenience function to segment fragments into sentences.

    Args:
        fragments: Fragments in reading order

    Returns:
        List of Sentence objects
    """
    return SentenceSegmenter().segment(fragments)
