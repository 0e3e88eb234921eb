"""
Fragment Navigation

Hit-testing of positioned fragments and the lookups behind
click-to-read: find the sentence under the pointer and start reading
from the clicked fragment.
"""

from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from readaloud.readalong.fragments import Sentence, TextFragment

# Coordinate tolerance, in percent of the page box
POSITION_TOLERANCE = 0.1


@dataclass(frozen=True)
class HighlightBox:
    """A rectangle for a renderer to paint, in page percentages."""

    page: int
    x: float
    y: float
    width: float
    height: float


def fragments_at(
    x: float,
    y: float,
    fragments: Sequence[TextFragment],
    page: int,
    width: float,
    height: float,
) -> List[TextFragment]:
    """
    Fragments on ``page`` whose box contains a pointer position.

    Args:
        x: Pointer x in container pixels
        y: Pointer y in container pixels
        fragments: Candidate fragments
        page: Page the pointer is over
        width: Container width in pixels
        height: Container height in pixels

    Returns:
        Matching fragments in their original order
    """
    if width <= 0 or height <= 0:
        return []

    x_percent = x / width * 100
    y_percent = y / height * 100

    return [
        f
        for f in fragments
        if f.page == page
        and f.left <= x_percent <= f.right
        and f.top <= y_percent <= f.bottom
    ]


def same_fragment(a: TextFragment, b: TextFragment) -> bool:
    """Equal text and page, with positions equal within the tolerance."""
    return (
        a.text == b.text
        and a.page == b.page
        and abs(a.left - b.left) < POSITION_TOLERANCE
        and abs(a.top - b.top) < POSITION_TOLERANCE
    )


def find_sentence_containing(
    fragment: TextFragment,
    sentences: Sequence[Sentence],
) -> Optional[Tuple[int, Sentence]]:
    """Return ``(index, sentence)`` for the first sentence holding ``fragment``."""
    for index, sentence in enumerate(sentences):
        if any(same_fragment(item, fragment) for item in sentence.fragments):
            return index, sentence
    return None


def sentence_from_fragment(fragment: TextFragment, sentence: Sentence) -> Optional[Sentence]:
    """
    Cut ``sentence`` so it starts at ``fragment``.

    Used to start reading in the middle of a sentence. Returns None if the
    fragment is not part of the sentence.
    """
    for position, item in enumerate(sentence.fragments):
        if same_fragment(item, fragment):
            remaining = sentence.fragments[position:]
            text = " ".join(f.text for f in remaining).strip()
            return Sentence(text=text, fragments=remaining)
    return None


def highlight_boxes(sentence: Sentence, offset: float = 0.2) -> List[HighlightBox]:
    """
    Rectangles covering a sentence, one per fragment.

    Fragment boxes sit slightly above the glyphs as rendered, so each box is
    moved down by ``offset`` times its height.
    """
    return [
        HighlightBox(
            page=f.page,
            x=f.left,
            y=f.top + f.height * offset,
            width=f.width,
            height=f.height,
        )
        for f in sentence.fragments
    ]
