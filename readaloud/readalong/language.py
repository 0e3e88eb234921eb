"""
Language and Timing Heuristics

Pure functions used when building utterances: a two-language
bag-of-words detector and an advisory per-word timing estimate.
"""

import re
from typing import List

ENGLISH = "en-US"
DUTCH = "nl-NL"

ENGLISH_WORDS = frozenset({
    "the", "and", "or", "but", "in", "on", "at", "to", "for", "of", "with",
    "by", "is", "are", "was", "were", "be", "been", "have", "has", "had",
    "do", "does", "did", "will", "would", "could", "should", "may", "might",
    "can", "must", "shall",
})

DUTCH_WORDS = frozenset({
    "de", "het", "een", "en", "van", "in", "op", "aan", "voor", "met",
    "door", "bij", "is", "zijn", "was", "waren", "worden", "hebben", "heeft",
    "had", "doen", "doet", "deed", "zal", "zou", "kon", "moet", "mag", "kan",
})

# ~200 words per minute at rate 1.0
BASE_WORD_MS = 300.0


def detect_language(text: str) -> str:
    """
    Guess whether a sentence is English or Dutch.

    Counts tokens found in each closed word list. English needs a
    strictly higher count; ties (including no hits) default to Dutch.
    """
    english = 0
    dutch = 0
    for word in text.lower().split():
        if word in ENGLISH_WORDS:
            english += 1
        if word in DUTCH_WORDS:
            dutch += 1

    return ENGLISH if english > dutch else DUTCH


def _word_duration(word: str, base: float) -> float:
    duration = base

    # Longer words take more time
    if len(word) > 6:
        duration *= 1.2
    elif len(word) < 3:
        duration *= 0.8

    # Punctuation adds a pause
    if re.search(r"[.!?]$", word):
        duration *= 1.5
    elif re.search(r"[,;:]$", word):
        duration *= 1.2

    return duration


def estimate_word_timings(text: str, rate: float = 1.0) -> List[float]:
    """
    Estimate the start offset of each word in milliseconds.

    Args:
        text: Sentence text
        rate: Speech rate multiplier (1.0 = normal)

    Returns:
        One start offset per whitespace-separated word
    """
    if rate <= 0:
        raise ValueError(f"rate must be positive, got {rate}")

    base = BASE_WORD_MS / rate
    timings: List[float] = []
    current = 0.0

    for word in text.split():
        timings.append(current)
        current += _word_duration(word, base)

    return timings


def estimate_duration(text: str, rate: float = 1.0) -> float:
    """Estimated total speaking time of ``text`` in milliseconds."""
    if rate <= 0:
        raise ValueError(f"rate must be positive, got {rate}")

    base = BASE_WORD_MS / rate
    return sum(_word_duration(word, base) for word in text.split())
