"""
Sentence Splitter and Fragment Aligner

Splits free text into sentences and re-attaches them to positioned
fragments by word matching. Used when sentence strings come from a
different source than the fragment stream (for example a cleaned text
export of the same document).
"""

import re
from dataclasses import dataclass, field
from typing import List, Sequence, Union

from readaloud.readalong.fragments import Sentence, TextFragment


_PUNCTUATION_SPLIT = re.compile(r"([.!?]+)")
_PUNCTUATION_ONLY = re.compile(r"^[.!?]+$")
_ENDING_PUNCTUATION = re.compile(r"[.!?]$")
_NON_WORD = re.compile(r"[^\w\s]")

# Extra words the sequential fallback may take past the sentence length
FALLBACK_SLACK = 2


@dataclass(frozen=True)
class ProcessedSentence:
    """A sentence string with the metadata the aligner needs."""

    text: str
    original_text: str
    word_count: int
    has_ending_punctuation: bool


@dataclass
class MatchResult:
    """Fragments consumed for one sentence and where the next scan resumes."""

    matched: List[TextFragment] = field(default_factory=list)
    next_index: int = 0


@dataclass(frozen=True)
class AlignmentReport:
    """Confidence that a sentence and its fragments describe the same text."""

    is_valid: bool
    confidence: float
    issues: List[str] = field(default_factory=list)


def process_sentence(sentence: str) -> ProcessedSentence:
    """Normalize a single sentence and compute its metadata."""
    normalized = re.sub(r"\s+", " ", sentence).strip()
    return ProcessedSentence(
        text=normalized,
        original_text=sentence,
        word_count=len(normalized.split()),
        has_ending_punctuation=bool(_ENDING_PUNCTUATION.search(normalized)),
    )


def split_sentences(text: str) -> List[ProcessedSentence]:
    """
    Split text into sentences, keeping punctuation on the sentence it ends.

    Args:
        text: Free text, possibly spanning several lines and paragraphs

    Returns:
        List of ProcessedSentence objects
    """
    if not text or not text.strip():
        return []

    normalized = re.sub(r"\n\s*\n", "\n", text)
    normalized = re.sub(r"\s+", " ", normalized).strip()

    sentences: List[ProcessedSentence] = []
    current = ""

    for part in _PUNCTUATION_SPLIT.split(normalized):
        part = part.strip()
        if not part:
            continue

        if _PUNCTUATION_ONLY.match(part):
            current += part
            if current.strip():
                processed = process_sentence(current.strip())
                if processed.word_count > 0:
                    sentences.append(processed)
            current = ""
        else:
            current += part

    # Trailing text without ending punctuation
    if current.strip():
        processed = process_sentence(current.strip())
        if processed.word_count > 0:
            sentences.append(processed)

    return sentences


def match_fragments(
    sentence: ProcessedSentence,
    fragments: Sequence[TextFragment],
    start_index: int = 0,
) -> MatchResult:
    """
    Match a sentence against fragments, word by word, from ``start_index``.

    Each fragment is consumed if one of its words equals the next unmatched
    sentence word (case-insensitive). Fragments are skipped until the first
    hit; after that the first miss closes the sentence.
    """
    sentence_words = sentence.text.lower().split()
    matched: List[TextFragment] = []
    word_index = 0
    index = start_index

    while index < len(fragments) and word_index < len(sentence_words):
        fragment = fragments[index]
        fragment_words = fragment.text.lower().split()

        if sentence_words[word_index] in fragment_words:
            matched.append(fragment)
            word_index += 1
        elif matched:
            # Already inside the sentence: a miss means it ended here
            break

        index += 1

    return MatchResult(matched=matched, next_index=index)


def _as_processed(sentence: Union[str, ProcessedSentence]) -> ProcessedSentence:
    if isinstance(sentence, ProcessedSentence):
        return sentence
    return process_sentence(sentence)


def align_all(
    fragments: Sequence[TextFragment],
    sentences: Sequence[Union[str, ProcessedSentence]],
) -> List[Sentence]:
    """
    Attach each sentence to the fragments that carry its words.

    Sentences that match nothing fall back to sequential consumption by
    word count, so a total mismatch still moves forward through the
    fragments. Sentences left without any fragment are dropped.
    """
    result: List[Sentence] = []
    index = 0

    for item in sentences:
        sentence = _as_processed(item)
        match = match_fragments(sentence, fragments, index)

        if match.matched:
            result.append(Sentence(text=sentence.text, fragments=tuple(match.matched)))
            index = match.next_index
            continue

        taken: List[TextFragment] = []
        words_collected = 0
        target = sentence.word_count

        while index < len(fragments) and words_collected < target + FALLBACK_SLACK:
            fragment = fragments[index]
            taken.append(fragment)
            words_collected += len(fragment.text.split())
            index += 1

            if words_collected >= target:
                break

        if taken:
            result.append(Sentence(text=sentence.text, fragments=tuple(taken)))

    return result


def _clean(text: str) -> str:
    return _NON_WORD.sub("", text.lower())


def validate_alignment(
    sentence: Union[str, ProcessedSentence],
    fragments: Sequence[TextFragment],
) -> AlignmentReport:
    """
    Score how well a sentence matches its fragments.

    Any word-count difference is reported; it only costs confidence
    beyond the two-word slack the aligner allows.
    """
    sentence = _as_processed(sentence)
    issues: List[str] = []
    confidence = 1.0

    sentence_words = len(sentence.text.split())
    fragment_words = sum(len(f.text.split()) for f in fragments)

    difference = abs(sentence_words - fragment_words)
    if difference:
        issues.append(
            f"Word count mismatch: sentence has {sentence_words} words, "
            f"text items have {fragment_words}"
        )
        if difference > FALLBACK_SLACK:
            confidence -= 0.3

    sentence_text = _clean(sentence.text)
    fragment_text = " ".join(_clean(f.text) for f in fragments)

    if fragment_text[:20] not in sentence_text:
        issues.append("Text content doesn't match between sentence and text items")
        confidence -= 0.5

    return AlignmentReport(
        is_valid=confidence > 0.5,
        confidence=round(confidence, 6),
        issues=issues,
    )
