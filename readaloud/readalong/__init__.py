"""
Read-Along Module

Sentence-level read-aloud with synchronized highlighting. Segments
positioned text fragments into sentences, speaks them one at a time
through a speech engine, and keeps highlight and viewport in step.
"""

from readaloud.readalong.fragments import (
    Sentence,
    TextFragment,
    ValidationReport,
    validate_sentences,
)
from readaloud.readalong.segmenter import SentenceSegmenter, segment
from readaloud.readalong.sentence_splitter import (
    AlignmentReport,
    ProcessedSentence,
    align_all,
    match_fragments,
    split_sentences,
    validate_alignment,
)
from readaloud.readalong.synchronizer import (
    SynchronizationConfig,
    SynchronizationState,
    Synchronizer,
    validate_synchronization,
)
from readaloud.readalong.language import detect_language, estimate_word_timings
from readaloud.readalong.engines import Pyttsx3Engine, SimulatedEngine, Utterance
from readaloud.readalong.speech_driver import SpeechDriver
from readaloud.readalong.auto_scroll import (
    AutoScrollPlanner,
    ScrollTarget,
    SmoothScrollConfig,
    TextPosition,
    animate_scroll_to,
    plan_scroll,
    position_of,
)
from readaloud.readalong.navigation import (
    find_sentence_containing,
    fragments_at,
    highlight_boxes,
    sentence_from_fragment,
)

__all__ = [
    "Sentence",
    "TextFragment",
    "ValidationReport",
    "validate_sentences",
    "SentenceSegmenter",
    "segment",
    "AlignmentReport",
    "ProcessedSentence",
    "align_all",
    "match_fragments",
    "split_sentences",
    "validate_alignment",
    "SynchronizationConfig",
    "SynchronizationState",
    "Synchronizer",
    "validate_synchronization",
    "detect_language",
    "estimate_word_timings",
    "Pyttsx3Engine",
    "SimulatedEngine",
    "Utterance",
    "SpeechDriver",
    "AutoScrollPlanner",
    "ScrollTarget",
    "SmoothScrollConfig",
    "TextPosition",
    "animate_scroll_to",
    "plan_scroll",
    "position_of",
    "find_sentence_containing",
    "fragments_at",
    "highlight_boxes",
    "sentence_from_fragment",
]
