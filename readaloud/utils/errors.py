"""
Exception hierarchy for the read-aloud system.

Data-quality problems (segmentation or alignment mismatches) are never
raised; they are returned as reports. Only fatal conditions live here.
"""

from typing import Optional


class ReadAloudError(Exception):
    """Base class for all read-aloud errors."""


class SpeechEngineError(ReadAloudError):
    """A genuine speech engine failure (anything other than a cancellation)."""

    def __init__(self, code: str, sentence_index: Optional[int] = None):
        self.code = code
        self.sentence_index = sentence_index
        where = f" at sentence {sentence_index}" if sentence_index is not None else ""
        super().__init__(f"Speech engine error{where}: {code}")


class SynchronizerClosedError(ReadAloudError):
    """Raised when a destroyed synchronizer is used again."""


class ExtractionError(ReadAloudError):
    """Raised when fragments cannot be extracted from a source document."""
