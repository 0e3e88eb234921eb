import pytest

from readaloud.readalong.language import (
    BASE_WORD_MS,
    DUTCH,
    ENGLISH,
    detect_language,
    estimate_duration,
    estimate_word_timings,
)


def test_detects_english():
    assert detect_language("The results of the study were clear") == ENGLISH


def test_detects_dutch():
    assert detect_language("De resultaten van het onderzoek waren duidelijk") == DUTCH


def test_ties_default_to_dutch():
    assert detect_language("Photosynthesis explained") == DUTCH
    assert detect_language("") == DUTCH


def test_word_timings_are_offsets():
    timings = estimate_word_timings("Hello there, world.")

    assert timings[0] == 0
    assert len(timings) == 3
    assert timings == sorted(timings)


def test_word_timing_adjustments():
    # "hello" is plain, "there," has a comma pause
    timings = estimate_word_timings("hello there, end")

    assert timings[1] == pytest.approx(BASE_WORD_MS)
    assert timings[2] == pytest.approx(BASE_WORD_MS + BASE_WORD_MS * 1.2)


def test_faster_rate_shortens_timings():
    slow = estimate_word_timings("one two three four", rate=1.0)
    fast = estimate_word_timings("one two three four", rate=2.0)

    assert fast[-1] == pytest.approx(slow[-1] / 2)


def test_duration_matches_timings():
    text = "A considerably longer sentence. Indeed!"

    assert estimate_duration(text) > estimate_word_timings(text)[-1]


def test_rejects_non_positive_rate():
    with pytest.raises(ValueError):
        estimate_word_timings("text", rate=0)
    with pytest.raises(ValueError):
        estimate_duration("text", rate=-1)


def test_empty_text():
    assert estimate_word_timings("") == []
    assert estimate_duration("") == 0
