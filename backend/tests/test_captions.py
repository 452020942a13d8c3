"""Tests for caption timing and SRT output."""

import pytest

from reelpipe.services.captions import build_cues, format_srt_time, render_srt, split_sentences


def test_split_sentences():
    assert split_sentences("Hello there. How are you?! Fine...  ") == [
        "Hello there",
        "How are you",
        "Fine",
    ]
    assert split_sentences("   ") == []


@pytest.mark.parametrize(
    "seconds,expected",
    [
        (0, "00:00:00,000"),
        (1.25, "00:00:01,250"),
        (59.9999, "00:01:00,000"),
        (3661.5, "01:01:01,500"),
        (-3, "00:00:00,000"),
    ],
)
def test_format_srt_time(seconds, expected):
    assert format_srt_time(seconds) == expected


def test_cues_span_the_narration():
    cues = build_cues("One two three. Four five six seven!", 10.0)

    assert [c.index for c in cues] == [1, 2]
    assert [c.text for c in cues] == ["One two three", "Four five six seven"]
    assert cues[0].start_seconds == 0
    # 3 words of 7 total
    assert cues[0].end_seconds == pytest.approx(10.0 * 3 / 7)
    assert cues[1].start_seconds == pytest.approx(cues[0].end_seconds)
    assert cues[1].end_seconds == 10.0


def test_cues_for_empty_script():
    assert build_cues("", 12.0) == []


def test_render_srt():
    cues = build_cues("Hello world. Goodbye world.", 4.0)

    assert render_srt(cues) == (
        "1\n00:00:00,000 --> 00:00:02,000\nHello world\n"
        "\n"
        "2\n00:00:02,000 --> 00:00:04,000\nGoodbye world\n"
    )
