"""Caption timing and SRT rendering.

Cues are timed by word count at a nominal speaking pace, then scaled so
the last cue ends exactly when the narration does.
"""

import re

from reelpipe.schemas.media import CaptionCue

_SENTENCE_BOUNDARY = re.compile(r"[.!?]+")


def split_sentences(text: str) -> list[str]:
    """Split on runs of sentence punctuation, dropping empty pieces."""
    return [s.strip() for s in _SENTENCE_BOUNDARY.split(text) if s.strip()]


def build_cues(
    script: str,
    audio_duration_seconds: float,
    words_per_minute: int = 150,
) -> list[CaptionCue]:
    """Time one cue per sentence across the narration duration."""
    sentences = split_sentences(script)
    if not sentences:
        return []

    estimates = [len(s.split()) * 60.0 / words_per_minute for s in sentences]
    scale = audio_duration_seconds / sum(estimates)

    cues = []
    elapsed = 0.0
    for index, (sentence, estimate) in enumerate(zip(sentences, estimates), start=1):
        start = elapsed * scale
        elapsed += estimate
        end = audio_duration_seconds if index == len(sentences) else elapsed * scale
        cues.append(CaptionCue(index=index, text=sentence, start_seconds=start, end_seconds=end))
    return cues


def format_srt_time(seconds: float) -> str:
    """Format seconds as an SRT timestamp.

    Examples:
        >>> format_srt_time(3661.5)
        '01:01:01,500'
    """
    total_ms = int(round(max(seconds, 0.0) * 1000))
    hours, rest = divmod(total_ms, 3_600_000)
    minutes, rest = divmod(rest, 60_000)
    secs, millis = divmod(rest, 1000)
    return f"{hours:02d}:{minutes:02d}:{secs:02d},{millis:03d}"


def render_srt(cues: list[CaptionCue]) -> str:
    blocks = [
        f"{cue.index}\n"
        f"{format_srt_time(cue.start_seconds)} --> {format_srt_time(cue.end_seconds)}\n"
        f"{cue.text}\n"
        for cue in cues
    ]
    return "\n".join(blocks)
