"""Caption segment building from word timestamps."""

from __future__ import annotations

import math
from typing import Any, Iterable, Sequence

from ..models import CaptionSegment, WordToken

DEFAULT_WINDOW_SIZE = 10
DEFAULT_MAX_DURATION = 5.0
DEFAULT_FPS = 30

# Float slack when comparing durations against max_duration
_EPSILON = 1e-9


def build_segments(
    words: Sequence[WordToken],
    window_size: int = DEFAULT_WINDOW_SIZE,
    duration: float | None = None,
    text: str | None = None,
) -> list[CaptionSegment]:
    """
    Group word timestamps into fixed-size caption segments.

    Words are taken in order, window_size at a time (the last window may be
    shorter). Word times are milliseconds, segment times are seconds.

    Args:
        words: Word tokens in spoken order
        window_size: Number of words per segment
        duration: Media duration (seconds) for the fallback segment
        text: Full transcript text for the fallback segment

    Returns:
        Segments with ids 1..n. With no words, a single fallback segment
        spanning [0, duration] holding the full text.
    """
    if window_size < 1:
        raise ValueError(f"window_size must be >= 1, got {window_size}")

    if not words:
        return [CaptionSegment(id=1, start=0, end=duration or 0, text=text or "")]

    segments = []
    for chunk_index, offset in enumerate(range(0, len(words), window_size)):
        chunk = words[offset:offset + window_size]
        segments.append(
            CaptionSegment(
                id=chunk_index + 1,
                start=chunk[0].start / 1000,
                end=chunk[-1].end / 1000,
                text=" ".join(w.text for w in chunk),
            )
        )
    return segments


def resplit(
    segments: Iterable[CaptionSegment],
    max_duration: float = DEFAULT_MAX_DURATION,
) -> list[CaptionSegment]:
    """
    Split captions longer than max_duration into shorter ones.

    Time is shared out in proportion to each group's share of the words, not
    by measured per-word timing, so split boundaries are approximate. A
    segment whose individual words already exceed max_duration cannot be
    made shorter and is split word by word (a single word stays intact).

    Args:
        segments: Captions in display order
        max_duration: Longest allowed caption in seconds

    Returns:
        New list of captions renumbered 1..n
    """
    if max_duration <= 0:
        raise ValueError(f"max_duration must be > 0, got {max_duration}")

    result: list[CaptionSegment] = []
    for segment in segments:
        words = segment.text.split()
        if not words:
            continue

        duration = segment.end - segment.start
        if duration <= max_duration + _EPSILON:
            result.append(segment.model_copy(update={"id": len(result) + 1}))
            continue

        for start, end, text in _split_segment(segment, words, max_duration):
            result.append(CaptionSegment(id=len(result) + 1, start=start, end=end, text=text))

    return result


def _split_segment(
    segment: CaptionSegment,
    words: list[str],
    max_duration: float,
) -> list[tuple[float, float, str]]:
    """Split one overlong caption into (start, end, text) pieces."""
    duration = segment.end - segment.start
    word_count = len(words)

    group_count = math.ceil(duration / max_duration)
    group_size = math.ceil(word_count / group_count)
    # Rounding group_size up can still leave groups over max_duration
    fitting = math.floor(word_count * max_duration / duration + _EPSILON)
    group_size = max(1, min(group_size, fitting))

    pieces = []
    for i in range(0, word_count, group_size):
        start = segment.start + (i / word_count) * duration
        if i + group_size >= word_count:
            end = segment.end
        else:
            end = min(segment.start + ((i + group_size) / word_count) * duration, segment.end)
        pieces.append((start, end, " ".join(words[i:i + group_size])))
    return pieces


def to_frame_captions(
    captions: Iterable[CaptionSegment],
    fps: float = DEFAULT_FPS,
) -> list[dict[str, Any]]:
    """Convert captions to frame-indexed dicts for the render composition."""
    return [
        {
            "id": caption.id,
            "start_frame": math.floor(caption.start * fps),
            "end_frame": math.floor(caption.end * fps),
            "start_time": caption.start,
            "end_time": caption.end,
            "text": caption.text,
        }
        for caption in captions
    ]
