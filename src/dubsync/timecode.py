"""
"MM:SS" timecode parsing/formatting, slot lookup, and SRT export.
"""

import logging
import re
from bisect import bisect_right
from collections.abc import Sequence

from .models import TranscriptSegment

logger = logging.getLogger("dubsync")

_TIMECODE_RE = re.compile(r"^(\d+):(\d+)$", re.ASCII)


def is_timecode(value: object) -> bool:
    """True if ``value`` is a well-formed "MM:SS" string."""
    return isinstance(value, str) and _TIMECODE_RE.match(value.strip()) is not None


def parse_timecode(value: str | None) -> int:
    """Parse "MM:SS" into whole seconds.

    Malformed input degrades to 0 instead of raising.
    """
    if not isinstance(value, str):
        logger.debug("Timecode %r is not a string; using 0", value)
        return 0
    m = _TIMECODE_RE.match(value.strip())
    if not m:
        logger.debug("Malformed timecode %r; using 0", value)
        return 0
    return int(m.group(1)) * 60 + int(m.group(2))


def format_timecode(seconds: int) -> str:
    """Format whole seconds as "M:SS" (unpadded minutes, padded seconds)."""
    seconds = max(0, int(seconds))
    return f"{seconds // 60}:{seconds % 60:02}"


def normalize_timecode(value: str | None) -> str:
    return format_timecode(parse_timecode(value))


def segment_index_at(
    start_times: Sequence[float], end_times: Sequence[float], t: float
) -> int | None:
    """Index ``i`` with ``start_times[i] <= t < end_times[i]``, or None.

    Windows must be sorted by start and non-overlapping.
    """
    i = bisect_right(start_times, t) - 1
    if i >= 0 and t < end_times[i]:
        return i
    return None


def write_srt(segments: list[TranscriptSegment], path: str) -> None:
    """Write transcript segments to an SRT caption file."""

    def fmt(t: int) -> str:
        h = t // 3600
        m = (t % 3600) // 60
        s = t % 60
        return f"{h:02}:{m:02}:{s:02},000"

    with open(path, "w", encoding="utf-8") as f:
        for i, s in enumerate(segments, 1):
            start = parse_timecode(s.start)
            end = parse_timecode(s.end)
            f.write(f"{i}\n{fmt(start)} --> {fmt(end)}\n{s.text}\n\n")
