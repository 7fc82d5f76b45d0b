"""Small helpers shared by the timeline modules."""

import math
import uuid
from typing import Iterable

from smartcut.models import TimelineSegment

# Group color palette, assigned in first-seen order
GROUP_COLORS = [
    "#60A5FA",  # blue-400
    "#F472B6",  # pink-400
    "#34D399",  # emerald-400
    "#A78BFA",  # violet-400
    "#FBBF24",  # amber-400
    "#FB7185",  # rose-400
    "#2DD4BF",  # teal-400
    "#C084FC",  # purple-400
]

FALLBACK_COLOR = "#ccc"


def generate_id() -> str:
    """Short random id for segments."""
    return uuid.uuid4().hex[:9]


def format_time(seconds: float) -> str:
    """
    Format seconds as MM:SS.cc (centiseconds).

    Negative and non-finite values are shown as 00:00.00. Minutes wrap at
    one hour, matching a clock-style readout.
    """
    if not math.isfinite(seconds) or seconds < 0:
        seconds = 0.0

    total_ms = int(seconds * 1000)
    minutes = (total_ms // 60000) % 60
    secs = (total_ms // 1000) % 60
    centis = (total_ms % 1000) // 10
    return f"{minutes:02d}:{secs:02d}.{centis:02d}"


def total_duration(sequence: Iterable[TimelineSegment]) -> float:
    """Length of the concatenated sequence in seconds."""
    return sum(seg.range.end - seg.range.start for seg in sequence)
