"""
Playhead resolution.

Maps a global playback time across the concatenated sequence to the
segment under the playhead and the offset inside it. Lookup is a linear
walk; it runs once per playback tick, not per sample.
"""

import logging
import math
from dataclasses import dataclass
from typing import Optional, Sequence

from smartcut.models import TimelineSegment
from smartcut.utils import total_duration

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlayheadPosition:
    segment: TimelineSegment
    index: int
    offset: float          # seconds into the segment
    segment_start: float   # global time at which the segment starts

    @property
    def source_time(self) -> float:
        """Absolute position in the source clip, for media seeking."""
        return self.segment.range.start + self.offset


def resolve(sequence: Sequence[TimelineSegment], global_time: float) -> Optional[PlayheadPosition]:
    """
    Find the segment playing at global_time.

    A segment owns the half-open interval [start, start + duration), so a
    time exactly on a boundary belongs to the later segment.

    Args:
        sequence: Timeline sequence in playback order
        global_time: Elapsed seconds from the start of the sequence

    Returns:
        PlayheadPosition, or None if the time is negative, at or past the
        total duration, or the sequence is empty
    """
    if not math.isfinite(global_time) or global_time < 0:
        return None

    accumulated = 0.0
    for index, seg in enumerate(sequence):
        duration = seg.range.end - seg.range.start
        if accumulated <= global_time < accumulated + duration:
            return PlayheadPosition(
                segment=seg,
                index=index,
                offset=global_time - accumulated,
                segment_start=accumulated,
            )
        accumulated += duration

    return None


def segment_start_times(sequence: Sequence[TimelineSegment]) -> list[float]:
    """Global start time of every segment."""
    starts = []
    accumulated = 0.0
    for seg in sequence:
        starts.append(accumulated)
        accumulated += seg.range.end - seg.range.start
    return starts


def global_time_for(
    sequence: Sequence[TimelineSegment],
    segment_id: str,
    source_time: Optional[float] = None,
) -> Optional[float]:
    """
    Global timeline position of a segment, or of a source time inside it.

    Used for seeking from a transcript word to the playhead. source_time is
    clamped into the segment's range.
    """
    accumulated = 0.0
    for seg in sequence:
        if seg.id == segment_id:
            if source_time is None:
                return accumulated
            local = min(max(source_time, seg.range.start), seg.range.end)
            return accumulated + (local - seg.range.start)
        accumulated += seg.range.end - seg.range.start
    return None


class PlaybackClock:
    """
    Tick-driven playback position.

    The caller drives it from its frame callback with tick(delta). Playback
    halts by itself at the end of the sequence; stop() cancels it at any
    point without side effects.
    """

    def __init__(self, sequence: Sequence[TimelineSegment] = ()):
        self.sequence: tuple[TimelineSegment, ...] = tuple(sequence)
        self.elapsed = 0.0
        self.playing = False

    @property
    def total(self) -> float:
        return total_duration(self.sequence)

    def set_sequence(self, sequence: Sequence[TimelineSegment]) -> None:
        """Follow an edited sequence, keeping the playhead within bounds."""
        self.sequence = tuple(sequence)
        total = self.total
        if self.elapsed > total:
            self.elapsed = total
        if total <= 0:
            self.playing = False

    def play(self) -> bool:
        """Start playback, rewinding first if the playhead is at the end."""
        total = self.total
        if total <= 0:
            return False
        if self.elapsed >= total:
            self.elapsed = 0.0
        self.playing = True
        return True

    def stop(self) -> None:
        self.playing = False

    def toggle(self) -> bool:
        if self.playing:
            self.stop()
        else:
            self.play()
        return self.playing

    def seek(self, global_time: float) -> float:
        if not math.isfinite(global_time):
            return self.elapsed
        self.elapsed = min(max(0.0, global_time), self.total)
        return self.elapsed

    def tick(self, delta: float) -> float:
        """
        Advance the playhead by delta seconds.

        Returns:
            New elapsed time
        """
        if not self.playing or not math.isfinite(delta) or delta <= 0:
            return self.elapsed

        total = self.total
        advanced = self.elapsed + delta
        if advanced >= total:
            self.elapsed = total
            self.playing = False
            logger.debug(f"Playback reached end of sequence at {total:.2f}s")
        else:
            self.elapsed = advanced
        return self.elapsed

    def position(self) -> Optional[PlayheadPosition]:
        return resolve(self.sequence, self.elapsed)
