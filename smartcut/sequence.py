"""
Timeline sequence operations.

A sequence is an ordered collection of TimelineSegment; list order is
playback order. Every operation is pure: it returns a new tuple, or the
very same object it was given when the request is degenerate (unknown id,
split too close to a boundary, ...). Callers compare by identity to tell
whether anything changed.
"""

import logging
import math
from typing import Iterable, Mapping, Optional, Sequence

from smartcut.models import (
    MIN_SEGMENT_DURATION,
    AnalyzedSegment,
    SourceClip,
    TimelineSegment,
    TimeRange,
    TranscriptWord,
)
from smartcut.playhead import resolve
from smartcut.transcript import clip_words, join_words, segment_words
from smartcut.utils import FALLBACK_COLOR, GROUP_COLORS, generate_id, total_duration

logger = logging.getLogger(__name__)

Timeline = tuple[TimelineSegment, ...]

# Max source gap between two segments that can still be merged
MERGE_TOLERANCE_S = 0.1


# --- Lookup helpers ---


def index_of(sequence: Sequence[TimelineSegment], segment_id: str) -> Optional[int]:
    for idx, seg in enumerate(sequence):
        if seg.id == segment_id:
            return idx
    return None


def find_segment(sequence: Sequence[TimelineSegment], segment_id: str) -> Optional[TimelineSegment]:
    idx = index_of(sequence, segment_id)
    return sequence[idx] if idx is not None else None


def group_members(sequence: Iterable[TimelineSegment]) -> dict[str, list[TimelineSegment]]:
    """Derived group view: group_id -> segments in playback order."""
    groups: dict[str, list[TimelineSegment]] = {}
    for seg in sequence:
        groups.setdefault(seg.group_id, []).append(seg)
    return groups


def best_takes(sequence: Iterable[TimelineSegment]) -> Timeline:
    """Keep only best takes, in playback order."""
    return tuple(seg for seg in sequence if seg.is_best)


# --- Loading ---


def assign_group_colors(
    batches: Mapping[str, Sequence[AnalyzedSegment]],
    clip_order: Optional[Sequence[str]] = None,
    palette: Sequence[str] = GROUP_COLORS,
    existing: Optional[Mapping[str, str]] = None,
) -> dict[str, str]:
    """
    Assign a palette color to every group, in first-seen order.

    Args:
        batches: clip_id -> validated segments
        clip_order: Order in which clips are scanned (defaults to batch order)
        palette: Colors to cycle through
        existing: Colors of groups already on the timeline; they are kept
            and new groups continue the palette after them

    Returns:
        Dict group_id -> color
    """
    colors: dict[str, str] = dict(existing or {})
    if not palette:
        return colors

    order = clip_order if clip_order is not None else list(batches.keys())
    for clip_id in order:
        for seg in batches.get(clip_id, []):
            if seg.group_id not in colors:
                colors[seg.group_id] = palette[len(colors) % len(palette)]

    return colors


def timeline_colors(sequence: Iterable[TimelineSegment]) -> dict[str, str]:
    """Group colors currently in use, in first-seen order."""
    colors: dict[str, str] = {}
    for seg in sequence:
        colors.setdefault(seg.group_id, seg.color)
    return colors


def clear_duplicate_bests(sequence: Sequence[TimelineSegment]) -> Sequence[TimelineSegment]:
    """
    Keep at most one best take per group across the whole sequence.

    Groups can span several analysis batches, each validated on its own.
    Where a group ends up with more than one best take, the highest
    scoring one keeps the flag (the earliest on equal scores).

    Returns:
        New sequence, or the original if every group already had at most
        one best take
    """
    winners: dict[str, TimelineSegment] = {}
    best_count = 0
    for seg in sequence:
        if not seg.is_best:
            continue
        best_count += 1
        current = winners.get(seg.group_id)
        if current is None or seg.score > current.score:
            winners[seg.group_id] = seg

    if best_count == len(winners):
        return sequence

    logger.info(f"Cleared {best_count - len(winners)} duplicate best takes")
    return tuple(
        seg.model_copy(update={"is_best": False})
        if seg.is_best and winners[seg.group_id] is not seg
        else seg
        for seg in sequence
    )


def load_segments(
    batches: Mapping[str, Sequence[AnalyzedSegment]],
    clips: Sequence[SourceClip],
    colors: Optional[Mapping[str, str]] = None,
) -> Timeline:
    """
    Build timeline segments from validated analysis batches.

    Clips are taken in the given order; clips without a batch are skipped.
    Within a clip, segments keep the order of their batch (validated
    batches are already sorted by start).

    Args:
        batches: clip_id -> validated segments for that clip
        clips: Source clips, in timeline order
        colors: Optional group -> color mapping (computed when omitted)

    Returns:
        New sequence with one segment per analyzed segment
    """
    clip_order = [clip.id for clip in clips]
    if colors is None:
        colors = assign_group_colors(batches, clip_order)

    segments = []
    for clip in clips:
        batch = batches.get(clip.id)
        if batch is None:
            logger.info(f"Clip '{clip.name}' ({clip.id}) has no analysis, skipping")
            continue

        for seg in batch:
            segments.append(TimelineSegment(
                id=generate_id(),
                clip_id=clip.id,
                range=TimeRange(start=seg.start, end=seg.end),
                is_best=seg.is_best,
                score=seg.score,
                color=colors.get(seg.group_id, FALLBACK_COLOR),
                name=clip.name,
                group_id=seg.group_id,
                transcript=seg.text,
            ))

    logger.info(f"Loaded {len(segments)} segments, total duration {total_duration(segments):.1f}s")

    return tuple(segments)


def insert_segments(
    sequence: Sequence[TimelineSegment],
    new_segments: Sequence[TimelineSegment],
    index: Optional[int] = None,
) -> Sequence[TimelineSegment]:
    """Insert a batch of segments at index (append when None)."""
    if not new_segments:
        return sequence

    items = list(sequence)
    position = len(items) if index is None else max(0, min(index, len(items)))
    items[position:position] = new_segments
    return tuple(items)


# --- Editing operations ---


def delete_segment(sequence: Sequence[TimelineSegment], segment_id: str) -> Sequence[TimelineSegment]:
    idx = index_of(sequence, segment_id)
    if idx is None:
        return sequence
    return tuple(sequence[:idx]) + tuple(sequence[idx + 1:])


def split_segment(
    sequence: Sequence[TimelineSegment],
    global_time: float,
) -> tuple[Sequence[TimelineSegment], Optional[str]]:
    """
    Split the segment under the playhead in two.

    Both pieces copy the original's metadata. Its words are divided
    between the pieces, and each piece's transcript becomes the text of
    its own words. Splits closer than the minimum duration to either
    edge are rejected.

    Args:
        sequence: Timeline sequence
        global_time: Playhead position in seconds

    Returns:
        (new sequence, id of the later piece), or (sequence, None) if the
        split was rejected
    """
    position = resolve(sequence, global_time)
    if position is None:
        return sequence, None

    original = position.segment
    offset = position.offset

    if offset < MIN_SEGMENT_DURATION or offset > original.duration - MIN_SEGMENT_DURATION:
        logger.debug(f"Split at {global_time:.2f}s rejected: too close to segment edge")
        return sequence, None

    split_point = original.range.start + offset
    first_range = TimeRange(start=original.range.start, end=split_point)
    second_range = TimeRange(start=split_point, end=original.range.end)

    first_update = {"id": generate_id(), "range": first_range}
    second_update = {"id": generate_id(), "range": second_range}

    words = segment_words(original)
    if words:
        first_words = clip_words(words, first_range.start, first_range.end)
        second_words = clip_words(words, second_range.start, second_range.end)
        first_update.update(words=first_words, transcript=join_words(first_words))
        second_update.update(words=second_words, transcript=join_words(second_words))

    first = original.model_copy(update=first_update)
    second = original.model_copy(update=second_update)

    idx = position.index
    new_sequence = tuple(sequence[:idx]) + (first, second) + tuple(sequence[idx + 1:])
    return new_sequence, second.id


def merge_segments(
    sequence: Sequence[TimelineSegment],
    first_id: str,
    second_id: str,
) -> tuple[Sequence[TimelineSegment], Optional[str]]:
    """
    Merge two neighbouring pieces of the same clip back into one segment.

    The second segment must directly follow the first in playback order,
    come from the same clip and start where the first ends (within
    MERGE_TOLERANCE_S). The merged segment keeps the first segment's
    metadata with the higher score.

    Returns:
        (new sequence, id of the merged segment), or (sequence, None)
    """
    idx = index_of(sequence, first_id)
    if idx is None or idx + 1 >= len(sequence):
        return sequence, None

    first = sequence[idx]
    second = sequence[idx + 1]
    if second.id != second_id or first.clip_id != second.clip_id:
        return sequence, None
    if abs(second.range.start - first.range.end) > MERGE_TOLERANCE_S:
        return sequence, None

    transcripts = [t for t in (first.transcript, second.transcript) if t]
    transcript = " ".join(transcripts) if transcripts else first.transcript

    words = None
    if first.words is not None or second.words is not None:
        # the side without explicit words contributes its derived ones
        words = segment_words(first) + segment_words(second)

    merged = first.model_copy(update={
        "id": generate_id(),
        "range": TimeRange(start=first.range.start, end=second.range.end),
        "score": max(first.score, second.score),
        "is_best": first.is_best or second.is_best,
        "transcript": transcript,
        "words": words,
    })

    new_sequence = tuple(sequence[:idx]) + (merged,) + tuple(sequence[idx + 2:])
    return new_sequence, merged.id


def reorder_segments(
    sequence: Sequence[TimelineSegment],
    from_index: int,
    to_index: int,
) -> Sequence[TimelineSegment]:
    """
    Move the segment at from_index to to_index.

    This is a list move, not a swap: the segment is removed first and
    then inserted at to_index of the remaining list. A to_index past the
    end appends.
    """
    if from_index < 0 or from_index >= len(sequence) or to_index < 0:
        return sequence

    items = list(sequence)
    moved = items.pop(from_index)
    target = min(to_index, len(items))
    if target == from_index:
        return sequence

    items.insert(target, moved)
    return tuple(items)


def resize_segment(
    sequence: Sequence[TimelineSegment],
    segment_id: str,
    new_start: float,
    new_end: float,
    clip_duration: Optional[float] = None,
) -> Sequence[TimelineSegment]:
    """
    Change a segment's source range.

    The range is clamped to start >= 0, end <= clip_duration (when known)
    and a length of at least MIN_SEGMENT_DURATION. Neighbouring segments
    are left alone, so a resize may open gaps or overlaps in the source.
    Edited words outside the new range are dropped.

    Args:
        sequence: Timeline sequence
        segment_id: Segment to resize
        new_start: Requested clip-local start
        new_end: Requested clip-local end
        clip_duration: Source clip duration, if known

    Returns:
        New sequence, or the original if nothing changed
    """
    if not (math.isfinite(new_start) and math.isfinite(new_end)):
        return sequence

    idx = index_of(sequence, segment_id)
    if idx is None:
        return sequence

    start = max(0.0, new_start)
    end = max(new_end, start + MIN_SEGMENT_DURATION)

    if clip_duration is not None:
        if clip_duration < MIN_SEGMENT_DURATION:
            return sequence
        if end > clip_duration:
            end = clip_duration
            start = min(start, end - MIN_SEGMENT_DURATION)

    seg = sequence[idx]
    if seg.range.start == start and seg.range.end == end:
        return sequence

    update = {"range": TimeRange(start=start, end=end)}
    if seg.words is not None:
        update["words"] = clip_words(seg.words, start, end)

    resized = seg.model_copy(update=update)
    return tuple(sequence[:idx]) + (resized,) + tuple(sequence[idx + 1:])


def update_segment_words(
    sequence: Sequence[TimelineSegment],
    segment_id: str,
    words: Sequence[TranscriptWord],
) -> Sequence[TimelineSegment]:
    """Replace the word list of one segment."""
    idx = index_of(sequence, segment_id)
    if idx is None:
        return sequence

    updated = sequence[idx].model_copy(update={"words": tuple(words)})
    return tuple(sequence[:idx]) + (updated,) + tuple(sequence[idx + 1:])
