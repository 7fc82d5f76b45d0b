"""
Validation of AI segment proposals.

The analysis model returns semi-structured segment lists that are not
guaranteed to be continuous, non-overlapping or consistently scored.
Everything here is best-effort: bad fields are clamped or defaulted and
unusable entries are dropped, but nothing raises.
"""

import logging
import math
from typing import Any, Optional

from smartcut.models import (
    DEFAULT_GROUP_ID,
    DEFAULT_SCORE,
    MIN_SEGMENT_DURATION,
    AnalyzedSegment,
)

logger = logging.getLogger(__name__)

# Float tolerance for the minimum duration check (0.3 - 0.2 < 0.1 otherwise)
_EPSILON = 1e-9

_TRUE_STRINGS = {"true", "1", "yes"}

# Coverage below this percentage on a long clip is logged as suspicious
LOW_COVERAGE_PERCENT = 30.0
LOW_COVERAGE_MIN_DURATION_S = 30.0


# --- Coercion helpers ---


def _pick(raw: dict, *keys: str) -> Any:
    """Return the first non-null key (AI output mixes camelCase and snake_case)."""
    for key in keys:
        if raw.get(key) is not None:
            return raw[key]
    return None


def coerce_float(value: Any, default: float) -> float:
    """Convert a loosely typed number, falling back to default."""
    if value is None or isinstance(value, bool):
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if not math.isfinite(number):
        return default
    return number


def coerce_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_STRINGS
    return bool(value)


def _is_too_short(start: float, end: float) -> bool:
    return end - start < MIN_SEGMENT_DURATION - _EPSILON


def parse_segment(raw: Any, clip_duration: float) -> Optional[dict]:
    """
    Parse and clamp a single raw segment.

    Args:
        raw: Untrusted segment record from the analysis model
        clip_duration: Source clip duration in seconds

    Returns:
        Dict with text/start/end/group_id/score/is_best, or None if the
        segment is unusable (not a dict, or shorter than the minimum
        duration after clamping)
    """
    if not isinstance(raw, dict):
        logger.warning(f"Skipping segment: expected dict, got {type(raw).__name__}")
        return None

    start = coerce_float(raw.get("start"), 0.0)
    end = coerce_float(raw.get("end"), 0.0)

    if start > end:
        start, end = end, start

    start = max(0.0, min(start, clip_duration))
    end = max(0.0, min(end, clip_duration))

    if _is_too_short(start, end):
        return None

    score = coerce_float(raw.get("score"), DEFAULT_SCORE)
    score = max(0.0, min(100.0, score))

    group_id = _pick(raw, "group_id", "groupId")
    group_id = str(group_id) if group_id not in (None, "") else DEFAULT_GROUP_ID

    text = raw.get("text")
    text = str(text) if text is not None else ""

    return {
        "text": text,
        "start": start,
        "end": end,
        "group_id": group_id,
        "score": score,
        "is_best": coerce_bool(_pick(raw, "is_best", "isBest")),
    }


# --- Normalization passes ---


def fix_overlaps(segments: list[dict]) -> list[dict]:
    """
    Resolve overlaps between start-sorted segments.

    When a segment starts before the previous one ends, the previous
    segment's end is pulled back to the current start. The later segment
    always keeps its boundary. Segments that fall below the minimum
    duration because of this are dropped afterwards; dropping them can not
    reintroduce an overlap since their neighbours already satisfy
    prev.end <= next.start.

    Args:
        segments: Segment dicts sorted by start

    Returns:
        New list of segment dicts without overlaps
    """
    fixed = [seg.copy() for seg in segments]

    for i in range(1, len(fixed)):
        prev = fixed[i - 1]
        curr = fixed[i]
        if curr["start"] < prev["end"]:
            logger.debug(
                f"Overlap: segment {i - 1} end adjusted from "
                f"{prev['end']:.2f}s to {curr['start']:.2f}s"
            )
            prev["end"] = curr["start"]

    kept = [seg for seg in fixed if not _is_too_short(seg["start"], seg["end"])]
    if len(kept) < len(fixed):
        logger.debug(f"Dropped {len(fixed) - len(kept)} segments collapsed by overlap fixing")

    return kept


def enforce_one_best_per_group(segments: list[AnalyzedSegment]) -> list[AnalyzedSegment]:
    """
    Make sure each group with several takes has exactly one best take.

    The highest scoring member wins; on equal scores the first one in list
    order wins. Single-member groups keep the flag the model gave them.

    Args:
        segments: Validated segments

    Returns:
        New list with is_best recomputed for multi-member groups
    """
    groups: dict[str, list[int]] = {}
    for idx, seg in enumerate(segments):
        groups.setdefault(seg.group_id, []).append(idx)

    best_flags: dict[int, bool] = {}
    for members in groups.values():
        if len(members) <= 1:
            continue
        best_idx = members[0]
        for idx in members[1:]:
            if segments[idx].score > segments[best_idx].score:
                best_idx = idx
        for idx in members:
            best_flags[idx] = idx == best_idx

    return [
        seg.model_copy(update={"is_best": best_flags[idx]}) if idx in best_flags else seg
        for idx, seg in enumerate(segments)
    ]


def validate_segments(raw_segments: Any, clip_duration: float) -> list[AnalyzedSegment]:
    """
    Turn raw analysis output into a clean segment list for one clip.

    Steps:
    1. Parse and clamp each segment into [0, clip_duration], dropping
       segments shorter than the minimum duration
    2. Stable sort by start
    3. Fix overlaps (later segment wins the boundary)
    4. Enforce one best take per group

    Args:
        raw_segments: Untrusted list of segment records
        clip_duration: Source clip duration in seconds

    Returns:
        Validated segments (possibly empty). Never raises.
    """
    duration = coerce_float(clip_duration, 0.0)
    if duration <= 0:
        logger.warning(f"Cannot validate segments without a positive clip duration ({clip_duration!r})")
        return []

    if not isinstance(raw_segments, (list, tuple)):
        logger.warning(f"Expected a list of segments, got {type(raw_segments).__name__}")
        return []

    parsed = []
    for raw in raw_segments:
        seg = parse_segment(raw, duration)
        if seg is not None:
            parsed.append(seg)

    parsed.sort(key=lambda s: s["start"])
    fixed = fix_overlaps(parsed)

    validated = enforce_one_best_per_group([AnalyzedSegment(**seg) for seg in fixed])

    logger.info(
        f"Validated segments: {len(raw_segments)} in, {len(validated)} out "
        f"(clip duration {duration:.1f}s)"
    )

    return validated


def coverage_report(segments: list[AnalyzedSegment], clip_duration: float) -> dict:
    """
    Summarize how much of a clip the validated segments cover.

    Returns:
        Dict with covered_s, coverage_percent, groups, best_count, segments
    """
    covered = sum(seg.end - seg.start for seg in segments)
    percent = (covered / clip_duration * 100.0) if clip_duration > 0 else 0.0

    if percent < LOW_COVERAGE_PERCENT and clip_duration > LOW_COVERAGE_MIN_DURATION_S:
        logger.warning(f"Low coverage: only {percent:.1f}% of {clip_duration:.1f}s transcribed")

    return {
        "covered_s": round(covered, 3),
        "coverage_percent": round(percent, 1),
        "groups": len({seg.group_id for seg in segments}),
        "best_count": sum(1 for seg in segments if seg.is_best),
        "segments": len(segments),
    }
