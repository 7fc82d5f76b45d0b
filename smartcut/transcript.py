"""
Word-level transcript editing.

Segments carry a free-text transcript. Word lists are derived from it on
demand (evenly spaced over the segment's range) until the user edits
words, at which point the segment stores them explicitly. Deleting a word
only sets a flag so that everything can be restored later.
"""

import logging
import re
from functools import lru_cache
from typing import Iterable, Optional, Sequence

from smartcut.models import TimelineSegment, TranscriptWord

logger = logging.getLogger(__name__)

# Hesitation markers (lowercase), Chinese and English
FILLER_WORDS = {
    # Chinese
    "嗯", "啊", "呃", "额", "那个", "就是", "然后", "对吧", "是吧", "这个", "所以说",
    # English
    "um", "uh", "like", "you know", "so", "basically", "actually", "literally",
}

_PUNCTUATION_RE = re.compile(r"[.,!?，。！？]")

# Slivers shorter than this between deleted words are not worth a cut
_EPSILON = 1e-6


def is_filler(text: str) -> bool:
    return _PUNCTUATION_RE.sub("", text.lower()) in FILLER_WORDS


@lru_cache(maxsize=4096)
def _derive_words(text: str, start: float, end: float, segment_id: str) -> tuple[TranscriptWord, ...]:
    raw_words = text.split()
    if not raw_words:
        return ()

    word_duration = (end - start) / len(raw_words)
    return tuple(
        TranscriptWord(
            id=f"{segment_id}-word-{i}",
            text=word,
            start=start + i * word_duration,
            end=start + (i + 1) * word_duration,
            is_filler=is_filler(word),
        )
        for i, word in enumerate(raw_words)
    )


def words_from_transcript(
    text: Optional[str],
    start: float,
    end: float,
    segment_id: str,
) -> tuple[TranscriptWord, ...]:
    """
    Derive word timings from transcript text.

    Words are whitespace separated and spread evenly over [start, end).
    Results are memoized on (text, start, end, segment_id), so they are
    only recomputed when the transcript or range changes.
    """
    if not text:
        return ()
    return _derive_words(text, start, end, segment_id)


def segment_words(segment: TimelineSegment) -> tuple[TranscriptWord, ...]:
    """Explicit words when present, otherwise derived from the transcript."""
    if segment.words:
        return segment.words
    return words_from_transcript(
        segment.transcript,
        segment.range.start,
        segment.range.end,
        segment.id,
    )


def clip_words(
    words: Sequence[TranscriptWord],
    start: float,
    end: float,
) -> tuple[TranscriptWord, ...]:
    """
    Words that belong to the source range [start, end).

    A word belongs to the range holding its midpoint, so a word cut by a
    split ends up in exactly one piece. Timings are clipped to the range.
    """
    clipped = []
    for word in words:
        midpoint = (word.start + word.end) / 2
        if not start <= midpoint < end:
            continue
        if word.start < start or word.end > end:
            word = word.model_copy(update={
                "start": max(word.start, start),
                "end": min(word.end, end),
            })
        clipped.append(word)
    return tuple(clipped)


def join_words(words: Iterable[TranscriptWord]) -> str:
    return " ".join(word.text for word in words)


def _rewrite_words(sequence: Sequence[TimelineSegment], mark) -> Sequence[TimelineSegment]:
    """Apply mark(word) -> bool (new is_deleted) to every word."""
    result = []
    any_changed = False
    for seg in sequence:
        words = segment_words(seg)
        updated = []
        changed = False
        for word in words:
            flag = mark(word)
            if flag != word.is_deleted:
                updated.append(word.model_copy(update={"is_deleted": flag}))
                changed = True
            else:
                updated.append(word)
        if changed:
            seg = seg.model_copy(update={"words": tuple(updated)})
            any_changed = True
        result.append(seg)
    return tuple(result) if any_changed else sequence


def delete_words(sequence: Sequence[TimelineSegment], word_ids: Iterable[str]) -> Sequence[TimelineSegment]:
    """Soft-delete the given words. Returns sequence unchanged if none matched."""
    ids = set(word_ids)
    if not ids:
        return sequence
    return _rewrite_words(sequence, lambda w: True if w.id in ids else w.is_deleted)


def remove_fillers(sequence: Sequence[TimelineSegment]) -> Sequence[TimelineSegment]:
    """Soft-delete every filler word."""
    result = _rewrite_words(sequence, lambda w: True if w.is_filler else w.is_deleted)
    if result is not sequence:
        logger.info("Removed filler words from transcript")
    return result


def restore_all(sequence: Sequence[TimelineSegment]) -> Sequence[TimelineSegment]:
    """Clear every soft-delete flag."""
    return _rewrite_words(sequence, lambda w: False)


def word_stats(sequence: Iterable[TimelineSegment]) -> dict:
    """Counts of all words, deleted words and remaining filler words."""
    total = deleted = fillers = 0
    for seg in sequence:
        for word in segment_words(seg):
            total += 1
            if word.is_deleted:
                deleted += 1
            elif word.is_filler:
                fillers += 1
    return {"total": total, "deleted": deleted, "fillers": fillers}


def active_word(
    sequence: Iterable[TimelineSegment],
    source_time: float,
    segment_id: Optional[str] = None,
) -> Optional[TranscriptWord]:
    """
    Word being spoken at a clip-local time.

    Deleted words are never active. Pass segment_id to restrict the search
    to the segment under the playhead, since source times of different
    clips overlap.
    """
    for seg in sequence:
        if segment_id is not None and seg.id != segment_id:
            continue
        for word in segment_words(seg):
            if not word.is_deleted and word.start <= source_time < word.end:
                return word
    return None


def kept_ranges(segment: TimelineSegment) -> list[tuple[float, float]]:
    """
    Source ranges of a segment that survive word deletion.

    Deleted words are cut out of the segment's range; everything else,
    including time between words, is kept. Ranges never leave the
    segment's own range. A segment whose words are all deleted keeps none.
    """
    seg_start = segment.range.start
    seg_end = segment.range.end

    deleted = sorted(
        (max(word.start, seg_start), min(word.end, seg_end))
        for word in segment_words(segment)
        if word.is_deleted
    )

    ranges: list[tuple[float, float]] = []
    cursor = seg_start
    for start, end in deleted:
        if end <= start:
            continue
        if start - cursor > _EPSILON:
            ranges.append((cursor, start))
        cursor = max(cursor, end)

    if seg_end - cursor > _EPSILON:
        ranges.append((cursor, seg_end))

    return ranges
