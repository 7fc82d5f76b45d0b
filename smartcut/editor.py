"""
Editor session: the timeline as the user edits it.

Wraps every sequence operation in the undo history and keeps the state
that must never enter history (selection, in-progress drag, playhead)
beside it. A drag only produces a preview until it is committed, at which
point it becomes a single undo step.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, Literal, Mapping, Optional, Sequence

from smartcut import sequence as ops
from smartcut import transcript
from smartcut.history import History
from smartcut.models import ClipAnalysis, SourceClip, TimelineSegment, TranscriptWord
from smartcut.playhead import PlaybackClock, PlayheadPosition
from smartcut.settings import settings
from smartcut.utils import total_duration

logger = logging.getLogger(__name__)

DragKind = Literal["move", "resize-left", "resize-right"]


@dataclass
class DragPreview:
    """Candidate reorder/resize for a drag gesture in progress."""

    kind: DragKind
    segment_id: str
    origin_index: int
    origin_start: float
    origin_end: float
    target_index: Optional[int] = None
    delta: float = 0.0


class EditorSession:
    def __init__(
        self,
        clips: Iterable[SourceClip] = (),
        segments: Sequence[TimelineSegment] = (),
        history_limit: Optional[int] = None,
    ):
        self.clips: dict[str, SourceClip] = {clip.id: clip for clip in clips}
        self.summaries: dict[str, str] = {}
        limit = settings.HISTORY_LIMIT if history_limit is None else history_limit
        self.history: History[tuple[TimelineSegment, ...]] = History(tuple(segments), limit=limit)
        self.selected_id: Optional[str] = None
        self.drag: Optional[DragPreview] = None
        self.clock = PlaybackClock(self.segments)

    # --- State ---

    @property
    def segments(self) -> tuple[TimelineSegment, ...]:
        return self.history.present

    @property
    def total_duration(self) -> float:
        return total_duration(self.segments)

    def _commit(self, new_segments: Sequence[TimelineSegment]) -> bool:
        # tuple() of a tuple is the same object, so no-ops stay no-ops
        changed = self.history.set(tuple(new_segments))
        if changed:
            self._sync()
        return changed

    def _sync(self) -> None:
        """Keep non-history state consistent with the present sequence."""
        self.clock.set_sequence(self.segments)
        if self.selected_id is not None and ops.index_of(self.segments, self.selected_id) is None:
            self.selected_id = None

    def select(self, segment_id: Optional[str]) -> bool:
        if segment_id is not None and ops.index_of(self.segments, segment_id) is None:
            return False
        self.selected_id = segment_id
        return True

    # --- Clips ---

    def add_clip(self, clip: SourceClip) -> SourceClip:
        """Register (or replace) a source clip."""
        self.clips[clip.id] = clip
        return clip

    def set_clip_duration(self, clip_id: str, duration: float) -> Optional[SourceClip]:
        clip = self.clips.get(clip_id)
        if clip is None:
            return None
        clip = clip.model_copy(update={"duration": duration})
        self.clips[clip_id] = clip
        return clip

    def remove_clip(self, clip_id: str) -> bool:
        """Forget a clip. Segments referencing it stay on the timeline."""
        return self.clips.pop(clip_id, None) is not None

    def analyzable_clips(self) -> list[SourceClip]:
        """Clips whose duration is known."""
        return [clip for clip in self.clips.values() if clip.duration is not None]

    # --- Editing ---

    def load_analysis(self, analyses: Mapping[str, ClipAnalysis], append: bool = False) -> bool:
        """
        Build timeline segments from finished clip analyses.

        By default the timeline is replaced; with append the new segments
        go after the existing ones and groups already on the timeline keep
        their colors. Groups spanning several clips end up with a single
        best take. Either way this is one undo step.
        """
        if not analyses:
            return False

        clips = [clip for clip in self.clips.values() if clip.id in analyses]
        batches = {clip_id: analysis.segments for clip_id, analysis in analyses.items()}
        existing = ops.timeline_colors(self.segments) if append else None
        colors = ops.assign_group_colors(batches, [clip.id for clip in clips], existing=existing)
        loaded = ops.load_segments(batches, clips, colors)

        for clip_id, analysis in analyses.items():
            self.summaries[clip_id] = analysis.summary

        if append:
            loaded = ops.insert_segments(self.segments, loaded)
        return self._commit(ops.clear_duplicate_bests(loaded))

    def delete(self, segment_id: Optional[str] = None) -> bool:
        """Delete a segment (the selected one by default)."""
        target = segment_id if segment_id is not None else self.selected_id
        if target is None:
            return False
        changed = self._commit(ops.delete_segment(self.segments, target))
        if changed and self.selected_id == target:
            self.selected_id = None
        return changed

    def split(self, global_time: Optional[float] = None) -> Optional[str]:
        """
        Split at global_time (the playhead by default) and select the
        second piece.

        Returns:
            Id of the second piece, or None if the split was rejected
        """
        at = self.clock.elapsed if global_time is None else global_time
        new_segments, second_id = ops.split_segment(self.segments, at)
        if second_id is None:
            return None
        self._commit(new_segments)
        self.selected_id = second_id
        return second_id

    def merge(self, first_id: str, second_id: str) -> Optional[str]:
        new_segments, merged_id = ops.merge_segments(self.segments, first_id, second_id)
        if merged_id is None:
            return None
        self._commit(new_segments)
        self.selected_id = merged_id
        return merged_id

    def reorder(self, from_index: int, to_index: int) -> bool:
        return self._commit(ops.reorder_segments(self.segments, from_index, to_index))

    def resize(self, segment_id: str, new_start: float, new_end: float) -> bool:
        return self._commit(self._resized(segment_id, new_start, new_end))

    def _resized(self, segment_id: str, new_start: float, new_end: float) -> Sequence[TimelineSegment]:
        seg = ops.find_segment(self.segments, segment_id)
        if seg is None:
            return self.segments
        clip = self.clips.get(seg.clip_id)
        duration = clip.duration if clip is not None else None
        return ops.resize_segment(self.segments, segment_id, new_start, new_end, duration)

    def update_words(self, segment_id: str, words: Sequence[TranscriptWord]) -> bool:
        return self._commit(ops.update_segment_words(self.segments, segment_id, words))

    def delete_words(self, word_ids: Iterable[str]) -> bool:
        return self._commit(transcript.delete_words(self.segments, word_ids))

    def remove_fillers(self) -> bool:
        return self._commit(transcript.remove_fillers(self.segments))

    def restore_words(self) -> bool:
        return self._commit(transcript.restore_all(self.segments))

    def undo(self) -> bool:
        self.cancel_drag()
        if not self.history.undo():
            return False
        self._sync()
        return True

    def redo(self) -> bool:
        self.cancel_drag()
        if not self.history.redo():
            return False
        self._sync()
        return True

    # --- Drag gestures ---

    def _begin_drag(self, kind: DragKind, segment_id: str) -> bool:
        idx = ops.index_of(self.segments, segment_id)
        if idx is None:
            return False
        seg = self.segments[idx]
        self.drag = DragPreview(
            kind=kind,
            segment_id=segment_id,
            origin_index=idx,
            origin_start=seg.range.start,
            origin_end=seg.range.end,
        )
        self.selected_id = segment_id
        return True

    def begin_drag_move(self, segment_id: str) -> bool:
        return self._begin_drag("move", segment_id)

    def begin_drag_resize(self, segment_id: str, side: Literal["left", "right"]) -> bool:
        return self._begin_drag("resize-left" if side == "left" else "resize-right", segment_id)

    def drag_to(self, target_index: Optional[int] = None, delta: Optional[float] = None) -> None:
        """
        Update the drag candidate.

        Move drags take a target_index; resize drags take delta, the time
        offset in seconds from where the drag started.
        """
        if self.drag is None:
            return
        if self.drag.kind == "move":
            if target_index is not None and target_index == self.drag.origin_index:
                target_index = None
            self.drag.target_index = target_index
        elif delta is not None:
            self.drag.delta = delta

    def preview(self) -> Sequence[TimelineSegment]:
        """Sequence as it would look if the current drag were committed."""
        drag = self.drag
        if drag is None:
            return self.segments

        if drag.kind == "move":
            if drag.target_index is None:
                return self.segments
            return ops.reorder_segments(self.segments, drag.origin_index, drag.target_index)

        if drag.kind == "resize-left":
            return self._resized(drag.segment_id, drag.origin_start + drag.delta, drag.origin_end)
        return self._resized(drag.segment_id, drag.origin_start, drag.origin_end + drag.delta)

    def commit_drag(self) -> bool:
        """Apply the drag candidate as one undoable edit."""
        if self.drag is None:
            return False
        candidate = self.preview()
        self.drag = None
        return self._commit(candidate)

    def cancel_drag(self) -> None:
        self.drag = None

    # --- Playback ---

    def seek(self, global_time: float) -> float:
        return self.clock.seek(global_time)

    def position(self) -> Optional[PlayheadPosition]:
        return self.clock.position()
