"""
Timeline data model.

Segments, clips and words are immutable pydantic models. Editing
operations never change a model in place; they build a new one with
model_copy(update=...), so any sequence already pushed to the undo
history keeps its exact value.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict

# Minimum length of any segment, in seconds
MIN_SEGMENT_DURATION = 0.1

DEFAULT_SCORE = 50.0
DEFAULT_GROUP_ID = "default"


class FrozenModel(BaseModel):
    model_config = ConfigDict(frozen=True)


class TimeRange(FrozenModel):
    """Clip-local time range in seconds."""

    start: float
    end: float

    @property
    def duration(self) -> float:
        return self.end - self.start


class AnalyzedSegment(FrozenModel):
    """One validated segment proposal for a single source clip."""

    text: str = ""
    start: float
    end: float
    group_id: str = DEFAULT_GROUP_ID
    score: float = DEFAULT_SCORE
    is_best: bool = False


class ClipAnalysis(FrozenModel):
    summary: str = ""
    segments: list[AnalyzedSegment] = []


class SourceClip(FrozenModel):
    """
    Reference to an uploaded source media file.

    duration is None until the media metadata has been probed; such a
    clip cannot be analyzed yet.
    """

    id: str
    name: str
    duration: Optional[float] = None
    path: Optional[str] = None


class TranscriptWord(FrozenModel):
    id: str
    text: str
    start: float
    end: float
    is_deleted: bool = False
    is_filler: bool = False


class TimelineSegment(FrozenModel):
    """
    One entry of the edited sequence.

    range is local to the source clip. The position of a segment on the
    global timeline is the sum of the durations of the segments before it.
    """

    id: str
    clip_id: str
    range: TimeRange
    is_best: bool = False
    score: float = DEFAULT_SCORE
    color: str
    name: str
    group_id: str = DEFAULT_GROUP_ID
    transcript: Optional[str] = None
    words: Optional[tuple[TranscriptWord, ...]] = None

    @property
    def duration(self) -> float:
        return self.range.end - self.range.start


class CutRange(FrozenModel):
    """One entry of the ordered cut list handed to the renderer."""

    clip_id: str
    start: float
    end: float

    @property
    def duration(self) -> float:
        return self.end - self.start
