import pytest

from smartcut.models import SourceClip, TimelineSegment, TimeRange


def make_segment(seg_id, start, end, clip_id="clip-a", group_id="g1", is_best=False, score=50.0, transcript=None, words=None):
    return TimelineSegment(
        id=seg_id,
        clip_id=clip_id,
        range=TimeRange(start=start, end=end),
        is_best=is_best,
        score=score,
        color="#60A5FA",
        name=f"{clip_id}.mp4",
        group_id=group_id,
        transcript=transcript,
        words=words,
    )


@pytest.fixture
def two_segments():
    """Two segments of local durations 5s and 3s."""
    return (
        make_segment("s1", 10.0, 15.0),
        make_segment("s2", 2.0, 5.0, clip_id="clip-b"),
    )


@pytest.fixture
def clips():
    return [
        SourceClip(id="clip-a", name="clip-a.mp4", duration=60.0, path="/data/clip-a.mp4"),
        SourceClip(id="clip-b", name="clip-b.mp4", duration=20.0, path="/data/clip-b.mp4"),
    ]
