"""Tests for the editor session."""

import pytest

from smartcut.editor import EditorSession
from smartcut.models import AnalyzedSegment, ClipAnalysis, SourceClip
from smartcut.utils import GROUP_COLORS
from conftest import make_segment


def _analysis(*segments, summary="clip summary"):
    return ClipAnalysis(summary=summary, segments=list(segments))


def _analyzed(start, end, group="g1", score=50, is_best=False, text="some words"):
    return AnalyzedSegment(text=text, start=start, end=end, group_id=group, score=score, is_best=is_best)


@pytest.fixture
def session(clips):
    return EditorSession(
        clips=clips,
        segments=(
            make_segment("a", 0.0, 4.0),
            make_segment("b", 4.0, 6.0),
            make_segment("c", 1.0, 4.0, clip_id="clip-b"),
        ),
        history_limit=0,
    )


class TestLoadAnalysis:
    """Tests for loading AI results into a session."""

    def test_replaces_timeline(self, clips):
        session = EditorSession(clips=clips, history_limit=0)
        changed = session.load_analysis({
            "clip-a": _analysis(_analyzed(0, 3), _analyzed(3, 9, score=90, is_best=True)),
        })

        assert changed is True
        assert len(session.segments) == 2
        assert session.summaries == {"clip-a": "clip summary"}
        assert session.history.can_undo

    def test_append(self, session):
        session.load_analysis({"clip-b": _analysis(_analyzed(0, 2))}, append=True)
        assert [s.id for s in session.segments[:3]] == ["a", "b", "c"]
        assert len(session.segments) == 4

    def test_load_is_one_undo_step(self, session):
        session.load_analysis({"clip-a": _analysis(_analyzed(0, 3), _analyzed(3, 5, "g2"))})
        session.undo()
        assert [s.id for s in session.segments] == ["a", "b", "c"]

    def test_empty_is_noop(self, session):
        assert session.load_analysis({}) is False
        assert not session.history.can_undo

    def test_clips_follow_registration_order(self, clips):
        session = EditorSession(clips=clips, history_limit=0)
        session.load_analysis({
            "clip-b": _analysis(_analyzed(0, 2, "gb")),
            "clip-a": _analysis(_analyzed(0, 2, "ga")),
        })
        assert [s.clip_id for s in session.segments] == ["clip-a", "clip-b"]

    def test_append_keeps_one_best_per_group(self, clips):
        session = EditorSession(clips=clips, history_limit=0)
        session.load_analysis({"clip-a": _analysis(_analyzed(0, 3, "g1", score=90, is_best=True))})
        session.load_analysis({"clip-b": _analysis(_analyzed(0, 2, "g1", score=40, is_best=True))}, append=True)

        bests = [s for s in session.segments if s.is_best]
        assert [(s.clip_id, s.score) for s in bests] == [("clip-a", 90.0)]

    def test_one_best_per_group_across_clips(self, clips):
        session = EditorSession(clips=clips, history_limit=0)
        session.load_analysis({
            "clip-a": _analysis(_analyzed(0, 3, "g1", score=60, is_best=True)),
            "clip-b": _analysis(_analyzed(0, 2, "g1", score=80, is_best=True)),
        })

        assert [(s.clip_id, s.is_best) for s in session.segments] == [("clip-a", False), ("clip-b", True)]

    def test_append_keeps_group_colors(self, clips):
        session = EditorSession(clips=clips, history_limit=0)
        session.load_analysis({"clip-a": _analysis(_analyzed(0, 3, "g1"), _analyzed(3, 5, "g2"))})
        session.load_analysis({"clip-b": _analysis(_analyzed(0, 2, "g2"), _analyzed(2, 4, "g3"))}, append=True)

        colors = [(s.group_id, s.color) for s in session.segments]
        assert colors == [
            ("g1", GROUP_COLORS[0]),
            ("g2", GROUP_COLORS[1]),
            ("g2", GROUP_COLORS[1]),
            ("g3", GROUP_COLORS[2]),
        ]


class TestEditing:
    """Tests for history-wrapped edits."""

    def test_delete_selected(self, session):
        session.select("b")
        assert session.delete() is True
        assert [s.id for s in session.segments] == ["a", "c"]
        assert session.selected_id is None

    def test_delete_without_selection_is_noop(self, session):
        assert session.delete() is False
        assert not session.history.can_undo

    def test_split_at_playhead_selects_second_piece(self, session):
        session.seek(5.0)
        second_id = session.split()
        assert second_id is not None
        assert session.selected_id == second_id
        assert len(session.segments) == 4

    def test_rejected_split_records_nothing(self, session):
        assert session.split(4.02) is None
        assert not session.history.can_undo

    def test_merge(self, session):
        merged_id = session.merge("a", "b")
        assert merged_id is not None
        assert session.selected_id == merged_id
        assert session.segments[0].duration == 6.0

    def test_reorder(self, session):
        assert session.reorder(2, 0) is True
        assert [s.id for s in session.segments] == ["c", "a", "b"]

    def test_noop_reorder_records_nothing(self, session):
        assert session.reorder(1, 1) is False
        assert not session.history.can_undo

    def test_resize_uses_clip_duration(self, session):
        session.resize("c", 1.0, 50.0)
        seg = session.segments[2]
        assert seg.range.end == 20.0

    def test_word_edits(self, clips):
        session = EditorSession(
            clips=clips,
            segments=(make_segment("a", 0.0, 2.0, transcript="um hello"),),
            history_limit=0,
        )
        assert session.remove_fillers() is True
        assert session.segments[0].words[0].is_deleted
        assert session.restore_words() is True
        assert not session.segments[0].words[0].is_deleted
        assert session.delete_words(["a-word-1"]) is True
        session.undo()
        session.undo()
        assert session.segments[0].words[0].is_deleted


class TestUndoRedo:
    """Tests for undo/redo at the session level."""

    def test_round_trip(self, session):
        initial = session.segments
        session.reorder(0, 2)
        session.split(1.0)
        session.select("c")
        session.delete()
        after = session.segments

        for _ in range(3):
            assert session.undo() is True
        assert session.segments is initial
        assert session.undo() is False

        for _ in range(3):
            assert session.redo() is True
        assert session.segments is after

    def test_undo_clears_stale_selection(self, session):
        second_id = session.split(1.0)
        assert session.selected_id == second_id
        session.undo()
        assert session.selected_id is None

    def test_edit_after_undo_drops_redo(self, session):
        session.reorder(0, 2)
        session.undo()
        session.reorder(1, 2)
        assert session.redo() is False

    def test_clock_follows_undo(self, session):
        session.seek(8.5)
        session.delete("c")
        assert session.clock.elapsed == 6.0
        session.undo()
        assert session.clock.total == 9.0


class TestDrag:
    """Tests for drag previews."""

    def test_move_preview_does_not_touch_history(self, session):
        session.begin_drag_move("a")
        session.drag_to(target_index=2)
        preview = session.preview()

        assert [s.id for s in preview] == ["b", "c", "a"]
        assert [s.id for s in session.segments] == ["a", "b", "c"]
        assert not session.history.can_undo
        assert session.selected_id == "a"

    def test_commit_is_single_undo_step(self, session):
        session.begin_drag_move("a")
        session.drag_to(target_index=1)
        session.drag_to(target_index=2)
        assert session.commit_drag() is True
        assert [s.id for s in session.segments] == ["b", "c", "a"]
        assert len(session.history.past) == 1
        assert session.drag is None

    def test_drop_on_origin_is_noop(self, session):
        session.begin_drag_move("b")
        session.drag_to(target_index=1)
        assert session.commit_drag() is False

    def test_resize_right_preview(self, session):
        session.begin_drag_resize("b", "right")
        session.drag_to(delta=0.5)
        session.drag_to(delta=1.5)
        preview = session.preview()
        assert preview[1].range.end == 7.5
        assert session.segments[1].range.end == 6.0

        session.commit_drag()
        assert session.segments[1].range.end == 7.5
        assert len(session.history.past) == 1

    def test_resize_left_clamped(self, session):
        session.begin_drag_resize("a", "left")
        session.drag_to(delta=10.0)
        preview = session.preview()
        assert preview[0].range.start == pytest.approx(10.0)
        assert preview[0].range.end == pytest.approx(10.1)

    def test_cancel(self, session):
        session.begin_drag_move("a")
        session.drag_to(target_index=2)
        session.cancel_drag()
        assert session.preview() is session.segments
        assert session.commit_drag() is False

    def test_unknown_segment(self, session):
        assert session.begin_drag_move("nope") is False
        assert session.drag is None


class TestClips:
    def test_set_clip_duration(self):
        session = EditorSession(clips=[SourceClip(id="x", name="x.mp4")], history_limit=0)
        assert session.analyzable_clips() == []
        session.set_clip_duration("x", 12.0)
        assert [c.id for c in session.analyzable_clips()] == ["x"]

    def test_unknown_clip(self, session):
        assert session.set_clip_duration("nope", 1.0) is None

    def test_remove_clip_keeps_segments(self, session):
        assert session.remove_clip("clip-b") is True
        assert len(session.segments) == 3
        assert "clip-b" not in session.clips
