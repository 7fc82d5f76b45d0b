"""Tests for playhead resolution and the playback clock."""

import pytest

from smartcut.playhead import PlaybackClock, global_time_for, resolve, segment_start_times
from conftest import make_segment


class TestResolve:
    """Tests for mapping global time to segment and offset."""

    def test_inside_first_segment(self, two_segments):
        position = resolve(two_segments, 4.999)
        assert position.segment.id == "s1"
        assert position.index == 0
        assert position.offset == pytest.approx(4.999)
        assert position.source_time == pytest.approx(14.999)

    def test_boundary_belongs_to_next_segment(self, two_segments):
        position = resolve(two_segments, 5.0)
        assert position.segment.id == "s2"
        assert position.offset == 0.0
        assert position.segment_start == 5.0
        assert position.source_time == 2.0

    def test_start_of_sequence(self, two_segments):
        position = resolve(two_segments, 0.0)
        assert position.segment.id == "s1"
        assert position.source_time == 10.0

    def test_end_of_sequence_is_none(self, two_segments):
        assert resolve(two_segments, 8.0) is None
        assert resolve(two_segments, 100.0) is None

    def test_negative_is_none(self, two_segments):
        assert resolve(two_segments, -1) is None

    def test_nan_is_none(self, two_segments):
        assert resolve(two_segments, float("nan")) is None

    def test_empty_sequence(self):
        assert resolve((), 0.0) is None


class TestSegmentTimes:
    """Tests for global segment positions."""

    def test_start_times(self, two_segments):
        assert segment_start_times(two_segments) == [0.0, 5.0]

    def test_global_time_for_segment_start(self, two_segments):
        assert global_time_for(two_segments, "s2") == 5.0

    def test_global_time_for_source_time(self, two_segments):
        assert global_time_for(two_segments, "s2", source_time=3.5) == pytest.approx(6.5)

    def test_source_time_clamped_into_segment(self, two_segments):
        assert global_time_for(two_segments, "s1", source_time=100.0) == pytest.approx(5.0)

    def test_unknown_segment(self, two_segments):
        assert global_time_for(two_segments, "nope") is None


class TestPlaybackClock:
    """Tests for tick-driven playback."""

    def test_tick_does_nothing_while_stopped(self, two_segments):
        clock = PlaybackClock(two_segments)
        assert clock.tick(1.0) == 0.0

    def test_tick_advances(self, two_segments):
        clock = PlaybackClock(two_segments)
        clock.play()
        clock.tick(0.5)
        assert clock.tick(0.25) == pytest.approx(0.75)
        assert clock.position().segment.id == "s1"

    def test_halts_at_end(self, two_segments):
        clock = PlaybackClock(two_segments)
        clock.play()
        assert clock.tick(10.0) == 8.0
        assert clock.playing is False
        assert clock.position() is None

    def test_play_at_end_restarts(self, two_segments):
        clock = PlaybackClock(two_segments)
        clock.seek(8.0)
        assert clock.play() is True
        assert clock.elapsed == 0.0

    def test_stop_cancels(self, two_segments):
        clock = PlaybackClock(two_segments)
        clock.play()
        clock.tick(1.0)
        clock.stop()
        assert clock.tick(1.0) == 1.0

    def test_cannot_play_empty(self):
        clock = PlaybackClock(())
        assert clock.play() is False
        assert clock.playing is False

    def test_seek_clamps(self, two_segments):
        clock = PlaybackClock(two_segments)
        assert clock.seek(-3) == 0.0
        assert clock.seek(50) == 8.0

    def test_toggle(self, two_segments):
        clock = PlaybackClock(two_segments)
        assert clock.toggle() is True
        assert clock.toggle() is False

    def test_shorter_sequence_pulls_playhead_back(self, two_segments):
        clock = PlaybackClock(two_segments)
        clock.seek(7.0)
        clock.set_sequence(two_segments[:1])
        assert clock.elapsed == 5.0
