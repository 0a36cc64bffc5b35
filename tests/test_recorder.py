"""Tests for sensor stream recording and replay."""

import pytest

from synthetic import ScriptedClassifier, rest, stroke

from imu_gestures.recorder import AxisEvent, SamplePlayer, SampleRecorder
from imu_gestures.scheduling import ManualScheduler
from imu_gestures.session import GestureSession, Mode


def record_triples(triples, interval_ms=31.25):
    rec = SampleRecorder()
    rec.start()
    for i, (x, y, z) in enumerate(triples):
        t = i * interval_ms
        rec.add("x", x, timestamp=t)
        rec.add("y", y, timestamp=t)
        rec.add("z", z, timestamp=t)
    rec.stop()
    return rec


class TestRecorder:
    def test_record_and_count(self):
        rec = SampleRecorder()
        rec.start()
        for i in range(10):
            rec.add("x", float(i), timestamp=i)
        assert rec.is_recording
        assert rec.stop() == 10
        assert not rec.is_recording

    def test_not_recording_ignores_events(self):
        rec = SampleRecorder()
        rec.add("x", 1.0)
        assert rec.event_count == 0

    def test_default_timestamp_is_relative(self):
        rec = SampleRecorder()
        rec.start()
        rec.add("x", 1.0)
        assert 0.0 <= rec.duration_ms < 1000.0

    def test_save_and_load_json(self, tmp_path):
        rec = record_triples(rest(4))
        path = tmp_path / "stream.json"
        rec.save(path)

        player = SamplePlayer.load(path)
        assert player.event_count == 12
        assert player.duration_ms == pytest.approx(3 * 31.25)
        assert next(player.play()) == AxisEvent(0.0, "x", -32.0)

    def test_save_and_load_npz(self, tmp_path):
        rec = record_triples(rest(5))
        path = tmp_path / "stream.npz"
        rec.save_compact(path)

        player = SamplePlayer.load(path)
        assert player.event_count == 15
        assert [e.axis for e in list(player.play())[:3]] == ["x", "y", "z"]


class TestPlayer:
    def test_from_samples(self):
        player = SamplePlayer.from_samples([(1, 2, 3), (4, 5, 6)], interval_ms=10)
        events = list(player.play())
        assert len(events) == 6
        assert events[3] == AxisEvent(10, "x", 4)

    def test_play_realtime_speed(self):
        player = SamplePlayer.from_samples([(0, 0, 0)] * 3, interval_ms=10)
        assert len(list(player.play_realtime(speed=100.0))) == 9

    def test_feed_uses_recorded_timestamps(self):
        session = GestureSession(classifier=ScriptedClassifier())
        player = SamplePlayer.from_samples(rest(5) + stroke())
        events = player.feed(session)
        assert len(events) == 1
        assert events[0].duration_ms == pytest.approx(33 * 31.25)

    def test_guided_replay_drives_timed_phases(self):
        sched = ManualScheduler()
        session = GestureSession(classifier=ScriptedClassifier(), scheduler=sched)
        # three shapes, about 7 s of rest covering phases 4 to 7, two random shapes
        stream = []
        for _ in range(3):
            stream += rest(5) + stroke()
        stream += rest(230)
        for _ in range(2):
            stream += rest(5) + stroke(radius=4.0, offset=24.0)

        session.start_recording()
        events = SamplePlayer.from_samples(stream).feed(session, scheduler=sched)
        result = session.wait_for_training(timeout=5)

        assert [e.phase for e in events] == [1, 2, 3, 6, 8, 9]
        assert result is not None
        assert session.mode is Mode.IDLE
        assert session.is_trained
