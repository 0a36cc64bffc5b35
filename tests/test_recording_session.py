"""Tests for the guided recording protocol."""

import pytest

from imu_gestures.scheduling import ManualScheduler
from imu_gestures.session import PHASES, RecordingSession, phase_label
from imu_gestures.training_set import TrainingSetStore


def _session(delay_s=2.0):
    store = TrainingSetStore()
    entered = []
    sched = ManualScheduler()
    rec = RecordingSession(store, on_enter=entered.append, scheduler=sched, delay_s=delay_s)
    return rec, store, entered, sched


class TestPhaseTable:
    def test_ten_phases_in_order(self):
        assert [p.number for p in PHASES] == list(range(1, 11))

    def test_prompts(self):
        assert PHASES[0].prompt == "Draw a shape in the air"
        assert PHASES[5].prompt == "Recording..."
        assert PHASES[9].prompt == "OK, processing...."

    def test_recording_phases(self):
        assert [p.number for p in PHASES if p.recording] == [1, 2, 3, 6, 8, 9]

    def test_timed_phases(self):
        assert [p.number for p in PHASES if p.auto_advance] == [4, 5, 7]

    def test_only_phase_six_ignores_start_trigger(self):
        assert [p.number for p in PHASES if p.ignore_start_trigger] == [6]

    @pytest.mark.parametrize("number, label", [
        (1, (False, False, True)),
        (2, (False, False, True)),
        (3, (False, False, True)),
        (6, (False, True, False)),
        (8, (True, False, False)),
        (9, (True, False, False)),
    ])
    def test_labels(self, number, label):
        assert phase_label(number) == label


class TestRecordingSession:
    def test_start_enters_phase_one(self):
        rec, _store, entered, _sched = _session()
        assert rec.phase is None
        rec.start()
        assert rec.phase.number == 1
        assert [p.number for p in entered] == [1]

    def test_gesture_advances_and_stores_label(self):
        rec, store, _entered, _sched = _session()
        rec.start()
        assert rec.record_gesture([0.5, 0.5, 0.5])
        assert rec.phase.number == 2
        assert store.examples[0].output == (False, False, True)

    def test_empty_gesture_still_advances(self):
        rec, store, _entered, _sched = _session()
        rec.start()
        assert not rec.record_gesture([])
        assert rec.phase.number == 2
        assert len(store) == 0

    def test_record_ignored_in_timed_phase(self):
        rec, store, _entered, _sched = _session()
        rec.start()
        for _ in range(3):
            rec.record_gesture([0.5] * 3)
        assert rec.phase.number == 4
        assert not rec.record_gesture([0.5] * 3)
        assert rec.phase.number == 4
        assert len(store) == 3

    def test_timed_phases_advance_after_delay(self):
        rec, _store, _entered, sched = _session()
        rec.start()
        for _ in range(3):
            rec.record_gesture([0.5] * 3)
        sched.advance(1.99)
        assert rec.phase.number == 4
        sched.advance(0.01)
        assert rec.phase.number == 5
        sched.advance(2.0)
        assert rec.phase.number == 6

    def test_single_pending_timer(self):
        rec, _store, _entered, sched = _session()
        rec.start()
        for _ in range(3):
            rec.record_gesture([0.5] * 3)
        assert sched.pending_count == 1
        sched.advance(2.0)
        assert sched.pending_count == 1
        sched.advance(2.0)
        assert rec.phase.number == 6
        assert sched.pending_count == 0

    def test_full_protocol(self):
        rec, store, entered, sched = _session()
        rec.start()
        for _ in range(3):
            rec.record_gesture([0.9] * 3)
        sched.advance(4.0)
        rec.record_gesture([0.0] * 3)
        assert rec.phase.number == 7
        sched.advance(2.0)
        rec.record_gesture([0.2] * 3)
        rec.record_gesture([0.3] * 3)

        assert rec.phase.number == 10
        assert rec.finished
        assert [p.number for p in entered] == list(range(1, 11))
        assert [e.output for e in store] == [
            (False, False, True),
            (False, False, True),
            (False, False, True),
            (False, True, False),
            (True, False, False),
            (True, False, False),
        ]

    def test_never_goes_past_last_phase(self):
        rec, _store, entered, _sched = _session()
        rec.start()
        for _ in range(20):
            rec.advance()
        assert rec.phase.number == 10
        assert len(entered) == 10

    def test_cancel_drops_pending_timer(self):
        rec, _store, _entered, sched = _session()
        rec.start()
        for _ in range(3):
            rec.record_gesture([0.5] * 3)
        rec.cancel()
        assert rec.phase is None
        assert sched.advance(10.0) == 0

    def test_restart_begins_at_phase_one(self):
        rec, _store, _entered, sched = _session()
        rec.start()
        for _ in range(3):
            rec.record_gesture([0.5] * 3)
        rec.start()
        assert rec.phase.number == 1
        sched.advance(10.0)
        assert rec.phase.number == 1

    def test_manual_advance_supersedes_timer(self):
        rec, _store, _entered, sched = _session()
        rec.start()
        for _ in range(3):
            rec.record_gesture([0.5] * 3)
        rec.advance()
        assert rec.phase.number == 5
        sched.advance(2.0)
        assert rec.phase.number == 6
