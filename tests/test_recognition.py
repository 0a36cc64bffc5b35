"""Tests for the recognition gate."""

import pytest

from imu_gestures.recognition import RecognitionGate


class TestDecide:
    def test_above_threshold(self):
        gate = RecognitionGate()
        recognition = gate.decide([0.1, 0.2, 0.9], "wave")
        assert recognition is not None
        assert recognition.label == "wave"
        assert recognition.score == pytest.approx(0.9)
        assert recognition.payload == {"wave": True}

    def test_threshold_is_strict(self):
        gate = RecognitionGate()
        assert gate.decide([0.0, 0.0, 0.85], "wave") is None
        assert gate.decide([0.0, 0.0, 0.8501], "wave") is not None

    def test_only_channel_two_consulted(self):
        gate = RecognitionGate()
        assert gate.decide([0.99, 0.99, 0.5], "wave") is None

    def test_custom_channel(self):
        gate = RecognitionGate(threshold=0.5, channel=0)
        assert gate.decide([0.6, 0.0, 0.0], "wave") is not None


class TestGate:
    def test_emits_to_both_sinks(self):
        broadcast, forward = [], []
        gate = RecognitionGate(broadcast=broadcast.append, forward=forward.append)
        recognition = gate.gate(1, [0.0, 0.0, 0.9], "wave")
        assert recognition.gesture_id == 1
        assert broadcast == [{"wave": True}]
        assert forward == [{"wave": True}]

    def test_emits_once_per_gesture(self):
        received = []
        gate = RecognitionGate(broadcast=received.append)
        assert gate.gate(1, [0.0, 0.0, 0.9], "wave") is not None
        assert gate.gate(1, [0.0, 0.0, 0.9], "wave") is None
        assert gate.gate(2, [0.0, 0.0, 0.9], "wave") is not None
        assert len(received) == 2

    def test_below_threshold_emits_nothing(self):
        received = []
        gate = RecognitionGate(broadcast=received.append, forward=received.append)
        assert gate.gate(1, [0.0, 0.0, 0.3], "wave") is None
        assert received == []

    def test_sink_error_does_not_block_other_sink(self):
        forward = []

        def broken(payload):
            raise RuntimeError("listener gone")

        gate = RecognitionGate(broadcast=broken, forward=forward.append)
        assert gate.gate(1, [0.0, 0.0, 0.9], "wave") is not None
        assert forward == [{"wave": True}]

    def test_sinks_get_independent_payloads(self):
        first, second = [], []

        def mutate(payload):
            payload["extra"] = 1
            first.append(payload)

        gate = RecognitionGate(broadcast=mutate, forward=second.append)
        gate.gate(1, [0.0, 0.0, 0.9], "wave")
        assert second == [{"wave": True}]
