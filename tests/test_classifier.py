"""Tests for the sequence classifiers."""

import threading

import numpy as np
import pytest

from synthetic import ScriptedClassifier

from imu_gestures.classifier import LSTMSequenceClassifier, TrainingOptions, TrainingResult
from imu_gestures.errors import NoTrainingDataError, NotTrainedError
from imu_gestures.recognition import RecognitionGate
from imu_gestures.training_set import TrainingExample


def _examples():
    same = TrainingExample(input=(0.9, 0.5, 0.5) * 8, output=(False, False, True))
    steady = TrainingExample(input=(0.0, 0.0, 0.0) * 8, output=(False, True, False))
    other = TrainingExample(input=(0.2, 0.8, 0.4) * 8, output=(True, False, False))
    return [same, steady, other]


class TestSequenceClassifier:
    def test_untrained_infer_raises(self):
        clf = ScriptedClassifier()
        assert not clf.is_trained
        with pytest.raises(NotTrainedError):
            clf.infer([0.1, 0.2, 0.3])

    def test_train_without_examples_raises(self):
        clf = ScriptedClassifier()
        with pytest.raises(NoTrainingDataError):
            clf.train([])

    def test_train_resolves_to_result(self):
        clf = ScriptedClassifier()
        result = clf.train(_examples()).result(timeout=5)
        assert isinstance(result, TrainingResult)
        assert result.examples == 3
        assert result.error == pytest.approx(0.001)
        assert clf.is_trained
        assert len(clf.trained_on) == 3

    def test_infer_returns_three_scores(self):
        clf = ScriptedClassifier(scores=(0.2, 0.3, 0.95))
        clf.train(_examples()).result(timeout=5)
        scores = clf.infer([0.5, 0.5, 0.5])
        assert isinstance(scores, np.ndarray)
        assert scores.shape == (3,)
        assert scores[2] == pytest.approx(0.95)

    def test_scores_keep_full_precision(self):
        clf = ScriptedClassifier(scores=(0.0, 0.0, 0.85))
        clf.train(_examples()).result(timeout=5)
        scores = clf.infer([0.5, 0.5, 0.5])
        assert scores[2] == 0.85
        assert RecognitionGate().decide(scores, "wave") is None

    def test_failed_training_leaves_untrained(self):
        clf = ScriptedClassifier(fail=True)
        future = clf.train(_examples())
        with pytest.raises(RuntimeError):
            future.result(timeout=5)
        assert not clf.is_trained

    def test_retraining_invalidates_model(self):
        clf = ScriptedClassifier()
        clf.train(_examples()).result(timeout=5)
        assert clf.is_trained

        release = threading.Event()
        original_fit = clf._fit

        def slow_fit(examples, options):
            release.wait(5)
            return original_fit(examples, options)

        clf._fit = slow_fit
        future = clf.train(_examples())
        assert not clf.is_trained
        with pytest.raises(NotTrainedError):
            clf.infer([0.5, 0.5, 0.5])
        release.set()
        future.result(timeout=5)
        assert clf.is_trained

    def test_training_runs_off_caller_thread(self):
        clf = ScriptedClassifier()
        seen = []
        original_fit = clf._fit

        def fit(examples, options):
            seen.append(threading.current_thread())
            return original_fit(examples, options)

        clf._fit = fit
        clf.train(_examples()).result(timeout=5)
        assert seen and seen[0] is not threading.current_thread()


class TestLSTMSequenceClassifier:
    def test_learns_to_separate_examples(self):
        pytest.importorskip("torch")
        clf = LSTMSequenceClassifier(hidden_size=8)
        options = TrainingOptions(rate=0.5, iterations=400, error=0.01, seed=0)
        result = clf.train(_examples(), options).result(timeout=120)

        assert result.iterations <= 400
        scores = clf.infer(_examples()[0].input)
        assert scores.shape == (3,)
        assert np.all((scores >= 0) & (scores <= 1))

    def test_rejects_partial_triples(self):
        pytest.importorskip("torch")
        clf = LSTMSequenceClassifier(hidden_size=4)
        clf.train(_examples(), TrainingOptions(iterations=1, seed=0)).result(timeout=60)
        with pytest.raises(ValueError):
            clf.infer([0.1, 0.2])

    def test_save_and_load_model(self, tmp_path):
        pytest.importorskip("torch")
        clf = LSTMSequenceClassifier(hidden_size=6)
        clf.train(_examples(), TrainingOptions(iterations=5, seed=1)).result(timeout=60)
        path = tmp_path / "model.pt"
        clf.save_model(path)

        restored = LSTMSequenceClassifier(model_path=path)
        assert restored.is_trained
        assert restored.hidden_size == 6
        sequence = _examples()[1].input
        np.testing.assert_allclose(clf.infer(sequence), restored.infer(sequence), rtol=1e-5)

    def test_save_untrained_raises(self, tmp_path):
        clf = LSTMSequenceClassifier()
        with pytest.raises(NotTrainedError):
            clf.save_model(tmp_path / "model.pt")
