"""Trainable sequence classifiers.

The engine only needs two things from a classifier: an asynchronous train()
over the recorded examples and a synchronous infer() returning three
independent class scores. SequenceClassifier handles the bookkeeping that
every implementation shares (background training, the not-trained guard);
subclasses supply _fit() and _activate().

LSTMSequenceClassifier is the default implementation, a small PyTorch LSTM
reading the feature sequence as (T, 3) normalized triples.
"""

from __future__ import annotations

import logging
import threading
import time
from abc import ABC, abstractmethod
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional, Sequence

import numpy as np

from imu_gestures.errors import NoTrainingDataError, NotTrainedError
from imu_gestures.training_set import TrainingExample

logger = logging.getLogger("imu_gestures.classifier")

NUM_OUTPUTS = 3


@dataclass
class TrainingOptions:
    rate: float = 0.1
    iterations: int = 20000
    error: float = 0.005
    seed: Optional[int] = None


@dataclass
class TrainingResult:
    error: float
    iterations: int
    elapsed_s: float
    examples: int


class SequenceClassifier(ABC):
    """Base class for classifiers the gesture session can train and query.

    train() returns a Future; infer() raises NotTrainedError until the most
    recent training run has completed successfully.
    """

    def __init__(self):
        self._model: Any = None
        self._lock = threading.Lock()
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="imu-gestures-train")

    @property
    def is_trained(self) -> bool:
        with self._lock:
            return self._model is not None

    def train(
        self,
        examples: Sequence[TrainingExample],
        options: Optional[TrainingOptions] = None,
    ) -> Future:
        """Start training in the background. Resolves to a TrainingResult."""
        examples = list(examples)
        if not examples:
            raise NoTrainingDataError("No training examples recorded")

        options = options or TrainingOptions()
        with self._lock:
            self._model = None

        logger.info(
            "Training on %d examples (rate=%s, iterations=%d, error=%s)",
            len(examples), options.rate, options.iterations, options.error,
        )
        return self._executor.submit(self._run_training, examples, options)

    def _run_training(self, examples: list[TrainingExample], options: TrainingOptions) -> TrainingResult:
        t0 = time.monotonic()
        model, error, iterations = self._fit(examples, options)
        result = TrainingResult(
            error=error,
            iterations=iterations,
            elapsed_s=time.monotonic() - t0,
            examples=len(examples),
        )
        with self._lock:
            self._model = model
        logger.info(
            "Training finished: error=%.5f after %d iterations (%.1fs)",
            result.error, result.iterations, result.elapsed_s,
        )
        return result

    def infer(self, sequence: Sequence[float]) -> np.ndarray:
        """Score a feature sequence. Returns an array of shape (3,)."""
        with self._lock:
            model = self._model
        if model is None:
            raise NotTrainedError("Classifier has no trained model")
        return np.asarray(self._activate(model, sequence), dtype=np.float64)

    def close(self):
        """Stop the training worker."""
        self._executor.shutdown(wait=False)

    @abstractmethod
    def _fit(
        self, examples: list[TrainingExample], options: TrainingOptions
    ) -> tuple[Any, float, int]:
        """Build a model. Returns (model, final_error, iterations_run)."""

    @abstractmethod
    def _activate(self, model: Any, sequence: Sequence[float]) -> Sequence[float]:
        """Run a model on one feature sequence."""


def _as_triples(sequence: Sequence[float]) -> np.ndarray:
    values = np.asarray(sequence, dtype=np.float32)
    if values.size == 0 or values.size % 3:
        raise ValueError(f"Feature sequence must hold whole x/y/z triples, got {values.size} values")
    return values.reshape(-1, 3)


def _build_network(hidden_size: int):
    import torch
    import torch.nn as nn

    class SequenceNet(nn.Module):
        def __init__(self):
            super().__init__()
            self.lstm = nn.LSTM(input_size=3, hidden_size=hidden_size, batch_first=True)
            self.head = nn.Linear(hidden_size, NUM_OUTPUTS)

        def forward(self, x):  # x: (B, T, 3)
            out, _ = self.lstm(x)
            return torch.sigmoid(self.head(out[:, -1]))

    return SequenceNet()


class LSTMSequenceClassifier(SequenceClassifier):
    """LSTM over normalized x/y/z triples with three sigmoid outputs.

    Trained online (one example per step) with SGD on mean squared error,
    stopping once the mean error over the set drops below options.error.
    """

    def __init__(self, hidden_size: int = 20, model_path: Optional[str | Path] = None):
        super().__init__()
        self.hidden_size = hidden_size
        if model_path:
            self.load_model(model_path)

    def _fit(self, examples, options):
        import torch
        import torch.nn as nn

        if options.seed is not None:
            torch.manual_seed(options.seed)

        inputs = [torch.from_numpy(_as_triples(e.input)).unsqueeze(0) for e in examples]
        targets = [torch.tensor([e.output], dtype=torch.float32) for e in examples]

        network = _build_network(self.hidden_size)
        optimizer = torch.optim.SGD(network.parameters(), lr=options.rate)
        criterion = nn.MSELoss()

        network.train()
        error = float("inf")
        iteration = 0

        for iteration in range(1, options.iterations + 1):
            total = 0.0
            for x, y in zip(inputs, targets):
                optimizer.zero_grad()
                loss = criterion(network(x), y)
                loss.backward()
                optimizer.step()
                total += loss.item()

            error = total / len(inputs)
            if iteration % 1000 == 0:
                logger.debug("iteration %d error %.5f", iteration, error)
            if error <= options.error:
                break

        network.eval()
        return network, error, iteration

    def _activate(self, model, sequence):
        import torch

        x = torch.from_numpy(_as_triples(sequence)).unsqueeze(0)
        with torch.no_grad():
            return model(x)[0].numpy()

    def save_model(self, path: str | Path):
        """Save the trained network."""
        import torch

        with self._lock:
            model = self._model
        if model is None:
            raise NotTrainedError("Nothing to save: classifier has no trained model")

        torch.save({
            "model_state": model.state_dict(),
            "hidden_size": self.hidden_size,
        }, path)

    def load_model(self, path: str | Path):
        import torch

        checkpoint = torch.load(path, map_location="cpu", weights_only=False)
        self.hidden_size = checkpoint["hidden_size"]
        network = _build_network(self.hidden_size)
        network.load_state_dict(checkpoint["model_state"])
        network.eval()
        with self._lock:
            self._model = network
