"""Labeled training examples collected by the guided recording protocol."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Sequence

logger = logging.getLogger("imu_gestures.training_set")


@dataclass(frozen=True)
class TrainingExample:
    """One segmented gesture and the label of the phase that produced it."""
    input: tuple[float, ...]
    output: tuple[bool, ...]

    def to_dict(self) -> dict:
        return {"input": list(self.input), "output": list(self.output)}

    @classmethod
    def from_dict(cls, data: dict) -> TrainingExample:
        return cls(
            input=tuple(float(v) for v in data["input"]),
            output=tuple(bool(v) for v in data["output"]),
        )


class TrainingSetStore:
    """Insertion-ordered, append-only collection of training examples.

    Usage:
        store = TrainingSetStore()
        store.add_example(features, (False, False, True))
        future = classifier.train(store.examples, options)
    """

    def __init__(self):
        self._examples: list[TrainingExample] = []

    def add_example(self, sequence: Sequence[float], label: Sequence[bool]) -> bool:
        """Append an example. Returns False (and keeps nothing) for an empty sequence."""
        if not len(sequence):
            logger.warning("Rejected training example: input sequence is empty")
            return False

        example = TrainingExample(
            input=tuple(float(v) for v in sequence),
            output=tuple(bool(v) for v in label),
        )
        self._examples.append(example)
        logger.info(
            "Added training example #%d (%d values, label=%s)",
            len(self._examples), len(example.input), list(example.output),
        )
        return True

    @property
    def examples(self) -> tuple[TrainingExample, ...]:
        return tuple(self._examples)

    @property
    def max_input_length(self) -> int:
        return max((len(e.input) for e in self._examples), default=0)

    @property
    def mean_input_length(self) -> float:
        if not self._examples:
            return 0.0
        return sum(len(e.input) for e in self._examples) / len(self._examples)

    def clear(self):
        self._examples.clear()

    def __len__(self) -> int:
        return len(self._examples)

    def __iter__(self) -> Iterator[TrainingExample]:
        return iter(list(self._examples))

    def save(self, path: str | Path):
        """Write the training set to a JSON file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        data = {
            "version": 1,
            "count": len(self._examples),
            "examples": [e.to_dict() for e in self._examples],
        }
        with open(path, "w") as f:
            json.dump(data, f)

    @classmethod
    def load(cls, path: str | Path) -> TrainingSetStore:
        with open(path) as f:
            data = json.load(f)

        store = cls()
        for entry in data.get("examples", []):
            example = TrainingExample.from_dict(entry)
            store.add_example(example.input, example.output)
        return store
