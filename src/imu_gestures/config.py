"""Engine configuration.

Every threshold the segmentation, recording and recognition stages use lives
here under a name, so that the coupling between them stays visible:

    config = EngineConfig.from_yaml("engine.yml")
    session = GestureSession(config=config)
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, fields
from pathlib import Path

import yaml

logger = logging.getLogger("imu_gestures.config")


@dataclass
class EngineConfig:
    # Normalization: (raw + raw_offset) / raw_span
    raw_offset: float = 32.0
    raw_span: float = 64.0

    # Segmentation
    start_threshold: float = 0.25
    stop_threshold: float = 0.95
    min_duration_ms: float = 1000.0

    # Guided recording
    phase_delay_s: float = 2.0

    # Recognition
    recognition_threshold: float = 0.85
    recognition_channel: int = 2

    # Training
    learning_rate: float = 0.1
    iterations: int = 20000
    target_error: float = 0.005
    hidden_size: int = 20

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> EngineConfig:
        known = {f.name for f in fields(cls)}
        unknown = sorted(k for k in data if k not in known)
        if unknown:
            logger.warning("Ignoring unknown config keys: %s", ", ".join(unknown))
        return cls(**{k: v for k, v in data.items() if k in known})

    @classmethod
    def from_yaml(cls, path: str | Path) -> EngineConfig:
        """Load a config file. Missing keys keep their defaults."""
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        return cls.from_dict(data)

    def to_yaml(self, path: str | Path):
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            yaml.dump(self.to_dict(), f, default_flow_style=False, sort_keys=False)
