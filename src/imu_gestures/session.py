"""Gesture session: segmentation, guided recording, training and listening.

One GestureSession owns everything for one sensor stream:

    session = GestureSession(broadcast=print)
    session.start_recording()            # guided 10-phase protocol
    for axis, value in sensor:           # samples drive the protocol
        session.on_axis(axis, value)
    session.wait_for_training()
    session.start_listening()            # recognized gestures reach the sinks

Every incoming sample runs normalize -> delta -> segmentation -> accumulate
synchronously. Training is the only long-running step and happens on the
classifier's worker thread.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from imu_gestures.catalog import GestureCatalog
from imu_gestures.classifier import LSTMSequenceClassifier, SequenceClassifier, TrainingOptions, TrainingResult
from imu_gestures.config import EngineConfig
from imu_gestures.errors import InvalidModeError, NoTrainingDataError, NotTrainedError
from imu_gestures.metrics import MetricsCollector
from imu_gestures.normalizer import AxisBuffer, RawSample, normalize
from imu_gestures.profiler import PipelineProfiler
from imu_gestures.recognition import Recognition, RecognitionGate, Sink
from imu_gestures.scheduling import ThreadingScheduler, TimerHandle
from imu_gestures.segmentation import FeatureAccumulator, SegmentationDetector, Transition
from imu_gestures.training_set import TrainingSetStore

logger = logging.getLogger("imu_gestures.session")


class Mode(Enum):
    IDLE = "idle"
    RECORDING = "recording"
    LISTENING = "listening"
    TRAINING = "training"


@dataclass(frozen=True)
class Phase:
    """One step of the guided recording protocol."""
    number: int
    prompt: str
    recording: bool
    ignore_start_trigger: bool = False
    auto_advance: bool = False
    trains: bool = False


PHASES: tuple[Phase, ...] = (
    Phase(1, "Draw a shape in the air", recording=True),
    Phase(2, "Please draw the same shape", recording=True),
    Phase(3, "Once more, draw the same shape", recording=True),
    Phase(4, "Well done, now just leave the hand steady", recording=False, auto_advance=True),
    Phase(5, "Ready? Don't move!", recording=False, auto_advance=True),
    Phase(6, "Recording...", recording=True, ignore_start_trigger=True),
    Phase(7, "Well done! that was easy", recording=False, auto_advance=True),
    Phase(8, "Now, just draw a random shape", recording=True),
    Phase(9, "Once more, another random shape", recording=True),
    Phase(10, "OK, processing....", recording=False, trains=True),
)

# (random shape, steady baseline, same shape)
PHASE_LABELS: dict[int, tuple[bool, bool, bool]] = {
    p.number: (p.number > 7, p.number == 6, p.number < 4) for p in PHASES
}


def phase_label(number: int) -> tuple[bool, bool, bool]:
    return PHASE_LABELS[number]


@dataclass
class GestureEvent:
    """A completed gesture segment."""
    gesture_id: int
    features: list[float]
    mode: Mode
    start_ms: float
    end_ms: float
    phase: Optional[int] = None
    recognition: Optional[Recognition] = None

    @property
    def duration_ms(self) -> float:
        return self.end_ms - self.start_ms


class RecordingSession:
    """The guided capture wizard.

    Walks through PHASES in order and never goes back. Gesture phases advance
    when a gesture completes; timed phases advance after delay_s. Only one
    timer is pending at a time: entering a phase cancels the previous one.
    """

    def __init__(
        self,
        store: TrainingSetStore,
        on_enter: Callable[[Phase], None],
        scheduler=None,
        delay_s: float = 2.0,
        lock: Optional[threading.RLock] = None,
    ):
        self._store = store
        self._on_enter = on_enter
        self._scheduler = scheduler or ThreadingScheduler()
        self.delay_s = delay_s
        self._lock = lock or threading.RLock()
        self._index = -1
        self._timer: Optional[TimerHandle] = None
        self._timer_token = 0

    @property
    def phase(self) -> Optional[Phase]:
        if 0 <= self._index < len(PHASES):
            return PHASES[self._index]
        return None

    @property
    def is_recording(self) -> bool:
        phase = self.phase
        return phase is not None and phase.recording

    @property
    def finished(self) -> bool:
        return self._index >= len(PHASES) - 1

    def start(self):
        with self._lock:
            self._cancel_timer()
            self._index = -1
            self.advance()

    def advance(self):
        with self._lock:
            if self._index >= len(PHASES) - 1:
                return
            self._cancel_timer()
            self._index += 1
            phase = PHASES[self._index]
            logger.info("Recording phase %d: %s", phase.number, phase.prompt)

            if phase.auto_advance:
                token = self._timer_token
                self._timer = self._scheduler.call_later(
                    self.delay_s, lambda: self._on_timer(token)
                )

            self._on_enter(phase)

    def record_gesture(self, features: list[float]) -> bool:
        """Store a finished gesture under the current phase's label and advance."""
        with self._lock:
            phase = self.phase
            if phase is None or not phase.recording:
                return False
            added = self._store.add_example(features, phase_label(phase.number))
            self.advance()
            return added

    def cancel(self):
        with self._lock:
            self._cancel_timer()
            self._index = -1

    def _on_timer(self, token: int):
        with self._lock:
            if token != self._timer_token or self._timer is None:
                return
            self._timer = None
            self.advance()

    def _cancel_timer(self):
        self._timer_token += 1
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None


class GestureSession:
    """Owns the state for one sensor stream and switches between modes.

    Modes are exclusive: IDLE, RECORDING (guided protocol), TRAINING
    (model being built), LISTENING (recognizing).
    """

    def __init__(
        self,
        classifier: Optional[SequenceClassifier] = None,
        config: Optional[EngineConfig] = None,
        catalog: Optional[GestureCatalog] = None,
        scheduler=None,
        clock: Optional[Callable[[], float]] = None,
        broadcast: Optional[Sink] = None,
        forward: Optional[Sink] = None,
        metrics: Optional[MetricsCollector] = None,
        profiler: Optional[PipelineProfiler] = None,
    ):
        self.config = config or EngineConfig()
        self.classifier = classifier or LSTMSequenceClassifier(hidden_size=self.config.hidden_size)
        self.catalog = catalog or GestureCatalog()
        self.metrics = metrics or MetricsCollector()
        self.profiler = profiler or PipelineProfiler()
        self._clock = clock or (lambda: time.monotonic() * 1000.0)

        self._lock = threading.RLock()
        self._mode = Mode.IDLE
        self._buffer = AxisBuffer()
        self.detector = SegmentationDetector(
            start_threshold=self.config.start_threshold,
            stop_threshold=self.config.stop_threshold,
            min_duration_ms=self.config.min_duration_ms,
        )
        self._accumulator = FeatureAccumulator()
        self.training_set = TrainingSetStore()
        self.recording = RecordingSession(
            self.training_set,
            on_enter=self._enter_phase,
            scheduler=scheduler,
            delay_s=self.config.phase_delay_s,
            lock=self._lock,
        )
        self.gate = RecognitionGate(
            threshold=self.config.recognition_threshold,
            channel=self.config.recognition_channel,
            broadcast=broadcast,
            forward=forward,
        )

        self._gesture_id = 0
        self._gesture_start: Optional[float] = None
        self._gesture_callbacks: list[Callable[[GestureEvent], None]] = []
        self._status_callbacks: list[Callable[[str, str], None]] = []
        self._training_future = None
        self._training_finished = threading.Event()
        self.last_training: Optional[TrainingResult] = None

    # --- callbacks ---

    def on_gesture(self, callback: Callable[[GestureEvent], None]):
        """Register a callback for completed gestures."""
        self._gesture_callbacks.append(callback)

    def on_status(self, callback: Callable[[str, str], None]):
        """Register a callback for (header, text) status messages."""
        self._status_callbacks.append(callback)

    def _status(self, header: str, text: Optional[str] = None):
        for cb in self._status_callbacks:
            try:
                cb(header, text if text is not None else "")
            except Exception as e:
                logger.error("Status callback error: %s", e)

    # --- sensor input ---

    def on_axis(self, axis: str, value, timestamp: Optional[float] = None) -> Optional[GestureEvent]:
        """Feed one axis reading. Timestamps are in milliseconds."""
        with self._lock:
            sample = self._buffer.push(axis, value)
            if sample is None:
                return None
            return self.process_sample(sample, timestamp)

    def on_data(self, data: dict, timestamp: Optional[float] = None) -> list[GestureEvent]:
        """Feed a mapping of axis readings, e.g. {"x": 3, "y": -1}."""
        with self._lock:
            events = []
            for sample in self._buffer.push_many(data):
                event = self.process_sample(sample, timestamp)
                if event is not None:
                    events.append(event)
            return events

    def process_sample(self, raw: RawSample, timestamp: Optional[float] = None) -> Optional[GestureEvent]:
        """Run one complete sample through the pipeline."""
        with self._lock:
            t0 = time.perf_counter()
            now = timestamp if timestamp is not None else self._clock()

            with self.profiler.stage("normalization"):
                sample = normalize(raw, self.config.raw_offset, self.config.raw_span)

            with self.profiler.stage("segmentation"):
                _distance, transition = self.detector.process(sample, now)

            event = None
            if transition is Transition.STARTED:
                self._gesture_start = now
                self.metrics.record_gesture_started()
                if self._mode is Mode.LISTENING:
                    self._status("Listening...")
            elif transition is Transition.ENDED:
                event = self._complete_gesture(now)

            if self.detector.is_active and self._capturing:
                with self.profiler.stage("accumulation"):
                    self._accumulator.append(sample)

            self.metrics.record_sample(time.perf_counter() - t0)

        if event is not None:
            for cb in self._gesture_callbacks:
                try:
                    cb(event)
                except Exception as e:
                    logger.error("Gesture callback error: %s", e)
        return event

    @property
    def _capturing(self) -> bool:
        if self._mode is Mode.LISTENING:
            return True
        return self._mode is Mode.RECORDING and self.recording.is_recording

    def _complete_gesture(self, now: float) -> GestureEvent:
        features = self._accumulator.drain()
        self._gesture_id += 1
        self.metrics.record_gesture_completed()
        self._status("Processing...")

        phase = self.recording.phase
        event = GestureEvent(
            gesture_id=self._gesture_id,
            features=features,
            mode=self._mode,
            start_ms=self._gesture_start if self._gesture_start is not None else now,
            end_ms=now,
            phase=phase.number if phase is not None and self._mode is Mode.RECORDING else None,
        )

        if self._mode is Mode.RECORDING and self.recording.is_recording:
            accepted = self.recording.record_gesture(features)
            self.metrics.record_example(accepted)
        elif self._mode is Mode.LISTENING:
            event.recognition = self._recognize(features)

        return event

    def _recognize(self, features: list[float]) -> Optional[Recognition]:
        label = self.catalog.label_for()
        if not label:
            logger.warning("No gesture slot is named, gesture %d not scored", self._gesture_id)
            self._status("")
            return None

        with self.profiler.stage("inference"):
            probabilities = self.classifier.infer(features)
        logger.debug("Scores for gesture %d: %s", self._gesture_id, probabilities.tolist())

        recognition = self.gate.gate(self._gesture_id, probabilities, label)
        if recognition is not None:
            self.metrics.record_recognition(recognition.label)
            self._status("Recognized!")
        else:
            self._status("")
        return recognition

    # --- mode control ---

    @property
    def mode(self) -> Mode:
        return self._mode

    @property
    def phase(self) -> Optional[Phase]:
        return self.recording.phase if self._mode is Mode.RECORDING else None

    @property
    def is_trained(self) -> bool:
        return self.classifier.is_trained

    def start_recording(self):
        """Run the guided recording protocol from phase 1."""
        with self._lock:
            if self._mode is Mode.TRAINING:
                raise InvalidModeError("Cannot record while training")
            self._discard_gesture()
            self._mode = Mode.RECORDING
            self.recording.start()

    def _enter_phase(self, phase: Phase):
        self.detector.ignore_start_trigger = phase.ignore_start_trigger
        self._status(str(phase.number), phase.prompt)
        if phase.trains:
            self._begin_training()

    def _begin_training(self):
        if not len(self.training_set):
            logger.warning("No training set defined. Use Record!")
            self._mode = Mode.IDLE
            return

        logger.info(
            "Training on %d examples (mean input length %.1f)",
            len(self.training_set), self.training_set.mean_input_length,
        )
        options = TrainingOptions(
            rate=self.config.learning_rate,
            iterations=self.config.iterations,
            error=self.config.target_error,
        )
        try:
            future = self.classifier.train(self.training_set.examples, options)
        except NoTrainingDataError as e:
            logger.warning("Training skipped: %s", e)
            self._mode = Mode.IDLE
            return

        self._mode = Mode.TRAINING
        self._training_future = future
        self._training_finished.clear()
        future.add_done_callback(self._training_done)

    def _training_done(self, future):
        with self._lock:
            if future is not self._training_future:
                return
            try:
                error = future.exception()
                if error is not None:
                    logger.error("Training failed: %s", error)
                    self._status("Training failed")
                else:
                    self.last_training = future.result()
                    self.metrics.record_training(self.last_training.error)
                    self._status("Done!")
                if self._mode is Mode.TRAINING:
                    self._mode = Mode.IDLE
            finally:
                self._training_finished.set()

    def wait_for_training(self, timeout: Optional[float] = None) -> Optional[TrainingResult]:
        """Block until the current training run has been handled.

        Returns the TrainingResult, or None if no run was started or it failed.
        """
        if self._training_future is None:
            return None
        if not self._training_finished.wait(timeout):
            raise TimeoutError("Training did not finish in time")
        with self._lock:
            if self._training_future.exception() is not None:
                return None
            return self.last_training

    def start_listening(self):
        """Begin recognizing gestures. Requires a trained model."""
        with self._lock:
            if self._mode is Mode.TRAINING:
                raise InvalidModeError("Cannot listen while training")
            if not self.classifier.is_trained:
                raise NotTrainedError("Record and train a gesture before listening")
            if self._mode is Mode.RECORDING:
                self.recording.cancel()
            self._discard_gesture()
            self._mode = Mode.LISTENING
            self._status("")
            logger.info("Listening for '%s'", self.catalog.label_for())

    def stop_listening(self):
        """Stop recognizing; an in-progress gesture is dropped without an event."""
        with self._lock:
            if self._mode is not Mode.LISTENING:
                return
            self._discard_gesture()
            self._mode = Mode.IDLE
            logger.info("Stopped listening")

    def toggle_listening(self) -> bool:
        """Start or stop listening. Returns True when now listening."""
        with self._lock:
            if self._mode is Mode.LISTENING:
                self.stop_listening()
                return False
            self.start_listening()
            return True

    def execute(self, action: str):
        """Handle a block action: "Activate" starts listening, "Deactivate" stops."""
        name = action.lower()
        if name == "activate":
            self.start_listening()
        elif name == "deactivate":
            self.stop_listening()
        else:
            raise ValueError(f"Unknown action: {action}")

    def stop(self):
        """Abort recording or listening and return to IDLE. Training keeps running."""
        with self._lock:
            self.recording.cancel()
            self._discard_gesture()
            if self._mode is not Mode.TRAINING:
                self._mode = Mode.IDLE

    def _discard_gesture(self):
        self._accumulator.clear()
        self.detector.cancel()
        self.detector.ignore_start_trigger = False
        self._gesture_start = None

    def close(self):
        self.stop()
        self.classifier.close()

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()
