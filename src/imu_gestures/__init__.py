"""imu-gestures - record, train and recognize motion gestures from a 3-axis sensor."""

__version__ = "0.1.0"

from imu_gestures.config import EngineConfig
from imu_gestures.errors import ImuGestureError, InvalidModeError, NoTrainingDataError, NotTrainedError
from imu_gestures.normalizer import AxisBuffer, NormalizedSample, RawSample, normalize
from imu_gestures.segmentation import FeatureAccumulator, MotionDeltaTracker, SegmentationDetector, SegmentState, Transition
from imu_gestures.training_set import TrainingExample, TrainingSetStore
from imu_gestures.classifier import LSTMSequenceClassifier, SequenceClassifier, TrainingOptions, TrainingResult
from imu_gestures.recognition import Recognition, RecognitionGate
from imu_gestures.catalog import GestureCatalog, GestureSlot
from imu_gestures.scheduling import ManualScheduler, ThreadingScheduler
from imu_gestures.session import GestureEvent, GestureSession, Mode, Phase, PHASES, RecordingSession
from imu_gestures.recorder import SamplePlayer, SampleRecorder
from imu_gestures.plugins import GesturePlugin, PluginEvent, PluginManager
from imu_gestures.metrics import MetricsCollector
from imu_gestures.profiler import PipelineProfiler
