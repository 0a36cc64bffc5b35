"""Exception types raised by the gesture engine."""


class ImuGestureError(Exception):
    """Base class for all engine errors."""


class NotTrainedError(ImuGestureError):
    """Inference or listening was requested before a model exists."""


class NoTrainingDataError(ImuGestureError):
    """Training was requested with an empty training set."""


class InvalidModeError(ImuGestureError):
    """A mode switch was requested that the current mode does not allow."""
