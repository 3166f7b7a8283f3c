"""Exception hierarchy shared by monolog components."""

from __future__ import annotations


class MonologError(Exception):
    """Base class for every error raised by monolog."""


class ModelLoadError(MonologError):
    """Raised when the model runtime cannot construct or load an engine."""


class EngineError(MonologError):
    """Transient inference failure; callers fall back to templates."""


class EngineBusyError(EngineError):
    """Another inference is already in flight on the engine."""


class EngineUnavailableError(EngineError):
    """The engine is not loaded (or was unloaded mid-call)."""


class InferenceTimeoutError(EngineError):
    """The background model did not answer within the allotted time."""


class InferenceError(EngineError):
    """The model runtime raised while completing a prompt."""


class PersistenceError(MonologError):
    """A storage read or write failed."""


__all__ = [
    "MonologError",
    "ModelLoadError",
    "EngineError",
    "EngineBusyError",
    "EngineUnavailableError",
    "InferenceTimeoutError",
    "InferenceError",
    "PersistenceError",
]
