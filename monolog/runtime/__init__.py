"""Runtime orchestration utilities."""

from .engine import EngineFactory, EngineHandle, EngineState, InferenceEngine
from .frequency import FrequencyGovernor, FrequencyState
from .handles import OllamaEngineHandle, ollama_engine_factory

__all__ = [
    "InferenceEngine",
    "EngineState",
    "EngineHandle",
    "EngineFactory",
    "FrequencyGovernor",
    "FrequencyState",
    "OllamaEngineHandle",
    "ollama_engine_factory",
]
