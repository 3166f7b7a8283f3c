"""monolog core package exposing the comment scheduler and its parts."""

from .comments import (
    AudioAnalysisData,
    Comment,
    CommentRole,
    ConversationContext,
    HybridMixer,
    InteractionType,
    RoleCatalog,
    RoleProfile,
    RoleSelector,
    RuleBasedGenerator,
    UserInteraction,
)
from .config import MonologConfig, load_config
from .errors import (
    EngineBusyError,
    EngineError,
    EngineUnavailableError,
    InferenceError,
    InferenceTimeoutError,
    ModelLoadError,
    MonologError,
    PersistenceError,
)
from .runtime import EngineState, FrequencyGovernor, InferenceEngine, ollama_engine_factory
from .adaptive import PickupDetector, PreferenceLearningSystem, UserPreferences
from .memory import InMemoryStorage, SQLiteStorage, Storage
from .scheduler import CapabilityNotice, Scheduler

__version__ = "0.1.0"

__all__ = [
    "Scheduler",
    "CapabilityNotice",
    "MonologConfig",
    "load_config",
    "CommentRole",
    "InteractionType",
    "ConversationContext",
    "Comment",
    "UserInteraction",
    "AudioAnalysisData",
    "RoleCatalog",
    "RoleProfile",
    "RoleSelector",
    "RuleBasedGenerator",
    "HybridMixer",
    "InferenceEngine",
    "EngineState",
    "ollama_engine_factory",
    "FrequencyGovernor",
    "PickupDetector",
    "PreferenceLearningSystem",
    "UserPreferences",
    "Storage",
    "InMemoryStorage",
    "SQLiteStorage",
    "MonologError",
    "ModelLoadError",
    "EngineError",
    "EngineBusyError",
    "EngineUnavailableError",
    "InferenceTimeoutError",
    "InferenceError",
    "PersistenceError",
]
