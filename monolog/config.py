"""Configuration for the comment scheduler.

Every component takes its own config dataclass; ``MonologConfig`` groups them
so a single object can be constructed at process start and threaded through.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Optional, Union


@dataclass
class FrequencyConfig:
    base_frequency: float = 8.0  # comments per minute
    volume_multiplier: float = 0.5
    speech_rate_multiplier: float = 0.3
    variance_weight: float = 0.2
    reference_volume: float = 50.0
    reference_speech_rate: float = 120.0  # words per minute
    reference_variance: float = 20.0
    min_frequency: float = 2.0
    max_frequency: float = 20.0
    adaptation_smoothness: float = 0.7
    baseline_activity: float = 0.4
    silence_ramp_ms: float = 5000.0
    jitter: float = 0.25
    history_size: int = 60
    minute_reset_seconds: float = 60.0

    def validate(self) -> None:
        if self.min_frequency <= 0 or self.max_frequency < self.min_frequency:
            raise ValueError("Frequency bounds must satisfy 0 < min <= max")
        if not 0.0 <= self.adaptation_smoothness < 1.0:
            raise ValueError("adaptation_smoothness must be in [0, 1)")
        if not 0.0 <= self.jitter < 1.0:
            raise ValueError("jitter must be in [0, 1)")
        if self.history_size <= 0:
            raise ValueError("history_size must be positive")
        for name in (
            "reference_volume",
            "reference_speech_rate",
            "reference_variance",
            "silence_ramp_ms",
        ):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive")


@dataclass
class SelectorConfig:
    greeting_window_seconds: float = 120.0
    session_end_after_seconds: Optional[float] = None
    question_silence_ms: float = 3000.0
    insider_min_history: int = 3
    trigger_boost: float = 0.3
    repeat_window: int = 10

    def validate(self) -> None:
        if self.repeat_window < 0:
            raise ValueError("repeat_window cannot be negative")
        if self.trigger_boost < 0:
            raise ValueError("trigger_boost cannot be negative")


@dataclass
class HybridConfig:
    initial_model_ratio: float = 0.3
    ratio_floor: float = 0.05
    ratio_ceiling: float = 0.5
    adaptation_rate: float = 0.3
    timeout_ms: float = 2000.0
    fast_latency_ms: float = 1000.0
    slow_latency_ms: float = 2000.0
    max_comment_length: int = 100

    def validate(self) -> None:
        if not 0.0 < self.ratio_floor <= self.ratio_ceiling <= 1.0:
            raise ValueError("Ratio bounds must satisfy 0 < floor <= ceiling <= 1")
        if not 0.0 < self.adaptation_rate <= 1.0:
            raise ValueError("adaptation_rate must be in (0, 1]")
        if self.timeout_ms <= 0:
            raise ValueError("timeout_ms must be positive")


@dataclass
class LearningConfig:
    learning_rate: float = 0.1
    decay_rate: float = 0.0
    min_weight: float = 0.1
    max_weight: float = 2.0
    default_weight: float = 1.0
    feedback_multiplier: Dict[str, float] = field(
        default_factory=lambda: {
            "thumbs_up": 1.0,
            "pickup": 1.0,
            "click": 0.3,
            "thumbs_down": -1.0,
        }
    )
    max_history: int = 200
    max_topics: int = 20
    persist_retries: int = 3
    retry_backoff_seconds: float = 0.2

    def validate(self) -> None:
        if self.min_weight > self.max_weight:
            raise ValueError("min_weight cannot exceed max_weight")
        if not self.min_weight <= self.default_weight <= self.max_weight:
            raise ValueError("default_weight must lie within the weight bounds")
        if not 0.0 <= self.decay_rate < 1.0:
            raise ValueError("decay_rate must be in [0, 1)")
        if self.max_history <= 0:
            raise ValueError("max_history must be positive")
        if self.max_topics <= 0:
            raise ValueError("max_topics must be positive")


@dataclass
class PickupConfig:
    window_ms: float = 15000.0
    min_confidence: float = 0.3
    max_tracked: int = 50

    def validate(self) -> None:
        if self.window_ms <= 0:
            raise ValueError("window_ms must be positive")
        if not 0.0 <= self.min_confidence <= 1.0:
            raise ValueError("min_confidence must be in [0, 1]")


@dataclass
class EngineConfig:
    model_id: str = "llama3.2:1b"
    endpoint: str = "http://localhost:11434/api/generate"
    request_timeout: float = 30.0
    temperature: float = 0.8
    top_p: float = 0.9
    max_new_tokens: int = 50
    autoload: bool = True

    def validate(self) -> None:
        if not self.model_id:
            raise ValueError("model_id is required")


@dataclass
class SchedulerConfig:
    user_id: str = "default"
    session_id: str = "default"
    max_pending: int = 2

    def validate(self) -> None:
        if self.max_pending < 0:
            raise ValueError("max_pending cannot be negative")


@dataclass
class MonologConfig:
    frequency: FrequencyConfig = field(default_factory=FrequencyConfig)
    selector: SelectorConfig = field(default_factory=SelectorConfig)
    hybrid: HybridConfig = field(default_factory=HybridConfig)
    learning: LearningConfig = field(default_factory=LearningConfig)
    pickup: PickupConfig = field(default_factory=PickupConfig)
    engine: EngineConfig = field(default_factory=EngineConfig)
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)

    def validate(self) -> "MonologConfig":
        for section in fields(self):
            getattr(self, section.name).validate()
        return self

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "MonologConfig":
        sections: Dict[str, Any] = {}
        for section in fields(cls):
            section_cls = section.default_factory  # type: ignore[misc]
            data = payload.get(section.name) or {}
            known = {f.name for f in fields(section_cls)}
            unknown = set(data) - known
            if unknown:
                raise ValueError(
                    f"Unknown keys in '{section.name}' config: {sorted(unknown)}"
                )
            sections[section.name] = section_cls(**data)
        return cls(**sections).validate()

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def load_config(path: Optional[Union[str, Path]] = None) -> MonologConfig:
    """Read a JSON config file; a missing path yields the defaults."""
    if path is None:
        return MonologConfig().validate()
    config_path = Path(path)
    with config_path.open("r", encoding="utf-8") as stream:
        payload = json.load(stream)
    return MonologConfig.from_dict(payload)


__all__ = [
    "FrequencyConfig",
    "SelectorConfig",
    "HybridConfig",
    "LearningConfig",
    "PickupConfig",
    "EngineConfig",
    "SchedulerConfig",
    "MonologConfig",
    "load_config",
]
