"""Signal-driven comment rate governor."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import random
import time
from collections import deque
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Deque, Dict, Optional

import numpy as np

from monolog.comments.models import AudioAnalysisData, ConversationContext
from monolog.config import FrequencyConfig

logger = logging.getLogger(__name__)


@dataclass
class FrequencyState:
    current_frequency: float
    target_frequency: float
    last_comment_timestamp: Optional[float] = None
    comments_this_minute: int = 0
    adaptation_history: Deque[float] = field(default_factory=deque)
    is_in_silence: bool = False
    silence_duration: float = 0.0


class FrequencyGovernor:
    """Computes a target comments-per-minute rate and gates emission.

    Audio samples move ``target_frequency``; ``current_frequency`` follows it
    by exponential smoothing. ``should_generate`` compares the time since the
    last recorded comment against the jittered interval implied by the
    current rate, and never allows intervals shorter than ``60 / max``.
    """

    def __init__(
        self,
        config: Optional[FrequencyConfig] = None,
        *,
        clock: Callable[[], float] = time.monotonic,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.config = config or FrequencyConfig()
        self.config.validate()
        self.clock = clock
        self.rng = rng or random.Random()
        self.state = self._initial_state()
        self._reset_task: Optional[asyncio.Task] = None

    def _initial_state(self) -> FrequencyState:
        base = self._clamp(self.config.base_frequency)
        return FrequencyState(
            current_frequency=base,
            target_frequency=base,
            adaptation_history=deque(maxlen=self.config.history_size),
        )

    def _clamp(self, value: float) -> float:
        return max(self.config.min_frequency, min(self.config.max_frequency, value))

    @property
    def silence_floor(self) -> float:
        return self.config.base_frequency * self.config.baseline_activity

    # ------------------------------------------------------------------ #
    # Signal updates
    # ------------------------------------------------------------------ #

    def compute_target(self, audio: AudioAnalysisData) -> float:
        cfg = self.config
        base = cfg.base_frequency
        target = base

        volume_factor = min(2.0, audio.volume / cfg.reference_volume)
        target += (volume_factor - 1.0) * cfg.volume_multiplier * base

        rate_factor = min(2.0, audio.speech_rate / cfg.reference_speech_rate)
        target += (rate_factor - 1.0) * cfg.speech_rate_multiplier * base

        variance_factor = min(1.5, audio.volume_variance / cfg.reference_variance)
        target += variance_factor * cfg.variance_weight * base

        if not audio.is_speaking:
            ramp = min(1.0, max(0.0, audio.silence_duration) / cfg.silence_ramp_ms)
            floor = self.silence_floor
            target = max(floor, target + (floor - target) * ramp)

        return self._clamp(target)

    def update(self, audio: AudioAnalysisData) -> float:
        """Fold one audio sample into the state; returns the new current rate."""
        state = self.state
        state.is_in_silence = not audio.is_speaking
        state.silence_duration = audio.silence_duration
        state.target_frequency = self.compute_target(audio)

        smoothness = self.config.adaptation_smoothness
        state.current_frequency = self._clamp(
            state.current_frequency * smoothness
            + state.target_frequency * (1.0 - smoothness)
        )
        state.adaptation_history.append(state.current_frequency)
        return state.current_frequency

    # ------------------------------------------------------------------ #
    # Gating
    # ------------------------------------------------------------------ #

    @property
    def floor_interval(self) -> float:
        """Shortest allowed gap between comments, in seconds."""
        return 60.0 / self.config.max_frequency

    def expected_interval(self) -> float:
        return 60.0 / self.state.current_frequency

    def should_generate(self) -> bool:
        last = self.state.last_comment_timestamp
        if last is None:
            return True
        elapsed = self.clock() - last
        jitter = self.config.jitter
        factor = self.rng.uniform(1.0 - jitter, 1.0 + jitter)
        due = elapsed >= self.expected_interval() * factor
        return due and elapsed >= self.floor_interval

    def record_comment(self) -> None:
        self.state.last_comment_timestamp = self.clock()
        self.state.comments_this_minute += 1

    def time_until_next_comment(self) -> float:
        last = self.state.last_comment_timestamp
        if last is None:
            return 0.0
        elapsed = self.clock() - last
        wait = max(self.expected_interval(), self.floor_interval) - elapsed
        return max(0.0, wait)

    # ------------------------------------------------------------------ #
    # Derived context
    # ------------------------------------------------------------------ #

    def engagement_level(self) -> str:
        history = self.state.adaptation_history
        base = self.config.base_frequency
        average = float(np.mean(history)) if history else base
        if average > base * 1.3:
            return "high"
        if average < base * 0.7:
            return "low"
        return "medium"

    def conversation_pace(self) -> str:
        history = self.state.adaptation_history
        if len(history) < 5:
            return "normal"
        recent = np.fromiter(list(history)[-5:], dtype=float)
        trend = recent[-1] - recent[0]
        threshold = self.config.base_frequency * 0.3
        if trend > threshold:
            return "fast"
        if trend < -threshold:
            return "slow"
        return "normal"

    def adaptive_context(self, context: ConversationContext) -> ConversationContext:
        """Copy of ``context`` with engagement and pace derived from history."""
        if not self.state.adaptation_history:
            return context
        return replace(
            context,
            user_engagement=self.engagement_level(),
            conversation_pace=self.conversation_pace(),
        )

    def stats(self) -> Dict[str, Any]:
        state = self.state
        history = state.adaptation_history
        last = state.last_comment_timestamp
        return {
            "current_frequency": round(state.current_frequency, 2),
            "target_frequency": round(state.target_frequency, 2),
            "average_frequency": round(float(np.mean(history)) if history else self.config.base_frequency, 2),
            "comments_this_minute": state.comments_this_minute,
            "time_since_last_comment": (self.clock() - last) if last is not None else 0.0,
            "is_in_silence": state.is_in_silence,
            "engagement_level": self.engagement_level(),
            "conversation_pace": self.conversation_pace(),
        }

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    def reset(self) -> None:
        self.state = self._initial_state()

    def reset_minute_counter(self) -> None:
        self.state.comments_this_minute = 0

    async def start(self) -> None:
        if self._reset_task is None or self._reset_task.done():
            self._reset_task = asyncio.create_task(self._minute_loop())

    async def _minute_loop(self) -> None:
        try:
            while True:
                await asyncio.sleep(self.config.minute_reset_seconds)
                self.reset_minute_counter()
        except asyncio.CancelledError:
            logger.debug("Per-minute reset loop cancelled")

    async def dispose(self) -> None:
        task, self._reset_task = self._reset_task, None
        if task is not None:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task


__all__ = ["FrequencyGovernor", "FrequencyState"]
