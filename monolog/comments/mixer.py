"""Hybrid rule/model comment production with an adaptive mix ratio."""

from __future__ import annotations

import logging
import random
import time
from dataclasses import asdict, dataclass
from typing import Any, Callable, Dict, Mapping, Optional

from monolog.config import HybridConfig
from monolog.errors import EngineError
from monolog.runtime.engine import EngineState, InferenceEngine

from .generator import RuleBasedGenerator
from .models import Comment, CommentRole, ConversationContext
from .prompts import build_prompt, clean_response
from .selector import RoleSelector

logger = logging.getLogger(__name__)


@dataclass
class MixerStats:
    model_ratio: float
    rule_count: int = 0
    model_count: int = 0
    model_failures: int = 0
    fallback_count: int = 0
    model_success_rate: float = 1.0
    average_latency_ms: float = 0.0
    model_disabled_reason: Optional[str] = None


class HybridMixer:
    """Chooses the template or model path per request and learns the mix."""

    def __init__(
        self,
        *,
        selector: RoleSelector,
        generator: RuleBasedGenerator,
        engine: Optional[InferenceEngine] = None,
        config: Optional[HybridConfig] = None,
        rng: Optional[random.Random] = None,
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        self.selector = selector
        self.generator = generator
        self.engine = engine
        self.config = config or HybridConfig()
        self.rng = rng or random.Random()
        self.clock = clock
        self._stats = MixerStats(model_ratio=self._bounded(self.config.initial_model_ratio))
        self._model_disabled: Optional[str] = None if engine else "no engine configured"
        self._stats.model_disabled_reason = self._model_disabled

    # ------------------------------------------------------------------ #
    # Ratio management
    # ------------------------------------------------------------------ #

    @property
    def model_ratio(self) -> float:
        return self._stats.model_ratio

    def set_mixing_ratio(self, rule_ratio: float, model_ratio: float) -> None:
        total = rule_ratio + model_ratio
        if total <= 0:
            raise ValueError("At least one ratio must be positive")
        self._stats.model_ratio = self._bounded(model_ratio / total)
        logger.info("Mixing ratio set: model %.2f", self._stats.model_ratio)

    def disable_model(self, reason: str) -> None:
        """Rule-only mode for the rest of the session."""
        if self._model_disabled is None:
            logger.warning("Model path disabled: %s", reason)
        self._model_disabled = reason
        self._stats.model_disabled_reason = reason

    @property
    def model_enabled(self) -> bool:
        return self._model_disabled is None and self.engine is not None

    def _bounded(self, value: float) -> float:
        return min(self.config.ratio_ceiling, max(self.config.ratio_floor, value))

    def _nudge(self, target: float) -> None:
        alpha = self.config.adaptation_rate
        updated = (1 - alpha) * self._stats.model_ratio + alpha * target
        self._stats.model_ratio = self._bounded(updated)

    def _record_attempt(self, success: bool, latency_ms: float) -> None:
        stats = self._stats
        stats.model_success_rate = 0.9 * stats.model_success_rate + 0.1 * (1.0 if success else 0.0)
        if success:
            if stats.model_count == 0:
                stats.average_latency_ms = latency_ms
            else:
                stats.average_latency_ms = 0.9 * stats.average_latency_ms + 0.1 * latency_ms
        else:
            stats.model_failures += 1
        if not success or latency_ms > self.config.slow_latency_ms:
            self._nudge(0.0)
        elif latency_ms < self.config.fast_latency_ms:
            self._nudge(self.config.ratio_ceiling)

    # ------------------------------------------------------------------ #
    # Production
    # ------------------------------------------------------------------ #

    async def produce(
        self,
        context: ConversationContext,
        weights: Mapping[CommentRole, float],
    ) -> Comment:
        if context.is_degenerate:
            return self._generic(context)
        role = self.selector.select_role(weights, context)
        if self._model_path_open() and self.rng.random() < self.model_ratio:
            comment = await self._model_comment(role, context)
            if comment is not None:
                return comment
            self._stats.fallback_count += 1
        return self._rule_comment(role, context)

    def _model_path_open(self) -> bool:
        # A failed engine still counts against the ratio; a loading one does not.
        if not self.model_enabled:
            return False
        return self.engine.is_ready or self.engine.state is EngineState.ERROR

    def _rule_comment(self, role: CommentRole, context: ConversationContext) -> Comment:
        self._stats.rule_count += 1
        content = self.generator.generate(role, context)
        return Comment.create(role, content, context, source="rule")

    def _generic(self, context: ConversationContext) -> Comment:
        self._stats.rule_count += 1
        content = self.generator.generic(context)
        return Comment.create(CommentRole.REACTION, content, context, source="fallback")

    async def _model_comment(
        self, role: CommentRole, context: ConversationContext
    ) -> Optional[Comment]:
        prompt = build_prompt(role, context, catalog=self.generator.catalog)
        started = self.clock()
        try:
            raw = await self.engine.infer(prompt, self.config.timeout_ms)
        except EngineError as exc:
            latency_ms = (self.clock() - started) * 1000.0
            logger.info("Model path failed (%s); using templates", exc)
            self._record_attempt(False, latency_ms)
            return None
        latency_ms = (self.clock() - started) * 1000.0
        content = clean_response(raw, max_length=self.config.max_comment_length)
        if not content:
            logger.info("Model returned unusable output; using templates")
            self._record_attempt(False, latency_ms)
            return None
        self._record_attempt(True, latency_ms)
        self._stats.model_count += 1
        return Comment.create(role, content, context, source="model")

    def stats(self) -> Dict[str, Any]:
        return asdict(self._stats)


__all__ = ["HybridMixer", "MixerStats"]
