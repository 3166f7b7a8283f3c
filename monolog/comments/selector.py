"""Weighted, context-filtered role selection."""

from __future__ import annotations

import logging
import random
from typing import Dict, List, Mapping, Optional

from monolog.config import SelectorConfig

from .catalog import RoleCatalog
from .models import CommentRole, ConversationContext

logger = logging.getLogger(__name__)

FALLBACK_ROLE = CommentRole.REACTION
QUESTION_MARKS = ("？", "?")


class RoleSelector:
    """Draws a role proportionally to user weights among eligible roles."""

    def __init__(
        self,
        *,
        catalog: Optional[RoleCatalog] = None,
        config: Optional[SelectorConfig] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.catalog = catalog or RoleCatalog()
        self.config = config or SelectorConfig()
        self.rng = rng or random.Random()

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #

    def select_role(
        self,
        weights: Mapping[CommentRole, float],
        context: ConversationContext,
    ) -> CommentRole:
        sampling = self.sampling_weights(weights, context)
        total = sum(sampling.values())
        if total <= 0:
            logger.debug("No eligible role with positive weight; using %s", FALLBACK_ROLE.value)
            return FALLBACK_ROLE
        roles = list(sampling)
        return self.rng.choices(roles, weights=[sampling[r] for r in roles], k=1)[0]

    def eligible_roles(self, context: ConversationContext) -> List[CommentRole]:
        return [role for role in CommentRole if self.is_eligible(role, context)]

    def sampling_weights(
        self,
        weights: Mapping[CommentRole, float],
        context: ConversationContext,
    ) -> Dict[CommentRole, float]:
        """Effective weights over eligible roles, boosted by trigger keywords."""
        text = context.recent_transcript or ""
        sampling: Dict[CommentRole, float] = {}
        for role in self.eligible_roles(context):
            base = max(0.0, float(weights.get(role, 1.0)))
            matches = self.catalog.keyword_matches(role, text)
            sampling[role] = base * (1.0 + self.config.trigger_boost * matches)
        return sampling

    def is_eligible(self, role: CommentRole, context: ConversationContext) -> bool:
        text = context.recent_transcript or ""
        topic = context.current_topic or ""
        if role is CommentRole.GREETING:
            return (
                context.session_duration <= self.config.greeting_window_seconds
                or topic == "session_start"
                or self.catalog.keyword_matches(role, text) > 0
            )
        if role is CommentRole.DEPARTURE:
            end_after = self.config.session_end_after_seconds
            return (
                topic == "session_end"
                or self.catalog.keyword_matches(role, text) > 0
                or (end_after is not None and context.session_duration >= end_after)
            )
        if role is CommentRole.QUESTION:
            return (
                context.is_degenerate
                or context.silence_duration >= self.config.question_silence_ms
                or text.rstrip().endswith(QUESTION_MARKS)
            )
        if role is CommentRole.INSIDER:
            return len(context.comment_history) >= self.config.insider_min_history
        if role in (CommentRole.AGREEMENT, CommentRole.PLAYFUL):
            return not context.is_degenerate
        if role in (CommentRole.REACTION, CommentRole.SUPPORT):
            return True
        raise ValueError(f"Unhandled role: {role!r}")


__all__ = ["RoleSelector", "FALLBACK_ROLE"]
