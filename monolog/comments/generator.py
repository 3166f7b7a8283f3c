"""Rule-based comment generation from the role catalog."""

from __future__ import annotations

import zlib
from typing import Optional, Sequence

from monolog.config import SelectorConfig

from .catalog import RoleCatalog
from .models import CommentRole, ConversationContext


class RuleBasedGenerator:
    """Deterministic template fill; low-latency fallback for the model path.

    ``generate`` never mutates state: repetition is avoided by looking at the
    comment history carried on the context, and the choice among the remaining
    templates is a stable hash of the transcript and history length.
    """

    name = "template"

    def __init__(
        self,
        *,
        catalog: Optional[RoleCatalog] = None,
        repeat_window: Optional[int] = None,
    ) -> None:
        self.catalog = catalog or RoleCatalog()
        self.repeat_window = (
            SelectorConfig().repeat_window if repeat_window is None else repeat_window
        )

    def generate(self, role: CommentRole, context: ConversationContext) -> str:
        patterns = self._candidate_patterns(role, context)
        return self._pick(patterns, context)

    def generic(self, context: ConversationContext) -> str:
        """Context-independent comment used when the transcript is unusable."""
        return self._pick(self.catalog.generic, context)

    # ------------------------------------------------------------------ #
    # Internal helpers
    # ------------------------------------------------------------------ #

    def _candidate_patterns(
        self, role: CommentRole, context: ConversationContext
    ) -> Sequence[str]:
        if role is CommentRole.QUESTION and self.catalog.topic_category(context.current_topic):
            return self.catalog.starters(context.current_topic)
        return self.catalog.patterns(role)

    def _pick(self, patterns: Sequence[str], context: ConversationContext) -> str:
        recent = set(context.recent_contents(self.repeat_window))
        fresh = [pattern for pattern in patterns if pattern not in recent]
        pool = fresh or list(patterns)
        seed = f"{context.recent_transcript}|{len(context.comment_history)}"
        index = zlib.crc32(seed.encode("utf-8")) % len(pool)
        return pool[index]


__all__ = ["RuleBasedGenerator"]
