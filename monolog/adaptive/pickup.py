"""Detects when the user's next utterance picks up a recent comment."""

from __future__ import annotations

import logging
import re
import time
from collections import deque
from typing import Callable, Deque, List, Optional, Set, Tuple

import spacy
from spacy.language import Language

from monolog.comments.models import Comment, InteractionType, UserInteraction
from monolog.config import PickupConfig

from .models import PickupResult

logger = logging.getLogger(__name__)

_CJK = re.compile(r"[\u3040-\u30ff\u3400-\u4dbf\u4e00-\u9fff\uf900-\ufaff\uff66-\uff9f]")


class PickupDetector:
    """Scores overlap between a comment and what the user said right after it.

    The blank multi-language spaCy pipeline does not segment Japanese, so any
    token that contains CJK characters is expanded into character bigrams
    before the Jaccard overlap is taken.
    """

    def __init__(
        self,
        config: Optional[PickupConfig] = None,
        *,
        nlp: Optional[Language] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.config = config or PickupConfig()
        self.config.validate()
        self.nlp = nlp or spacy.blank("xx")
        self.clock = clock
        self._tracked: Deque[Tuple[Comment, float]] = deque(maxlen=self.config.max_tracked)

    # ------------------------------------------------------------------ #
    # Scoring
    # ------------------------------------------------------------------ #

    def tokens(self, text: str) -> Set[str]:
        result: Set[str] = set()
        for token in self.nlp(text or ""):
            if token.is_punct or token.is_space:
                continue
            value = token.text.lower()
            if _CJK.search(value) and len(value) > 1:
                result.update(value[i : i + 2] for i in range(len(value) - 1))
            elif value:
                result.add(value)
        return result

    def similarity(self, left: str, right: str) -> float:
        a, b = self.tokens(left), self.tokens(right)
        union = a | b
        if not union:
            same = bool(left.strip()) and left.strip() == right.strip()
            return 1.0 if same else 0.0
        return len(a & b) / len(union)

    def score_pickup(
        self,
        comment: Comment,
        following_text: str,
        elapsed_ms: float,
        window_ms: Optional[float] = None,
    ) -> float:
        window = self.config.window_ms if window_ms is None else window_ms
        if elapsed_ms < 0 or elapsed_ms > window:
            return 0.0
        return self.similarity(comment.content, following_text)

    def evaluate(
        self, comment: Comment, following_text: str, elapsed_ms: float
    ) -> PickupResult:
        confidence = self.score_pickup(comment, following_text, elapsed_ms)
        return PickupResult(
            comment_id=comment.id,
            confidence=confidence,
            elapsed_ms=elapsed_ms,
            detected=confidence > self.config.min_confidence,
        )

    # ------------------------------------------------------------------ #
    # Tracking
    # ------------------------------------------------------------------ #

    def register(self, comment: Comment, at: Optional[float] = None) -> None:
        self._tracked.append((comment, self.clock() if at is None else at))

    @property
    def tracked_ids(self) -> List[str]:
        return [comment.id for comment, _ in self._tracked]

    def detect(self, following_text: str, at: Optional[float] = None) -> List[UserInteraction]:
        """Pickups for every tracked comment; detected and expired ones stop being tracked."""
        now = self.clock() if at is None else at
        interactions: List[UserInteraction] = []
        keep: Deque[Tuple[Comment, float]] = deque(maxlen=self.config.max_tracked)

        for comment, registered_at in self._tracked:
            elapsed_ms = (now - registered_at) * 1000.0
            if elapsed_ms > self.config.window_ms:
                continue
            result = self.evaluate(comment, following_text, elapsed_ms)
            if result.detected:
                logger.debug(
                    "Pickup of %s (confidence %.2f after %.0f ms)",
                    comment.id,
                    result.confidence,
                    elapsed_ms,
                )
                interactions.append(
                    UserInteraction(
                        comment_id=comment.id,
                        type=InteractionType.PICKUP,
                        confidence=result.confidence,
                    )
                )
                continue
            keep.append((comment, registered_at))

        self._tracked = keep
        return interactions

    def clear(self) -> None:
        self._tracked.clear()


__all__ = ["PickupDetector"]
