"""Per-user role preference learning."""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from typing import TYPE_CHECKING, Callable, Dict, Optional, Tuple, Union

from monolog.comments.models import Comment, CommentRole, InteractionType
from monolog.config import LearningConfig

from .models import (
    InteractionEvent,
    LearningStats,
    RoleWeightMap,
    UserPreferences,
    default_weights,
)

if TYPE_CHECKING:
    from monolog.memory.store import Storage

logger = logging.getLogger(__name__)

CommentLookup = Callable[[str], Optional[Comment]]


class PreferenceLearningSystem:
    """Nudges role weights from feedback and keeps them persisted.

    Weights for a user are loaded from storage on first access and cached.
    Every mutation for a user runs under that user's lock, so concurrent
    feedback never loses an update. Storage failures are logged and retried;
    the cached state keeps governing the session either way.
    """

    def __init__(
        self,
        storage: "Storage",
        *,
        comment_lookup: Optional[CommentLookup] = None,
        config: Optional[LearningConfig] = None,
        session_id: str = "default",
    ) -> None:
        self.storage = storage
        self.comment_lookup = comment_lookup or (lambda _comment_id: None)
        self.config = config or LearningConfig()
        self.config.validate()
        self.session_id = session_id
        self._preferences: Dict[str, UserPreferences] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        self._total_events = 0
        self._adjustments: Dict[CommentRole, float] = defaultdict(float)

    # ------------------------------------------------------------------ #
    # Feedback
    # ------------------------------------------------------------------ #

    async def apply_feedback(
        self,
        user_id: str,
        comment_id: str,
        feedback_type: Union[InteractionType, str],
        strength: float = 1.0,
    ) -> Optional[float]:
        """Returns the role's new weight, or None when the comment is unknown."""
        feedback = InteractionType(feedback_type)
        if not 0.0 <= strength <= 1.0:
            raise ValueError(f"Feedback strength must be in [0, 1], got {strength}")

        comment = self.comment_lookup(comment_id)
        if comment is None:
            logger.warning("Ignoring %s feedback for unknown comment %s", feedback.value, comment_id)
            return None

        multiplier = self.config.feedback_multiplier.get(feedback.value, 0.0)
        async with self._lock(user_id):
            preferences = await self._load(user_id)
            weights = preferences.role_weights
            role = comment.role

            previous = weights.get(role, self.config.default_weight)
            weights[role] = self._clamp(previous + self.config.learning_rate * multiplier * strength)
            self._decay_others(weights, role)

            if multiplier > 0 and comment.context.current_topic:
                self._remember_topic(preferences, comment.context.current_topic)
            preferences.interaction_history.append(
                InteractionEvent(
                    session_id=self.session_id,
                    comment_id=comment_id,
                    type=feedback,
                    strength=strength,
                    role=role,
                )
            )
            del preferences.interaction_history[: -self.config.max_history]

            self._total_events += 1
            self._adjustments[role] += abs(weights[role] - previous)
            logger.debug(
                "Weight for %s/%s: %.3f -> %.3f (%s)",
                user_id,
                role.value,
                previous,
                weights[role],
                feedback.value,
            )
            await self._persist(preferences)
            return weights[role]

    def _clamp(self, value: float) -> float:
        return max(self.config.min_weight, min(self.config.max_weight, value))

    def _decay_others(self, weights: RoleWeightMap, updated: CommentRole) -> None:
        rate = self.config.decay_rate
        if rate <= 0:
            return
        default = self.config.default_weight
        for role, weight in weights.items():
            if role is not updated:
                weights[role] = self._clamp(weight + (default - weight) * rate)

    def _remember_topic(self, preferences: UserPreferences, topic: str) -> None:
        topics = [item for item in preferences.topic_preferences if item != topic]
        topics.append(topic)
        preferences.topic_preferences = topics[-self.config.max_topics :]

    # ------------------------------------------------------------------ #
    # Queries
    # ------------------------------------------------------------------ #

    async def get_personalized_weights(self, user_id: str) -> RoleWeightMap:
        async with self._lock(user_id):
            preferences = await self._load(user_id)
            return dict(preferences.role_weights)

    async def get_preferences(self, user_id: str) -> UserPreferences:
        async with self._lock(user_id):
            return await self._load(user_id)

    def get_preference_ranking(self, user_id: str) -> Tuple[CommentRole, CommentRole]:
        """(most, least) preferred role from the cached weights."""
        preferences = self._preferences.get(user_id)
        weights = preferences.role_weights if preferences else self._defaults()
        ordered = sorted(weights.items(), key=lambda item: item[1], reverse=True)
        return ordered[0][0], ordered[-1][0]

    def stats(self, user_id: Optional[str] = None) -> LearningStats:
        if user_id is not None:
            maps = [self._preferences[user_id].role_weights] if user_id in self._preferences else []
        else:
            maps = [item.role_weights for item in self._preferences.values()]
        values = [weight for weights in maps for weight in weights.values()]
        average = sum(values) / len(values) if values else self.config.default_weight

        stats = LearningStats(
            total_feedback_events=self._total_events,
            role_adjustments=dict(self._adjustments),
            average_weight=average,
        )
        if user_id is not None:
            stats.most_preferred_role, stats.least_preferred_role = self.get_preference_ranking(user_id)
        elif maps:
            combined = {role: sum(weights[role] for weights in maps) / len(maps) for role in CommentRole}
            ordered = sorted(combined.items(), key=lambda item: item[1], reverse=True)
            stats.most_preferred_role, stats.least_preferred_role = ordered[0][0], ordered[-1][0]
        return stats

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    async def reset_preferences(self, user_id: str) -> None:
        async with self._lock(user_id):
            preferences = await self._load(user_id)
            preferences.role_weights = self._defaults()
            await self._persist(preferences)
        logger.info("Preferences reset for %s", user_id)

    async def begin_session(self, user_id: str) -> int:
        async with self._lock(user_id):
            preferences = await self._load(user_id)
            preferences.session_count += 1
            await self._persist(preferences)
            return preferences.session_count

    # ------------------------------------------------------------------ #
    # Internal helpers
    # ------------------------------------------------------------------ #

    def _defaults(self) -> RoleWeightMap:
        return default_weights(self.config.default_weight)

    def _lock(self, user_id: str) -> asyncio.Lock:
        lock = self._locks.get(user_id)
        if lock is None:
            lock = self._locks[user_id] = asyncio.Lock()
        return lock

    async def _load(self, user_id: str) -> UserPreferences:
        cached = self._preferences.get(user_id)
        if cached is not None:
            return cached
        try:
            stored = await self._fetch(user_id)
        except Exception as exc:  # noqa: BLE001
            logger.error("Could not load preferences for %s, using defaults: %s", user_id, exc)
            stored = None
        preferences = stored or UserPreferences(user_id=user_id, role_weights=self._defaults())
        for role in CommentRole:
            preferences.role_weights.setdefault(role, self.config.default_weight)
        self._preferences[user_id] = preferences
        return preferences

    async def _persist(self, preferences: UserPreferences) -> bool:
        attempts = max(1, self.config.persist_retries)
        for attempt in range(attempts):
            try:
                await self._store(preferences)
                return True
            except Exception as exc:  # noqa: BLE001
                if attempt + 1 >= attempts:
                    logger.error(
                        "Giving up persisting preferences for %s after %d attempts: %s",
                        preferences.user_id,
                        attempts,
                        exc,
                    )
                    return False
                delay = self.config.retry_backoff_seconds * (2 ** attempt)
                logger.warning(
                    "Persisting preferences for %s failed (%s); retrying in %.2fs",
                    preferences.user_id,
                    exc,
                    delay,
                )
                await asyncio.sleep(delay)
        return False

    async def _fetch(self, user_id: str) -> Optional[UserPreferences]:
        # The full record is optional; role weights alone are enough.
        get_preferences = getattr(self.storage, "get_preferences", None)
        if get_preferences is not None:
            return await get_preferences(user_id)
        weights = await self.storage.get_role_weights(user_id)
        if weights is None:
            return None
        return UserPreferences(user_id=user_id, role_weights=dict(weights))

    async def _store(self, preferences: UserPreferences) -> None:
        put_preferences = getattr(self.storage, "put_preferences", None)
        if put_preferences is not None:
            await put_preferences(preferences)
        else:
            await self.storage.put_role_weights(preferences.user_id, dict(preferences.role_weights))


__all__ = ["PreferenceLearningSystem", "CommentLookup"]
