"""Session-level orchestration: when to comment, what to say, what was liked."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import random
import time
from collections import OrderedDict, deque
from dataclasses import asdict, dataclass, field, replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Deque, Dict, List, Optional, Union

from monolog.adaptive.learner import PreferenceLearningSystem
from monolog.adaptive.models import RoleWeightMap
from monolog.adaptive.pickup import PickupDetector
from monolog.comments.catalog import RoleCatalog, RoleProfile
from monolog.comments.generator import RuleBasedGenerator
from monolog.comments.mixer import HybridMixer
from monolog.comments.models import (
    AudioAnalysisData,
    Comment,
    ConversationContext,
    InteractionType,
    UserInteraction,
)
from monolog.comments.selector import RoleSelector
from monolog.config import MonologConfig
from monolog.memory.store import InMemoryStorage, SQLiteStorage, Storage
from monolog.runtime.engine import InferenceEngine
from monolog.runtime.frequency import FrequencyGovernor
from monolog.runtime.handles import ollama_engine_factory

logger = logging.getLogger(__name__)

RULE_ONLY = "rule_only"
EPHEMERAL_PREFERENCES = "ephemeral_preferences"


@dataclass
class CapabilityNotice:
    """Reported once when the session runs with a reduced capability."""

    capability: str
    reason: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class Scheduler:
    """Public entry point that wires the comment pipeline together.

    ``generate_comment`` runs one call at a time per session. Callers that
    arrive while ``max_pending`` others are already waiting are turned away
    with ``None`` instead of queueing. Nothing on that path raises: a missing
    model degrades to templates and a broken store degrades to in-memory
    preferences.
    """

    registry_size = 500
    history_size = 20

    def __init__(
        self,
        *,
        config: Optional[MonologConfig] = None,
        engine: Optional[InferenceEngine] = None,
        storage: Optional[Storage] = None,
        catalog: Optional[RoleCatalog] = None,
        pickup: Optional[PickupDetector] = None,
        rng: Optional[random.Random] = None,
        clock: Callable[[], float] = time.monotonic,
        on_notice: Optional[Callable[[CapabilityNotice], None]] = None,
    ) -> None:
        self.config = (config or MonologConfig()).validate()
        self.rng = rng or random.Random()
        self.clock = clock
        self.on_notice = on_notice
        self.notices: List[CapabilityNotice] = []

        self.catalog = catalog or RoleCatalog()
        self.engine = engine
        self.storage: Storage = storage or InMemoryStorage()
        self.selector = RoleSelector(catalog=self.catalog, config=self.config.selector, rng=self.rng)
        self.generator = RuleBasedGenerator(
            catalog=self.catalog, repeat_window=self.config.selector.repeat_window
        )
        self.mixer = HybridMixer(
            selector=self.selector,
            generator=self.generator,
            engine=engine,
            config=self.config.hybrid,
            rng=self.rng,
        )
        self.governor = FrequencyGovernor(self.config.frequency, clock=clock, rng=self.rng)
        self.pickup = pickup or PickupDetector(self.config.pickup, clock=clock)
        self.learner = PreferenceLearningSystem(
            self.storage,
            comment_lookup=self.get_comment,
            config=self.config.learning,
            session_id=self.config.scheduler.session_id,
        )

        self._comments: "OrderedDict[str, Comment]" = OrderedDict()
        self._history: Deque[Comment] = deque(maxlen=self.history_size)
        self._lock = asyncio.Lock()
        self._pending = 0
        self._load_task: Optional[asyncio.Task] = None
        self._started = False
        self._closed = False

        if engine is None:
            self._notify(RULE_ONLY, "no model engine configured")
        if storage is None:
            self._notify(EPHEMERAL_PREFERENCES, "no storage configured; preferences last for this process only")

    @classmethod
    def from_config(
        cls,
        config: Optional[MonologConfig] = None,
        *,
        storage_path: Optional[Union[str, Path]] = None,
        use_model: bool = True,
        **kwargs: Any,
    ) -> "Scheduler":
        """Scheduler backed by the Ollama handle and, optionally, SQLite."""
        config = (config or MonologConfig()).validate()
        engine = None
        if use_model:
            engine = InferenceEngine(
                ollama_engine_factory(config.engine), model_id=config.engine.model_id
            )
        storage = SQLiteStorage(storage_path) if storage_path else None
        return cls(config=config, engine=engine, storage=storage, **kwargs)

    @property
    def user_id(self) -> str:
        return self.config.scheduler.user_id

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    async def start(self) -> None:
        if self._started:
            return
        self._started = True
        await self.governor.start()
        await self.learner.begin_session(self.user_id)
        if self.engine is not None and self.config.engine.autoload:
            self._load_task = asyncio.create_task(self._load_engine())
        logger.info(
            "Session %s started for %s", self.config.scheduler.session_id, self.user_id
        )

    async def _load_engine(self) -> bool:
        loaded = await self.engine.load()
        if not loaded:
            error = self.engine.last_error
            reason = f"model failed to load: {error}" if error else "model load aborted"
            self.mixer.disable_model(reason)
            self._notify(RULE_ONLY, reason)
        return loaded

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        task, self._load_task = self._load_task, None
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        if self.engine is not None:
            await self.engine.unload()
        await self.governor.dispose()
        closer = getattr(self.storage, "close", None)
        if closer is not None:
            try:
                await closer()
            except Exception as exc:  # noqa: BLE001
                logger.warning("Storage did not close cleanly: %s", exc)
        logger.info("Session %s closed", self.config.scheduler.session_id)

    async def __aenter__(self) -> "Scheduler":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    def _notify(self, capability: str, reason: str) -> None:
        if any(notice.capability == capability for notice in self.notices):
            return
        notice = CapabilityNotice(capability=capability, reason=reason)
        self.notices.append(notice)
        logger.warning("Capability notice [%s]: %s", capability, reason)
        if self.on_notice is not None:
            self.on_notice(notice)

    # ------------------------------------------------------------------ #
    # Comment generation
    # ------------------------------------------------------------------ #

    async def generate_comment(
        self, context: Optional[ConversationContext] = None
    ) -> Optional[Comment]:
        """A comment for ``context``, or None when it is not time to speak."""
        if self._closed:
            return None
        if self._lock.locked() and self._pending >= self.config.scheduler.max_pending:
            logger.debug("Generation request skipped; %d already waiting", self._pending)
            return None

        queued = True
        self._pending += 1
        try:
            async with self._lock:
                self._pending -= 1
                queued = False
                return await self._generate(context or ConversationContext())
        except Exception:  # noqa: BLE001
            logger.exception("Comment generation failed")
            return None
        finally:
            if queued:
                self._pending -= 1

    async def _generate(self, context: ConversationContext) -> Optional[Comment]:
        if not self.governor.should_generate():
            return None
        if not context.comment_history and self._history:
            context = replace(context, comment_history=list(self._history))
        context = self.governor.adaptive_context(context)

        weights = await self.learner.get_personalized_weights(self.user_id)
        comment = await self.mixer.produce(context, weights)

        self.governor.record_comment()
        self._remember(comment)
        self.pickup.register(comment)
        try:
            await self.storage.append_comment(self.config.scheduler.session_id, comment)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Could not store comment %s: %s", comment.id, exc)
        logger.debug("Emitted %s comment %s (%s)", comment.role.value, comment.id, comment.source)
        return comment

    def _remember(self, comment: Comment) -> None:
        self._comments[comment.id] = comment
        while len(self._comments) > self.registry_size:
            self._comments.popitem(last=False)
        self._history.append(comment)

    def get_comment(self, comment_id: str) -> Optional[Comment]:
        return self._comments.get(comment_id)

    @property
    def comment_history(self) -> List[Comment]:
        return list(self._history)

    # ------------------------------------------------------------------ #
    # Signals and feedback
    # ------------------------------------------------------------------ #

    def update_audio(self, data: AudioAnalysisData) -> float:
        return self.governor.update(data)

    async def record_feedback(
        self,
        comment_id: str,
        interaction_type: Union[InteractionType, str],
        strength: float = 1.0,
    ) -> Optional[float]:
        interaction_type = InteractionType(interaction_type)
        weight = await self.learner.apply_feedback(
            self.user_id, comment_id, interaction_type, strength
        )
        comment = self.get_comment(comment_id)
        if comment is not None:
            comment.attach_interaction(
                UserInteraction(comment_id=comment_id, type=interaction_type, confidence=strength)
            )
        return weight

    async def observe_speech(self, text: str, at: Optional[float] = None) -> List[UserInteraction]:
        """Feed a user utterance to pickup detection; detected pickups count as feedback."""
        interactions = self.pickup.detect(text, at=at)
        for interaction in interactions:
            await self.record_feedback(
                interaction.comment_id, InteractionType.PICKUP, interaction.confidence
            )
        return interactions

    # ------------------------------------------------------------------ #
    # Preferences
    # ------------------------------------------------------------------ #

    async def get_role_weights(self, user_id: Optional[str] = None) -> RoleWeightMap:
        return await self.learner.get_personalized_weights(user_id or self.user_id)

    async def get_active_roles(self, user_id: Optional[str] = None) -> List[RoleProfile]:
        weights = await self.get_role_weights(user_id)
        profiles = self.catalog.profiles(weights)
        return sorted(profiles, key=lambda profile: profile.weight, reverse=True)

    async def reset_preferences(self, user_id: Optional[str] = None) -> None:
        await self.learner.reset_preferences(user_id or self.user_id)

    def stats(self) -> Dict[str, Any]:
        learning = asdict(self.learner.stats(self.user_id))
        return {
            "frequency": self.governor.stats(),
            "mixer": self.mixer.stats(),
            "learning": learning,
            "engine_state": self.engine.state.value if self.engine else None,
            "notices": [notice.capability for notice in self.notices],
        }


__all__ = ["Scheduler", "CapabilityNotice", "RULE_ONLY", "EPHEMERAL_PREFERENCES"]
