import asyncio
import random

import pytest

from monolog.adaptive.pickup import PickupDetector
from monolog.comments.models import (
    AudioAnalysisData,
    CommentRole,
    ConversationContext,
    InteractionType,
)
from monolog.config import MonologConfig
from monolog.errors import PersistenceError
from monolog.memory.store import InMemoryStorage
from monolog.runtime.engine import EngineState, InferenceEngine
from monolog.scheduler import EPHEMERAL_PREFERENCES, RULE_ONLY, Scheduler


class BrokenStorage(InMemoryStorage):
    async def get_preferences(self, user_id):
        raise PersistenceError("locked")

    async def put_preferences(self, preferences):
        raise PersistenceError("locked")

    async def append_comment(self, session_id, comment):
        raise PersistenceError("locked")


class RoleWeightStorage:
    def __init__(self):
        self.weights = {}
        self.comments = []

    async def get_role_weights(self, user_id):
        return self.weights.get(user_id)

    async def put_role_weights(self, user_id, weights):
        self.weights[user_id] = dict(weights)

    async def append_comment(self, session_id, comment):
        self.comments.append(comment.id)


class VanishedDiskStorage(InMemoryStorage):
    async def get_preferences(self, user_id):
        raise OSError("disk gone")

    async def put_preferences(self, preferences):
        raise OSError("disk gone")

    async def append_comment(self, session_id, comment):
        raise OSError("disk gone")


@pytest.fixture
def make_scheduler(blank_nlp, fake_clock):
    def build(**kwargs):
        config = kwargs.pop("config", None) or MonologConfig()
        config.learning.retry_backoff_seconds = 0.0
        kwargs.setdefault("storage", InMemoryStorage())
        return Scheduler(
            config=config,
            pickup=PickupDetector(config.pickup, nlp=blank_nlp, clock=fake_clock),
            rng=random.Random(3),
            clock=fake_clock,
            **kwargs,
        )

    return build


GOOD_MORNING = ConversationContext(recent_transcript="おはよう", session_duration=0.0)


def test_good_morning_gets_an_eligible_comment(run, make_scheduler):
    scheduler = make_scheduler()
    comment = run(scheduler.generate_comment(GOOD_MORNING))
    assert comment is not None
    assert comment.content
    assert comment.role in scheduler.selector.eligible_roles(GOOD_MORNING)
    assert scheduler.get_comment(comment.id) is comment
    assert run(scheduler.storage.list_comments("default"))[0]["id"] == comment.id


def test_rate_gate_returns_none_until_due(run, make_scheduler, fake_clock):
    scheduler = make_scheduler()
    assert run(scheduler.generate_comment(GOOD_MORNING)) is not None
    assert run(scheduler.generate_comment(GOOD_MORNING)) is None
    fake_clock.advance(60)
    assert run(scheduler.generate_comment(GOOD_MORNING)) is not None
    assert len(scheduler.comment_history) == 2


def test_degenerate_context_still_yields_comment(run, make_scheduler):
    scheduler = make_scheduler()
    comment = run(scheduler.generate_comment(ConversationContext(recent_transcript="")))
    assert comment.source == "fallback"
    assert run(scheduler.generate_comment(None)) is None


def test_broken_storage_never_raises(run, make_scheduler):
    scheduler = make_scheduler(storage=BrokenStorage())

    async def scenario():
        await scheduler.start()
        comment = await scheduler.generate_comment(GOOD_MORNING)
        weight = await scheduler.record_feedback(comment.id, InteractionType.THUMBS_UP)
        await scheduler.close()
        return comment, weight

    comment, weight = run(scenario())
    assert comment is not None
    assert weight == pytest.approx(1.1)


def test_internal_failure_returns_none(run, make_scheduler):
    scheduler = make_scheduler()

    async def explode(context, weights):
        raise RuntimeError("unexpected")

    scheduler.mixer.produce = explode
    assert run(scheduler.generate_comment(GOOD_MORNING)) is None


def test_overflowing_callers_are_skipped(run, make_scheduler):
    config = MonologConfig()
    config.scheduler.max_pending = 0
    scheduler = make_scheduler(config=config)

    async def scenario():
        async with scheduler._lock:
            return await scheduler.generate_comment(GOOD_MORNING)

    assert run(scenario()) is None
    assert scheduler._pending == 0


def test_concurrent_calls_are_serialised(run, make_scheduler, fake_clock):
    scheduler = make_scheduler()

    async def scenario():
        return await asyncio.gather(*(scheduler.generate_comment(GOOD_MORNING) for _ in range(3)))

    results = run(scenario())
    assert sum(1 for result in results if result is not None) == 1


def test_missing_collaborators_emit_notices(blank_nlp):
    seen = []
    scheduler = Scheduler(
        pickup=PickupDetector(nlp=blank_nlp),
        on_notice=seen.append,
    )
    assert [notice.capability for notice in scheduler.notices] == [RULE_ONLY, EPHEMERAL_PREFERENCES]
    assert seen == scheduler.notices
    assert isinstance(scheduler.storage, InMemoryStorage)


def test_failed_model_load_degrades_to_rules(run, make_scheduler, make_factory):
    engine = InferenceEngine(make_factory(fail_loads=5), model_id="tiny")
    scheduler = make_scheduler(engine=engine)

    async def scenario():
        await scheduler.start()
        await scheduler._load_task
        comment = await scheduler.generate_comment(GOOD_MORNING)
        await scheduler.close()
        return comment

    comment = run(scenario())
    assert comment.source == "rule"
    assert not scheduler.mixer.model_enabled
    assert [notice.capability for notice in scheduler.notices] == [RULE_ONLY]
    assert engine.state is EngineState.UNLOADED


def test_feedback_and_pickup_update_weights(run, make_scheduler, fake_clock):
    scheduler = make_scheduler()

    async def scenario():
        comment = await scheduler.generate_comment(GOOD_MORNING)
        await scheduler.record_feedback(comment.id, "thumbs_up", 0.5)
        fake_clock.advance(2)
        pickups = await scheduler.observe_speech(comment.content)
        weights = await scheduler.get_role_weights()
        return comment, pickups, weights

    comment, pickups, weights = run(scenario())
    assert [p.comment_id for p in pickups] == [comment.id]
    assert comment.user_interaction.type is InteractionType.PICKUP
    assert weights[comment.role] == pytest.approx(1.15)


def test_active_roles_and_reset(run, make_scheduler):
    scheduler = make_scheduler()

    async def scenario():
        comment = await scheduler.generate_comment(GOOD_MORNING)
        await scheduler.record_feedback(comment.id, InteractionType.THUMBS_UP)
        top = (await scheduler.get_active_roles())[0]
        await scheduler.reset_preferences()
        return comment, top, await scheduler.get_role_weights()

    comment, top, weights = run(scenario())
    assert top.role is comment.role
    assert top.weight == pytest.approx(1.1)
    assert set(weights) == set(CommentRole)
    assert all(weight == 1.0 for weight in weights.values())


def test_start_counts_session_and_close_stops_generation(run, make_scheduler):
    storage = InMemoryStorage()
    scheduler = make_scheduler(storage=storage)

    async def scenario():
        async with scheduler:
            scheduler.update_audio(AudioAnalysisData(volume=60, speech_rate=130, is_speaking=True))
        return await scheduler.generate_comment(GOOD_MORNING)

    assert run(scenario()) is None
    assert run(storage.get_preferences("default")).session_count == 1
    assert scheduler.stats()["frequency"]["current_frequency"] > 0


def _three_comments(run, scheduler, fake_clock):
    comments = []
    for _ in range(3):
        comments.append(run(scheduler.generate_comment(GOOD_MORNING)))
        fake_clock.advance(120)
    return comments


def test_role_weight_storage_is_enough(run, make_scheduler, fake_clock):
    storage = RoleWeightStorage()
    scheduler = make_scheduler(storage=storage)

    comments = _three_comments(run, scheduler, fake_clock)
    assert all(comment is not None for comment in comments)
    assert storage.comments == [comment.id for comment in comments]

    weight = run(scheduler.record_feedback(comments[0].id, InteractionType.THUMBS_UP))
    assert weight == pytest.approx(1.1)
    assert storage.weights["default"][comments[0].role] == pytest.approx(1.1)


def test_unexpected_storage_errors_never_stop_generation(run, make_scheduler, fake_clock):
    scheduler = make_scheduler(storage=VanishedDiskStorage())

    comments = _three_comments(run, scheduler, fake_clock)
    assert all(comment is not None for comment in comments)
    weight = run(scheduler.record_feedback(comments[0].id, "thumbs_up"))
    assert weight == pytest.approx(1.1)


def test_rejected_feedback_leaves_comment_untouched(run, make_scheduler):
    scheduler = make_scheduler()
    comment = run(scheduler.generate_comment(GOOD_MORNING))

    with pytest.raises(ValueError):
        run(scheduler.record_feedback(comment.id, "thumbs_up", 1.5))
    assert comment.user_interaction is None
    assert run(scheduler.get_role_weights())[comment.role] == 1.0
