import random

import pytest

from monolog.comments.catalog import GENERIC_COMMENTS
from monolog.comments.generator import RuleBasedGenerator
from monolog.comments.mixer import HybridMixer
from monolog.comments.models import ConversationContext
from monolog.comments.selector import RoleSelector
from monolog.config import HybridConfig
from monolog.runtime.engine import InferenceEngine


class AlwaysModel(random.Random):
    """Makes every ratio draw pick the model path."""

    def random(self):
        return 0.0


def _mixer(engine=None, **config):
    rng = AlwaysModel()
    return HybridMixer(
        selector=RoleSelector(rng=rng),
        generator=RuleBasedGenerator(),
        engine=engine,
        config=HybridConfig(**config),
        rng=rng,
    )


CONTEXT = ConversationContext(recent_transcript="今日はゲームしてた", session_duration=600)


def test_timeout_falls_back_to_rules_and_lowers_ratio(run, make_factory):
    engine = InferenceEngine(make_factory(delay=0.3), model_id="tiny")
    mixer = _mixer(engine, initial_model_ratio=0.5, timeout_ms=20)

    async def scenario():
        await engine.load()
        return await mixer.produce(CONTEXT, {})

    comment = run(scenario())
    assert comment.source == "rule"
    assert comment.content
    assert mixer.model_ratio < 0.5
    stats = mixer.stats()
    assert stats["model_failures"] == 1
    assert stats["fallback_count"] == 1


def test_fast_model_reply_is_used(run, make_factory):
    engine = InferenceEngine(make_factory(reply="「それな」"), model_id="tiny")
    mixer = _mixer(engine, initial_model_ratio=0.5)

    async def scenario():
        await engine.load()
        return await mixer.produce(CONTEXT, {})

    comment = run(scenario())
    assert comment.source == "model"
    assert comment.content == "それな"
    assert mixer.model_ratio == pytest.approx(0.5)


def test_overlong_model_reply_is_rejected(run, make_factory):
    engine = InferenceEngine(make_factory(reply="あ" * 200), model_id="tiny")
    mixer = _mixer(engine)

    async def scenario():
        await engine.load()
        return await mixer.produce(CONTEXT, {})

    assert run(scenario()).source == "rule"


def test_ratio_never_drops_below_floor(run, make_factory):
    engine = InferenceEngine(make_factory(error=RuntimeError("boom")), model_id="tiny")
    mixer = _mixer(engine, initial_model_ratio=0.5, ratio_floor=0.05)

    async def scenario():
        await engine.load()
        for _ in range(30):
            comment = await mixer.produce(CONTEXT, {})
            assert comment.source == "rule"

    run(scenario())
    assert mixer.model_ratio == pytest.approx(0.05)


def test_without_engine_only_rules(run):
    mixer = _mixer()
    comment = run(mixer.produce(CONTEXT, {}))
    assert comment.source == "rule"
    assert not mixer.model_enabled
    assert mixer.stats()["model_disabled_reason"]


def test_disabled_model_is_not_called(run, make_factory):
    factory = make_factory()
    engine = InferenceEngine(factory, model_id="tiny")
    mixer = _mixer(engine)

    async def scenario():
        await engine.load()
        mixer.disable_model("load failed")
        return await mixer.produce(CONTEXT, {})

    assert run(scenario()).source == "rule"
    assert factory.handles[0].prompts == []


def test_degenerate_context_gets_generic_comment(run):
    comment = run(_mixer().produce(ConversationContext(recent_transcript="   "), {}))
    assert comment.source == "fallback"
    assert comment.content in GENERIC_COMMENTS


def test_set_mixing_ratio_is_bounded():
    mixer = _mixer(ratio_floor=0.05, ratio_ceiling=0.5)
    mixer.set_mixing_ratio(0.0, 1.0)
    assert mixer.model_ratio == pytest.approx(0.5)
    mixer.set_mixing_ratio(1.0, 0.0)
    assert mixer.model_ratio == pytest.approx(0.05)
    with pytest.raises(ValueError):
        mixer.set_mixing_ratio(0.0, 0.0)
