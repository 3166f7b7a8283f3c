import random

import pytest

from monolog.comments.catalog import GENERIC_COMMENTS, RoleCatalog, RoleDefinition
from monolog.comments.generator import RuleBasedGenerator
from monolog.comments.models import Comment, CommentRole, ConversationContext
from monolog.comments.selector import FALLBACK_ROLE, RoleSelector
from monolog.config import SelectorConfig


def _history(contents, role=CommentRole.REACTION):
    base = ConversationContext(recent_transcript="x")
    return [Comment.create(role, text, base) for text in contents]


def test_greeting_eligible_at_session_start():
    selector = RoleSelector(rng=random.Random(1))
    context = ConversationContext(recent_transcript="おはよう", session_duration=0.0)

    eligible = selector.eligible_roles(context)
    assert CommentRole.GREETING in eligible
    assert CommentRole.INSIDER not in eligible

    for _ in range(20):
        assert selector.select_role({}, context) in eligible


def test_departure_needs_a_cue():
    selector = RoleSelector()
    mid_session = ConversationContext(recent_transcript="今日のご飯はカレー", session_duration=600)
    assert not selector.is_eligible(CommentRole.DEPARTURE, mid_session)
    assert not selector.is_eligible(CommentRole.GREETING, mid_session)

    leaving = ConversationContext(recent_transcript="そろそろ寝るね", session_duration=600)
    assert selector.is_eligible(CommentRole.DEPARTURE, leaving)

    timed = RoleSelector(config=SelectorConfig(session_end_after_seconds=300))
    assert timed.is_eligible(CommentRole.DEPARTURE, mid_session)


def test_question_and_insider_rules():
    selector = RoleSelector()
    talking = ConversationContext(recent_transcript="ゲームしてた", session_duration=600)
    assert not selector.is_eligible(CommentRole.QUESTION, talking)

    quiet = ConversationContext(recent_transcript="うーん", silence_duration=3500, session_duration=600)
    assert selector.is_eligible(CommentRole.QUESTION, quiet)

    asked = ConversationContext(recent_transcript="何食べようかな？", session_duration=600)
    assert selector.is_eligible(CommentRole.QUESTION, asked)

    regular = ConversationContext(
        recent_transcript="ゲームしてた",
        session_duration=600,
        comment_history=_history(["草", "それな", "かわいい"]),
    )
    assert selector.is_eligible(CommentRole.INSIDER, regular)


def test_zero_weights_fall_back_to_reaction():
    selector = RoleSelector(rng=random.Random(3))
    context = ConversationContext(recent_transcript="ゲームしてた", session_duration=600)
    weights = {role: 0.0 for role in CommentRole}
    assert selector.select_role(weights, context) is FALLBACK_ROLE


def test_trigger_keywords_boost_sampling():
    selector = RoleSelector()
    context = ConversationContext(recent_transcript="すごい！やばい！", session_duration=600)
    sampling = selector.sampling_weights({}, context)
    assert sampling[CommentRole.REACTION] > sampling[CommentRole.SUPPORT]


def test_generator_avoids_recent_repeats():
    catalog = RoleCatalog()
    patterns = catalog.patterns(CommentRole.AGREEMENT)
    generator = RuleBasedGenerator(catalog=catalog, repeat_window=len(patterns))
    context = ConversationContext(
        recent_transcript="やっぱりそう思う",
        comment_history=_history(patterns[:-1], CommentRole.AGREEMENT),
    )
    assert generator.generate(CommentRole.AGREEMENT, context) == patterns[-1]


def test_generator_is_deterministic_for_a_context():
    generator = RuleBasedGenerator()
    context = ConversationContext(recent_transcript="今日は雨だった")
    first = generator.generate(CommentRole.REACTION, context)
    assert first == generator.generate(CommentRole.REACTION, context)
    assert first in generator.catalog.patterns(CommentRole.REACTION)


def test_question_uses_topic_starters():
    generator = RuleBasedGenerator()
    context = ConversationContext(recent_transcript="昨日の夜", current_topic="ゲーム")
    assert generator.generate(CommentRole.QUESTION, context) in generator.catalog.starters("ゲーム")


def test_generic_comment_for_empty_transcript():
    generator = RuleBasedGenerator()
    assert generator.generic(ConversationContext()) in GENERIC_COMMENTS


def test_catalog_requires_every_role():
    definitions = {
        CommentRole.REACTION: RoleDefinition(role=CommentRole.REACTION, patterns=("草",)),
    }
    with pytest.raises(ValueError):
        RoleCatalog(definitions)
