import pytest

from monolog.adaptive.pickup import PickupDetector
from monolog.comments.models import Comment, CommentRole, ConversationContext, InteractionType
from monolog.config import PickupConfig


def _comment(text, role=CommentRole.QUESTION):
    return Comment.create(role, text, ConversationContext(recent_transcript="..."))


@pytest.fixture
def detector(blank_nlp, fake_clock):
    return PickupDetector(PickupConfig(), nlp=blank_nlp, clock=fake_clock)


def test_identical_text_within_window_scores_one(detector):
    comment = _comment("最近ハマってるもの")
    assert detector.score_pickup(comment, "最近ハマってるもの", 1000) == pytest.approx(1.0)
    assert detector.score_pickup(comment, "最近ハマってるもの", 15000) == pytest.approx(1.0)


def test_outside_window_scores_zero(detector):
    comment = _comment("最近ハマってるもの")
    assert detector.score_pickup(comment, "最近ハマってるもの", 15001) == 0.0
    assert detector.score_pickup(comment, "最近ハマってるもの", -1) == 0.0
    assert detector.score_pickup(comment, "最近ハマってるもの", 4000, window_ms=3000) == 0.0


def test_overlap_scores(detector):
    japanese = _comment("最近ハマってるもの")
    assert detector.score_pickup(japanese, "最近ハマってるものはゲーム", 500) > 0.5
    assert detector.score_pickup(japanese, "今日は雨", 500) == 0.0

    english = _comment("that is so cool", CommentRole.REACTION)
    assert detector.score_pickup(english, "So cool right", 500) == pytest.approx(0.4)


def test_detect_emits_pickup_once(detector, fake_clock):
    picked = _comment("最近ハマってるもの")
    ignored = _comment("かわいい", CommentRole.REACTION)
    detector.register(picked)
    detector.register(ignored)

    fake_clock.advance(3)
    interactions = detector.detect("最近ハマってるものはゲーム")
    assert [i.comment_id for i in interactions] == [picked.id]
    assert interactions[0].type is InteractionType.PICKUP
    assert 0.3 < interactions[0].confidence <= 1.0
    assert detector.tracked_ids == [ignored.id]

    assert detector.detect("最近ハマってるものはゲーム") == []


def test_expired_comments_are_pruned(detector, fake_clock):
    comment = _comment("最近ハマってるもの")
    detector.register(comment)
    fake_clock.advance(16)
    assert detector.detect("最近ハマってるもの") == []
    assert detector.tracked_ids == []


def test_explicit_timestamps(detector):
    comment = _comment("それな", CommentRole.AGREEMENT)
    detector.register(comment, at=100.0)
    assert detector.detect("それな", at=101.0)[0].comment_id == comment.id
