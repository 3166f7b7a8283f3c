import pytest

from monolog.adaptive.models import InteractionEvent, UserPreferences, default_weights
from monolog.comments.models import Comment, CommentRole, ConversationContext, InteractionType
from monolog.memory.store import InMemoryStorage, SQLiteStorage


def _preferences():
    weights = default_weights()
    weights[CommentRole.PLAYFUL] = 1.4
    weights[CommentRole.DEPARTURE] = 0.3
    return UserPreferences(
        user_id="u1",
        role_weights=weights,
        session_count=3,
        topic_preferences=["ゲーム", "料理"],
        interaction_history=[
            InteractionEvent(
                session_id="s1",
                comment_id="playful_abc",
                type=InteractionType.PICKUP,
                strength=0.6,
                role=CommentRole.PLAYFUL,
            )
        ],
    )


def test_sqlite_preferences_roundtrip(run, sqlite_storage):
    original = _preferences()
    assert run(sqlite_storage.get_preferences("u1")) is None

    run(sqlite_storage.put_preferences(original))
    loaded = run(sqlite_storage.get_preferences("u1"))
    assert loaded == original


def test_sqlite_survives_reopen(run, tmp_path):
    path = tmp_path / "prefs.db"
    first = SQLiteStorage(path)
    run(first.put_preferences(_preferences()))
    run(first.close())

    second = SQLiteStorage(path)
    try:
        loaded = run(second.get_preferences("u1"))
        assert loaded.role_weights[CommentRole.PLAYFUL] == pytest.approx(1.4)
        assert loaded.session_count == 3
    finally:
        run(second.close())


def test_sqlite_role_weights_and_comments(run, sqlite_storage):
    weights = default_weights(0.8)
    run(sqlite_storage.put_role_weights("u2", weights))
    assert run(sqlite_storage.get_role_weights("u2")) == weights
    assert run(sqlite_storage.get_role_weights("nobody")) is None

    comment = Comment.create(
        CommentRole.GREETING, "こんばんは！", ConversationContext(recent_transcript="こんばんは")
    )
    run(sqlite_storage.append_comment("s1", comment))
    stored = run(sqlite_storage.list_comments("s1"))
    assert [item["id"] for item in stored] == [comment.id]
    assert stored[0]["content"] == "こんばんは！"
    assert run(sqlite_storage.list_comments("other")) == []


def test_in_memory_storage_copies_records(run):
    storage = InMemoryStorage()
    original = _preferences()
    run(storage.put_preferences(original))
    original.role_weights[CommentRole.PLAYFUL] = 2.0

    loaded = run(storage.get_preferences("u1"))
    assert loaded.role_weights[CommentRole.PLAYFUL] == pytest.approx(1.4)
    assert loaded.interaction_history[0].role is CommentRole.PLAYFUL

    run(storage.put_role_weights("u1", default_weights()))
    assert run(storage.get_role_weights("u1"))[CommentRole.PLAYFUL] == 1.0
    assert run(storage.get_preferences("u1")).session_count == 3
