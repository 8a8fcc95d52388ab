import json

from chronos.conversation.models import ChatMessage
from chronos.conversation.session import ChatSession
from chronos.conversation.storage import (
    ELLIPSIS,
    TITLE_PLACEHOLDER,
    ConversationStore,
    derive_title,
)

USER = "alice@example.com"


def _msg(role, content, at):
    return ChatMessage(role=role, content=content, created_at=at)


def test_derive_title_uses_first_user_message():
    messages = [_msg("model", "Welcome", 1), _msg("user", "  What is   time? ", 2)]
    assert derive_title(messages) == "What is time?"


def test_derive_title_truncates_long_messages():
    title = derive_title([_msg("user", "x" * 55, 1)])
    assert title == "x" * 40 + ELLIPSIS


def test_derive_title_placeholder_without_user_message():
    assert derive_title([]) == TITLE_PLACEHOLDER
    assert derive_title([_msg("model", "hi", 1)]) == TITLE_PLACEHOLDER


def test_list_is_sorted_by_last_update(kv):
    store = ConversationStore(kv)
    ids = [store.create_conversation(USER) for _ in range(3)]
    store.append_messages(USER, ids[0], [_msg("user", "oldest", 1_000)])
    store.append_messages(USER, ids[1], [_msg("user", "newest", 3_000)])
    store.append_messages(USER, ids[2], [_msg("user", "middle", 2_000)])

    assert [m.id for m in store.list_conversations(USER)] == [ids[1], ids[2], ids[0]]
    assert store.most_recent(USER) == ids[1]


def test_deleted_conversations_disappear_from_listing(kv):
    store = ConversationStore(kv)
    keep = store.create_conversation(USER)
    gone = store.create_conversation(USER)

    assert store.delete_conversation(USER, gone)
    assert [m.id for m in store.list_conversations(USER)] == [keep]
    assert store.get_messages(USER, gone) == []


def test_delete_missing_conversation_is_harmless(kv):
    store = ConversationStore(kv)
    assert store.delete_conversation(USER, "missing") is False


def test_get_messages_for_unknown_id_is_empty(kv):
    assert ConversationStore(kv).get_messages(USER, "nope") == []


def test_append_messages_replaces_the_list(kv):
    store = ConversationStore(kv)
    conv_id = store.create_conversation(USER)
    store.append_messages(USER, conv_id, [_msg("user", "a", 1), _msg("model", "b", 2)])
    store.append_messages(USER, conv_id, [_msg("user", "c", 3)])

    assert [m.content for m in store.get_messages(USER, conv_id)] == ["c"]


def test_conversations_are_per_user(kv):
    store = ConversationStore(kv)
    store.create_conversation(USER)
    assert store.list_conversations("bob@example.com") == []


def test_legacy_list_records_are_read(kv):
    kv.set(
        "chronos.chats." + USER,
        json.dumps({"old": [{"role": "user", "content": "hi", "created_at": 5}]}),
    )
    metas = ConversationStore(kv).list_conversations(USER)
    assert [(m.id, m.title, m.updated_at) for m in metas] == [("old", "hi", 5)]


def test_corrupted_chats_are_treated_as_empty(kv):
    kv.set("chronos.chats." + USER, "[[[")
    assert ConversationStore(kv).list_conversations(USER) == []


def test_session_opens_most_recent_or_creates(kv):
    store = ConversationStore(kv)
    session = ChatSession(store, USER)

    created = session.open()
    assert store.exists(USER, created)
    assert ChatSession(store, USER).open() == created


def test_deleting_active_conversation_moves_to_most_recent(kv):
    store = ConversationStore(kv)
    older = store.create_conversation(USER)
    store.append_messages(USER, older, [_msg("user", "old", 1_000)])
    newer = store.create_conversation(USER)
    store.append_messages(USER, newer, [_msg("user", "new", 2_000)])

    session = ChatSession(store, USER)
    session.select(newer)

    assert session.delete(newer) == older


def test_deleting_last_conversation_creates_a_fresh_one(kv):
    store = ConversationStore(kv)
    session = ChatSession(store, USER)
    only = session.open()

    fresh = session.delete(only)

    assert fresh != only
    assert [m.id for m in store.list_conversations(USER)] == [fresh]


def test_deleting_other_conversation_keeps_selection(kv):
    store = ConversationStore(kv)
    session = ChatSession(store, USER)
    active = session.new_conversation()
    other = store.create_conversation(USER)

    assert session.delete(other) == active
