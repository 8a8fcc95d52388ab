import asyncio

import pytest

from chronos.accounts import User
from chronos.chat import ChatService, ShareDraft
from chronos.context import ContextAssembler
from chronos.conversation.models import ChatMessage
from chronos.conversation.storage import ConversationStore
from chronos.errors import ChatBusyError, ForumUnavailableError, UpstreamError
from chronos.forum.client import LocalForumSource
from chronos.forum.storage import ForumStore

ALICE = User(email="alice@example.com", name="Alice")


class FakeGenerator:
    def __init__(self, reply="Hello from Gemini", error=None):
        self.reply = reply
        self.error = error
        self.prepared = []

    async def generate_response(self, prepared):
        self.prepared.append(prepared)
        if self.error:
            raise self.error
        return self.reply


class BrokenForum:
    async def fetch_posts(self, user_id):
        raise ForumUnavailableError("forum is down")


@pytest.fixture
def conversations(kv):
    return ConversationStore(kv)


@pytest.fixture
def forum(kv):
    return ForumStore(kv)


def _service(conversations, forum, generator, source=None, **kwargs):
    assembler = ContextAssembler(source or LocalForumSource(forum), lang="en")
    return ChatService(ALICE, conversations, forum, assembler, generator, lang="en", **kwargs)


def test_send_persists_both_turns(conversations, forum):
    conv_id = conversations.create_conversation(ALICE.id)
    generator = FakeGenerator()

    result = asyncio.run(_service(conversations, forum, generator).send(conv_id, "  Hi there  "))

    assert result.error is None
    assert result.reply.content == "Hello from Gemini"
    stored = conversations.get_messages(ALICE.id, conv_id)
    assert [(m.role, m.content) for m in stored] == [("user", "Hi there"), ("model", "Hello from Gemini")]


def test_send_includes_user_context(conversations, forum):
    forum.create_post("Mine", "I love the stars", ALICE.id)
    conv_id = conversations.create_conversation(ALICE.id)
    generator = FakeGenerator()

    asyncio.run(_service(conversations, forum, generator).send(conv_id, "Hi"))

    prepared = generator.prepared[0]
    context_text = prepared.history[0].parts[0].text
    assert "I love the stars" in context_text
    assert "Alice" in context_text
    assert prepared.prompt_text == "Hi"


def test_send_failure_keeps_the_user_message(conversations, forum):
    conv_id = conversations.create_conversation(ALICE.id)
    generator = FakeGenerator(error=UpstreamError("Resource exhausted", 429))
    service = _service(conversations, forum, generator)

    result = asyncio.run(service.send(conv_id, "Hi"))

    assert result.error == "Resource exhausted"
    assert result.reply.content == "Error: Resource exhausted"
    assert result.notifications[0].variant == "destructive"
    assert "Resource exhausted" in result.notifications[0].description
    stored = conversations.get_messages(ALICE.id, conv_id)
    assert [(m.role, m.content) for m in stored] == [("user", "Hi"), ("model", "Error: Resource exhausted")]
    assert not service.loading


def test_forum_failure_still_sends(conversations, forum):
    conv_id = conversations.create_conversation(ALICE.id)
    generator = FakeGenerator()

    result = asyncio.run(_service(conversations, forum, generator, source=BrokenForum()).send(conv_id, "Hi"))

    assert result.reply.content == "Hello from Gemini"
    assert "forum is down" in result.notifications[0].description
    assert len(generator.prepared[0].contents) == 1


def test_blank_input_sends_nothing(conversations, forum):
    conv_id = conversations.create_conversation(ALICE.id)
    generator = FakeGenerator()

    assert asyncio.run(_service(conversations, forum, generator).send(conv_id, "   ")) is None
    assert generator.prepared == []
    assert conversations.get_messages(ALICE.id, conv_id) == []


def test_busy_user_cannot_send_twice(conversations, forum):
    conv_id = conversations.create_conversation(ALICE.id)
    service = _service(conversations, forum, FakeGenerator(), in_flight={ALICE.id})

    assert service.loading
    with pytest.raises(ChatBusyError):
        asyncio.run(service.send(conv_id, "Hi"))
    assert conversations.get_messages(ALICE.id, conv_id) == []


def test_history_is_sent_along(conversations, forum):
    conv_id = conversations.create_conversation(ALICE.id)
    conversations.append_messages(
        ALICE.id,
        conv_id,
        [ChatMessage(role="user", content="First"), ChatMessage(role="model", content="Reply")],
    )
    generator = FakeGenerator()

    asyncio.run(_service(conversations, forum, generator).send(conv_id, "Second"))

    texts = [c.parts[0].text for c in generator.prepared[0].contents[1:]]
    assert texts == ["First", "Reply", "Second"]


def test_share_without_model_reply(conversations, forum):
    conv_id = conversations.create_conversation(ALICE.id)
    conversations.append_messages(ALICE.id, conv_id, [ChatMessage(role="user", content="Only me")])

    assert _service(conversations, forum, FakeGenerator()).prepare_share(conv_id) is None
    assert forum.list_posts() == []


def test_share_last_model_reply(conversations, forum):
    conv_id = conversations.create_conversation(ALICE.id)
    conversations.append_messages(
        ALICE.id,
        conv_id,
        [
            ChatMessage(role="user", content="Tell me about time"),
            ChatMessage(role="model", content="First answer"),
            ChatMessage(role="user", content="More"),
            ChatMessage(role="model", content="Second answer"),
        ],
    )
    service = _service(conversations, forum, FakeGenerator())

    draft = service.prepare_share(conv_id)
    post = service.submit_share(draft)

    assert draft.title == "Tell me about time"
    assert post.content == "Second answer"
    assert post.author_id == ALICE.id
    assert post.author_name == "Alice"
    assert forum.list_posts()[0].id == post.id


def test_share_rejects_blank_title(conversations, forum):
    service = _service(conversations, forum, FakeGenerator())
    assert service.submit_share(ShareDraft(conversation_id="c", title="  ", content="x")) is None
    assert forum.list_posts() == []
