"""Tests for the conversation service and its cache discipline."""

import pytest
import pytest_asyncio

from rabbit_ai.cache.conversation_cache import ConversationCache
from rabbit_ai.cache.keys import CacheKeys
from rabbit_ai.chat.models import (
    ChatCompletionError,
    ChatCompletionRequest,
    ChatCompletionResponse,
    ChatTransportError,
    EmptyChatResponseError,
)
from rabbit_ai.core.errors import (
    ConversationAccessDeniedError,
    ConversationNotFoundError,
    MessageNotFoundError,
    UserNotFoundError,
    ValidationError,
)
from rabbit_ai.core.models import (
    DEFAULT_CONVERSATION_TITLE,
    Conversation,
    Message,
    MessageRole,
    User,
)
from rabbit_ai.persistence.cached import CachedUserRepository
from rabbit_ai.persistence.memory import (
    InMemoryConversationRepository,
    InMemoryMessageRepository,
    InMemoryUserRepository,
)
from rabbit_ai.services.conversation import (
    ConversationService,
    derive_title,
    needs_title,
    normalize_page,
)
from tests.fakes import FakeChat, FakeRedis, chat_response


@pytest.fixture
def chat() -> FakeChat:
    return FakeChat(chat_response("Hi! How can I help?", total_tokens=20))


@pytest.fixture
def service(
    conversation_repo: InMemoryConversationRepository,
    message_repo: InMemoryMessageRepository,
    user_repo: InMemoryUserRepository,
    conversation_cache: ConversationCache,
    chat: FakeChat,
) -> ConversationService:
    return ConversationService(conversation_repo, message_repo, user_repo, conversation_cache, chat)


@pytest_asyncio.fixture
async def owner(cached_users: CachedUserRepository) -> User:
    return await cached_users.create(User(phone="13800000001", nickname="owner"))


@pytest_asyncio.fixture
async def stranger(cached_users: CachedUserRepository) -> User:
    return await cached_users.create(User(phone="13800000002", nickname="stranger"))


class TestHelpers:
    @pytest.mark.parametrize(
        "content, title",
        [
            ("  hello  ", "hello"),
            ("a" * 20, "a" * 20),
            ("a" * 21, "a" * 20 + "..."),
            ("你好" * 15, "你好" * 10 + "..."),
        ],
    )
    def test_derive_title(self, content: str, title: str) -> None:
        assert derive_title(content) == title

    def test_needs_title(self) -> None:
        assert needs_title(Conversation(user_id=1, title=""))
        assert needs_title(Conversation(user_id=1, title=DEFAULT_CONVERSATION_TITLE))
        assert not needs_title(Conversation(user_id=1, title="Trip plans"))

    def test_normalize_page(self) -> None:
        assert normalize_page(0, -5, 20) == (20, 0)
        assert normalize_page(5, 10, 20) == (5, 10)


class TestCreateConversation:
    @pytest.mark.asyncio
    async def test_create(
        self, service: ConversationService, owner: User, fake_redis: FakeRedis
    ) -> None:
        fake_redis.data[CacheKeys.user_conversations(owner.id)] = b"[]"

        result = await service.create_conversation(owner.id, "  Trip plans ")

        assert result.conversation.title == "Trip plans"
        assert result.conversation.user_id == owner.id
        assert CacheKeys.conversation(result.conversation.id) in fake_redis.data
        assert CacheKeys.user_conversations(owner.id) not in fake_redis.data
        assert all(effect.ok for effect in result.cache_effects)

    @pytest.mark.asyncio
    async def test_unknown_user(self, service: ConversationService) -> None:
        with pytest.raises(UserNotFoundError):
            await service.create_conversation(404)

    @pytest.mark.asyncio
    async def test_user_is_checked_in_store(
        self,
        service: ConversationService,
        owner: User,
        user_repo: InMemoryUserRepository,
        fake_redis: FakeRedis,
    ) -> None:
        await user_repo.delete(owner.id)
        assert CacheKeys.user(owner.id) in fake_redis.data

        with pytest.raises(UserNotFoundError):
            await service.create_conversation(owner.id)

    @pytest.mark.asyncio
    async def test_cache_outage_does_not_fail_create(
        self,
        service: ConversationService,
        owner: User,
        fake_redis: FakeRedis,
        conversation_repo: InMemoryConversationRepository,
    ) -> None:
        fake_redis.fail_ops.update({"set", "delete"})

        result = await service.create_conversation(owner.id, "t")

        assert await conversation_repo.get_by_id(result.conversation.id) is not None
        assert [e.ok for e in result.cache_effects] == [False, False]


class TestGetConversation:
    @pytest.mark.asyncio
    async def test_reads_through_cache(
        self, service: ConversationService, owner: User, fake_redis: FakeRedis
    ) -> None:
        created = (await service.create_conversation(owner.id, "t")).conversation
        del fake_redis.data[CacheKeys.conversation(created.id)]

        first = await service.get_conversation(created.id, owner.id)
        second = await service.get_conversation(created.id, owner.id)

        assert first.conversation == created
        assert [e.operation for e in first.cache_effects] == ["populate_conversation"]
        assert second.cache_effects == ()

    @pytest.mark.asyncio
    async def test_other_users_are_denied(
        self, service: ConversationService, owner: User, stranger: User
    ) -> None:
        created = (await service.create_conversation(owner.id, "t")).conversation

        with pytest.raises(ConversationAccessDeniedError):
            await service.get_conversation(created.id, stranger.id)

    @pytest.mark.asyncio
    async def test_missing(self, service: ConversationService, owner: User) -> None:
        with pytest.raises(ConversationNotFoundError):
            await service.get_conversation(999, owner.id)


class TestGetConversations:
    @pytest.mark.asyncio
    async def test_first_page_is_snapshotted(
        self, service: ConversationService, owner: User, fake_redis: FakeRedis
    ) -> None:
        for title in ("a", "b", "c"):
            await service.create_conversation(owner.id, title)

        first = await service.get_conversations(owner.id)
        second = await service.get_conversations(owner.id)

        assert not first.from_cache
        assert second.from_cache
        assert first.total == second.total == 3
        assert [c.id for c in first.conversations] == [c.id for c in second.conversations]
        assert CacheKeys.user_conversations(owner.id) in fake_redis.data

    @pytest.mark.asyncio
    async def test_later_pages_bypass_snapshot(
        self, service: ConversationService, owner: User, fake_redis: FakeRedis
    ) -> None:
        for title in ("a", "b", "c"):
            await service.create_conversation(owner.id, title)
        await service.get_conversations(owner.id)
        fake_redis.calls.clear()

        page = await service.get_conversations(owner.id, limit=2, offset=2)

        assert not page.from_cache
        assert len(page.conversations) == 1
        snapshot_key = CacheKeys.user_conversations(owner.id)
        assert (snapshot_key,) not in fake_redis.ops("get")
        assert (snapshot_key,) not in fake_redis.ops("set")

    @pytest.mark.asyncio
    async def test_short_snapshot_is_not_served(
        self,
        service: ConversationService,
        owner: User,
        conversation_cache: ConversationCache,
    ) -> None:
        created = [(await service.create_conversation(owner.id, t)).conversation for t in "abc"]
        await conversation_cache.set_user_conversations(owner.id, created[:1])

        page = await service.get_conversations(owner.id, limit=10)

        assert not page.from_cache
        assert len(page.conversations) == 3

    @pytest.mark.asyncio
    async def test_snapshot_is_trimmed_to_limit(
        self, service: ConversationService, owner: User
    ) -> None:
        for title in ("a", "b", "c"):
            await service.create_conversation(owner.id, title)
        await service.get_conversations(owner.id)

        page = await service.get_conversations(owner.id, limit=2)

        assert page.from_cache
        assert len(page.conversations) == 2
        assert page.total == 3

    @pytest.mark.asyncio
    async def test_cache_read_error_falls_back(
        self, service: ConversationService, owner: User, fake_redis: FakeRedis
    ) -> None:
        await service.create_conversation(owner.id, "a")
        await service.get_conversations(owner.id)
        fake_redis.fail_ops.add("get")

        page = await service.get_conversations(owner.id)

        assert len(page.conversations) == 1
        assert not page.from_cache
        assert page.cache_effects[0].operation == "get_user_conversations"
        assert not page.cache_effects[0].ok

    @pytest.mark.asyncio
    async def test_non_positive_limit_uses_default(
        self, service: ConversationService, owner: User
    ) -> None:
        for i in range(25):
            await service.create_conversation(owner.id, f"c{i}")

        page = await service.get_conversations(owner.id, limit=0)
        negative = await service.get_conversations(owner.id, limit=-3, offset=-1)

        assert len(page.conversations) == 20
        assert page.total == 25
        assert len(negative.conversations) == 20

    @pytest.mark.asyncio
    async def test_empty_list(self, service: ConversationService, owner: User) -> None:
        await service.get_conversations(owner.id)

        page = await service.get_conversations(owner.id)

        assert page.conversations == []
        assert page.total == 0
        assert page.from_cache


class TestSendMessage:
    @pytest.mark.asyncio
    async def test_stores_both_turns_and_updates_conversation(
        self,
        service: ConversationService,
        owner: User,
        chat: FakeChat,
        message_repo: InMemoryMessageRepository,
    ) -> None:
        created = (await service.create_conversation(owner.id)).conversation

        result = await service.send_message(created.id, owner.id, "Plan a weekend trip to Hangzhou")

        assert result.user_message.role == MessageRole.USER
        assert result.assistant_message.role == MessageRole.ASSISTANT
        assert result.assistant_message.content == "Hi! How can I help?"
        assert result.assistant_message.tokens == 20
        assert result.conversation.message_count == 2
        assert result.conversation.title == "Plan a weekend trip "[:20] + "..."
        assert result.usage["total_tokens"] == 20
        assert await message_repo.get_conversation_message_count(created.id) == 2

        sent = chat.requests[0]
        assert sent.model == "MiniMax-M1"
        assert sent.max_tokens == 2048
        assert sent.temperature == 0.7
        assert sent.user == f"user_{owner.id}"
        assert [m.content for m in sent.messages] == ["Plan a weekend trip to Hangzhou"]

    @pytest.mark.asyncio
    async def test_sends_full_history(
        self, service: ConversationService, owner: User, chat: FakeChat
    ) -> None:
        created = (await service.create_conversation(owner.id, "t")).conversation
        await service.send_message(created.id, owner.id, "first")

        await service.send_message(created.id, owner.id, "second")

        history = chat.requests[1].messages
        assert [m.role for m in history] == ["user", "assistant", "user"]
        assert history[-1].content == "second"

    @pytest.mark.asyncio
    async def test_explicit_title_is_kept(self, service: ConversationService, owner: User) -> None:
        created = (await service.create_conversation(owner.id, "Keep me")).conversation

        result = await service.send_message(created.id, owner.id, "hello")

        assert result.conversation.title == "Keep me"

    @pytest.mark.asyncio
    async def test_invalidates_conversation_and_list(
        self,
        service: ConversationService,
        owner: User,
        conversation_cache: ConversationCache,
        fake_redis: FakeRedis,
    ) -> None:
        created = (await service.create_conversation(owner.id, "t")).conversation
        await service.get_conversations(owner.id)
        await service.get_conversation_messages(created.id, owner.id)

        await service.send_message(created.id, owner.id, "hello")

        assert CacheKeys.conversation(created.id) not in fake_redis.data
        assert CacheKeys.conversation_messages(created.id) not in fake_redis.data
        assert CacheKeys.user_conversations(owner.id) not in fake_redis.data
        page = await service.get_conversation_messages(created.id, owner.id)
        assert page.total == 2
        assert len(page.messages) == 2

    @pytest.mark.asyncio
    async def test_cache_outage_does_not_fail_send(
        self, service: ConversationService, owner: User, fake_redis: FakeRedis
    ) -> None:
        created = (await service.create_conversation(owner.id, "t")).conversation
        fake_redis.fail_ops.add("*")

        result = await service.send_message(created.id, owner.id, "hello")

        assert result.conversation.message_count == 2
        assert result.cache_effects
        assert not any(effect.ok for effect in result.cache_effects)

    @pytest.mark.asyncio
    async def test_chat_failure_keeps_user_message(
        self,
        service: ConversationService,
        owner: User,
        chat: FakeChat,
        message_repo: InMemoryMessageRepository,
        conversation_repo: InMemoryConversationRepository,
    ) -> None:
        created = (await service.create_conversation(owner.id, "t")).conversation
        chat.responses = [ChatTransportError("connection refused")]

        with pytest.raises(ChatTransportError):
            await service.send_message(created.id, owner.id, "hello")

        stored = await message_repo.get_conversation_messages(created.id)
        assert [m.role for m in stored] == [MessageRole.USER]
        assert (await conversation_repo.get_by_id(created.id)).message_count == 0

    @pytest.mark.asyncio
    async def test_api_error_status(
        self, service: ConversationService, owner: User, chat: FakeChat
    ) -> None:
        created = (await service.create_conversation(owner.id, "t")).conversation
        chat.responses = [chat_response(status_code=1008, status_msg="no balance")]

        with pytest.raises(ChatCompletionError) as exc_info:
            await service.send_message(created.id, owner.id, "hello")
        assert exc_info.value.is_insufficient_balance

    @pytest.mark.asyncio
    async def test_empty_reply(
        self, service: ConversationService, owner: User, chat: FakeChat
    ) -> None:
        created = (await service.create_conversation(owner.id, "t")).conversation
        chat.responses = [chat_response("")]

        with pytest.raises(EmptyChatResponseError):
            await service.send_message(created.id, owner.id, "hello")

    @pytest.mark.asyncio
    async def test_rejects_empty_content(
        self, service: ConversationService, owner: User, chat: FakeChat
    ) -> None:
        created = (await service.create_conversation(owner.id, "t")).conversation

        with pytest.raises(ValidationError):
            await service.send_message(created.id, owner.id, "   ")
        assert chat.requests == []

    @pytest.mark.asyncio
    async def test_other_users_cannot_send(
        self, service: ConversationService, owner: User, stranger: User
    ) -> None:
        created = (await service.create_conversation(owner.id, "t")).conversation

        with pytest.raises(ConversationAccessDeniedError):
            await service.send_message(created.id, stranger.id, "hello")

    @pytest.mark.asyncio
    async def test_delete_during_reply_is_not_undone(
        self,
        service: ConversationService,
        owner: User,
        chat: FakeChat,
        conversation_repo: InMemoryConversationRepository,
    ) -> None:
        created = (await service.create_conversation(owner.id, "t")).conversation
        reply = chat.responses[0]

        async def delete_then_reply(request: ChatCompletionRequest) -> ChatCompletionResponse:
            await conversation_repo.delete(created.id)
            return reply

        chat.chat_completion = delete_then_reply

        with pytest.raises(ConversationNotFoundError):
            await service.send_message(created.id, owner.id, "hello")
        assert await conversation_repo.get_by_id(created.id) is None
        assert await conversation_repo.get_user_conversation_count(owner.id) == 0


class TestMessages:
    @pytest.mark.asyncio
    async def test_messages_page(self, service: ConversationService, owner: User) -> None:
        created = (await service.create_conversation(owner.id, "t")).conversation
        await service.send_message(created.id, owner.id, "one")
        await service.send_message(created.id, owner.id, "two")

        page = await service.get_conversation_messages(created.id, owner.id, limit=2, offset=2)

        assert page.total == 4
        assert [m.content for m in page.messages][0] == "two"

    @pytest.mark.asyncio
    async def test_non_positive_limit_uses_default(
        self,
        service: ConversationService,
        owner: User,
        message_repo: InMemoryMessageRepository,
    ) -> None:
        created = (await service.create_conversation(owner.id, "t")).conversation
        for i in range(60):
            await message_repo.create(
                Message(conversation_id=created.id, role=MessageRole.USER, content=str(i))
            )

        page = await service.get_conversation_messages(created.id, owner.id, limit=0)

        assert len(page.messages) == 50
        assert page.total == 60
        assert page.messages[0].content == "0"

    @pytest.mark.asyncio
    async def test_get_message(
        self, service: ConversationService, owner: User, stranger: User
    ) -> None:
        created = (await service.create_conversation(owner.id, "t")).conversation
        result = await service.send_message(created.id, owner.id, "one")

        message = await service.get_message(result.user_message.id, owner.id)

        assert message.content == "one"
        with pytest.raises(ConversationAccessDeniedError):
            await service.get_message(result.user_message.id, stranger.id)
        with pytest.raises(MessageNotFoundError):
            await service.get_message(999, owner.id)


class TestDeleteConversation:
    @pytest.mark.asyncio
    async def test_soft_delete(
        self,
        service: ConversationService,
        owner: User,
        fake_redis: FakeRedis,
        message_repo: InMemoryMessageRepository,
    ) -> None:
        created = (await service.create_conversation(owner.id, "t")).conversation
        await service.send_message(created.id, owner.id, "hello")
        await service.get_conversations(owner.id)

        effects = await service.delete_conversation(created.id, owner.id)

        assert all(effect.ok for effect in effects)
        assert CacheKeys.user_conversations(owner.id) not in fake_redis.data
        assert (await service.get_conversations(owner.id)).conversations == []
        assert await message_repo.get_conversation_message_count(created.id) == 2
        with pytest.raises(ConversationNotFoundError):
            await service.get_conversation(created.id, owner.id)

    @pytest.mark.asyncio
    async def test_only_owner_can_delete(
        self, service: ConversationService, owner: User, stranger: User
    ) -> None:
        created = (await service.create_conversation(owner.id, "t")).conversation

        with pytest.raises(ConversationAccessDeniedError):
            await service.delete_conversation(created.id, stranger.id)


class TestScenarios:
    @pytest.mark.asyncio
    async def test_titled_conversation_keeps_title(
        self, service: ConversationService, cached_users: CachedUserRepository
    ) -> None:
        user = await cached_users.create(User(phone="13800138000"))
        created = (await service.create_conversation(user.id, "AI技术咨询")).conversation

        result = await service.send_message(created.id, user.id, "你好")

        assert result.conversation.message_count == 2
        assert result.conversation.title == "AI技术咨询"
        page = await service.get_conversation_messages(created.id, user.id)
        assert [m.role for m in page.messages] == [MessageRole.USER, MessageRole.ASSISTANT]

    @pytest.mark.asyncio
    async def test_untitled_conversation_takes_truncated_title(
        self, service: ConversationService, owner: User
    ) -> None:
        created = (await service.create_conversation(owner.id)).conversation
        content = "abcdefghijklmnopqrstuvwxy"

        result = await service.send_message(created.id, owner.id, content)

        assert result.conversation.title == content[:20] + "..."

    @pytest.mark.asyncio
    async def test_send_into_deleted_conversation_is_not_found(
        self, service: ConversationService, owner: User
    ) -> None:
        created = (await service.create_conversation(owner.id, "t")).conversation
        await service.delete_conversation(created.id, owner.id)

        with pytest.raises(ConversationNotFoundError):
            await service.send_message(created.id, owner.id, "hello")
