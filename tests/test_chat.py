"""Chat handler: preparation checks, streaming frames and the HTTP surface."""
import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from api.features.chat import service as chat_service_module
from api.features.chat.dtos import ChatReplyResponse, ChatRequest
from api.features.chat.prompts import NO_PROVIDER_REPLY
from api.features.chat.service import ChatContext, ChatService, sse_event
from api.shared.exceptions import ExternalServiceError, LockedError, NotFoundError, ValidationError
from infra.llm.base import ChatRole, ChatTurn, ProviderError, ProviderName
from infra.llm.registry import ProviderRegistry

CONVERSATION_ID = "33333333-3333-3333-3333-333333333333"


class FakeProvider:
    name = ProviderName.GEMINI

    def __init__(self, deltas=("Hola", ", ", "¿qué tal?"), fail_after=None):
        self.deltas = deltas
        self.fail_after = fail_after
        self.calls = []

    async def generate(self, system_prompt, turns, options):
        self.calls.append((system_prompt, turns))
        if self.fail_after is not None:
            raise ProviderError("gemini", "HTTP 500: boom", 500)
        return "".join(self.deltas)

    async def stream(self, system_prompt, turns, options):
        self.calls.append((system_prompt, turns))
        for i, delta in enumerate(self.deltas):
            if self.fail_after is not None and i == self.fail_after:
                raise ProviderError("gemini", "connection reset")
            yield delta


def parse_frames(chunks):
    frames = []
    for chunk in chunks:
        for line in chunk.splitlines():
            if line.startswith("data: "):
                frames.append(json.loads(line[len("data: "):]))
    return frames


async def collect(iterator):
    return [chunk async for chunk in iterator]


def make_context(provider):
    return ChatContext(
        conversation_id="conv-1",
        user_message_id="msg-user",
        system_prompt="Eres un asistente.",
        turns=[ChatTurn(ChatRole.USER, "Hola")],
        provider=provider,
    )


@pytest.fixture
def saved_reply(monkeypatch):
    save = AsyncMock(return_value=SimpleNamespace(id="msg-bot"))
    monkeypatch.setattr(ChatService, "_save_reply", save)
    return save


@pytest.fixture
def chat_service():
    provider = FakeProvider()
    return ChatService(
        database=MagicMock(),
        registry=ProviderRegistry({ProviderName.GEMINI: provider}),
        embeddings=MagicMock(configured=False),
    )


class TestStreamReply:
    async def test_deltas_then_done_frame(self, chat_service, saved_reply, as_user):
        provider = FakeProvider()

        frames = parse_frames(await collect(chat_service.stream_reply(make_context(provider), as_user)))

        assert [f["content"] for f in frames[:-1]] == ["Hola", ", ", "¿qué tal?"]
        assert all(f["done"] is False for f in frames[:-1])
        done = frames[-1]
        assert done["done"] is True
        assert done["content"] == ""
        assert done["full_response"] == "Hola, ¿qué tal?"
        assert done["message_id"] == "msg-bot"
        assert done["provider"] == "gemini"
        assert done["tokens_estimated"] == 4
        assert saved_reply.await_args.args[2] == "Hola, ¿qué tal?"

    async def test_provider_failure_ends_with_error_frame(self, chat_service, saved_reply, as_user):
        provider = FakeProvider(fail_after=1)

        frames = parse_frames(await collect(chat_service.stream_reply(make_context(provider), as_user)))

        assert frames[0] == {"content": "Hola", "done": False}
        assert frames[-1]["done"] is True
        assert "connection reset" in frames[-1]["error"]
        saved_reply.assert_not_awaited()

    async def test_without_provider_streams_fallback_text(self, chat_service, saved_reply, as_user):
        frames = parse_frames(await collect(chat_service.stream_reply(make_context(None), as_user)))

        assert frames[0]["content"] == NO_PROVIDER_REPLY
        assert frames[-1]["provider"] == "none"


class TestReply:
    async def test_single_shot_reply(self, chat_service, saved_reply, as_user):
        result = await chat_service.reply(make_context(FakeProvider()), as_user, db_session=AsyncMock())

        assert result.response == "Hola, ¿qué tal?"
        assert result.message_id == "msg-bot"
        assert result.provider == "gemini"

    async def test_provider_error_becomes_external_service_error(
        self, chat_service, saved_reply, as_user
    ):
        with pytest.raises(ExternalServiceError) as exc_info:
            await chat_service.reply(
                make_context(FakeProvider(fail_after=0)), as_user, db_session=AsyncMock()
            )

        assert exc_info.value.status_code == 502
        saved_reply.assert_not_awaited()


class FakeConversationRepository:
    conversation = None

    def __init__(self, session):
        self.session = session

    async def get_for_user(self, conversation_id, user_id):
        return self.conversation


class TestPrepare:
    @pytest.fixture
    def repository(self, monkeypatch):
        monkeypatch.setattr(chat_service_module, "ConversationRepository", FakeConversationRepository)
        yield FakeConversationRepository
        FakeConversationRepository.conversation = None

    async def test_unknown_conversation(self, chat_service, repository, as_user):
        request = ChatRequest(message="Hola", conversation_id=CONVERSATION_ID)

        with pytest.raises(NotFoundError):
            await chat_service.prepare(request, as_user, db_session=AsyncMock())

    async def test_paused_bot_is_locked(self, chat_service, repository, as_user, make_conversation):
        repository.conversation = make_conversation(bot_paused=True)
        db_session = AsyncMock()

        with pytest.raises(LockedError) as exc_info:
            await chat_service.prepare(
                ChatRequest(message="Hola", conversation_id=CONVERSATION_ID),
                as_user,
                db_session=db_session,
            )

        assert exc_info.value.status_code == 423
        assert exc_info.value.error_code == "BOT_PAUSED"
        db_session.commit.assert_not_awaited()

    async def test_blocked_content_is_not_stored(
        self, chat_service, repository, as_user, make_conversation
    ):
        repository.conversation = make_conversation()
        db_session = AsyncMock()

        with pytest.raises(ValidationError) as exc_info:
            await chat_service.prepare(
                ChatRequest(message="mira este phishing", conversation_id=CONVERSATION_ID),
                as_user,
                db_session=db_session,
            )

        assert exc_info.value.error_code == "CONTENT_BLOCKED"
        db_session.commit.assert_not_awaited()


class TestChatEndpoint:
    @pytest.fixture
    def controller(self, app):
        return app.state.override(app.container.controllers.chat_controller, MagicMock())

    def test_streams_server_sent_events(self, client, as_user, controller):
        async def events():
            yield sse_event({"content": "Hola", "done": False})
            yield sse_event({"content": "", "done": True, "full_response": "Hola", "message_id": "m1"})

        controller.stream = AsyncMock(return_value=events())

        response = client.post(
            "/api/v1/chat", json={"conversationId": CONVERSATION_ID, "message": "Hola"}
        )

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")
        frames = parse_frames([response.text])
        assert frames[-1]["message_id"] == "m1"

    def test_paused_bot_returns_423(self, client, as_user, controller):
        controller.stream = AsyncMock(
            side_effect=LockedError("The bot is paused for this conversation", "BOT_PAUSED")
        )

        response = client.post(
            "/api/v1/chat", json={"conversationId": CONVERSATION_ID, "message": "Hola"}
        )

        assert response.status_code == 423
        assert response.json()["error"]["code"] == "BOT_PAUSED"

    def test_single_shot_returns_envelope(self, client, as_user, controller):
        controller.reply = AsyncMock(
            return_value=ChatReplyResponse(
                response="Hola",
                provider="minimax",
                processing_time=12,
                tokens_estimated=1,
                message_id="m2",
            )
        )

        response = client.post(
            "/api/v1/chat", json={"conversationId": CONVERSATION_ID, "message": "Hola", "stream": False}
        )

        assert response.status_code == 200
        assert response.json()["data"]["provider"] == "minimax"

    def test_unexpected_failure_uses_handler_code(self, client, as_user, controller):
        controller.reply = AsyncMock(side_effect=KeyError("boom"))

        response = client.post(
            "/api/v1/chat", json={"conversationId": CONVERSATION_ID, "message": "Hola", "stream": False}
        )

        assert response.status_code == 500
        assert response.json()["error"]["code"] == "CHAT_ERROR"


class FakeIndex:
    visible_to = "unset"

    def __init__(self, session):
        pass

    async def search_similar(self, embedding, *, threshold, match_count, visible_to=None):
        FakeIndex.visible_to = visible_to
        return [{"id": "doc-1", "title": "Precios", "content": "Tarifa plana", "similarity": 0.9}]


class TestRagContext:
    @pytest.fixture
    def rag_service(self, monkeypatch):
        monkeypatch.setattr(chat_service_module, "DocumentRepository", FakeIndex)
        FakeIndex.visible_to = "unset"
        embeddings = MagicMock(configured=True)
        embeddings.embed_query = AsyncMock(return_value=[0.1] * 1536)
        return ChatService(database=MagicMock(), registry=ProviderRegistry({}), embeddings=embeddings)

    async def test_users_only_match_readable_chunks(self, rag_service, as_user):
        context = await rag_service._rag_context("precios", as_user, AsyncMock())

        assert "Tarifa plana" in context
        assert FakeIndex.visible_to == as_user.id

    async def test_admins_match_every_chunk(self, rag_service, as_admin):
        await rag_service._rag_context("precios", as_admin, AsyncMock())

        assert FakeIndex.visible_to is None
