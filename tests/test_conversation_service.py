from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from api.features.conversation import service as conversation_module
from api.features.conversation.service import ConversationService, RealtimeEvent
from api.shared.exceptions import NotFoundError

CONVERSATION_ID = "33333333-3333-3333-3333-333333333333"


@pytest.fixture
def realtime():
    realtime = MagicMock()
    realtime.publish = AsyncMock(return_value=1)
    return realtime


class FakeConversations:
    conversation = None
    owner_filter = "unset"

    def __init__(self, session):
        pass

    async def get_for_user(self, conversation_id, user_id):
        FakeConversations.owner_filter = user_id
        return FakeConversations.conversation


@pytest.fixture
def conversations(monkeypatch, make_conversation):
    monkeypatch.setattr(conversation_module, "ConversationRepository", FakeConversations)
    FakeConversations.conversation = make_conversation()
    yield FakeConversations
    FakeConversations.conversation = None


class TestPublish:
    async def test_publishes_on_conversation_channel(self, realtime):
        await ConversationService(realtime).publish("c1", RealtimeEvent.TYPING, {"typing": True})

        realtime.publish.assert_awaited_once_with("conversation:c1", "typing", {"typing": True})

    async def test_redis_failure_is_not_raised(self, realtime):
        realtime.publish.side_effect = RedisConnectionError("down")

        await ConversationService(realtime).publish("c1", RealtimeEvent.TYPING, {})


class TestOwnership:
    async def test_users_are_scoped_to_their_conversations(self, realtime, conversations, as_user):
        await ConversationService(realtime).get_conversation("c1", as_user, db_session=AsyncMock())

        assert conversations.owner_filter == as_user.id

    async def test_admins_see_every_conversation(self, realtime, conversations, as_admin):
        await ConversationService(realtime).get_conversation("c1", as_admin, db_session=AsyncMock())

        assert conversations.owner_filter is None

    async def test_missing_conversation(self, realtime, conversations, as_user):
        conversations.conversation = None

        with pytest.raises(NotFoundError):
            await ConversationService(realtime).get_conversation("c1", as_user, db_session=AsyncMock())


class TestTyping:
    async def test_user_typing_is_published(
        self, realtime, conversations, as_user, make_conversation
    ):
        sender = await ConversationService(realtime).notify_typing(
            "c1", as_user, True, db_session=AsyncMock()
        )

        assert sender == "user"
        realtime.publish.assert_awaited_once_with(
            f"conversation:{make_conversation().id}",
            "typing",
            {"typing": True, "sender": "user", "user_id": as_user.id},
        )

    async def test_admin_typing(self, realtime, conversations, as_admin):
        sender = await ConversationService(realtime).notify_typing(
            "c1", as_admin, False, db_session=AsyncMock()
        )

        assert sender == "admin"
        assert realtime.publish.await_args.args[2]["typing"] is False

    async def test_unknown_conversation_is_not_published(self, realtime, conversations, as_user):
        conversations.conversation = None

        with pytest.raises(NotFoundError):
            await ConversationService(realtime).notify_typing(
                "c1", as_user, True, db_session=AsyncMock()
            )

        realtime.publish.assert_not_awaited()


class TestTypingEndpoint:
    def test_posts_typing_event(self, app, client, realtime, conversations, as_admin):
        app.state.override(app.container.services.conversation_service, ConversationService(realtime))

        response = client.post(
            f"/api/v1/conversations/{CONVERSATION_ID}/typing", json={"typing": True}
        )

        assert response.status_code == 200
        assert response.json()["data"] == {
            "conversation_id": CONVERSATION_ID,
            "typing": True,
            "sender": "admin",
        }
        assert realtime.publish.await_args.args[1] == "typing"

    def test_missing_conversation(self, app, client, realtime, conversations, as_user):
        conversations.conversation = None
        app.state.override(app.container.services.conversation_service, ConversationService(realtime))

        response = client.post(
            f"/api/v1/conversations/{CONVERSATION_ID}/typing", json={"typing": True}
        )

        assert response.status_code == 404
