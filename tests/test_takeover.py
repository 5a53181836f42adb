"""Takeover actions: state transitions, conflicts and realtime notifications."""
from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.exc import IntegrityError

from api.features.takeover import service as takeover_module
from api.features.takeover.dtos import TakeoverAction, TakeoverRequest
from api.features.takeover.service import TakeoverService
from api.shared.exceptions import ConflictError, NotFoundError

CONVERSATION_ID = "33333333-3333-3333-3333-333333333333"


class FakeConversations:
    conversation = None

    def __init__(self, session):
        pass

    async def get_for_user(self, conversation_id, user_id):
        return self.conversation


class FakeTakeovers:
    active = None
    created = []
    fail_create = False

    def __init__(self, session):
        pass

    async def get_active(self, conversation_id):
        return FakeTakeovers.active

    async def create(self, takeover):
        if FakeTakeovers.fail_create:
            raise IntegrityError("INSERT", {}, Exception("uq_takeovers_one_active"))
        takeover.id = "takeover-1"
        FakeTakeovers.created.append(takeover)
        return takeover


@pytest.fixture
def events(monkeypatch):
    recorded = []

    async def record_event(session, **kwargs):
        recorded.append(kwargs)
        return "event-id"

    monkeypatch.setattr(takeover_module, "record_event", record_event)
    return recorded


@pytest.fixture
def conversation(monkeypatch, make_conversation):
    FakeTakeovers.active = None
    FakeTakeovers.created = []
    FakeTakeovers.fail_create = False
    monkeypatch.setattr(takeover_module, "ConversationRepository", FakeConversations)
    monkeypatch.setattr(takeover_module, "TakeoverRepository", FakeTakeovers)
    FakeConversations.conversation = make_conversation()
    yield FakeConversations.conversation
    FakeConversations.conversation = None


@pytest.fixture
def conversation_service():
    service = MagicMock()
    service.publish = AsyncMock()
    return service


@pytest.fixture
def service(conversation_service):
    return TakeoverService(conversation_service)


def request(action, **kwargs):
    return TakeoverRequest(conversation_id=CONVERSATION_ID, action=action, **kwargs)


class TestTakeoverService:
    async def test_start_pauses_bot_and_notifies(
        self, service, conversation, conversation_service, events, as_admin
    ):
        db_session = AsyncMock()

        result = await service.handle(
            request(TakeoverAction.START, reason="Cliente molesto"), as_admin, db_session=db_session
        )

        assert result.status == "started"
        assert result.bot_paused is True
        assert result.takeover_id == "takeover-1"
        assert conversation.bot_paused is True
        assert FakeTakeovers.created[0].reason == "Cliente molesto"
        assert events[0]["event_type"] == "takeover_action"
        db_session.commit.assert_awaited_once()
        conversation_service.publish.assert_awaited_once_with(
            conversation.id,
            "takeover_change",
            {"action": "start", "bot_paused": True, "admin_id": as_admin.id},
        )

    async def test_second_start_conflicts(self, service, conversation, events, as_admin):
        FakeTakeovers.active = SimpleNamespace(id="existing")

        with pytest.raises(ConflictError) as exc_info:
            await service.handle(request(TakeoverAction.START), as_admin, db_session=AsyncMock())

        assert exc_info.value.status_code == 409
        assert events == []

    async def test_concurrent_start_conflicts(self, service, conversation, events, as_admin):
        FakeTakeovers.fail_create = True
        db_session = AsyncMock()

        with pytest.raises(ConflictError):
            await service.handle(request(TakeoverAction.START), as_admin, db_session=db_session)

        db_session.rollback.assert_awaited_once()

    async def test_end_resumes_bot(self, service, conversation, conversation_service, events, as_admin):
        conversation.bot_paused = True
        active = SimpleNamespace(id="takeover-1", active=True, ended_at=None)
        FakeTakeovers.active = active

        result = await service.handle(request(TakeoverAction.END), as_admin, db_session=AsyncMock())

        assert result.status == "ended"
        assert result.bot_paused is False
        assert active.active is False
        assert active.ended_at <= datetime.now(timezone.utc)
        assert conversation.bot_paused is False

    async def test_end_without_active_takeover_conflicts(self, service, conversation, events, as_admin):
        with pytest.raises(ConflictError):
            await service.handle(request(TakeoverAction.END), as_admin, db_session=AsyncMock())

    async def test_pause_and_resume(self, service, conversation, events, as_admin):
        paused = await service.handle(request(TakeoverAction.PAUSE_BOT), as_admin, db_session=AsyncMock())
        assert paused.status == "bot_paused"
        assert conversation.bot_paused is True

        resumed = await service.handle(request(TakeoverAction.RESUME_BOT), as_admin, db_session=AsyncMock())
        assert resumed.status == "bot_resumed"
        assert conversation.bot_paused is False

    async def test_status_is_recorded_but_not_published(
        self, service, conversation, conversation_service, events, as_admin
    ):
        result = await service.handle(request(TakeoverAction.STATUS), as_admin, db_session=AsyncMock())

        assert result.has_active_takeover is False
        assert result.conversation_status == "active"
        assert events[0]["payload"]["action"] == "status"
        conversation_service.publish.assert_not_awaited()

    async def test_unknown_conversation(self, service, conversation, as_admin):
        FakeConversations.conversation = None

        with pytest.raises(NotFoundError):
            await service.handle(request(TakeoverAction.STATUS), as_admin, db_session=AsyncMock())


class TestTakeoverEndpoint:
    def test_requires_admin(self, client, as_user):
        response = client.post(
            "/api/v1/takeover", json={"conversationId": CONVERSATION_ID, "action": "start"}
        )

        assert response.status_code == 403

    def test_rejects_unknown_action(self, client, as_admin):
        response = client.post(
            "/api/v1/takeover", json={"conversationId": CONVERSATION_ID, "action": "explode"}
        )

        assert response.status_code == 422
