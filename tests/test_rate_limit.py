"""Per-user request budget."""
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from api.shared.entities.rate_limit import RateLimit
from api.shared.rate_limit import RateLimiter
from core.settings import SETTINGS


def session_with_count(count):
    session = AsyncMock()
    session.add = MagicMock()
    result = MagicMock()
    result.scalar.return_value = count
    session.execute.return_value = result
    return session


class TestRateLimiter:
    async def test_request_under_budget_is_recorded(self):
        session = session_with_count(3)

        allowed = await RateLimiter(max_requests=5, window_minutes=1).check(
            session, "user-1", "chat"
        )

        assert allowed is True
        recorded = session.add.call_args.args[0]
        assert isinstance(recorded, RateLimit)
        assert (recorded.identifier, recorded.endpoint, recorded.request_count) == (
            "user-1",
            "chat",
            1,
        )
        session.commit.assert_awaited_once()

    @pytest.mark.parametrize("count", [5, 8])
    async def test_spent_budget_is_denied(self, count):
        session = session_with_count(count)

        allowed = await RateLimiter(max_requests=5, window_minutes=1).check(
            session, "user-1", "chat"
        )

        assert allowed is False
        session.add.assert_not_called()
        session.commit.assert_not_awaited()

    async def test_database_failure_allows_request(self):
        session = AsyncMock()
        session.execute.side_effect = OperationalError("SELECT", {}, Exception("down"))

        allowed = await RateLimiter(max_requests=5, window_minutes=1).check(
            session, "user-1", "chat"
        )

        assert allowed is True
        session.rollback.assert_awaited_once()

    def test_defaults_come_from_settings(self, monkeypatch):
        monkeypatch.setattr(SETTINGS.LIMITS, "RATE_LIMIT_MAX_REQUESTS", 7)
        monkeypatch.setattr(SETTINGS.LIMITS, "RATE_LIMIT_WINDOW_MINUTES", 3)

        limiter = RateLimiter()

        assert (limiter.max_requests, limiter.window_minutes) == (7, 3)


class TestRateLimitedEndpoint:
    def test_spent_budget_returns_429_envelope(self, app, client, as_user, monkeypatch):
        monkeypatch.setattr(RateLimiter, "check", AsyncMock(return_value=False))

        response = client.post("/api/v1/transcribe", json={"audioData": "AAEC"})

        assert response.status_code == 429
        body = response.json()
        assert body["error"]["code"] == "RATE_LIMITED"
        assert "Rate limit exceeded" in body["error"]["message"]
