"""Client for the hosted auth server's user lookup endpoint."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import httpx
import structlog

logger = structlog.get_logger("chatdesk.auth")


class InvalidTokenError(Exception):
    pass


@dataclass(frozen=True)
class AuthUser:
    id: str
    email: Optional[str] = None


class AuthClient:
    def __init__(self, http: httpx.AsyncClient, base_url: str, service_key: str = ""):
        self.http = http
        self.base_url = base_url.rstrip("/")
        self.service_key = service_key

    async def get_user(self, token: str) -> AuthUser:
        """Resolve a bearer token into the user it was issued for."""
        headers = {"Authorization": f"Bearer {token}"}
        if self.service_key:
            headers["apikey"] = self.service_key
        try:
            response = await self.http.get(f"{self.base_url}/auth/v1/user", headers=headers)
        except httpx.HTTPError as e:
            logger.warning("Auth server unreachable", error=str(e))
            raise InvalidTokenError("Auth server unreachable") from e

        if response.status_code != 200:
            raise InvalidTokenError(f"Token rejected ({response.status_code})")

        data = response.json() or {}
        user_id = data.get("id")
        if not user_id:
            raise InvalidTokenError("Auth server returned no user id")
        return AuthUser(id=str(user_id), email=data.get("email"))
