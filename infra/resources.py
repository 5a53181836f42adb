"""Connections the app opens at startup: Postgres, Redis, MinIO and a shared HTTP client.

Nothing here imports from ``api``; features receive these through the DI container.
"""
import json
from datetime import timedelta
from io import BytesIO
from typing import Any, AsyncIterator, Dict, Optional
from urllib.parse import urlparse

import httpx
import redis.asyncio as aioredis
import structlog
from minio import Minio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

logger = structlog.get_logger("chatdesk.infra")


class DatabaseResource:
    """Async engine plus session factory for the Postgres store."""

    def __init__(self, database_url: str, echo: bool = False):
        self.database_url = database_url
        self.echo = echo
        self.engine: Optional[AsyncEngine] = None
        self.session_factory: Optional[async_sessionmaker[AsyncSession]] = None

    async def init(self):
        self.engine = create_async_engine(
            self.database_url, echo=self.echo, pool_pre_ping=True, pool_recycle=1800
        )
        self.session_factory = async_sessionmaker(self.engine, expire_on_commit=False)
        return self

    def get_session(self) -> AsyncSession:
        if self.session_factory is None:
            raise RuntimeError("DatabaseResource.init() has not run")
        return self.session_factory()

    async def shutdown(self):
        if self.engine is not None:
            await self.engine.dispose()
            self.engine = None
            self.session_factory = None


class RedisResource:
    """Redis pub/sub used as the realtime channel for conversations."""

    def __init__(self, redis_url: str):
        self.redis_url = redis_url
        self.client: Optional[aioredis.Redis] = None

    async def init(self):
        self.client = aioredis.from_url(self.redis_url, decode_responses=True)
        return self

    async def connect(self):
        """Verify the connection."""
        assert self.client is not None, "Redis client not initialized"
        await self.client.ping()

    async def disconnect(self):
        if self.client is not None:
            await self.client.aclose()
            self.client = None

    @staticmethod
    def conversation_channel(conversation_id: str) -> str:
        return f"conversation:{conversation_id}"

    async def publish(self, channel: str, event: str, payload: Dict[str, Any]) -> int:
        """Broadcast an event; returns the number of subscribers that received it."""
        assert self.client is not None, "Redis client not initialized"
        message = json.dumps({"event": event, "payload": payload}, default=str)
        return await self.client.publish(channel, message)

    async def subscribe(self, channel: str) -> AsyncIterator[Dict[str, Any]]:
        """Yield decoded events published on ``channel`` until the caller stops."""
        assert self.client is not None, "Redis client not initialized"
        pubsub = self.client.pubsub()
        await pubsub.subscribe(channel)
        try:
            async for message in pubsub.listen():
                if message.get("type") != "message":
                    continue
                try:
                    yield json.loads(message["data"])
                except (TypeError, ValueError):
                    logger.warning("Dropping malformed realtime message", channel=channel)
        finally:
            await pubsub.unsubscribe(channel)
            await pubsub.aclose()


class MinIOResource:
    """Single-bucket object store for attachments and ingested documents.

    The MinIO SDK is synchronous; calls are short and made inline.
    """

    def __init__(
        self,
        endpoint: str,
        access_key: str,
        secret_key: str,
        bucket_name: str,
        public_url: str = "",
    ):
        self.endpoint = endpoint
        self.access_key = access_key
        self.secret_key = secret_key
        self.bucket_name = bucket_name
        self.public_url = public_url
        self.client: Optional[Minio] = None

    def _require_client(self) -> Minio:
        if self.client is None:
            raise RuntimeError("MinIOResource.init() has not run")
        return self.client

    async def init(self):
        # Accepts "minio:9000" as well as "https://storage.example.com"
        url = urlparse(self.endpoint if "://" in self.endpoint else f"http://{self.endpoint}")
        self.client = Minio(
            endpoint=url.netloc or url.path,
            access_key=self.access_key,
            secret_key=self.secret_key,
            secure=url.scheme == "https",
        )
        return self

    async def ensure_bucket(self):
        client = self._require_client()
        if not client.bucket_exists(self.bucket_name):
            client.make_bucket(self.bucket_name)
            logger.info("Created storage bucket", bucket=self.bucket_name)

    async def put_object_bytes(
        self,
        object_name: str,
        data: bytes,
        content_type: str = "application/octet-stream",
    ) -> None:
        self._require_client().put_object(
            self.bucket_name, object_name, BytesIO(data), len(data), content_type=content_type
        )

    async def remove_object(self, object_name: str) -> None:
        self._require_client().remove_object(self.bucket_name, object_name)

    async def get_url(self, object_name: str) -> str:
        """Public URL when a public base is configured, otherwise a presigned one."""
        if self.public_url:
            return f"{self.public_url.rstrip('/')}/{self.bucket_name}/{object_name}"
        return self._require_client().presigned_get_object(
            self.bucket_name, object_name, expires=timedelta(days=7)
        )

    async def shutdown(self):
        self.client = None


class HttpClientResource:
    """Shared ``httpx.AsyncClient`` for provider and auth calls."""

    def __init__(self, timeout: float = 60.0):
        self.timeout = timeout
        self.client: Optional[httpx.AsyncClient] = None

    async def init(self):
        self.client = httpx.AsyncClient(timeout=self.timeout)
        return self

    def get_client(self) -> httpx.AsyncClient:
        if self.client is None:
            raise RuntimeError("HTTP client not initialized. Call init() first.")
        return self.client

    async def shutdown(self):
        if self.client is not None:
            await self.client.aclose()
            self.client = None
