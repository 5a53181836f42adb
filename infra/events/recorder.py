"""Audit event recorder.

Inserts one row per handler action into ``events``. Rows are never updated.
"""
from __future__ import annotations

import json
import uuid
from typing import Any, Optional

import structlog
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger("chatdesk.events")


async def record_event(
    session: AsyncSession,
    *,
    event_type: str,
    payload: Optional[dict[str, Any]] = None,
    user_id: Optional[str] = None,
    conversation_id: Optional[str] = None,
) -> str:
    """Insert an ``events`` row using raw SQL and return its id."""
    ev_id = str(uuid.uuid4())
    payload_json = json.dumps(payload or {}, ensure_ascii=False, default=str)

    sql = text(
        """
        INSERT INTO events (id, event_type, user_id, conversation_id, payload)
        VALUES (:id, :event_type, :user_id, :conversation_id, CAST(:payload AS JSONB))
        """
    )

    await session.execute(
        sql,
        {
            "id": ev_id,
            "event_type": event_type,
            "user_id": user_id,
            "conversation_id": conversation_id,
            "payload": payload_json,
        },
    )
    logger.info(
        "event_recorded",
        event_type=event_type,
        user_id=user_id,
        conversation_id=conversation_id,
    )
    # Caller is responsible for committing the transaction.
    return ev_id
