"""Chat orchestration: ownership, moderation, history, RAG, generation, persistence."""
from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass, field
from typing import AsyncIterator, List, Optional

from openai import OpenAIError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from api.features.chat.dtos import ChatReplyResponse, ChatRequest
from api.features.chat.prompts import (
    NO_PROVIDER_REPLY,
    build_rag_context,
    build_system_prompt,
    history_to_turns,
)
from api.features.conversation.entities.conversation import (
    Attachment,
    AttachmentKind,
    Message,
    MessageSender,
    MessageType,
)
from api.features.conversation.repository import (
    AttachmentRepository,
    ConversationRepository,
    MessageRepository,
)
from api.features.documents.repositories.document_repository import DocumentRepository
from api.shared.auth import AuthenticatedUser
from api.shared.exceptions import ExternalServiceError, LockedError, NotFoundError
from api.shared.moderation import ensure_content_allowed
from api.shared.utils import elapsed_ms, estimate_tokens
from core.settings import SETTINGS
from infra.events.recorder import record_event
from infra.llm.base import Capability, ChatTurn, GenerationOptions, LLMProvider, ProviderError
from infra.llm.embeddings import EmbeddingClient
from infra.llm.registry import NoProviderAvailable, ProviderRegistry
from infra.resources import DatabaseResource

logger = logging.getLogger("chatdesk.chat.service")


def sse_event(payload: dict) -> str:
    return f"data: {json.dumps(payload, ensure_ascii=False)}\n\n"


def _attachment_kind(value: str) -> AttachmentKind:
    try:
        return AttachmentKind(value)
    except ValueError:
        return AttachmentKind.FILE


@dataclass
class ChatContext:
    """Everything needed to generate and persist one bot reply."""

    conversation_id: str
    user_message_id: str
    system_prompt: str
    turns: List[ChatTurn]
    provider: Optional[LLMProvider]
    used_rag: bool = False
    options: GenerationOptions = field(default_factory=GenerationOptions)

    @property
    def provider_name(self) -> str:
        return self.provider.name.value if self.provider else "none"


class ChatService:
    def __init__(
        self,
        database: DatabaseResource,
        registry: ProviderRegistry,
        embeddings: EmbeddingClient,
    ):
        self.database = database
        self.registry = registry
        self.embeddings = embeddings

    async def prepare(
        self, request: ChatRequest, user: AuthenticatedUser, *, db_session: AsyncSession
    ) -> ChatContext:
        """Validate the request and store the user's message; nothing is generated yet."""
        conversation = await ConversationRepository(db_session).get_for_user(
            request.conversation_id, None if user.is_admin else user.id
        )
        if conversation is None:
            raise NotFoundError("Conversation", request.conversation_id)
        if conversation.bot_paused:
            raise LockedError(
                "The bot is paused for this conversation; an agent will reply",
                "BOT_PAUSED",
            )
        ensure_content_allowed(request.message)

        messages = MessageRepository(db_session)
        history = await messages.fetch_history(
            conversation.id, SETTINGS.RAG.HISTORY_LIMIT
        )

        user_message = await messages.create(
            Message(
                conversation_id=conversation.id,
                sender=MessageSender.USER,
                content=request.message,
                type=MessageType.FILE if request.attachments else MessageType.TEXT,
                metadata_={"attachment_count": len(request.attachments)},
            )
        )
        if request.attachments:
            await AttachmentRepository(db_session).create_many(
                [
                    Attachment(
                        message_id=user_message.id,
                        kind=_attachment_kind(a.kind),
                        storage_path=a.storage_path,
                        url=a.url,
                        mime_type=a.mime_type,
                        size_bytes=a.size_bytes,
                    )
                    for a in request.attachments
                ]
            )

        # The user's message must be committed before the RAG lookup, which may roll back
        await db_session.commit()

        rag_context = ""
        if request.use_rag:
            rag_context = await self._rag_context(request.message, user, db_session)

        try:
            provider = self.registry.select(request.llm_provider, Capability.TEXT)
        except NoProviderAvailable:
            logger.warning("No LLM provider configured; replying with fallback text")
            provider = None

        return ChatContext(
            conversation_id=conversation.id,
            user_message_id=user_message.id,
            system_prompt=build_system_prompt(rag_context),
            turns=history_to_turns(history, request.message),
            provider=provider,
            used_rag=bool(rag_context),
            options=GenerationOptions(
                temperature=SETTINGS.GENERATION.TEMPERATURE,
                max_tokens=SETTINGS.GENERATION.MAX_TOKENS,
            ),
        )

    async def _rag_context(
        self, query: str, user: AuthenticatedUser, db_session: AsyncSession
    ) -> str:
        """Matching document chunks; retrieval failures degrade to no context."""
        if not self.embeddings.configured:
            return ""
        try:
            embedding = await self.embeddings.embed_query(query)
            results = await DocumentRepository(db_session).search_similar(
                embedding,
                threshold=SETTINGS.RAG.RAG_MATCH_THRESHOLD,
                match_count=SETTINGS.RAG.RAG_CHAT_MATCH_COUNT,
                visible_to=None if user.is_admin else user.id,
            )
        except (OpenAIError, SQLAlchemyError) as e:
            logger.warning("RAG search failed, continuing without context: %s", e)
            await db_session.rollback()
            return ""
        return build_rag_context(results)

    async def reply(
        self, context: ChatContext, user: AuthenticatedUser, *, db_session: AsyncSession
    ) -> ChatReplyResponse:
        """Single-shot generation."""
        start = time.perf_counter()
        if context.provider is None:
            text = NO_PROVIDER_REPLY
        else:
            try:
                text = await context.provider.generate(
                    context.system_prompt, context.turns, context.options
                )
            except ProviderError as e:
                raise ExternalServiceError(e.provider, str(e)) from e

        processing_time = elapsed_ms(start)
        message = await self._save_reply(
            context, user, text, processing_time, db_session=db_session
        )
        return ChatReplyResponse(
            response=text,
            provider=context.provider_name,
            processing_time=processing_time,
            tokens_estimated=estimate_tokens(text),
            message_id=message.id,
            used_rag=context.used_rag,
        )

    async def stream_reply(
        self, context: ChatContext, user: AuthenticatedUser
    ) -> AsyncIterator[str]:
        """Server-sent events: one frame per delta, then a terminal ``done`` frame.

        Runs after the request's session has closed, so persistence uses its own session.
        """
        start = time.perf_counter()
        parts: List[str] = []
        try:
            if context.provider is None:
                parts.append(NO_PROVIDER_REPLY)
                yield sse_event({"content": NO_PROVIDER_REPLY, "done": False})
            else:
                async for delta in context.provider.stream(
                    context.system_prompt, context.turns, context.options
                ):
                    parts.append(delta)
                    yield sse_event({"content": delta, "done": False})

            full_response = "".join(parts)
            processing_time = elapsed_ms(start)
            async with self.database.get_session() as session:
                message = await self._save_reply(
                    context, user, full_response, processing_time, db_session=session
                )
            yield sse_event(
                {
                    "content": "",
                    "done": True,
                    "full_response": full_response,
                    "message_id": message.id,
                    "provider": context.provider_name,
                    "processing_time": processing_time,
                    "tokens_estimated": estimate_tokens(full_response),
                }
            )
        except Exception as e:
            # Headers are already sent; the error has to travel inside the stream.
            logger.exception("Streaming reply failed for %s", context.conversation_id)
            yield sse_event({"error": str(e) or e.__class__.__name__, "done": True})

    async def _save_reply(
        self,
        context: ChatContext,
        user: AuthenticatedUser,
        text: str,
        processing_time: int,
        *,
        db_session: AsyncSession,
    ) -> Message:
        tokens = estimate_tokens(text)
        message = await MessageRepository(db_session).create(
            Message(
                conversation_id=context.conversation_id,
                sender=MessageSender.BOT,
                content=text,
                type=MessageType.TEXT,
                llm_provider=context.provider_name,
                processing_time_ms=processing_time,
                metadata_={
                    "tokens_estimated": tokens,
                    "reply_to": context.user_message_id,
                    "used_rag": context.used_rag,
                },
            )
        )
        await record_event(
            db_session,
            event_type="chat_response",
            user_id=user.id,
            conversation_id=context.conversation_id,
            payload={
                "llm_provider": context.provider_name,
                "processing_time_ms": processing_time,
                "tokens_estimated": tokens,
                "used_rag": context.used_rag,
            },
        )
        await db_session.commit()
        return message
