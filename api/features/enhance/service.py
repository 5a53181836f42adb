"""Admin rewrite of a message in a chosen tone, kept as a pending draft."""
import logging
import time

from sqlalchemy.ext.asyncio import AsyncSession

from api.features.conversation.repository import ConversationRepository
from api.features.enhance.dtos import EnhanceRequest, EnhanceResponse
from api.features.enhance.entities.draft import AdminDraft, DraftStatus
from api.features.enhance.metrics import calculate_text_diff, calculate_text_metrics
from api.features.enhance.prompts import (
    ENHANCE_SYSTEM_PROMPT,
    FALLBACK_ENHANCED_TEXT,
    build_enhancement_prompt,
)
from api.features.enhance.repository import DraftRepository
from api.shared.auth import AuthenticatedUser
from api.shared.exceptions import ExternalServiceError, NotFoundError
from api.shared.utils import elapsed_ms
from core.settings import SETTINGS
from infra.events.recorder import record_event
from infra.llm.base import Capability, ChatRole, ChatTurn, GenerationOptions, ProviderError
from infra.llm.registry import NoProviderAvailable, ProviderRegistry

logger = logging.getLogger("chatdesk.enhance.service")


class EnhanceService:
    def __init__(self, registry: ProviderRegistry):
        self.registry = registry
        self.options = GenerationOptions(
            temperature=SETTINGS.GENERATION.ENHANCE_TEMPERATURE,
            max_tokens=SETTINGS.GENERATION.ENHANCE_MAX_TOKENS,
        )

    async def enhance(
        self, request: EnhanceRequest, user: AuthenticatedUser, *, db_session: AsyncSession
    ) -> EnhanceResponse:
        if request.conversation_id:
            conversation = await ConversationRepository(db_session).get_for_user(
                request.conversation_id, None
            )
            if conversation is None:
                raise NotFoundError("Conversation", request.conversation_id)

        try:
            provider = self.registry.select(request.provider, Capability.TEXT)
        except NoProviderAvailable as e:
            raise ExternalServiceError("enhance", str(e)) from e

        prompt = build_enhancement_prompt(
            request.original_text, request.style, request.intensity
        )
        start = time.perf_counter()
        try:
            enhanced = await provider.generate(
                ENHANCE_SYSTEM_PROMPT,
                [ChatTurn(ChatRole.USER, prompt)],
                self.options,
            )
        except ProviderError as e:
            raise ExternalServiceError(e.provider, str(e)) from e
        enhanced = enhanced.strip() or FALLBACK_ENHANCED_TEXT
        processing_time = elapsed_ms(start)

        diff_data = calculate_text_diff(request.original_text, enhanced)
        metrics = calculate_text_metrics(request.original_text, enhanced)

        draft = await DraftRepository(db_session).create(
            AdminDraft(
                conversation_id=request.conversation_id,
                original_message_id=request.original_message_id,
                original_text=request.original_text,
                enhanced_text=enhanced,
                style=request.style.value,
                intensity=request.intensity,
                diff_data=diff_data,
                metrics=metrics,
                status=DraftStatus.PENDING,
                created_by=user.id,
            )
        )
        await record_event(
            db_session,
            event_type="text_enhanced",
            user_id=user.id,
            conversation_id=request.conversation_id,
            payload={
                "style": request.style.value,
                "intensity": request.intensity,
                "provider": provider.name.value,
                "processing_time_ms": processing_time,
                "draft_id": draft.id,
                **metrics,
            },
        )
        await db_session.commit()

        logger.info("Enhanced text as %s draft %s", request.style.value, draft.id)
        return EnhanceResponse(
            draft_id=draft.id,
            enhanced_text=enhanced,
            original_text=request.original_text,
            diff_data=diff_data,
            metrics=metrics,
            provider=provider.name.value,
            processing_time=processing_time,
        )
