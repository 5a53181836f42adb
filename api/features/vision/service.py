"""Image analysis through the configured LLM providers."""
import base64
import logging
from datetime import datetime, timezone
from typing import Tuple

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from api.features.conversation.entities.conversation import (
    Message,
    MessageSender,
    MessageType,
)
from api.features.conversation.repository import ConversationRepository, MessageRepository
from api.features.vision.dtos import VisionRequest, VisionResponse
from api.shared.auth import AuthenticatedUser
from api.shared.exceptions import ExternalServiceError, NotFoundError, ValidationError
from api.shared.utils import split_data_url
from infra.events.recorder import record_event
from infra.llm.base import Capability, ProviderError
from infra.llm.registry import NoProviderAvailable, ProviderRegistry
from infra.resources import HttpClientResource

logger = logging.getLogger("chatdesk.vision.service")

DEFAULT_IMAGE_MIME = "image/jpeg"


class VisionService:
    def __init__(self, registry: ProviderRegistry, http: HttpClientResource):
        self.registry = registry
        self.http = http

    async def _load_image(self, request: VisionRequest) -> Tuple[str, str]:
        """Return (base64 data, mime type), downloading URLs first."""
        if request.image_base64:
            mime, data = split_data_url(request.image_base64.strip())
            return data, mime or DEFAULT_IMAGE_MIME

        try:
            response = await self.http.get_client().get(
                request.image_url, follow_redirects=True
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise ValidationError(f"Could not load image: {e}") from e
        mime = response.headers.get("content-type", DEFAULT_IMAGE_MIME).split(";")[0]
        if not mime.startswith("image/"):
            raise ValidationError(f"URL does not point to an image ({mime})")
        return base64.b64encode(response.content).decode("ascii"), mime

    async def analyze(
        self, request: VisionRequest, user: AuthenticatedUser, *, db_session: AsyncSession
    ) -> VisionResponse:
        if not request.image_url and not request.image_base64:
            raise ValidationError("imageUrl or imageBase64 is required")

        conversation = None
        if request.conversation_id:
            conversation = await ConversationRepository(db_session).get_for_user(
                request.conversation_id, None if user.is_admin else user.id
            )
            if conversation is None:
                raise NotFoundError("Conversation", request.conversation_id)

        try:
            provider = self.registry.select(request.model_provider, Capability.VISION)
        except NoProviderAvailable as e:
            raise ExternalServiceError("vision", str(e)) from e

        image_b64, mime_type = await self._load_image(request)
        try:
            analysis = await provider.describe_image(
                image_b64, mime_type, request.effective_prompt
            )
        except ProviderError as e:
            raise ExternalServiceError(e.provider, str(e)) from e

        model_used = provider.name.value
        message_id = None
        if conversation is not None:
            message = await MessageRepository(db_session).create(
                Message(
                    conversation_id=conversation.id,
                    sender=MessageSender.BOT,
                    content=f"[ANÁLISIS DE IMAGEN - {model_used.upper()}]: {analysis}",
                    type=MessageType.VISION_ANALYSIS,
                    llm_provider=model_used,
                    metadata_={"model_used": model_used, "analysis_type": "image_vision"},
                )
            )
            message_id = message.id
            await record_event(
                db_session,
                event_type="vision_analysis",
                user_id=user.id,
                conversation_id=conversation.id,
                payload={"model_used": model_used, "message_id": message_id},
            )
            await db_session.commit()

        return VisionResponse(
            analysis=analysis,
            model_used=model_used,
            timestamp=datetime.now(timezone.utc),
            message_id=message_id,
        )
