"""Speech-to-text through the configured LLM providers."""
import logging
import time

from sqlalchemy.ext.asyncio import AsyncSession

from api.features.conversation.repository import ConversationRepository
from api.features.transcribe.dtos import TranscribeRequest, TranscribeResponse
from api.shared.auth import AuthenticatedUser
from api.shared.exceptions import ExternalServiceError, NotFoundError, ValidationError
from api.shared.utils import decode_base64_payload, elapsed_ms, split_data_url
from infra.events.recorder import record_event
from infra.llm.base import Capability, ProviderError
from infra.llm.registry import NoProviderAvailable, ProviderRegistry

logger = logging.getLogger("chatdesk.transcribe.service")


class TranscribeService:
    def __init__(self, registry: ProviderRegistry):
        self.registry = registry

    async def transcribe(
        self,
        request: TranscribeRequest,
        user: AuthenticatedUser,
        *,
        db_session: AsyncSession,
    ) -> TranscribeResponse:
        data_url_mime, _ = split_data_url(request.audio_data)
        mime_type = data_url_mime or request.mime_type
        audio = decode_base64_payload(request.audio_data, "audioData")
        if not audio:
            raise ValidationError("audioData is empty")

        conversation = None
        if request.conversation_id:
            conversation = await ConversationRepository(db_session).get_for_user(
                request.conversation_id, None if user.is_admin else user.id
            )
            if conversation is None:
                raise NotFoundError("Conversation", request.conversation_id)

        try:
            provider = self.registry.select(request.provider, Capability.AUDIO)
        except NoProviderAvailable as e:
            raise ExternalServiceError("transcription", str(e)) from e

        start = time.perf_counter()
        try:
            text = await provider.transcribe(audio, mime_type)
        except ProviderError as e:
            raise ExternalServiceError(e.provider, str(e)) from e
        processing_time = elapsed_ms(start)

        if conversation is not None:
            await record_event(
                db_session,
                event_type="audio_transcribed",
                user_id=user.id,
                conversation_id=conversation.id,
                payload={
                    "provider": provider.name.value,
                    "processing_time_ms": processing_time,
                    "transcription_length": len(text),
                },
            )
            await db_session.commit()

        logger.info(
            "Transcribed %d bytes with %s in %dms",
            len(audio),
            provider.name.value,
            processing_time,
        )
        return TranscribeResponse(
            transcription=text,
            provider=provider.name.value,
            processing_time=processing_time,
        )
