"""Chat attachments stored in object storage."""
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from api.features.conversation.entities.conversation import Attachment, AttachmentKind
from api.features.conversation.repository import (
    AttachmentRepository,
    ConversationRepository,
    MessageRepository,
)
from api.features.uploads.dtos import UploadRequest, UploadResponse
from api.shared.auth import AuthenticatedUser
from api.shared.exceptions import NotFoundError, StorageError
from api.shared.moderation import validate_file_upload
from api.shared.utils import (
    decode_base64_payload,
    estimate_base64_size,
    generate_storage_path,
)
from infra.events.recorder import record_event
from infra.resources import MinIOResource

logger = logging.getLogger("chatdesk.uploads.service")


def attachment_kind_for(mime_type: str) -> AttachmentKind:
    if mime_type.startswith("image/"):
        return AttachmentKind.IMAGE
    if mime_type.startswith("audio/"):
        return AttachmentKind.AUDIO
    return AttachmentKind.FILE


class UploadService:
    def __init__(self, storage_client: MinIOResource):
        self.storage = storage_client

    async def _check_message(
        self, message_id: str, user: AuthenticatedUser, db_session: AsyncSession
    ) -> None:
        message = await MessageRepository(db_session).get_by_id(message_id)
        if message is None:
            raise NotFoundError("Message", message_id)
        conversation = await ConversationRepository(db_session).get_for_user(
            message.conversation_id, None if user.is_admin else user.id
        )
        if conversation is None:
            raise NotFoundError("Message", message_id)

    async def upload(
        self, request: UploadRequest, user: AuthenticatedUser, *, db_session: AsyncSession
    ) -> UploadResponse:
        # Reject oversize payloads before decoding them.
        validate_file_upload(
            request.file_name, request.mime_type, estimate_base64_size(request.file_data)
        )
        content = decode_base64_payload(request.file_data)
        validate_file_upload(request.file_name, request.mime_type, len(content))

        if request.conversation_id:
            conversation = await ConversationRepository(db_session).get_for_user(
                request.conversation_id, None if user.is_admin else user.id
            )
            if conversation is None:
                raise NotFoundError("Conversation", request.conversation_id)
        if request.message_id:
            await self._check_message(request.message_id, user, db_session)

        storage_path = generate_storage_path(user.id, request.file_name, request.mime_type)
        try:
            await self.storage.put_object_bytes(storage_path, content, request.mime_type)
            public_url = await self.storage.get_url(storage_path)
        except Exception as e:
            logger.exception("Failed to store %s", storage_path)
            raise StorageError(f"Failed to store file: {e}") from e

        kind = attachment_kind_for(request.mime_type)
        attachment_id = None
        if request.message_id:
            attachment = await AttachmentRepository(db_session).create(
                Attachment(
                    message_id=request.message_id,
                    kind=kind,
                    storage_path=storage_path,
                    url=public_url,
                    mime_type=request.mime_type,
                    size_bytes=len(content),
                )
            )
            attachment_id = attachment.id

        await record_event(
            db_session,
            event_type="file_uploaded",
            user_id=user.id,
            conversation_id=request.conversation_id,
            payload={
                "file_name": request.file_name,
                "mime_type": request.mime_type,
                "file_size": len(content),
                "storage_path": storage_path,
                "attachment_id": attachment_id,
            },
        )
        await db_session.commit()

        logger.info("Stored upload %s (%d bytes)", storage_path, len(content))
        return UploadResponse(
            public_url=public_url,
            storage_path=storage_path,
            attachment_id=attachment_id,
            file_size=len(content),
            mime_type=request.mime_type,
            kind=kind.value,
        )
