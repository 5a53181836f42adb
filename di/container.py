from __future__ import annotations

import structlog
from dependency_injector import containers, providers

from core.settings import SETTINGS
from infra.auth_client import AuthClient
from infra.llm.embeddings import EmbeddingClient
from infra.llm.registry import build_provider_registry
from infra.resources import (
    DatabaseResource,
    HttpClientResource,
    MinIOResource,
    RedisResource,
)


logger = structlog.get_logger("chatdesk")


class InfrastructureContainer(containers.DeclarativeContainer):
    config = providers.Configuration()
    settings = providers.Object(SETTINGS)
    logger = providers.Object(logger)

    # Database
    database = providers.Resource(
        DatabaseResource,
        database_url=str(SETTINGS.DATABASE.DATABASE_URL),
    )

    # Redis (realtime pub/sub)
    redis_db = providers.Resource(
        RedisResource,
        redis_url=str(SETTINGS.REDIS.REDIS_URL),
    )

    # MinIO
    minio_client = providers.Resource(
        MinIOResource,
        endpoint=SETTINGS.MINIO.MINIO_ENDPOINT,
        access_key=SETTINGS.MINIO.MINIO_ACCESS_KEY,
        secret_key=SETTINGS.MINIO.MINIO_SECRET_KEY.get_secret_value(),
        bucket_name=SETTINGS.MINIO.MINIO_BUCKET,
        public_url=SETTINGS.MINIO.MINIO_PUBLIC_URL,
    )

    # Outbound HTTP (auth server, LLM providers)
    http_client = providers.Resource(
        HttpClientResource,
        timeout=max(
            SETTINGS.GEMINI.GEMINI_TIMEOUT_SECONDS,
            SETTINGS.MINIMAX.MINIMAX_TIMEOUT_SECONDS,
        ),
    )

    auth_client = providers.Singleton(
        lambda http: AuthClient(
            http.get_client(),
            base_url=SETTINGS.AUTH.AUTH_URL,
            service_key=SETTINGS.AUTH.AUTH_SERVICE_KEY.get_secret_value(),
        ),
        http=http_client,
    )

    provider_registry = providers.Singleton(
        build_provider_registry,
        http=http_client,
        settings=settings,
    )

    embeddings = providers.Singleton(
        EmbeddingClient,
        api_key=SETTINGS.OPENAI.OPENAI_API_KEY.get_secret_value(),
        model=SETTINGS.OPENAI.EMBEDDING_MODEL,
    )


class ServiceContainer(containers.DeclarativeContainer):
    """Application services - depends on infrastructure."""

    infrastructure = providers.DependenciesContainer()

    conversation_service = providers.Factory(
        "api.features.conversation.service.ConversationService",
        realtime=infrastructure.redis_db,
    )

    chat_service = providers.Factory(
        "api.features.chat.service.ChatService",
        database=infrastructure.database,
        registry=infrastructure.provider_registry,
        embeddings=infrastructure.embeddings,
    )

    transcribe_service = providers.Factory(
        "api.features.transcribe.service.TranscribeService",
        registry=infrastructure.provider_registry,
    )

    vision_service = providers.Factory(
        "api.features.vision.service.VisionService",
        registry=infrastructure.provider_registry,
        http=infrastructure.http_client,
    )

    enhance_service = providers.Factory(
        "api.features.enhance.service.EnhanceService",
        registry=infrastructure.provider_registry,
    )

    search_service = providers.Factory(
        "api.features.search.service.SearchService",
        embeddings=infrastructure.embeddings,
    )

    upload_service = providers.Factory(
        "api.features.uploads.service.UploadService",
        storage_client=infrastructure.minio_client,
    )

    document_service = providers.Factory(
        "api.features.documents.service.DocumentService",
        storage_client=infrastructure.minio_client,
        embeddings=infrastructure.embeddings,
    )

    takeover_service = providers.Factory(
        "api.features.takeover.service.TakeoverService",
        conversation_service=conversation_service,
    )

    admin_service = providers.Factory(
        "api.features.admin.service.AdminService",
    )


class ControllerContainer(containers.DeclarativeContainer):
    """Controller-specific dependencies."""

    services = providers.DependenciesContainer()

    conversation_controller = providers.Factory(
        "api.features.conversation.controller.ConversationController",
        conversation_service=services.conversation_service,
    )

    chat_controller = providers.Factory(
        "api.features.chat.controller.ChatController",
        chat_service=services.chat_service,
    )

    document_controller = providers.Factory(
        "api.features.documents.controller.DocumentController",
        document_service=services.document_service,
    )


class ApplicationContainer(containers.DeclarativeContainer):
    """Main application container composing all sub-containers."""

    wiring_config = containers.WiringConfiguration(
        modules=[
            "api.main",
            "api.shared.db",
            "api.shared.auth",
            "api.features.conversation.router",
            "api.features.chat.router",
            "api.features.transcribe.router",
            "api.features.vision.router",
            "api.features.enhance.router",
            "api.features.search.router",
            "api.features.uploads.router",
            "api.features.documents.router",
            "api.features.takeover.router",
            "api.features.admin.router",
        ]
    )

    infrastructure = providers.Container(InfrastructureContainer)
    services = providers.Container(ServiceContainer, infrastructure=infrastructure)
    controllers = providers.Container(ControllerContainer, services=services)
