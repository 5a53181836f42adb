"""Environment-driven settings, grouped per concern and exposed as ``SETTINGS``."""
from functools import lru_cache
from typing import List, Literal

from pydantic import BaseModel, Field, PostgresDsn, RedisDsn, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class CustomSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )


class AppSettings(CustomSettings):
    ENVIRONMENT: Literal["local", "dev", "prod"] = Field(default="local")
    LOG_LEVEL: str = Field(default="INFO")
    JSON_LOGS: bool = Field(default=True)
    CORS_ORIGINS: List[str] = Field(
        default=["http://localhost:3000", "http://localhost:8501"]
    )


class PgDbSettings(CustomSettings):
    POSTGRES_ENGINE: str = Field(default="postgresql+asyncpg")
    POSTGRES_USER: str = Field(default="postgres")
    POSTGRES_PASSWORD: SecretStr = Field(default="postgres")
    POSTGRES_DB: str = Field(default="chatdesk")
    POSTGRES_HOST: str = Field(default="localhost")
    POSTGRES_PORT: int = Field(default=5432)
    # Takes precedence over the POSTGRES_* parts when set
    DATABASE_URL: PostgresDsn | str = Field(default="")

    @model_validator(mode="before")
    def assemble_database_url(cls, data: dict):
        if not isinstance(data, dict) or data.get("DATABASE_URL"):
            return data
        data["DATABASE_URL"] = PostgresDsn.build(
            scheme=data.get("POSTGRES_ENGINE", "postgresql+asyncpg"),
            username=data.get("POSTGRES_USER", "postgres"),
            password=data.get("POSTGRES_PASSWORD", "postgres"),
            host=data.get("POSTGRES_HOST", "localhost"),
            port=int(data.get("POSTGRES_PORT", 5432)),
            path=data.get("POSTGRES_DB", "chatdesk"),
        ).unicode_string()
        return data


class RedisSettings(CustomSettings):
    """Realtime pub/sub broker. REDIS_URL wins over the host/port parts."""

    REDIS_HOST: str = Field(default="localhost")
    REDIS_PORT: int = Field(default=6379)
    REDIS_DB: int = Field(default=0)
    REDIS_PASSWORD: SecretStr = Field(default="")
    REDIS_URL: RedisDsn | str = Field(default="")

    @model_validator(mode="before")
    def assemble_redis_url(cls, data: dict):
        if not isinstance(data, dict) or data.get("REDIS_URL"):
            return data
        data["REDIS_URL"] = RedisDsn.build(
            scheme="redis",
            host=data.get("REDIS_HOST", "localhost"),
            port=int(data.get("REDIS_PORT", 6379)),
            path=f"/{data.get('REDIS_DB', 0)}",
            password=data.get("REDIS_PASSWORD") or None,
        ).unicode_string()
        return data


class MinIOSettings(CustomSettings):
    MINIO_ENDPOINT: str = Field(default="http://localhost:9000")
    MINIO_ACCESS_KEY: str = Field(default="minioadmin")
    MINIO_SECRET_KEY: SecretStr = Field(default="minioadmin")
    MINIO_BUCKET: str = Field(default="uploads")
    MINIO_PUBLIC_URL: str = Field(default="")


class AuthSettings(CustomSettings):
    """Configuration for the hosted auth server.

    Set via env vars:
    - AUTH_URL
    - AUTH_SERVICE_KEY
    - AUTH_TIMEOUT_SECONDS
    """

    AUTH_URL: str = Field(default="http://localhost:54321")
    AUTH_SERVICE_KEY: SecretStr = Field(default="")
    AUTH_TIMEOUT_SECONDS: float = Field(default=10.0)


class GeminiSettings(CustomSettings):
    GEMINI_API_KEY: SecretStr = Field(default="")
    GEMINI_BASE_URL: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta"
    )
    GEMINI_TEXT_MODEL: str = Field(default="gemini-1.5-pro")
    GEMINI_VISION_MODEL: str = Field(default="gemini-1.5-flash")
    GEMINI_TIMEOUT_SECONDS: float = Field(default=60.0)


class MiniMaxSettings(CustomSettings):
    MINIMAX_API_KEY: SecretStr = Field(default="")
    MINIMAX_BASE_URL: str = Field(default="https://api.minimax.ai/v1")
    MINIMAX_TEXT_MODEL: str = Field(default="abab6.5s-chat")
    MINIMAX_VISION_MODEL: str = Field(default="abab6.5s-chat")
    MINIMAX_SPEECH_MODEL: str = Field(default="speech-01")
    MINIMAX_TIMEOUT_SECONDS: float = Field(default=60.0)


class OpenAISettings(CustomSettings):
    OPENAI_API_KEY: SecretStr = Field(default="")
    EMBEDDING_MODEL: str = Field(default="text-embedding-ada-002")


class GenerationSettings(CustomSettings):
    TEMPERATURE: float = Field(default=0.7)
    MAX_TOKENS: int = Field(default=4000)
    TRANSCRIPTION_LANGUAGE: str = Field(default="es")
    ENHANCE_TEMPERATURE: float = Field(default=0.3)
    ENHANCE_MAX_TOKENS: int = Field(default=2000)


class LimitsSettings(CustomSettings):
    MAX_FILE_SIZE_MB: int = Field(default=15)
    MAX_MESSAGE_LENGTH: int = Field(default=10000)
    RATE_LIMIT_MAX_REQUESTS: int = Field(default=100)
    RATE_LIMIT_WINDOW_MINUTES: int = Field(default=15)


class RagSettings(CustomSettings):
    """Retrieval and ingestion parameters.

    Set via env vars (optional):
    - RAG_MATCH_THRESHOLD
    - RAG_CHAT_MATCH_COUNT
    - RAG_SEARCH_LIMIT
    - CHUNK_SIZE
    - CHUNK_OVERLAP
    - EMBEDDING_DIMENSION
    - HISTORY_LIMIT
    """

    RAG_MATCH_THRESHOLD: float = Field(default=0.7)
    RAG_CHAT_MATCH_COUNT: int = Field(default=3)
    RAG_SEARCH_LIMIT: int = Field(default=5)
    CHUNK_SIZE: int = Field(default=1000)
    CHUNK_OVERLAP: int = Field(default=200)
    EMBEDDING_DIMENSION: int = Field(default=1536)
    HISTORY_LIMIT: int = Field(default=20)


class UiSettings(CustomSettings):
    """Configuration for the Streamlit widget and admin console.

    Set via env vars:
    - API_BASE_URL
    - API_TOKEN
    - WIDGET_DEFAULT_MODEL
    - ADMIN_SETTINGS_PATH
    """

    API_BASE_URL: str = Field(default="http://localhost:8000")
    API_TOKEN: SecretStr = Field(default="")
    API_TIMEOUT_SECONDS: float = Field(default=60.0)
    WIDGET_DEFAULT_MODEL: str = Field(default="auto")
    WIDGET_TITLE: str = Field(default="Asistente")
    ADMIN_SETTINGS_PATH: str = Field(default=".chatdesk/admin_settings.json")


class Settings(BaseModel):
    APP: AppSettings = Field(default_factory=AppSettings)
    DATABASE: PgDbSettings = Field(default_factory=PgDbSettings)
    REDIS: RedisSettings = Field(default_factory=RedisSettings)
    MINIO: MinIOSettings = Field(default_factory=MinIOSettings)
    AUTH: AuthSettings = Field(default_factory=AuthSettings)
    GEMINI: GeminiSettings = Field(default_factory=GeminiSettings)
    MINIMAX: MiniMaxSettings = Field(default_factory=MiniMaxSettings)
    OPENAI: OpenAISettings = Field(default_factory=OpenAISettings)
    GENERATION: GenerationSettings = Field(default_factory=GenerationSettings)
    LIMITS: LimitsSettings = Field(default_factory=LimitsSettings)
    RAG: RagSettings = Field(default_factory=RagSettings)
    UI: UiSettings = Field(default_factory=UiSettings)


@lru_cache
def get_settings() -> Settings:
    return Settings()


SETTINGS = get_settings()
