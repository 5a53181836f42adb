"""Widget configuration and the state rendered by the chat page."""
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from core.settings import SETTINGS

DEFAULT_WELCOME_MESSAGE = "¡Hola! ¿En qué puedo ayudarte hoy?"


class Feature(str, Enum):
    AUDIO = "audio"
    FILES = "files"
    VISION = "vision"
    RAG = "rag"


@dataclass
class WidgetConfig:
    api_base_url: str = SETTINGS.UI.API_BASE_URL
    token: str = ""
    title: str = SETTINGS.UI.WIDGET_TITLE
    default_model: str = SETTINGS.UI.WIDGET_DEFAULT_MODEL
    max_file_size_mb: int = SETTINGS.LIMITS.MAX_FILE_SIZE_MB
    welcome_message: Optional[str] = DEFAULT_WELCOME_MESSAGE
    features: frozenset = frozenset(Feature)

    def enabled(self, feature: Feature) -> bool:
        return feature in self.features


@dataclass
class ChatState:
    is_open: bool = False
    is_connected: bool = False
    is_typing: bool = False
    is_recording: bool = False
    is_transcribing: bool = False
    is_thinking: bool = False
    bot_paused: bool = False
    current_model: str = "auto"
    error: Optional[str] = None


def local_id(prefix: str) -> str:
    """Placeholder id until the server assigns one."""
    return f"{prefix}-{time.time_ns()}"


@dataclass
class ChatMessage:
    sender: str
    content: str
    id: str = field(default_factory=lambda: local_id("temp"))
    type: str = "text"
    status: str = "sent"
    attachments: List[Dict[str, Any]] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "ChatMessage":
        return cls(
            id=str(data["id"]),
            sender=data.get("sender", "bot"),
            content=data.get("content", ""),
            type=data.get("type", "text"),
            status=data.get("status", "sent"),
            attachments=list(data.get("attachments") or []),
            metadata=dict(data.get("metadata") or {}),
        )
