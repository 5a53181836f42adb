"""Admin console model: loads data through the API and filters it for display."""
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, ValidationError

from client.api import ApiClient, ApiError
from core.settings import SETTINGS

logger = logging.getLogger("chatdesk.client.admin")

PAUSED_STATUS = "paused"


def format_number(value: float) -> str:
    if value >= 1_000_000:
        return f"{value / 1_000_000:.1f}M"
    if value >= 1_000:
        return f"{value / 1_000:.1f}K"
    return str(int(value)) if float(value).is_integer() else str(value)


def format_duration(milliseconds: float) -> str:
    if milliseconds < 1000:
        return f"{round(milliseconds)} ms"
    seconds = milliseconds / 1000
    if seconds < 60:
        return f"{seconds:.1f} s"
    minutes, rest = divmod(int(round(seconds)), 60)
    return f"{minutes}m {rest}s"


def filter_conversations(
    conversations: List[Dict[str, Any]],
    search: Optional[str] = None,
    status: Optional[str] = None,
) -> List[Dict[str, Any]]:
    """Match ``search`` against title (case-insensitive) or id; ``paused`` means bot paused."""
    result = conversations
    if search:
        term = search.lower()
        result = [
            c
            for c in result
            if term in (c.get("title") or "").lower() or search in str(c.get("id", ""))
        ]
    if status == PAUSED_STATUS:
        result = [c for c in result if c.get("bot_paused")]
    elif status:
        result = [c for c in result if c.get("status") == status]
    return result


def filter_documents(
    documents: List[Dict[str, Any]],
    search: Optional[str] = None,
    mime_type: Optional[str] = None,
) -> List[Dict[str, Any]]:
    result = documents
    if search:
        term = search.lower()
        result = [
            d
            for d in result
            if term in (d.get("title") or "").lower()
            or term in (d.get("content") or "").lower()
        ]
    if mime_type:
        result = [d for d in result if d.get("mime_type") == mime_type]
    return result


class AdminSettings(BaseModel):
    max_tokens: int = Field(default=SETTINGS.GENERATION.MAX_TOKENS, ge=1, le=32000)
    temperature: float = Field(default=SETTINGS.GENERATION.TEMPERATURE, ge=0.0, le=2.0)
    rag_threshold: float = Field(default=SETTINGS.RAG.RAG_MATCH_THRESHOLD, ge=0.0, le=1.0)
    rag_max_results: int = Field(default=SETTINGS.RAG.RAG_SEARCH_LIMIT, ge=1, le=50)

    @classmethod
    def load(cls, path: Optional[Path] = None) -> "AdminSettings":
        path = Path(path or SETTINGS.UI.ADMIN_SETTINGS_PATH)
        if not path.exists():
            return cls()
        try:
            return cls.model_validate_json(path.read_text(encoding="utf-8"))
        except ValidationError as e:
            logger.warning("Ignoring invalid admin settings in %s: %s", path, e)
            return cls()

    def save(self, path: Optional[Path] = None) -> Path:
        path = Path(path or SETTINGS.UI.ADMIN_SETTINGS_PATH)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.model_dump_json(indent=2), encoding="utf-8")
        return path


class AdminConsole:
    def __init__(self, api: ApiClient):
        self.api = api
        self.conversations: List[Dict[str, Any]] = []
        self.documents: List[Dict[str, Any]] = []

    def dashboard(self) -> Dict[str, Any]:
        return self.api.dashboard()

    def load_conversations(self) -> List[Dict[str, Any]]:
        self.conversations = self.api.admin_conversations(limit=200)
        return self.conversations

    def conversations_view(
        self, search: Optional[str] = None, status: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        return filter_conversations(self.conversations, search, status)

    def set_bot_paused(self, conversation_id: str, paused: bool) -> Dict[str, Any]:
        return self.api.takeover(conversation_id, "pause_bot" if paused else "resume_bot")

    def start_takeover(
        self, conversation_id: str, reason: Optional[str] = None, notes: Optional[str] = None
    ) -> Dict[str, Any]:
        return self.api.takeover(conversation_id, "start", reason=reason, notes=notes)

    def end_takeover(self, conversation_id: str) -> Dict[str, Any]:
        return self.api.takeover(conversation_id, "end")

    def reply(self, conversation_id: str, content: str) -> Dict[str, Any]:
        """Post an admin message, showing the typing indicator on the widget meanwhile."""
        self._typing(conversation_id, True)
        try:
            return self.api.post_admin_message(conversation_id, content)
        finally:
            self._typing(conversation_id, False)

    def _typing(self, conversation_id: str, typing: bool) -> None:
        try:
            self.api.send_typing(conversation_id, typing)
        except ApiError as e:
            logger.warning("Typing indicator failed for %s: %s", conversation_id, e)

    def load_documents(self, limit: int = 100) -> List[Dict[str, Any]]:
        self.documents = self.api.list_documents(limit=limit)["documents"]
        return self.documents

    def documents_view(
        self, search: Optional[str] = None, mime_type: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        return filter_documents(self.documents, search, mime_type)

    def analytics_summary(self) -> Dict[str, str]:
        """Analytics formatted for display."""
        analytics = self.api.analytics()
        summary = {
            f"{usage['provider']}_usage": f"{round(usage['percentage'])}%"
            for usage in analytics.get("provider_usage", [])
        }
        summary["avg_response_time"] = format_duration(
            analytics.get("average_processing_time_ms", 0)
        )
        summary["total_tokens"] = format_number(analytics.get("total_tokens_estimated", 0))
        summary["bot_messages"] = format_number(analytics.get("total_bot_messages", 0))
        return summary
