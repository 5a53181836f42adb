"""HTTP client for the chat API, used by the Streamlit widget and admin pages."""
import json
import logging
from typing import Any, Dict, Iterable, Iterator, List, Optional

import requests

from core.settings import SETTINGS

logger = logging.getLogger("chatdesk.client")

API_PREFIX = "/api/v1"


class ApiError(Exception):
    """An ``{"error": {code, message}}`` envelope, or a transport failure."""

    def __init__(self, code: str, message: str, status_code: Optional[int] = None):
        self.code = code
        self.message = message
        self.status_code = status_code
        super().__init__(f"{code}: {message}")


def parse_envelope(response: requests.Response) -> Any:
    """Return ``data`` from a response envelope or raise :class:`ApiError`."""
    try:
        body = response.json()
    except ValueError:
        body = None

    if not response.ok or (isinstance(body, dict) and "error" in body):
        error = (body or {}).get("error") if isinstance(body, dict) else None
        if isinstance(error, dict):
            raise ApiError(
                error.get("code", "HTTP_ERROR"),
                error.get("message", response.reason or ""),
                response.status_code,
            )
        raise ApiError("HTTP_ERROR", response.text or str(response.reason), response.status_code)

    if not isinstance(body, dict):
        raise ApiError("INVALID_RESPONSE", "Response is not a JSON envelope", response.status_code)
    return body.get("data")


def iter_sse_events(lines: Iterable[str]) -> Iterator[Dict[str, Any]]:
    """Decode ``data:`` lines of a server-sent event stream into dicts."""
    for line in lines:
        if not line or not line.startswith("data:"):
            continue
        raw = line[len("data:"):].strip()
        if not raw:
            continue
        try:
            yield json.loads(raw)
        except ValueError:
            logger.warning("Skipping malformed stream frame: %s", raw[:200])


class ApiClient:
    def __init__(
        self,
        base_url: str = SETTINGS.UI.API_BASE_URL,
        token: str = "",
        timeout: float = SETTINGS.UI.API_TIMEOUT_SECONDS,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout
        self.session = session or requests.Session()

    def _url(self, path: str) -> str:
        return f"{self.base_url}{API_PREFIX}{path}"

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def request(
        self,
        method: str,
        path: str,
        *,
        json_body: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        if params:
            params = {k: v for k, v in params.items() if v is not None and v != ""}
        try:
            response = self.session.request(
                method,
                self._url(path),
                json=json_body,
                params=params,
                headers=self._headers(),
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise ApiError("NETWORK_ERROR", str(e)) from e
        return parse_envelope(response)

    def stream(self, path: str, json_body: Optional[Dict[str, Any]] = None) -> Iterator[Dict[str, Any]]:
        """POST (or GET without a body) and yield decoded server-sent events."""
        method = "POST" if json_body is not None else "GET"
        try:
            response = self.session.request(
                method,
                self._url(path),
                json=json_body,
                headers={**self._headers(), "Accept": "text/event-stream"},
                timeout=self.timeout,
                stream=True,
            )
        except requests.RequestException as e:
            raise ApiError("NETWORK_ERROR", str(e)) from e

        with response:
            if not response.ok:
                parse_envelope(response)
            try:
                yield from iter_sse_events(response.iter_lines(decode_unicode=True))
            except requests.RequestException as e:
                # Connection dropped mid-stream
                raise ApiError("NETWORK_ERROR", str(e)) from e

    # Conversations

    def create_conversation(self, title: Optional[str] = None) -> Dict[str, Any]:
        return self.request("POST", "/conversations/", json_body={"title": title})

    def list_conversations(self, limit: int = 50) -> List[Dict[str, Any]]:
        data = self.request("GET", "/conversations/", params={"limit": limit})
        return data["items"]

    def get_messages(self, conversation_id: str, limit: int = 50) -> List[Dict[str, Any]]:
        data = self.request(
            "GET", f"/conversations/{conversation_id}/messages", params={"limit": limit}
        )
        return data["items"]

    def post_admin_message(self, conversation_id: str, content: str) -> Dict[str, Any]:
        return self.request(
            "POST", f"/conversations/{conversation_id}/messages", json_body={"content": content}
        )

    def conversation_events(self, conversation_id: str) -> Iterator[Dict[str, Any]]:
        return self.stream(f"/conversations/{conversation_id}/events")

    def send_typing(self, conversation_id: str, typing: bool = True) -> Dict[str, Any]:
        return self.request(
            "POST", f"/conversations/{conversation_id}/typing", json_body={"typing": typing}
        )

    # Chat and media

    def chat_stream(
        self,
        conversation_id: str,
        message: str,
        *,
        provider: str = "auto",
        use_rag: bool = False,
        attachments: Optional[List[Dict[str, Any]]] = None,
    ) -> Iterator[Dict[str, Any]]:
        return self.stream(
            "/chat",
            {
                "conversationId": conversation_id,
                "message": message,
                "llmProvider": provider,
                "useRag": use_rag,
                "attachments": attachments or [],
                "stream": True,
            },
        )

    def chat(
        self,
        conversation_id: str,
        message: str,
        *,
        provider: str = "auto",
        use_rag: bool = False,
    ) -> Dict[str, Any]:
        return self.request(
            "POST",
            "/chat",
            json_body={
                "conversationId": conversation_id,
                "message": message,
                "llmProvider": provider,
                "useRag": use_rag,
                "stream": False,
            },
        )

    def transcribe(
        self,
        audio_data: str,
        mime_type: str = "audio/webm",
        *,
        provider: str = "auto",
        conversation_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        return self.request(
            "POST",
            "/transcribe",
            json_body={
                "audioData": audio_data,
                "mimeType": mime_type,
                "provider": provider,
                "conversationId": conversation_id,
            },
        )

    def vision(
        self,
        *,
        image_base64: Optional[str] = None,
        image_url: Optional[str] = None,
        prompt: Optional[str] = None,
        provider: str = "gemini",
        conversation_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        return self.request(
            "POST",
            "/vision",
            json_body={
                "imageBase64": image_base64,
                "imageUrl": image_url,
                "prompt": prompt,
                "modelProvider": provider,
                "conversationId": conversation_id,
            },
        )

    def upload(
        self,
        file_data: str,
        file_name: str,
        mime_type: str,
        *,
        conversation_id: Optional[str] = None,
        message_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        return self.request(
            "POST",
            "/upload",
            json_body={
                "fileData": file_data,
                "fileName": file_name,
                "mimeType": mime_type,
                "conversationId": conversation_id,
                "messageId": message_id,
            },
        )

    def rag_search(
        self,
        query: str,
        *,
        limit: int = 5,
        threshold: float = 0.7,
        conversation_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        return self.request(
            "POST",
            "/rag-search",
            json_body={
                "query": query,
                "limit": limit,
                "threshold": threshold,
                "conversationId": conversation_id,
            },
        )

    # Admin

    def takeover(
        self,
        conversation_id: str,
        action: str,
        *,
        reason: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> Dict[str, Any]:
        return self.request(
            "POST",
            "/takeover",
            json_body={
                "conversationId": conversation_id,
                "action": action,
                "reason": reason,
                "notes": notes,
            },
        )

    def enhance(
        self,
        original_text: str,
        style: str = "neutro",
        intensity: int = 50,
        *,
        conversation_id: Optional[str] = None,
        original_message_id: Optional[str] = None,
        provider: str = "auto",
    ) -> Dict[str, Any]:
        return self.request(
            "POST",
            "/enhance",
            json_body={
                "originalText": original_text,
                "style": style,
                "intensity": intensity,
                "conversationId": conversation_id,
                "originalMessageId": original_message_id,
                "provider": provider,
            },
        )

    def dashboard(self) -> Dict[str, Any]:
        return self.request("GET", "/admin/dashboard")

    def admin_conversations(
        self, *, search: Optional[str] = None, status: Optional[str] = None, limit: int = 50
    ) -> List[Dict[str, Any]]:
        data = self.request(
            "GET",
            "/admin/conversations",
            params={"search": search, "status": status, "limit": limit},
        )
        return data["conversations"]

    def analytics(self) -> Dict[str, Any]:
        return self.request("GET", "/admin/analytics")

    # Documents

    def list_documents(
        self,
        *,
        page: int = 1,
        limit: int = 20,
        search: Optional[str] = None,
        tag: Optional[str] = None,
        mime_type: Optional[str] = None,
    ) -> Dict[str, Any]:
        return self.request(
            "GET",
            "/documents",
            params={
                "page": page,
                "limit": limit,
                "search": search,
                "tag": tag,
                "mimeType": mime_type,
            },
        )

    def document_stats(self) -> Dict[str, Any]:
        return self.request("GET", "/documents/stats")

    def get_document(self, document_id: str) -> Dict[str, Any]:
        return self.request("GET", f"/documents/{document_id}")

    def upload_document(
        self,
        file_data: str,
        file_name: str,
        mime_type: str,
        *,
        title: Optional[str] = None,
        tags: Optional[List[str]] = None,
        is_public: bool = True,
    ) -> Dict[str, Any]:
        return self.request(
            "POST",
            "/documents/upload",
            json_body={
                "fileData": file_data,
                "fileName": file_name,
                "mimeType": mime_type,
                "title": title,
                "tags": tags or [],
                "isPublic": is_public,
            },
        )

    def update_document(self, document_id: str, **fields: Any) -> Dict[str, Any]:
        return self.request("PATCH", f"/documents/{document_id}", json_body=fields)

    def delete_document(self, document_id: str) -> Dict[str, Any]:
        return self.request("DELETE", f"/documents/{document_id}")

    def reindex_document(self, document_id: str) -> Dict[str, Any]:
        return self.request("POST", f"/documents/{document_id}/reindex")
