"""Chat widget session: the state machine behind the chat page.

The session owns the message list and :class:`ChatState`. Rendering code reads both
after every call and never mutates them directly.
"""
import base64
import logging
import queue
import threading
from typing import Any, Callable, Dict, List, Optional

from client.api import ApiClient, ApiError
from client.files import file_kind, to_data_url, validate_file
from client.state import ChatMessage, ChatState, Feature, WidgetConfig, local_id

logger = logging.getLogger("chatdesk.client.session")

CONNECTION_ERROR_MESSAGE = "Error de conexión. Inténtalo de nuevo."
DOCUMENT_NOTICE = "[Documento subido: {name}]\n\nEste documento está disponible para consultas."


class RealtimeFeed:
    """Reads a conversation's event stream on a daemon thread into a queue.

    Streamlit reruns the page script from the top, so the page drains the queue
    on each run instead of blocking on the stream.
    """

    def __init__(self, api: ApiClient, conversation_id: str, retry_seconds: float = 2.0):
        self.api = api
        self.conversation_id = conversation_id
        self.retry_seconds = retry_seconds
        self.events: "queue.Queue[Dict[str, Any]]" = queue.Queue()
        self._stopped = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> "RealtimeFeed":
        if not self.running:
            self._stopped.clear()
            self._thread = threading.Thread(target=self._run, daemon=True)
            self._thread.start()
        return self

    def stop(self) -> None:
        self._stopped.set()

    def join(self, timeout: Optional[float] = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)

    def _run(self) -> None:
        while not self._stopped.is_set():
            try:
                for event in self.api.conversation_events(self.conversation_id):
                    if self._stopped.is_set():
                        return
                    self.events.put(event)
            except ApiError as e:
                logger.info("Realtime stream for %s interrupted: %s", self.conversation_id, e)
            # Reconnect after the server closes the stream or the read times out
            self._stopped.wait(self.retry_seconds)

    def drain(self) -> List[Dict[str, Any]]:
        drained = []
        while True:
            try:
                drained.append(self.events.get_nowait())
            except queue.Empty:
                return drained


class ChatWidgetSession:
    def __init__(self, api: ApiClient, config: Optional[WidgetConfig] = None):
        self.api = api
        self.config = config or WidgetConfig()
        self.state = ChatState(current_model=self.config.default_model)
        self.messages: List[ChatMessage] = []
        self.conversation: Optional[Dict[str, Any]] = None
        self.feed: Optional[RealtimeFeed] = None

    @property
    def conversation_id(self) -> Optional[str]:
        return self.conversation["id"] if self.conversation else None

    # Panel

    def toggle(self) -> bool:
        self.state.is_open = not self.state.is_open
        return self.state.is_open

    def open(self) -> None:
        self.state.is_open = True

    def close(self) -> None:
        self.state.is_open = False

    def set_model(self, model: str) -> None:
        self.state.current_model = model

    def clear_error(self) -> None:
        self.state.error = None

    # Conversation

    def load_or_create_conversation(self) -> Dict[str, Any]:
        """Resume the most recent conversation, or start one with a welcome message."""
        try:
            conversations = self.api.list_conversations(limit=1)
        except ApiError as e:
            logger.warning("Could not list conversations: %s", e)
            conversations = []

        if conversations:
            self.conversation = conversations[0]
            self.state.bot_paused = bool(self.conversation.get("bot_paused"))
            self.messages = [ChatMessage.from_api(m) for m in self.api.get_messages(self.conversation_id)]
        else:
            self.start_new_conversation()
        self.state.is_connected = True
        return self.conversation

    def start_new_conversation(self) -> Dict[str, Any]:
        self.conversation = self.api.create_conversation()
        self.state.bot_paused = bool(self.conversation.get("bot_paused"))
        self.messages = []
        if self.config.welcome_message:
            self.messages.append(
                ChatMessage(id="welcome", sender="bot", content=self.config.welcome_message)
            )
        return self.conversation

    def find_message(self, message_id: str) -> Optional[ChatMessage]:
        return next((m for m in self.messages if m.id == message_id), None)

    # Sending

    def send_message(
        self,
        text: str,
        attachments: Optional[List[Dict[str, Any]]] = None,
        on_delta: Optional[Callable[[str], None]] = None,
    ) -> Optional[ChatMessage]:
        """Send ``text`` and stream the reply into a bot message; returns the bot message.

        ``on_delta`` receives the accumulated reply after every streamed chunk.
        """
        content = text.strip()
        if not content or self.conversation is None:
            return None

        user_message = ChatMessage(
            sender="user",
            content=content,
            status="pending",
            type="file" if attachments else "text",
            attachments=list(attachments or []),
        )
        bot_message = ChatMessage(id=local_id("bot"), sender="bot", content="", status="pending")
        self.messages.extend([user_message, bot_message])
        self.state.is_thinking = True
        self.state.error = None

        try:
            for frame in self.api.chat_stream(
                self.conversation_id,
                content,
                provider=self.state.current_model,
                use_rag=self.config.enabled(Feature.RAG),
                attachments=attachments,
            ):
                user_message.status = "sent"
                if frame.get("error"):
                    bot_message.content = f"Error: {frame['error']}"
                    bot_message.status = "error"
                    break
                if frame.get("done"):
                    bot_message.status = "sent"
                    bot_message.id = frame.get("message_id") or bot_message.id
                    if frame.get("provider"):
                        bot_message.metadata["provider"] = frame["provider"]
                    break
                bot_message.content += frame.get("content", "")
                if on_delta is not None:
                    on_delta(bot_message.content)
            else:
                if bot_message.status == "pending":
                    bot_message.status = "error"
                    bot_message.content = bot_message.content or CONNECTION_ERROR_MESSAGE
        except ApiError as e:
            user_message.status = "error"
            bot_message.status = "error"
            bot_message.content = e.message or CONNECTION_ERROR_MESSAGE
            if e.code == "BOT_PAUSED":
                self.state.bot_paused = True
            self.state.error = e.message
        finally:
            self.state.is_thinking = False
        return bot_message

    def handle_audio(self, audio: bytes, mime_type: str = "audio/webm") -> Optional[ChatMessage]:
        """Transcribe a recording and send the transcription as a message."""
        self.state.is_recording = False
        self.state.is_transcribing = True
        try:
            result = self.api.transcribe(
                to_data_url(audio, mime_type),
                mime_type,
                provider=self.state.current_model,
                conversation_id=self.conversation_id,
            )
        except ApiError as e:
            self.state.error = "Error procesando el audio"
            logger.warning("Transcription failed: %s", e)
            return None
        finally:
            self.state.is_transcribing = False

        text = result.get("transcription", "")
        return self.send_message(text) if text.strip() else None

    def handle_file(self, name: str, data: bytes, mime_type: str) -> Optional[ChatMessage]:
        check = validate_file(mime_type, len(data), self.config.max_file_size_mb)
        if not check.valid:
            self.state.error = check.error
            return None

        kind = file_kind(mime_type)
        try:
            if kind == "image":
                return self._process_image(name, data, mime_type)
            if kind == "audio":
                return self._process_audio(name, data, mime_type)
            return self._process_document(name, data, mime_type)
        except ApiError as e:
            self.state.error = f"Error procesando {name}"
            logger.warning("Processing %s failed: %s", name, e)
            return None

    def _process_image(self, name: str, data: bytes, mime_type: str) -> ChatMessage:
        model = self.state.current_model
        result = self.api.vision(
            image_base64=to_data_url(data, mime_type),
            provider="gemini" if model == "auto" else model,
            conversation_id=self.conversation_id,
        )
        message = ChatMessage(
            id=result.get("message_id") or local_id("vision"),
            sender="bot",
            content=result.get("analysis") or "No se pudo analizar la imagen",
            type="vision_analysis",
            metadata={"model_used": result.get("model_used"), "file_name": name},
        )
        self.messages.append(message)
        return message

    def _process_audio(self, name: str, data: bytes, mime_type: str) -> Optional[ChatMessage]:
        result = self.api.transcribe(
            to_data_url(data, mime_type),
            mime_type,
            provider=self.state.current_model,
            conversation_id=self.conversation_id,
        )
        transcription = result.get("transcription") or "No se pudo transcribir el audio"
        return self.send_message(f"[Audio subido: {name}]\n\nTranscripción: {transcription}")

    def _process_document(self, name: str, data: bytes, mime_type: str) -> ChatMessage:
        result = self.api.upload(
            base64.b64encode(data).decode("ascii"),
            name,
            mime_type,
            conversation_id=self.conversation_id,
        )
        message = ChatMessage(
            sender="user",
            content=DOCUMENT_NOTICE.format(name=name),
            type="file",
            attachments=[
                {
                    "kind": result.get("kind", "file"),
                    "storage_path": result.get("storage_path"),
                    "url": result.get("public_url"),
                    "mime_type": mime_type,
                    "size_bytes": result.get("file_size", len(data)),
                    "name": name,
                }
            ],
        )
        self.messages.append(message)
        return message

    # Realtime

    def start_realtime(self) -> Optional[RealtimeFeed]:
        """Follow the current conversation's channel, replacing a feed for an older one."""
        if self.conversation_id is None:
            return None
        if self.feed is not None and self.feed.conversation_id != self.conversation_id:
            self.feed.stop()
            self.feed = None
        if self.feed is None:
            self.feed = RealtimeFeed(self.api, self.conversation_id)
        return self.feed.start()

    def stop_realtime(self) -> None:
        if self.feed is not None:
            self.feed.stop()
            self.feed = None

    def sync_realtime(self) -> int:
        """Apply queued channel events; returns how many were applied."""
        if self.feed is None:
            return 0
        events = self.feed.drain()
        for event in events:
            self.apply_realtime_event(event)
        return len(events)

    def apply_realtime_event(self, event: Dict[str, Any]) -> None:
        """Apply one ``{"event", "payload"}`` frame from the conversation channel."""
        name = event.get("event")
        payload = event.get("payload") or {}
        if name == "typing":
            # The widget only shows the other side typing
            if payload.get("sender") != "user":
                self.state.is_typing = bool(payload.get("typing"))
        elif name == "takeover_change":
            if "bot_paused" in payload:
                self.state.bot_paused = bool(payload["bot_paused"])
            else:
                self.state.bot_paused = payload.get("action") == "start"
        elif name == "admin_message":
            message_id = str(payload.get("message_id") or local_id("admin"))
            if self.find_message(message_id) is None:
                self.messages.append(
                    ChatMessage(
                        id=message_id,
                        sender="admin",
                        content=payload.get("content", ""),
                        metadata={"admin_id": payload.get("admin_id")},
                    )
                )
        else:
            logger.debug("Ignoring realtime event %s", name)
