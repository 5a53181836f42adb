"""Chat widget state machine driven by a fake API."""
import threading

import pytest

from client.api import ApiError
from client.session import DOCUMENT_NOTICE, ChatWidgetSession, RealtimeFeed
from client.state import DEFAULT_WELCOME_MESSAGE, Feature, WidgetConfig


class FakeApi:
    def __init__(self):
        self.conversations = []
        self.messages = []
        self.frames = [
            {"content": "Hola", "done": False},
            {"content": " humano", "done": False},
            {"content": "", "done": True, "message_id": "bot-1", "provider": "gemini"},
        ]
        self.chat_error = None
        self.calls = []
        self.events = []
        self.events_delivered = threading.Event()

    def list_conversations(self, limit=50):
        return self.conversations

    def get_messages(self, conversation_id, limit=50):
        return self.messages

    def create_conversation(self, title=None):
        return {"id": "conv-new", "bot_paused": False}

    def chat_stream(self, conversation_id, message, **kwargs):
        self.calls.append(("chat", message, kwargs))
        if self.chat_error:
            raise self.chat_error
        yield from self.frames

    def conversation_events(self, conversation_id):
        self.calls.append(("events", conversation_id))
        yield from self.events
        self.events_delivered.set()

    def transcribe(self, audio_data, mime_type, **kwargs):
        self.calls.append(("transcribe", mime_type, kwargs))
        return {"transcription": "quiero ayuda"}

    def vision(self, **kwargs):
        self.calls.append(("vision", kwargs))
        return {"analysis": "Un gato", "model_used": "gemini", "message_id": "vision-1"}

    def upload(self, file_data, file_name, mime_type, **kwargs):
        self.calls.append(("upload", file_name, kwargs))
        return {
            "public_url": "http://minio/x.pdf",
            "storage_path": "u/x.pdf",
            "file_size": 3,
            "kind": "file",
        }


@pytest.fixture
def api():
    return FakeApi()


@pytest.fixture
def session(api):
    widget = ChatWidgetSession(api, WidgetConfig(default_model="auto"))
    widget.load_or_create_conversation()
    return widget


class TestConversationLifecycle:
    def test_new_conversation_gets_welcome_message(self, session):
        assert session.conversation_id == "conv-new"
        assert session.state.is_connected
        assert [m.id for m in session.messages] == ["welcome"]
        assert session.messages[0].content == DEFAULT_WELCOME_MESSAGE

    def test_resumes_latest_conversation(self, api):
        api.conversations = [{"id": "conv-1", "bot_paused": True}]
        api.messages = [{"id": "m1", "sender": "user", "content": "hola"}]

        widget = ChatWidgetSession(api)
        widget.load_or_create_conversation()

        assert widget.conversation_id == "conv-1"
        assert widget.state.bot_paused
        assert [m.content for m in widget.messages] == ["hola"]

    def test_toggle(self, session):
        assert session.toggle() is True
        assert session.toggle() is False


class TestSendMessage:
    def test_streams_reply_into_bot_message(self, session, api):
        reply = session.send_message("  hola  ")

        user_message = session.messages[-2]
        assert user_message.content == "hola"
        assert user_message.status == "sent"
        assert reply.content == "Hola humano"
        assert reply.status == "sent"
        assert reply.id == "bot-1"
        assert reply.metadata["provider"] == "gemini"
        assert not session.state.is_thinking
        assert api.calls[0][2]["use_rag"] is True

    def test_rag_follows_feature_flags(self, api):
        widget = ChatWidgetSession(api, WidgetConfig(features=frozenset({Feature.AUDIO})))
        widget.start_new_conversation()

        widget.send_message("hola")

        assert api.calls[0][2]["use_rag"] is False

    def test_blank_message_is_ignored(self, session, api):
        assert session.send_message("   ") is None
        assert api.calls == []

    def test_error_frame(self, session, api):
        api.frames = [{"error": "Gemini caído", "done": True}]

        reply = session.send_message("hola")

        assert reply.status == "error"
        assert reply.content == "Error: Gemini caído"

    def test_stream_without_done_frame(self, session, api):
        api.frames = []

        reply = session.send_message("hola")

        assert reply.status == "error"
        assert reply.content == "Error de conexión. Inténtalo de nuevo."

    def test_paused_bot(self, session, api):
        api.chat_error = ApiError("BOT_PAUSED", "Un agente responderá", 423)

        reply = session.send_message("hola")

        assert session.state.bot_paused
        assert session.state.error == "Un agente responderá"
        assert reply.status == "error"
        assert session.messages[-2].status == "error"

    def test_reply_is_rendered_per_chunk(self, session):
        rendered = []

        session.send_message("hola", on_delta=rendered.append)

        assert rendered == ["Hola", "Hola humano"]

    def test_connection_lost_mid_reply(self, session, api):
        def dropped(conversation_id, message, **kwargs):
            yield {"content": "Hola", "done": False}
            raise ApiError("NETWORK_ERROR", "Connection broken")

        api.chat_stream = dropped

        reply = session.send_message("hola")

        assert reply.status == "error"
        assert reply.content == "Connection broken"
        assert not session.state.is_thinking


class TestMedia:
    def test_audio_is_transcribed_then_sent(self, session, api):
        session.handle_audio(b"\x00\x01", "audio/webm")

        assert api.calls[0][0] == "transcribe"
        assert api.calls[1][1] == "quiero ayuda"
        assert not session.state.is_transcribing

    def test_image_shows_vision_analysis(self, session, api):
        message = session.handle_file("gato.png", b"png", "image/png")

        assert message.type == "vision_analysis"
        assert message.content == "Un gato"
        assert api.calls[0][1]["provider"] == "gemini"

    def test_document_upload_adds_notice(self, session, api):
        message = session.handle_file("manual.pdf", b"pdf", "application/pdf")

        assert message.content == DOCUMENT_NOTICE.format(name="manual.pdf")
        assert message.attachments[0]["storage_path"] == "u/x.pdf"

    def test_audio_file_is_transcribed_into_message(self, session, api):
        session.handle_file("nota.mp3", b"mp3", "audio/mpeg")

        sent = api.calls[-1][1]
        assert sent.startswith("[Audio subido: nota.mp3]")
        assert sent.endswith("Transcripción: quiero ayuda")

    def test_invalid_file_sets_error(self, session, api):
        assert session.handle_file("x.zip", b"zip", "application/zip") is None
        assert "no permitido" in session.state.error
        assert api.calls == []


class TestRealtimeEvents:
    def test_takeover_change(self, session):
        session.apply_realtime_event({"event": "takeover_change", "payload": {"bot_paused": True}})
        assert session.state.bot_paused

        session.apply_realtime_event({"event": "takeover_change", "payload": {"action": "end"}})
        assert not session.state.bot_paused

    def test_admin_message_is_appended_once(self, session):
        event = {"event": "admin_message", "payload": {"message_id": "a1", "content": "Hola, soy Ana"}}

        session.apply_realtime_event(event)
        session.apply_realtime_event(event)

        assert [m.id for m in session.messages].count("a1") == 1
        assert session.messages[-1].sender == "admin"

    def test_typing(self, session):
        session.apply_realtime_event({"event": "typing", "payload": {"typing": True}})

        assert session.state.is_typing

    def test_own_typing_is_ignored(self, session):
        session.apply_realtime_event(
            {"event": "typing", "payload": {"typing": True, "sender": "user"}}
        )

        assert not session.state.is_typing


class TestRealtimeFeed:
    def test_queued_events_are_applied(self, session, api):
        api.events = [
            {"event": "typing", "payload": {"typing": True, "sender": "admin"}},
            {"event": "admin_message", "payload": {"message_id": "a1", "content": "Hola"}},
        ]

        feed = session.start_realtime()
        assert api.events_delivered.wait(2)

        assert session.sync_realtime() == 2
        assert session.state.is_typing
        assert session.messages[-1].id == "a1"
        assert ("events", "conv-new") in api.calls

        session.stop_realtime()
        feed.join(2)
        assert not feed.running

    def test_changing_conversation_replaces_feed(self, session):
        first = session.start_realtime()
        session.conversation = {"id": "conv-2", "bot_paused": False}

        second = session.start_realtime()

        assert second is not first
        assert second.conversation_id == "conv-2"
        first.join(2)
        assert not first.running
        session.stop_realtime()

    def test_stream_errors_do_not_stop_the_feed(self, api):
        attempts = threading.Event()

        def failing(conversation_id):
            attempts.set()
            raise ApiError("NETWORK_ERROR", "refused")

        api.conversation_events = failing
        feed = RealtimeFeed(api, "conv-1", retry_seconds=0.01).start()

        assert attempts.wait(2)
        assert feed.running
        feed.stop()
        feed.join(2)
        assert feed.drain() == []

    def test_sync_without_feed(self, session):
        assert session.sync_realtime() == 0
