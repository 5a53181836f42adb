import pytest

from client.admin import (
    AdminConsole,
    AdminSettings,
    filter_conversations,
    filter_documents,
    format_duration,
    format_number,
)
from client.api import ApiError

CONVERSATIONS = [
    {"id": "aaa-111", "title": "Pedido retrasado", "status": "active", "bot_paused": False},
    {"id": "bbb-222", "title": "Factura", "status": "active", "bot_paused": True},
    {"id": "ccc-333", "title": None, "status": "closed", "bot_paused": False},
]

DOCUMENTS = [
    {"id": "d1", "title": "Manual de usuario", "content": "Cómo instalar", "mime_type": "application/pdf"},
    {"id": "d2", "title": "Precios", "content": "Tarifas 2025 del MANUAL", "mime_type": "text/plain"},
]


class TestFormatting:
    @pytest.mark.parametrize(
        "value, text",
        [(0, "0"), (999, "999"), (1000, "1.0K"), (15300, "15.3K"), (2_500_000, "2.5M")],
    )
    def test_format_number(self, value, text):
        assert format_number(value) == text

    @pytest.mark.parametrize(
        "ms, text", [(0, "0 ms"), (850, "850 ms"), (1500, "1.5 s"), (125_000, "2m 5s")]
    )
    def test_format_duration(self, ms, text):
        assert format_duration(ms) == text


class TestFilters:
    def test_search_matches_title_case_insensitively(self):
        assert [c["id"] for c in filter_conversations(CONVERSATIONS, "FACTURA")] == ["bbb-222"]

    def test_search_matches_id(self):
        assert [c["id"] for c in filter_conversations(CONVERSATIONS, "333")] == ["ccc-333"]

    def test_paused_status_means_bot_paused(self):
        assert [c["id"] for c in filter_conversations(CONVERSATIONS, status="paused")] == ["bbb-222"]

    def test_plain_status(self):
        assert [c["id"] for c in filter_conversations(CONVERSATIONS, status="closed")] == ["ccc-333"]

    def test_documents_by_title_or_content(self):
        assert [d["id"] for d in filter_documents(DOCUMENTS, "manual")] == ["d1", "d2"]

    def test_documents_by_mime_type(self):
        assert [d["id"] for d in filter_documents(DOCUMENTS, "manual", "text/plain")] == ["d2"]


class FakeApi:
    def __init__(self):
        self.takeovers = []
        self.calls = []
        self.post_error = None

    def takeover(self, conversation_id, action, **kwargs):
        self.takeovers.append((conversation_id, action, kwargs))
        return {"action": action}

    def send_typing(self, conversation_id, typing=True):
        self.calls.append(("typing", conversation_id, typing))

    def post_admin_message(self, conversation_id, content):
        self.calls.append(("message", conversation_id, content))
        if self.post_error:
            raise self.post_error
        return {"id": "a1", "content": content}

    def analytics(self):
        return {
            "provider_usage": [
                {"provider": "gemini", "count": 3, "percentage": 75.0},
                {"provider": "minimax", "count": 1, "percentage": 25.0},
            ],
            "total_bot_messages": 4,
            "average_processing_time_ms": 1234.0,
            "total_tokens_estimated": 4200,
        }

    def admin_conversations(self, limit=50):
        return CONVERSATIONS

    def list_documents(self, limit=20):
        return {"documents": DOCUMENTS, "pagination": {}}


class TestAdminConsole:
    def test_toggle_bot_uses_takeover_actions(self):
        api = FakeApi()
        console = AdminConsole(api)

        console.set_bot_paused("c1", True)
        console.set_bot_paused("c1", False)
        console.start_takeover("c1", reason="Escalado")

        assert [t[1] for t in api.takeovers] == ["pause_bot", "resume_bot", "start"]
        assert api.takeovers[2][2]["reason"] == "Escalado"

    def test_analytics_summary(self):
        summary = AdminConsole(FakeApi()).analytics_summary()

        assert summary == {
            "gemini_usage": "75%",
            "minimax_usage": "25%",
            "avg_response_time": "1.2 s",
            "total_tokens": "4.2K",
            "bot_messages": "4",
        }

    def test_loaded_views(self):
        console = AdminConsole(FakeApi())
        console.load_conversations()
        console.load_documents()

        assert len(console.conversations_view(status="paused")) == 1
        assert len(console.documents_view(mime_type="application/pdf")) == 1

    def test_reply_is_wrapped_in_typing_indicator(self):
        api = FakeApi()

        AdminConsole(api).reply("c1", "Hola, soy Ana")

        assert api.calls == [
            ("typing", "c1", True),
            ("message", "c1", "Hola, soy Ana"),
            ("typing", "c1", False),
        ]

    def test_typing_is_cleared_when_reply_fails(self):
        api = FakeApi()
        api.post_error = ApiError("CONVERSATION_NOT_FOUND", "gone", 404)

        with pytest.raises(ApiError):
            AdminConsole(api).reply("c1", "Hola")

        assert api.calls[-1] == ("typing", "c1", False)


class TestAdminSettings:
    def test_defaults_when_file_missing(self, tmp_path):
        settings = AdminSettings.load(tmp_path / "missing.json")

        assert settings.max_tokens == 4000
        assert settings.temperature == 0.7

    def test_save_and_load(self, tmp_path):
        path = tmp_path / "nested" / "admin.json"

        AdminSettings(max_tokens=1000, temperature=0.2, rag_threshold=0.5, rag_max_results=3).save(path)

        loaded = AdminSettings.load(path)
        assert loaded.max_tokens == 1000
        assert loaded.rag_max_results == 3

    def test_invalid_file_falls_back_to_defaults(self, tmp_path):
        path = tmp_path / "admin.json"
        path.write_text('{"temperature": 9}', encoding="utf-8")

        assert AdminSettings.load(path).temperature == 0.7
