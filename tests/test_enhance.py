from unittest.mock import AsyncMock, MagicMock

import pytest
from pydantic import ValidationError as RequestValidationError

from api.features.enhance import service as enhance_module
from api.features.enhance.dtos import EnhanceRequest, EnhanceStyle
from api.features.enhance.metrics import calculate_text_diff, calculate_text_metrics
from api.features.enhance.prompts import (
    STYLE_PROMPTS,
    build_enhancement_prompt,
    intensity_level,
)
from api.features.enhance.service import EnhanceService
from api.shared.exceptions import NotFoundError
from infra.llm.base import ProviderName
from infra.llm.registry import ProviderRegistry


class TestIntensity:
    @pytest.mark.parametrize(
        "intensity, level",
        [(0, "low"), (33, "low"), (34, "medium"), (66, "medium"), (67, "high"), (100, "high")],
    )
    def test_levels(self, intensity, level):
        assert intensity_level(intensity) == level

    def test_prompt_contains_instruction_and_text(self):
        prompt = build_enhancement_prompt("hola, necesito ayuda", EnhanceStyle.FORMAL, 80)

        assert STYLE_PROMPTS[EnhanceStyle.FORMAL]["high"] in prompt
        assert '"hola, necesito ayuda"' in prompt
        assert prompt.endswith("Texto mejorado:")


class TestMetrics:
    def test_diff_counts(self):
        diff = calculate_text_diff("hola amigo", "hola querido amigo mío")

        assert diff["word_changes"] == {"added": 2, "original_count": 2, "enhanced_count": 4}
        assert diff["char_changes"]["added"] == 12

    def test_metrics(self):
        metrics = calculate_text_metrics("Hola. Adiós.", "Hola a todos.")

        assert metrics["structure"] == {
            "original_sentences": 2,
            "enhanced_sentences": 1,
            "sentence_change": -1,
        }
        assert metrics["readability"]["original_avg_sentence_length"] == 6.0
        assert metrics["complexity"]["enhanced_avg_word_length"] == 3.67

    def test_empty_text_does_not_divide_by_zero(self):
        metrics = calculate_text_metrics("", "")

        assert metrics["readability"]["original_avg_sentence_length"] == 0.0
        assert metrics["complexity"]["original_avg_word_length"] == 0.0


class FakeProvider:
    name = ProviderName.MINIMAX

    def __init__(self, text):
        self.text = text
        self.prompts = []

    async def generate(self, system_prompt, turns, options):
        self.prompts.append(turns[-1].content)
        return self.text


class FakeDrafts:
    saved = []

    def __init__(self, session):
        pass

    async def create(self, draft):
        draft.id = "draft-1"
        FakeDrafts.saved.append(draft)
        return draft


class TestEnhanceService:
    @pytest.fixture(autouse=True)
    def patched(self, monkeypatch):
        FakeDrafts.saved = []
        monkeypatch.setattr(enhance_module, "DraftRepository", FakeDrafts)
        monkeypatch.setattr(enhance_module, "record_event", AsyncMock(return_value="event"))

    async def test_saves_pending_draft(self, as_admin):
        provider = FakeProvider("  Estimado cliente, con gusto le ayudo.  ")
        service = EnhanceService(ProviderRegistry({ProviderName.MINIMAX: provider}))
        db_session = AsyncMock()

        result = await service.enhance(
            EnhanceRequest(original_text="te ayudo", style="formal", intensity=50),
            as_admin,
            db_session=db_session,
        )

        assert result.draft_id == "draft-1"
        assert result.enhanced_text == "Estimado cliente, con gusto le ayudo."
        assert result.provider == "minimax"
        assert result.diff_data["word_changes"]["original_count"] == 2
        assert FakeDrafts.saved[0].created_by == as_admin.id
        assert "te ayudo" in provider.prompts[0]
        db_session.commit.assert_awaited_once()

    async def test_unknown_conversation_fails_before_generation(self, monkeypatch, as_admin):
        conversations = MagicMock()
        conversations.return_value.get_for_user = AsyncMock(return_value=None)
        monkeypatch.setattr(enhance_module, "ConversationRepository", conversations)
        provider = FakeProvider("Hola")
        service = EnhanceService(ProviderRegistry({ProviderName.MINIMAX: provider}))

        with pytest.raises(NotFoundError):
            await service.enhance(
                EnhanceRequest(
                    original_text="te ayudo",
                    conversation_id="33333333-3333-3333-3333-333333333333",
                ),
                as_admin,
                db_session=AsyncMock(),
            )

        assert provider.prompts == []
        assert FakeDrafts.saved == []

    def test_message_id_must_be_a_uuid(self):
        with pytest.raises(RequestValidationError):
            EnhanceRequest(original_text="te ayudo", original_message_id="m1")
