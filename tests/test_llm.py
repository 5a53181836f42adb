"""Provider selection and per-provider request shaping."""
import pytest

from infra.llm.base import Capability, ChatRole, ChatTurn, ProviderName
from infra.llm.gemini import SYSTEM_ACK, build_gemini_contents
from infra.llm.minimax import build_minimax_messages
from infra.llm.registry import NoProviderAvailable, ProviderRegistry


class StubProvider:
    def __init__(self, name):
        self.name = name


GEMINI = StubProvider(ProviderName.GEMINI)
MINIMAX = StubProvider(ProviderName.MINIMAX)


class TestProviderRegistry:
    def test_explicit_provider_wins(self):
        registry = ProviderRegistry.from_clients(gemini=GEMINI, minimax=MINIMAX)

        assert registry.select("minimax", Capability.TEXT) is MINIMAX

    def test_auto_uses_best_provider_per_capability(self):
        registry = ProviderRegistry.from_clients(gemini=GEMINI, minimax=MINIMAX)

        assert registry.select("auto", Capability.TEXT) is GEMINI
        assert registry.select("auto", Capability.VISION) is GEMINI
        assert registry.select("auto", Capability.AUDIO) is MINIMAX

    def test_falls_back_when_requested_provider_missing(self):
        registry = ProviderRegistry.from_clients(gemini=None, minimax=MINIMAX)

        assert registry.select("gemini", Capability.TEXT) is MINIMAX
        assert registry.available == [ProviderName.MINIMAX]

    def test_unknown_name_is_treated_as_auto(self):
        registry = ProviderRegistry.from_clients(gemini=GEMINI)

        assert registry.select("gpt-9", Capability.TEXT) is GEMINI
        assert registry.select(None, Capability.TEXT) is GEMINI

    def test_empty_registry(self):
        with pytest.raises(NoProviderAvailable):
            ProviderRegistry().select("auto", Capability.TEXT)


def conversation(n):
    turns = []
    for i in range(n):
        role = ChatRole.USER if i % 2 == 0 else ChatRole.ASSISTANT
        turns.append(ChatTurn(role, f"turno {i}"))
    turns.append(ChatTurn(ChatRole.USER, "actual"))
    return turns


class TestGeminiContents:
    def test_system_prompt_then_acknowledgement(self):
        contents = build_gemini_contents("Sistema", conversation(2))

        assert contents[0] == {"role": "user", "parts": [{"text": "Sistema"}]}
        assert contents[1] == {"role": "model", "parts": [{"text": SYSTEM_ACK}]}
        assert [c["role"] for c in contents[2:]] == ["user", "model", "user"]

    def test_history_window_keeps_last_ten_turns(self):
        contents = build_gemini_contents("Sistema", conversation(15))

        texts = [c["parts"][0]["text"] for c in contents[2:]]
        assert len(texts) == 11
        assert texts[0] == "turno 5"
        assert texts[-1] == "actual"


class TestMiniMaxMessages:
    def test_roles_and_window(self):
        messages = build_minimax_messages("Sistema", conversation(12))

        assert messages[0] == {"role": "system", "content": "Sistema"}
        assert len(messages) == 12
        assert messages[1]["content"] == "turno 2"
        assert messages[-1] == {"role": "user", "content": "actual"}

    def test_system_turns_are_skipped(self):
        turns = [ChatTurn(ChatRole.SYSTEM, "ignorar"), ChatTurn(ChatRole.USER, "hola")]

        messages = build_minimax_messages("Sistema", turns)

        assert [m["content"] for m in messages] == ["Sistema", "hola"]
