"""Which providers are configured, and which one serves a request."""
from __future__ import annotations

from typing import Dict, Optional

import structlog

from core.settings import Settings
from infra.llm.base import Capability, LLMProvider, ProviderName
from infra.llm.gemini import GeminiClient
from infra.llm.minimax import MiniMaxClient
from infra.resources import HttpClientResource

logger = structlog.get_logger("chatdesk.llm")

# Preferred provider per capability when the caller asks for "auto".
BEST_PROVIDER = {
    Capability.TEXT: ProviderName.GEMINI,
    Capability.VISION: ProviderName.GEMINI,
    Capability.AUDIO: ProviderName.MINIMAX,
}


class NoProviderAvailable(Exception):
    pass


class ProviderRegistry:
    def __init__(self, providers: Optional[Dict[ProviderName, LLMProvider]] = None):
        self._providers: Dict[ProviderName, LLMProvider] = dict(providers or {})

    @classmethod
    def from_clients(cls, **clients: Optional[LLMProvider]) -> "ProviderRegistry":
        """Build from keyword clients; ``None`` marks a provider without an API key."""
        return cls(
            {ProviderName(name): client for name, client in clients.items() if client}
        )

    @property
    def available(self) -> list[ProviderName]:
        return list(self._providers)

    def is_available(self, name: ProviderName) -> bool:
        return name in self._providers

    def get(self, name: ProviderName) -> LLMProvider:
        try:
            return self._providers[name]
        except KeyError:
            raise NoProviderAvailable(f"Provider '{name.value}' is not configured")

    def select(
        self, requested: str | ProviderName | None, capability: Capability
    ) -> LLMProvider:
        """Resolve the provider that should serve a request.

        An explicitly requested provider is used when configured; otherwise, and for
        ``auto``, the preferred provider for ``capability`` is tried first, then any
        other configured provider.
        """
        if not self._providers:
            raise NoProviderAvailable("No LLM providers are configured")

        try:
            wanted = ProviderName(requested or ProviderName.AUTO)
        except ValueError:
            wanted = ProviderName.AUTO

        if wanted != ProviderName.AUTO and wanted in self._providers:
            return self._providers[wanted]

        preferred = BEST_PROVIDER[capability]
        if preferred in self._providers:
            return self._providers[preferred]
        return next(iter(self._providers.values()))


def build_provider_registry(http: HttpClientResource, settings: Settings) -> ProviderRegistry:
    """Register every provider that has an API key configured."""
    client = http.get_client()
    gemini_key = settings.GEMINI.GEMINI_API_KEY.get_secret_value()
    minimax_key = settings.MINIMAX.MINIMAX_API_KEY.get_secret_value()

    gemini = (
        GeminiClient(
            client,
            api_key=gemini_key,
            base_url=settings.GEMINI.GEMINI_BASE_URL,
            text_model=settings.GEMINI.GEMINI_TEXT_MODEL,
            vision_model=settings.GEMINI.GEMINI_VISION_MODEL,
        )
        if gemini_key
        else None
    )
    minimax = (
        MiniMaxClient(
            client,
            api_key=minimax_key,
            base_url=settings.MINIMAX.MINIMAX_BASE_URL,
            text_model=settings.MINIMAX.MINIMAX_TEXT_MODEL,
            vision_model=settings.MINIMAX.MINIMAX_VISION_MODEL,
            speech_model=settings.MINIMAX.MINIMAX_SPEECH_MODEL,
            language=settings.GENERATION.TRANSCRIPTION_LANGUAGE,
        )
        if minimax_key
        else None
    )
    registry = ProviderRegistry.from_clients(gemini=gemini, minimax=minimax)
    logger.info("LLM providers configured", providers=[p.value for p in registry.available])
    return registry
