"""Provider-neutral types shared by the LLM HTTP adapters."""
from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from typing import AsyncIterator, Optional, Protocol

import httpx


class ProviderName(str, Enum):
    MINIMAX = "minimax"
    GEMINI = "gemini"
    AUTO = "auto"


class Capability(str, Enum):
    TEXT = "text"
    VISION = "vision"
    AUDIO = "audio"


class ChatRole(str, Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True)
class ChatTurn:
    role: ChatRole
    content: str


@dataclass
class GenerationOptions:
    temperature: float = 0.7
    max_tokens: int = 4000


class ProviderError(Exception):
    """Raised by adapters when a provider call fails."""

    def __init__(self, provider: str, message: str, status_code: Optional[int] = None):
        self.provider = provider
        self.status_code = status_code
        super().__init__(f"{provider}: {message}")


class LLMProvider(Protocol):
    name: ProviderName

    async def generate(
        self, system_prompt: str, turns: list[ChatTurn], options: GenerationOptions
    ) -> str: ...

    def stream(
        self, system_prompt: str, turns: list[ChatTurn], options: GenerationOptions
    ) -> AsyncIterator[str]: ...

    async def transcribe(self, audio: bytes, mime_type: str) -> str: ...

    async def describe_image(
        self, image_b64: str, mime_type: str, prompt: str
    ) -> str: ...


async def iter_sse_data(response: httpx.Response) -> AsyncIterator[dict]:
    """Yield decoded JSON payloads from ``data:`` lines of an SSE response."""
    async for line in response.aiter_lines():
        line = line.strip()
        if not line.startswith("data:"):
            continue
        raw = line[len("data:"):].strip()
        if not raw or raw == "[DONE]":
            continue
        try:
            yield json.loads(raw)
        except ValueError:
            continue


def raise_for_provider(provider: ProviderName, response: httpx.Response) -> None:
    if response.is_success:
        return
    try:
        detail = response.json()
    except ValueError:
        detail = response.text
    raise ProviderError(
        provider.value, f"HTTP {response.status_code}: {detail}", response.status_code
    )
