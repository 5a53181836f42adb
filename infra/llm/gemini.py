"""Google Gemini adapter over the public REST API."""
from __future__ import annotations

import base64
from typing import AsyncIterator

import httpx
import structlog

from infra.llm.base import (
    ChatRole,
    ChatTurn,
    GenerationOptions,
    ProviderError,
    ProviderName,
    iter_sse_data,
    raise_for_provider,
)

logger = structlog.get_logger("chatdesk.llm.gemini")

SYSTEM_ACK = "Entendido. Estoy listo para ayudarte."
TRANSCRIBE_PROMPT = (
    "Transcribe este audio a texto en español. "
    "Devuelve solo el texto transcrito sin comentarios adicionales."
)
HISTORY_WINDOW = 10


def build_gemini_contents(system_prompt: str, turns: list[ChatTurn]) -> list[dict]:
    """System prompt as a user turn, an acknowledgement, then the conversation.

    ``turns`` ends with the current user message; only the ten turns before it are kept.
    """
    contents = [
        {"role": "user", "parts": [{"text": system_prompt}]},
        {"role": "model", "parts": [{"text": SYSTEM_ACK}]},
    ]
    history, current = turns[:-1], turns[-1:]
    for turn in history[-HISTORY_WINDOW:] + current:
        if turn.role == ChatRole.SYSTEM:
            continue
        role = "model" if turn.role == ChatRole.ASSISTANT else "user"
        contents.append({"role": role, "parts": [{"text": turn.content}]})
    return contents


def _first_text(data: dict) -> str:
    candidates = data.get("candidates") or []
    if not candidates:
        return ""
    parts = (candidates[0].get("content") or {}).get("parts") or []
    return "".join(part.get("text", "") for part in parts)


class GeminiClient:
    name = ProviderName.GEMINI

    def __init__(
        self,
        http: httpx.AsyncClient,
        api_key: str,
        base_url: str,
        text_model: str,
        vision_model: str,
    ):
        self.http = http
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.text_model = text_model
        self.vision_model = vision_model

    def _url(self, model: str, method: str) -> str:
        return f"{self.base_url}/models/{model}:{method}"

    async def _post(self, model: str, body: dict) -> dict:
        try:
            response = await self.http.post(
                self._url(model, "generateContent"),
                params={"key": self.api_key},
                json=body,
            )
        except httpx.HTTPError as e:
            raise ProviderError(self.name.value, str(e)) from e
        raise_for_provider(self.name, response)
        return response.json()

    async def generate(
        self, system_prompt: str, turns: list[ChatTurn], options: GenerationOptions
    ) -> str:
        body = {
            "contents": build_gemini_contents(system_prompt, turns),
            "generationConfig": {
                "temperature": options.temperature,
                "maxOutputTokens": options.max_tokens,
            },
        }
        data = await self._post(self.text_model, body)
        return _first_text(data) or "No se pudo generar respuesta"

    async def stream(
        self, system_prompt: str, turns: list[ChatTurn], options: GenerationOptions
    ) -> AsyncIterator[str]:
        body = {
            "contents": build_gemini_contents(system_prompt, turns),
            "generationConfig": {
                "temperature": options.temperature,
                "maxOutputTokens": options.max_tokens,
            },
        }
        try:
            async with self.http.stream(
                "POST",
                self._url(self.text_model, "streamGenerateContent"),
                params={"key": self.api_key, "alt": "sse"},
                json=body,
            ) as response:
                if not response.is_success:
                    await response.aread()
                    raise_for_provider(self.name, response)
                async for data in iter_sse_data(response):
                    text = _first_text(data)
                    if text:
                        yield text
        except httpx.HTTPError as e:
            raise ProviderError(self.name.value, str(e)) from e

    async def transcribe(self, audio: bytes, mime_type: str) -> str:
        body = {
            "contents": [
                {
                    "parts": [
                        {"text": TRANSCRIBE_PROMPT},
                        {
                            "inline_data": {
                                "mime_type": mime_type,
                                "data": base64.b64encode(audio).decode("ascii"),
                            }
                        },
                    ]
                }
            ],
            "generationConfig": {"temperature": 0.1, "maxOutputTokens": 1000},
        }
        data = await self._post(self.text_model, body)
        return _first_text(data).strip() or "No se pudo transcribir el audio"

    async def describe_image(self, image_b64: str, mime_type: str, prompt: str) -> str:
        body = {
            "contents": [
                {
                    "parts": [
                        {"text": prompt},
                        {"inline_data": {"mime_type": mime_type, "data": image_b64}},
                    ]
                }
            ],
            "generationConfig": {"temperature": 0.4, "maxOutputTokens": 2000},
        }
        data = await self._post(self.vision_model, body)
        text = _first_text(data)
        if not text:
            logger.warning("Gemini returned no analysis", model=self.vision_model)
        return text or "No se pudo analizar la imagen"
