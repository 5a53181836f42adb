"""MiniMax adapter (OpenAI-style chat completions)."""
from __future__ import annotations

from typing import AsyncIterator

import httpx

from infra.llm.base import (
    ChatRole,
    ChatTurn,
    GenerationOptions,
    ProviderError,
    ProviderName,
    iter_sse_data,
    raise_for_provider,
)

HISTORY_WINDOW = 10


def build_minimax_messages(system_prompt: str, turns: list[ChatTurn]) -> list[dict]:
    messages = [{"role": "system", "content": system_prompt}]
    history, current = turns[:-1], turns[-1:]
    for turn in history[-HISTORY_WINDOW:] + current:
        if turn.role == ChatRole.SYSTEM:
            continue
        messages.append({"role": turn.role.value, "content": turn.content})
    return messages


class MiniMaxClient:
    name = ProviderName.MINIMAX

    def __init__(
        self,
        http: httpx.AsyncClient,
        api_key: str,
        base_url: str,
        text_model: str,
        vision_model: str,
        speech_model: str,
        language: str = "es",
    ):
        self.http = http
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.text_model = text_model
        self.vision_model = vision_model
        self.speech_model = speech_model
        self.language = language

    @property
    def _headers(self) -> dict:
        return {"Authorization": f"Bearer {self.api_key}"}

    async def _chat(self, body: dict) -> dict:
        try:
            response = await self.http.post(
                f"{self.base_url}/text/chatcompletion_v2",
                headers=self._headers,
                json=body,
            )
        except httpx.HTTPError as e:
            raise ProviderError(self.name.value, str(e)) from e
        raise_for_provider(self.name, response)
        return response.json()

    @staticmethod
    def _message_text(data: dict) -> str:
        choices = data.get("choices") or []
        if not choices:
            return ""
        return (choices[0].get("message") or {}).get("content") or ""

    async def generate(
        self, system_prompt: str, turns: list[ChatTurn], options: GenerationOptions
    ) -> str:
        data = await self._chat(
            {
                "model": self.text_model,
                "messages": build_minimax_messages(system_prompt, turns),
                "temperature": options.temperature,
                "max_tokens": options.max_tokens,
            }
        )
        return self._message_text(data) or "No se pudo generar respuesta"

    async def stream(
        self, system_prompt: str, turns: list[ChatTurn], options: GenerationOptions
    ) -> AsyncIterator[str]:
        body = {
            "model": self.text_model,
            "messages": build_minimax_messages(system_prompt, turns),
            "temperature": options.temperature,
            "max_tokens": options.max_tokens,
            "stream": True,
        }
        try:
            async with self.http.stream(
                "POST",
                f"{self.base_url}/text/chatcompletion_v2",
                headers=self._headers,
                json=body,
            ) as response:
                if not response.is_success:
                    await response.aread()
                    raise_for_provider(self.name, response)
                async for data in iter_sse_data(response):
                    choices = data.get("choices") or []
                    if not choices:
                        continue
                    text = (choices[0].get("delta") or {}).get("content")
                    if text:
                        yield text
        except httpx.HTTPError as e:
            raise ProviderError(self.name.value, str(e)) from e

    async def transcribe(self, audio: bytes, mime_type: str) -> str:
        extension = mime_type.split("/")[-1].split(";")[0] or "webm"
        try:
            response = await self.http.post(
                f"{self.base_url}/audio/transcriptions",
                headers=self._headers,
                files={"file": (f"audio.{extension}", audio, mime_type)},
                data={"model": self.speech_model, "language": self.language},
            )
        except httpx.HTTPError as e:
            raise ProviderError(self.name.value, str(e)) from e
        raise_for_provider(self.name, response)
        text = (response.json() or {}).get("text") or ""
        return text.strip() or "No se pudo transcribir el audio"

    async def describe_image(self, image_b64: str, mime_type: str, prompt: str) -> str:
        data = await self._chat(
            {
                "model": self.vision_model,
                "messages": [
                    {
                        "role": "user",
                        "content": [
                            {"type": "text", "text": prompt},
                            {
                                "type": "image_url",
                                "image_url": {
                                    "url": f"data:{mime_type};base64,{image_b64}"
                                },
                            },
                        ],
                    }
                ],
                "temperature": 0.4,
                "max_tokens": 2000,
            }
        )
        return self._message_text(data) or "No se pudo analizar la imagen"
