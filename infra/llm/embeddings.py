"""Query and chunk embeddings through LangChain's OpenAI wrapper."""
from __future__ import annotations

from typing import List, Optional

from langchain_openai import OpenAIEmbeddings


class EmbeddingClient:
    def __init__(self, api_key: str, model: str = "text-embedding-ada-002"):
        self.model = model
        self._api_key = api_key
        self._embeddings: Optional[OpenAIEmbeddings] = None

    @property
    def configured(self) -> bool:
        return bool(self._api_key)

    def _client(self) -> OpenAIEmbeddings:
        if self._embeddings is None:
            self._embeddings = OpenAIEmbeddings(model=self.model, api_key=self._api_key)
        return self._embeddings

    async def embed_query(self, text: str) -> List[float]:
        return await self._client().aembed_query(text)


def to_pgvector_literal(embedding: List[float]) -> str:
    """Text form accepted by ``CAST(:x AS vector)``."""
    return "[" + ",".join(f"{value:.8f}" for value in embedding) + "]"
