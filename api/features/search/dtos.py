from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import Field

from api.shared.dtos import BaseDTO, EntityId, RequestDTO
from core.settings import SETTINGS


class RagSearchRequest(RequestDTO):
    query: str = Field(min_length=1)
    limit: int = Field(default=SETTINGS.RAG.RAG_SEARCH_LIMIT, ge=1, le=50)
    threshold: float = Field(default=SETTINGS.RAG.RAG_MATCH_THRESHOLD, ge=0.0, le=1.0)
    conversation_id: Optional[EntityId] = None


class SearchHit(BaseDTO):
    id: str
    title: str
    content: str
    similarity: float
    metadata: Dict[str, Any] = Field(default_factory=dict)
    tags: List[str] = Field(default_factory=list)
    chunk_index: int = 0
    total_chunks: int = 1
    mime_type: Optional[str] = None
    created_at: Optional[datetime] = None


class SearchParams(BaseDTO):
    threshold: float
    limit: int


class RagSearchResponse(BaseDTO):
    query: str
    results: List[SearchHit]
    total_results: int
    processing_time: int
    search_params: SearchParams
