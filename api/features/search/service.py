"""Semantic search over document chunks."""
import logging
import time

from openai import OpenAIError
from sqlalchemy.ext.asyncio import AsyncSession

from api.features.conversation.repository import ConversationRepository
from api.features.documents.repositories.document_repository import DocumentRepository
from api.features.search.dtos import (
    RagSearchRequest,
    RagSearchResponse,
    SearchHit,
    SearchParams,
)
from api.shared.auth import AuthenticatedUser
from api.shared.exceptions import ExternalServiceError, NotFoundError
from api.shared.utils import elapsed_ms
from infra.events.recorder import record_event
from infra.llm.embeddings import EmbeddingClient

logger = logging.getLogger("chatdesk.search.service")


class SearchService:
    def __init__(self, embeddings: EmbeddingClient):
        self.embeddings = embeddings

    async def search(
        self, request: RagSearchRequest, user: AuthenticatedUser, *, db_session: AsyncSession
    ) -> RagSearchResponse:
        if not self.embeddings.configured:
            raise ExternalServiceError("embeddings", "Embedding provider is not configured")

        conversation = None
        if request.conversation_id:
            conversation = await ConversationRepository(db_session).get_for_user(
                request.conversation_id, None if user.is_admin else user.id
            )
            if conversation is None:
                raise NotFoundError("Conversation", request.conversation_id)

        start = time.perf_counter()
        try:
            query_embedding = await self.embeddings.embed_query(request.query)
        except OpenAIError as e:
            raise ExternalServiceError("embeddings", str(e)) from e

        repository = DocumentRepository(db_session)
        matches = await repository.search_similar(
            query_embedding,
            threshold=request.threshold,
            match_count=request.limit,
            visible_to=None if user.is_admin else user.id,
        )
        documents = await repository.get_many([m["id"] for m in matches])

        # Rows deleted between the search and the lookup are dropped.
        hits = []
        for match in matches:
            doc = documents.get(str(match["id"]))
            if doc is None or not doc.readable_by(user.id, user.is_admin):
                continue
            hits.append(
                SearchHit(
                    id=str(match["id"]),
                    title=match["title"],
                    content=match["content"],
                    similarity=float(match["similarity"]),
                    metadata=doc.metadata_ or {},
                    tags=doc.tags or [],
                    chunk_index=doc.chunk_index,
                    total_chunks=doc.total_chunks,
                    mime_type=doc.mime_type,
                    created_at=doc.created_at,
                )
            )
        processing_time = elapsed_ms(start)

        if conversation is not None:
            avg_similarity = (
                sum(h.similarity for h in hits) / len(hits) if hits else 0.0
            )
            await record_event(
                db_session,
                event_type="rag_search",
                user_id=user.id,
                conversation_id=conversation.id,
                payload={
                    "query": request.query,
                    "threshold": request.threshold,
                    "limit": request.limit,
                    "results_count": len(hits),
                    "processing_time_ms": processing_time,
                    "avg_similarity": avg_similarity,
                },
            )
            await db_session.commit()

        logger.info("RAG search returned %d results in %dms", len(hits), processing_time)
        return RagSearchResponse(
            query=request.query,
            results=hits,
            total_results=len(hits),
            processing_time=processing_time,
            search_params=SearchParams(threshold=request.threshold, limit=request.limit),
        )
