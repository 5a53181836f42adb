"""Document repository: chunk rows, filtered listing and vector search."""
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy import func, or_, select, text

from api.features.documents.entities.document import Document
from api.shared.base import BaseRepository
from infra.llm.embeddings import to_pgvector_literal


class DocumentRepository(BaseRepository[Document]):
    """Repository for document chunk entities with specialized queries."""

    model = Document

    async def search_similar(
        self,
        embedding: Sequence[float],
        *,
        threshold: float,
        match_count: int,
        visible_to: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """Call the ``search_documents`` SQL function created by the migrations.

        ``visible_to`` limits matches to public chunks plus that user's own; None matches all.
        """
        sql = text(
            """
            SELECT id::text AS id, title, content, similarity
            FROM search_documents(
                CAST(:embedding AS vector), :threshold, :match_count, CAST(:viewer AS uuid)
            )
            """
        )
        result = await self.session.execute(
            sql,
            {
                "embedding": to_pgvector_literal(list(embedding)),
                "threshold": threshold,
                "match_count": match_count,
                "viewer": visible_to,
            },
        )
        return [dict(row) for row in result.mappings().all()]

    async def get_many(self, ids: Sequence[str]) -> Dict[str, Document]:
        if not ids:
            return {}
        result = await self.session.execute(
            select(Document).where(Document.id.in_([str(i) for i in ids]))
        )
        return {str(doc.id): doc for doc in result.scalars().all()}

    async def list_filtered(
        self,
        *,
        offset: int,
        limit: int,
        search: Optional[str] = None,
        tag: Optional[str] = None,
        mime_type: Optional[str] = None,
        is_public: Optional[bool] = None,
        uploaded_by: Optional[str] = None,
        visible_to: Optional[str] = None,
    ) -> Tuple[List[Document], int]:
        """List chunks newest first; ``visible_to`` limits to public rows plus the user's own."""
        conditions = []
        if search:
            pattern = f"%{search}%"
            conditions.append(
                or_(Document.title.ilike(pattern), Document.content.ilike(pattern))
            )
        if tag:
            conditions.append(Document.tags.any(tag))
        if mime_type:
            conditions.append(Document.mime_type == mime_type)
        if is_public is not None:
            conditions.append(Document.is_public == is_public)
        if uploaded_by:
            conditions.append(Document.uploaded_by == uploaded_by)
        if visible_to is not None:
            conditions.append(
                or_(Document.is_public.is_(True), Document.uploaded_by == visible_to)
            )

        stmt = (
            select(Document)
            .where(*conditions)
            .order_by(Document.created_at.desc(), Document.chunk_index.asc())
            .offset(offset)
            .limit(limit)
        )
        count_stmt = select(func.count(Document.id)).where(*conditions)

        result = await self.session.execute(stmt)
        total = (await self.session.execute(count_stmt)).scalar() or 0
        return list(result.scalars().all()), int(total)

    async def get_chunks(self, base_title: str) -> List[Document]:
        """All chunks of one upload, matched on the title prefix."""
        stmt = (
            select(Document)
            .where(
                or_(
                    Document.title == base_title,
                    Document.title.like(f"{base_title} (Parte %"),
                )
            )
            .order_by(Document.chunk_index.asc())
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def count_by_storage_path(self, storage_path: str) -> int:
        return await self.count(storage_path=storage_path)

    async def set_embedding(self, document_id: str, embedding: Sequence[float]) -> None:
        await self.session.execute(
            text("UPDATE documents SET embedding = CAST(:embedding AS vector), updated_at = NOW() WHERE id = :id"),
            {"embedding": to_pgvector_literal(list(embedding)), "id": str(document_id)},
        )

    async def get_stats(self) -> Dict[str, Any]:
        total = await self.count()
        public = await self.count(is_public=True)

        mime_rows = await self.session.execute(
            select(Document.mime_type, func.count(Document.id)).group_by(Document.mime_type)
        )
        uploader_rows = await self.session.execute(
            select(Document.uploaded_by, func.count(Document.id)).group_by(
                Document.uploaded_by
            )
        )
        return {
            "total_documents": total,
            "public_documents": public,
            "private_documents": total - public,
            "mime_type_distribution": {m: int(c) for m, c in mime_rows.all()},
            "uploader_distribution": {
                str(u) if u else "unknown": int(c) for u, c in uploader_rows.all()
            },
        }
