"""
Restrict search_documents() to chunks the caller may read

Private chunks are only matched for their uploader; a NULL viewer (admins)
sees everything.

Revision ID: 20251002_search_documents_visibility
Revises: 20250921_add_search_documents
Create Date: 2025-10-02 10:00:00
"""
from typing import Sequence, Union

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "20251002_search_documents_visibility"
down_revision: Union[str, None] = "20250921_add_search_documents"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("DROP FUNCTION IF EXISTS search_documents(vector, float, int)")
    op.execute(
        """
        CREATE OR REPLACE FUNCTION search_documents(
            query_embedding vector(1536),
            match_threshold float,
            match_count int,
            viewer_id uuid DEFAULT NULL
        )
        RETURNS TABLE (id uuid, title varchar, content text, similarity float)
        LANGUAGE sql STABLE
        AS $$
            SELECT
                d.id,
                d.title,
                d.content,
                1 - (d.embedding <=> query_embedding) AS similarity
            FROM documents d
            WHERE d.embedding IS NOT NULL
              AND (viewer_id IS NULL OR d.is_public OR d.uploaded_by = viewer_id)
              AND 1 - (d.embedding <=> query_embedding) > match_threshold
            ORDER BY d.embedding <=> query_embedding
            LIMIT match_count
        $$
        """
    )


def downgrade() -> None:
    op.execute("DROP FUNCTION IF EXISTS search_documents(vector, float, int, uuid)")
    op.execute(
        """
        CREATE OR REPLACE FUNCTION search_documents(
            query_embedding vector(1536),
            match_threshold float,
            match_count int
        )
        RETURNS TABLE (id uuid, title varchar, content text, similarity float)
        LANGUAGE sql STABLE
        AS $$
            SELECT
                d.id,
                d.title,
                d.content,
                1 - (d.embedding <=> query_embedding) AS similarity
            FROM documents d
            WHERE d.embedding IS NOT NULL
              AND 1 - (d.embedding <=> query_embedding) > match_threshold
            ORDER BY d.embedding <=> query_embedding
            LIMIT match_count
        $$
        """
    )
