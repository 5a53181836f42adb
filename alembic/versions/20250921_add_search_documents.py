"""
Add search_documents() for cosine similarity search over document chunks

Revision ID: 20250921_add_search_documents
Revises: 20250920_initial_chat_schema
Create Date: 2025-09-21 09:00:00
"""
from typing import Sequence, Union

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "20250921_add_search_documents"
down_revision: Union[str, None] = "20250920_initial_chat_schema"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
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


def downgrade() -> None:
    op.execute("DROP FUNCTION IF EXISTS search_documents(vector, float, int)")
