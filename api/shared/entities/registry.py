"""Entity registry to ensure SQLAlchemy loads all table metadata.

Import all entity modules here so Alembic autogenerate can discover them.
"""
# Import base first to expose BaseEntity.metadata
from api.shared.entities.base import BaseEntity  # noqa: F401
from api.shared.entities.event import Event  # noqa: F401
from api.shared.entities.profile import Profile  # noqa: F401
from api.shared.entities.rate_limit import RateLimit  # noqa: F401

# Feature: Conversations
from api.features.conversation.entities.conversation import (  # noqa: F401
    Attachment,
    Conversation,
    Message,
)

# Feature: Documents
from api.features.documents.entities.document import Document  # noqa: F401

# Feature: Takeover
from api.features.takeover.entities.takeover import Takeover  # noqa: F401

# Feature: Enhance
from api.features.enhance.entities.draft import AdminDraft  # noqa: F401
