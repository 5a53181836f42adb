from api.features.enhance.entities.draft import AdminDraft
from api.shared.base import BaseRepository


class DraftRepository(BaseRepository[AdminDraft]):
    model = AdminDraft
