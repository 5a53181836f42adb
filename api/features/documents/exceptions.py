"""Exceptions for the Documents feature."""
from api.shared.exceptions import NotFoundError, ValidationError


class DocumentNotFoundError(NotFoundError):
    def __init__(self, doc_id: str):
        super().__init__("Document", doc_id)


class EmptyDocumentError(ValidationError):
    """Raised when no text could be extracted from an upload."""

    def __init__(self, filename: str):
        super().__init__(
            f"No text could be extracted from '{filename}'",
            {"filename": filename},
            error_code="EMPTY_DOCUMENT",
        )

