"""File checks and formatting shared by the widget and the admin console."""
import base64
from dataclasses import dataclass
from typing import Optional

ALLOWED_FILE_TYPES = frozenset(
    {
        "image/jpeg",
        "image/png",
        "image/gif",
        "image/webp",
        "audio/wav",
        "audio/mp3",
        "audio/m4a",
        "audio/webm",
        "audio/mpeg",
        "application/pdf",
        "text/plain",
        "text/markdown",
        "application/msword",
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    }
)

_SIZE_UNITS = ("Bytes", "KB", "MB", "GB")


@dataclass(frozen=True)
class FileValidation:
    valid: bool
    error: Optional[str] = None


def validate_file(mime_type: str, size_bytes: int, max_size_mb: int = 15) -> FileValidation:
    if mime_type not in ALLOWED_FILE_TYPES:
        return FileValidation(False, f"Tipo de archivo no permitido: {mime_type}")
    if size_bytes > max_size_mb * 1024 * 1024:
        return FileValidation(False, f"Archivo demasiado grande. Máximo: {max_size_mb}MB")
    return FileValidation(True)


def format_file_size(size_bytes: int) -> str:
    if size_bytes <= 0:
        return "0 Bytes"
    exponent = 0
    while size_bytes >= 1024 ** (exponent + 1) and exponent < len(_SIZE_UNITS) - 1:
        exponent += 1
    value = round(size_bytes / 1024**exponent, 2)
    # "1.50" renders as "1.5", "2.00" as "2".
    return f"{value:g} {_SIZE_UNITS[exponent]}"


def file_kind(mime_type: str) -> str:
    """``image``, ``audio``, ``document`` or ``unknown``."""
    if mime_type.startswith("image/"):
        return "image"
    if mime_type.startswith("audio/"):
        return "audio"
    if "pdf" in mime_type or "document" in mime_type or mime_type.startswith("text/"):
        return "document"
    return "unknown"


def to_data_url(data: bytes, mime_type: str) -> str:
    return f"data:{mime_type};base64,{base64.b64encode(data).decode('ascii')}"
