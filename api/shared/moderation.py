"""Content moderation and upload checks applied before anything is stored."""
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from api.shared.exceptions import PayloadTooLargeError, ValidationError
from core.settings import SETTINGS

PROHIBITED_WORDS = ("spam", "malware", "phishing", "hack", "virus")
SUSPICIOUS_DOMAINS = ("bit.ly", "tinyurl.com", "goo.gl")
REPEATED_PATTERN = re.compile(r"(..)\1{10,}")

ALLOWED_MIME_TYPES = frozenset(
    {
        "image/jpeg",
        "image/png",
        "image/gif",
        "image/webp",
        "audio/mpeg",
        "audio/mp3",
        "audio/wav",
        "audio/webm",
        "audio/mp4",
        "audio/ogg",
        "application/pdf",
        "text/plain",
        "text/markdown",
        "text/csv",
        "application/json",
        "application/msword",
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    }
)
BLOCKED_EXTENSIONS = (".exe", ".bat", ".cmd", ".scr", ".vbs", ".js")


@dataclass
class ModerationResult:
    allowed: bool
    reason: Optional[str] = None
    flags: List[str] = field(default_factory=list)


def moderate_content(content: str, max_length: Optional[int] = None) -> ModerationResult:
    max_length = max_length or SETTINGS.LIMITS.MAX_MESSAGE_LENGTH
    lowered = content.lower()

    for word in PROHIBITED_WORDS:
        if word in lowered:
            return ModerationResult(
                False, f'Content blocked: contains prohibited term "{word}"', ["prohibited_word"]
            )

    for domain in SUSPICIOUS_DOMAINS:
        if domain in lowered:
            return ModerationResult(
                False, f'Content blocked: contains suspicious domain "{domain}"', ["suspicious_domain"]
            )

    if len(content) > max_length:
        return ModerationResult(False, "Content blocked: message too long", ["too_long"])

    if REPEATED_PATTERN.search(content):
        return ModerationResult(
            False, "Content blocked: repetitive pattern detected", ["repetition"]
        )

    return ModerationResult(True)


def ensure_content_allowed(content: str) -> None:
    result = moderate_content(content)
    if not result.allowed:
        raise ValidationError(
            result.reason or "Content blocked",
            {"flags": result.flags},
            error_code="CONTENT_BLOCKED",
        )


def validate_file_upload(
    file_name: str,
    mime_type: str,
    size_bytes: int,
    *,
    allowed_mime_types: Optional[frozenset] = None,
    max_size_mb: Optional[int] = None,
) -> None:
    """Raise if the upload is too large, of a disallowed type or an executable."""
    max_size_mb = max_size_mb or SETTINGS.LIMITS.MAX_FILE_SIZE_MB
    max_size_bytes = max_size_mb * 1024 * 1024

    if size_bytes > max_size_bytes:
        raise PayloadTooLargeError(
            f"File too large: {size_bytes / 1024 / 1024:.1f}MB, maximum {max_size_mb}MB",
            {"size_bytes": size_bytes, "max_size_mb": max_size_mb},
        )

    if size_bytes == 0:
        raise ValidationError("Empty file provided", error_code="EMPTY_FILE")

    allowed = allowed_mime_types or ALLOWED_MIME_TYPES
    if mime_type not in allowed:
        raise ValidationError(
            f"File type not allowed: {mime_type}",
            {"mime_type": mime_type},
            error_code="INVALID_FILE_TYPE",
        )

    suffix = Path(file_name.lower()).suffix
    if suffix in BLOCKED_EXTENSIONS:
        raise ValidationError(
            f"File extension not allowed: {suffix}",
            {"file_name": file_name},
            error_code="INVALID_FILE_TYPE",
        )
