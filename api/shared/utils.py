"""Common helpers for payload decoding and storage naming."""
import base64
import binascii
import math
import mimetypes
import secrets
import string
import time
from pathlib import Path
from typing import Optional, Tuple

from api.shared.exceptions import ValidationError

_EXTENSION_OVERRIDES = {
    "audio/webm": "webm",
    "audio/mpeg": "mp3",
    "audio/mp3": "mp3",
    "audio/wav": "wav",
    "audio/ogg": "ogg",
    "image/jpeg": "jpg",
    "text/markdown": "md",
    "text/plain": "txt",
}


def split_data_url(payload: str) -> Tuple[Optional[str], str]:
    """Split ``data:<mime>;base64,<data>`` into (mime, data); plain base64 passes through."""
    if payload.startswith("data:") and "," in payload:
        header, data = payload.split(",", 1)
        mime = header[len("data:"):].split(";", 1)[0] or None
        return mime, data
    return None, payload


def decode_base64_payload(payload: str, field_name: str = "fileData") -> bytes:
    _, data = split_data_url(payload.strip())
    try:
        return base64.b64decode(data, validate=False)
    except (binascii.Error, ValueError) as e:
        raise ValidationError(f"{field_name} is not valid base64") from e


def estimate_base64_size(payload: str) -> int:
    """Decoded size in bytes without decoding."""
    _, data = split_data_url(payload.strip())
    data = data.strip()
    padding = len(data) - len(data.rstrip("="))
    return max(0, (len(data) * 3) // 4 - padding)


def get_file_extension(filename: str) -> str:
    """Get file extension from filename, without the dot."""
    return Path(filename).suffix.lower().lstrip(".")


def extension_for(file_name: str, mime_type: str) -> str:
    ext = get_file_extension(file_name)
    if ext:
        return ext
    if mime_type in _EXTENSION_OVERRIDES:
        return _EXTENSION_OVERRIDES[mime_type]
    guessed = mimetypes.guess_extension(mime_type) or ".bin"
    return guessed.lstrip(".")


def random_suffix(length: int = 6) -> str:
    alphabet = string.ascii_lowercase + string.digits
    return "".join(secrets.choice(alphabet) for _ in range(length))


def generate_storage_path(
    user_id: str, file_name: str, mime_type: str, prefix: Optional[str] = None
) -> str:
    """``[prefix/]{user_id}/{timestamp_ms}_{random6}.{ext}``"""
    name = f"{int(time.time() * 1000)}_{random_suffix()}.{extension_for(file_name, mime_type)}"
    parts = [prefix, user_id, name] if prefix else [user_id, name]
    return "/".join(parts)


def estimate_tokens(text: str) -> int:
    """Rough token count: four characters per token."""
    return math.ceil(len(text) / 4)


def elapsed_ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)
