"""Word-bounded chunking with overlap for uploaded documents.

Chunks are cut on whitespace once the running size (word length plus one separator)
reaches ``chunk_size``. The next chunk starts with the last few words of the previous
one, sized to roughly ``chunk_overlap`` characters.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import List

DEFAULT_CHUNK_SIZE = 1000
DEFAULT_CHUNK_OVERLAP = 200


@dataclass(frozen=True)
class TextChunk:
    index: int
    text: str
    # Leading words repeated from the previous chunk.
    overlap_words: int = 0

    @property
    def words(self) -> List[str]:
        return self.text.split()

    @property
    def new_words(self) -> List[str]:
        return self.words[self.overlap_words:]


def _overlap_word_count(chunk_overlap: int, size: int, word_count: int) -> int:
    if chunk_overlap <= 0 or word_count <= 1:
        return 0
    average_word_size = size / word_count
    keep = math.floor(chunk_overlap / average_word_size)
    # Always drop at least one word so the next chunk makes progress.
    return max(0, min(keep, word_count - 1))


def split_text_into_chunks(
    text: str,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    chunk_overlap: int = DEFAULT_CHUNK_OVERLAP,
) -> List[TextChunk]:
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")
    if chunk_overlap < 0:
        raise ValueError("chunk_overlap must not be negative")

    chunks: List[TextChunk] = []
    current: List[str] = []
    carried = 0
    size = 0

    for word in text.split():
        current.append(word)
        size += len(word) + 1
        if size < chunk_size:
            continue

        chunks.append(TextChunk(len(chunks), " ".join(current), carried))
        keep = _overlap_word_count(chunk_overlap, size, len(current))
        current = current[-keep:] if keep else []
        carried = len(current)
        size = sum(len(w) + 1 for w in current)

    if len(current) > carried:
        chunks.append(TextChunk(len(chunks), " ".join(current), carried))

    return chunks


def join_chunks(chunks: List[TextChunk]) -> str:
    """Rebuild the whitespace-normalised source text from its chunks."""
    words: List[str] = []
    for chunk in chunks:
        words.extend(chunk.new_words)
    return " ".join(words)
