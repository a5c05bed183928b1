"""Text cleanup and overlapping chunking for vector indexing."""

from __future__ import annotations

import re
import unicodedata

# Control characters except tab/newline/CR, non-characters and lone surrogates.
_UNSAFE_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f\ufffe\uffff\ud800-\udfff]")

CHUNK_SIZE = 800
CHUNK_OVERLAP = 200
MIN_CHUNK_LENGTH = 50


def sanitize_text(text: str) -> str:
    """Strip characters that break JSON payloads and normalize to NFC."""
    return unicodedata.normalize("NFC", _UNSAFE_CHARS.sub("", text)).strip()


def chunk_text(
    text: str,
    chunk_size: int = CHUNK_SIZE,
    overlap: int = CHUNK_OVERLAP,
    min_length: int = MIN_CHUNK_LENGTH,
) -> list[str]:
    """Split ``text`` into overlapping chunks.

    A chunk ends at the last period or newline inside its window when there
    is one, otherwise at the window edge. Consecutive chunks overlap by up to
    ``overlap`` characters. Chunks of ``min_length`` characters or fewer are
    dropped.
    """
    clean = sanitize_text(text)
    chunks: list[str] = []
    start = 0

    while start < len(clean):
        end = start + chunk_size
        if end >= len(clean):
            chunks.append(clean[start:].strip())
            break

        break_point = max(clean.rfind(".", 0, end + 1), clean.rfind("\n", 0, end + 1))
        if break_point > start:
            end = break_point + 1

        chunks.append(clean[start:end].strip())
        start = max(start + 1, end - overlap)

    return [chunk for chunk in chunks if len(chunk) > min_length]
