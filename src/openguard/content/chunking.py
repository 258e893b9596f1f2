"""Fixed-size character chunking for classifier input."""
from __future__ import annotations

DEFAULT_CHUNK_SIZE = 1500
EVIDENCE_CHARS = 200


def chunk_content(text: str, size: int = DEFAULT_CHUNK_SIZE) -> list[str]:
    """Split *text* into consecutive chunks of *size* characters.

    Every chunk but the last is exactly *size* long; the number of chunks
    is ``ceil(len(text) / size)``.  Empty text yields no chunks.

    Raises
    ------
    ValueError
        If *size* is not positive.
    """
    if size <= 0:
        raise ValueError(f"chunk size must be positive, got {size}")
    return [text[start : start + size] for start in range(0, len(text), size)]


def truncate(text: str, limit: int) -> str:
    """Return the first *limit* characters of *text*."""
    return text if len(text) <= limit else text[:limit]
