"""Overlapping text chunker and query-term highlighting.

Splits transcript text into windows suitable for embedding and marks up
query terms in the chunks returned by search.
"""

import re

from session_rag.core.errors import ValidationError
from session_rag.rag.models import TextChunk

# Default chunk configuration
DEFAULT_CHUNK_SIZE = 500  # characters
DEFAULT_CHUNK_OVERLAP = 50  # characters

# Only break at a space that lies past this fraction of the window
WORD_BREAK_THRESHOLD = 0.7

# Safety cap on chunks produced from a single text
MAX_CHUNKS = 1000

# Query terms shorter than this are not highlighted
MIN_TERM_LENGTH = 3

HIGHLIGHT_OPEN = "<mark>"
HIGHLIGHT_CLOSE = "</mark>"


def chunk_text(
    text: str,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    overlap: int = DEFAULT_CHUNK_OVERLAP,
) -> list[TextChunk]:
    """Split text into overlapping chunks, preferring word boundaries.

    Full windows that are not the last one are cut after their last space
    when that space lies far enough into the window; the next window then
    starts ``overlap`` characters before the cut. The final window is
    emitted as-is. Chunk text is stripped and empty chunks are dropped.

    Args:
        text: Text to split.
        chunk_size: Maximum characters per chunk.
        overlap: Characters shared between consecutive chunks.

    Returns:
        List of TextChunk with spans into ``text``.

    Raises:
        ValidationError: If ``chunk_size`` is not positive or ``overlap`` is
            negative or not smaller than ``chunk_size``.
    """
    if chunk_size <= 0:
        raise ValidationError("chunk_size must be a positive number")
    if overlap < 0 or overlap >= chunk_size:
        raise ValidationError("overlap must be >= 0 and smaller than chunk_size")

    if not text:
        return []

    chunks: list[TextChunk] = []
    length = len(text)
    start = 0

    while start < length and len(chunks) < MAX_CHUNKS:
        end = min(start + chunk_size, length)
        window = text[start:end]

        if end < length and len(window) == chunk_size:
            last_space = window.rfind(" ")
            if last_space > chunk_size * WORD_BREAK_THRESHOLD:
                # Keep the trailing space in the span, then back up by overlap
                end = start + last_space + 1
                window = text[start:end]
            next_start = end - overlap
        else:
            next_start = end

        stripped = window.strip()
        if stripped:
            chunks.append(TextChunk(text=stripped, start=start, end=end))

        # A large overlap after an early word break must not move backwards
        start = max(next_start, start + 1)

    return chunks


def extract_query_terms(query: str, min_length: int = MIN_TERM_LENGTH) -> list[str]:
    """Split a query on whitespace, keeping terms of at least ``min_length``."""
    return [term for term in query.split() if len(term) >= min_length]


def highlight_text(text: str, terms: list[str]) -> str:
    """Wrap case-insensitive matches of ``terms`` in ``<mark>`` tags.

    Longer terms win over shorter overlapping ones: the alternation is
    ordered by length and applied in a single pass, so a match is never
    re-highlighted. Original casing is preserved.
    """
    unique: dict[str, str] = {}
    for term in terms:
        term = term.strip()
        if term:
            unique.setdefault(term.lower(), term)

    if not unique:
        return text

    ordered = sorted(unique.values(), key=len, reverse=True)
    pattern = re.compile("|".join(re.escape(term) for term in ordered), re.IGNORECASE)
    return pattern.sub(lambda m: f"{HIGHLIGHT_OPEN}{m.group(0)}{HIGHLIGHT_CLOSE}", text)
