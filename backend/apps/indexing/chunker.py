"""
Deterministic text chunking for document indexing.

Chunking is designed to be:
- Deterministic: Same input always produces same chunks
- Terminating: The window start strictly advances on every step
- Overlap-aware: Chunks have configurable overlap for context continuity
"""
import logging
from dataclasses import dataclass
from typing import List

logger = logging.getLogger(__name__)

# Default chunking parameters
DEFAULT_CHUNK_SIZE = 1000  # characters
DEFAULT_CHUNK_OVERLAP = 200  # characters of overlap between chunks

# Boundaries are only honoured in the last 30% of a window
BOUNDARY_SEARCH_RATIO = 0.7
BOUNDARY_CHARS = ('.', '\n')


class InvalidConfiguration(ValueError):
    """Raised when chunk size and overlap cannot produce a terminating walk."""
    code = 'INVALID_CONFIGURATION'


@dataclass
class TextChunk:
    """A chunk of text with its index."""
    index: int
    text: str
    start_char: int
    end_char: int

    @property
    def char_count(self) -> int:
        return len(self.text)


class Chunker:
    """
    Splits text into overlapping windows snapped to sentence or line ends.

    Holds only its configuration, so one instance can be shared freely.
    """

    def __init__(
        self,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        chunk_overlap: int = DEFAULT_CHUNK_OVERLAP,
    ):
        if not isinstance(chunk_size, int) or chunk_size <= 0:
            raise InvalidConfiguration(f"chunk_size must be a positive integer, got {chunk_size!r}")
        if not isinstance(chunk_overlap, int) or not 0 <= chunk_overlap < chunk_size:
            raise InvalidConfiguration(
                f"chunk_overlap must satisfy 0 <= overlap < chunk_size "
                f"(overlap={chunk_overlap!r}, chunk_size={chunk_size})"
            )
        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap

    def _snap_end(self, text: str, start: int, end: int) -> int:
        """Pull a non-final window end back to the last boundary in its tail."""
        lower = start + int(self.chunk_size * BOUNDARY_SEARCH_RATIO)
        boundary = max(text.rfind(ch, lower, end) for ch in BOUNDARY_CHARS)
        if boundary == -1:
            return end
        return boundary + 1

    def chunk(self, text: str) -> List[TextChunk]:
        """
        Split text into overlapping chunks.

        Args:
            text: The text to chunk

        Returns:
            List of TextChunk objects with contiguous indices from 0
        """
        chunks: List[TextChunk] = []
        length = len(text)
        start = 0

        while start < length:
            end = min(start + self.chunk_size, length)
            if end < length:
                end = self._snap_end(text, start, end)

            content = text[start:end].strip()
            if content:
                chunks.append(TextChunk(
                    index=len(chunks),
                    text=content,
                    start_char=start,
                    end_char=end,
                ))

            if end >= length:
                break

            start = max(end - self.chunk_overlap, start + 1)

        if not chunks:
            logger.warning("Empty text provided for chunking")
        else:
            logger.info(f"Created {len(chunks)} chunks from {length} characters")

        return chunks
