"""Text chunking for the RAG pipeline.

Implements character-based chunking to avoid tokenizer dependencies.
Sizes count Python string characters (Unicode code points), not bytes.
"""
from typing import List, Optional
from dataclasses import dataclass
import structlog

from minirag import config
from minirag.errors import InvalidConfiguration

logger = structlog.get_logger()


@dataclass
class TextChunk:
    """Represents a chunk of text with position information."""

    content: str
    char_start: int
    char_end: int
    chunk_index: int


class TextChunker:
    """Character-based text chunker with optional overlap and word boundaries."""

    def __init__(
        self,
        chunk_size: Optional[int] = None,
        chunk_overlap: Optional[int] = None,
        respect_word_boundaries: bool = False,
    ):
        """Initialize the text chunker.

        Args:
            chunk_size: Size of each chunk in characters (default from config)
            chunk_overlap: Overlap between chunks in characters (default from config)
            respect_word_boundaries: Move cuts back to whitespace instead of
                splitting words

        Raises:
            InvalidConfiguration: If size < 1 or overlap is not in [0, size)
        """
        self.chunk_size = config.CHUNK_SIZE if chunk_size is None else chunk_size
        self.chunk_overlap = config.CHUNK_OVERLAP if chunk_overlap is None else chunk_overlap
        self.respect_word_boundaries = respect_word_boundaries

        # Validate parameters
        if self.chunk_size < 1:
            raise InvalidConfiguration(
                f"Chunk size must be at least 1, got {self.chunk_size}"
            )
        if self.chunk_overlap < 0 or self.chunk_overlap >= self.chunk_size:
            raise InvalidConfiguration(
                f"Overlap ({self.chunk_overlap}) must be non-negative and less than "
                f"chunk size ({self.chunk_size})"
            )

        logger.debug(
            "chunker_initialized",
            chunk_size=self.chunk_size,
            chunk_overlap=self.chunk_overlap,
            respect_word_boundaries=self.respect_word_boundaries,
        )

    def chunk_text(self, text: str) -> List[TextChunk]:
        """Split text into chunks.

        With no overlap, joining the chunk contents in order gives back
        ``text`` exactly.

        Args:
            text: Text to chunk

        Returns:
            List of TextChunk objects (empty for empty text)
        """
        if not text:
            return []

        text_length = len(text)
        chunks = []
        start = 0

        while start < text_length:
            end = min(start + self.chunk_size, text_length)

            if self.respect_word_boundaries and end < text_length:
                end = self._word_boundary(text, start, end)

            chunks.append(
                TextChunk(
                    content=text[start:end],
                    char_start=start,
                    char_end=end,
                    chunk_index=len(chunks),
                )
            )

            if end >= text_length:
                break

            # Move to next chunk with overlap, always making progress
            next_start = end - self.chunk_overlap
            start = next_start if next_start > start else end

        logger.debug(
            "text_chunked",
            text_length=text_length,
            chunk_count=len(chunks),
        )

        return chunks

    @staticmethod
    def _word_boundary(text: str, start: int, end: int) -> int:
        """Move a cut point back so it does not split a word.

        Args:
            text: Full text being chunked
            start: Start of the current chunk
            end: Proposed (exclusive) end of the current chunk

        Returns:
            Adjusted end, never greater than ``end`` and always > ``start``
        """
        # Already between a word and whitespace
        if text[end].isspace() or text[end - 1].isspace():
            return end

        for i in range(end - 1, start, -1):
            if text[i].isspace():
                return i + 1

        # One long word: keep the hard cut
        return end

    def get_chunk_stats(self, chunks: List[TextChunk]) -> dict:
        """Get statistics about a set of chunks.

        Args:
            chunks: List of TextChunk objects

        Returns:
            Dictionary with chunk statistics
        """
        if not chunks:
            return {
                "chunk_count": 0,
                "total_chars": 0,
                "avg_chunk_size": 0,
                "min_chunk_size": 0,
                "max_chunk_size": 0,
                "overlap": self.chunk_overlap,
            }

        chunk_sizes = [len(c.content) for c in chunks]

        return {
            "chunk_count": len(chunks),
            "total_chars": sum(chunk_sizes),
            "avg_chunk_size": sum(chunk_sizes) // len(chunks),
            "min_chunk_size": min(chunk_sizes),
            "max_chunk_size": max(chunk_sizes),
            "overlap": self.chunk_overlap,
        }


def chunk_text(
    text: str,
    size: int,
    overlap: int = 0,
    respect_word_boundaries: bool = False,
) -> List[TextChunk]:
    """Chunk text with an explicit size (convenience function).

    Args:
        text: Text to chunk
        size: Chunk size in characters, at least 1
        overlap: Characters shared by consecutive chunks
        respect_word_boundaries: Avoid cutting inside words

    Returns:
        List of TextChunk objects

    Raises:
        InvalidConfiguration: If size or overlap is invalid
    """
    chunker = TextChunker(
        chunk_size=size,
        chunk_overlap=overlap,
        respect_word_boundaries=respect_word_boundaries,
    )
    return chunker.chunk_text(text)
