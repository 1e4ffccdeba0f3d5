"""Document chunking strategies."""

import copy
import re
import uuid
from typing import Any, Optional

from .base import BaseChunker
from .document import Chunk

PARAGRAPH_BREAK = re.compile(r"\n\s*\n")


class ParagraphChunker(BaseChunker):
    """Chunk text on paragraph boundaries with character overlap.

    Paragraphs are accumulated greedily until the next one would push the
    running buffer past `chunk_size`. When a chunk is closed, the next one
    starts with the last `overlap` characters of the closed buffer.

    Sizes are character counts, not token counts. A single paragraph longer
    than `chunk_size` is emitted as one oversized chunk.
    """

    def __init__(
        self,
        chunk_size: int = 1000,
        overlap: int = 200,
    ):
        """Initialize the paragraph chunker.

        Args:
            chunk_size: Target maximum characters per chunk
            overlap: Number of characters carried over between chunks
        """
        if overlap < 0:
            raise ValueError("Overlap must not be negative")
        if overlap >= chunk_size:
            raise ValueError("Overlap must be less than chunk_size")

        self.chunk_size = chunk_size
        self.overlap = overlap

    def chunk(
        self,
        text: str,
        metadata: Optional[dict[str, Any]] = None,
    ) -> list[Chunk]:
        """Split text into overlapping, paragraph-aware chunks."""
        if not text:
            return []

        metadata = metadata or {}
        chunks: list[Chunk] = []
        current_chunk = ""

        for paragraph in PARAGRAPH_BREAK.split(text):
            if current_chunk and len(current_chunk) + len(paragraph) > self.chunk_size:
                if current_chunk.strip():
                    chunks.append(self._create_chunk(current_chunk, metadata))
                overlap_text = self._tail(current_chunk)
                current_chunk = f"{overlap_text} {paragraph}" if overlap_text else paragraph
            else:
                current_chunk += ("\n\n" if current_chunk else "") + paragraph

        if current_chunk.strip():
            chunks.append(self._create_chunk(current_chunk, metadata))

        return chunks

    def _tail(self, text: str) -> str:
        """Return the overlap carried into the next chunk."""
        if self.overlap == 0:
            return ""
        if len(text) > self.overlap:
            return text[-self.overlap:]
        return text

    def _create_chunk(self, content: str, metadata: dict[str, Any]) -> Chunk:
        return Chunk(
            id=str(uuid.uuid4()),
            content=content.strip(),
            metadata=copy.deepcopy(metadata),
        )
