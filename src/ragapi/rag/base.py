"""Base classes and abstract interfaces for RAG components."""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Optional

if TYPE_CHECKING:
    from .document import Chunk


class BaseEmbedding(ABC):
    """Abstract base class for embedding providers.

    Embedding providers convert text into dense vector representations.
    """

    @abstractmethod
    async def embed(self, text: str) -> list[float]:
        """Embed a single piece of text.

        Args:
            text: Text to embed

        Returns:
            Embedding vector of length `dimension`
        """
        pass

    @property
    @abstractmethod
    def dimension(self) -> int:
        """Return the dimension of the embedding vectors."""
        pass


class BaseCompleter(ABC):
    """Abstract base class for chat completion providers."""

    @abstractmethod
    async def complete(
        self,
        messages: list[dict[str, Any]],
        *,
        model: str,
        temperature: float = 0.7,
        max_tokens: int = 500,
    ) -> str:
        """Get a completion for a list of chat messages.

        Args:
            messages: Messages in API format
            model: Model identifier
            temperature: Sampling temperature
            max_tokens: Maximum tokens to generate

        Returns:
            Generated text
        """
        pass


class BaseChunker(ABC):
    """Abstract base class for text chunkers.

    Chunkers split extracted document text into pieces for indexing.
    """

    @abstractmethod
    def chunk(
        self,
        text: str,
        metadata: Optional[dict[str, Any]] = None,
    ) -> list["Chunk"]:
        """Split text into chunks.

        Args:
            text: Text to chunk
            metadata: Metadata copied onto every chunk

        Returns:
            List of chunks
        """
        pass


class BaseTextExtractor(ABC):
    """Abstract base class for text extractors."""

    @abstractmethod
    async def extract(self, file_path: str, file_type: str) -> str:
        """Extract human-readable text from a file.

        Implementations return a placeholder string instead of raising
        for unsupported types and on extraction faults.
        """
        pass
