"""
Test configuration and fixtures.
"""

import asyncio
import math
from typing import Any

import pytest

from ragapi.rag import (
    BaseCompleter,
    BaseEmbedding,
    ContentGenerator,
    EmbeddingClient,
    MemoryVectorIndex,
    RAGPipeline,
)

DIMENSION = 8


class ConstantEmbedding(BaseEmbedding):
    """Returns the same unit vector for every text, so every chunk matches every query."""

    def __init__(self, dimension: int = DIMENSION):
        self._dimension = dimension
        self.calls: list[str] = []

    @property
    def dimension(self) -> int:
        return self._dimension

    async def embed(self, text: str) -> list[float]:
        self.calls.append(text)
        value = 1.0 / math.sqrt(self._dimension)
        return [value] * self._dimension


class FlakyEmbedding(ConstantEmbedding):
    """Fails a fixed number of times before succeeding."""

    def __init__(self, failures: int, error: Exception = None, dimension: int = DIMENSION):
        super().__init__(dimension)
        self.failures = failures
        self.error = error or RuntimeError("connection reset")

    async def embed(self, text: str) -> list[float]:
        if len(self.calls) < self.failures:
            self.calls.append(text)
            raise self.error
        return await super().embed(text)


class SlowEmbedding(ConstantEmbedding):
    """Never answers within a short timeout."""

    async def embed(self, text: str) -> list[float]:
        self.calls.append(text)
        await asyncio.sleep(5)
        return [0.0] * self._dimension


class RecordingCompleter(BaseCompleter):
    """Completer that records its arguments and returns a canned answer."""

    def __init__(self, answer: str = "Python is a programming language."):
        self.answer = answer
        self.calls: list[dict[str, Any]] = []

    async def complete(self, messages, *, model, temperature=0.7, max_tokens=500) -> str:
        self.calls.append({
            "messages": messages,
            "model": model,
            "temperature": temperature,
            "max_tokens": max_tokens,
        })
        return self.answer


class FailingCompleter(BaseCompleter):
    async def complete(self, messages, *, model, temperature=0.7, max_tokens=500) -> str:
        raise RuntimeError("service unavailable")


class SlowCompleter(BaseCompleter):
    async def complete(self, messages, *, model, temperature=0.7, max_tokens=500) -> str:
        await asyncio.sleep(5)
        return "too late"


@pytest.fixture
def constant_embedding():
    return ConstantEmbedding()


@pytest.fixture
def embedding_client(constant_embedding):
    """Embedding client over a deterministic provider, without backoff waits."""
    return EmbeddingClient(
        provider=constant_embedding,
        dimension=DIMENSION,
        base_delay=0,
        rate_limit_delay=0,
    )


@pytest.fixture
def memory_index():
    return MemoryVectorIndex(dimension=DIMENSION)


@pytest.fixture
def pipeline(embedding_client, memory_index):
    """Pipeline with deterministic embeddings, a memory index and mock generation."""
    return RAGPipeline(
        embedder=embedding_client,
        index=memory_index,
        generator=ContentGenerator(),
    )


@pytest.fixture
def sample_text():
    """Sample document text for testing."""
    return (
        "Python is a high-level programming language. It emphasizes readability.\n\n"
        "Python supports multiple programming paradigms. These include procedural, "
        "object-oriented and functional programming.\n\n"
        "The language was created by Guido van Rossum and first released in 1991."
    )


@pytest.fixture
def text_upload(tmp_path, sample_text):
    """A temporary text file standing in for an upload."""
    path = tmp_path / "document-1-1.txt"
    path.write_text(sample_text, encoding="utf-8")
    return path
