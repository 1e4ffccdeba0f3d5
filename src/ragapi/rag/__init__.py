"""RAG (Retrieval-Augmented Generation) core for ragapi.

This module provides the document-to-vector pipeline and the query path:
- Chunk, search and result data structures
- Paragraph-aware chunking with overlap
- Embedding client with timeout, retry/backoff and mock fallback
- Vector indexes (Qdrant, ChromaDB, memory) with score thresholding
- Grounded response generation with mock fallback
- The pipeline orchestrator and its in-memory document registry

Example:
    ```python
    from ragapi.rag import EmbeddingClient, MemoryVectorIndex, RAGPipeline

    pipeline = RAGPipeline(EmbeddingClient(), MemoryVectorIndex())
    result = await pipeline.chat("What is Python?")
    ```
"""

# Data structures
from .document import (
    Answer,
    ChatResult,
    Chunk,
    CollectionInfo,
    CollectionStatus,
    ContextRef,
    EmbeddedChunk,
    IndexedDocument,
    IndexResult,
    SearchResult,
    SystemStatus,
    UploadedFile,
    UpsertResult,
)

# Base classes
from .base import (
    BaseChunker,
    BaseCompleter,
    BaseEmbedding,
    BaseTextExtractor,
)

# Chunking
from .chunking import ParagraphChunker

# Embeddings
from .embeddings import (
    EmbeddingClient,
    EmbeddingOutcome,
    MockEmbedding,
    OpenAIEmbedding,
    backoff_delay,
    generate_mock_embedding,
    is_rate_limit_error,
)

# Vector indexes
from .vectorstore import (
    BaseVectorIndex,
    ChromaVectorIndex,
    MemoryVectorIndex,
    QdrantVectorIndex,
    canonical_point_id,
    cosine_similarity,
)

# Retrieval and generation
from .retriever import VectorRetriever
from .generation import (
    ContentGenerator,
    OpenAICompleter,
    RAGAnswerer,
    generate_mock_response,
)

# Collaborators
from .extraction import FileTextExtractor, detect_file_type
from .registry import DocumentRegistry

# Pipeline
from .pipeline import GLOBAL_COLLECTION_NAME, RAGPipeline, create_vector_index

__all__ = [
    # Data structures
    "Answer",
    "ChatResult",
    "Chunk",
    "CollectionInfo",
    "CollectionStatus",
    "ContextRef",
    "EmbeddedChunk",
    "IndexedDocument",
    "IndexResult",
    "SearchResult",
    "SystemStatus",
    "UploadedFile",
    "UpsertResult",
    # Base classes
    "BaseChunker",
    "BaseCompleter",
    "BaseEmbedding",
    "BaseTextExtractor",
    # Chunking
    "ParagraphChunker",
    # Embeddings
    "EmbeddingClient",
    "EmbeddingOutcome",
    "MockEmbedding",
    "OpenAIEmbedding",
    "backoff_delay",
    "generate_mock_embedding",
    "is_rate_limit_error",
    # Vector indexes
    "BaseVectorIndex",
    "ChromaVectorIndex",
    "MemoryVectorIndex",
    "QdrantVectorIndex",
    "canonical_point_id",
    "cosine_similarity",
    # Retrieval and generation
    "VectorRetriever",
    "ContentGenerator",
    "OpenAICompleter",
    "RAGAnswerer",
    "generate_mock_response",
    # Collaborators
    "FileTextExtractor",
    "detect_file_type",
    "DocumentRegistry",
    # Pipeline
    "GLOBAL_COLLECTION_NAME",
    "RAGPipeline",
    "create_vector_index",
]
