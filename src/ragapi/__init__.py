"""
ragapi - A demonstration RAG backend: upload documents, ask questions.
"""

from ragapi.rag import (
    ChatResult,
    Chunk,
    ContentGenerator,
    EmbeddingClient,
    IndexResult,
    MemoryVectorIndex,
    ParagraphChunker,
    QdrantVectorIndex,
    RAGPipeline,
    SearchResult,
    SystemStatus,
    UploadedFile,
)
from ragapi.utils.config import RAGConfig, load_config

__version__ = "1.0.0"
__all__ = [
    "ChatResult",
    "Chunk",
    "ContentGenerator",
    "EmbeddingClient",
    "IndexResult",
    "MemoryVectorIndex",
    "ParagraphChunker",
    "QdrantVectorIndex",
    "RAGPipeline",
    "SearchResult",
    "SystemStatus",
    "UploadedFile",
    "RAGConfig",
    "load_config",
]
