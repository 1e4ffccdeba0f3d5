"""Chunk, search and result data structures for RAG."""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class Chunk(BaseModel):
    """A contiguous slice of a source document.

    Chunks are created by the chunker and never mutated afterwards.

    Attributes:
        id: Unique identifier for the chunk
        content: The trimmed text content of the chunk
        metadata: source_file, file_type, created_at and document_id of the owner
    """

    model_config = ConfigDict(frozen=True)

    id: str
    content: str
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def document_id(self) -> Optional[str]:
        return self.metadata.get("document_id")

    def __repr__(self) -> str:
        content_preview = self.content[:30] + "..." if len(self.content) > 30 else self.content
        return f"Chunk(id={self.id!r}, content={content_preview!r})"


class EmbeddedChunk(Chunk):
    """A chunk together with its embedding vector.

    Attributes:
        embedding: Fixed-length embedding vector
        embedding_error: Set when the real provider failed and a mock vector was substituted
    """

    embedding: list[float]
    embedding_error: Optional[str] = None

    @classmethod
    def from_chunk(
        cls,
        chunk: Chunk,
        embedding: list[float],
        embedding_error: Optional[str] = None,
    ) -> "EmbeddedChunk":
        return cls(
            id=chunk.id,
            content=chunk.content,
            metadata=dict(chunk.metadata),
            embedding=embedding,
            embedding_error=embedding_error,
        )


class SearchResult(BaseModel):
    """A search result from the vector index.

    Attributes:
        id: Original chunk id (not the storage key)
        content: Chunk text
        metadata: Stored payload without the duplicated content field
        score: Cosine similarity, higher is more similar
    """

    id: str
    content: str
    metadata: dict[str, Any] = Field(default_factory=dict)
    score: float

    @property
    def source(self) -> str:
        return self.metadata.get("source_file") or "Unknown"

    def __repr__(self) -> str:
        return f"SearchResult(id={self.id!r}, score={self.score:.4f})"


class VectorPoint(BaseModel):
    """A point as written to the vector database."""

    id: str
    vector: list[float]
    payload: dict[str, Any] = Field(default_factory=dict)


class CollectionStatus(BaseModel):
    """Outcome of an idempotent collection create."""

    created: bool
    existed: bool


class CollectionInfo(BaseModel):
    """Description of an existing collection."""

    name: str
    vector_count: int = 0
    exists: bool = True


class UpsertResult(BaseModel):
    """Outcome of writing embedded chunks to a collection."""

    documents_added: int
    collection_created: bool = False
    collection_existed: bool = False


class UploadedFile(BaseModel):
    """A file handed to the pipeline for indexing.

    Attributes:
        path: Temporary location on disk, removed once indexing finishes
        filename: The original name supplied by the client
    """

    path: str
    filename: str


# ---------------------------------------------------------------------------
# Results exposed over HTTP. Field names are camelCase on the wire.
# ---------------------------------------------------------------------------


class APIModel(BaseModel):
    """Base for models serialized with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_response(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class IndexedDocument(APIModel):
    """Registry entry for a successfully indexed document."""

    document_id: str
    chunks_count: int
    filename: str
    file_type: str
    created_at: str


class ContextRef(APIModel):
    """A retrieved context as shown to the caller for citation."""

    content: str
    score: float
    source: str = "Unknown"


class Answer(BaseModel):
    """A generated answer and the contexts it was grounded on."""

    response: str
    contexts: list[SearchResult] = Field(default_factory=list)


class IndexResult(APIModel):
    """Result of indexing one document."""

    success: bool
    document_id: Optional[str] = None
    collection_name: Optional[str] = None
    document_count: Optional[int] = None
    filename: Optional[str] = None
    degraded_chunks: Optional[int] = None
    error: Optional[str] = None


class ChatResult(APIModel):
    """Result of answering one query."""

    success: bool
    query: Optional[str] = None
    response: str
    contexts: Optional[list[ContextRef]] = None
    error: Optional[str] = None


class GlobalCollectionStatus(APIModel):
    name: str
    exists: bool = False
    vector_count: int = 0


class StatusReport(APIModel):
    qdrant_connected: bool
    openai_available: bool
    global_collection: GlobalCollectionStatus
    indexed_documents: list[IndexedDocument] = Field(default_factory=list)


class SystemStatus(APIModel):
    """Result of a status request."""

    success: bool
    status: Optional[StatusReport] = None
    error: Optional[str] = None
