"""RAG pipeline: indexing, chat and status."""

import asyncio
import logging
import time
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Optional

from .base import BaseChunker, BaseTextExtractor
from .chunking import ParagraphChunker
from .document import (
    Chunk,
    ChatResult,
    ContextRef,
    EmbeddedChunk,
    GlobalCollectionStatus,
    IndexedDocument,
    IndexResult,
    StatusReport,
    SystemStatus,
    UploadedFile,
)
from .embeddings import EmbeddingClient, OpenAIEmbedding
from .extraction import FileTextExtractor, detect_file_type
from .generation import ContentGenerator, OpenAICompleter, RAGAnswerer
from .registry import DocumentRegistry
from .retriever import VectorRetriever
from .vectorstore import (
    BaseVectorIndex,
    ChromaVectorIndex,
    MemoryVectorIndex,
    QdrantVectorIndex,
)

if TYPE_CHECKING:
    from ragapi.utils.config import RAGConfig

logger = logging.getLogger(__name__)

GLOBAL_COLLECTION_NAME = "global_documents"

CHAT_ERROR_RESPONSE = (
    "I'm sorry, I encountered an error processing your query. Please try again."
)


class RAGPipeline:
    """Complete RAG (Retrieval-Augmented Generation) pipeline.

    Wires extraction, chunking, embedding and the vector index for
    indexing, and retrieval plus generation for chat. Every public
    operation returns a result model; faults never escape.

    Example:
        ```python
        pipeline = RAGPipeline(
            embedder=EmbeddingClient(),
            index=MemoryVectorIndex(),
        )

        result = await pipeline.index_document(
            UploadedFile(path="/tmp/upload-1.txt", filename="notes.txt")
        )
        answer = await pipeline.chat("What is in my notes?")
        ```
    """

    def __init__(
        self,
        embedder: EmbeddingClient,
        index: BaseVectorIndex,
        generator: Optional[ContentGenerator] = None,
        chunker: Optional[BaseChunker] = None,
        extractor: Optional[BaseTextExtractor] = None,
        registry: Optional[DocumentRegistry] = None,
        collection_name: str = GLOBAL_COLLECTION_NAME,
        max_chunks: int = 25,
        embed_batch_size: int = 5,
        search_limit: int = 5,
        min_score: float = 0.7,
        search_timeout: float = 30.0,
    ):
        """Initialize the RAG pipeline.

        Args:
            embedder: Embedding client for chunks and queries
            index: Vector index holding the global collection
            generator: Response generator (default: mock generation)
            chunker: Text chunker (default: ParagraphChunker)
            extractor: Text extractor (default: FileTextExtractor)
            registry: Registry of indexed documents (default: empty)
            collection_name: The single collection used by this process
            max_chunks: Chunks beyond this count are dropped per document
            embed_batch_size: Chunks embedded concurrently per batch
            search_limit: Maximum contexts retrieved per query
            min_score: Minimum similarity for a context
            search_timeout: Search timeout in seconds
        """
        self.embedder = embedder
        self.index = index
        self.generator = generator or ContentGenerator()
        self.chunker = chunker or ParagraphChunker()
        self.extractor = extractor or FileTextExtractor()
        self.registry = registry if registry is not None else DocumentRegistry()
        self.collection_name = collection_name
        self.max_chunks = max_chunks
        self.embed_batch_size = embed_batch_size

        self.retriever = VectorRetriever(
            embedder,
            index,
            collection_name,
            limit=search_limit,
            min_score=min_score,
            timeout=search_timeout,
        )
        self.answerer = RAGAnswerer(self.retriever, self.generator)

    @classmethod
    def from_config(cls, config: "RAGConfig") -> "RAGPipeline":
        """Build a pipeline and its providers from configuration.

        A configured OpenAI key selects the real embedding and completion
        providers; otherwise both run in mock mode.
        """
        embedding_provider = None
        completer = None
        if config.openai_available:
            embedding_provider = OpenAIEmbedding(
                model=config.embedding_model,
                api_key=config.openai_api_key,
                base_url=config.openai_base_url,
            )
            completer = OpenAICompleter(
                api_key=config.openai_api_key,
                base_url=config.openai_base_url,
            )

        embedder = EmbeddingClient(
            provider=embedding_provider,
            dimension=config.embedding_dimension,
            retries=config.embedding_retries,
            timeout=config.embedding_timeout,
            base_delay=config.embedding_backoff_base,
            rate_limit_delay=config.embedding_rate_limit_backoff_base,
            max_delay=config.embedding_backoff_max,
        )

        generator = ContentGenerator(
            completer=completer,
            model=config.chat_model,
            temperature=config.temperature,
            max_tokens=config.max_tokens,
            timeout=config.completion_timeout,
        )

        return cls(
            embedder=embedder,
            index=create_vector_index(config),
            generator=generator,
            chunker=ParagraphChunker(config.chunk_size, config.chunk_overlap),
            collection_name=config.collection_name,
            max_chunks=config.max_chunks,
            embed_batch_size=config.embed_batch_size,
            search_limit=config.search_limit,
            min_score=config.min_score,
            search_timeout=config.search_timeout,
        )

    # -------------------------------------------------------------
    # Indexing
    # -------------------------------------------------------------
    async def index_document(self, file: UploadedFile) -> IndexResult:
        """Extract, chunk, embed and store one uploaded file.

        The temporary file is removed afterwards, whether indexing
        succeeded or not.
        """
        logger.info(f"Starting indexing for file: {file.filename}")
        try:
            return await self._index(file)
        except Exception as e:
            logger.error(f"Error indexing document {file.filename}: {e}")
            return IndexResult(success=False, filename=file.filename, error=str(e))
        finally:
            self._remove_temp_file(file.path)

    async def _index(self, file: UploadedFile) -> IndexResult:
        start_time = time.perf_counter()
        file_type = detect_file_type(file.filename)
        document_id = str(uuid.uuid4())
        created_at = _now()
        metadata = {
            "source_file": file.filename,
            "file_type": file_type,
            "created_at": created_at,
            "document_id": document_id,
        }

        text = await self.extractor.extract(file.path, file_type)
        logger.info(f"Text extraction completed in {time.perf_counter() - start_time:.2f}s")

        chunk_start = time.perf_counter()
        chunks = self.chunker.chunk(text, metadata)
        logger.info(
            f"Created {len(chunks)} chunks in {time.perf_counter() - chunk_start:.2f}s"
        )
        if len(chunks) > self.max_chunks:
            logger.info(f"Limiting chunks from {len(chunks)} to {self.max_chunks}")
            chunks = chunks[:self.max_chunks]

        embedded = await self.embed_chunks(chunks)
        await self.index.upsert(self.collection_name, embedded)

        self.registry.add(IndexedDocument(
            document_id=document_id,
            chunks_count=len(embedded),
            filename=file.filename,
            file_type=file_type,
            created_at=created_at,
        ))

        degraded = sum(1 for chunk in embedded if chunk.embedding_error)
        logger.info(
            f"Indexed {file.filename} as {document_id}: {len(embedded)} chunks "
            f"in {time.perf_counter() - start_time:.2f}s"
        )
        return IndexResult(
            success=True,
            document_id=document_id,
            collection_name=self.collection_name,
            document_count=len(embedded),
            filename=file.filename,
            degraded_chunks=degraded,
        )

    async def embed_chunks(self, chunks: list[Chunk]) -> list[EmbeddedChunk]:
        """Embed chunks batch by batch, concurrently within each batch.

        Results keep the order of `chunks`.
        """
        embedded: list[EmbeddedChunk] = []
        total_batches = (len(chunks) + self.embed_batch_size - 1) // self.embed_batch_size

        for i in range(0, len(chunks), self.embed_batch_size):
            batch_start = time.perf_counter()
            batch = chunks[i:i + self.embed_batch_size]
            batch_number = i // self.embed_batch_size + 1
            logger.debug(f"Processing batch {batch_number}/{total_batches} ({len(batch)} chunks)")

            outcomes = await asyncio.gather(
                *(self.embedder.embed_detailed(chunk.content) for chunk in batch)
            )
            embedded.extend(
                EmbeddedChunk.from_chunk(chunk, outcome.vector, outcome.error)
                for chunk, outcome in zip(batch, outcomes)
            )
            logger.debug(
                f"Batch {batch_number} completed in {time.perf_counter() - batch_start:.2f}s"
            )

        return embedded

    def _remove_temp_file(self, path: str) -> None:
        try:
            Path(path).unlink(missing_ok=True)
            logger.debug(f"Temporary file deleted: {path}")
        except OSError as e:
            logger.error(f"Error deleting temporary file {path}: {e}")

    # -------------------------------------------------------------
    # Chat
    # -------------------------------------------------------------
    async def chat(self, query: str) -> ChatResult:
        """Answer a query from the indexed documents."""
        if not query or not query.strip():
            return ChatResult(
                success=False,
                query=query,
                error="Query is required",
                response=CHAT_ERROR_RESPONSE,
            )

        logger.info(f"Generating chat response for query: {query!r}")
        try:
            answer = await self.answerer.answer(query)
        except Exception as e:
            logger.error(f"Error generating chat response: {e}")
            return ChatResult(
                success=False,
                query=query,
                error=str(e),
                response=CHAT_ERROR_RESPONSE,
            )

        return ChatResult(
            success=True,
            query=query,
            response=answer.response,
            contexts=[
                ContextRef(content=ctx.content, score=ctx.score, source=ctx.source)
                for ctx in answer.contexts
            ],
        )

    # -------------------------------------------------------------
    # Status
    # -------------------------------------------------------------
    async def status(self) -> SystemStatus:
        """Report provider availability, the collection and the registry."""
        try:
            connected = await self.index.ping()
            info = await self.index.describe(self.collection_name) if connected else None

            return SystemStatus(
                success=True,
                status=StatusReport(
                    qdrant_connected=connected,
                    openai_available=self.embedder.available or self.generator.available,
                    global_collection=GlobalCollectionStatus(
                        name=self.collection_name,
                        exists=info is not None,
                        vector_count=info.vector_count if info else 0,
                    ),
                    indexed_documents=self.registry.snapshot(),
                ),
            )
        except Exception as e:
            logger.error(f"Error getting system status: {e}")
            return SystemStatus(success=False, error=str(e))


def create_vector_index(config: "RAGConfig") -> BaseVectorIndex:
    """Create the vector index selected by `vector_backend`."""
    if config.vector_backend == "memory":
        return MemoryVectorIndex(
            dimension=config.embedding_dimension,
            upsert_batch_size=config.upsert_batch_size,
        )
    if config.vector_backend == "chroma":
        return ChromaVectorIndex(
            persist_directory=config.chroma_path,
            dimension=config.embedding_dimension,
            upsert_batch_size=config.upsert_batch_size,
        )
    return QdrantVectorIndex(
        url=config.qdrant_url,
        api_key=config.qdrant_api_key,
        dimension=config.embedding_dimension,
        upsert_batch_size=config.upsert_batch_size,
    )


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()
