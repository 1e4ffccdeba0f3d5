"""Tests for the RAG pipeline."""

import asyncio

import pytest

from conftest import DIMENSION, FlakyEmbedding, RecordingCompleter
from ragapi.rag import (
    BaseEmbedding,
    Chunk,
    ChromaVectorIndex,
    ContentGenerator,
    DocumentRegistry,
    EmbeddingClient,
    MemoryVectorIndex,
    QdrantVectorIndex,
    RAGPipeline,
    UploadedFile,
    create_vector_index,
)
from ragapi.rag.document import IndexedDocument
from ragapi.rag.generation import INSUFFICIENT_INFORMATION
from ragapi.rag.pipeline import CHAT_ERROR_RESPONSE
from ragapi.utils.config import RAGConfig


class FailingUpsertIndex(MemoryVectorIndex):
    async def _upsert_points(self, name, points):
        raise RuntimeError("disk full")


class FailingAnswerer:
    async def answer(self, query):
        raise RuntimeError("retrieval exploded")


class StaggeredEmbedding(BaseEmbedding):
    """Answers later for earlier texts and returns a one-hot vector per paragraph number."""

    def __init__(self):
        self.in_flight = 0
        self.max_in_flight = 0
        self.events: list[tuple[str, int]] = []

    @property
    def dimension(self) -> int:
        return DIMENSION

    async def embed(self, text: str) -> list[float]:
        number = int(text.split()[1])
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        self.events.append(("start", number))
        await asyncio.sleep(0.002 * (20 - number))
        self.in_flight -= 1
        self.events.append(("finish", number))
        vector = [0.0] * DIMENSION
        vector[number] = 1.0
        return vector


def upload(path, filename="notes.txt") -> UploadedFile:
    return UploadedFile(path=str(path), filename=filename)


class TestIndexing:
    """Tests for document indexing."""

    @pytest.mark.asyncio
    async def test_index_text_document(self, pipeline, text_upload):
        """Test a text file is chunked, embedded and stored."""
        result = await pipeline.index_document(upload(text_upload))

        assert result.success
        assert result.filename == "notes.txt"
        assert result.collection_name == "global_documents"
        assert result.document_count == 1
        assert result.degraded_chunks == 0

        info = await pipeline.index.describe("global_documents")
        assert info.vector_count == 1

    @pytest.mark.asyncio
    async def test_temp_file_removed(self, pipeline, text_upload):
        """Test the uploaded file is deleted after indexing."""
        await pipeline.index_document(upload(text_upload))

        assert not text_upload.exists()

    @pytest.mark.asyncio
    async def test_registry_updated(self, pipeline, text_upload):
        """Test a successful index adds a registry entry."""
        result = await pipeline.index_document(upload(text_upload))

        entry = pipeline.registry.get(result.document_id)
        assert entry.filename == "notes.txt"
        assert entry.file_type == "text"
        assert entry.chunks_count == result.document_count

    @pytest.mark.asyncio
    async def test_chunk_metadata(self, pipeline, text_upload):
        """Test stored chunks carry the document metadata."""
        result = await pipeline.index_document(upload(text_upload))

        [hit] = await pipeline.index.search("global_documents", [1.0] * DIMENSION)
        assert hit.metadata["document_id"] == result.document_id
        assert hit.metadata["source_file"] == "notes.txt"
        assert hit.metadata["file_type"] == "text"
        assert "created_at" in hit.metadata

    @pytest.mark.asyncio
    async def test_created_at_shared(self, pipeline, text_upload):
        """Test the registry entry and the stored chunks carry the same timestamp."""
        result = await pipeline.index_document(upload(text_upload))

        [hit] = await pipeline.index.search("global_documents", [1.0] * DIMENSION)
        assert hit.metadata["created_at"] == pipeline.registry.get(result.document_id).created_at

    @pytest.mark.asyncio
    async def test_max_chunks(self, pipeline, tmp_path):
        """Test only the first max_chunks chunks of a document are indexed."""
        path = tmp_path / "big.txt"
        path.write_text("\n\n".join(f"{i:03d} " + "w" * 596 for i in range(40)))

        result = await pipeline.index_document(upload(path, "big.txt"))

        assert result.success
        assert result.document_count == 25
        info = await pipeline.index.describe("global_documents")
        assert info.vector_count == 25

    @pytest.mark.asyncio
    async def test_embedding_batches(self, embedding_client, memory_index, constant_embedding, tmp_path):
        """Test every chunk is embedded exactly once, in order."""
        pipeline = RAGPipeline(embedding_client, memory_index, embed_batch_size=3)
        path = tmp_path / "doc.txt"
        path.write_text("\n\n".join(f"paragraph {i} " + "x" * 900 for i in range(7)))

        result = await pipeline.index_document(upload(path))

        assert result.document_count == 7
        assert len(constant_embedding.calls) == 7
        assert constant_embedding.calls[0].startswith("paragraph 0")

    @pytest.mark.asyncio
    async def test_embedding_order_and_batch_concurrency(self, memory_index):
        """Test vectors stay with their chunks and batches never overlap."""
        provider = StaggeredEmbedding()
        embedder = EmbeddingClient(provider=provider, dimension=DIMENSION, retries=1)
        pipeline = RAGPipeline(embedder, memory_index, embed_batch_size=3)
        chunks = [Chunk(id=f"chunk-{i}", content=f"paragraph {i} text") for i in range(7)]

        embedded = await pipeline.embed_chunks(chunks)

        assert [e.id for e in embedded] == [c.id for c in chunks]
        for i, chunk in enumerate(embedded):
            assert chunk.content == chunks[i].content
            assert chunk.embedding.index(1.0) == i
            assert chunk.embedding_error is None
        assert provider.max_in_flight == 3

        # Every call of a batch finishes before the next batch starts
        batches = [range(0, 3), range(3, 6), range(6, 7)]
        for earlier, later in zip(batches, batches[1:]):
            last_finish = max(provider.events.index(("finish", i)) for i in earlier)
            first_start = min(provider.events.index(("start", i)) for i in later)
            assert last_finish < first_start

    @pytest.mark.asyncio
    async def test_degraded_chunks_reported(self, memory_index, text_upload):
        """Test mock-fallback chunks are counted and flagged in the payload."""
        embedder = EmbeddingClient(provider=FlakyEmbedding(failures=100), dimension=DIMENSION, retries=1)
        pipeline = RAGPipeline(embedder, memory_index)

        result = await pipeline.index_document(upload(text_upload))

        assert result.success
        assert result.degraded_chunks == result.document_count
        points = memory_index._collections["global_documents"].values()
        assert all(p.payload["embedding_error"] == "connection reset" for p in points)

    @pytest.mark.asyncio
    async def test_upsert_failure(self, embedding_client, text_upload):
        """Test a storage failure produces a failed result and no registry entry."""
        pipeline = RAGPipeline(embedding_client, FailingUpsertIndex(dimension=DIMENSION))

        result = await pipeline.index_document(upload(text_upload))

        assert not result.success
        assert "disk full" in result.error
        assert len(pipeline.registry) == 0
        assert not text_upload.exists()

    @pytest.mark.asyncio
    async def test_image_placeholder(self, pipeline, tmp_path):
        """Test images are indexed through their placeholder text."""
        path = tmp_path / "document-1-2.png"
        path.write_bytes(b"\x89PNG")

        result = await pipeline.index_document(upload(path, "diagram.png"))

        assert result.success
        assert result.document_count == 1
        [hit] = await pipeline.index.search("global_documents", [1.0] * DIMENSION)
        assert hit.content == "[Image: document-1-2.png]"
        assert hit.metadata["file_type"] == "image"


class TestChat:
    """Tests for the chat path."""

    @pytest.mark.asyncio
    async def test_chat_with_context(self, pipeline, text_upload):
        """Test answers are grounded on indexed chunks."""
        await pipeline.index_document(upload(text_upload))

        result = await pipeline.chat("What is Python?")

        assert result.success
        assert result.query == "What is Python?"
        assert result.response.startswith("Based on the information I have")
        assert "Python is a high-level programming language" in result.response
        assert len(result.contexts) == 1
        assert result.contexts[0].source == "notes.txt"
        assert result.contexts[0].score == pytest.approx(1.0)

    @pytest.mark.asyncio
    async def test_chat_with_completer(self, embedding_client, memory_index, text_upload):
        """Test a configured completer produces the response."""
        completer = RecordingCompleter("Python is a language.")
        pipeline = RAGPipeline(embedding_client, memory_index, generator=ContentGenerator(completer))
        await pipeline.index_document(upload(text_upload))

        result = await pipeline.chat("What is Python?")

        assert result.response == "Python is a language."
        assert "CONTEXT: Python is a high-level" in completer.calls[0]["messages"][1]["content"]

    @pytest.mark.asyncio
    async def test_chat_empty_index(self, pipeline):
        """Test a query before any indexing gets the insufficient answer."""
        result = await pipeline.chat("What is Python?")

        assert result.success
        assert result.response == INSUFFICIENT_INFORMATION
        assert result.contexts == []

    @pytest.mark.asyncio
    async def test_chat_unrelated_documents(self, text_upload):
        """Test random mock vectors never clear the similarity threshold."""
        pipeline = RAGPipeline(EmbeddingClient(), MemoryVectorIndex())
        await pipeline.index_document(upload(text_upload))

        result = await pipeline.chat("What is Python?")

        assert result.success
        assert result.response == INSUFFICIENT_INFORMATION

    @pytest.mark.asyncio
    async def test_chat_empty_query(self, pipeline):
        """Test an empty query is rejected."""
        result = await pipeline.chat("   ")

        assert not result.success
        assert result.error == "Query is required"

    @pytest.mark.asyncio
    async def test_chat_error(self, pipeline):
        """Test failures are reported with the apology response."""
        pipeline.answerer = FailingAnswerer()

        result = await pipeline.chat("What is Python?")

        assert not result.success
        assert result.error == "retrieval exploded"
        assert result.response == CHAT_ERROR_RESPONSE


class TestStatus:
    """Tests for status reporting."""

    @pytest.mark.asyncio
    async def test_status_before_indexing(self, pipeline):
        """Test status of a fresh pipeline."""
        result = await pipeline.status()

        assert result.success
        assert result.status.qdrant_connected
        assert result.status.openai_available
        assert not result.status.global_collection.exists
        assert result.status.global_collection.vector_count == 0
        assert result.status.indexed_documents == []

    @pytest.mark.asyncio
    async def test_status_after_indexing(self, pipeline, text_upload):
        """Test status reflects indexed documents."""
        indexed = await pipeline.index_document(upload(text_upload))

        result = await pipeline.status()

        collection = result.status.global_collection
        assert collection.name == "global_documents"
        assert collection.exists
        assert collection.vector_count == indexed.document_count
        [document] = result.status.indexed_documents
        assert document.document_id == indexed.document_id

    @pytest.mark.asyncio
    async def test_status_mock_providers(self):
        """Test providers report unavailable without credentials."""
        pipeline = RAGPipeline(EmbeddingClient(), MemoryVectorIndex())

        result = await pipeline.status()

        assert not result.status.openai_available

    def test_status_wire_format(self):
        """Test the status report serializes with camelCase keys."""
        registry = DocumentRegistry()
        registry.add(IndexedDocument(
            document_id="d1",
            chunks_count=3,
            filename="a.txt",
            file_type="text",
            created_at="2024-01-01T00:00:00+00:00",
        ))

        [entry] = [d.to_response() for d in registry.snapshot()]

        assert entry == {
            "documentId": "d1",
            "chunksCount": 3,
            "filename": "a.txt",
            "fileType": "text",
            "createdAt": "2024-01-01T00:00:00+00:00",
        }


class TestFromConfig:
    """Tests for building a pipeline from configuration."""

    def test_mock_providers_without_key(self):
        pipeline = RAGPipeline.from_config(RAGConfig(vector_backend="memory"))

        assert not pipeline.embedder.available
        assert not pipeline.generator.available
        assert isinstance(pipeline.index, MemoryVectorIndex)
        assert pipeline.collection_name == "global_documents"

    def test_real_providers_with_key(self):
        pipeline = RAGPipeline.from_config(RAGConfig(vector_backend="memory", openai_api_key="sk-test"))

        assert pipeline.embedder.available
        assert pipeline.generator.available
        assert pipeline.generator.model == "gpt-3.5-turbo"

    def test_vector_backends(self, tmp_path):
        assert isinstance(create_vector_index(RAGConfig()), QdrantVectorIndex)
        assert isinstance(
            create_vector_index(RAGConfig(vector_backend="chroma", chroma_path=str(tmp_path))),
            ChromaVectorIndex,
        )
