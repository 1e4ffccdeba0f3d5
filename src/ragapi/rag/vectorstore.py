"""Vector index implementations."""

import asyncio
import logging
import math
import re
import uuid
from abc import ABC, abstractmethod
from typing import Any, Callable, Optional

from qdrant_client import AsyncQdrantClient, models

from .document import (
    CollectionInfo,
    CollectionStatus,
    EmbeddedChunk,
    SearchResult,
    UpsertResult,
    VectorPoint,
)
from .exceptions import DimensionMismatchError, VectorIndexError

logger = logging.getLogger(__name__)

UUID_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[1-5][0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$",
    re.IGNORECASE,
)

# (point id, score, payload)
ScoredPayload = tuple[str, float, dict[str, Any]]


def cosine_similarity(a: list[float], b: list[float]) -> float:
    """Calculate cosine similarity between two vectors."""
    if len(a) != len(b):
        raise ValueError("Vectors must have the same dimension")

    dot_product = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(x * x for x in b))

    if norm_a == 0 or norm_b == 0:
        return 0.0

    return dot_product / (norm_a * norm_b)


def canonical_point_id(chunk_id: str) -> str:
    """Return an id the vector database accepts as a point key.

    UUIDs are kept as they are; anything else is replaced by a fresh UUID.
    The original id always travels in the payload as `original_id`.
    """
    if UUID_PATTERN.match(chunk_id):
        return chunk_id
    return str(uuid.uuid4())


class BaseVectorIndex(ABC):
    """Abstract base class for vector indexes over a named collection.

    Subclasses implement the storage primitives; this class owns the
    collection lifecycle, id canonicalisation, batched writes and the
    degrade-to-empty search policy.
    """

    backend_name = "base"

    def __init__(
        self,
        dimension: int = 1536,
        upsert_batch_size: int = 100,
    ):
        """Initialize the vector index.

        Args:
            dimension: Fixed vector dimensionality of created collections
            upsert_batch_size: Points written per request
        """
        self.dimension = dimension
        self.upsert_batch_size = upsert_batch_size
        self.connected = False

    # -------------------------------------------------------------
    # Storage primitives
    # -------------------------------------------------------------
    @abstractmethod
    async def _list_collections(self) -> list[str]:
        pass

    @abstractmethod
    async def _create_collection(self, name: str) -> None:
        pass

    @abstractmethod
    async def _upsert_points(self, name: str, points: list[VectorPoint]) -> None:
        """Write points and wait for the write to be acknowledged."""
        pass

    @abstractmethod
    async def _query(
        self,
        name: str,
        vector: list[float],
        limit: int,
        min_score: float,
    ) -> list[ScoredPayload]:
        pass

    @abstractmethod
    async def _count(self, name: str) -> int:
        pass

    @abstractmethod
    async def _drop_collection(self, name: str) -> None:
        pass

    async def _collection_exists(self, name: str) -> bool:
        return name in await self._list_collections()

    # -------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------
    async def ping(self) -> bool:
        """Check connectivity and remember the result in `connected`."""
        try:
            await self._list_collections()
            self.connected = True
        except Exception as e:
            logger.error(f"Error connecting to {self.backend_name}: {e}")
            self.connected = False
        return self.connected

    async def connect(self) -> bool:
        """Verify the connection at startup."""
        if await self.ping():
            logger.info(f"Connected to {self.backend_name} successfully")
        return self.connected

    async def ensure_collection(self, name: str) -> CollectionStatus:
        """Create the collection if it is absent.

        Raises:
            VectorIndexError: The database could not be reached or refused the create
        """
        try:
            if await self._collection_exists(name):
                logger.debug(f"Collection {name} already exists")
                return CollectionStatus(created=False, existed=True)
        except Exception as e:
            raise VectorIndexError(f"Failed to list collections: {e}") from e

        try:
            await self._create_collection(name)
        except Exception as e:
            # A concurrent caller may have created it first
            try:
                exists = await self._collection_exists(name)
            except Exception:
                exists = False
            if exists:
                logger.debug(f"Collection {name} was created concurrently")
                return CollectionStatus(created=False, existed=True)
            raise VectorIndexError(f"Failed to create collection {name}: {e}") from e

        logger.info(f"Collection {name} created")
        return CollectionStatus(created=True, existed=False)

    async def upsert(self, name: str, chunks: list[EmbeddedChunk]) -> UpsertResult:
        """Write embedded chunks to the collection in acknowledged batches.

        A failing batch aborts the call; batches written before it remain.

        Raises:
            DimensionMismatchError: A vector does not match `dimension`
            VectorIndexError: The collection could not be created or written
        """
        for chunk in chunks:
            if len(chunk.embedding) != self.dimension:
                raise DimensionMismatchError(self.dimension, len(chunk.embedding))

        status = await self.ensure_collection(name)
        points = [self._to_point(chunk) for chunk in chunks]

        for i in range(0, len(points), self.upsert_batch_size):
            batch = points[i:i + self.upsert_batch_size]
            try:
                await self._upsert_points(name, batch)
            except Exception as e:
                raise VectorIndexError(
                    f"Failed to upsert batch {i // self.upsert_batch_size + 1} into {name}: {e}"
                ) from e

        logger.info(f"Added {len(points)} documents to {name}")
        return UpsertResult(
            documents_added=len(points),
            collection_created=status.created,
            collection_existed=status.existed,
        )

    async def search(
        self,
        name: str,
        query_vector: list[float],
        limit: int = 5,
        min_score: float = 0.7,
        timeout: float = 30.0,
    ) -> list[SearchResult]:
        """Find the nearest chunks scoring at least `min_score`.

        Never raises: an absent collection, a timeout or any database
        failure yields an empty list.
        """
        logger.debug(f"Starting search in collection {name} with {timeout * 1000:.0f}ms timeout")
        try:
            if not await self._collection_exists(name):
                logger.info(f"Collection {name} not found")
                return []

            hits = await asyncio.wait_for(
                self._query(name, query_vector, limit, min_score),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            logger.error(f"Search in {name} timed out after {timeout * 1000:.0f}ms, returning empty results")
            return []
        except Exception as e:
            logger.error(f"Error searching in {name}: {e}, returning empty results")
            return []

        results = [
            self._to_result(point_id, score, payload)
            for point_id, score, payload in hits
            if score >= min_score
        ]
        results.sort(key=lambda r: r.score, reverse=True)
        logger.info(f"Search completed, found {len(results[:limit])} results")
        return results[:limit]

    async def describe(self, name: str) -> Optional[CollectionInfo]:
        """Return the vector count of a collection, or None if it does not exist."""
        try:
            if not await self._collection_exists(name):
                return None
            return CollectionInfo(name=name, vector_count=await self._count(name))
        except Exception as e:
            logger.error(f"Error getting collection {name}: {e}")
            return None

    async def delete_collection(self, name: str) -> bool:
        """Delete a collection, reporting success instead of raising."""
        try:
            await self._drop_collection(name)
        except Exception as e:
            logger.error(f"Error deleting collection {name}: {e}")
            return False
        logger.info(f"Collection {name} deleted")
        return True

    # -------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------
    def _to_point(self, chunk: EmbeddedChunk) -> VectorPoint:
        payload = {
            "original_id": chunk.id,
            "content": chunk.content,
            **chunk.metadata,
        }
        if chunk.embedding_error:
            payload["embedding_error"] = chunk.embedding_error

        return VectorPoint(
            id=canonical_point_id(chunk.id),
            vector=chunk.embedding,
            payload=payload,
        )

    def _to_result(self, point_id: str, score: float, payload: dict[str, Any]) -> SearchResult:
        metadata = dict(payload)
        content = metadata.pop("content", "") or ""
        return SearchResult(
            id=str(metadata.get("original_id") or point_id),
            content=content,
            metadata=metadata,
            # Float error can push cosine scores just outside [0, 1]
            score=max(0.0, min(score, 1.0)),
        )


class MemoryVectorIndex(BaseVectorIndex):
    """In-memory vector index for tests and offline demos.

    Performs exact cosine search over all stored points.
    Not suitable for large-scale production use.
    """

    backend_name = "memory"

    def __init__(self, dimension: int = 1536, upsert_batch_size: int = 100):
        super().__init__(dimension, upsert_batch_size)
        self._collections: dict[str, dict[str, VectorPoint]] = {}

    async def _list_collections(self) -> list[str]:
        return list(self._collections)

    async def _create_collection(self, name: str) -> None:
        self._collections.setdefault(name, {})

    async def _upsert_points(self, name: str, points: list[VectorPoint]) -> None:
        if name not in self._collections:
            raise VectorIndexError(f"Collection {name} not found")
        for point in points:
            self._collections[name][point.id] = point

    async def _query(
        self,
        name: str,
        vector: list[float],
        limit: int,
        min_score: float,
    ) -> list[ScoredPayload]:
        scored = []
        for point in self._collections[name].values():
            score = cosine_similarity(vector, point.vector)
            if score >= min_score:
                scored.append((point.id, score, dict(point.payload)))

        scored.sort(key=lambda x: x[1], reverse=True)
        return scored[:limit]

    async def _count(self, name: str) -> int:
        return len(self._collections[name])

    async def _drop_collection(self, name: str) -> None:
        if self._collections.pop(name, None) is None:
            raise VectorIndexError(f"Collection {name} not found")


class QdrantVectorIndex(BaseVectorIndex):
    """Qdrant vector index.

    Collections use cosine distance. Pass `url=":memory:"` to run
    qdrant-client's local in-process mode.
    """

    backend_name = "Qdrant"

    def __init__(
        self,
        url: str = "http://localhost:6333",
        api_key: Optional[str] = None,
        dimension: int = 1536,
        upsert_batch_size: int = 100,
        client: Optional[AsyncQdrantClient] = None,
    ):
        """Initialize the Qdrant vector index.

        Args:
            url: Qdrant server URL, or ":memory:" for local mode
            api_key: Optional Qdrant API key
            dimension: Vector dimensionality of created collections
            upsert_batch_size: Points written per request
            client: Preconfigured client (mainly for tests)
        """
        super().__init__(dimension, upsert_batch_size)
        self.url = url
        self.api_key = api_key
        self._client = client

    def _get_client(self) -> AsyncQdrantClient:
        """Get or create the Qdrant client."""
        if self._client is None:
            if self.url == ":memory:":
                self._client = AsyncQdrantClient(location=":memory:")
            else:
                self._client = AsyncQdrantClient(url=self.url, api_key=self.api_key)
            logger.info(
                f"Initializing Qdrant client: url={self.url}, "
                f"api_key={'***' if self.api_key else '<none>'}"
            )
        return self._client

    async def _list_collections(self) -> list[str]:
        response = await self._get_client().get_collections()
        return [c.name for c in response.collections]

    async def _create_collection(self, name: str) -> None:
        await self._get_client().create_collection(
            collection_name=name,
            vectors_config=models.VectorParams(
                size=self.dimension,
                distance=models.Distance.COSINE,
            ),
            optimizers_config=models.OptimizersConfigDiff(default_segment_number=2),
            replication_factor=1,
        )

    async def _upsert_points(self, name: str, points: list[VectorPoint]) -> None:
        await self._get_client().upsert(
            collection_name=name,
            points=[
                models.PointStruct(id=p.id, vector=p.vector, payload=p.payload)
                for p in points
            ],
            wait=True,
        )

    async def _query(
        self,
        name: str,
        vector: list[float],
        limit: int,
        min_score: float,
    ) -> list[ScoredPayload]:
        response = await self._get_client().query_points(
            collection_name=name,
            query=vector,
            limit=limit,
            score_threshold=min_score,
            with_payload=True,
        )
        return [(str(p.id), p.score, p.payload or {}) for p in response.points]

    async def _count(self, name: str) -> int:
        info = await self._get_client().get_collection(collection_name=name)
        return info.points_count or 0

    async def _drop_collection(self, name: str) -> None:
        await self._get_client().delete_collection(collection_name=name)


class ChromaVectorIndex(BaseVectorIndex):
    """ChromaDB vector index.

    Uses ChromaDB for local persistent vector storage. ChromaDB reports
    cosine distance, which is converted to similarity as `1 - distance`.
    Requires the 'chroma' extra to be installed.
    """

    backend_name = "ChromaDB"

    def __init__(
        self,
        persist_directory: Optional[str] = None,
        dimension: int = 1536,
        upsert_batch_size: int = 100,
        client: Any = None,
    ):
        """Initialize the ChromaDB vector index.

        Args:
            persist_directory: Directory for persistent storage (None for in-memory)
            dimension: Vector dimensionality enforced on insert
            upsert_batch_size: Points written per request
            client: Preconfigured client (mainly for tests)
        """
        super().__init__(dimension, upsert_batch_size)
        self.persist_directory = persist_directory
        self._client = client
        self._collections: dict[str, Any] = {}

    def _get_client(self):
        """Get or create the ChromaDB client."""
        if self._client is None:
            try:
                import chromadb
            except ImportError:
                raise ImportError(
                    "ChromaDB vector index requires 'chromadb'. "
                    "Install it with: pip install 'ragapi[chroma]'"
                )

            if self.persist_directory:
                self._client = chromadb.PersistentClient(path=self.persist_directory)
            else:
                self._client = chromadb.Client()
        return self._client

    async def _run(self, func: Callable[[], Any]) -> Any:
        loop = asyncio.get_event_loop()
        return await loop.run_in_executor(None, func)

    def _get_collection(self, name: str):
        if name not in self._collections:
            self._collections[name] = self._get_client().get_collection(name=name)
        return self._collections[name]

    async def _list_collections(self) -> list[str]:
        client = self._get_client()
        collections = await self._run(client.list_collections)
        # Newer chromadb releases return names, older ones Collection objects
        return [getattr(c, "name", c) for c in collections]

    async def _create_collection(self, name: str) -> None:
        client = self._get_client()
        collection = await self._run(
            lambda: client.get_or_create_collection(
                name=name,
                metadata={"hnsw:space": "cosine"},
                embedding_function=None,
            )
        )
        self._collections[name] = collection

    async def _upsert_points(self, name: str, points: list[VectorPoint]) -> None:
        ids = []
        documents = []
        embeddings = []
        metadatas = []

        for point in points:
            metadata = {
                k: v for k, v in point.payload.items()
                if k != "content" and v is not None
            }
            ids.append(point.id)
            documents.append(point.payload.get("content", ""))
            embeddings.append(point.vector)
            metadatas.append(metadata)

        await self._run(
            lambda: self._get_collection(name).upsert(
                ids=ids,
                documents=documents,
                embeddings=embeddings,
                metadatas=metadatas,
            )
        )

    async def _query(
        self,
        name: str,
        vector: list[float],
        limit: int,
        min_score: float,
    ) -> list[ScoredPayload]:
        results = await self._run(
            lambda: self._get_collection(name).query(
                query_embeddings=[vector],
                n_results=limit,
                include=["documents", "metadatas", "distances"],
            )
        )

        hits = []
        if results and results["ids"] and results["ids"][0]:
            for i, point_id in enumerate(results["ids"][0]):
                metadata = dict(results["metadatas"][0][i] or {}) if results["metadatas"] else {}
                metadata["content"] = results["documents"][0][i] if results["documents"] else ""
                distance = results["distances"][0][i] if results["distances"] else 1.0
                hits.append((point_id, 1 - distance, metadata))
        return hits

    async def _count(self, name: str) -> int:
        return await self._run(lambda: self._get_collection(name).count())

    async def _drop_collection(self, name: str) -> None:
        client = self._get_client()
        await self._run(lambda: client.delete_collection(name=name))
        self._collections.pop(name, None)
