"""Retriever implementations."""

import logging

from .document import SearchResult
from .embeddings import EmbeddingClient
from .vectorstore import BaseVectorIndex

logger = logging.getLogger(__name__)


class VectorRetriever:
    """Vector similarity retriever.

    Embeds the query and searches a single collection. An empty result
    is a normal outcome (nothing indexed yet, or nothing similar enough).
    """

    def __init__(
        self,
        embedder: EmbeddingClient,
        index: BaseVectorIndex,
        collection_name: str,
        limit: int = 5,
        min_score: float = 0.7,
        timeout: float = 30.0,
    ):
        """Initialize the vector retriever.

        Args:
            embedder: Embedding client for queries
            index: Vector index to search
            collection_name: Collection holding all indexed chunks
            limit: Maximum number of results
            min_score: Minimum similarity for a result to be returned
            timeout: Search timeout in seconds
        """
        self.embedder = embedder
        self.index = index
        self.collection_name = collection_name
        self.limit = limit
        self.min_score = min_score
        self.timeout = timeout

    async def retrieve(self, query: str) -> list[SearchResult]:
        """Retrieve chunks relevant to a query."""
        query_embedding = await self.embedder.embed(query)

        results = await self.index.search(
            self.collection_name,
            query_embedding,
            limit=self.limit,
            min_score=self.min_score,
            timeout=self.timeout,
        )

        logger.info(f"Found {len(results)} relevant documents")
        return results
