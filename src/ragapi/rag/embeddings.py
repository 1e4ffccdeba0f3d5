"""Embedding providers and the retrying embedding client."""

import asyncio
import logging
import math
import random
import re
from typing import Optional

import httpx
from pydantic import BaseModel

from .base import BaseEmbedding
from .exceptions import EmbeddingError, EmbeddingTimeoutError

logger = logging.getLogger(__name__)

DEFAULT_DIMENSION = 1536
MAX_INPUT_CHARS = 8000

RATE_LIMIT_MARKERS = ("rate limit", "429", "too many requests")


def generate_mock_embedding(dimension: int = DEFAULT_DIMENSION) -> list[float]:
    """Generate a random unit-length vector.

    Values are drawn uniformly from [-1, 1] and L2-normalized. The shape is
    stable but the values are not reproducible between calls.
    """
    embedding = [random.uniform(-1.0, 1.0) for _ in range(dimension)]
    magnitude = math.sqrt(sum(v * v for v in embedding))
    if magnitude == 0:
        embedding[0] = 1.0
        return embedding
    return [v / magnitude for v in embedding]


def is_rate_limit_error(error: BaseException) -> bool:
    """Check whether an error looks like provider backpressure."""
    if getattr(error, "status_code", None) == 429:
        return True
    message = str(error).lower()
    return any(marker in message for marker in RATE_LIMIT_MARKERS)


def backoff_delay(
    attempt: int,
    rate_limited: bool = False,
    base_delay: float = 1.0,
    rate_limit_delay: float = 2.0,
    max_delay: float = 15.0,
) -> float:
    """Seconds to wait after a failed attempt (1-based)."""
    base = rate_limit_delay if rate_limited else base_delay
    return min(base * (2 ** (attempt - 1)), max_delay)


def prepare_text(text: str, max_chars: int = MAX_INPUT_CHARS) -> str:
    """Collapse newlines and truncate text to stay under provider limits."""
    return re.sub(r"\n+", " ", text.strip())[:max_chars]


class MockEmbedding(BaseEmbedding):
    """Embedding provider used when no credential is configured.

    Returns random unit vectors; useful to run the system end-to-end
    without external services.
    """

    def __init__(self, dimension: int = DEFAULT_DIMENSION):
        self._dimension = dimension

    @property
    def dimension(self) -> int:
        return self._dimension

    async def embed(self, text: str) -> list[float]:
        return generate_mock_embedding(self._dimension)


class OpenAIEmbedding(BaseEmbedding):
    """OpenAI embedding model.

    Uses OpenAI's embedding API. Retries are disabled on the underlying
    client because `EmbeddingClient` owns the retry policy.
    """

    # Known model dimensions
    MODEL_DIMENSIONS = {
        "text-embedding-3-small": 1536,
        "text-embedding-3-large": 3072,
        "text-embedding-ada-002": 1536,
    }

    def __init__(
        self,
        model: str = "text-embedding-ada-002",
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
    ):
        """Initialize the OpenAI embedding model.

        Args:
            model: Model name
            api_key: OpenAI API key (optional, uses env var if not provided)
            base_url: Optional base URL for API
        """
        self.model = model
        self.api_key = api_key
        self.base_url = base_url
        self._client = None

    @property
    def dimension(self) -> int:
        return self.MODEL_DIMENSIONS.get(self.model, DEFAULT_DIMENSION)

    def _get_client(self):
        """Get or create the OpenAI client."""
        if self._client is None:
            from openai import AsyncOpenAI

            kwargs = {"max_retries": 0, "timeout": httpx.Timeout(60.0, connect=10.0)}
            if self.api_key:
                kwargs["api_key"] = self.api_key
            if self.base_url:
                kwargs["base_url"] = self.base_url

            self._client = AsyncOpenAI(**kwargs)
        return self._client

    async def embed(self, text: str) -> list[float]:
        """Embed a single text using OpenAI API."""
        client = self._get_client()

        response = await client.embeddings.create(
            model=self.model,
            input=text,
        )

        return response.data[0].embedding


class EmbeddingOutcome(BaseModel):
    """An embedding vector and how it was obtained.

    Attributes:
        vector: The embedding, always of the configured dimension
        mocked: True when the vector came from the mock generator
        error: Last provider error when a configured provider was exhausted
    """

    vector: list[float]
    mocked: bool = False
    error: Optional[str] = None


class EmbeddingClient:
    """Embedding client with timeout, retry with backoff and mock fallback.

    The provider strategy is fixed at construction: without a provider every
    call returns a mock embedding immediately. With a provider, each attempt
    is raced against a timeout; failures are retried with exponential
    backoff and, once retries are exhausted, masked by a mock embedding.
    `embed` therefore never raises.
    """

    def __init__(
        self,
        provider: Optional[BaseEmbedding] = None,
        dimension: int = DEFAULT_DIMENSION,
        retries: int = 3,
        timeout: float = 10.0,
        base_delay: float = 1.0,
        rate_limit_delay: float = 2.0,
        max_delay: float = 15.0,
        max_input_chars: int = MAX_INPUT_CHARS,
    ):
        """Initialize the embedding client.

        Args:
            provider: Real embedding provider, or None for mock mode
            dimension: Expected vector length
            retries: Default number of attempts per call
            timeout: Default per-attempt timeout in seconds
            base_delay: Backoff base for ordinary failures, in seconds
            rate_limit_delay: Backoff base for rate-limited failures, in seconds
            max_delay: Upper bound on any single backoff wait, in seconds
            max_input_chars: Input is truncated to this many characters
        """
        if retries < 1:
            raise ValueError("retries must be at least 1")

        self.provider = provider
        self.dimension = dimension
        self.retries = retries
        self.timeout = timeout
        self.base_delay = base_delay
        self.rate_limit_delay = rate_limit_delay
        self.max_delay = max_delay
        self.max_input_chars = max_input_chars
        self._mock = MockEmbedding(dimension)

    @property
    def available(self) -> bool:
        """Whether a real provider is configured."""
        return self.provider is not None

    async def embed(
        self,
        text: str,
        retries: Optional[int] = None,
        timeout: Optional[float] = None,
    ) -> list[float]:
        """Embed text, always returning a vector of `dimension` floats."""
        outcome = await self.embed_detailed(text, retries=retries, timeout=timeout)
        return outcome.vector

    async def embed_detailed(
        self,
        text: str,
        retries: Optional[int] = None,
        timeout: Optional[float] = None,
    ) -> EmbeddingOutcome:
        """Embed text and report whether the result is a fallback."""
        if self.provider is None:
            logger.debug("No embedding provider configured, using mock embeddings")
            return EmbeddingOutcome(vector=await self._mock.embed(text), mocked=True)

        retries = retries or self.retries
        timeout = timeout if timeout is not None else self.timeout
        payload = prepare_text(text, self.max_input_chars)
        last_error: Optional[BaseException] = None

        for attempt in range(1, retries + 1):
            try:
                logger.debug(f"Generating embedding attempt {attempt}/{retries}")
                vector = await self._attempt(payload, timeout)
                logger.debug("Embedding generation successful")
                return EmbeddingOutcome(vector=vector)
            except Exception as e:
                last_error = e
                rate_limited = is_rate_limit_error(e)
                logger.warning(
                    f"Error generating embedding (attempt {attempt}/{retries}): "
                    f"{'Rate limit exceeded' if rate_limited else e}"
                )

                if attempt == retries:
                    break

                wait = backoff_delay(
                    attempt,
                    rate_limited,
                    base_delay=self.base_delay,
                    rate_limit_delay=self.rate_limit_delay,
                    max_delay=self.max_delay,
                )
                logger.info(f"Waiting {wait * 1000:.0f}ms before retry...")
                await asyncio.sleep(wait)

        logger.warning("Falling back to mock embeddings after failed retries")
        return EmbeddingOutcome(
            vector=await self._mock.embed(text),
            mocked=True,
            error=str(last_error) if last_error else None,
        )

    async def _attempt(self, text: str, timeout: float) -> list[float]:
        """Run one provider call raced against the timeout."""
        try:
            vector = await asyncio.wait_for(self.provider.embed(text), timeout=timeout)
        except asyncio.TimeoutError:
            raise EmbeddingTimeoutError(timeout)

        if len(vector) != self.dimension:
            raise EmbeddingError(
                f"Provider returned {len(vector)} dimensions, expected {self.dimension}"
            )
        return list(vector)
