"""Grounded response generation."""

import asyncio
import logging
import re
from typing import Any, Optional

import httpx

from .base import BaseCompleter
from .document import Answer, SearchResult
from .exceptions import CompletionError, CompletionTimeoutError
from .retriever import VectorRetriever

logger = logging.getLogger(__name__)

DEFAULT_SYSTEM_PROMPT = (
    "You are a helpful assistant that answers questions based on the context provided. "
    "Your job is to provide accurate, helpful information from the context. "
    "If the context doesn't contain information to answer the question, say "
    "\"I don't have enough information to answer this question.\" "
    "Do not make up information or use knowledge outside of the provided context."
)

INSUFFICIENT_INFORMATION = (
    "I don't have enough information to answer this question as no context was provided."
)

MOCK_RESPONSE_PREFIX = "Based on the information I have, I can tell you that "
MOCK_RESPONSE_SUFFIX = (
    " This information is directly based on the context provided. "
    "Is there anything specific about this you'd like me to elaborate on?"
)

SENTENCE_END = re.compile(r"[.!?]+")


def build_messages(
    query: str,
    contexts: list[SearchResult],
    system_prompt: str = DEFAULT_SYSTEM_PROMPT,
) -> list[dict[str, str]]:
    """Build the grounding prompt for a chat completion."""
    context_text = "\n".join(f"CONTEXT: {ctx.content}\n" for ctx in contexts)
    return [
        {"role": "system", "content": system_prompt},
        {
            "role": "user",
            "content": (
                f"{context_text}\n\nQUESTION: {query}\n\n"
                "Please provide a response based on the above context."
            ),
        },
    ]


def generate_mock_response(query: str, contexts: list[SearchResult]) -> str:
    """Synthesize an answer from the retrieved contexts without an LLM.

    Takes the first two sentences of each of the first two contexts.
    """
    if not contexts:
        return INSUFFICIENT_INFORMATION

    samples = []
    for ctx in contexts[:2]:
        sentences = [s.strip() for s in SENTENCE_END.split(ctx.content) if s.strip()]
        samples.append(". ".join(sentences[:2]) + ".")

    return MOCK_RESPONSE_PREFIX + " Furthermore, ".join(samples) + MOCK_RESPONSE_SUFFIX


class OpenAICompleter(BaseCompleter):
    """Chat completion provider backed by the OpenAI API."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
    ):
        self.api_key = api_key
        self.base_url = base_url
        self._client = None

    def _get_client(self):
        """Get or create the OpenAI client."""
        if self._client is None:
            from openai import AsyncOpenAI

            self._client = AsyncOpenAI(
                api_key=self.api_key,
                base_url=self.base_url,
                max_retries=0,
                timeout=httpx.Timeout(60.0, connect=10.0),
            )
        return self._client

    async def complete(
        self,
        messages: list[dict[str, Any]],
        *,
        model: str,
        temperature: float = 0.7,
        max_tokens: int = 500,
    ) -> str:
        """Get a completion from OpenAI."""
        client = self._get_client()

        response = await client.chat.completions.create(
            model=model,
            messages=messages,
            temperature=temperature,
            max_tokens=max_tokens,
        )

        content = response.choices[0].message.content
        if not content:
            raise CompletionError("Completion returned no content")
        return content.strip()


class ContentGenerator:
    """Generates answers from retrieved contexts.

    With no completer configured every answer comes from the mock
    generator. A configured completer is called once per query, raced
    against `timeout`; errors and timeouts fall back to the mock answer.
    """

    def __init__(
        self,
        completer: Optional[BaseCompleter] = None,
        model: str = "gpt-3.5-turbo",
        temperature: float = 0.7,
        max_tokens: int = 500,
        timeout: float = 30.0,
        system_prompt: str = DEFAULT_SYSTEM_PROMPT,
    ):
        self.completer = completer
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.timeout = timeout
        self.system_prompt = system_prompt

        if completer is None:
            logger.info("No completion provider configured, using mock content generation")

    @property
    def available(self) -> bool:
        return self.completer is not None

    async def generate(self, query: str, contexts: list[SearchResult]) -> str:
        """Generate a response; always returns a non-empty string."""
        if self.completer is None:
            logger.debug(f"Generating mock response for: {query!r}")
            return generate_mock_response(query, contexts)

        messages = build_messages(query, contexts, self.system_prompt)
        logger.info(f"Generating response for query {query!r} with {len(contexts)} contexts")

        try:
            text = await self._complete(messages)
        except Exception as e:
            logger.error(f"Error generating response: {e}, falling back to mock response")
            return generate_mock_response(query, contexts)

        logger.info(f"Response generated successfully ({len(text)} chars)")
        return text

    async def _complete(self, messages: list[dict[str, Any]]) -> str:
        try:
            return await asyncio.wait_for(
                self.completer.complete(
                    messages,
                    model=self.model,
                    temperature=self.temperature,
                    max_tokens=self.max_tokens,
                ),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            raise CompletionTimeoutError(self.timeout)


class RAGAnswerer:
    """Answers a query from the most relevant indexed chunks."""

    def __init__(self, retriever: VectorRetriever, generator: ContentGenerator):
        self.retriever = retriever
        self.generator = generator

    async def answer(self, query: str) -> Answer:
        contexts = await self.retriever.retrieve(query)
        response = await self.generator.generate(query, contexts)
        return Answer(response=response, contexts=contexts)
