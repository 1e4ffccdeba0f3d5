"""Tests for response generation."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from conftest import FailingCompleter, RecordingCompleter, SlowCompleter
from ragapi.rag import ContentGenerator, OpenAICompleter, SearchResult, generate_mock_response
from ragapi.rag.exceptions import CompletionError
from ragapi.rag.generation import (
    DEFAULT_SYSTEM_PROMPT,
    INSUFFICIENT_INFORMATION,
    build_messages,
)

PREFIX = "Based on the information I have, I can tell you that "
SUFFIX = (
    " This information is directly based on the context provided. "
    "Is there anything specific about this you'd like me to elaborate on?"
)


def make_context(content: str, score: float = 0.9, source: str = "notes.txt") -> SearchResult:
    return SearchResult(id="c1", content=content, metadata={"source_file": source}, score=score)


class TestMockResponse:
    """Tests for mock response synthesis."""

    def test_no_contexts(self):
        """Test the insufficient-information answer without contexts."""
        assert generate_mock_response("What is Python?", []) == INSUFFICIENT_INFORMATION

    def test_single_context(self):
        """Test the first two sentences of a context are quoted."""
        context = make_context("Python is a language. It is popular! It has many libraries.")

        response = generate_mock_response("What is Python?", [context])

        assert response == PREFIX + "Python is a language. It is popular." + SUFFIX

    def test_two_contexts_joined(self):
        """Test samples from two contexts are joined."""
        contexts = [
            make_context("First fact. Second fact. Third fact."),
            make_context("Other fact"),
            make_context("Ignored fact."),
        ]

        response = generate_mock_response("q", contexts)

        assert response == PREFIX + "First fact. Second fact. Furthermore, Other fact." + SUFFIX
        assert "Ignored" not in response


class TestBuildMessages:
    """Tests for prompt construction."""

    def test_messages(self):
        """Test system and user messages carry the prompt, contexts and query."""
        messages = build_messages("What is Python?", [make_context("Python is a language.")])

        assert messages[0] == {"role": "system", "content": DEFAULT_SYSTEM_PROMPT}
        assert messages[1]["role"] == "user"
        assert "CONTEXT: Python is a language." in messages[1]["content"]
        assert "QUESTION: What is Python?" in messages[1]["content"]


class TestContentGenerator:
    """Tests for the content generator."""

    @pytest.mark.asyncio
    async def test_mock_mode(self):
        """Test a generator without completer answers from contexts."""
        generator = ContentGenerator()

        response = await generator.generate("q", [make_context("A fact.")])

        assert not generator.available
        assert response.startswith(PREFIX)

    @pytest.mark.asyncio
    async def test_completer_called(self):
        """Test the completer receives the prompt and generation settings."""
        completer = RecordingCompleter()
        generator = ContentGenerator(completer=completer, model="gpt-test", temperature=0.2, max_tokens=64)

        response = await generator.generate("What is Python?", [make_context("Python is a language.")])

        assert generator.available
        assert response == "Python is a programming language."
        [call] = completer.calls
        assert call["model"] == "gpt-test"
        assert call["temperature"] == 0.2
        assert call["max_tokens"] == 64
        assert call["messages"][0]["role"] == "system"

    @pytest.mark.asyncio
    async def test_completer_error_falls_back(self):
        """Test a failing completer degrades to the mock answer."""
        generator = ContentGenerator(completer=FailingCompleter())

        response = await generator.generate("q", [make_context("A fact. Another.")])

        assert response == PREFIX + "A fact. Another." + SUFFIX

    @pytest.mark.asyncio
    async def test_completer_timeout_falls_back(self):
        """Test a slow completer degrades to the mock answer."""
        generator = ContentGenerator(completer=SlowCompleter(), timeout=0.01)

        response = await generator.generate("q", [])

        assert response == INSUFFICIENT_INFORMATION


class TestOpenAICompleter:
    """Tests for the OpenAI completer against a mocked client."""

    def _client(self, content):
        client = MagicMock()
        client.chat.completions.create = AsyncMock(return_value=SimpleNamespace(
            choices=[SimpleNamespace(message=SimpleNamespace(content=content))]
        ))
        return client

    @pytest.mark.asyncio
    async def test_complete(self):
        """Test settings are passed through and content is stripped."""
        completer = OpenAICompleter(api_key="sk-test")
        completer._client = self._client("  An answer.  ")

        text = await completer.complete(
            [{"role": "user", "content": "hi"}],
            model="gpt-3.5-turbo",
            temperature=0.7,
            max_tokens=500,
        )

        assert text == "An answer."
        kwargs = completer._client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "gpt-3.5-turbo"
        assert kwargs["max_tokens"] == 500

    @pytest.mark.asyncio
    async def test_empty_content(self):
        """Test an empty completion is an error."""
        completer = OpenAICompleter(api_key="sk-test")
        completer._client = self._client(None)

        with pytest.raises(CompletionError):
            await completer.complete([], model="gpt-3.5-turbo")
