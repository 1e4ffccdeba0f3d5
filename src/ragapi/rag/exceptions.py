"""
RAG-specific exceptions.
"""


class RAGError(Exception):
    """Base exception for RAG-related errors."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)


class ValidationError(RAGError):
    """Raised when a request is rejected before any processing happens."""


class MissingFileError(ValidationError):
    """Raised when an index request carries no file."""

    def __init__(self, message: str = "No file uploaded"):
        super().__init__(message)


class MissingQueryError(ValidationError):
    """Raised when a chat request carries no query."""

    def __init__(self, message: str = "Query is required"):
        super().__init__(message)


class UnsupportedFileTypeError(ValidationError):
    """Raised when an uploaded file has an extension we do not accept."""

    def __init__(self, extension: str):
        self.extension = extension
        super().__init__(
            "Unsupported file type. Only PDF, DOCX, PPT, images, and text files are allowed."
        )


class FileTooLargeError(ValidationError):
    """Raised when an upload exceeds the configured size limit."""

    def __init__(self, limit_bytes: int):
        self.limit_bytes = limit_bytes
        super().__init__(
            f"File size limit exceeded ({limit_bytes // (1024 * 1024)}MB maximum)"
        )


class EmbeddingError(RAGError):
    """Raised when an embedding provider call fails."""


class EmbeddingTimeoutError(EmbeddingError):
    """Raised when an embedding request does not settle in time."""

    def __init__(self, timeout: float):
        self.timeout = timeout
        super().__init__(f"Embedding request timed out after {timeout * 1000:.0f}ms")


class CompletionError(RAGError):
    """Raised when a completion provider call fails."""


class CompletionTimeoutError(CompletionError):
    """Raised when a completion request does not settle in time."""

    def __init__(self, timeout: float):
        self.timeout = timeout
        super().__init__(f"LLM request timed out after {timeout * 1000:.0f}ms")


class VectorIndexError(RAGError):
    """Raised when the vector database rejects an operation."""


class DimensionMismatchError(VectorIndexError):
    """Raised when a vector does not match the collection dimensionality."""

    def __init__(self, expected: int, actual: int):
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Vector dimension mismatch: expected {expected}, got {actual}"
        )


class ExtractionError(RAGError):
    """Raised when text cannot be extracted from a file."""
