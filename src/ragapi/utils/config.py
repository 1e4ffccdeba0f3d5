"""
Configuration utilities.
"""

import json
import os
from pathlib import Path
from typing import Any, Literal

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel


class Config(BaseModel):
    """Base configuration class."""

    @classmethod
    def from_yaml(cls, path: Path) -> "Config":
        """Load configuration from YAML file."""
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        return cls(**data)

    @classmethod
    def from_file(cls, path: str | Path) -> "Config":
        """Load configuration from file (YAML or JSON)."""
        path = Path(path)

        if path.suffix in (".yaml", ".yml"):
            return cls.from_yaml(path)
        elif path.suffix == ".json":
            with open(path) as f:
                data = json.load(f)
            return cls(**data)
        else:
            raise ValueError(f"Unsupported config file format: {path.suffix}")


class RAGConfig(Config):
    """Configuration for the RAG service.

    Durations are in seconds, sizes in characters unless noted.
    """

    # Providers
    openai_api_key: str | None = None
    openai_base_url: str | None = None
    embedding_model: str = "text-embedding-ada-002"
    embedding_dimension: int = 1536
    chat_model: str = "gpt-3.5-turbo"
    temperature: float = 0.7
    max_tokens: int = 500
    completion_timeout: float = 30.0

    # Embedding client
    embedding_retries: int = 3
    embedding_timeout: float = 10.0
    embedding_backoff_base: float = 1.0
    embedding_rate_limit_backoff_base: float = 2.0
    embedding_backoff_max: float = 15.0

    # Vector index
    vector_backend: Literal["qdrant", "chroma", "memory"] = "qdrant"
    qdrant_url: str = "http://localhost:6333"
    qdrant_api_key: str | None = None
    chroma_path: str | None = None
    collection_name: str = "global_documents"
    upsert_batch_size: int = 100
    search_limit: int = 5
    min_score: float = 0.7
    search_timeout: float = 30.0

    # Indexing
    chunk_size: int = 1000
    chunk_overlap: int = 200
    max_chunks: int = 25
    embed_batch_size: int = 5

    # HTTP
    host: str = "0.0.0.0"
    port: int = 3000
    upload_dir: str = "uploads"
    max_upload_mb: int = 10
    log_level: str = "INFO"

    @property
    def max_upload_bytes(self) -> int:
        return self.max_upload_mb * 1024 * 1024

    @property
    def openai_available(self) -> bool:
        return bool(self.openai_api_key)


# Environment variable -> RAGConfig field
ENV_OVERRIDES = {
    "OPENAI_API_KEY": "openai_api_key",
    "OPENAI_BASE_URL": "openai_base_url",
    "QDRANT_URL": "qdrant_url",
    "QDRANT_API_KEY": "qdrant_api_key",
    "VECTOR_BACKEND": "vector_backend",
    "CHROMA_PATH": "chroma_path",
    "HOST": "host",
    "PORT": "port",
    "LOG_LEVEL": "log_level",
    "UPLOAD_DIR": "upload_dir",
}


def env_overrides(environ: dict[str, str] | None = None) -> dict[str, Any]:
    """Collect configuration values set through environment variables."""
    environ = os.environ if environ is None else environ
    return {
        field: environ[var]
        for var, field in ENV_OVERRIDES.items()
        if environ.get(var)
    }


def load_config(path: str | Path = "ragapi.yaml") -> RAGConfig:
    """
    Load service configuration.

    Values come from the config file if it exists, then from `.env` and
    the process environment, which take precedence.

    Args:
        path: Path to config file

    Returns:
        RAGConfig instance
    """
    load_dotenv()
    path = Path(path)

    data: dict[str, Any] = {}
    if path.exists():
        data = RAGConfig.from_file(path).model_dump(exclude_unset=True)

    data.update(env_overrides())
    return RAGConfig(**data)
