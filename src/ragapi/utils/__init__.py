"""
Utility modules.
"""

from ragapi.utils.config import Config, RAGConfig, load_config
from ragapi.utils.logging import get_logger, set_log_level, uvicorn_log_config

__all__ = ["Config", "RAGConfig", "load_config", "get_logger", "set_log_level", "uvicorn_log_config"]
