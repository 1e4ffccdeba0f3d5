"""
HTTP API for ragapi.
"""

from ragapi.api.app import create_app, main

__all__ = ["create_app", "main"]
