"""
Core module for cross-cutting concerns.

This module provides:
- Structured logging configuration
- Request tracing middleware
- Domain exceptions
- Common utilities
"""

from core.logging import configure_logging, get_logger
from core.errors import (
    CatalogLookupError,
    InferenceParseError,
    InferenceProviderError,
    RecsError,
)
from core.utils import clamp, normalize_string_set, tokenize_query

__all__ = [
    "configure_logging",
    "get_logger",
    "RecsError",
    "CatalogLookupError",
    "InferenceProviderError",
    "InferenceParseError",
    "clamp",
    "normalize_string_set",
    "tokenize_query",
]
