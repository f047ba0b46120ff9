"""
Domain exceptions for the recommendation engine.

Provider errors are raised inside inference adapters and caught by the
adapter chain; they never reach an HTTP handler.
"""

from typing import Optional


class RecsError(Exception):
    """Base class for recommendation engine errors."""


class CatalogLookupError(RecsError):
    """Catalog or reference data could not be loaded or parsed."""


class InferenceProviderError(RecsError):
    """A remote inference provider call failed (network, status, empty body)."""

    def __init__(self, provider: str, message: str, status_code: Optional[int] = None):
        self.provider = provider
        self.status_code = status_code
        super().__init__(f"{provider}: {message}")


class InferenceParseError(RecsError):
    """Provider content could not be turned into a classification."""
