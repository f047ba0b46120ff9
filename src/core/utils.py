"""
Core Utility Functions.

Common text and numeric helpers used across the ranking code.
"""

import re
from typing import Iterable, List, Optional, Set


_TOKEN_SPLIT = re.compile(r"\s+")


def normalize_string_set(items: Optional[Iterable[Optional[str]]]) -> Set[str]:
    """
    Normalize strings to a set of lowercase, stripped strings.

    Args:
        items: Strings (may contain None, empty strings) or None

    Returns:
        Set of normalized strings
    """
    if not items:
        return set()
    return {s.lower().strip() for s in items if s and s.strip()}


def tokenize_query(query: Optional[str], min_length: int = 3) -> List[str]:
    """
    Split a search query into lowercase tokens, dropping short ones.

    Order is preserved and duplicates are kept, so a token repeated in the
    query is counted once per occurrence by the scorer.

    Example:
        >>> tokenize_query("Blue Oyster kit")
        ['blue', 'oyster', 'kit']
        >>> tokenize_query("a ph kit")
        ['kit']
    """
    if not query:
        return []
    return [t for t in _TOKEN_SPLIT.split(query.lower().strip()) if len(t) >= min_length]


def clamp(value: float, lower: float = 0.0, upper: float = 1.0) -> float:
    """Clamp value into [lower, upper]."""
    return max(lower, min(upper, value))
