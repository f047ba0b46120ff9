"""
Services module for session state.

Provides per-session interaction logs, ranking caches and debounced
behavior analysis.
"""

from services.session_manager import (
    SessionContext,
    SessionManager,
    get_session_manager,
    reset_session_manager,
)

__all__ = [
    "SessionContext",
    "SessionManager",
    "get_session_manager",
    "reset_session_manager",
]
