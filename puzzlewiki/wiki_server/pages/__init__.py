"""
Versioned page content for the wiki server.

Pages are append-only: every edit creates a new immutable version and the
latest version is always the highest existing number.
"""

from .store import (
    Content,
    InternalServiceError,
    PageStore,
    Response,
    Version,
)

__all__ = [
    "PageStore",
    "Content",
    "Version",
    "Response",
    "InternalServiceError",
]
