"""
Error types for the PuzzleWiki SDK.

This module defines all exception types raised by the SDK:
- WikiError: Base exception
- WikiServiceError: An RPC failed (server unavailable, internal error, ...)
- VersionConflictError: A write kept losing to concurrent writers

Invariants:
    - All errors inherit from WikiError
    - Errors include context for debugging
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class WikiError(Exception):
    """Base exception for all PuzzleWiki SDK errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or "WIKI_ERROR"
        self.details = details or {}


class WikiServiceError(WikiError):
    """An RPC to the wiki server failed.

    Raised when:
    - Server is unreachable
    - The call times out or is cancelled
    - The server reports an internal error
    """

    def __init__(
        self,
        message: str,
        method: Optional[str] = None,
        status: Optional[str] = None,
    ) -> None:
        super().__init__(
            message,
            code="SERVICE_ERROR",
            details={"method": method, "status": status},
        )
        self.method = method
        self.status = status


class VersionConflictError(WikiError):
    """Store kept conflicting with concurrent writers.

    Raised by WikiClient.store_latest after its attempts are exhausted.
    """

    def __init__(
        self,
        message: str,
        wiki_id: int,
        ref: str,
        attempts: int,
        last_seen: int,
    ) -> None:
        super().__init__(
            message,
            code="VERSION_CONFLICT",
            details={
                "wiki_id": wiki_id,
                "ref": ref,
                "attempts": attempts,
                "last_seen": last_seen,
            },
        )
        self.wiki_id = wiki_id
        self.ref = ref
        self.attempts = attempts
        self.last_seen = last_seen
