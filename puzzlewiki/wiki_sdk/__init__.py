"""
PuzzleWiki Python SDK - Client library for the wiki page service.

Example:
    >>> from puzzlewiki.wiki_sdk import WikiClient
    >>>
    >>> async with WikiClient("localhost:50051") as wiki:
    ...     version = await wiki.store_latest(1, "home", user_id=7, text="Hello")
    ...     history = await wiki.list_versions(1, "home")

Invariants:
    - store() never retries; store_latest() is the retrying variant
    - list_versions() order is the server's, sort on number if needed
"""

from ..wiki_server._version import __version__

from .client import PageContent, PageVersion, WikiClient
from .errors import VersionConflictError, WikiError, WikiServiceError

__all__ = [
    "WikiClient",
    "PageContent",
    "PageVersion",
    "WikiError",
    "WikiServiceError",
    "VersionConflictError",
]
