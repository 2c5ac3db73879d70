"""
E2E test fixtures for PuzzleWiki.

These tests require a running MongoDB server reachable at MONGODB_URI.
"""

import os
import uuid

import pytest

from puzzlewiki.wiki_server.config import MongoConfig


@pytest.fixture
def mongo_config():
    """Config pointing at a throwaway database."""
    return MongoConfig(
        uri=os.environ.get("MONGODB_URI", "mongodb://localhost:27017"),
        database=f"puzzlewiki_e2e_{uuid.uuid4().hex[:8]}",
        timeout_ms=5000,
    )
