# mypy: ignore-errors
"""Generated protobuf code for the PuzzleWiki server.

Do not edit manually - regenerate with scripts/generate_proto.sh
"""

from .wiki_pb2 import (
    Content,
    ContentRequest,
    Response,
    Version,
    VersionRequest,
    Versions,
    WikiRequest,
)
from .wiki_pb2_grpc import (
    WikiServicer,
    WikiStub,
    add_WikiServicer_to_server,
)

__all__ = [
    # Requests
    "WikiRequest",
    "ContentRequest",
    "VersionRequest",
    # Responses
    "Content",
    "Response",
    "Version",
    "Versions",
    # gRPC
    "WikiServicer",
    "WikiStub",
    "add_WikiServicer_to_server",
]
