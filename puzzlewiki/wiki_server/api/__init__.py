"""
API module for the PuzzleWiki server.

This module provides the external interface: the gRPC Wiki service with
Load, Store, ListVersions and Delete RPCs, defined in proto/wiki.proto.

Invariants:
    - Writes report conflicts as success=false, never as an RPC error
    - Internal errors carry no storage detail across the boundary

How to change safely:
    - gRPC changes must be backward compatible
    - Add new RPC methods, don't modify existing ones
"""

from .grpc_server import GrpcServer, WikiServicer

__all__ = [
    "GrpcServer",
    "WikiServicer",
]
