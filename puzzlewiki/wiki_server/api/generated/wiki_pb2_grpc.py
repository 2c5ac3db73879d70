# Client and server classes for the puzzlewikiservice.Wiki service.
# Regenerate with scripts/generate_proto.sh after editing the proto.
"""Client and server classes corresponding to protobuf-defined services."""
import grpc

from . import wiki_pb2 as wiki__pb2


class WikiStub(object):
    """Versioned wiki pages."""

    def __init__(self, channel):
        """Constructor.

        Args:
            channel: A grpc.Channel.
        """
        self.Load = channel.unary_unary(
            '/puzzlewikiservice.Wiki/Load',
            request_serializer=wiki__pb2.WikiRequest.SerializeToString,
            response_deserializer=wiki__pb2.Content.FromString,
        )
        self.Store = channel.unary_unary(
            '/puzzlewikiservice.Wiki/Store',
            request_serializer=wiki__pb2.ContentRequest.SerializeToString,
            response_deserializer=wiki__pb2.Response.FromString,
        )
        self.ListVersions = channel.unary_unary(
            '/puzzlewikiservice.Wiki/ListVersions',
            request_serializer=wiki__pb2.VersionRequest.SerializeToString,
            response_deserializer=wiki__pb2.Versions.FromString,
        )
        self.Delete = channel.unary_unary(
            '/puzzlewikiservice.Wiki/Delete',
            request_serializer=wiki__pb2.WikiRequest.SerializeToString,
            response_deserializer=wiki__pb2.Response.FromString,
        )


class WikiServicer(object):
    """Versioned wiki pages."""

    def Load(self, request, context):
        context.set_code(grpc.StatusCode.UNIMPLEMENTED)
        context.set_details('Method not implemented!')
        raise NotImplementedError('Method not implemented!')

    def Store(self, request, context):
        context.set_code(grpc.StatusCode.UNIMPLEMENTED)
        context.set_details('Method not implemented!')
        raise NotImplementedError('Method not implemented!')

    def ListVersions(self, request, context):
        context.set_code(grpc.StatusCode.UNIMPLEMENTED)
        context.set_details('Method not implemented!')
        raise NotImplementedError('Method not implemented!')

    def Delete(self, request, context):
        context.set_code(grpc.StatusCode.UNIMPLEMENTED)
        context.set_details('Method not implemented!')
        raise NotImplementedError('Method not implemented!')


def add_WikiServicer_to_server(servicer, server):
    rpc_method_handlers = {
        'Load': grpc.unary_unary_rpc_method_handler(
            servicer.Load,
            request_deserializer=wiki__pb2.WikiRequest.FromString,
            response_serializer=wiki__pb2.Content.SerializeToString,
        ),
        'Store': grpc.unary_unary_rpc_method_handler(
            servicer.Store,
            request_deserializer=wiki__pb2.ContentRequest.FromString,
            response_serializer=wiki__pb2.Response.SerializeToString,
        ),
        'ListVersions': grpc.unary_unary_rpc_method_handler(
            servicer.ListVersions,
            request_deserializer=wiki__pb2.VersionRequest.FromString,
            response_serializer=wiki__pb2.Versions.SerializeToString,
        ),
        'Delete': grpc.unary_unary_rpc_method_handler(
            servicer.Delete,
            request_deserializer=wiki__pb2.WikiRequest.FromString,
            response_serializer=wiki__pb2.Response.SerializeToString,
        ),
    }
    generic_handler = grpc.method_handlers_generic_handler(
        'puzzlewikiservice.Wiki', rpc_method_handlers)
    server.add_generic_rpc_handlers((generic_handler,))
