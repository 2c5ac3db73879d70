# -*- coding: utf-8 -*-
# Protocol buffer messages for proto/wiki.proto.
# Regenerate with scripts/generate_proto.sh after editing the proto.
"""Protocol buffer messages of the puzzlewikiservice package."""
from google.protobuf import descriptor_pb2 as _descriptor_pb2
from google.protobuf import descriptor_pool as _descriptor_pool
from google.protobuf import symbol_database as _symbol_database
from google.protobuf.internal import builder as _builder

_sym_db = _symbol_database.Default()

_F = _descriptor_pb2.FieldDescriptorProto


def _message(name, *fields):
    message = _descriptor_pb2.DescriptorProto(name=name)
    for number, (field_name, field_type, extra) in enumerate(fields, start=1):
        field = message.field.add(
            name=field_name,
            number=number,
            type=field_type,
            label=extra.get("label", _F.LABEL_OPTIONAL),
            json_name=field_name,
        )
        if "type_name" in extra:
            field.type_name = extra["type_name"]
    return message


def _file_descriptor_proto():
    file_proto = _descriptor_pb2.FileDescriptorProto(
        name="wiki.proto",
        package="puzzlewikiservice",
        syntax="proto3",
    )
    file_proto.message_type.extend([
        _message(
            "WikiRequest",
            ("wikiId", _F.TYPE_UINT64, {}),
            ("wikiRef", _F.TYPE_STRING, {}),
            ("version", _F.TYPE_UINT64, {}),
        ),
        _message(
            "ContentRequest",
            ("wikiId", _F.TYPE_UINT64, {}),
            ("wikiRef", _F.TYPE_STRING, {}),
            ("last", _F.TYPE_UINT64, {}),
            ("userId", _F.TYPE_UINT64, {}),
            ("text", _F.TYPE_STRING, {}),
        ),
        _message(
            "VersionRequest",
            ("wikiId", _F.TYPE_UINT64, {}),
            ("wikiRef", _F.TYPE_STRING, {}),
        ),
        _message(
            "Content",
            ("version", _F.TYPE_UINT64, {}),
            ("text", _F.TYPE_STRING, {}),
            ("createdAt", _F.TYPE_INT64, {}),
        ),
        _message(
            "Response",
            ("success", _F.TYPE_BOOL, {}),
        ),
        _message(
            "Version",
            ("number", _F.TYPE_UINT64, {}),
            ("userId", _F.TYPE_UINT64, {}),
        ),
        _message(
            "Versions",
            ("list", _F.TYPE_MESSAGE, {
                "label": _F.LABEL_REPEATED,
                "type_name": ".puzzlewikiservice.Version",
            }),
        ),
    ])

    service = file_proto.service.add(name="Wiki")
    for method, request, response in (
        ("Load", "WikiRequest", "Content"),
        ("Store", "ContentRequest", "Response"),
        ("ListVersions", "VersionRequest", "Versions"),
        ("Delete", "WikiRequest", "Response"),
    ):
        service.method.add(
            name=method,
            input_type=f".puzzlewikiservice.{request}",
            output_type=f".puzzlewikiservice.{response}",
        )
    return file_proto


DESCRIPTOR = _descriptor_pool.Default().AddSerializedFile(
    _file_descriptor_proto().SerializeToString()
)

_globals = globals()
_builder.BuildMessageAndEnumDescriptors(DESCRIPTOR, _globals)
_builder.BuildTopDescriptorsAndMessages(DESCRIPTOR, __name__, _globals)
