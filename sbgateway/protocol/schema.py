"""Safe Browsing API v4 message schema (the subset served by the gateway).

The file descriptor is assembled here and registered in the default protobuf
descriptor pool at import time, which is what a protoc-generated ``_pb2``
module does with its serialized descriptor. The message classes below are
ordinary protobuf message classes: they work with ``SerializeToString`` /
``ParseFromString`` and with ``google.protobuf.json_format``.

Field numbers and enum values follow the public v4 API so that binary
payloads are interchangeable with other v4 clients.

    message ThreatEntry          { bytes hash = 1; string url = 2; }
    message ThreatInfo           { repeated ThreatType threat_types = 1;
                                   repeated PlatformType platform_types = 2;
                                   repeated ThreatEntry threat_entries = 3;
                                   repeated ThreatEntryType threat_entry_types = 4; }
    message FindThreatMatchesRequest  { ClientInfo client = 1; ThreatInfo threat_info = 2; }
    message ThreatMatch          { ThreatType threat_type = 1; PlatformType platform_type = 2;
                                   ThreatEntry threat = 3; ThreatEntryMetadata threat_entry_metadata = 4;
                                   google.protobuf.Duration cache_duration = 5;
                                   ThreatEntryType threat_entry_type = 6; }
    message FindThreatMatchesResponse { repeated ThreatMatch matches = 1; }
    message ThreatListDescriptor { ThreatType threat_type = 1; PlatformType platform_type = 2;
                                   ThreatEntryType threat_entry_type = 3; }
    message ListThreatListsResponse   { repeated ThreatListDescriptor threat_lists = 1; }
"""

from __future__ import annotations

from google.protobuf import descriptor_pb2, descriptor_pool, duration_pb2, message_factory
from google.protobuf.internal.enum_type_wrapper import EnumTypeWrapper

PROTO_PACKAGE = "safebrowsing_proto"
PROTO_FILE_NAME = "sbgateway/safebrowsing.proto"

_F = descriptor_pb2.FieldDescriptorProto

# ─── Enums ────────────────────────────────────────────────────────────────────

_ENUMS: dict[str, list[tuple[str, int]]] = {
    "ThreatType": [
        ("THREAT_TYPE_UNSPECIFIED", 0),
        ("MALWARE", 1),
        ("SOCIAL_ENGINEERING", 2),
        ("UNWANTED_SOFTWARE", 3),
        ("POTENTIALLY_HARMFUL_APPLICATION", 4),
    ],
    "PlatformType": [
        ("PLATFORM_TYPE_UNSPECIFIED", 0),
        ("WINDOWS", 1),
        ("LINUX", 2),
        ("ANDROID", 3),
        ("OSX", 4),
        ("IOS", 5),
        ("ANY_PLATFORM", 6),
        ("ALL_PLATFORMS", 7),
        ("CHROME", 8),
    ],
    "ThreatEntryType": [
        ("THREAT_ENTRY_TYPE_UNSPECIFIED", 0),
        ("URL", 1),
        ("EXECUTABLE", 2),
        ("IP_RANGE", 3),
    ],
}

# ─── Messages ─────────────────────────────────────────────────────────────────
# (name, number, type, label, type_name). type_name is relative to the package
# unless it starts with ".".

_OPTIONAL = _F.LABEL_OPTIONAL
_REPEATED = _F.LABEL_REPEATED

_MESSAGES: dict[str, list[tuple[str, int, int, int, str]]] = {
    "ClientInfo": [
        ("client_id", 1, _F.TYPE_STRING, _OPTIONAL, ""),
        ("client_version", 2, _F.TYPE_STRING, _OPTIONAL, ""),
    ],
    "ThreatEntry": [
        ("hash", 1, _F.TYPE_BYTES, _OPTIONAL, ""),
        ("url", 2, _F.TYPE_STRING, _OPTIONAL, ""),
    ],
    "ThreatEntryMetadata": [
        ("entries", 1, _F.TYPE_MESSAGE, _REPEATED, "ThreatEntryMetadata.MetadataEntry"),
    ],
    "ThreatInfo": [
        ("threat_types", 1, _F.TYPE_ENUM, _REPEATED, "ThreatType"),
        ("platform_types", 2, _F.TYPE_ENUM, _REPEATED, "PlatformType"),
        ("threat_entries", 3, _F.TYPE_MESSAGE, _REPEATED, "ThreatEntry"),
        ("threat_entry_types", 4, _F.TYPE_ENUM, _REPEATED, "ThreatEntryType"),
    ],
    "FindThreatMatchesRequest": [
        ("client", 1, _F.TYPE_MESSAGE, _OPTIONAL, "ClientInfo"),
        ("threat_info", 2, _F.TYPE_MESSAGE, _OPTIONAL, "ThreatInfo"),
    ],
    "ThreatMatch": [
        ("threat_type", 1, _F.TYPE_ENUM, _OPTIONAL, "ThreatType"),
        ("platform_type", 2, _F.TYPE_ENUM, _OPTIONAL, "PlatformType"),
        ("threat", 3, _F.TYPE_MESSAGE, _OPTIONAL, "ThreatEntry"),
        ("threat_entry_metadata", 4, _F.TYPE_MESSAGE, _OPTIONAL, "ThreatEntryMetadata"),
        ("cache_duration", 5, _F.TYPE_MESSAGE, _OPTIONAL, ".google.protobuf.Duration"),
        ("threat_entry_type", 6, _F.TYPE_ENUM, _OPTIONAL, "ThreatEntryType"),
    ],
    "FindThreatMatchesResponse": [
        ("matches", 1, _F.TYPE_MESSAGE, _REPEATED, "ThreatMatch"),
    ],
    "ThreatListDescriptor": [
        ("threat_type", 1, _F.TYPE_ENUM, _OPTIONAL, "ThreatType"),
        ("platform_type", 2, _F.TYPE_ENUM, _OPTIONAL, "PlatformType"),
        ("threat_entry_type", 3, _F.TYPE_ENUM, _OPTIONAL, "ThreatEntryType"),
    ],
    "ListThreatListsResponse": [
        ("threat_lists", 1, _F.TYPE_MESSAGE, _REPEATED, "ThreatListDescriptor"),
    ],
}

_NESTED: dict[str, dict[str, list[tuple[str, int, int, int, str]]]] = {
    "ThreatEntryMetadata": {
        "MetadataEntry": [
            ("key", 1, _F.TYPE_BYTES, _OPTIONAL, ""),
            ("value", 2, _F.TYPE_BYTES, _OPTIONAL, ""),
        ],
    },
}


def _json_name(field_name: str) -> str:
    head, *rest = field_name.split("_")
    return head + "".join(part.capitalize() for part in rest)


def _add_fields(
    message: descriptor_pb2.DescriptorProto,
    fields: list[tuple[str, int, int, int, str]],
) -> None:
    for name, number, field_type, label, type_name in fields:
        field = message.field.add(
            name=name,
            number=number,
            type=field_type,
            label=label,
            json_name=_json_name(name),
        )
        if type_name:
            field.type_name = (
                type_name if type_name.startswith(".") else f".{PROTO_PACKAGE}.{type_name}"
            )


def build_file_descriptor() -> descriptor_pb2.FileDescriptorProto:
    """Assemble the FileDescriptorProto for the gateway schema."""
    file_proto = descriptor_pb2.FileDescriptorProto(
        name=PROTO_FILE_NAME,
        package=PROTO_PACKAGE,
        syntax="proto3",
        dependency=[duration_pb2.DESCRIPTOR.name],
    )
    for enum_name, values in _ENUMS.items():
        enum_proto = file_proto.enum_type.add(name=enum_name)
        for value_name, number in values:
            enum_proto.value.add(name=value_name, number=number)
    for message_name, fields in _MESSAGES.items():
        message_proto = file_proto.message_type.add(name=message_name)
        for nested_name, nested_fields in _NESTED.get(message_name, {}).items():
            _add_fields(message_proto.nested_type.add(name=nested_name), nested_fields)
        _add_fields(message_proto, fields)
    return file_proto


DESCRIPTOR = descriptor_pool.Default().AddSerializedFile(
    build_file_descriptor().SerializeToString()
)

ThreatType = EnumTypeWrapper(DESCRIPTOR.enum_types_by_name["ThreatType"])
PlatformType = EnumTypeWrapper(DESCRIPTOR.enum_types_by_name["PlatformType"])
ThreatEntryType = EnumTypeWrapper(DESCRIPTOR.enum_types_by_name["ThreatEntryType"])


def _message_class(name: str):
    return message_factory.GetMessageClass(DESCRIPTOR.message_types_by_name[name])


ClientInfo = _message_class("ClientInfo")
ThreatEntry = _message_class("ThreatEntry")
ThreatEntryMetadata = _message_class("ThreatEntryMetadata")
ThreatInfo = _message_class("ThreatInfo")
FindThreatMatchesRequest = _message_class("FindThreatMatchesRequest")
ThreatMatch = _message_class("ThreatMatch")
FindThreatMatchesResponse = _message_class("FindThreatMatchesResponse")
ThreatListDescriptor = _message_class("ThreatListDescriptor")
ListThreatListsResponse = _message_class("ListThreatListsResponse")

__all__ = [
    "DESCRIPTOR",
    "ClientInfo",
    "FindThreatMatchesRequest",
    "FindThreatMatchesResponse",
    "ListThreatListsResponse",
    "PlatformType",
    "ThreatEntry",
    "ThreatEntryMetadata",
    "ThreatEntryType",
    "ThreatInfo",
    "ThreatListDescriptor",
    "ThreatMatch",
    "ThreatType",
]
