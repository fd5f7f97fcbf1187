"""Protobuf schema for snapshot storage-logs chunks.

The message types are assembled from a descriptor at import time so the
reader does not depend on generated ``_pb2`` modules.
"""

from __future__ import annotations

from typing import Any

from google.protobuf import descriptor_pb2, descriptor_pool, message_factory

SCHEMA_PACKAGE = "zksync.types"
STORAGE_LOG_MESSAGE = "SnapshotStorageLog"
STORAGE_LOGS_CHUNK_MESSAGE = "SnapshotStorageLogsChunk"

_FIELD = descriptor_pb2.FieldDescriptorProto


def _build_file_descriptor() -> descriptor_pb2.FileDescriptorProto:
    file_proto = descriptor_pb2.FileDescriptorProto(
        name="zksync/types/snapshots.proto",
        package=SCHEMA_PACKAGE,
        syntax="proto2",
    )
    log_message = file_proto.message_type.add(name=STORAGE_LOG_MESSAGE)
    for name, number, field_type in (
        ("account_address", 1, _FIELD.TYPE_BYTES),
        ("storage_key", 2, _FIELD.TYPE_BYTES),
        ("storage_value", 3, _FIELD.TYPE_BYTES),
        ("l1_batch_number_of_initial_write", 4, _FIELD.TYPE_UINT32),
        ("enumeration_index", 5, _FIELD.TYPE_UINT64),
    ):
        log_message.field.add(
            name=name, number=number, type=field_type, label=_FIELD.LABEL_OPTIONAL
        )
    chunk_message = file_proto.message_type.add(name=STORAGE_LOGS_CHUNK_MESSAGE)
    chunk_message.field.add(
        name="storage_logs",
        number=1,
        type=_FIELD.TYPE_MESSAGE,
        label=_FIELD.LABEL_REPEATED,
        type_name=f".{SCHEMA_PACKAGE}.{STORAGE_LOG_MESSAGE}",
    )
    return file_proto


def _build_chunk_message_class() -> Any:
    pool = descriptor_pool.DescriptorPool()
    pool.AddSerializedFile(_build_file_descriptor().SerializeToString())
    descriptor = pool.FindMessageTypeByName(f"{SCHEMA_PACKAGE}.{STORAGE_LOGS_CHUNK_MESSAGE}")
    return message_factory.GetMessageClass(descriptor)


StorageLogsChunkMessage = _build_chunk_message_class()

REQUIRED_LOG_FIELDS = (
    "account_address",
    "storage_key",
    "storage_value",
    "l1_batch_number_of_initial_write",
    "enumeration_index",
)
