# src/lakemeta/services/_iceberg_metadata.py
"""Builders for Iceberg table-metadata and snapshot documents."""

import io
import json
import os
import re
import uuid

from fastavro import parse_schema, writer as avro_writer

from ..models import SnapshotDoc, SnapshotSummary

METADATA_DIR = "metadata"
FORMAT_VERSION = 2
# Iceberg reserves partition field ids from 1000; an unpartitioned v2 table starts at 999
LAST_PARTITION_ID = 999

# <5-digit sequence>-<table uuid>-metadata.json
METADATA_PATTERN = re.compile(r"^(\d{5})-([0-9a-fA-F-]+)-metadata\.json$")
# <5-digit sequence>-<snapshot id>-snap-<snapshot id>.<ext>
SNAPSHOT_PATTERN = re.compile(r"^(\d{5})-(\d+)-snap-(\d+)\.(json|avro)$")
# <5-digit sequence>.lock, written first to claim a sequence
CLAIM_PATTERN = re.compile(r"^(\d{5})\.lock$")
SEQUENCE_PATTERN = re.compile(r"^(\d{5})[-.]")

DEFAULT_PROPERTIES = {
    'write.format.default': 'PARQUET',
    'commit.retry.num-retries': '5',
    'commit.retry.min-wait-ms': '100',
    'commit.retry.max-wait-ms': '2000',
}

# content format, file extension
SNAPSHOT_FORMATS = {
    "json": ("json", "json"),
    "avro": ("avro", "avro"),
    # JSON text under an .avro name, as the first version of this service wrote it
    "legacy-avro-name": ("json", "avro"),
}

SNAPSHOT_AVRO_SCHEMA = parse_schema({
    "type": "record",
    "name": "snapshot_document",
    "namespace": "lakemeta.iceberg",
    "fields": [
        {"name": "snapshot_id", "type": "long"},
        {"name": "parent_snapshot_id", "type": ["null", "long"], "default": None},
        {"name": "sequence_number", "type": "long"},
        {"name": "timestamp_ms", "type": "long"},
        {"name": "manifest_list", "type": "string"},
        {"name": "schema_id", "type": "int"},
        {"name": "summary", "type": {"type": "map", "values": "string"}},
        {"name": "data_files", "type": {"type": "array", "items": {
            "type": "record",
            "name": "data_file",
            "fields": [
                {"name": "file_path", "type": "string"},
                {"name": "file_format", "type": "string"},
                {"name": "record_count", "type": "long"},
                {"name": "file_size_in_bytes", "type": "long"},
            ],
        }}},
    ],
})


def metadata_prefix(table_location):
    return f"{table_location.rstrip('/')}/{METADATA_DIR}/"


def metadata_key(table_location, sequence, table_uuid):
    return f"{metadata_prefix(table_location)}{sequence:05d}-{table_uuid}-metadata.json"


def snapshot_key(table_location, sequence, snapshot_id, extension):
    return f"{metadata_prefix(table_location)}{sequence:05d}-{snapshot_id}-snap-{snapshot_id}.{extension}"


def claim_key(table_location, sequence):
    return f"{metadata_prefix(table_location)}{sequence:05d}.lock"


def is_claim(key):
    return CLAIM_PATTERN.match(os.path.basename(key)) is not None


def sequence_of(key):
    match = SEQUENCE_PATTERN.match(os.path.basename(key))
    return int(match.group(1)) if match else None


def table_uuid_of(key):
    match = METADATA_PATTERN.match(os.path.basename(key))
    return match.group(2) if match else None


def snapshot_id_of(key):
    match = SNAPSHOT_PATTERN.match(os.path.basename(key))
    return int(match.group(2)) if match else None


def new_snapshot_id():
    """Random positive 63-bit id: the two halves of a uuid4 folded together."""
    rnd_uuid = uuid.uuid4()
    snapshot_id = int.from_bytes(
        bytes(lhs ^ rhs for lhs, rhs in zip(rnd_uuid.bytes[0:8], rnd_uuid.bytes[8:16])),
        byteorder="little",
        signed=True,
    )
    snapshot_id = abs(snapshot_id)
    # abs(-2**63) does not fit a signed long
    return snapshot_id if snapshot_id < 2**63 else snapshot_id - 1


def build_snapshot(snapshot_id, timestamp_ms, manifest_list_location, probed, sequence_number, parent_snapshot_id=None):
    summary = SnapshotSummary(
        operation='append',
        added_records=probed.row_count,
        added_files_size=probed.byte_size,
        total_records=probed.row_count,
        total_files_size=probed.byte_size,
    )
    return SnapshotDoc(
        snapshot_id=snapshot_id,
        timestamp_ms=timestamp_ms,
        manifest_list_location=manifest_list_location,
        summary=summary,
        sequence_number=sequence_number,
        parent_snapshot_id=parent_snapshot_id,
    )


def build_table_metadata(table_uuid, location, schema, snapshot, timestamp_ms,
                         previous=None, previous_location=None):
    """
    Iceberg v2 table metadata holding a single schema and the given snapshot.

    When `previous` (the parsed prior metadata document) is given, its
    snapshots, snapshot log and metadata log are carried forward and
    `previous_location` is appended to the metadata log.
    """
    previous = previous or {}
    snapshots = list(previous.get("snapshots", []))
    snapshot_log = list(previous.get("snapshot-log", []))
    metadata_log = list(previous.get("metadata-log", []))
    if previous_location:
        metadata_log.append({
            "metadata-file": previous_location,
            "timestamp-ms": previous.get("last-updated-ms", timestamp_ms),
        })
    snapshots.append(snapshot.to_dict())
    snapshot_log.append({"snapshot-id": snapshot.snapshot_id, "timestamp-ms": snapshot.timestamp_ms})

    return {
        "format-version": FORMAT_VERSION,
        "table-uuid": table_uuid,
        "location": location,
        "last-sequence-number": snapshot.sequence_number,
        "last-updated-ms": timestamp_ms,
        "last-column-id": len(schema.get("fields", [])),
        "current-schema-id": schema.get("schema-id", 0),
        "schemas": [schema],
        "default-spec-id": 0,
        "partition-specs": [{"spec-id": 0, "fields": []}],
        "last-partition-id": LAST_PARTITION_ID,
        "default-sort-order-id": 0,
        "sort-orders": [{"order-id": 0, "fields": []}],
        "properties": dict(DEFAULT_PROPERTIES),
        "current-snapshot-id": snapshot.snapshot_id,
        "refs": {"main": {"snapshot-id": snapshot.snapshot_id, "type": "branch"}},
        "snapshots": snapshots,
        "snapshot-log": snapshot_log,
        "metadata-log": metadata_log,
    }


def data_file_entry(data_file_uri, probed):
    return {
        "file_path": data_file_uri,
        "file_format": "PARQUET",
        "record_count": probed.row_count,
        "file_size_in_bytes": probed.byte_size,
    }


def encode_snapshot(snapshot, data_files, content_format):
    """Serializes a snapshot document as JSON text or as an Avro container."""
    if content_format == "avro":
        record = {
            "snapshot_id": snapshot.snapshot_id,
            "parent_snapshot_id": snapshot.parent_snapshot_id,
            "sequence_number": snapshot.sequence_number,
            "timestamp_ms": snapshot.timestamp_ms,
            "manifest_list": snapshot.manifest_list_location,
            "schema_id": snapshot.schema_id,
            "summary": snapshot.summary.to_dict(),
            "data_files": data_files,
        }
        buffer = io.BytesIO()
        avro_writer(buffer, SNAPSHOT_AVRO_SCHEMA, [record])
        return buffer.getvalue()

    document = snapshot.to_dict()
    document["data-files"] = data_files
    return json.dumps(document, indent=2).encode('utf-8')


def encode_metadata(table_metadata):
    return json.dumps(table_metadata, indent=2).encode('utf-8')
