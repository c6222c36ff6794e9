# src/lakemeta/services/_delta_log.py
"""Builders for Delta transaction log commits (newline-delimited JSON, one action per line)."""

import os
import re

from ..models import CommitEntry, Operation
from ..utils.serializers import dumps_compact

DELTA_LOG_DIR = "_delta_log"
# Matches 00000000000000000000.json (and only commit files, not checkpoints)
COMMIT_PATTERN = re.compile(r"^(\d+)\.json$")

PROTOCOL = {
    "minReaderVersion": 1,
    "minWriterVersion": 2,
}

# Only properties a reader 1 / writer 2 protocol allows. Column mapping needs
# reader 2 / writer 5 plus per-field physical names; change data feed needs writer 4.
DEFAULT_CONFIGURATION = {
    'delta.minReaderVersion': '1',
    'delta.minWriterVersion': '2',
}


def log_prefix(table_location):
    return f"{table_location.rstrip('/')}/{DELTA_LOG_DIR}/"


def commit_key(table_location, version):
    return f"{log_prefix(table_location)}{version:020d}.json"


def commit_version(key):
    """Version number of a commit file key, or None for any other log object."""
    match = COMMIT_PATTERN.match(os.path.basename(key))
    return int(match.group(1)) if match else None


def create_entry(timestamp_ms, schema):
    return CommitEntry(version=0, operation=Operation.CREATE_TABLE, timestamp_ms=timestamp_ms, schema_snapshot=schema)


def write_entry(version, timestamp_ms, schema, file_ref):
    if version < 1:
        raise ValueError(f"WRITE commits start at version 1, got {version}")
    return CommitEntry(version=version, operation=Operation.WRITE, timestamp_ms=timestamp_ms,
                       schema_snapshot=schema, added_files=[file_ref])


def commit_info(entry):
    mode = 'create' if entry.operation == Operation.CREATE_TABLE else 'append'
    return {
        "timestamp": entry.timestamp_ms,
        "operation": entry.operation.value,
        "operationParameters": {
            "mode": mode,
            "partitionBy": "[]",
        },
        "readVersion": entry.read_version,
        "isolationLevel": "Serializable",
        "isBlindAppend": True,
    }


def metadata_action(entry, table_id, table_name, source_key):
    return {
        "id": table_id,
        "name": table_name,
        "description": f"Delta table converted from {source_key}",
        "format": {
            "provider": "parquet",
            "options": {},
        },
        "schemaString": dumps_compact(entry.schema_snapshot),
        "partitionColumns": [],
        "configuration": dict(DEFAULT_CONFIGURATION),
        "createdTime": entry.timestamp_ms,
    }


def add_action(file_ref, bucket):
    stats = file_ref.stats()
    return {
        # Source file lives outside the table root, so the path is an absolute URI
        "path": f"s3://{bucket}/{file_ref.path}",
        "partitionValues": {},
        "size": file_ref.size_bytes,
        "modificationTime": file_ref.modified_at_ms,
        "dataChange": file_ref.data_change,
        # Delta stores per-file stats as a JSON string
        "stats": dumps_compact(stats) if stats is not None else None,
    }


def commit_actions(entry, bucket, table_id, table_name, source_key):
    """Ordered list of actions making up one commit file."""
    actions = [{"commitInfo": commit_info(entry)}]
    if entry.operation == Operation.CREATE_TABLE:
        actions.append({"protocol": dict(PROTOCOL)})
        actions.append({"metaData": metadata_action(entry, table_id, table_name, source_key)})
    for file_ref in entry.added_files:
        actions.append({"add": add_action(file_ref, bucket)})
    return actions


def encode_commit(actions):
    return ("\n".join(dumps_compact(action) for action in actions) + "\n").encode('utf-8')
