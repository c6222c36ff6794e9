# src/lakemeta/models.py
"""
Internal models shared by the prober, the synthesizer and the indexer.

Everything here is transient: a ProbedFile lives for one request, and a
TableMetadata is recomputed on every call. Only the documents the synthesizer
writes to the store are persistent.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional


class LogicalType(str, Enum):
    STRING = "STRING"
    INT8 = "INT8"
    INT16 = "INT16"
    INT32 = "INT32"
    INT64 = "INT64"
    FLOAT = "FLOAT"
    DOUBLE = "DOUBLE"
    BOOLEAN = "BOOLEAN"
    BINARY = "BINARY"
    DATE = "DATE"
    TIMESTAMP = "TIMESTAMP"
    DECIMAL = "DECIMAL"
    LIST = "LIST"
    STRUCT = "STRUCT"
    MAP = "MAP"
    NULL = "NULL"
    UNKNOWN = "UNKNOWN"


class TableFormat(str, Enum):
    DELTA = "DELTA"
    ICEBERG = "ICEBERG"

    @property
    def suffix(self):
        """Suffix appended to the source key to build the table location."""
        return self.value.lower()


class Operation(str, Enum):
    CREATE_TABLE = "CREATE TABLE"
    WRITE = "WRITE"


@dataclass
class ColumnSchema:
    """One top-level column of a probed file."""

    name: str
    logical_type: LogicalType
    nullable: bool = True
    source_description: str = ""
    # Only set for DECIMAL columns
    precision: Optional[int] = None
    scale: Optional[int] = None

    def to_dict(self):
        data = {
            "name": self.name,
            "type": self.logical_type.value,
            "nullable": self.nullable,
            "sourceDescription": self.source_description,
        }
        if self.logical_type == LogicalType.DECIMAL:
            data["precision"] = self.precision
            data["scale"] = self.scale
        return data


@dataclass
class ProbedFile:
    bucket: str
    key: str
    byte_size: int
    row_count: int
    columns: List[ColumnSchema] = field(default_factory=list)
    num_row_groups: int = 0
    created_by: Optional[str] = None

    def to_dict(self):
        return {
            "bucketName": self.bucket,
            "fileKey": self.key,
            "size": self.byte_size,
            "schema": [col.to_dict() for col in self.columns],
            "rowCount": self.row_count,
            "numRowGroups": self.num_row_groups,
            "createdBy": self.created_by,
        }


@dataclass
class FileRef:
    path: str
    size_bytes: int
    modified_at_ms: int
    row_count: Optional[int] = None
    data_change: bool = True

    def stats(self):
        """Delta-style per-file statistics, or None when the row count is unknown."""
        if self.row_count is None:
            return None
        return {
            "numRecords": self.row_count,
            "minValues": {},
            "maxValues": {},
            "nullCount": {},
        }

    def to_dict(self):
        data = {
            "path": self.path,
            "size": self.size_bytes,
            "modificationTime": self.modified_at_ms,
            "dataChange": self.data_change,
        }
        stats = self.stats()
        if stats is not None:
            data["stats"] = stats
        return data


@dataclass
class CommitEntry:
    """A single Delta commit: version 0 creates the table, later versions add files."""

    version: int
    operation: Operation
    timestamp_ms: int
    schema_snapshot: Dict
    added_files: List[FileRef] = field(default_factory=list)

    @property
    def read_version(self):
        return self.version - 1


@dataclass
class SnapshotSummary:
    operation: str
    added_records: int
    added_files_size: int
    total_records: int
    total_files_size: int
    added_data_files: int = 1

    def to_dict(self):
        # Iceberg snapshot summaries are string-to-string maps
        return {
            "operation": self.operation,
            "added-data-files": str(self.added_data_files),
            "added-records": str(self.added_records),
            "added-files-size": str(self.added_files_size),
            "changed-partition-count": "1",
            "total-records": str(self.total_records),
            "total-files-size": str(self.total_files_size),
            "total-data-files": str(self.added_data_files),
            "total-delete-files": "0",
            "total-position-deletes": "0",
            "total-equality-deletes": "0",
        }


@dataclass
class SnapshotDoc:
    snapshot_id: int
    timestamp_ms: int
    manifest_list_location: str
    summary: SnapshotSummary
    sequence_number: int = 1
    parent_snapshot_id: Optional[int] = None
    schema_id: int = 0

    def to_dict(self):
        return {
            "snapshot-id": self.snapshot_id,
            "parent-snapshot-id": self.parent_snapshot_id,
            "sequence-number": self.sequence_number,
            "timestamp-ms": self.timestamp_ms,
            "manifest-list": self.manifest_list_location,
            "summary": self.summary.to_dict(),
            "schema-id": self.schema_id,
        }

    def to_api_dict(self):
        return {
            "snapshotId": self.snapshot_id,
            "timestamp": self.timestamp_ms,
            "manifestList": self.manifest_list_location,
            "sequenceNumber": self.sequence_number,
            "summary": self.summary.to_dict(),
        }


@dataclass
class TableStatistics:
    file_count: int = 0
    total_size: int = 0
    num_records: int = 0

    @property
    def average_record_size(self):
        # rowCount 0 reports 0, never NaN or Infinity
        if not self.num_records:
            return 0
        return self.total_size / self.num_records

    @property
    def average_file_size(self):
        if not self.file_count:
            return 0
        return self.total_size / self.file_count

    def to_dict(self):
        return {
            "numFiles": self.file_count,
            "numRecords": self.num_records,
            "totalSize": self.total_size,
            "averageRecordSize": self.average_record_size,
            "averageFileSize": self.average_file_size,
        }


@dataclass
class TableMetadata:
    """
    Derived description of a Delta or Iceberg table.

    Built by the synthesizer right after a conversion, or by the indexer from a
    directory listing. `extras` carries the format-specific blocks (commitInfo,
    protocol, metadataLog, manifestFiles, ...) that are returned verbatim.
    """

    table_name: str
    location_uri: str
    format: TableFormat
    schema: Dict = field(default_factory=dict)
    current_version: Optional[int] = None
    current_snapshot: Optional[SnapshotDoc] = None
    files: List[FileRef] = field(default_factory=list)
    statistics: TableStatistics = field(default_factory=TableStatistics)
    properties: Dict[str, str] = field(default_factory=dict)
    documents: List[str] = field(default_factory=list)
    timestamp_ms: Optional[int] = None
    extras: Dict = field(default_factory=dict)

    def to_dict(self):
        data = {
            "tableName": self.table_name,
            "location": self.location_uri,
            "format": self.format.value,
            "schema": self.schema,
            "timestamp": self.timestamp_ms,
            "files": [f.to_dict() for f in self.files],
            "statistics": self.statistics.to_dict(),
            "documents": list(self.documents),
        }
        if self.format == TableFormat.DELTA:
            data["version"] = self.current_version
            data["configuration"] = self.properties
        else:
            data["properties"] = self.properties
            data["currentSnapshot"] = self.current_snapshot.to_api_dict() if self.current_snapshot else None
        data.update(self.extras)
        return data
