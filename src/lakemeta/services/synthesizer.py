# src/lakemeta/services/synthesizer.py
import json
import logging
import os
import time
import uuid
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from ..exceptions import LakeMetaError, ParseError, ValidationError
from ..models import FileRef, TableFormat, TableMetadata, TableStatistics
from ..utils.formatters import strip_extension
from ..utils.s3_gateway import build_s3_uri
from ..utils.serializers import dumps_compact
from . import _delta_log as delta_log
from . import _iceberg_metadata as iceberg_meta
from ._type_mapping import delta_schema, iceberg_schema

logger = logging.getLogger(__name__)

AVRO_MAGIC = b"Obj\x01"


@dataclass
class SynthesisResult:
    documents: List[Tuple[str, bytes]] = field(default_factory=list)
    summary: TableMetadata = None


@dataclass
class IcebergLogState:
    highest_sequence: Optional[int] = None
    table_uuid: Optional[str] = None
    parent_snapshot_id: Optional[int] = None
    # Key of the newest table-metadata document
    metadata_key: Optional[str] = None


def _now_ms():
    return int(time.time() * 1000)


def table_name_for(key):
    """`warehouse/sales.parquet` -> `sales`"""
    return os.path.basename(strip_extension(key))


def table_location_for(key, table_format):
    """`warehouse/sales.parquet` -> `warehouse/sales_delta` (sibling of the source file)"""
    return f"{strip_extension(key)}_{TableFormat(table_format).suffix}"


class TableMetadataSynthesizer:
    """
    Builds and persists a Delta log or Iceberg metadata overlay for one Parquet file.

    Every run reads the highest version already present under the table's log
    directory and appends after it; nothing is ever rewritten. Log documents
    are written with a conditional put, so a slot taken by a concurrent writer
    surfaces as ConcurrentModification instead of being overwritten. Delta
    commit keys depend only on the version. Iceberg document keys carry random
    ids, so an Iceberg run first claims its two sequences with conditional
    writes of `metadata/SSSSS.lock`; a second writer on the same sequence
    fails there before writing any metadata.

    Without conditional writes (S3_CONDITIONAL_WRITES=false, or a store that
    ignores If-None-Match) two concurrent conversions of the same file can
    both see an empty log and both write version 0/1. Per-table synthesis is
    only safe under a single writer in that mode.
    """

    def __init__(self, gateway, snapshot_format="json", preserve_nullability=False, clock=None):
        if snapshot_format not in iceberg_meta.SNAPSHOT_FORMATS:
            raise ValueError(f"Unknown Iceberg snapshot format '{snapshot_format}'. "
                             f"Expected one of: {', '.join(iceberg_meta.SNAPSHOT_FORMATS)}")
        self.gateway = gateway
        self.snapshot_format = snapshot_format
        self.preserve_nullability = preserve_nullability
        self.clock = clock or _now_ms

    def synthesize(self, probed, target_format, existing_version=None):
        """
        Synthesizes and persists table-format metadata for a probed Parquet file.

        Args:
            probed (ProbedFile): Output of SchemaProber.probe.
            target_format (TableFormat | str): DELTA or ICEBERG.
            existing_version (int, optional): Highest version (Delta) or
                sequence (Iceberg) the caller already knows to exist. When
                omitted it is read from the store.

        Returns:
            SynthesisResult: documents written, in order, and the table summary.
        """
        try:
            table_format = TableFormat(str(getattr(target_format, 'value', target_format)).upper())
        except ValueError:
            raise ValidationError(f"Unsupported table format: {target_format}")

        # The data file must exist at write time for its FileRef to be valid
        source = self.gateway.head(probed.bucket, probed.key)

        if table_format == TableFormat.DELTA:
            return self._synthesize_delta(probed, source, existing_version)
        return self._synthesize_iceberg(probed, source, existing_version)

    # --- Delta ---

    def current_delta_version(self, bucket, table_location):
        """Highest commit version under `_delta_log/`, or None for a table with no log."""
        versions = [
            delta_log.commit_version(obj.key)
            for obj in self.gateway.list(bucket, delta_log.log_prefix(table_location), paginate=True)
        ]
        versions = [v for v in versions if v is not None]
        return max(versions) if versions else None

    def _synthesize_delta(self, probed, source, existing_version):
        bucket = probed.bucket
        table_name = table_name_for(probed.key)
        table_location = table_location_for(probed.key, TableFormat.DELTA)
        if existing_version is None:
            existing_version = self.current_delta_version(bucket, table_location)

        timestamp_ms = self.clock()
        schema = delta_schema(probed.columns, self.preserve_nullability)
        file_ref = FileRef(
            path=probed.key,
            size_bytes=probed.byte_size,
            modified_at_ms=source.last_modified_ms or timestamp_ms,
            row_count=probed.row_count,
        )

        # --- 1. Plan commits: CREATE TABLE + WRITE for a new table, WRITE only otherwise ---
        entries = []
        if existing_version is None:
            entries.append(delta_log.create_entry(timestamp_ms, schema))
            next_version = 1
        else:
            logger.info("Delta log for %s already at version %d; appending", table_location, existing_version)
            next_version = existing_version + 1
        entries.append(delta_log.write_entry(next_version, timestamp_ms, schema, file_ref))

        table_id = str(uuid.uuid4())
        documents = []
        for entry in entries:
            actions = delta_log.commit_actions(entry, bucket, table_id, table_name, probed.key)
            documents.append((delta_log.commit_key(table_location, entry.version), delta_log.encode_commit(actions)))

        # --- 2. Persist in version order ---
        written = self._persist(bucket, documents)

        # --- 3. Describe the result ---
        last_entry = entries[-1]
        summary = TableMetadata(
            table_name=table_name,
            location_uri=build_s3_uri(bucket, table_location),
            format=TableFormat.DELTA,
            schema=schema,
            current_version=last_entry.version,
            files=[file_ref],
            statistics=TableStatistics(file_count=1, total_size=probed.byte_size, num_records=probed.row_count),
            properties=dict(delta_log.DEFAULT_CONFIGURATION),
            documents=written,
            timestamp_ms=timestamp_ms,
            extras={
                "commitInfo": delta_log.commit_info(last_entry),
                "protocol": dict(delta_log.PROTOCOL),
                "metadataLog": {
                    "path": build_s3_uri(bucket, delta_log.log_prefix(table_location)),
                    "version": last_entry.version,
                    "size": sum(len(body) for _, body in documents),
                },
            },
        )
        logger.info("Delta table %s written at version %d (%d documents)", table_name, last_entry.version, len(written))
        return SynthesisResult(documents=documents, summary=summary)

    # --- Iceberg ---

    def iceberg_log_state(self, bucket, table_location):
        """Highest sequence, table uuid, newest snapshot and newest metadata document, from file names."""
        state = IcebergLogState()
        snapshot_sequence, metadata_sequence = -1, -1
        for obj in self.gateway.list(bucket, iceberg_meta.metadata_prefix(table_location), paginate=True):
            sequence = iceberg_meta.sequence_of(obj.key)
            if sequence is None:
                continue
            # Claims count too, so a run that died after claiming is stepped over
            if state.highest_sequence is None or sequence > state.highest_sequence:
                state.highest_sequence = sequence
            found_uuid = iceberg_meta.table_uuid_of(obj.key)
            if found_uuid is not None and sequence > metadata_sequence:
                metadata_sequence = sequence
                state.table_uuid, state.metadata_key = found_uuid, obj.key
            found_snapshot = iceberg_meta.snapshot_id_of(obj.key)
            if found_snapshot is not None and sequence > snapshot_sequence:
                snapshot_sequence, state.parent_snapshot_id = sequence, found_snapshot
        return state

    def _read_metadata(self, bucket, key):
        body = self.gateway.get(bucket, key)
        try:
            return json.loads(body.read())
        except ValueError as e:
            raise ParseError(f"Unreadable Iceberg metadata s3://{bucket}/{key}: {e}",
                             details={"bucket": bucket, "key": key}) from e
        finally:
            body.close()

    def _synthesize_iceberg(self, probed, source, existing_version):
        bucket = probed.bucket
        table_name = table_name_for(probed.key)
        table_location = table_location_for(probed.key, TableFormat.ICEBERG)
        location_uri = build_s3_uri(bucket, table_location)

        state = self.iceberg_log_state(bucket, table_location)
        highest = state.highest_sequence
        if existing_version is not None:
            highest = existing_version if highest is None else max(highest, existing_version)
        metadata_sequence = 0 if highest is None else highest + 1
        snapshot_sequence = metadata_sequence + 1
        table_uuid = state.table_uuid or str(uuid.uuid4())
        parent_snapshot_id = state.parent_snapshot_id
        if highest is not None:
            logger.info("Iceberg metadata for %s already at sequence %05d; appending", table_location, highest)

        timestamp_ms = self.clock()

        # --- 0. Claim both sequences; uuid-named documents cannot collide on their own ---
        claim_body = dumps_compact({"tableUuid": table_uuid, "claimedAt": timestamp_ms})
        claims = self._persist(bucket, [
            (iceberg_meta.claim_key(table_location, sequence), claim_body.encode('utf-8'))
            for sequence in (metadata_sequence, snapshot_sequence)
        ])

        previous, previous_location = None, None
        if state.metadata_key:
            previous = self._read_metadata(bucket, state.metadata_key)
            previous_location = build_s3_uri(bucket, state.metadata_key)

        schema = iceberg_schema(probed.columns, preserve_nullability=self.preserve_nullability)
        content_format, extension = iceberg_meta.SNAPSHOT_FORMATS[self.snapshot_format]

        # --- 1. Snapshot; the snapshot document doubles as the manifest list ---
        snapshot_id = iceberg_meta.new_snapshot_id()
        snap_key = iceberg_meta.snapshot_key(table_location, snapshot_sequence, snapshot_id, extension)
        snapshot = iceberg_meta.build_snapshot(
            snapshot_id=snapshot_id,
            timestamp_ms=timestamp_ms,
            manifest_list_location=build_s3_uri(bucket, snap_key),
            probed=probed,
            sequence_number=snapshot_sequence,
            parent_snapshot_id=parent_snapshot_id,
        )
        data_files = [iceberg_meta.data_file_entry(build_s3_uri(bucket, probed.key), probed)]

        # --- 2. Table metadata ---
        meta_key = iceberg_meta.metadata_key(table_location, metadata_sequence, table_uuid)
        table_metadata = iceberg_meta.build_table_metadata(table_uuid, location_uri, schema, snapshot, timestamp_ms,
                                                           previous=previous, previous_location=previous_location)

        documents = [
            (meta_key, iceberg_meta.encode_metadata(table_metadata)),
            (snap_key, iceberg_meta.encode_snapshot(snapshot, data_files, content_format)),
        ]
        written = self._persist(bucket, documents)

        snapshot_bytes = len(documents[1][1])
        summary = TableMetadata(
            table_name=table_name,
            location_uri=location_uri,
            format=TableFormat.ICEBERG,
            schema=schema,
            current_version=snapshot_sequence,
            current_snapshot=snapshot,
            files=[FileRef(
                path=probed.key,
                size_bytes=probed.byte_size,
                modified_at_ms=source.last_modified_ms or timestamp_ms,
                row_count=probed.row_count,
            )],
            statistics=TableStatistics(file_count=1, total_size=probed.byte_size, num_records=probed.row_count),
            properties=dict(iceberg_meta.DEFAULT_PROPERTIES),
            documents=written,
            timestamp_ms=timestamp_ms,
            extras={
                "tableUuid": table_uuid,
                "formatVersion": iceberg_meta.FORMAT_VERSION,
                "metadataLocation": build_s3_uri(bucket, meta_key),
                "sequenceClaims": claims,
                "partitionSpec": [],
                "snapshots": [snapshot.to_api_dict()],
                "manifestFiles": [{
                    "path": build_s3_uri(bucket, snap_key),
                    "length": snapshot_bytes,
                    "partitionSpecId": 0,
                    "addedFiles": 1,
                    "existingFiles": 0,
                    "deletedFiles": 0,
                }],
            },
        )
        logger.info("Iceberg table %s written with snapshot %d (%d documents)", table_name, snapshot_id, len(written))
        return SynthesisResult(documents=documents, summary=summary)

    # --- Persistence ---

    def _persist(self, bucket, documents):
        """
        Writes documents in order. A failure stops the sequence and leaves the
        documents already written in place; they are immutable and the next
        run continues after them.
        """
        written = []
        for key, body in documents:
            content_type = 'avro/binary' if body.startswith(AVRO_MAGIC) else 'application/json'
            try:
                self.gateway.put(bucket, key, body, content_type=content_type, if_none_match=True)
            except LakeMetaError as e:
                logger.error("Write of s3://%s/%s failed after %d of %d documents: %s",
                             bucket, key, len(written), len(documents), e.message)
                e.details.setdefault("writtenDocuments", list(written))
                raise
            written.append(key)
        return written
