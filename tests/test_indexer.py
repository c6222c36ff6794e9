import pytest

from lakemeta.models import TableFormat
from lakemeta.services import TableDirectoryIndexer, TableMetadataSynthesizer

NOW_MS = 1700000000000


@pytest.fixture
def indexer(gateway):
    return TableDirectoryIndexer(gateway, clock=lambda: NOW_MS)


@pytest.fixture
def synthesizer(gateway):
    return TableMetadataSynthesizer(gateway, clock=lambda: NOW_MS)


def test_empty_delta_table_reports_version_zero(indexer):
    data = indexer.summarize("data", "nothing_delta", TableFormat.DELTA).to_dict()

    assert data["version"] == 0
    assert data["files"] == []
    assert data["statistics"]["numFiles"] == 0
    assert data["statistics"]["averageRecordSize"] == 0
    assert data["location"] == "s3://data/nothing_delta"


def test_delta_version_counts_commits_and_excludes_log(indexer, synthesizer, sales_probe, fake_s3):
    synthesizer.synthesize(sales_probe, TableFormat.DELTA)
    fake_s3.add_object("data", "sales_delta/part-00000.parquet", b"x" * 2048)
    fake_s3.add_object("data", "sales_delta/_delta_log/_last_checkpoint", b"{}")

    data = indexer.summarize("data", "sales_delta", "DELTA").to_dict()

    assert data["version"] == 1
    assert [f["path"] for f in data["files"]] == ["sales_delta/part-00000.parquet"]
    assert data["statistics"]["totalSize"] == 2048
    assert data["statistics"]["numRecords"] == 0
    assert data["protocol"] == {"minReaderVersion": 1, "minWriterVersion": 2}
    assert data["metadataLog"]["path"] == "s3://data/sales_delta/_delta_log"
    assert data["timestamp"] == NOW_MS


def test_delta_listing_follows_pagination(indexer, fake_s3):
    fake_s3.page_size = 2
    for version in range(5):
        fake_s3.add_object("data", f"events_delta/_delta_log/{version:020d}.json", b"{}\n")

    summary = indexer.summarize("data", "events_delta/", TableFormat.DELTA)
    assert summary.current_version == 4


def test_iceberg_snapshots_come_from_file_names(indexer, synthesizer, sales_probe):
    first = synthesizer.synthesize(sales_probe, TableFormat.ICEBERG).summary
    second = synthesizer.synthesize(sales_probe, TableFormat.ICEBERG).summary

    data = indexer.summarize("data", "sales_iceberg", TableFormat.ICEBERG).to_dict()

    assert [s["snapshotId"] for s in data["snapshots"]] == [
        first.current_snapshot.snapshot_id,
        second.current_snapshot.snapshot_id,
    ]
    assert data["currentSnapshot"]["snapshotId"] == second.current_snapshot.snapshot_id
    assert data["currentSnapshot"]["sequenceNumber"] == 3
    assert data["schema"] == {}
    assert data["files"] == []
    assert len(data["manifestFiles"]) == 4


def test_empty_iceberg_table(indexer):
    data = indexer.summarize("data", "nothing_iceberg", TableFormat.ICEBERG).to_dict()
    assert data["snapshots"] == []
    assert data["currentSnapshot"] is None
    assert data["statistics"]["numFiles"] == 0
