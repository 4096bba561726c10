"""
Tests for snapshot persistence.
"""
import json
import os

import pytest

from oif_solver.exceptions import PersistenceError
from oif_solver.orders.models import ErrorDetail, OrderStatus
from oif_solver.orders.persistence import SNAPSHOT_VERSION, SnapshotPersistence
from oif_solver.orders.store import OrderStore
from helpers import SIGNATURE, make_intent


@pytest.fixture
def path(tmp_path):
    return str(tmp_path / "data" / "orders.json")


@pytest.fixture
def store():
    store = OrderStore()
    pending = store.submit(make_intent(nonce=1), SIGNATURE)
    filled = store.submit(make_intent(nonce=2**200), SIGNATURE)
    failed = store.submit(make_intent(nonce=3), SIGNATURE)
    processing = store.submit(make_intent(nonce=4), SIGNATURE)

    store.begin_fill(filled)
    store.fill_succeeded(filled, "0x" + "aa" * 32)
    store.begin_fill(failed)
    store.operation_failed(failed, ErrorDetail(kind="EncodingError", message="bad", operation="fill"))
    store.begin_fill(processing)
    return store


class TestSnapshotPersistence:

    def test_round_trip_is_lossless(self, store, path):
        """Every order should come back equal field-for-field."""
        persistence = SnapshotPersistence(path)
        assert persistence.save_snapshot(store.snapshot()) == 4

        loaded = persistence.load_snapshot()
        assert loaded == store.snapshot()

    def test_processing_saved_verbatim(self, store, path):
        persistence = SnapshotPersistence(path)
        persistence.save_snapshot(store.snapshot())

        restored = OrderStore.from_snapshot(persistence.load_snapshot())
        assert restored.queue_status().processing == 1

    def test_document_layout(self, store, path):
        SnapshotPersistence(path).save_snapshot(store.snapshot())
        with open(path) as f:
            document = json.load(f)

        assert document["version"] == SNAPSHOT_VERSION
        assert len(document["orders"]) == 4
        assert document["orders"][1]["intent"]["nonce"] == str(2**200)
        assert document["orders"][1]["status"] == OrderStatus.FILLED.value

    def test_no_temp_files_left_behind(self, store, path):
        persistence = SnapshotPersistence(path)
        persistence.save_snapshot(store.snapshot())
        persistence.save_snapshot(store.snapshot())
        assert os.listdir(os.path.dirname(path)) == ["orders.json"]

    def test_missing_file_loads_empty(self, path):
        assert SnapshotPersistence(path).load_snapshot() == []

    def test_corrupt_file_loads_empty(self, path, caplog):
        os.makedirs(os.path.dirname(path))
        with open(path, "w") as f:
            f.write("{not json")

        assert SnapshotPersistence(path).load_snapshot() == []
        assert "Ignoring unreadable snapshot" in caplog.text

    def test_invalid_record_loads_empty(self, path):
        os.makedirs(os.path.dirname(path))
        with open(path, "w") as f:
            json.dump({"version": 1, "orders": [{"id": "x"}]}, f)
        assert SnapshotPersistence(path).load_snapshot() == []

    def test_write_failure_raises(self, tmp_path, store):
        blocker = tmp_path / "blocker"
        blocker.write_text("a file, not a directory")
        persistence = SnapshotPersistence(str(blocker / "orders.json"))

        with pytest.raises(PersistenceError):
            persistence.save_snapshot(store.snapshot())

    def test_empty_store(self, path):
        persistence = SnapshotPersistence(path)
        assert persistence.save_snapshot([]) == 0
        assert persistence.load_snapshot() == []
