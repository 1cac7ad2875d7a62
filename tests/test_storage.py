"""
Tests for the versioned record store.
"""

from dataclasses import replace

import pytest

from deal_workflow.api.storage import RecordKind, WorkflowStorage
from deal_workflow.core import (
    InvalidReferenceError,
    Mandate,
    Offer,
    StaleStateError,
)


@pytest.fixture
def storage():
    return WorkflowStorage()


@pytest.fixture
def offer():
    return Offer(
        offer_id="OFR-1",
        startup_id="S-1",
        investor_email="ana@example.com",
        amount=250_000,
        equity_percentage=8,
    )


class TestWorkflowStorage:
    """Test CRUD and version checks."""

    def test_create_and_get(self, storage, offer):
        storage.create(RecordKind.OFFER, offer)
        assert storage.get(RecordKind.OFFER, "OFR-1") == offer
        assert storage.count(RecordKind.OFFER) == 1
        assert storage.count() == 1

    def test_duplicate_create(self, storage, offer):
        storage.create(RecordKind.OFFER, offer)
        with pytest.raises(ValueError):
            storage.create(RecordKind.OFFER, offer)

    def test_get_missing(self, storage):
        assert storage.get(RecordKind.OFFER, "nope") is None
        with pytest.raises(InvalidReferenceError):
            storage.get_versioned(RecordKind.OFFER, "nope")
        with pytest.raises(InvalidReferenceError):
            storage.get_versioned(RecordKind.OFFER, "")

    def test_update_bumps_version(self, storage, offer):
        storage.create(RecordKind.OFFER, offer)
        _, version = storage.get_versioned(RecordKind.OFFER, "OFR-1")

        new_version = storage.update(RecordKind.OFFER, replace(offer, stage=2), expected_version=version)

        assert new_version == version + 1
        assert storage.get(RecordKind.OFFER, "OFR-1").stage == 2

    def test_stale_version_rejected(self, storage, offer):
        """Second writer holding the old version loses."""
        storage.create(RecordKind.OFFER, offer)
        _, version = storage.get_versioned(RecordKind.OFFER, "OFR-1")
        storage.update(RecordKind.OFFER, replace(offer, stage=2), expected_version=version)

        with pytest.raises(StaleStateError) as exc_info:
            storage.update(RecordKind.OFFER, replace(offer, stage=3), expected_version=version)

        assert exc_info.value.expected == version
        assert storage.get(RecordKind.OFFER, "OFR-1").stage == 2

    def test_update_missing(self, storage, offer):
        with pytest.raises(InvalidReferenceError):
            storage.update(RecordKind.OFFER, offer)

    def test_delete(self, storage, offer):
        storage.create(RecordKind.OFFER, offer)
        assert storage.delete(RecordKind.OFFER, "OFR-1") is True
        assert storage.delete(RecordKind.OFFER, "OFR-1") is False

    def test_query(self, storage):
        for i, owner in enumerate(["ADV-1", "ADV-2", "ADV-1"]):
            storage.create(RecordKind.MANDATE, Mandate(f"MND-{i}", owner, name=f"M{i}"))

        owned = storage.query(RecordKind.MANDATE, lambda m: m.owner_id == "ADV-1")
        assert [m.mandate_id for m in owned] == ["MND-0", "MND-2"]
        assert len(storage.query(RecordKind.MANDATE)) == 3

    def test_generate_id(self, storage):
        first = storage.generate_id(RecordKind.OFFER)
        second = storage.generate_id(RecordKind.OFFER)
        assert first.startswith("OFR-")
        assert first != second


class TestJsonPersistence:
    """Test JSON file round trip."""

    def test_reload_from_file(self, tmp_path, offer):
        path = tmp_path / "records.json"
        storage = WorkflowStorage(str(path))
        storage.create(RecordKind.OFFER, offer)
        storage.update(RecordKind.OFFER, replace(offer, stage=2))

        reloaded = WorkflowStorage(str(path))
        record, version = reloaded.get_versioned(RecordKind.OFFER, "OFR-1")

        assert record.stage == 2
        assert version == 2

    def test_corrupt_file_starts_empty(self, tmp_path):
        path = tmp_path / "records.json"
        path.write_text("{not json")
        storage = WorkflowStorage(str(path))
        assert storage.count() == 0

    @pytest.mark.parametrize("contents", [
        '{"records": {"offer": ["not a row"]}}',
        '{"records": {"offer": [{"version": 1, "data": null}]}}',
        '["not", "an", "object"]',
    ])
    def test_malformed_rows_start_empty(self, tmp_path, contents):
        path = tmp_path / "records.json"
        path.write_text(contents)
        storage = WorkflowStorage(str(path))
        assert storage.count() == 0
