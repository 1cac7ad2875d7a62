"""
Record store with in-memory and JSON file persistence.

Holds every record kind the workflow touches. Each record carries a
version number that ``update`` checks, so a writer that read an older
snapshot is refused instead of overwriting a newer decision.
"""

import json
import threading
import uuid
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Optional

from loguru import logger

from deal_workflow.core import (
    CoInvestmentOffer,
    CoInvestmentOpportunity,
    InvalidReferenceError,
    Mandate,
    Offer,
    PlatformEntity,
    Recommendation,
    StaleStateError,
    TrackedContact,
)


class RecordKind(Enum):
    """Collections held by the store."""

    OFFER = "offer"
    CO_INVESTMENT_OFFER = "co_investment_offer"
    OPPORTUNITY = "opportunity"
    MANDATE = "mandate"
    TRACKED_CONTACT = "tracked_contact"
    PLATFORM_ENTITY = "platform_entity"
    RECOMMENDATION = "recommendation"


# kind -> (record type, id attribute, id prefix)
RECORD_TYPES: dict[RecordKind, tuple[type, str, str]] = {
    RecordKind.OFFER: (Offer, "offer_id", "OFR"),
    RecordKind.CO_INVESTMENT_OFFER: (CoInvestmentOffer, "offer_id", "COF"),
    RecordKind.OPPORTUNITY: (CoInvestmentOpportunity, "opportunity_id", "OPP"),
    RecordKind.MANDATE: (Mandate, "mandate_id", "MND"),
    RecordKind.TRACKED_CONTACT: (TrackedContact, "contact_id", "CNT"),
    RecordKind.PLATFORM_ENTITY: (PlatformEntity, "entity_id", "ENT"),
    RecordKind.RECOMMENDATION: (Recommendation, "recommendation_id", "REC"),
}


def record_id(kind: RecordKind, record: Any) -> str:
    return getattr(record, RECORD_TYPES[kind][1])


@dataclass
class StoredRecord:
    record: Any
    version: int = 1


class WorkflowStorage:
    """
    In-memory record storage with optional JSON file persistence.
    """

    def __init__(self, storage_path: Optional[str] = None):
        """
        Initialize storage.

        Args:
            storage_path: Optional path to JSON file for persistence.
                         If None, storage is in-memory only.
        """
        self._records: dict[RecordKind, dict[str, StoredRecord]] = {
            kind: {} for kind in RecordKind
        }
        self._storage_path = storage_path
        self._lock = threading.RLock()
        self._load()

    def _load(self) -> None:
        """Load records from JSON file if path is set."""
        if not self._storage_path:
            return

        path = Path(self._storage_path)
        if not path.exists():
            return

        try:
            with open(path, "r") as f:
                data = json.load(f)

            for kind_name, rows in data.get("records", {}).items():
                kind = RecordKind(kind_name)
                record_type = RECORD_TYPES[kind][0]
                for row in rows:
                    record = record_type.from_dict(row["data"])
                    self._records[kind][record_id(kind, record)] = StoredRecord(
                        record=record, version=row.get("version", 1)
                    )

        except (json.JSONDecodeError, KeyError, ValueError, TypeError, AttributeError) as e:
            logger.warning("Could not load records from {}: {}", path, e)

    def _save(self) -> None:
        """Save records to JSON file if path is set."""
        if not self._storage_path:
            return

        path = Path(self._storage_path)
        path.parent.mkdir(parents=True, exist_ok=True)

        data = {
            "version": "1.0",
            "updated_at": datetime.now().isoformat(),
            "records": {
                kind.value: [
                    {"version": stored.version, "data": stored.record.to_dict()}
                    for stored in rows.values()
                ]
                for kind, rows in self._records.items()
            },
        }

        with open(path, "w") as f:
            json.dump(data, f, indent=2)

    def create(self, kind: RecordKind, record: Any) -> Any:
        """
        Create a new record.

        Raises:
            ValueError: If a record with the same id already exists
        """
        rid = record_id(kind, record)
        if not rid:
            raise InvalidReferenceError(kind.value, rid)

        with self._lock:
            if rid in self._records[kind]:
                raise ValueError(f"{kind.value} '{rid}' already exists")

            self._records[kind][rid] = StoredRecord(record=record)
            self._save()
        return record

    def get(self, kind: RecordKind, rid: str) -> Optional[Any]:
        """Get a record by ID."""
        stored = self._records[kind].get(rid)
        return stored.record if stored else None

    def get_versioned(self, kind: RecordKind, rid: str) -> tuple[Any, int]:
        """
        Get a record together with its current version.

        Raises:
            InvalidReferenceError: If the id is empty or unknown
        """
        if not rid:
            raise InvalidReferenceError(kind.value, rid)

        with self._lock:
            stored = self._records[kind].get(rid)
            if stored is None:
                raise InvalidReferenceError(kind.value, rid)
            return stored.record, stored.version

    def update(self, kind: RecordKind, record: Any,
               expected_version: Optional[int] = None) -> int:
        """
        Replace an existing record.

        Args:
            kind: Record collection
            record: New snapshot
            expected_version: Version the caller read; None skips the check

        Returns:
            The record's new version

        Raises:
            InvalidReferenceError: If the record does not exist
            StaleStateError: If the stored version moved on since the read
        """
        rid = record_id(kind, record)

        with self._lock:
            stored = self._records[kind].get(rid)
            if stored is None:
                raise InvalidReferenceError(kind.value, rid)

            if expected_version is not None and stored.version != expected_version:
                raise StaleStateError(
                    kind.value, rid,
                    "record changed since it was read",
                    expected=expected_version, actual=stored.version,
                )

            stored.record = record
            stored.version += 1
            self._save()
            return stored.version

    def delete(self, kind: RecordKind, rid: str) -> bool:
        """
        Delete a record.

        Returns:
            True if deleted, False if not found
        """
        with self._lock:
            if rid not in self._records[kind]:
                return False

            del self._records[kind][rid]
            self._save()
            return True

    def query(self, kind: RecordKind,
              predicate: Optional[Callable[[Any], bool]] = None) -> list[Any]:
        """Return records of a kind, optionally filtered by a predicate."""
        return [record for record, _ in self.query_versioned(kind, predicate)]

    def query_versioned(self, kind: RecordKind,
                        predicate: Optional[Callable[[Any], bool]] = None) -> list[tuple[Any, int]]:
        """Like ``query`` but pairs each record with the version it was read at."""
        with self._lock:
            rows = [(stored.record, stored.version) for stored in self._records[kind].values()]

        if predicate is None:
            return rows
        return [(r, v) for r, v in rows if predicate(r)]

    def count(self, kind: Optional[RecordKind] = None) -> int:
        """Count records of one kind, or of all kinds."""
        if kind is not None:
            return len(self._records[kind])
        return sum(len(rows) for rows in self._records.values())

    def generate_id(self, kind: RecordKind) -> str:
        """Generate a unique record ID."""
        prefix = RECORD_TYPES[kind][2]
        return f"{prefix}-{datetime.now().strftime('%Y%m%d')}-{uuid.uuid4().hex[:6].upper()}"
