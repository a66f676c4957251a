"""
Exposure Store - persisted state that must survive process restarts.

Handles:
- Daily cumulative exposure per owner (reset at local midnight by the timer)
- Environmental snapshots keyed by rounded location, with their fetch time

Each store has an in-memory implementation (no database configured) and a MongoDB
implementation backed by a synchronous pymongo Database.
"""

import logging
from dataclasses import dataclass, asdict
from datetime import date, datetime, timezone
from typing import Dict, Optional, Protocol, Tuple

from pymongo.database import Database

from environmental_models import EnvironmentalFactors

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DailyExposureRecord:
    """Cumulative exposure seconds for one owner on one local calendar date."""
    owner_id: str
    local_date: date
    total_seconds: float
    updated_at: datetime = None

    def __post_init__(self):
        if self.updated_at is None:
            object.__setattr__(self, 'updated_at', datetime.now(timezone.utc))

    def to_mongo_doc(self) -> dict:
        """Convert to MongoDB document (BSON has no date type)."""
        doc = asdict(self)
        doc['local_date'] = self.local_date.isoformat()
        return doc

    @classmethod
    def from_mongo_doc(cls, doc: dict) -> "DailyExposureRecord":
        return cls(
            owner_id=doc['owner_id'],
            local_date=date.fromisoformat(doc['local_date']),
            total_seconds=float(doc.get('total_seconds', 0.0)),
            updated_at=doc.get('updated_at'),
        )


class DailyExposureStore(Protocol):
    def load(self, owner_id: str) -> Optional[DailyExposureRecord]:
        ...

    def save(self, record: DailyExposureRecord) -> None:
        ...


class SnapshotStore(Protocol):
    def load(self, location_key: str) -> Optional[Tuple[EnvironmentalFactors, datetime]]:
        ...

    def save(self, location_key: str, snapshot: EnvironmentalFactors, fetched_at: datetime) -> None:
        ...


class InMemoryExposureStore:
    def __init__(self):
        self._records: Dict[str, DailyExposureRecord] = {}

    def load(self, owner_id: str) -> Optional[DailyExposureRecord]:
        return self._records.get(owner_id)

    def save(self, record: DailyExposureRecord) -> None:
        self._records[record.owner_id] = record


class InMemorySnapshotStore:
    def __init__(self):
        self._entries: Dict[str, Tuple[EnvironmentalFactors, datetime]] = {}

    def load(self, location_key: str) -> Optional[Tuple[EnvironmentalFactors, datetime]]:
        return self._entries.get(location_key)

    def save(self, location_key: str, snapshot: EnvironmentalFactors, fetched_at: datetime) -> None:
        self._entries[location_key] = (snapshot, fetched_at)


class MongoExposureStore:
    """Daily exposure totals in the `daily_exposure` collection, one doc per owner."""

    def __init__(self, db: Database):
        self.db = db
        self._ensure_indexes()

    def _ensure_indexes(self):
        self.db.daily_exposure.create_index("owner_id", unique=True)

    def load(self, owner_id: str) -> Optional[DailyExposureRecord]:
        doc = self.db.daily_exposure.find_one({"owner_id": owner_id})
        if not doc:
            return None
        return DailyExposureRecord.from_mongo_doc(doc)

    def save(self, record: DailyExposureRecord) -> None:
        self.db.daily_exposure.update_one(
            {"owner_id": record.owner_id},
            {"$set": record.to_mongo_doc()},
            upsert=True,
        )
        logger.debug(
            f"[STORE] Saved {record.total_seconds:.0f}s exposure for {record.owner_id} on {record.local_date}"
        )


class MongoSnapshotStore:
    """Environmental snapshots in the `environment_snapshots` collection."""

    def __init__(self, db: Database):
        self.db = db
        self._ensure_indexes()

    def _ensure_indexes(self):
        self.db.environment_snapshots.create_index("location_key", unique=True)
        self.db.environment_snapshots.create_index("fetched_at")

    def load(self, location_key: str) -> Optional[Tuple[EnvironmentalFactors, datetime]]:
        doc = self.db.environment_snapshots.find_one({"location_key": location_key})
        if not doc:
            return None
        snapshot = EnvironmentalFactors.from_doc(doc['snapshot'])
        fetched_at = doc['fetched_at']
        if fetched_at.tzinfo is None:
            fetched_at = fetched_at.replace(tzinfo=timezone.utc)
        return snapshot, fetched_at

    def save(self, location_key: str, snapshot: EnvironmentalFactors, fetched_at: datetime) -> None:
        self.db.environment_snapshots.update_one(
            {"location_key": location_key},
            {"$set": {
                "location_key": location_key,
                "snapshot": snapshot.to_doc(),
                "fetched_at": fetched_at,
            }},
            upsert=True,
        )
