"""
Tests for the persisted exposure and snapshot stores.

Mongo stores are exercised against a MagicMock database; only the queries and
documents they produce are checked.
"""

import math
from datetime import date, datetime, timezone
from unittest.mock import MagicMock

from environmental_models import (
    Coordinates,
    EnvironmentalFactors,
    WaterBody,
    WaterBodySize,
    WaterBodyType,
    WaterProximity,
)
from exposure_store import (
    DailyExposureRecord,
    InMemoryExposureStore,
    InMemorySnapshotStore,
    MongoExposureStore,
    MongoSnapshotStore,
)

NOW = datetime(2026, 7, 15, 18, 0, tzinfo=timezone.utc)


def make_record(total=1234.0):
    return DailyExposureRecord(
        owner_id="user-1",
        local_date=date(2026, 7, 15),
        total_seconds=total,
        updated_at=NOW,
    )


class TestDailyExposureRecord:

    def test_mongo_doc_uses_iso_date(self):
        doc = make_record().to_mongo_doc()
        assert doc["local_date"] == "2026-07-15"
        assert doc["total_seconds"] == 1234.0
        assert doc["owner_id"] == "user-1"

    def test_from_mongo_doc(self):
        record = DailyExposureRecord.from_mongo_doc(make_record().to_mongo_doc())
        assert record == make_record()

    def test_updated_at_defaults_to_now(self):
        record = DailyExposureRecord(owner_id="x", local_date=date(2026, 7, 15), total_seconds=0.0)
        assert record.updated_at is not None
        assert record.updated_at.tzinfo is not None


class TestInMemoryStores:

    def test_exposure_store(self):
        store = InMemoryExposureStore()
        assert store.load("user-1") is None
        store.save(make_record(10.0))
        store.save(make_record(20.0))
        assert store.load("user-1").total_seconds == 20.0

    def test_snapshot_store(self):
        store = InMemorySnapshotStore()
        env = EnvironmentalFactors.neutral(Coordinates(1.0, 2.0))
        store.save("1.00,2.00", env, NOW)
        assert store.load("1.00,2.00") == (env, NOW)
        assert store.load("3.00,4.00") is None


class TestMongoExposureStore:

    def test_creates_unique_index(self):
        db = MagicMock()
        MongoExposureStore(db)
        db.daily_exposure.create_index.assert_called_once_with("owner_id", unique=True)

    def test_save_upserts(self):
        db = MagicMock()
        store = MongoExposureStore(db)
        store.save(make_record())
        filter_doc, update = db.daily_exposure.update_one.call_args.args
        assert filter_doc == {"owner_id": "user-1"}
        assert update["$set"]["local_date"] == "2026-07-15"
        assert db.daily_exposure.update_one.call_args.kwargs["upsert"] is True

    def test_load(self):
        db = MagicMock()
        db.daily_exposure.find_one.return_value = make_record().to_mongo_doc()
        store = MongoExposureStore(db)
        assert store.load("user-1") == make_record()
        db.daily_exposure.find_one.assert_called_once_with({"owner_id": "user-1"})

    def test_load_missing(self):
        db = MagicMock()
        db.daily_exposure.find_one.return_value = None
        assert MongoExposureStore(db).load("nobody") is None


class TestMongoSnapshotStore:

    def test_round_trip_through_documents(self):
        db = MagicMock()
        store = MongoSnapshotStore(db)
        env = EnvironmentalFactors(
            location=Coordinates(25.79, -80.13),
            altitude_meters=2.0,
            water_proximity=WaterProximity(
                nearest_water_body=WaterBody(
                    name="Atlantic Ocean",
                    type=WaterBodyType.OCEAN,
                    size=WaterBodySize.MASSIVE,
                    coordinates=Coordinates(25.79, -80.12),
                ),
                distance_to_water_meters=100.0,
                water_body_type=WaterBodyType.OCEAN,
                is_coastal=True,
            ),
            fetched_at=NOW,
        )
        store.save("25.79,-80.13", env, NOW)
        saved = db.environment_snapshots.update_one.call_args.args[1]["$set"]

        # Mongo returns naive UTC datetimes
        db.environment_snapshots.find_one.return_value = {
            **saved,
            "fetched_at": NOW.replace(tzinfo=None),
        }
        loaded_env, fetched_at = store.load("25.79,-80.13")
        assert fetched_at == NOW
        assert loaded_env.water_proximity == env.water_proximity
        assert loaded_env.altitude_meters == 2.0

    def test_infinite_distance_stored_as_null(self):
        db = MagicMock()
        store = MongoSnapshotStore(db)
        env = EnvironmentalFactors.neutral(Coordinates(1.0, 2.0))
        store.save("1.00,2.00", env, NOW)
        saved = db.environment_snapshots.update_one.call_args.args[1]["$set"]
        assert saved["snapshot"]["water_proximity"]["distance_to_water_meters"] is None

        db.environment_snapshots.find_one.return_value = saved
        loaded_env, _ = store.load("1.00,2.00")
        assert math.isinf(loaded_env.water_proximity.distance_to_water_meters)
