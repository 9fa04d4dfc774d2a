from pathlib import Path

import pytest
from sqlalchemy import create_engine, text

from motor_monitor.storage import MotorDataStore, SchemaError, StoreError, WriteFailedError, build_sqlite_url
from motor_monitor.telemetry import MotorData


def make_sample(timestamp: float, power: float = 2.3) -> MotorData:
    return MotorData(
        timestamp=timestamp,
        current_power=power,
        current_torque=10.1,
        current_speed=1500.0,
        current_heat=45.0,
        current_cycles=10.1,
    )


def test_insert_and_recent_round_trip(tmp_path: Path):
    sample = MotorData(
        timestamp=1_700_000_000.123456,
        current_power=2.3456789012345,
        current_torque=10.1,
        current_speed=1487.25,
        current_heat=45.5,
        current_cycles=10.1,
    )
    with MotorDataStore(tmp_path / "motor.db") as store:
        store.insert(sample)
        assert store.recent(1) == [sample]


def test_setup_is_idempotent(tmp_path: Path):
    db_path = tmp_path / "nested" / "motor.db"
    store = MotorDataStore(db_path)
    store.setup()
    store.insert(make_sample(1.0))
    store.setup()
    assert store.count() == 1
    store.close()

    engine = create_engine(build_sqlite_url(db_path))
    with engine.connect() as conn:
        tables = conn.execute(text("SELECT name FROM sqlite_master WHERE type = 'table'")).scalars().all()
        indexes = conn.execute(text("SELECT name FROM sqlite_master WHERE type = 'index'")).scalars().all()
    engine.dispose()
    assert tables.count("motor_data") == 1
    assert indexes.count("ix_motor_data_timestamp") == 1


def test_duplicate_timestamps_keep_insertion_order(tmp_path: Path):
    with MotorDataStore(tmp_path / "motor.db") as store:
        first = store.insert(make_sample(5.0, power=1.0))
        second = store.insert(make_sample(5.0, power=2.0))
        third = store.insert(make_sample(6.0, power=3.0))
        assert first < second < third
        assert store.count() == 3
        assert [s.current_power for s in store.recent(10)] == [1.0, 2.0, 3.0]
        assert [s.current_power for s in store.recent(2)] == [2.0, 3.0]
        assert store.recent(0) == []


def test_memory_database_shares_one_connection():
    with MotorDataStore(":memory:") as store:
        store.insert(make_sample(1.0))
        assert store.count() == 1


def test_insert_without_schema_reports_write_failure(tmp_path: Path):
    store = MotorDataStore(tmp_path / "motor.db")
    with pytest.raises(WriteFailedError):
        store.insert(make_sample(1.0))
    with pytest.raises(StoreError):
        store.recent(5)
    store.close()


def test_setup_failure_reports_schema_error(tmp_path: Path):
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("")
    store = MotorDataStore(blocker / "motor.db")
    with pytest.raises(SchemaError):
        store.setup()
    store.close()


def test_sqlite_url():
    assert build_sqlite_url(":memory:") == "sqlite://"
    assert build_sqlite_url(Path("/tmp/motor.db")) == "sqlite:////tmp/motor.db"
