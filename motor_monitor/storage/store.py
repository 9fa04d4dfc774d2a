"""SQLite persistence for motor samples."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional, Union

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import StaticPool

from motor_monitor.telemetry import FIELDS, MotorData

logger = logging.getLogger(__name__)

MEMORY_DATABASE = ":memory:"

_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS motor_data (
        id INTEGER PRIMARY KEY,
        timestamp REAL NOT NULL,
        current_power REAL NOT NULL,
        current_torque REAL NOT NULL,
        current_speed REAL NOT NULL,
        current_heat REAL NOT NULL,
        current_cycles REAL NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS ix_motor_data_timestamp ON motor_data (timestamp)",
)

_COLUMNS = ("timestamp",) + FIELDS

_INSERT = text(
    f"INSERT INTO motor_data ({', '.join(_COLUMNS)}) "
    f"VALUES ({', '.join(':' + name for name in _COLUMNS)})"
)

_RECENT = text(
    f"SELECT {', '.join(_COLUMNS)} FROM ("
    f"SELECT id, {', '.join(_COLUMNS)} FROM motor_data ORDER BY id DESC LIMIT :limit"
    ") ORDER BY id ASC"
)


class StoreError(RuntimeError):
    """Raised when the sample store cannot complete an operation."""


class WriteFailedError(StoreError):
    """Raised when a sample could not be appended."""


class SchemaError(StoreError):
    """Raised when the backing schema cannot be created or verified."""


def build_sqlite_url(database: Union[str, Path]) -> str:
    if str(database) == MEMORY_DATABASE:
        return "sqlite://"
    return f"sqlite:///{Path(database)}"


class MotorDataStore:
    """Append-only sample table with a recent-window read."""

    def __init__(self, database: Union[str, Path]) -> None:
        self.database = database
        self._engine: Optional[Engine] = None

    def __enter__(self):
        self.setup()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def _get_engine(self) -> Engine:
        if self._engine is None:
            if str(self.database) == MEMORY_DATABASE:
                # One shared connection, otherwise every checkout sees an empty database.
                self._engine = create_engine(
                    build_sqlite_url(self.database),
                    connect_args={"check_same_thread": False},
                    poolclass=StaticPool,
                )
            else:
                Path(self.database).parent.mkdir(parents=True, exist_ok=True)
                self._engine = create_engine(
                    build_sqlite_url(self.database),
                    connect_args={"check_same_thread": False},
                )
            logger.info("Opened sample store %s", self.database)
        return self._engine

    def setup(self) -> None:
        """Create the sample table and its timestamp index if they are missing."""
        try:
            engine = self._get_engine()
            with engine.begin() as conn:
                for statement in _SCHEMA:
                    conn.execute(text(statement))
        except (SQLAlchemyError, OSError) as exc:
            raise SchemaError(f"Failed to create schema in {self.database}: {exc}") from exc

    def insert(self, sample: MotorData) -> int:
        """Append one row and return its row id."""
        try:
            with self._get_engine().begin() as conn:
                result = conn.execute(_INSERT, sample.as_row())
                return int(result.lastrowid)
        except (SQLAlchemyError, OSError) as exc:
            raise WriteFailedError(f"Failed to insert sample at {sample.timestamp}: {exc}") from exc

    def recent(self, limit: int = 100) -> List[MotorData]:
        """Return the last ``limit`` rows, oldest first."""
        if limit < 1:
            return []
        try:
            with self._get_engine().connect() as conn:
                rows = conn.execute(_RECENT, {"limit": limit}).mappings().all()
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to read recent samples: {exc}") from exc
        return [MotorData.from_row(row) for row in rows]

    def count(self) -> int:
        try:
            with self._get_engine().connect() as conn:
                return int(conn.execute(text("SELECT COUNT(*) FROM motor_data")).scalar_one())
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to count samples: {exc}") from exc

    def close(self) -> None:
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None
            logger.info("Closed sample store %s", self.database)
