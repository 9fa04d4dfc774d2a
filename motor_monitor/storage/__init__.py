"""Persistence of motor samples."""

from .store import MotorDataStore, SchemaError, StoreError, WriteFailedError, build_sqlite_url

__all__ = [
    "MotorDataStore",
    "SchemaError",
    "StoreError",
    "WriteFailedError",
    "build_sqlite_url",
]
