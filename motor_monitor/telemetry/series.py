"""In-memory rolling window of motor samples for plotting."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import Deque, Iterator, List, Tuple

from motor_monitor.telemetry.models import FIELDS, MotorData


@dataclass
class MotorDataSeries:
    """Maintains a FIFO window of the most recent samples."""

    max_points: int = 300
    _records: Deque[MotorData] = field(default_factory=deque)

    def __post_init__(self) -> None:
        if self.max_points < 1:
            raise ValueError(f"max_points must be at least 1, got {self.max_points}")

    def append(self, record: MotorData) -> None:
        self._records.append(record)
        while len(self._records) > self.max_points:
            self._records.popleft()

    def __iter__(self) -> Iterator[MotorData]:
        return iter(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def points(self, name: str) -> List[Tuple[float, float]]:
        """Ordered ``(timestamp, value)`` pairs for one sample field."""
        if name not in FIELDS:
            raise KeyError(f"Unknown series '{name}'")
        return [(rec.timestamp, getattr(rec, name)) for rec in self._records]

