"""Value types for the motor specification and for one timestamped reading."""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass, fields
from typing import Any, Dict, List, Mapping, Tuple

FIELDS: Tuple[str, ...] = (
    "current_power",
    "current_torque",
    "current_speed",
    "current_heat",
    "current_cycles",
)


@dataclass(frozen=True)
class MotorSpecs:
    """Static nameplate data for the monitored motor."""

    rated_power: float  # kW
    rated_torque: float  # N·m
    rated_speed: float  # rpm
    peak_torque: float  # N·m
    max_speed: float  # rpm

    def __post_init__(self) -> None:
        for item in fields(self):
            value = getattr(self, item.name)
            if not isinstance(value, (int, float)) or not math.isfinite(value) or value <= 0:
                raise ValueError(f"{item.name} must be a positive finite number, got {value!r}")
        if self.peak_torque < self.rated_torque:
            raise ValueError("peak_torque must be greater than or equal to rated_torque")
        if self.max_speed < self.rated_speed:
            raise ValueError("max_speed must be greater than or equal to rated_speed")

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "MotorSpecs":
        """Build from the ``motor`` configuration section."""
        try:
            return cls(
                rated_power=float(data["rated_power_kw"]),
                rated_torque=float(data["rated_torque_nm"]),
                rated_speed=float(data["rated_speed_rpm"]),
                peak_torque=float(data["peak_torque_nm"]),
                max_speed=float(data["max_speed_rpm"]),
            )
        except KeyError as exc:
            raise ValueError(f"Missing motor specification key {exc.args[0]!r}") from exc

    def limits(self) -> Dict[str, float]:
        """Absolute envelope per sample field; fields without a limit are omitted."""
        return {
            "current_power": self.rated_power,
            "current_torque": self.peak_torque,
            "current_speed": self.max_speed,
        }

    def limit_violations(self, sample: "MotorData") -> List[str]:
        return [
            name
            for name, limit in self.limits().items()
            if abs(getattr(sample, name)) > limit
        ]


@dataclass(frozen=True)
class MotorData:
    """One acquired sample. Immutable once built."""

    timestamp: float
    current_power: float
    current_torque: float
    current_speed: float
    current_heat: float
    current_cycles: float

    def __post_init__(self) -> None:
        for item in fields(self):
            value = getattr(self, item.name)
            if not math.isfinite(value):
                raise ValueError(f"{item.name} must be finite, got {value!r}")

    def as_row(self) -> Dict[str, float]:
        return asdict(self)

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "MotorData":
        return cls(
            timestamp=float(row["timestamp"]),
            **{name: float(row[name]) for name in FIELDS},
        )
