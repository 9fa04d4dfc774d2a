"""Turns raw controller registers into timestamped motor samples."""

from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Mapping, Optional, Sequence

from motor_monitor.instrumentation import RegisterTransport, TransportError, TransportTimeout
from motor_monitor.telemetry import (
    DEFAULT_CYCLE_MODEL,
    DEFAULT_POWER_SCALE,
    CYCLE_MODELS,
    MotorData,
    calculate_cycles,
    calculate_power,
)

logger = logging.getLogger(__name__)

REQUIRED_CHANNELS = ("voltage", "current", "heat", "speed")
MAX_REGISTER_COUNT = 2


class AcquisitionError(RuntimeError):
    """Raised when a sample cannot be produced for the current cycle."""


class DisconnectedError(AcquisitionError):
    """Raised when the transport session is unusable before any channel is read."""


class ChannelReadError(AcquisitionError):
    """Raised when one logical channel could not be read."""

    def __init__(self, channel: str, cause: BaseException) -> None:
        super().__init__(f"Failed to read channel '{channel}': {cause}")
        self.channel = channel
        self.cause = cause


class AcquisitionTimeout(AcquisitionError):
    """Raised when the controller did not answer a channel read in time."""

    def __init__(self, channel: str, cause: Optional[BaseException] = None) -> None:
        super().__init__(f"Timed out reading channel '{channel}'")
        self.channel = channel
        self.cause = cause


@dataclass(frozen=True)
class ChannelMapping:
    """Register location and linear scaling for one logical channel.

    A channel spans ``count`` consecutive 16-bit registers, high word first.
    """

    address: int
    scale: float = 1.0
    offset: float = 0.0
    signed: bool = False
    count: int = 1

    def __post_init__(self) -> None:
        if self.address < 0:
            raise ValueError(f"Register address must be non-negative, got {self.address}")
        if not math.isfinite(self.scale) or self.scale == 0:
            raise ValueError(f"Channel scale must be finite and non-zero, got {self.scale!r}")
        if not math.isfinite(self.offset):
            raise ValueError(f"Channel offset must be finite, got {self.offset!r}")
        if not 1 <= self.count <= MAX_REGISTER_COUNT:
            raise ValueError(f"Channel register count must be 1..{MAX_REGISTER_COUNT}, got {self.count}")

    @property
    def bits(self) -> int:
        return 16 * self.count

    def combine(self, words: Sequence[int]) -> int:
        raw = 0
        for word in words[: self.count]:
            raw = (raw << 16) | (word & 0xFFFF)
        return raw

    def split(self, raw: int) -> List[int]:
        return [(raw >> (16 * shift)) & 0xFFFF for shift in reversed(range(self.count))]

    def decode(self, raw: int) -> float:
        if self.signed and raw >= 1 << (self.bits - 1):
            raw -= 1 << self.bits
        return raw * self.scale + self.offset

    def encode(self, value: float) -> int:
        """Inverse of :meth:`decode`, clamped to the channel width."""
        raw = round((value - self.offset) / self.scale)
        full = 1 << self.bits
        if self.signed:
            raw = max(-(full >> 1), min((full >> 1) - 1, raw))
            return raw & (full - 1)
        return max(0, min(full - 1, raw))

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> "ChannelMapping":
        return cls(
            address=int(data["address"]),
            scale=float(data.get("scale", 1.0)),
            offset=float(data.get("offset", 0.0)),
            signed=bool(data.get("signed", False)),
            count=int(data.get("count", 1)),
        )


class AcquisitionAdapter:
    """Reads the configured channels from one transport session per sample."""

    def __init__(
        self,
        transport: RegisterTransport,
        channels: Mapping[str, ChannelMapping],
        cycle_period: float,
        power_scale: float = DEFAULT_POWER_SCALE,
        cycle_model: str = DEFAULT_CYCLE_MODEL,
        nominal_torque: Optional[float] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        missing = [name for name in REQUIRED_CHANNELS if name not in channels]
        if missing:
            raise ValueError(f"Channel table is missing required channels: {', '.join(missing)}")
        if "torque" not in channels and nominal_torque is None:
            raise ValueError("Either a 'torque' channel or a nominal torque must be configured")
        if nominal_torque is not None and (
            isinstance(nominal_torque, bool)
            or not isinstance(nominal_torque, (int, float))
            or not math.isfinite(nominal_torque)
        ):
            raise ValueError(f"nominal_torque must be a finite number, got {nominal_torque!r}")
        if not cycle_period > 0:
            raise ValueError(f"cycle_period must be positive, got {cycle_period!r}")
        if cycle_model not in CYCLE_MODELS:
            raise ValueError(f"Unknown cycle model '{cycle_model}'")
        self.transport = transport
        self.channels: Dict[str, ChannelMapping] = dict(channels)
        self.cycle_period = cycle_period
        self.power_scale = power_scale
        self.cycle_model = cycle_model
        self.nominal_torque = nominal_torque
        self._clock = clock
        self._last_timestamp: Optional[float] = None

    # ------------------------------------------------------------------
    def connect(self) -> None:
        self.transport.connect()

    def reconnect(self) -> bool:
        """Drop and reopen the transport session. Returns ``True`` on success."""
        self.transport.close()
        try:
            self.transport.connect()
        except TransportError as exc:
            logger.warning("Reconnect failed: %s", exc)
            return False
        logger.info("Transport reconnected")
        return True

    def close(self) -> None:
        self.transport.close()

    # ------------------------------------------------------------------
    def read_channel(self, channel: str) -> float:
        mapping = self.channels[channel]
        try:
            raw = self.transport.read_registers(mapping.address, mapping.count)
        except TransportTimeout as exc:
            raise AcquisitionTimeout(channel, exc) from exc
        except TransportError as exc:
            raise ChannelReadError(channel, exc) from exc
        if len(raw) < mapping.count:
            raise ChannelReadError(
                channel, TransportError(f"short response: expected {mapping.count}, got {len(raw)}")
            )
        return mapping.decode(mapping.combine(raw))

    def read_raw(self) -> Dict[str, float]:
        """Read every configured channel, failing on the first bad one."""
        if not self.transport.is_connected:
            raise DisconnectedError("Transport session is not connected")
        return {channel: self.read_channel(channel) for channel in self.channels}

    def read_sample(self) -> MotorData:
        readings = self.read_raw()
        torque = readings.get("torque", self.nominal_torque)
        try:
            power = calculate_power(readings["voltage"], readings["current"], self.power_scale)
            cycles = calculate_cycles(torque, self.cycle_period, self.cycle_model)
            timestamp = self._clock()
            if self._last_timestamp is not None and timestamp < self._last_timestamp:
                timestamp = self._last_timestamp
            sample = MotorData(
                timestamp=timestamp,
                current_power=power,
                current_torque=torque,
                current_speed=readings["speed"],
                current_heat=readings["heat"],
                current_cycles=cycles,
            )
        except ValueError as exc:
            raise AcquisitionError(f"Readings do not form a valid sample: {exc}") from exc
        self._last_timestamp = sample.timestamp
        return sample
