"""Simulated register transport for dry runs without a controller attached."""

from __future__ import annotations

import math
from typing import Callable, Dict, List, Mapping, Optional, Set, Union

from motor_monitor.instrumentation.modbus import TransportError, TransportTimeout

RegisterSource = Union[int, Callable[[int], int]]


def motor_waveforms() -> Dict[str, Callable[[int], float]]:
    """Plausible engineering values per channel, as a function of the read count."""
    return {
        "voltage": lambda n: 230.0 + 5.0 * math.sin(n / 6.0),
        "current": lambda n: 10.0 + 2.0 * math.sin(n / 3.0 + 0.5),
        "heat": lambda n: 45.0 + 3.0 * math.sin(n / 30.0),
        "speed": lambda n: 1450.0 + 50.0 * math.sin(n / 9.0),
        "torque": lambda n: 10.1 + 1.5 * math.sin(n / 4.0),
    }


class SimulatedTransport:
    """In-process register map that behaves like a connected controller.

    Each address is served either a fixed value or a callable receiving how many
    times that address has been read. Failures can be injected per address.
    """

    def __init__(self, registers: Mapping[int, RegisterSource], connected: bool = True) -> None:
        self.registers: Dict[int, RegisterSource] = dict(registers)
        self.failing: Set[int] = set()
        self.timing_out: Set[int] = set()
        self.refuse_connect = False
        self._read_counts: Dict[int, int] = {}
        self._connected = connected

    @property
    def is_connected(self) -> bool:
        return self._connected

    def connect(self) -> None:
        if self.refuse_connect:
            raise TransportError("Simulated controller refused the connection")
        self._connected = True

    def disconnect(self) -> None:
        self._connected = False

    def close(self) -> None:
        self._connected = False

    def read_registers(self, address: int, count: int = 1) -> List[int]:
        if not self._connected:
            raise TransportError("Transport is not connected")
        values = []
        for offset in range(count):
            current = address + offset
            if current in self.timing_out:
                raise TransportTimeout(f"No response reading register {current}")
            if current in self.failing:
                raise TransportError(f"Simulated failure reading register {current}")
            values.append(self._value(current))
        return values

    def _value(self, address: int) -> int:
        source: Optional[RegisterSource] = self.registers.get(address)
        if source is None:
            raise TransportError(f"Illegal data address {address}")
        n = self._read_counts.get(address, 0)
        self._read_counts[address] = n + 1
        value = source(n) if callable(source) else source
        return int(value) & 0xFFFF
