"""Register transports for reading the motor controller over Modbus RTU."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Protocol

import serial
from pymodbus.client import ModbusSerialClient
from pymodbus.exceptions import ModbusException, ModbusIOException

logger = logging.getLogger(__name__)

REGISTER_TYPES = ("input", "holding")


class TransportError(RuntimeError):
    """Raised when the field bus cannot deliver a register read."""


class TransportTimeout(TransportError):
    """Raised when the controller did not answer within the read timeout."""


class RegisterTransport(Protocol):
    """Minimal interface for reading raw registers from the controller."""

    @property
    def is_connected(self) -> bool:
        ...

    def connect(self) -> None:
        ...

    def read_registers(self, address: int, count: int = 1) -> List[int]:
        ...

    def close(self) -> None:
        ...


@dataclass
class RtuSettings:
    port: str
    baudrate: int = 9600
    bytesize: int = 8
    parity: str = "N"
    stopbits: int = 1
    timeout: float = 0.5  # per-read timeout in seconds
    unit_id: int = 1
    register_type: str = "input"

    def __post_init__(self) -> None:
        if self.register_type not in REGISTER_TYPES:
            raise ValueError(f"register_type must be one of {REGISTER_TYPES}, got {self.register_type!r}")
        if self.timeout <= 0:
            raise ValueError("timeout must be positive")


class ModbusRTUTransport:
    """Modbus RTU transport on a serial line, backed by pymodbus."""

    def __init__(self, settings: RtuSettings) -> None:
        self.settings = settings
        self._client: Optional[ModbusSerialClient] = None

    def __enter__(self):
        self.connect()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    @property
    def is_connected(self) -> bool:
        return self._client is not None and bool(self._client.is_socket_open())

    def connect(self) -> None:
        """Open the serial port if it is not already open."""
        if self.is_connected:
            return
        if self._client is None:
            self._client = ModbusSerialClient(
                port=self.settings.port,
                baudrate=self.settings.baudrate,
                bytesize=self.settings.bytesize,
                parity=self.settings.parity,
                stopbits=self.settings.stopbits,
                timeout=self.settings.timeout,
                retries=0,
            )
        try:
            opened = self._client.connect()
        except (serial.SerialException, OSError) as exc:
            raise TransportError(f"Failed to open serial port {self.settings.port}: {exc}") from exc
        if not opened:
            raise TransportError(f"Failed to open serial port {self.settings.port}")
        logger.info(
            "Connected to %s @ %d baud (unit %d)",
            self.settings.port,
            self.settings.baudrate,
            self.settings.unit_id,
        )

    def close(self) -> None:
        if self._client is not None:
            try:
                self._client.close()
            finally:
                self._client = None

    def read_registers(self, address: int, count: int = 1) -> List[int]:
        if not self.is_connected:
            raise TransportError("Transport is not connected")
        if self.settings.register_type == "input":
            request = self._client.read_input_registers
        else:
            request = self._client.read_holding_registers
        try:
            result = request(address, count=count, slave=self.settings.unit_id)
        except ModbusIOException as exc:
            raise TransportTimeout(f"No response reading register {address}: {exc}") from exc
        except (ModbusException, serial.SerialException, OSError) as exc:
            raise TransportError(f"Modbus read of register {address} failed: {exc}") from exc
        if isinstance(result, ModbusIOException):
            raise TransportTimeout(f"No response reading register {address}")
        if result.isError():
            raise TransportError(f"Controller rejected read of register {address}: {result}")
        registers = list(getattr(result, "registers", None) or [])
        if len(registers) < count:
            raise TransportError(
                f"Short response reading register {address}: expected {count}, got {len(registers)}"
            )
        return registers
