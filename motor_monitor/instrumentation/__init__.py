"""Field-bus transports (Modbus RTU, simulated controller)."""

from .modbus import (
    ModbusRTUTransport,
    RegisterTransport,
    RtuSettings,
    TransportError,
    TransportTimeout,
)
from .simulated import SimulatedTransport, motor_waveforms

__all__ = [
    "ModbusRTUTransport",
    "RegisterTransport",
    "RtuSettings",
    "SimulatedTransport",
    "TransportError",
    "TransportTimeout",
    "motor_waveforms",
]
