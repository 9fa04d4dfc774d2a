"""Sample acquisition from the motor controller."""

from .acquisition import (
    REQUIRED_CHANNELS,
    AcquisitionAdapter,
    AcquisitionError,
    AcquisitionTimeout,
    ChannelMapping,
    ChannelReadError,
    DisconnectedError,
)

__all__ = [
    "REQUIRED_CHANNELS",
    "AcquisitionAdapter",
    "AcquisitionError",
    "AcquisitionTimeout",
    "ChannelMapping",
    "ChannelReadError",
    "DisconnectedError",
]
