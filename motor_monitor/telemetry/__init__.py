"""Motor sample model, unit conversions and the rolling sample window."""

from .models import FIELDS, MotorData, MotorSpecs
from .series import MotorDataSeries
from .units import (
    CYCLE_MODELS,
    DEFAULT_CYCLE_MODEL,
    DEFAULT_POWER_SCALE,
    calculate_cycles,
    calculate_power,
    register_cycle_model,
)

__all__ = [
    "FIELDS",
    "MotorData",
    "MotorSpecs",
    "MotorDataSeries",
    "CYCLE_MODELS",
    "DEFAULT_CYCLE_MODEL",
    "DEFAULT_POWER_SCALE",
    "calculate_cycles",
    "calculate_power",
    "register_cycle_model",
]
