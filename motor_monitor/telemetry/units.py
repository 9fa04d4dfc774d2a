"""Conversions from raw physical readings to derived motor metrics."""

from __future__ import annotations

import math
from typing import Callable, Dict

CycleModel = Callable[[float, float], float]

DEFAULT_POWER_SCALE = 0.001  # W -> kW
DEFAULT_CYCLE_MODEL = "proportional"


def calculate_power(voltage: float, current: float, scale: float = DEFAULT_POWER_SCALE) -> float:
    """Return ``voltage * current`` in the target unit (kW by default).

    Negative inputs are allowed and the result is not clamped.
    """
    return voltage * current * scale


def _proportional(torque: float, period: float) -> float:
    return torque * period


def _rate(torque: float, period: float) -> float:
    return torque / period


CYCLE_MODELS: Dict[str, CycleModel] = {
    "proportional": _proportional,
    "rate": _rate,
}


def register_cycle_model(name: str, model: CycleModel) -> None:
    """Make ``model`` selectable through ``conversion.cycle_model``."""
    if not name:
        raise ValueError("Cycle model name must not be empty")
    CYCLE_MODELS[name] = model


def calculate_cycles(torque: float, period: float, model: str = DEFAULT_CYCLE_MODEL) -> float:
    """Estimate the cycle count for one interval of length ``period`` seconds.

    Raises ``ValueError`` for a non-positive period, an unknown model, or a
    model that produces a non-finite value.
    """
    if not math.isfinite(period) or period <= 0:
        raise ValueError(f"period must be a positive finite number, got {period!r}")
    try:
        func = CYCLE_MODELS[model]
    except KeyError as exc:
        raise ValueError(f"Unknown cycle model '{model}'") from exc
    cycles = func(torque, period)
    if not math.isfinite(cycles):
        raise ValueError(f"Cycle model '{model}' produced a non-finite value for torque={torque!r}")
    return cycles
