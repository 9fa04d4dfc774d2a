"""Core package for polling, recording and charting motor performance over Modbus RTU."""

__all__ = ["telemetry", "instrumentation", "sensors", "storage", "render", "orchestration", "io"]
__version__ = "0.1.0"
