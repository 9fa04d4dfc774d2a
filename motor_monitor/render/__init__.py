"""Live chart output for recent motor samples."""

from .chart import (
    SERIES_STYLES,
    BackendUnavailableError,
    ChartBackend,
    ChartRenderer,
    MatplotlibChartBackend,
    RenderError,
)

__all__ = [
    "SERIES_STYLES",
    "BackendUnavailableError",
    "ChartBackend",
    "ChartRenderer",
    "MatplotlibChartBackend",
    "RenderError",
]
