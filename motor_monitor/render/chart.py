"""Chart rendering for the rolling sample window."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Protocol, Sequence, Tuple

from matplotlib.backends.backend_agg import FigureCanvasAgg
from matplotlib.figure import Figure

from motor_monitor.telemetry import FIELDS, MotorData, MotorDataSeries, MotorSpecs

logger = logging.getLogger(__name__)

Point = Tuple[float, float]


class RenderError(RuntimeError):
    """Raised when the chart could not be redrawn."""


class BackendUnavailableError(RenderError):
    """Raised when the plotting backend fails to produce output."""


@dataclass(frozen=True)
class SeriesStyle:
    title: str
    y_label: str
    color: str


SERIES_STYLES: Dict[str, SeriesStyle] = {
    "current_power": SeriesStyle("Current Power", "Power [kW]", "tab:red"),
    "current_torque": SeriesStyle("Current Torque", "Torque [N·m]", "tab:blue"),
    "current_speed": SeriesStyle("Current Speed", "Speed [rpm]", "tab:orange"),
    "current_heat": SeriesStyle("Current Heat", "Heat [°C]", "tab:green"),
    "current_cycles": SeriesStyle("Current Cycles", "Cycles [N·m·s]", "tab:purple"),
}


class ChartBackend(Protocol):
    """Draws one named series of ``(timestamp, value)`` points."""

    def draw(
        self,
        name: str,
        title: str,
        y_label: str,
        points: Sequence[Point],
        limit: Optional[float] = None,
    ) -> None:
        ...

    def close(self) -> None:
        ...


def _padded(low: float, high: float) -> Tuple[float, float]:
    if low == high:
        delta = max(1.0, abs(low) * 0.1 + 0.1)
        return low - delta, high + delta
    margin = (high - low) * 0.05
    return low - margin, high + margin


class MatplotlibChartBackend:
    """Writes one PNG per series into ``output_dir`` using the Agg canvas."""

    def __init__(
        self,
        output_dir: Path,
        size: Tuple[int, int] = (640, 480),
        dpi: int = 100,
    ) -> None:
        self.output_dir = Path(output_dir)
        self.size = size
        self.dpi = dpi
        self._figures: Dict[str, Tuple[Figure, object, object, object]] = {}

    def path_for(self, name: str) -> Path:
        return self.output_dir / f"{name}.png"

    def _figure(self, name: str, title: str, y_label: str, color: str):
        if name not in self._figures:
            width, height = self.size
            figure = Figure(figsize=(width / self.dpi, height / self.dpi), dpi=self.dpi)
            FigureCanvasAgg(figure)
            axis = figure.add_subplot(111)
            axis.set_title(title)
            axis.set_xlabel("Time [s]")
            axis.set_ylabel(y_label)
            axis.grid(True, linestyle="--", linewidth=0.3)
            line = axis.plot([], [], color=color, label=title)[0]
            limit_line = axis.axhline(0.0, color="tab:gray", linestyle="--", linewidth=1.0, visible=False)
            self._figures[name] = (figure, axis, line, limit_line)
        return self._figures[name]

    def draw(
        self,
        name: str,
        title: str,
        y_label: str,
        points: Sequence[Point],
        limit: Optional[float] = None,
    ) -> None:
        if not points:
            return
        style = SERIES_STYLES.get(name)
        color = style.color if style else "tab:red"
        figure, axis, line, limit_line = self._figure(name, title, y_label, color)

        timestamps = [p[0] for p in points]
        values = [p[1] for p in points]
        # Relative x axis keeps tick labels readable with epoch timestamps.
        origin = timestamps[0]
        line.set_data([t - origin for t in timestamps], values)

        x_min, x_max = 0.0, timestamps[-1] - origin
        if x_min == x_max:
            x_max = x_min + 1.0
        axis.set_xlim(x_min, x_max)

        y_values = list(values)
        if limit is not None:
            limit_line.set_ydata([limit, limit])
            limit_line.set_visible(True)
            y_values.append(limit)
        else:
            limit_line.set_visible(False)
        axis.set_ylim(*_padded(min(y_values), max(y_values)))

        self.output_dir.mkdir(parents=True, exist_ok=True)
        figure.savefig(self.path_for(name))

    def close(self) -> None:
        for figure, *_ in self._figures.values():
            figure.clear()
        self._figures.clear()


class ChartRenderer:
    """Owns the rolling window and redraws every series from it."""

    def __init__(
        self,
        backend: ChartBackend,
        window: int = 300,
        specs: Optional[MotorSpecs] = None,
    ) -> None:
        self.backend = backend
        self.specs = specs
        self._series = MotorDataSeries(max_points=window)

    def __len__(self) -> int:
        return len(self._series)

    @property
    def window(self) -> int:
        return self._series.max_points

    def samples(self) -> List[MotorData]:
        return list(self._series)

    def push(self, sample: MotorData) -> None:
        self._series.append(sample)

    def render(self) -> None:
        if not len(self._series):
            return
        limits = self.specs.limits() if self.specs else {}
        for name in FIELDS:
            style = SERIES_STYLES[name]
            try:
                self.backend.draw(
                    name,
                    style.title,
                    style.y_label,
                    self._series.points(name),
                    limit=limits.get(name),
                )
            except RenderError:
                raise
            except Exception as exc:
                raise BackendUnavailableError(f"Failed to draw '{name}': {exc}") from exc

    def close(self) -> None:
        self.backend.close()
