from pathlib import Path

import pytest

from motor_monitor.render import (
    SERIES_STYLES,
    BackendUnavailableError,
    ChartRenderer,
    MatplotlibChartBackend,
)
from motor_monitor.telemetry import FIELDS, MotorData, MotorSpecs


def make_sample(timestamp: float) -> MotorData:
    return MotorData(
        timestamp=timestamp,
        current_power=2.0 + timestamp / 100.0,
        current_torque=10.1,
        current_speed=1450.0 + timestamp,
        current_heat=45.0,
        current_cycles=10.1,
    )


class DummyBackend:
    def __init__(self, fail: bool = False):
        self.calls = []
        self.fail = fail
        self.closed = False

    def draw(self, name, title, y_label, points, limit=None):
        if self.fail:
            raise RuntimeError("display went away")
        self.calls.append((name, title, y_label, list(points), limit))

    def close(self) -> None:
        self.closed = True


def test_window_keeps_last_samples_fifo():
    renderer = ChartRenderer(DummyBackend(), window=5)
    for t in range(1, 9):
        renderer.push(make_sample(float(t)))
    assert len(renderer) == 5
    assert renderer.window == 5
    assert [s.timestamp for s in renderer.samples()] == [4.0, 5.0, 6.0, 7.0, 8.0]


def test_render_draws_every_series_in_order():
    backend = DummyBackend()
    specs = MotorSpecs(2.4, 10.1, 1450.0, 25.9, 4800.0)
    renderer = ChartRenderer(backend, window=10, specs=specs)
    renderer.push(make_sample(1.0))
    renderer.push(make_sample(2.0))
    renderer.render()

    assert [call[0] for call in backend.calls] == list(FIELDS)
    power = backend.calls[0]
    assert power[1] == SERIES_STYLES["current_power"].title
    assert [p[0] for p in power[3]] == [1.0, 2.0]
    assert [p[1] for p in power[3]] == pytest.approx([2.01, 2.02])
    assert power[4] == 2.4
    heat = backend.calls[3]
    assert heat[4] is None


def test_render_with_empty_window_is_noop():
    backend = DummyBackend()
    ChartRenderer(backend).render()
    assert backend.calls == []


def test_render_failure_keeps_samples():
    renderer = ChartRenderer(DummyBackend(fail=True), window=3)
    renderer.push(make_sample(1.0))
    with pytest.raises(BackendUnavailableError):
        renderer.render()
    assert len(renderer) == 1


def test_close_releases_backend():
    backend = DummyBackend()
    ChartRenderer(backend).close()
    assert backend.closed


def test_invalid_window():
    with pytest.raises(ValueError):
        ChartRenderer(DummyBackend(), window=0)


def test_matplotlib_backend_writes_png_per_series(tmp_path: Path):
    backend = MatplotlibChartBackend(tmp_path / "charts", size=(320, 240), dpi=80)
    renderer = ChartRenderer(backend, window=50, specs=MotorSpecs(2.4, 10.1, 1450.0, 25.9, 4800.0))
    renderer.push(make_sample(1000.0))
    renderer.render()  # single point, flat axes
    for t in range(1001, 1010):
        renderer.push(make_sample(float(t)))
    renderer.render()

    for name in FIELDS:
        path = backend.path_for(name)
        assert path.exists()
        assert path.read_bytes()[:8] == b"\x89PNG\r\n\x1a\n"

    _, _, _, limit_line = backend._figures["current_speed"]
    assert limit_line.get_visible()
    assert limit_line.get_linestyle() == "--"
    assert list(limit_line.get_ydata()) == [4800.0, 4800.0]
    renderer.close()
