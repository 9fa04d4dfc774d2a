"""Typed monitoring configuration and component factories."""

from __future__ import annotations

import math
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Optional, Sequence

from motor_monitor.instrumentation import (
    ModbusRTUTransport,
    RegisterTransport,
    RtuSettings,
    SimulatedTransport,
    motor_waveforms,
)
from motor_monitor.io.settings import PathLike, load_settings, resolve_path
from motor_monitor.orchestration import CycleReport, LoopConfig, MonitoringLoop
from motor_monitor.render import ChartRenderer, MatplotlibChartBackend
from motor_monitor.sensors import REQUIRED_CHANNELS, AcquisitionAdapter, ChannelMapping
from motor_monitor.storage import MotorDataStore
from motor_monitor.telemetry import CYCLE_MODELS, DEFAULT_CYCLE_MODEL, DEFAULT_POWER_SCALE, MotorSpecs


class ConfigError(RuntimeError):
    """Raised when the monitoring configuration is invalid."""


@dataclass
class ConversionConfig:
    power_scale: float = DEFAULT_POWER_SCALE
    cycle_model: str = DEFAULT_CYCLE_MODEL
    nominal_torque: Optional[float] = None


@dataclass
class ChartConfig:
    output_dir: Path = Path("output/charts")
    window: int = 300
    width_px: int = 640
    height_px: int = 480
    dpi: int = 100


@dataclass
class MonitorConfig:
    motor: MotorSpecs
    transport: RtuSettings
    channels: Dict[str, ChannelMapping]
    conversion: ConversionConfig = field(default_factory=ConversionConfig)
    database: Path = Path("output/motor_data.db")
    chart: ChartConfig = field(default_factory=ChartConfig)
    loop: LoopConfig = field(default_factory=LoopConfig)

    @property
    def torque_source(self) -> Optional[float]:
        """Fixed torque used when no torque channel is wired."""
        if "torque" in self.channels:
            return None
        if self.conversion.nominal_torque is not None:
            return self.conversion.nominal_torque
        return self.motor.rated_torque


def _section(data: Mapping[str, Any], name: str, required: bool = True) -> Mapping[str, Any]:
    value = data.get(name)
    if value is None:
        if required:
            raise ConfigError(f"Missing required section '{name}'")
        return {}
    if not isinstance(value, Mapping):
        raise ConfigError(f"Section '{name}' must be a mapping")
    return value


def _require_keys(obj: Mapping[str, Any], keys: Sequence[str], context: str) -> None:
    for key in keys:
        if key not in obj:
            raise ConfigError(f"Missing required key '{key}' in {context}")


def _known_kwargs(cls, data: Mapping[str, Any], context: str) -> Dict[str, Any]:
    names = {item.name for item in fields(cls) if item.init}
    unknown = sorted(set(data) - names)
    if unknown:
        raise ConfigError(f"Unknown key(s) in {context}: {', '.join(unknown)}")
    return dict(data)


def _load_motor(data: Mapping[str, Any]) -> MotorSpecs:
    try:
        return MotorSpecs.from_dict(_section(data, "motor"))
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid motor section: {exc}") from exc


def _load_transport(data: Mapping[str, Any]) -> RtuSettings:
    section = _section(data, "transport")
    _require_keys(section, ["port"], "transport")
    kwargs = dict(section)
    if "timeout_s" in kwargs:
        kwargs["timeout"] = kwargs.pop("timeout_s")
    try:
        return RtuSettings(**_known_kwargs(RtuSettings, kwargs, "transport"))
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid transport section: {exc}") from exc


def _load_channels(data: Mapping[str, Any]) -> Dict[str, ChannelMapping]:
    section = _section(data, "channels")
    channels: Dict[str, ChannelMapping] = {}
    for name, payload in section.items():
        if isinstance(payload, int):
            payload = {"address": payload}
        if not isinstance(payload, Mapping):
            raise ConfigError(f"Invalid channel definition for '{name}'")
        _require_keys(payload, ["address"], f"channels.{name}")
        try:
            channels[str(name)] = ChannelMapping.from_dict(payload)
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"Invalid channel '{name}': {exc}") from exc
    missing = [name for name in REQUIRED_CHANNELS if name not in channels]
    if missing:
        raise ConfigError(f"Missing required channel(s): {', '.join(missing)}")
    return channels


def _finite_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def _load_conversion(data: Mapping[str, Any]) -> ConversionConfig:
    section = _section(data, "conversion", required=False)
    try:
        conversion = ConversionConfig(**_known_kwargs(ConversionConfig, section, "conversion"))
    except TypeError as exc:
        raise ConfigError(f"Invalid conversion section: {exc}") from exc
    if conversion.cycle_model not in CYCLE_MODELS:
        raise ConfigError(f"Unsupported cycle model '{conversion.cycle_model}'")
    if not _finite_number(conversion.power_scale):
        raise ConfigError("conversion.power_scale must be a finite number")
    torque = conversion.nominal_torque
    if torque is not None and (not _finite_number(torque) or torque <= 0):
        raise ConfigError(f"conversion.nominal_torque must be a positive finite number, got {torque!r}")
    return conversion


def _load_chart(data: Mapping[str, Any]) -> ChartConfig:
    section = _section(data, "chart", required=False)
    try:
        chart = ChartConfig(**_known_kwargs(ChartConfig, section, "chart"))
        for name in ("window", "width_px", "height_px", "dpi"):
            setattr(chart, name, int(getattr(chart, name)))
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid chart section: {exc}") from exc
    if chart.window < 1:
        raise ConfigError("chart.window must be at least 1")
    if min(chart.width_px, chart.height_px, chart.dpi) < 1:
        raise ConfigError("chart.width_px, chart.height_px and chart.dpi must be positive")
    chart.output_dir = resolve_path(chart.output_dir)
    return chart


def _load_loop(data: Mapping[str, Any]) -> LoopConfig:
    section = _section(data, "loop", required=False)
    try:
        return LoopConfig(**_known_kwargs(LoopConfig, section, "loop"))
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid loop section: {exc}") from exc


def parse_config(data: Mapping[str, Any]) -> MonitorConfig:
    storage = _section(data, "storage", required=False)
    database = storage.get("database", "output/motor_data.db")
    return MonitorConfig(
        motor=_load_motor(data),
        transport=_load_transport(data),
        channels=_load_channels(data),
        conversion=_load_conversion(data),
        database=database if str(database) == ":memory:" else resolve_path(database),
        chart=_load_chart(data),
        loop=_load_loop(data),
    )


def load_config(path: Optional[PathLike] = None) -> MonitorConfig:
    """Load and validate ``config/monitor.yml`` (or ``path``)."""
    try:
        data = load_settings(path)
    except FileNotFoundError as exc:
        raise ConfigError(str(exc)) from exc
    except OSError as exc:
        raise ConfigError(f"Failed to read settings: {exc}") from exc
    except ValueError as exc:
        raise ConfigError(str(exc)) from exc
    return parse_config(data)


# ----------------------------------------------------------------------
# Factories

def build_simulated_transport(config: MonitorConfig) -> SimulatedTransport:
    """Simulated controller serving plausible values at the configured addresses."""
    waveforms = motor_waveforms()
    registers = {}
    for name, mapping in config.channels.items():
        wave = waveforms.get(name, lambda n: 0.0)
        for position in range(mapping.count):
            registers[mapping.address + position] = (
                lambda n, wave=wave, mapping=mapping, position=position: mapping.split(
                    mapping.encode(wave(n))
                )[position]
            )
    return SimulatedTransport(registers)


def build_transport(config: MonitorConfig, simulate: bool = False) -> RegisterTransport:
    if simulate:
        return build_simulated_transport(config)
    return ModbusRTUTransport(config.transport)


def build_adapter(config: MonitorConfig, transport: RegisterTransport) -> AcquisitionAdapter:
    return AcquisitionAdapter(
        transport,
        config.channels,
        cycle_period=config.loop.period_s,
        power_scale=config.conversion.power_scale,
        cycle_model=config.conversion.cycle_model,
        nominal_torque=config.torque_source,
    )


def build_store(config: MonitorConfig) -> MotorDataStore:
    return MotorDataStore(config.database)


def build_renderer(config: MonitorConfig) -> ChartRenderer:
    chart = config.chart
    backend = MatplotlibChartBackend(
        chart.output_dir,
        size=(chart.width_px, chart.height_px),
        dpi=chart.dpi,
    )
    return ChartRenderer(backend, window=chart.window, specs=config.motor)


def build_loop(
    config: MonitorConfig,
    simulate: bool = False,
    observer: Optional[Callable[[CycleReport], None]] = None,
) -> MonitoringLoop:
    transport = build_transport(config, simulate=simulate)
    return MonitoringLoop(
        adapter=build_adapter(config, transport),
        store=build_store(config),
        renderer=build_renderer(config),
        config=config.loop,
        observer=observer,
        specs=config.motor,
    )
