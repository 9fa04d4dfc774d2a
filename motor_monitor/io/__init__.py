"""I/O utilities (settings files, typed configuration, component factories)."""

from .settings import (
    DEFAULT_SETTINGS_PATH,
    find_project_root,
    load_settings,
    locate_settings,
    resolve_path,
)
from .config import (
    ChartConfig,
    ConfigError,
    ConversionConfig,
    MonitorConfig,
    build_adapter,
    build_loop,
    build_renderer,
    build_simulated_transport,
    build_store,
    build_transport,
    load_config,
    parse_config,
)

__all__ = [
    "DEFAULT_SETTINGS_PATH",
    "find_project_root",
    "load_settings",
    "locate_settings",
    "resolve_path",
    "ChartConfig",
    "ConfigError",
    "ConversionConfig",
    "MonitorConfig",
    "build_adapter",
    "build_loop",
    "build_renderer",
    "build_simulated_transport",
    "build_store",
    "build_transport",
    "load_config",
    "parse_config",
]
