"""Locating and reading the monitor's YAML settings file."""

import os
from pathlib import Path
from typing import Any, Dict, Iterable, Optional, Union

import yaml

PROJECT_MARKERS: Iterable[str] = ("pyproject.toml", ".git")
DEFAULT_SETTINGS_PATH = Path("config/monitor.yml")

PathLike = Union[str, os.PathLike]


def find_project_root(markers: Iterable[str] = PROJECT_MARKERS) -> Path:
    """Directory holding the checkout; the package directory's parent when no marker is found."""
    package_dir = Path(__file__).resolve().parents[1]
    for candidate in (package_dir, *package_dir.parents):
        if any((candidate / marker).exists() for marker in markers):
            return candidate
    return package_dir.parent


def resolve_path(path: PathLike, project_root: Optional[Path] = None) -> Path:
    """Anchor a configured relative path (database, chart directory) at the project root."""
    target = Path(path).expanduser()
    if target.is_absolute():
        return target
    return (project_root or find_project_root()) / target


def locate_settings(path: Optional[PathLike] = None) -> Path:
    """Pick the settings file to read.

    With no ``path`` the bundled ``config/monitor.yml`` is used. A relative
    ``path`` is looked up in the working directory first, as a user typing
    ``--settings my.yml`` expects, and then under the project root.
    """
    if path is None:
        return find_project_root() / DEFAULT_SETTINGS_PATH
    target = Path(path).expanduser()
    if target.is_absolute():
        return target
    in_cwd = Path.cwd() / target
    if in_cwd.exists():
        return in_cwd
    return resolve_path(target)


def load_settings(path: Optional[PathLike] = None) -> Dict[str, Any]:
    """Read the settings file into a mapping. Raises FileNotFoundError or ValueError."""
    target = locate_settings(path)
    if not target.is_file():
        raise FileNotFoundError(f"settings file not found: {target}")
    with open(target, "r", encoding="utf-8") as handle:
        try:
            data = yaml.safe_load(handle)
        except yaml.YAMLError as exc:
            raise ValueError(f"{target} is not valid YAML: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"{target} must contain a mapping at the top level")
    return data
