from __future__ import annotations

import json
from importlib import resources
from pathlib import Path
from typing import Any, Dict, List

import yaml

from .remote.layout import EngineLayout, LayoutError

_LAYOUT_SUFFIXES = (".json", ".yaml", ".yml")


class ConfigError(RuntimeError):
    """Raised when a layout file is missing or invalid."""


def _parse_text(text: str, suffix: str, source: str) -> Dict[str, Any]:
    try:
        if suffix == ".json":
            return json.loads(text)
        if suffix in {".yaml", ".yml"}:
            return yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise ConfigError(f"Cannot parse layout {source}: {exc}") from exc
    raise ConfigError(f"Unsupported layout format '{suffix}'. Use .json or .yaml/.yml.")


def _read_raw(path: Path) -> Dict[str, Any]:
    if not path.exists():
        raise ConfigError(f"Layout file not found: {path}")
    return _parse_text(path.read_text(encoding="utf-8"), path.suffix.lower(), str(path))


def builtin_layouts() -> List[str]:
    folder = resources.files("memwalk") / "layouts"
    return sorted(
        entry.name.rsplit(".", 1)[0]
        for entry in folder.iterdir()
        if entry.name.endswith(_LAYOUT_SUFFIXES)
    )


def _read_builtin(name: str) -> Dict[str, Any]:
    folder = resources.files("memwalk") / "layouts"
    for suffix in _LAYOUT_SUFFIXES:
        entry = folder / f"{name}{suffix}"
        if entry.is_file():
            return _parse_text(entry.read_text(encoding="utf-8"), suffix, f"'{name}'")
    raise ConfigError(
        f"Unknown built-in layout '{name}'. Available: {', '.join(builtin_layouts()) or 'none'}."
    )


def layout_from_payload(payload: Any) -> EngineLayout:
    if not isinstance(payload, dict):
        raise ConfigError("Layout root must be an object (JSON/YAML mapping).")
    try:
        return EngineLayout.from_dict(payload)
    except LayoutError as exc:
        raise ConfigError(f"Invalid layout: {exc}") from exc


def load_layout(source: Path | str) -> EngineLayout:
    """Load a layout from a JSON/YAML file, or a built-in layout by name."""
    text = str(source)
    path = Path(text).expanduser()
    if isinstance(source, Path) or path.suffix.lower() in _LAYOUT_SUFFIXES:
        payload = _read_raw(path)
    else:
        payload = _read_builtin(text.strip())
    return layout_from_payload(payload)
