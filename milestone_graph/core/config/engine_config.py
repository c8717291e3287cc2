from __future__ import annotations

from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any

import yaml

from milestone_graph.core.errors import ConfigError


@dataclass(frozen=True)
class EngineConfig:
    # Level layout (content-space pixels).
    horizontal_gap: float = 360
    vertical_gap: float = 280
    padding_x: float = 400
    padding_y: float = 400
    min_width: float = 2500
    min_height: float = 1800

    # Viewport.
    min_zoom: float = 0.1
    max_zoom: float = 3.0
    center_fraction_x: float = 0.2
    center_fraction_y: float = 0.5
    drag_threshold_px: float = 3

    # Minimap (screen pixels).
    minimap_width: float = 240
    minimap_height: float = 160

    # New milestones.
    default_duration_days: int = 5


DEFAULT_CONFIG = EngineConfig()

_INT_FIELDS = {"default_duration_days"}


def load_config_file(path: str | Path) -> dict[str, Any]:
    """Load engine overrides from a YAML file.

    Format:
      <field>: <number>

    Unknown keys and non-numeric values are rejected. Returns the raw
    override mapping.
    """
    p = Path(path)
    raw = yaml.safe_load(p.read_text(encoding="utf-8"))
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ConfigError(
            code="E_CONFIG_INVALID",
            message="config file must be a mapping of field -> number",
            file=str(p),
        )

    known = {f.name for f in fields(EngineConfig)}
    out: dict[str, Any] = {}
    for k, v in raw.items():
        if k not in known:
            raise ConfigError(
                code="E_CONFIG_UNKNOWN_FIELD",
                message=f"unknown config field: {k} (choose from: {', '.join(sorted(known))})",
                file=str(p),
                path=str(k),
            )
        if isinstance(v, bool) or not isinstance(v, (int, float)):
            raise ConfigError(
                code="E_CONFIG_INVALID",
                message=f"{k} must be a number",
                file=str(p),
                path=k,
            )
        if k in _INT_FIELDS:
            if int(v) != v or v < 0:
                raise ConfigError(
                    code="E_CONFIG_INVALID",
                    message=f"{k} must be a non-negative integer",
                    file=str(p),
                    path=k,
                )
            v = int(v)
        elif k.startswith("padding"):
            if v < 0:
                raise ConfigError(
                    code="E_CONFIG_INVALID",
                    message=f"{k} must be non-negative",
                    file=str(p),
                    path=k,
                )
        elif v <= 0:
            raise ConfigError(
                code="E_CONFIG_INVALID",
                message=f"{k} must be positive",
                file=str(p),
                path=k,
            )
        out[k] = v
    return out


def merged_config(overrides: dict[str, Any] | None = None) -> EngineConfig:
    """Return DEFAULT_CONFIG with overrides applied."""
    if not overrides:
        return DEFAULT_CONFIG
    cfg = replace(DEFAULT_CONFIG, **overrides)
    if cfg.min_zoom > cfg.max_zoom:
        raise ConfigError(
            code="E_CONFIG_INVALID",
            message=f"min_zoom ({cfg.min_zoom}) must not exceed max_zoom ({cfg.max_zoom})",
            path="min_zoom",
        )
    return cfg


def load_engine_config(config_file: str | None) -> EngineConfig:
    if not config_file:
        return DEFAULT_CONFIG
    p = Path(config_file)
    if not p.exists():
        raise ConfigError(
            code="E_CONFIG_NOT_FOUND",
            message="config file does not exist",
            file=str(p),
        )
    return merged_config(load_config_file(p))
