"""Configuration helpers for the boat-following pipeline.

Provides YAML loading, nested access with defaults, and a strongly-typed
settings object consumed by the pipeline stages.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from .models import BehaviouralState

DEFAULT_BOAT_STATES: List[str] = [
    BehaviouralState.TRAWLER.value,
    BehaviouralState.SHRIMP_BOAT.value,
    BehaviouralState.EXPLORATORY_FLIGHT.value,
]


def load_config(path: str | Path) -> Dict[str, Any]:
    """Load a YAML configuration file."""

    with Path(path).open("r", encoding="utf-8") as fh:
        return yaml.safe_load(fh) or {}


def get_nested(config: Dict[str, Any], keys: list[str], default: Any) -> Any:
    """Retrieve a nested value from a config dict with a default."""

    current: Any = config
    for key in keys:
        if not isinstance(current, dict) or key not in current:
            return default
        current = current[key]
    return current


@dataclass
class PipelineSettings:
    """Thresholds and locations shared by every pipeline stage."""

    input_dir: Path = Path("data/raw")
    output_dir: Path = Path("output")
    land_path: Optional[Path] = None
    lakes_path: Optional[Path] = None
    hemisphere: str = "north"
    min_duration_min: float = 30.0
    min_points: int = 4
    step_sec: float = 300.0
    match_tolerance_sec: float = 90.0
    interpolation_method: str = "linear"
    states_dir: Optional[Path] = None
    label_tolerance_sec: float = 90.0
    boat_states: List[str] = field(default_factory=lambda: list(DEFAULT_BOAT_STATES))
    event_gap_min: float = 30.0
    min_event_points: int = 6
    hull_ratio: float = 1.3
    competing_types: List[str] = field(
        default_factory=lambda: [BehaviouralState.TRAWLER.value, BehaviouralState.SHRIMP_BOAT.value]
    )
    default_type: str = BehaviouralState.TRAWLER.value
    metadata_path: Optional[Path] = None
    save_plots: bool = False


def _optional_path(value: Any) -> Optional[Path]:
    return Path(value) if value else None


def settings_from_config(cfg: Dict[str, Any]) -> PipelineSettings:
    """Build :class:`PipelineSettings` from a loaded YAML config."""

    settings = PipelineSettings(
        input_dir=Path(get_nested(cfg, ["input", "dir"], "data/raw")),
        output_dir=Path(get_nested(cfg, ["output", "dir"], "output")),
        land_path=_optional_path(get_nested(cfg, ["geometry", "land"], None)),
        lakes_path=_optional_path(get_nested(cfg, ["geometry", "lakes"], None)),
        hemisphere=str(get_nested(cfg, ["projection", "hemisphere"], "north")).lower(),
        min_duration_min=float(get_nested(cfg, ["cleaning", "min_duration_min"], 30)),
        min_points=int(get_nested(cfg, ["cleaning", "min_points"], 4)),
        step_sec=float(get_nested(cfg, ["resampling", "step_sec"], 300)),
        match_tolerance_sec=float(get_nested(cfg, ["resampling", "match_tolerance_sec"], 90)),
        interpolation_method=str(get_nested(cfg, ["resampling", "method"], "linear")).lower(),
        states_dir=_optional_path(get_nested(cfg, ["classification", "states_dir"], None)),
        label_tolerance_sec=float(get_nested(cfg, ["classification", "tolerance_sec"], 90)),
        boat_states=list(get_nested(cfg, ["events", "boat_states"], DEFAULT_BOAT_STATES)),
        event_gap_min=float(get_nested(cfg, ["events", "gap_min"], 30)),
        min_event_points=int(get_nested(cfg, ["events", "min_points"], 6)),
        hull_ratio=float(get_nested(cfg, ["events", "hull_ratio"], 1.3)),
        competing_types=list(
            get_nested(
                cfg,
                ["events", "competing_types"],
                [BehaviouralState.TRAWLER.value, BehaviouralState.SHRIMP_BOAT.value],
            )
        ),
        default_type=str(get_nested(cfg, ["events", "default_type"], BehaviouralState.TRAWLER.value)),
        metadata_path=_optional_path(get_nested(cfg, ["metadata", "path"], None)),
        save_plots=bool(get_nested(cfg, ["output", "save_plots"], False)),
    )

    if settings.hemisphere not in {"north", "south"}:
        raise ValueError(f"Unsupported hemisphere: {settings.hemisphere}")
    unknown = set(settings.boat_states) - BehaviouralState.values()
    if unknown:
        raise ValueError(f"Unknown boat-relevant states: {sorted(unknown)}")
    if len(settings.competing_types) != 2:
        raise ValueError("events.competing_types must name exactly two states.")
    logging.debug("Resolved settings: %s", settings)
    return settings
