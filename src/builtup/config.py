#!/usr/bin/env python3
"""builtup.config

Shared configuration utilities for builtup CLI subsystems.

This module provides common helpers used across builtup.registry,
builtup.ingest and builtup.growth. Centralizing these avoids duplication
and ensures every CLI reads pipeline.yaml the same way.

Design notes:
- YAML loading is strict: files must exist and be valid mappings.
- Section parsing fills defaults, then validates types/values (ValueError).
- All functions are pure (no side effects on import).
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml


BBox = Tuple[float, float, float, float]

PERIOD_RULES = ("year", "month", "decade")
MISSING_POLICIES = ("skip", "abort")


# -----------------------------------------------------------------------------
# YAML loading
# -----------------------------------------------------------------------------

def load_yaml(path: Path) -> Dict[str, Any]:
    """Load a YAML file and return as dict.

    Raises SystemExit on missing file or invalid format (non-mapping).
    Config errors should fail fast.
    """
    if not path.exists():
        raise SystemExit(f"Config not found: {path}")
    with path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f)
    if not isinstance(data, dict):
        raise SystemExit(f"Expected YAML mapping at {path}")
    return data


# -----------------------------------------------------------------------------
# Bounding box utilities
# -----------------------------------------------------------------------------
# Used by registry (bbox regions) and by CLI summaries.

def coerce_bbox(x: Any) -> Optional[BBox]:
    """Try to coerce [xmin, ymin, xmax, ymax] into a bbox tuple.

    Returns None if input is invalid or missing.
    """
    if x is None:
        return None
    if isinstance(x, (list, tuple)) and len(x) == 4:
        try:
            xmin, ymin, xmax, ymax = map(float, x)
        except (TypeError, ValueError):
            return None
        return (xmin, ymin, xmax, ymax)
    return None


def format_bbox(b: BBox, precision: int = 5) -> str:
    """Format a bbox tuple as a readable string."""
    return f"[{b[0]:.{precision}f}, {b[1]:.{precision}f}, {b[2]:.{precision}f}, {b[3]:.{precision}f}]"


# -----------------------------------------------------------------------------
# Pipeline config
# -----------------------------------------------------------------------------

@dataclass(frozen=True)
class RegionConfig:
    path: Optional[Path] = None
    layer: Optional[str] = None
    name: str = "aoi"
    bounds: Optional[BBox] = None
    crs: str = "EPSG:4326"


@dataclass(frozen=True)
class LayersConfig:
    glob: Optional[str] = None
    period_pattern: str = r"(?P<year>\d{4})"
    bands: Tuple[str, ...] = ()
    items: Tuple[Dict[str, Any], ...] = ()


@dataclass(frozen=True)
class AggregationConfig:
    band: str = "built_surface"
    scale: Optional[float] = 100.0
    unit_divisor: float = 1e6
    period_rule: str = "year"
    on_missing: str = "skip"
    all_touched: bool = False


@dataclass(frozen=True)
class ExportConfig:
    out_dir: Path = Path("data/output")
    figures_dir: Path = Path("figures")
    csv_name: str = "builtup_area_and_growth.csv"
    built_vis: Tuple[float, float] = (0.0, 1.0)
    change_vis: Tuple[float, float] = (-1.0, 1.0)


@dataclass(frozen=True)
class PipelineConfig:
    region: RegionConfig = field(default_factory=RegionConfig)
    layers: LayersConfig = field(default_factory=LayersConfig)
    aggregation: AggregationConfig = field(default_factory=AggregationConfig)
    export: ExportConfig = field(default_factory=ExportConfig)


def _section(data: Dict[str, Any], key: str) -> Dict[str, Any]:
    value = data.get(key) or {}
    if not isinstance(value, dict):
        raise ValueError(f"pipeline config '{key}:' must be a mapping, got {type(value).__name__}")
    return value


def _str_list(value: Any, what: str) -> Tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,)
    if isinstance(value, (list, tuple)) and all(isinstance(v, str) for v in value):
        return tuple(value)
    raise ValueError(f"{what} must be a string or list of strings, got {value!r}")


def _vis_range(value: Any, default: Tuple[float, float], what: str) -> Tuple[float, float]:
    if value is None:
        return default
    if isinstance(value, (list, tuple)) and len(value) == 2:
        lo, hi = float(value[0]), float(value[1])
        if lo >= hi:
            raise ValueError(f"{what} must be [min, max] with min < max, got {value!r}")
        return (lo, hi)
    raise ValueError(f"{what} must be [min, max], got {value!r}")


def parse_region_config(section: Dict[str, Any]) -> RegionConfig:
    path = section.get("path")
    bounds = section.get("bounds")
    bbox = coerce_bbox(bounds)
    if bounds is not None and bbox is None:
        raise ValueError(f"region.bounds must be [xmin, ymin, xmax, ymax], got {bounds!r}")
    if path is None and bbox is None:
        raise ValueError("region: needs either 'path:' or 'bounds:'")
    return RegionConfig(
        path=Path(path) if path is not None else None,
        layer=section.get("layer"),
        name=str(section.get("name", "aoi")),
        bounds=bbox,
        crs=str(section.get("crs", "EPSG:4326")),
    )


def parse_layers_config(section: Dict[str, Any]) -> LayersConfig:
    items = section.get("items") or []
    if not isinstance(items, list) or not all(isinstance(i, dict) for i in items):
        raise ValueError("layers.items must be a list of mappings")
    for item in items:
        if "path" not in item:
            raise ValueError(f"layers.items entry missing 'path': {item}")
    return LayersConfig(
        glob=section.get("glob"),
        period_pattern=str(section.get("period_pattern", LayersConfig.period_pattern)),
        bands=_str_list(section.get("bands"), "layers.bands"),
        items=tuple(items),
    )


def parse_aggregation_config(section: Dict[str, Any]) -> AggregationConfig:
    scale = section.get("scale", AggregationConfig.scale)
    if scale is not None:
        scale = float(scale)
        if scale <= 0:
            raise ValueError(f"aggregation.scale must be positive, got {scale}")

    unit_divisor = float(section.get("unit_divisor", AggregationConfig.unit_divisor))
    if unit_divisor == 0:
        raise ValueError("aggregation.unit_divisor must be non-zero")

    period_rule = str(section.get("period_rule", AggregationConfig.period_rule))
    if period_rule not in PERIOD_RULES:
        raise ValueError(f"aggregation.period_rule must be one of {PERIOD_RULES}, got {period_rule!r}")

    on_missing = str(section.get("on_missing", AggregationConfig.on_missing))
    if on_missing not in MISSING_POLICIES:
        raise ValueError(f"aggregation.on_missing must be one of {MISSING_POLICIES}, got {on_missing!r}")

    all_touched = section.get("all_touched", AggregationConfig.all_touched)
    if not isinstance(all_touched, bool):
        raise ValueError(f"aggregation.all_touched must be true or false, got {all_touched!r}")

    return AggregationConfig(
        band=str(section.get("band", AggregationConfig.band)),
        scale=scale,
        unit_divisor=unit_divisor,
        period_rule=period_rule,
        on_missing=on_missing,
        all_touched=all_touched,
    )


def parse_export_config(section: Dict[str, Any]) -> ExportConfig:
    return ExportConfig(
        out_dir=Path(section.get("out_dir", ExportConfig.out_dir)),
        figures_dir=Path(section.get("figures_dir", ExportConfig.figures_dir)),
        csv_name=str(section.get("csv_name", ExportConfig.csv_name)),
        built_vis=_vis_range(section.get("built_vis"), ExportConfig.built_vis, "export.built_vis"),
        change_vis=_vis_range(section.get("change_vis"), ExportConfig.change_vis, "export.change_vis"),
    )


def load_pipeline_config(data: Dict[str, Any]) -> PipelineConfig:
    """Build a PipelineConfig from a parsed pipeline.yaml mapping.

    Expects structure like:
        region:      {path: ..., name: ...}   or {bounds: [...]}
        layers:      {glob: ..., period_pattern: ..., bands: [...]}
        aggregation: {band: built_surface, scale: 100, ...}
        export:      {out_dir: ..., figures_dir: ...}

    Missing sections fall back to defaults except `region:`, which is required.
    Raises ValueError on invalid values.
    """
    return PipelineConfig(
        region=parse_region_config(_section(data, "region")),
        layers=parse_layers_config(_section(data, "layers")),
        aggregation=parse_aggregation_config(_section(data, "aggregation")),
        export=parse_export_config(_section(data, "export")),
    )


def read_pipeline_config(path: Path) -> PipelineConfig:
    """load_yaml + load_pipeline_config, with value errors turned into SystemExit."""
    data = load_yaml(path)
    try:
        return load_pipeline_config(data)
    except ValueError as e:
        raise SystemExit(f"Invalid pipeline config {path}: {e}") from e


def override_aggregation(cfg: PipelineConfig, **changes: Any) -> PipelineConfig:
    """Return a copy of cfg with some aggregation fields replaced (None values ignored)."""
    changes = {k: v for k, v in changes.items() if v is not None}
    if not changes:
        return cfg
    return replace(cfg, aggregation=replace(cfg.aggregation, **changes))


def override_export(cfg: PipelineConfig, **changes: Any) -> PipelineConfig:
    """Return a copy of cfg with some export fields replaced (None values ignored)."""
    changes = {k: v for k, v in changes.items() if v is not None}
    if not changes:
        return cfg
    return replace(cfg, export=replace(cfg.export, **changes))


def describe_config(cfg: PipelineConfig) -> List[str]:
    """Human-friendly summary lines (used by --dry-run)."""
    lines = []
    if cfg.region.bounds is not None:
        lines.append(f"  Region: {cfg.region.name} bounds={format_bbox(cfg.region.bounds)}")
    else:
        lines.append(f"  Region: {cfg.region.name} ({cfg.region.path})")
    if cfg.layers.items:
        lines.append(f"  Layers: {len(cfg.layers.items)} listed in config")
    else:
        lines.append(f"  Layers: {cfg.layers.glob} (pattern {cfg.layers.period_pattern})")
    agg = cfg.aggregation
    lines.append(
        f"  Band: {agg.band} | scale={agg.scale} | divisor={agg.unit_divisor:g}"
        f" | period={agg.period_rule} | on_missing={agg.on_missing}"
    )
    lines.append(f"  Output: {cfg.export.out_dir} (figures: {cfg.export.figures_dir})")
    return lines


# -----------------------------------------------------------------------------
# Default paths
# -----------------------------------------------------------------------------
# Centralized so all CLIs use the same defaults.

DEFAULT_PIPELINE_YAML = Path("config/pipeline.yaml")
