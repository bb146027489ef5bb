#!/usr/bin/env python3
"""layers.py

Discover the RasterLayer collection described by the `layers:` block of
pipeline.yaml.

Two modes:
- `items:` explicit list of {path, date, bands, label}
- `glob:` + `period_pattern:` regex applied to each file name; the pattern's
  `year` group (and optional `month` / `day` groups) becomes the timestamp.
  GHSL file names look like GHS_BUILT_S_E1975_GLOBE_R2023A_54009_100_V1_0.tif,
  so 'E(?P<year>\\d{4})' picks the epoch.

Band names come from `bands:` when configured, else from the GeoTIFF band
descriptions, else "b1", "b2", ...

Layers are returned in arrival (glob / listing) order; ordering by period is
the TimeSeriesBuilder's job.
"""

from __future__ import annotations

import glob as globlib
import re
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, List, Sequence, Tuple

import rasterio
from rasterio.errors import RasterioIOError

from builtup.config import LayersConfig
from builtup.models import RasterLayer


def _parse_timestamp(value: Any) -> datetime:
    """Accept datetime, date, int year, or ISO string ("1975", "1975-01-01")."""
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, int):
        return datetime(value, 1, 1)
    if isinstance(value, str):
        s = value.strip()
        if re.fullmatch(r"\d{4}", s):
            return datetime(int(s), 1, 1)
        try:
            return datetime.fromisoformat(s)
        except ValueError as e:
            raise ValueError(f"Unrecognized layer date: {value!r}") from e
    raise ValueError(f"Unrecognized layer date: {value!r}")


def timestamp_from_name(name: str, pattern: str) -> datetime:
    """Extract a timestamp from a file name using a regex with a `year` group."""
    m = re.search(pattern, name)
    if not m:
        raise ValueError(f"period_pattern {pattern!r} did not match {name!r}")
    groups = m.groupdict()
    year = groups.get("year") or (m.group(1) if m.groups() else None)
    if not year:
        raise ValueError(f"period_pattern {pattern!r} has no 'year' group")
    month = int(groups.get("month") or 1)
    day = int(groups.get("day") or 1)
    return datetime(int(year), month, day)


def read_band_names(path: Path) -> Tuple[str, ...]:
    """Band descriptions from the raster, falling back to b1..bN."""
    with rasterio.Env(GDAL_DISABLE_READDIR_ON_OPEN="EMPTY_DIR"):
        with rasterio.open(path) as src:
            return tuple(d if d else f"b{i}" for i, d in enumerate(src.descriptions, start=1))


def _bands_for(path: Path, configured: Sequence[str]) -> Tuple[str, ...]:
    if configured:
        return tuple(configured)
    return read_band_names(path)


def layers_from_items(items: Sequence[Dict[str, Any]], default_bands: Sequence[str] = ()) -> List[RasterLayer]:
    layers: List[RasterLayer] = []
    for item in items:
        path = Path(item["path"])
        if "date" not in item:
            raise ValueError(f"layers.items entry missing 'date': {item}")
        bands = item.get("bands") or default_bands
        if isinstance(bands, str):
            bands = [bands]
        layers.append(
            RasterLayer(
                path=path,
                timestamp=_parse_timestamp(item["date"]),
                bands=_bands_for(path, bands),
                label=str(item.get("label") or path.stem),
            )
        )
    return layers


def layers_from_glob(pattern: str, period_pattern: str, bands: Sequence[str] = ()) -> List[RasterLayer]:
    paths = [Path(p) for p in sorted(globlib.glob(pattern))]
    layers: List[RasterLayer] = []
    for p in paths:
        layers.append(
            RasterLayer(
                path=p,
                timestamp=timestamp_from_name(p.name, period_pattern),
                bands=_bands_for(p, bands),
                label=p.stem,
            )
        )
    return layers


def discover_layers(cfg: LayersConfig) -> List[RasterLayer]:
    """Resolve a LayersConfig into RasterLayers (explicit items first, then glob).

    Zero matching files is not an error: it yields an empty collection and an
    empty growth table downstream.
    """
    layers: List[RasterLayer] = []
    if cfg.items:
        layers.extend(layers_from_items(cfg.items, cfg.bands))
    if cfg.glob:
        layers.extend(layers_from_glob(cfg.glob, cfg.period_pattern, cfg.bands))
    return layers


def verify_layer(layer: RasterLayer, band: str) -> Dict[str, Any]:
    """Best-effort check that a layer opens and carries `band`.

    Returns a small report dict; it only claims presence, not correctness.
    """
    report: Dict[str, Any] = {"label": layer.label, "path": str(layer.path)}
    if band not in layer.bands:
        report.update(ok=False, reason=f"band '{band}' not declared (bands: {list(layer.bands)})")
        return report
    try:
        with rasterio.Env(GDAL_DISABLE_READDIR_ON_OPEN="EMPTY_DIR"):
            with rasterio.open(layer.path) as src:
                report.update(
                    ok=src.count >= layer.band_index(band),
                    crs=str(src.crs) if src.crs else None,
                    res=src.res,
                    size=(src.width, src.height),
                )
                if src.crs is None:
                    report.update(ok=False, reason="raster has no CRS")
    except RasterioIOError as e:
        report.update(ok=False, reason=str(e))
    return report
