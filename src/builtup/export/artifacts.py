#!/usr/bin/env python3
"""artifacts.py

Write every artifact of a pipeline run.

Layout (defaults from ExportConfig):
  <out_dir>/builtup_area_and_growth.csv
  <out_dir>/aoi.geojson
  <out_dir>/urban_stack.tif                  (all periods, one band each)
  <out_dir>/builtup_<period>.tif             (endpoints)
  <out_dir>/builtup_change_<first>_<last>.tif
  <figures_dir>/builtup_<period>.png
  <figures_dir>/builtup_change_<first>_<last>.png
  <figures_dir>/builtup_area.png, growth_rate.png
  <figures_dir>/aoi_boundary.png
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence

from builtup.config import ExportConfig
from builtup.export import rasters, tables
from builtup.growth.pipeline import PipelineResult
from builtup.growth.timeseries import resolve_period
from builtup.models import RasterLayer, Region
from builtup.registry.region import write_region_geojson


@dataclass(frozen=True)
class ExportOptions:
    maps: bool = True
    charts: bool = True
    stack: bool = True
    overwrite: bool = False


def _keep(paths: List[Path], p: Optional[Path]) -> None:
    if p is not None:
        paths.append(p)


def export_artifacts(
    result: PipelineResult,
    layers: Sequence[RasterLayer],
    region: Region,
    *,
    band: str,
    period_rule: str,
    cfg: ExportConfig,
    options: ExportOptions = ExportOptions(),
) -> List[Path]:
    """Write the table, AOI and (optionally) charts, maps and stack. Returns written paths."""
    out_dir = cfg.out_dir
    fig_dir = cfg.figures_dir
    ow = options.overwrite
    written: List[Path] = []

    _keep(written, tables.write_growth_csv(result.table, out_dir / cfg.csv_name, overwrite=ow))
    _keep(written, write_region_geojson(region, out_dir / "aoi.geojson", overwrite=ow))

    if options.charts and len(result.table):
        written.extend(tables.plot_growth_charts(result.table, fig_dir, overwrite=ow))

    # Only layers that made it into the series; skipped periods have no data in the region
    present = set(result.series.periods)
    used = sorted(
        (layer for layer in layers if resolve_period(layer.timestamp, period_rule) in present),
        key=lambda layer: resolve_period(layer.timestamp, period_rule),
    )

    if options.stack and used:
        data, profile = rasters.stack_layers(used, region, band)
        descriptions = [str(resolve_period(layer.timestamp, period_rule)) for layer in used]
        _keep(written, rasters.write_geotiff(
            data, profile, out_dir / "urban_stack.tif", descriptions=descriptions, overwrite=ow
        ))

    if options.maps:
        _keep(written, rasters.write_boundary_png(region, fig_dir / "aoi_boundary.png", overwrite=ow))

    if options.maps and result.endpoints:
        vmin, vmax = cfg.built_vis
        for layer in result.endpoints:
            period = resolve_period(layer.timestamp, period_rule)
            data, profile = rasters.read_clipped(layer, region, band)
            _keep(written, rasters.write_geotiff(data, profile, out_dir / f"builtup_{period}.tif", overwrite=ow))
            _keep(written, rasters.write_png(
                data, fig_dir / f"builtup_{period}.png", vmin=vmin, vmax=vmax,
                palette=rasters.BUILT_PALETTE, overwrite=ow,
            ))

        if result.first is not None and result.last is not None and result.first is not result.last:
            p0 = resolve_period(result.first.timestamp, period_rule)
            p1 = resolve_period(result.last.timestamp, period_rule)
            diff, profile = rasters.difference_layer(result.first, result.last, region, band)
            stem = f"builtup_change_{p0}_{p1}"
            vmin, vmax = cfg.change_vis
            _keep(written, rasters.write_geotiff(diff, profile, out_dir / f"{stem}.tif", overwrite=ow))
            _keep(written, rasters.write_png(
                diff, fig_dir / f"{stem}.png", vmin=vmin, vmax=vmax,
                palette=rasters.CHANGE_PALETTE, overwrite=ow,
            ))

    return written
