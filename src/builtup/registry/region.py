#!/usr/bin/env python3
"""region.py

Turn the `region:` block of pipeline.yaml into a single validated Region.

Two sources are accepted:
1. A vector file readable by geopandas (GeoJSON, GeoPackage, shapefile).
   All features are dissolved into one geometry.
2. A plain `bounds: [xmin, ymin, xmax, ymax]` box in `crs` (EPSG:4326 default).

The Region is validated once, before any aggregation: an empty, invalid or
CRS-less geometry is a fatal RegionError.

Called by:
  python -m builtup.registry export-aoi
  python -m builtup.growth run
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import geopandas as gpd
from shapely.geometry import box

from builtup.config import RegionConfig
from builtup.errors import RegionError
from builtup.models import Region


def _make_valid(gdf: gpd.GeoDataFrame) -> gpd.GeoDataFrame:
    """Fix invalid geometries (geopandas >= 0.13 make_valid, else buffer(0))."""
    gdf = gdf.copy()
    if hasattr(gdf.geometry, "make_valid"):
        gdf["geometry"] = gdf.geometry.make_valid()
    else:
        gdf["geometry"] = gdf.geometry.buffer(0)
    return gdf


def _dissolve(gdf: gpd.GeoDataFrame):
    # union_all() replaced unary_union in geopandas 1.0
    if hasattr(gdf.geometry, "union_all"):
        return gdf.geometry.union_all()
    return gdf.geometry.unary_union


def validate_region(region: Region) -> Region:
    """Raise RegionError unless the region is a non-empty, valid areal geometry with a CRS."""
    geom = region.geometry
    if geom is None:
        raise RegionError(f"Region '{region.name}' has no geometry")
    if not region.crs:
        raise RegionError(f"Region '{region.name}' has no CRS")
    if geom.is_empty:
        raise RegionError(f"Region '{region.name}' is empty")
    if not geom.is_valid:
        raise RegionError(f"Region '{region.name}' geometry is invalid")
    if geom.area <= 0:
        raise RegionError(f"Region '{region.name}' has zero area ({geom.geom_type})")
    return region


def region_from_file(path: Path, *, layer: Optional[str] = None, name: str = "aoi") -> Region:
    """Read a vector file and dissolve it into one Region (CRS kept from the file)."""
    if not path.exists():
        raise RegionError(f"Region file not found: {path}")

    gdf = gpd.read_file(path, layer=layer) if layer else gpd.read_file(path)

    if gdf.empty:
        raise RegionError(f"Region file contains zero features: {path}")
    if gdf.crs is None:
        raise RegionError(f"Region file has no CRS: {path}")

    gdf = _make_valid(gdf)
    gdf = gdf[~gdf.geometry.is_empty & gdf.geometry.notna()]
    if gdf.empty:
        raise RegionError(f"Region file has only empty geometries: {path}")

    return validate_region(Region(geometry=_dissolve(gdf), crs=gdf.crs.to_string(), name=name))


def region_from_bounds(bounds, *, crs: str = "EPSG:4326", name: str = "aoi") -> Region:
    xmin, ymin, xmax, ymax = bounds
    if xmin >= xmax or ymin >= ymax:
        raise RegionError(f"Region '{name}' bounds are degenerate: {list(bounds)}")
    return validate_region(Region(geometry=box(xmin, ymin, xmax, ymax), crs=crs, name=name))


def load_region(cfg: RegionConfig) -> Region:
    """Resolve a RegionConfig (file takes precedence over bounds)."""
    if cfg.path is not None:
        return region_from_file(cfg.path, layer=cfg.layer, name=cfg.name)
    if cfg.bounds is not None:
        return region_from_bounds(cfg.bounds, crs=cfg.crs, name=cfg.name)
    raise RegionError("Region config has neither a path nor bounds")


def region_to_crs(region: Region, crs) -> Region:
    """Reproject a Region. `crs` is anything pyproj accepts (rasterio CRS included)."""
    gs = gpd.GeoSeries([region.geometry], crs=region.crs)
    if gs.crs.equals(crs):
        return region
    out = gs.to_crs(crs)
    return Region(geometry=out.iloc[0], crs=out.crs.to_string(), name=region.name)


def write_region_geojson(region: Region, out_path: Path, *, overwrite: bool = False) -> Optional[Path]:
    """Write the region as a one-feature GeoJSON FeatureCollection."""
    if out_path.exists() and not overwrite:
        print(f"[SKIP] {out_path}")
        return None

    out_path.parent.mkdir(parents=True, exist_ok=True)
    gdf = gpd.GeoDataFrame({"name": [region.name]}, geometry=[region.geometry], crs=region.crs)
    gdf.to_file(out_path, driver="GeoJSON")
    print(f"[EXPORT] AOI -> {out_path}")
    return out_path
