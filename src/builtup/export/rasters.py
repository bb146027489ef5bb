#!/usr/bin/env python3
"""rasters.py

Raster outputs: endpoint built-up maps, the change map (last - first), and
the clipped multi-band stack of every layer, plus the AOI boundary figure.

Each layer is cropped to the region and masked outside it
(rasterio.mask.mask). Data products are written as float32 GeoTIFFs with NaN
nodata; figures are PNGs coloured with a linear palette, transparent outside
the region.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

import geopandas as gpd
import matplotlib.pyplot as plt
import numpy as np
import rasterio
from matplotlib.colors import LinearSegmentedColormap
from rasterio.errors import RasterioIOError
from rasterio.mask import mask as rio_mask
from shapely.geometry import mapping

from builtup.errors import AggregationError
from builtup.growth.aggregate import GDAL_ENV
from builtup.models import RasterLayer, Region
from builtup.registry.region import region_to_crs


# Palettes (low -> high)
BUILT_PALETTE = ("#ffffff", "#ff0000")
CHANGE_PALETTE = ("blue", "white", "red")  # loss -> no change -> gain


def read_clipped(layer: RasterLayer, region: Region, band: str) -> Tuple[np.ma.MaskedArray, Dict[str, Any]]:
    """Band of `layer` cropped to `region`, masked outside it.

    Returns (2D float64 masked array, GeoTIFF profile for that array).
    """
    idx = layer.band_index(band)
    try:
        with rasterio.Env(**GDAL_ENV):
            with rasterio.open(layer.path) as src:
                if src.crs is None:
                    raise AggregationError(layer.label, "raster has no CRS")
                local = region_to_crs(region, src.crs.to_wkt())
                try:
                    data, transform = rio_mask(
                        src, [mapping(local.geometry)], crop=True, indexes=idx, filled=False
                    )
                except ValueError as e:
                    # rasterio raises ValueError when shapes do not overlap the raster
                    raise AggregationError(layer.label, str(e)) from e
                profile = src.profile.copy()
    except RasterioIOError as e:
        raise AggregationError(layer.label, f"cannot read {layer.path}: {e}") from e

    data = data.astype("float64")
    data.mask = np.ma.getmaskarray(data) | ~np.isfinite(np.ma.getdata(data))
    profile.update(
        driver="GTiff",
        height=data.shape[0],
        width=data.shape[1],
        transform=transform,
        count=1,
        dtype="float32",
        nodata=np.nan,
        compress="deflate",
    )
    profile.pop("blockxsize", None)
    profile.pop("blockysize", None)
    profile.pop("tiled", None)
    return data, profile


def difference_layer(
    first: RasterLayer, last: RasterLayer, region: Region, band: str
) -> Tuple[np.ma.MaskedArray, Dict[str, Any]]:
    """Pixel-wise `last - first` over the region (masked where either is masked)."""
    a, profile = read_clipped(first, region, band)
    b, _ = read_clipped(last, region, band)
    if a.shape != b.shape:
        raise ValueError(
            f"Cannot difference {first.label} {a.shape} and {last.label} {b.shape}: grids differ"
        )
    return b - a, profile


def write_geotiff(
    data: np.ndarray,
    profile: Dict[str, Any],
    out_path: Path,
    *,
    descriptions: Optional[Sequence[str]] = None,
    overwrite: bool = False,
) -> Optional[Path]:
    """Write a 2D (one band) or 3D (bands, rows, cols) array as float32 GeoTIFF."""
    if out_path.exists() and not overwrite:
        print(f"[SKIP] {out_path}")
        return None

    arr = np.ma.filled(np.ma.asarray(data, dtype="float64"), np.nan).astype("float32")
    if arr.ndim == 2:
        arr = arr[np.newaxis, ...]

    profile = dict(profile)
    profile.update(count=arr.shape[0], height=arr.shape[1], width=arr.shape[2], dtype="float32")

    out_path.parent.mkdir(parents=True, exist_ok=True)
    with rasterio.open(out_path, "w", **profile) as dst:
        dst.write(arr)
        if descriptions:
            for i, d in enumerate(descriptions, start=1):
                dst.set_band_description(i, str(d))
    print(f"[EXPORT] raster -> {out_path}")
    return out_path


def write_png(
    data: np.ndarray,
    out_path: Path,
    *,
    vmin: float,
    vmax: float,
    palette: Sequence[str] = BUILT_PALETTE,
    overwrite: bool = False,
) -> Optional[Path]:
    """Colourise a 2D array with a linear palette; masked/NaN pixels are transparent."""
    if out_path.exists() and not overwrite:
        print(f"[SKIP] {out_path}")
        return None

    cmap = LinearSegmentedColormap.from_list("builtup", list(palette))
    cmap.set_bad(alpha=0.0)
    arr = np.ma.masked_invalid(np.ma.asarray(data, dtype="float64"))

    out_path.parent.mkdir(parents=True, exist_ok=True)
    plt.imsave(out_path, arr, cmap=cmap, vmin=vmin, vmax=vmax)
    print(f"[EXPORT] figure -> {out_path}")
    return out_path


def stack_layers(
    layers: Sequence[RasterLayer], region: Region, band: str
) -> Tuple[np.ma.MaskedArray, Dict[str, Any]]:
    """Clip every layer and stack them as (bands, rows, cols) in the given order."""
    if not layers:
        raise ValueError("Cannot stack zero layers")
    arrays: List[np.ma.MaskedArray] = []
    profile: Dict[str, Any] = {}
    for layer in layers:
        data, prof = read_clipped(layer, region, band)
        if arrays and data.shape != arrays[0].shape:
            raise ValueError(
                f"Cannot stack {layer.label} {data.shape}: expected {arrays[0].shape}"
            )
        if not profile:
            profile = prof
        arrays.append(data)
    return np.ma.stack(arrays), profile


def write_boundary_png(
    region: Region,
    out_path: Path,
    *,
    color: str = "black",
    linewidth: float = 3.0,
    overwrite: bool = False,
) -> Optional[Path]:
    """Outline of the region on a transparent background."""
    if out_path.exists() and not overwrite:
        print(f"[SKIP] {out_path}")
        return None

    outline = gpd.GeoSeries([region.geometry.boundary], crs=region.crs)
    fig, ax = plt.subplots(figsize=(6, 6))
    outline.plot(ax=ax, color=color, linewidth=linewidth)
    ax.set_aspect("equal")
    ax.set_axis_off()
    ax.set_title(region.name)

    out_path.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(out_path, dpi=150, transparent=True, bbox_inches="tight")
    plt.close(fig)
    print(f"[EXPORT] figure -> {out_path}")
    return out_path
