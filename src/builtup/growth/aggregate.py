#!/usr/bin/env python3
"""aggregate.py

RegionAggregator: sum one band of one raster layer over a Region.

The region is reprojected into the raster CRS, a window covering it is read
(remote COGs work through GDAL /vsicurl/), pixels outside the polygon and
nodata/NaN pixels are masked out, and the remaining values are summed.

Sampling resolution:
- `scale=None` or equal to the native pixel size: sum at native resolution.
- otherwise nodata pixels are zero-filled at native resolution, the window is
  averaged onto a grid of `scale`-sized cells, and each cell mean is
  multiplied by the number of native pixels per cell. A cell then carries the
  sum of its valid pixels only, so per-pixel quantities (GHSL m² of built
  surface) keep their total.

Returned values are in the raster's own units (m² for GHSL BUILT_S); unit
conversion is the caller's job.
"""

from __future__ import annotations

import math
from typing import Optional, Tuple

import numpy as np
import rasterio
from rasterio.enums import Resampling
from rasterio.errors import RasterioIOError
from rasterio.features import geometry_mask
from rasterio.io import MemoryFile
from rasterio.transform import Affine
from rasterio.windows import Window, from_bounds
from shapely.geometry import mapping

from builtup.errors import AggregationError
from builtup.models import RasterLayer, Region
from builtup.registry.region import region_to_crs


# Relative tolerance when comparing `scale` to the native pixel size
_SCALE_RTOL = 1e-6

GDAL_ENV = {
    "GDAL_DISABLE_READDIR_ON_OPEN": "EMPTY_DIR",
    "CPL_VSIL_CURL_ALLOWED_EXTENSIONS": ".tif",
}


def _intersect_bounds(a, b) -> Optional[Tuple[float, float, float, float]]:
    xmin, ymin = max(a[0], b[0]), max(a[1], b[1])
    xmax, ymax = min(a[2], b[2]), min(a[3], b[3])
    if xmin >= xmax or ymin >= ymax:
        return None
    return (xmin, ymin, xmax, ymax)


def _covering_window(src, bounds) -> Window:
    """Whole-pixel window covering `bounds`, clamped to the dataset."""
    win = from_bounds(*bounds, transform=src.transform)
    col0 = max(0, math.floor(win.col_off))
    row0 = max(0, math.floor(win.row_off))
    col1 = min(src.width, math.ceil(win.col_off + win.width))
    row1 = min(src.height, math.ceil(win.row_off + win.height))
    return Window(col0, row0, max(col1 - col0, 1), max(row1 - row0, 1))


def _average_onto(values: np.ndarray, weight: np.ndarray, transform, out_shape) -> Tuple[np.ndarray, np.ndarray]:
    """Average-resample the zero-filled values and their validity weight together."""
    h, w = values.shape
    profile = {
        "driver": "GTiff",
        "height": h,
        "width": w,
        "count": 2,
        "dtype": "float64",
        "transform": transform,
    }
    with MemoryFile() as memfile:
        with memfile.open(**profile) as tmp:
            tmp.write(np.stack([values, weight]))
        with memfile.open() as tmp:
            out = tmp.read(out_shape=(2,) + tuple(out_shape), resampling=Resampling.average)
    return out[0], out[1]


class RegionAggregator:
    """Sum of a named band over a region, at a fixed sampling resolution.

    One instance is shared by every aggregation call of a run, so all layers
    are sampled at the same `scale` (raster CRS units, e.g. metres).
    """

    def __init__(self, scale: Optional[float] = None, *, all_touched: bool = False) -> None:
        if scale is not None and scale <= 0:
            raise ValueError(f"scale must be positive, got {scale}")
        self.scale = scale
        self.all_touched = all_touched

    def _read(self, src, band_index: int, win: Window):
        """Read the window at native or `scale` resolution.

        Returns (values with nodata as 0, valid weight in [0, 1], transform,
        native pixels per output cell).
        """
        data = src.read(band_index, window=win, masked=True)
        transform = src.window_transform(win)
        values = np.ma.getdata(data).astype("float64")
        valid = ~np.ma.getmaskarray(data) & np.isfinite(values)
        values = np.where(valid, values, 0.0)
        weight = valid.astype("float64")

        xres, yres = src.res
        if self.scale is None or (
            math.isclose(self.scale, xres, rel_tol=_SCALE_RTOL)
            and math.isclose(self.scale, yres, rel_tol=_SCALE_RTOL)
        ):
            return values, weight, transform, 1.0

        out_w = max(1, int(round(win.width * xres / self.scale)))
        out_h = max(1, int(round(win.height * yres / self.scale)))
        values, weight = _average_onto(values, weight, transform, (out_h, out_w))
        sx = win.width / out_w
        sy = win.height / out_h
        return values, weight, transform * Affine.scale(sx, sy), sx * sy

    def aggregate(self, layer: RasterLayer, region: Region, band: str) -> float:
        """Sum of `band` over the pixels of `layer` inside `region`.

        Raises AggregationError if the raster cannot be read, the band is
        absent, or no valid pixel of the layer falls inside the region.
        """
        band_index = layer.band_index(band)

        try:
            with rasterio.Env(**GDAL_ENV):
                with rasterio.open(layer.path) as src:
                    if band_index > src.count:
                        raise AggregationError(
                            layer.label, f"band '{band}' maps to index {band_index} but raster has {src.count} band(s)"
                        )
                    if src.crs is None:
                        raise AggregationError(layer.label, "raster has no CRS")

                    local = region_to_crs(region, src.crs.to_wkt())
                    overlap = _intersect_bounds(local.bounds, tuple(src.bounds))
                    if overlap is None:
                        raise AggregationError(layer.label, f"no data intersecting region '{region.name}'")

                    win = _covering_window(src, overlap)
                    values, weight, transform, cell_factor = self._read(src, band_index, win)
        except RasterioIOError as e:
            raise AggregationError(layer.label, f"cannot read {layer.path}: {e}") from e

        inside = geometry_mask(
            [mapping(local.geometry)],
            out_shape=values.shape,
            transform=transform,
            invert=True,
            all_touched=self.all_touched,
        )
        valid = inside & (weight > 0)

        if not valid.any():
            raise AggregationError(layer.label, f"no valid pixels inside region '{region.name}'")

        return float(values[valid].sum() * cell_factor)
