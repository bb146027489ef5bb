"""Small synthetic GeoTIFFs for tests.

Grid: 10 x 10 pixels of 100 m in EPSG:3857, upper-left corner at (0, 1000).
Pixel (row r, col c) covers x in [100c, 100c+100], y in [900-100r, 1000-100r].
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Sequence

import numpy as np
import rasterio
from rasterio.transform import from_origin
from shapely.geometry import box

CRS = "EPSG:3857"
TRANSFORM = from_origin(0, 1000, 100, 100)
SHAPE = (10, 10)


def write_tif(
    path: Path,
    data: np.ndarray,
    *,
    descriptions: Sequence[str] = ("built_surface",),
    nodata: Optional[float] = None,
) -> Path:
    arr = np.asarray(data, dtype="float32")
    if arr.ndim == 2:
        arr = arr[np.newaxis, ...]
    profile = {
        "driver": "GTiff",
        "height": arr.shape[1],
        "width": arr.shape[2],
        "count": arr.shape[0],
        "dtype": "float32",
        "crs": CRS,
        "transform": TRANSFORM,
    }
    if nodata is not None:
        profile["nodata"] = nodata
    with rasterio.open(path, "w", **profile) as dst:
        dst.write(arr)
        for i, d in enumerate(descriptions, start=1):
            dst.set_band_description(i, d)
    return path


def constant(value: float) -> np.ndarray:
    return np.full(SHAPE, value, dtype="float32")


def inner_box():
    """Region covering rows 2..5 and cols 2..5 (16 pixels)."""
    return box(200, 400, 600, 800)
