#!/usr/bin/env python3

from __future__ import annotations

import sys
from datetime import datetime
from pathlib import Path

# Ensure we can import from src without installing the package
ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
sys.path.insert(0, str(SRC))
sys.path.insert(0, str(Path(__file__).resolve().parent))

import numpy as np
import pytest
from shapely.geometry import box

from _rasters import CRS, SHAPE, constant, inner_box, write_tif
from builtup.config import AggregationConfig
from builtup.errors import AggregationError
from builtup.growth.aggregate import RegionAggregator
from builtup.growth.pipeline import run_pipeline
from builtup.models import RasterLayer, Region


REGION = Region(geometry=inner_box(), crs=CRS, name="inner")


def _layer(path, bands=("built_surface",)):
    return RasterLayer(path=path, timestamp=datetime(2020, 1, 1), bands=bands)


def test_sum_inside_region_native_resolution(tmp_path):
    data = np.arange(100, dtype="float32").reshape(SHAPE)
    layer = _layer(write_tif(tmp_path / "a.tif", data))

    total = RegionAggregator(scale=None).aggregate(layer, REGION, "built_surface")

    assert total == pytest.approx(float(data[2:6, 2:6].sum()))


def test_scale_equal_to_native_is_native(tmp_path):
    data = np.arange(100, dtype="float32").reshape(SHAPE)
    layer = _layer(write_tif(tmp_path / "a.tif", data))
    assert RegionAggregator(scale=100).aggregate(layer, REGION, "built_surface") == pytest.approx(
        float(data[2:6, 2:6].sum())
    )


def test_coarser_scale_preserves_total(tmp_path):
    layer = _layer(write_tif(tmp_path / "a.tif", constant(10_000)))
    total = RegionAggregator(scale=200).aggregate(layer, REGION, "built_surface")
    assert total == pytest.approx(16 * 10_000)


def test_nodata_pixels_are_excluded(tmp_path):
    data = constant(5.0)
    data[2, 2] = -1
    data[3, 3] = -1
    layer = _layer(write_tif(tmp_path / "a.tif", data, nodata=-1))
    total = RegionAggregator(scale=None).aggregate(layer, REGION, "built_surface")
    assert total == pytest.approx(14 * 5.0)


def test_coarser_scale_counts_only_valid_pixels(tmp_path):
    data = constant(5.0)
    data[2, 2] = -1
    data[3, 3] = -1
    layer = _layer(write_tif(tmp_path / "a.tif", data, nodata=-1))
    total = RegionAggregator(scale=200).aggregate(layer, REGION, "built_surface")
    assert total == pytest.approx(14 * 5.0)


def test_coarser_scale_nan_pixels_count_as_missing(tmp_path):
    data = constant(5.0)
    data[4, 4] = np.nan
    layer = _layer(write_tif(tmp_path / "a.tif", data))
    total = RegionAggregator(scale=200).aggregate(layer, REGION, "built_surface")
    assert total == pytest.approx(15 * 5.0)


def test_unreadable_file_raises_aggregation_error(tmp_path):
    bad = tmp_path / "bad.tif"
    bad.write_bytes(b"not a tiff")
    with pytest.raises(AggregationError):
        RegionAggregator(scale=None).aggregate(_layer(bad), REGION, "built_surface")


def test_missing_file_raises_aggregation_error(tmp_path):
    with pytest.raises(AggregationError):
        RegionAggregator(scale=None).aggregate(_layer(tmp_path / "absent.tif"), REGION, "built_surface")


def test_unreadable_layer_is_skipped_by_pipeline(tmp_path, capsys):
    good = RasterLayer(
        path=write_tif(tmp_path / "a.tif", constant(1.0)), timestamp=datetime(1975, 1, 1), bands=("built_surface",)
    )
    bad_path = tmp_path / "b.tif"
    bad_path.write_bytes(b"not a tiff")
    bad = RasterLayer(path=bad_path, timestamp=datetime(1990, 1, 1), bands=("built_surface",))

    result = run_pipeline([good, bad], REGION, AggregationConfig(scale=None, unit_divisor=1.0, on_missing="skip"))

    assert result.series.periods == (1975,)
    assert result.series.skipped == (1990,)
    assert "[SKIP] 1990" in capsys.readouterr().out


def test_region_in_other_crs_is_reprojected(tmp_path):
    import geopandas as gpd

    layer = _layer(write_tif(tmp_path / "a.tif", constant(1.0)))
    geo = gpd.GeoSeries([box(10, 10, 990, 990)], crs=CRS).to_crs("EPSG:4326").iloc[0]
    region = Region(geometry=geo, crs="EPSG:4326")

    total = RegionAggregator(scale=None).aggregate(layer, region, "built_surface")

    assert total == pytest.approx(100.0)


def test_missing_band_raises(tmp_path):
    layer = _layer(write_tif(tmp_path / "a.tif", constant(1.0)))
    with pytest.raises(AggregationError):
        RegionAggregator().aggregate(layer, REGION, "population")


def test_region_outside_raster_raises(tmp_path):
    layer = _layer(write_tif(tmp_path / "a.tif", constant(1.0)))
    far = Region(geometry=box(5000, 5000, 6000, 6000), crs=CRS)
    with pytest.raises(AggregationError):
        RegionAggregator().aggregate(layer, far, "built_surface")


def test_all_nodata_inside_region_raises(tmp_path):
    data = constant(1.0)
    data[2:6, 2:6] = -1
    layer = _layer(write_tif(tmp_path / "a.tif", data, nodata=-1))
    with pytest.raises(AggregationError):
        RegionAggregator(scale=None).aggregate(layer, REGION, "built_surface")


def test_same_inputs_same_result(tmp_path):
    layer = _layer(write_tif(tmp_path / "a.tif", constant(3.0)))
    agg = RegionAggregator(scale=None)
    assert agg.aggregate(layer, REGION, "built_surface") == agg.aggregate(layer, REGION, "built_surface")


def test_rejects_non_positive_scale():
    with pytest.raises(ValueError):
        RegionAggregator(scale=0)
