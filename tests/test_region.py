#!/usr/bin/env python3

from __future__ import annotations

import sys
from pathlib import Path

# Ensure we can import from src without installing the package
ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
sys.path.insert(0, str(SRC))

import geopandas as gpd
import pytest
from shapely.geometry import LineString, Polygon, box

from builtup.config import RegionConfig
from builtup.errors import RegionError
from builtup.models import Region
from builtup.registry import region as reg


def test_region_from_bounds():
    r = reg.region_from_bounds((0, 0, 10, 5), crs="EPSG:3857", name="box")
    assert r.bounds == (0.0, 0.0, 10.0, 5.0)
    assert r.crs == "EPSG:3857"
    assert r.name == "box"


def test_degenerate_bounds_rejected():
    with pytest.raises(RegionError):
        reg.region_from_bounds((5, 0, 5, 10))


@pytest.mark.parametrize(
    "geom",
    [
        Polygon(),
        LineString([(0, 0), (1, 1)]),
        Polygon([(0, 0), (1, 1), (1, 0), (0, 1)]),  # bow-tie, invalid
    ],
)
def test_validate_region_rejects_bad_geometry(geom):
    with pytest.raises(RegionError):
        reg.validate_region(Region(geometry=geom, crs="EPSG:4326"))


def test_validate_region_requires_crs():
    with pytest.raises(RegionError):
        reg.validate_region(Region(geometry=box(0, 0, 1, 1), crs=""))


def test_region_from_file_dissolves_features(tmp_path):
    gdf = gpd.GeoDataFrame(
        {"id": [1, 2]},
        geometry=[box(0, 0, 1, 1), box(1, 0, 2, 1)],
        crs="EPSG:4326",
    )
    path = tmp_path / "aoi.geojson"
    gdf.to_file(path, driver="GeoJSON")

    r = reg.load_region(RegionConfig(path=path, name="two"))

    assert r.name == "two"
    assert r.geometry.area == pytest.approx(2.0)
    assert r.bounds == pytest.approx((0.0, 0.0, 2.0, 1.0))


def test_missing_region_file(tmp_path):
    with pytest.raises(RegionError):
        reg.region_from_file(tmp_path / "missing.geojson")


def test_region_to_crs_roundtrip():
    r = reg.region_from_bounds((10, 10, 11, 11))
    merc = reg.region_to_crs(r, "EPSG:3857")
    assert merc.crs.endswith("3857")
    assert merc.bounds[0] > 1_000_000
    assert reg.region_to_crs(r, "EPSG:4326") is r


def test_write_region_geojson(tmp_path, capsys):
    r = reg.region_from_bounds((0, 0, 1, 1), name="aoi")
    out = tmp_path / "out" / "aoi.geojson"

    assert reg.write_region_geojson(r, out) == out
    back = gpd.read_file(out)
    assert len(back) == 1
    assert back.loc[0, "name"] == "aoi"

    # second write without overwrite is skipped
    assert reg.write_region_geojson(r, out) is None
    assert "[SKIP]" in capsys.readouterr().out
