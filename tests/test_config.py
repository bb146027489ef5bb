#!/usr/bin/env python3

from __future__ import annotations

import sys
from pathlib import Path

# Ensure we can import from src without installing the package
ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
sys.path.insert(0, str(SRC))

import pytest

from builtup import config as cfgmod


def test_defaults_fill_missing_sections():
    cfg = cfgmod.load_pipeline_config({"region": {"path": "data/aoi.geojson"}})
    assert cfg.region.path == Path("data/aoi.geojson")
    assert cfg.aggregation.band == "built_surface"
    assert cfg.aggregation.scale == 100.0
    assert cfg.aggregation.unit_divisor == 1e6
    assert cfg.aggregation.period_rule == "year"
    assert cfg.aggregation.on_missing == "skip"
    assert cfg.export.csv_name == "builtup_area_and_growth.csv"


def test_bounds_region():
    cfg = cfgmod.load_pipeline_config({"region": {"bounds": [0, 1, 2, 3], "crs": "EPSG:3857"}})
    assert cfg.region.bounds == (0.0, 1.0, 2.0, 3.0)
    assert cfg.region.crs == "EPSG:3857"
    assert cfg.region.path is None


def test_region_is_required():
    with pytest.raises(ValueError):
        cfgmod.load_pipeline_config({})


def test_bad_bounds_rejected():
    with pytest.raises(ValueError):
        cfgmod.load_pipeline_config({"region": {"bounds": [0, 1, 2]}})


@pytest.mark.parametrize(
    "aggregation",
    [
        {"period_rule": "week"},
        {"on_missing": "ignore"},
        {"scale": 0},
        {"unit_divisor": 0},
        {"all_touched": "false"},
        {"all_touched": 1},
    ],
)
def test_invalid_aggregation_values(aggregation):
    with pytest.raises(ValueError):
        cfgmod.load_pipeline_config({"region": {"path": "a.geojson"}, "aggregation": aggregation})


def test_null_scale_means_native():
    cfg = cfgmod.load_pipeline_config({"region": {"path": "a.geojson"}, "aggregation": {"scale": None}})
    assert cfg.aggregation.scale is None


def test_layers_items_need_path():
    with pytest.raises(ValueError):
        cfgmod.load_pipeline_config({"region": {"path": "a"}, "layers": {"items": [{"date": 2000}]}})


def test_single_band_string_becomes_tuple():
    cfg = cfgmod.load_pipeline_config({"region": {"path": "a"}, "layers": {"bands": "built_surface"}})
    assert cfg.layers.bands == ("built_surface",)


def test_load_yaml_missing_file_exits(tmp_path):
    with pytest.raises(SystemExit):
        cfgmod.load_yaml(tmp_path / "nope.yaml")


def test_load_yaml_non_mapping_exits(tmp_path):
    p = tmp_path / "list.yaml"
    p.write_text("- a\n- b\n")
    with pytest.raises(SystemExit):
        cfgmod.load_yaml(p)


def test_read_pipeline_config_turns_value_errors_into_exit(tmp_path):
    p = tmp_path / "pipeline.yaml"
    p.write_text("region:\n  path: a.geojson\naggregation:\n  on_missing: maybe\n")
    with pytest.raises(SystemExit):
        cfgmod.read_pipeline_config(p)


def test_overrides_ignore_none():
    cfg = cfgmod.load_pipeline_config({"region": {"path": "a"}})
    assert cfgmod.override_aggregation(cfg, on_missing=None) is cfg
    changed = cfgmod.override_aggregation(cfg, on_missing="abort", scale=30.0)
    assert changed.aggregation.on_missing == "abort"
    assert changed.aggregation.scale == 30.0
    assert cfg.aggregation.on_missing == "skip"
    assert cfgmod.override_export(cfg, out_dir=Path("x")).export.out_dir == Path("x")


def test_coerce_and_format_bbox():
    assert cfgmod.coerce_bbox(["1", 2, 3.5, 4]) == (1.0, 2.0, 3.5, 4.0)
    assert cfgmod.coerce_bbox(["a", 2, 3, 4]) is None
    assert cfgmod.coerce_bbox(None) is None
    assert cfgmod.format_bbox((1, 2, 3, 4), precision=1) == "[1.0, 2.0, 3.0, 4.0]"


def test_shipped_pipeline_yaml_parses():
    cfg = cfgmod.read_pipeline_config(ROOT / "config" / "pipeline.yaml")
    assert cfg.layers.period_pattern == r"E(?P<year>\d{4})"
    assert cfg.layers.bands == ("built_surface",)


def test_all_touched_accepts_yaml_booleans():
    cfg = cfgmod.load_pipeline_config({"region": {"path": "a.geojson"}, "aggregation": {"all_touched": True}})
    assert cfg.aggregation.all_touched is True
