#!/usr/bin/env python3

from __future__ import annotations

import math
import sys
from pathlib import Path

# Ensure we can import from src without installing the package
ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
sys.path.insert(0, str(SRC))

import pytest

from builtup.growth import rates
from builtup.models import AggregatedSample, TimeSeries


def _series(*pairs):
    return TimeSeries(samples=tuple(AggregatedSample(p, v) for p, v in pairs))


def test_first_record_has_no_growth_rate():
    table = rates.compute(_series((1975, 2.0), (1990, 2.5), (2020, 5.0)))
    assert table[0].growth_rate is None
    assert table[1].growth_rate == pytest.approx(25.0)
    assert table[2].growth_rate == pytest.approx(100.0)


def test_same_length_and_order_as_series():
    series = _series((2000, 1.0), (2005, 1.5), (2010, 1.2), (2015, 3.0))
    table = rates.compute(series)
    assert len(table) == len(series)
    assert [r.period for r in table] == list(series.periods)
    assert [r.value for r in table] == list(series.values)
    for i in range(1, len(series)):
        prev, cur = series[i - 1].value, series[i].value
        assert table[i].growth_rate == pytest.approx((cur - prev) / prev * 100)


def test_gaps_use_previous_emitted_record():
    table = rates.compute(_series((1975, 4.0), (2020, 3.0)))
    assert table[1].growth_rate == pytest.approx(-25.0)


def test_zero_previous_value_gives_nan_for_that_record_only():
    table = rates.compute(_series((2000, 0.0), (2010, 3.0), (2020, 6.0)))
    assert table[0].growth_rate is None
    assert math.isnan(table[1].growth_rate)
    assert table[2].growth_rate == pytest.approx(100.0)


def test_zero_to_zero_is_nan_too():
    assert math.isnan(rates.growth_rate(0.0, 0.0))


def test_empty_series_gives_empty_table():
    table = rates.compute(TimeSeries())
    assert len(table) == 0
    assert list(table) == []


def test_format_rate():
    assert rates.format_rate(None) == "-"
    assert rates.format_rate(math.nan) == "NaN"
    assert rates.format_rate(25.0) == "+25.00%"
    assert rates.format_rate(-3.456, precision=1) == "-3.5%"
