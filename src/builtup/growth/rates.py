#!/usr/bin/env python3
"""rates.py

GrowthRateComputer: TimeSeries -> GrowthTable.

growth_rate[i] = (value[i] - value[i-1]) / value[i-1] * 100, where i-1 is the
previous sample in period order (gaps between periods are fine).

- first record: growth_rate is None (no predecessor)
- previous value 0: growth_rate is NaN for that record only
"""

from __future__ import annotations

import math
from typing import List, Optional

from builtup.models import GrowthRecord, GrowthTable, TimeSeries


def growth_rate(previous: float, current: float) -> float:
    """Percentage change from previous to current; NaN when previous is 0."""
    if previous == 0:
        return math.nan
    return (current - previous) / previous * 100.0


def compute(series: TimeSeries) -> GrowthTable:
    """One GrowthRecord per sample, same order, same length."""
    records: List[GrowthRecord] = []
    prev: Optional[float] = None
    for sample in series:
        rate = None if prev is None else growth_rate(prev, sample.value)
        records.append(GrowthRecord(period=sample.period, value=sample.value, growth_rate=rate))
        prev = sample.value
    return GrowthTable(records=tuple(records))


def format_rate(rate: Optional[float], precision: int = 2) -> str:
    """Printable growth rate ('-' for undefined, 'NaN' for a zero predecessor)."""
    if rate is None:
        return "-"
    if math.isnan(rate):
        return "NaN"
    return f"{rate:+.{precision}f}%"
