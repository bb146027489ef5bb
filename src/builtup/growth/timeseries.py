#!/usr/bin/env python3
"""timeseries.py

TimeSeriesBuilder: raster layers -> TimeSeries of (period, km²) samples.

For each layer:
1. resolve its period from the timestamp (year / month / decade rule)
2. aggregate the configured band over the region
3. divide by the unit divisor (1e6: m² -> km²)

Periods are checked for uniqueness before anything is aggregated; samples
are sorted by period after collection, so input order does not matter.
"""

from __future__ import annotations

from collections import defaultdict
from datetime import datetime
from typing import Dict, List, Protocol, Sequence

from builtup.errors import AggregationError, DuplicatePeriodError
from builtup.models import AggregatedSample, RasterLayer, Region, TimeSeries
from builtup.registry.region import validate_region


class Aggregator(Protocol):
    def aggregate(self, layer: RasterLayer, region: Region, band: str) -> float: ...


def resolve_period(timestamp: datetime, rule: str = "year") -> int:
    """Map a timestamp onto an integer period label.

    year   -> 1975
    month  -> 197507
    decade -> 1970
    """
    if rule == "year":
        return timestamp.year
    if rule == "month":
        return timestamp.year * 100 + timestamp.month
    if rule == "decade":
        return timestamp.year - timestamp.year % 10
    raise ValueError(f"Unknown period rule: {rule!r}")


def _check_unique_periods(layers: Sequence[RasterLayer], periods: Sequence[int]) -> None:
    seen: Dict[int, List[str]] = defaultdict(list)
    for layer, period in zip(layers, periods):
        seen[period].append(layer.label)
    for period in sorted(seen):
        if len(seen[period]) > 1:
            raise DuplicatePeriodError(period, seen[period])


class TimeSeriesBuilder:
    def __init__(
        self,
        aggregator: Aggregator,
        *,
        band: str = "built_surface",
        unit_divisor: float = 1e6,
        period_rule: str = "year",
        on_missing: str = "skip",
    ) -> None:
        if on_missing not in ("skip", "abort"):
            raise ValueError(f"on_missing must be 'skip' or 'abort', got {on_missing!r}")
        if unit_divisor == 0:
            raise ValueError("unit_divisor must be non-zero")
        self.aggregator = aggregator
        self.band = band
        self.unit_divisor = unit_divisor
        self.period_rule = period_rule
        self.on_missing = on_missing

    def build(self, layers: Sequence[RasterLayer], region: Region) -> TimeSeries:
        """Aggregate every layer over `region` and return samples sorted by period.

        Raises:
            RegionError: region is empty/invalid (before any aggregation).
            DuplicatePeriodError: two layers resolve to the same period.
            AggregationError: only when on_missing="abort".
        """
        validate_region(region)

        layers = list(layers)
        periods = [resolve_period(layer.timestamp, self.period_rule) for layer in layers]
        _check_unique_periods(layers, periods)

        samples: List[AggregatedSample] = []
        skipped: List[int] = []
        for layer, period in zip(layers, periods):
            try:
                raw = self.aggregator.aggregate(layer, region, self.band)
            except AggregationError as e:
                if self.on_missing == "abort":
                    raise
                print(f"[SKIP] {period}: {e}")
                skipped.append(period)
                continue
            samples.append(AggregatedSample(period=period, value=raw / self.unit_divisor))

        samples.sort(key=lambda s: s.period)
        if skipped:
            print(f"[GROWTH] Omitted {len(skipped)} period(s) with no aggregable data: {sorted(skipped)}")
        return TimeSeries(samples=tuple(samples), skipped=tuple(sorted(skipped)))
