#!/usr/bin/env python3
"""pipeline.py

One parameterised run: layers + region -> TimeSeries -> GrowthTable, plus
the endpoint layers (first and last period present) that the exporters
turn into maps and a change map.

Everything that varied between copies of the original script (region, band,
unit divisor, period rule, sampling scale, missing-sample policy) comes
from AggregationConfig.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

from builtup.config import AggregationConfig
from builtup.growth import rates
from builtup.growth.aggregate import RegionAggregator
from builtup.growth.timeseries import Aggregator, TimeSeriesBuilder, resolve_period
from builtup.models import GrowthTable, RasterLayer, Region, TimeSeries


@dataclass(frozen=True)
class PipelineResult:
    series: TimeSeries
    table: GrowthTable
    endpoints: Tuple[RasterLayer, ...] = ()

    @property
    def first(self) -> Optional[RasterLayer]:
        return self.endpoints[0] if self.endpoints else None

    @property
    def last(self) -> Optional[RasterLayer]:
        return self.endpoints[-1] if self.endpoints else None


def select_endpoints(
    layers: Sequence[RasterLayer], series: TimeSeries, period_rule: str = "year"
) -> Tuple[RasterLayer, ...]:
    """Layers for the first and last period of `series` (one layer if they coincide)."""
    if not len(series):
        return ()
    by_period = {resolve_period(layer.timestamp, period_rule): layer for layer in layers}
    first = by_period[series[0].period]
    last = by_period[series[-1].period]
    if first is last:
        return (first,)
    return (first, last)


def build_builder(cfg: AggregationConfig, aggregator: Optional[Aggregator] = None) -> TimeSeriesBuilder:
    if aggregator is None:
        aggregator = RegionAggregator(cfg.scale, all_touched=cfg.all_touched)
    return TimeSeriesBuilder(
        aggregator,
        band=cfg.band,
        unit_divisor=cfg.unit_divisor,
        period_rule=cfg.period_rule,
        on_missing=cfg.on_missing,
    )


def run_pipeline(
    layers: Sequence[RasterLayer],
    region: Region,
    cfg: AggregationConfig,
    *,
    aggregator: Optional[Aggregator] = None,
) -> PipelineResult:
    """Aggregate, compute growth rates, pick endpoints.

    `aggregator` defaults to a RegionAggregator built from cfg; tests pass a fake.
    """
    layers = list(layers)
    print(f"[GROWTH] {len(layers)} layer(s) over region '{region.name}' (band={cfg.band})")

    series = build_builder(cfg, aggregator).build(layers, region)
    table = rates.compute(series)
    endpoints = select_endpoints(layers, series, cfg.period_rule)

    return PipelineResult(series=series, table=table, endpoints=endpoints)
