#!/usr/bin/env python3
"""builtup.models

Value objects passed between builtup subsystems.

Everything here is a frozen dataclass: built once per pipeline run,
never mutated. A re-run recomputes them from the raster collection.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Iterator, Optional, Tuple

from builtup.errors import AggregationError


@dataclass(frozen=True)
class RasterLayer:
    """One raster snapshot (one reporting period) on disk or behind /vsicurl/."""

    path: Path
    timestamp: datetime
    bands: Tuple[str, ...] = ()
    label: str = ""

    def __post_init__(self) -> None:
        if not self.label:
            object.__setattr__(self, "label", Path(self.path).stem)

    def band_index(self, name: str) -> int:
        """1-based rasterio band index for a named band."""
        try:
            return self.bands.index(name) + 1
        except ValueError:
            raise AggregationError(
                self.label, f"band '{name}' not found (available: {list(self.bands)})"
            ) from None


@dataclass(frozen=True)
class Region:
    """Area of interest. `geometry` is a shapely geometry in `crs`."""

    geometry: Any
    crs: str = "EPSG:4326"
    name: str = "aoi"

    @property
    def bounds(self) -> Tuple[float, float, float, float]:
        return tuple(self.geometry.bounds)


@dataclass(frozen=True)
class AggregatedSample:
    period: int
    value: float


@dataclass(frozen=True)
class GrowthRecord:
    period: int
    value: float
    growth_rate: Optional[float] = None


@dataclass(frozen=True)
class TimeSeries:
    """Samples strictly ascending by period, plus periods omitted on AggregationError."""

    samples: Tuple[AggregatedSample, ...] = ()
    skipped: Tuple[int, ...] = ()

    def __post_init__(self) -> None:
        periods = [s.period for s in self.samples]
        if any(b <= a for a, b in zip(periods, periods[1:])):
            raise ValueError(f"TimeSeries periods must be strictly ascending, got {periods}")

    def __len__(self) -> int:
        return len(self.samples)

    def __iter__(self) -> Iterator[AggregatedSample]:
        return iter(self.samples)

    def __getitem__(self, i: int) -> AggregatedSample:
        return self.samples[i]

    @property
    def periods(self) -> Tuple[int, ...]:
        return tuple(s.period for s in self.samples)

    @property
    def values(self) -> Tuple[float, ...]:
        return tuple(s.value for s in self.samples)


@dataclass(frozen=True)
class GrowthTable:
    records: Tuple[GrowthRecord, ...] = field(default_factory=tuple)

    def __len__(self) -> int:
        return len(self.records)

    def __iter__(self) -> Iterator[GrowthRecord]:
        return iter(self.records)

    def __getitem__(self, i: int) -> GrowthRecord:
        return self.records[i]

    def to_frame(self):
        """Records as a pandas DataFrame with columns period, value, growth_rate."""
        import pandas as pd

        return pd.DataFrame(
            {
                "period": [r.period for r in self.records],
                "value": [r.value for r in self.records],
                "growth_rate": [r.growth_rate for r in self.records],
            },
            columns=["period", "value", "growth_rate"],
        )
