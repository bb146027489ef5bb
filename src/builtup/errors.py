"""builtup.errors

Exception types raised by the builtup core.

CLIs convert these to SystemExit at the boundary; library callers get the
typed exception.
"""

from __future__ import annotations

from typing import Sequence


class BuiltupError(Exception):
    """Base class for builtup pipeline errors."""


class RegionError(BuiltupError):
    """Region geometry is empty, invalid, or has no CRS."""


class AggregationError(BuiltupError):
    """A layer/region/band combination yields no aggregable data."""

    def __init__(self, layer_label: str, reason: str) -> None:
        self.layer_label = layer_label
        self.reason = reason
        super().__init__(f"{layer_label}: {reason}")


class DuplicatePeriodError(BuiltupError):
    """Two or more input layers resolve to the same period."""

    def __init__(self, period: int, labels: Sequence[str]) -> None:
        self.period = period
        self.labels = tuple(labels)
        super().__init__(
            f"Period {period} resolved from more than one layer: {', '.join(self.labels)}"
        )
