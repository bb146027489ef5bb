#!/usr/bin/env python3
"""tables.py

Tabular and chart outputs for a GrowthTable.

- CSV with columns period, value, growth_rate. The first period has no
  rate (empty cell); a rate over a zero predecessor is written as "NaN".
- Column charts of built-up area and growth rate (matplotlib)
"""

from __future__ import annotations

import math
from pathlib import Path
from typing import List, Optional

import matplotlib.pyplot as plt

from builtup.growth.rates import format_rate
from builtup.models import GrowthTable


CSV_COLUMNS = ["period", "value", "growth_rate"]
NAN_TOKEN = "NaN"


def write_growth_csv(table: GrowthTable, out_path: Path, *, overwrite: bool = False) -> Optional[Path]:
    if out_path.exists() and not overwrite:
        print(f"[SKIP] {out_path}")
        return None
    out_path.parent.mkdir(parents=True, exist_ok=True)
    df = table.to_frame()
    # None (no predecessor) stays an empty cell; NaN (zero predecessor) gets NAN_TOKEN
    df["growth_rate"] = ["" if r.growth_rate is None else r.growth_rate for r in table]
    df.to_csv(out_path, index=False, columns=CSV_COLUMNS, na_rep=NAN_TOKEN)
    print(f"[EXPORT] {len(df)} rows -> {out_path}")
    return out_path


def _bar_chart(periods, values, *, title: str, ylabel: str, out_path: Path) -> Path:
    fig, ax = plt.subplots(figsize=(8, 4.5))
    labels = [str(p) for p in periods]
    ax.bar(labels, values, color="#c0392b")
    ax.set_title(title)
    ax.set_xlabel("Year")
    ax.set_ylabel(ylabel)
    ax.axhline(0, color="black", linewidth=0.6)
    fig.tight_layout()
    fig.savefig(out_path, dpi=150)
    plt.close(fig)
    return out_path


def plot_growth_charts(table: GrowthTable, out_dir: Path, *, overwrite: bool = False) -> List[Path]:
    """Write builtup_area.png and growth_rate.png; returns the paths written."""
    out_dir.mkdir(parents=True, exist_ok=True)
    written: List[Path] = []

    area_png = out_dir / "builtup_area.png"
    if area_png.exists() and not overwrite:
        print(f"[SKIP] {area_png}")
    else:
        _bar_chart(
            [r.period for r in table],
            [r.value for r in table],
            title="Built-up Area (sq. km)",
            ylabel="Built-up Area (sq. km)",
            out_path=area_png,
        )
        written.append(area_png)

    # Rows without a defined rate (first period, zero predecessor) are left out
    rated = [r for r in table if r.growth_rate is not None and not math.isnan(r.growth_rate)]
    growth_png = out_dir / "growth_rate.png"
    if growth_png.exists() and not overwrite:
        print(f"[SKIP] {growth_png}")
    elif rated:
        _bar_chart(
            [r.period for r in rated],
            [r.growth_rate for r in rated],
            title="Built-up Area Growth Rate (%)",
            ylabel="Growth Rate (%)",
            out_path=growth_png,
        )
        written.append(growth_png)

    for p in written:
        print(f"[EXPORT] chart -> {p}")
    return written


def print_table(table: GrowthTable) -> None:
    """Human-friendly summary of the growth table."""
    if not len(table):
        print("  (no periods)")
        return
    print(f"  {'period':>8}  {'area_km2':>12}  {'growth':>10}")
    for r in table:
        print(f"  {r.period:>8}  {r.value:>12.3f}  {format_rate(r.growth_rate):>10}")
