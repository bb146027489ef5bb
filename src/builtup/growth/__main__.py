#!/usr/bin/env python3
"""builtup.growth

Built-up growth CLI for builtup.

This is one of several builtup subsystem CLIs:
- builtup.registry → region (AOI) definition
- builtup.ingest   → raster layer discovery and checks
- builtup.growth   → aggregation, growth rates, artifact export (this file)

builtup.growth turns the layer collection into:
- a per-period built-up area series (km²)
- a period-over-period growth-rate table (%)
- artifacts: CSV, AOI GeoJSON, endpoint maps, change map, stack, charts

It does NOT define the region (that's builtup.registry) or decide which
rasters exist (that's builtup.ingest); it consumes both.

Design notes:
- Core errors (RegionError, DuplicatePeriodError, AggregationError with
  --on-missing abort) become SystemExit with a readable message here
- Lazy-imports raster modules to keep CLI startup fast
- --dry-run prints the resolved plan without reading rasters

Examples:
  # Full run with defaults from config/pipeline.yaml
  python -m builtup.growth run

  # Table only, abort on the first layer without data
  python -m builtup.growth run --no-maps --no-stack --no-charts --on-missing abort
"""

from __future__ import annotations

import argparse
from pathlib import Path
from typing import List, Optional

from builtup.config import (
    DEFAULT_PIPELINE_YAML,
    MISSING_POLICIES,
    describe_config,
    override_aggregation,
    override_export,
    read_pipeline_config,
)
from builtup.errors import BuiltupError


# -----------------------------------------------------------------------------
# CLI structure
# -----------------------------------------------------------------------------

def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for builtup.growth."""
    ap = argparse.ArgumentParser(
        prog="builtup.growth",
        description="Built-up area time series and growth rates",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Subsystem CLIs:
  python -m builtup.registry  # Region definition
  python -m builtup.ingest    # Raster layer discovery
  python -m builtup.growth    # Aggregation, growth rates, export (this)
        """,
    )

    # --- Global args ---
    ap.add_argument(
        "--pipeline-yaml",
        type=Path,
        default=DEFAULT_PIPELINE_YAML,
        help=f"Path to pipeline YAML (default: {DEFAULT_PIPELINE_YAML})",
    )
    ap.add_argument(
        "--dry-run",
        action="store_true",
        help="Print planned actions without reading rasters or writing files",
    )
    ap.add_argument(
        "--overwrite",
        action="store_true",
        help="Overwrite existing output files",
    )

    # --- Subcommands ---
    sub = ap.add_subparsers(dest="command", required=True)

    run = sub.add_parser(
        "run",
        help="Aggregate every layer, compute growth rates, export artifacts",
        description="""
Run the built-up growth pipeline.

This command:
1. Loads and validates the region (builtup.registry)
2. Discovers raster layers (builtup.ingest)
3. Sums the band over the region for every layer (m² -> km²)
4. Sorts by period and computes growth rates
5. Writes the CSV, AOI and optional maps / stack / charts
        """,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    run.add_argument(
        "--out-dir",
        type=Path,
        default=None,
        help="Override export.out_dir",
    )
    run.add_argument(
        "--on-missing",
        choices=MISSING_POLICIES,
        default=None,
        help="Override aggregation.on_missing (skip layers without data, or abort)",
    )
    run.add_argument(
        "--scale",
        type=float,
        default=None,
        help="Override aggregation.scale (sampling resolution, raster CRS units)",
    )
    run.add_argument("--no-maps", action="store_true", help="Skip endpoint and change maps")
    run.add_argument("--no-charts", action="store_true", help="Skip area / growth charts")
    run.add_argument("--no-stack", action="store_true", help="Skip the clipped multi-band stack")

    return ap


# -----------------------------------------------------------------------------
# Command handlers
# -----------------------------------------------------------------------------

def _handle_run(args: argparse.Namespace) -> int:
    """Handle the run subcommand."""
    cfg = read_pipeline_config(args.pipeline_yaml)
    cfg = override_aggregation(cfg, on_missing=args.on_missing, scale=args.scale)
    cfg = override_export(cfg, out_dir=args.out_dir)

    if args.dry_run:
        print("[dry-run] Would run growth pipeline:")
        for line in describe_config(cfg):
            print(line)
        print(f"  Maps: {not args.no_maps} | Charts: {not args.no_charts} | Stack: {not args.no_stack}")
        return 0

    # Lazy imports: rasterio / geopandas / matplotlib only when actually running
    import matplotlib

    matplotlib.use("Agg")

    from builtup.export.artifacts import ExportOptions, export_artifacts
    from builtup.export.tables import print_table
    from builtup.growth.pipeline import run_pipeline
    from builtup.ingest.layers import discover_layers
    from builtup.registry.region import load_region

    try:
        region = load_region(cfg.region)
        layers = discover_layers(cfg.layers)
        result = run_pipeline(layers, region, cfg.aggregation)
    except (BuiltupError, ValueError) as e:
        raise SystemExit(f"Growth pipeline failed: {e}") from e

    print("Built-up area and growth:")
    print_table(result.table)
    if result.series.skipped:
        print(f"  skipped periods: {list(result.series.skipped)}")

    options = ExportOptions(
        maps=not args.no_maps,
        charts=not args.no_charts,
        stack=not args.no_stack,
        overwrite=args.overwrite,
    )
    try:
        written = export_artifacts(
            result,
            layers,
            region,
            band=cfg.aggregation.band,
            period_rule=cfg.aggregation.period_rule,
            cfg=cfg.export,
            options=options,
        )
    except (BuiltupError, ValueError) as e:
        raise SystemExit(f"Export failed: {e}") from e

    print(f"[GROWTH] Done ({len(written)} file(s) written)")
    return 0


# -----------------------------------------------------------------------------
# Main entrypoint
# -----------------------------------------------------------------------------

def main(argv: Optional[List[str]] = None) -> int:
    """Main entrypoint for builtup.growth CLI."""
    ap = build_parser()
    args = ap.parse_args(argv)

    handlers = {
        "run": _handle_run,
    }

    handler = handlers.get(args.command)
    if handler is None:
        raise SystemExit(f"Unknown command: {args.command}")

    return handler(args)


if __name__ == "__main__":
    raise SystemExit(main())
