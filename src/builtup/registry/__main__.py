#!/usr/bin/env python3
"""builtup.registry

Region definition CLI for builtup.

This is one of several builtup subsystem CLIs:
- builtup.registry → region (AOI) definition (this file)
- builtup.ingest   → raster layer discovery and checks
- builtup.growth   → aggregation, growth rates, artifact export

builtup.registry is the source of truth for the area of interest.
It defines WHERE aggregation happens. All other subsystems consume it.

Responsibilities:
- Load the region from pipeline.yaml (vector file or bounds box)
- Validate it (non-empty, valid, has a CRS)
- Export it as GeoJSON

Examples:
  # Show the resolved region
  python -m builtup.registry show-region

  # Export the AOI for publishing alongside the growth table
  python -m builtup.registry export-aoi --out data/aoi.geojson
"""

from __future__ import annotations

import argparse
from pathlib import Path
from typing import List, Optional

from builtup.config import (
    DEFAULT_PIPELINE_YAML,
    format_bbox,
    read_pipeline_config,
)
from builtup.errors import RegionError


# -----------------------------------------------------------------------------
# CLI structure
# -----------------------------------------------------------------------------

def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for builtup.registry."""
    ap = argparse.ArgumentParser(
        prog="builtup.registry",
        description="Region (AOI) definition for builtup",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Subsystem CLIs:
  python -m builtup.registry  # Region definition (this)
  python -m builtup.ingest    # Raster layer discovery
  python -m builtup.growth    # Aggregation, growth rates, export
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
        help="Print planned actions without writing files",
    )
    ap.add_argument(
        "--overwrite",
        action="store_true",
        help="Overwrite existing output files",
    )

    # --- Subcommands ---
    sub = ap.add_subparsers(dest="command", required=True)

    sub.add_parser(
        "show-region",
        help="Load and validate the region, print its CRS, bounds and area",
    )

    export = sub.add_parser(
        "export-aoi",
        help="Write the region as GeoJSON",
        description="""
Load the region from pipeline.yaml, validate it, and write it as a
one-feature GeoJSON FeatureCollection (default: <export.out_dir>/aoi.geojson).
        """,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    export.add_argument(
        "--out",
        type=Path,
        default=None,
        help="Output GeoJSON path (default: <export.out_dir>/aoi.geojson)",
    )

    return ap


# -----------------------------------------------------------------------------
# Command handlers
# -----------------------------------------------------------------------------

def _load_region(args: argparse.Namespace):
    cfg = read_pipeline_config(args.pipeline_yaml)

    # Lazy import: keeps CLI startup fast, avoids loading geopandas until needed
    from builtup.registry.region import load_region

    try:
        return cfg, load_region(cfg.region)
    except RegionError as e:
        raise SystemExit(f"Invalid region: {e}") from e


def _handle_show_region(args: argparse.Namespace) -> int:
    _, region = _load_region(args)
    print(f"Region: {region.name}")
    print(f"  CRS: {region.crs}")
    print(f"  Bounds: {format_bbox(region.bounds)}")
    print(f"  Geometry: {region.geometry.geom_type}")
    return 0


def _handle_export_aoi(args: argparse.Namespace) -> int:
    cfg, region = _load_region(args)
    out = args.out or (cfg.export.out_dir / "aoi.geojson")

    if args.dry_run:
        print("[dry-run] Would export AOI:")
        print(f"  Region: {region.name} {format_bbox(region.bounds)}")
        print(f"  Output: {out}")
        return 0

    from builtup.registry.region import write_region_geojson

    write_region_geojson(region, out, overwrite=args.overwrite)
    return 0


# -----------------------------------------------------------------------------
# Main entrypoint
# -----------------------------------------------------------------------------

def main(argv: Optional[List[str]] = None) -> int:
    """Main entrypoint for builtup.registry CLI."""
    ap = build_parser()
    args = ap.parse_args(argv)

    handlers = {
        "show-region": _handle_show_region,
        "export-aoi": _handle_export_aoi,
    }

    handler = handlers.get(args.command)
    if handler is None:
        raise SystemExit(f"Unknown command: {args.command}")

    return handler(args)


if __name__ == "__main__":
    raise SystemExit(main())
