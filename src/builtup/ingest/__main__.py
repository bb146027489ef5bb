#!/usr/bin/env python3
"""builtup.ingest

Raster layer discovery CLI for builtup.

This is one of several builtup subsystem CLIs:
- builtup.registry → region (AOI) definition
- builtup.ingest   → raster layer discovery and checks (this file)
- builtup.growth   → aggregation, growth rates, artifact export

Design goals:
- One entrypoint for "what rasters will the pipeline read?"
- Config-driven via pipeline.yaml (layers: glob/items, aggregation: band)
- A verify mode that opens every layer and checks the band is there

Examples:
  # List discovered layers with their resolved periods
  python -m builtup.ingest list-layers

  # Check every layer opens and carries the aggregation band
  python -m builtup.ingest verify
"""

from __future__ import annotations

import argparse
import json
from pathlib import Path
from typing import List, Optional

from builtup.config import DEFAULT_PIPELINE_YAML, read_pipeline_config


# -----------------------------
# CLI
# -----------------------------

def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="builtup.ingest", description="Raster layer discovery for builtup")

    # Global args (available for all subcommands)
    ap.add_argument("--pipeline-yaml", type=Path, default=DEFAULT_PIPELINE_YAML, help=f"Path to pipeline YAML (default: {DEFAULT_PIPELINE_YAML})")

    sub = ap.add_subparsers(dest="command", required=True)

    sub.add_parser("list-layers", help="List discovered layers in period order")

    verify = sub.add_parser("verify", help="Open every layer and check the aggregation band")
    verify.add_argument("--json", action="store_true", help="Print machine-readable JSON report")

    return ap


def _discover(args: argparse.Namespace):
    cfg = read_pipeline_config(args.pipeline_yaml)

    from builtup.ingest.layers import discover_layers

    try:
        layers = discover_layers(cfg.layers)
    except ValueError as e:
        raise SystemExit(f"Layer discovery failed: {e}") from e
    return cfg, layers


def _handle_list_layers(args: argparse.Namespace) -> int:
    cfg, layers = _discover(args)

    from builtup.growth.timeseries import resolve_period

    rule = cfg.aggregation.period_rule
    print(f"[INGEST] {len(layers)} layer(s)")
    for layer in sorted(layers, key=lambda layer: resolve_period(layer.timestamp, rule)):
        period = resolve_period(layer.timestamp, rule)
        print(f"  - {period} | {layer.label} | bands={list(layer.bands)} | {layer.path}")
    return 0


def _handle_verify(args: argparse.Namespace) -> int:
    cfg, layers = _discover(args)

    from builtup.ingest.layers import verify_layer

    reports = [verify_layer(layer, cfg.aggregation.band) for layer in layers]

    if args.json:
        print(json.dumps(reports, indent=2, default=str))
    else:
        for r in reports:
            status = "OK " if r.get("ok") else "BAD"
            detail = r.get("reason") or f"crs={r.get('crs')} res={r.get('res')}"
            print(f"[{status}] {r['label']}: {detail}")

    bad = [r for r in reports if not r.get("ok")]
    if bad:
        print(f"[INGEST] {len(bad)} of {len(reports)} layer(s) failed verification")
        return 1
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    ap = build_parser()
    args = ap.parse_args(argv)

    handlers = {
        "list-layers": _handle_list_layers,
        "verify": _handle_verify,
    }

    handler = handlers.get(args.command)
    if handler is None:
        raise SystemExit(f"Unknown command: {args.command}")

    return handler(args)


if __name__ == "__main__":
    raise SystemExit(main())
