from __future__ import annotations

import _bootstrap  # noqa: F401

import argparse
import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path

from cotripfeed.ingestion.errors import IngestError, classify_ingest_error
from cotripfeed.ingestion.ledger import safe_append_ledger_entry
from cotripfeed.ingestion.schemas import input_schema, output_schema
from cotripfeed.logging_config import configure_logging
from cotripfeed.settings import AppConfig, load_config
from cotripfeed.storage.sinks import GeoJsonFileSink, features_geojson_path
from cotripfeed.task import run_once

logger = logging.getLogger("cotripfeed.fetch_incidents")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Fetch CoTrip incidents and write them as a GeoJSON FeatureCollection.")
    p.add_argument("--config", default=None, help="Config YAML (default: $COTRIPFEED_CONFIG or configs/config.yaml).")
    p.add_argument("--output", default=None, help="Output GeoJSON path (default: config.paths.output_dir/incidents.geojson).")
    p.add_argument("--state-dir", default=None, help="Override ledger dir (default: config.paths.state_dir).")
    p.add_argument("--token", default=None, help="CoTrip API key (default: $COTRIP_TOKEN or config.layer.token).")
    p.add_argument("--no-point", action="store_true", help="Drop Point geometries.")
    p.add_argument("--no-linestring", action="store_true", help="Drop LineString geometries.")
    p.add_argument("--no-polygon", action="store_true", help="Drop Polygon geometries.")
    p.add_argument("--profile", choices=["full", "minimal"], default=None, help="Metadata profile.")
    p.add_argument("--verbose", action="store_true", help="Log every output feature.")
    p.add_argument(
        "--print-schema",
        choices=["input", "output"],
        default=None,
        help="Print the JSON schema of the layer settings or of the feature metadata and exit.",
    )
    return p.parse_args(argv)


def apply_overrides(config: AppConfig, args: argparse.Namespace) -> AppConfig:
    updates: dict[str, object] = {}
    if args.token:
        updates["token"] = args.token
    if args.no_point:
        updates["allow_point"] = False
    if args.no_linestring:
        updates["allow_linestring"] = False
    if args.no_polygon:
        updates["allow_polygon"] = False
    if args.profile:
        updates["profile"] = args.profile
    if args.verbose:
        updates["verbose"] = True
    if not updates:
        return config
    return config.model_copy(update={"layer": config.layer.model_copy(update=updates)})


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    config = apply_overrides(load_config(args.config), args)

    if args.print_schema:
        schema = input_schema() if args.print_schema == "input" else output_schema(config.layer.profile)
        print(json.dumps(schema, indent=2))
        return 0

    configure_logging(verbose=config.layer.verbose)

    output_path = Path(args.output) if args.output else features_geojson_path(config.paths.output_dir)
    state_dir = Path(args.state_dir) if args.state_dir else config.paths.state_dir
    ledger_path = state_dir / "ingest_ledger.jsonl"

    entry: dict[str, object] = {
        "generated_at_utc": datetime.now(timezone.utc).isoformat(),
        "source": "cotrip",
        "runner": "fetch_incidents",
    }
    try:
        collection = run_once(config, sink=GeoJsonFileSink(output_path))
    except IngestError as exc:
        info = classify_ingest_error(exc)
        logger.error("CoTrip run failed (%s): %s", info.code, info.message)
        safe_append_ledger_entry(
            ledger_path,
            {**entry, "ok": False, "error_code": info.code, "error_kind": info.kind, "error": info.message},
        )
        return 1

    safe_append_ledger_entry(
        ledger_path,
        {
            **entry,
            "ok": True,
            "output_path": str(output_path),
            "features": len(collection.features),
        },
    )
    print(f"[cotrip] wrote {output_path} features={len(collection.features):,}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
