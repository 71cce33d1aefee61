#!/usr/bin/env python
"""
Command-line interface for osmgeo

Usage:
    python cli.py count honolulu.osm.pbf --key highway --output tags.csv
    python cli.py extract honolulu.osm.pbf --key natural --value tree --output trees.geojson
    python cli.py transform --from EPSG:4326 --to EPSG:3857 -- -157.8,21.3
"""

import csv
import json
import sys
import argparse
from typing import List, Optional, Tuple

from loguru import logger

from osmgeo.config import load_config
from osmgeo.errors import OSMGeoError
from osmgeo.osm.assembler import feature_collection
from osmgeo.pipeline import TagPipeline, count_tags, extract_tag
from osmgeo.proj.transform import build_transform


def setup_logging(verbose: bool = False, level: str = "INFO"):
    """Configure logging"""
    logger.remove()
    level = "DEBUG" if verbose else level
    logger.add(
        sys.stderr,
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{message}</cyan>",
        level=level
    )


def _write_rows(rows: List[List[str]], output: Optional[str]):
    if output:
        with open(output, "w", newline="", encoding="utf-8") as f:
            csv.writer(f).writerows(rows)
        logger.info(f"✓ Wrote {len(rows) - 1} rows to {output}")
    else:
        csv.writer(sys.stdout).writerows(rows)


def _write_json(data, output: Optional[str]):
    if output:
        with open(output, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
        logger.info(f"✓ Wrote {output}")
    else:
        json.dump(data, sys.stdout, ensure_ascii=False)
        sys.stdout.write("\n")


def cmd_count(args, config):
    """Count tag occurrences per primitive kind"""
    counts = count_tags(args.input, config.stats)
    if args.key:
        counts = counts.filter(lambda c: c.key == args.key)

    entries = list(counts)[:args.limit] if args.limit else list(counts)
    if args.json:
        _write_json([c.to_model().model_dump() for c in entries], args.output)
    else:
        table = counts.table()
        _write_rows(table[:len(entries) + 1], args.output)
    return 0


def cmd_extract(args, config):
    """Extract geometries for one tag as GeoJSON"""
    if args.stats:
        result = TagPipeline(config).run(args.input, args.key, args.value)
        features, skipped = result.features, result.skipped
        logger.info(f"Tag statistics: {len(result.counts)} distinct tags")
    else:
        handle = extract_tag(args.input, args.key, args.value, config.assembly)
        features, skipped = handle.geom(), handle.skipped

    _write_json(feature_collection(features), args.output)
    logger.info(f"✓ {len(features)} features for {args.key}={args.value}, {len(skipped)} skipped")
    for item in skipped[:10]:
        logger.warning(f"  skipped {item.kind.value} {item.id}: {item.reason}")
    return 0


def _parse_point(text: str) -> Tuple[float, float]:
    try:
        x, y = (float(v) for v in text.split(","))
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected x,y but got {text!r}")
    return x, y


def cmd_transform(args, config):
    """Reproject coordinate pairs"""
    transform = build_transform(args.source_crs, args.dest_crs, config.transform)
    failed = 0
    for x, y in args.points:
        out_x, out_y, error = transform.try_transform(x, y)
        if error is not None:
            logger.error(f"({x}, {y}): {error}")
            failed += 1
        print(f"{out_x!r},{out_y!r}")
    return 0 if failed == 0 else 1


def main(argv: Optional[List[str]] = None):
    parser = argparse.ArgumentParser(
        description="osmgeo CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  Count tags:
    python cli.py count honolulu.osm.pbf --key highway

  Extract a tag as GeoJSON:
    python cli.py extract honolulu.osm.pbf --key building --value yes -o buildings.geojson

  Reproject points:
    python cli.py transform --from EPSG:4326 --to EPSG:27700 -- -0.1276,51.5074
        """
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")
    parser.add_argument("--env-file", help="Read OSMGEO_* settings from this .env file")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # Count command
    count_parser = subparsers.add_parser("count", help="Count tag occurrences")
    count_parser.add_argument("input", help="OSM file (.osm.pbf, .osm) or Overpass JSON")
    count_parser.add_argument("--key", "-k", help="Only report tags with this key")
    count_parser.add_argument("--limit", "-n", type=int, help="Report at most this many tags")
    count_parser.add_argument("--json", action="store_true", help="Write JSON instead of CSV")
    count_parser.add_argument("--output", "-o", help="Output file (stdout if not specified)")

    # Extract command
    extract_parser = subparsers.add_parser("extract", help="Extract geometries carrying a tag")
    extract_parser.add_argument("input", help="OSM file (.osm.pbf, .osm) or Overpass JSON")
    extract_parser.add_argument("--key", "-k", required=True, help="Tag key")
    extract_parser.add_argument("--value", required=True, help="Tag value")
    extract_parser.add_argument("--stats", action="store_true", help="Also count tags in the same pass")
    extract_parser.add_argument("--output", "-o", help="Output GeoJSON file (stdout if not specified)")

    # Transform command
    transform_parser = subparsers.add_parser("transform", help="Reproject x,y coordinate pairs")
    transform_parser.add_argument("--from", dest="source_crs", required=True, help="Source CRS")
    transform_parser.add_argument("--to", dest="dest_crs", required=True, help="Destination CRS")
    transform_parser.add_argument("points", nargs="+", type=_parse_point, help="Points as x,y")

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    try:
        config = load_config(args.env_file)
    except OSMGeoError as e:
        setup_logging(args.verbose)
        logger.error(str(e))
        return 1
    setup_logging(args.verbose, config.log_level)

    try:
        if args.command == "count":
            return cmd_count(args, config)
        if args.command == "extract":
            return cmd_extract(args, config)
        return cmd_transform(args, config)
    except OSMGeoError as e:
        logger.error(f"{args.command} failed: {e}")
        if args.verbose:
            import traceback
            traceback.print_exc()
        return 1


if __name__ == "__main__":
    sys.exit(main())
