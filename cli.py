#!/usr/bin/env python3
"""
Cost Scraper CLI

Command-line interface for the data-quality engine and ingestion pipeline.
"""

import argparse
import json
import logging
import sys
from datetime import timedelta

from dotenv import load_dotenv

# Load environment
load_dotenv()

from cost_scraper.adapters.feed import JSONFeedSource
from cost_scraper.core.pipeline import IngestionPipeline
from cost_scraper.core.storage import DataStore, read_data_points, write_data_points
from cost_scraper.quality.dedup import DuplicateDetector
from cost_scraper.quality.freshness import FreshnessMonitor
from cost_scraper.quality.outliers import OutlierDetector, OutlierMethod
from cost_scraper.quality.reporter import QualityReporter
from cost_scraper.quality.validator import DataPointValidator, ValidatorConfig


def cmd_validate(args):
    """Validate a file of data points and print a quality report."""
    points = read_data_points(args.input)
    config = ValidatorConfig.from_env()
    if args.strict:
        config.strict_mode = True

    validator = DataPointValidator(config)
    reporter = QualityReporter(validator, min_score=args.min_score)

    # Batch checks run per chunk, as in IngestionPipeline.run
    results = []
    chunk_size = config.max_batch_size
    for start in range(0, len(points), chunk_size):
        results.extend(validator.validate_batch(points[start : start + chunk_size]))
    report = reporter.analyze_results(results)
    print(report.summary_text())

    if args.output:
        report.save(args.output)
        print(f"\nSaved report to {args.output}")

    return 1 if report.invalid_points else 0


def cmd_outliers(args):
    """Report statistical outliers."""
    points = read_data_points(args.input)
    if args.category:
        points = [p for p in points if p.category == args.category]

    detector = OutlierDetector(args.method, args.threshold)
    infos = detector.detect_outliers_with_info(points)

    print(f"\n{len(infos)} outliers in {len(points)} points "
          f"({detector.method.value}, threshold {detector.threshold}):\n")
    for info in infos:
        dp = info.data_point
        print(f"  [{info.index}] {dp.category} / {dp.item_name}: {dp.price} (score {info.score:.2f})")

    if args.output:
        with open(args.output, "w", encoding="utf-8") as f:
            json.dump([i.to_dict() for i in infos], f, indent=2)


def cmd_duplicates(args):
    """Report duplicate groups."""
    points = read_data_points(args.input)
    detector = DuplicateDetector(
        time_window=timedelta(hours=args.time_window_hours),
        price_threshold=args.price_threshold,
    )
    report = detector.generate_report(points)

    print(f"\nTotal points:     {report.total_points}")
    print(f"Duplicate groups: {report.duplicate_groups}")
    print(f"Duplicates:       {report.total_duplicates} ({report.duplicate_rate:.1%})\n")
    for group in report.groups:
        print(f"  {group}")

    if args.dedupe_output:
        unique = detector.deduplicate(points)
        write_data_points(args.dedupe_output, unique)
        print(f"\nWrote {len(unique)} unique points to {args.dedupe_output}")


def cmd_freshness(args):
    """Show the freshness of each source's latest data."""
    points = read_data_points(args.input)
    monitor = FreshnessMonitor()
    latest = monitor.latest_by_source(points)
    freshness = monitor.generate_map(latest)

    print("\n" + "=" * 50)
    print("  SOURCE FRESHNESS")
    print("=" * 50)
    for source in sorted(freshness):
        max_age = monitor.get_max_age(source)
        print(f"  {source:20s} {freshness[source]!s:8s} (max age {max_age})")
    print("=" * 50 + "\n")

    stale = freshness.get_stale_sources()
    if stale:
        print(f"Sources needing a re-scrape: {', '.join(stale)}")
        return 1
    return 0


def cmd_ingest(args):
    """Fetch a feed, validate it and store accepted points."""
    with IngestionPipeline(
        JSONFeedSource(args.url),
        store=DataStore(args.data_dir),
        min_score=args.min_score,
    ) as pipeline:
        stats = pipeline.run()
    print(json.dumps(stats.to_dict(), indent=2))


def main():
    parser = argparse.ArgumentParser(
        description="Cost Scraper CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python cli.py validate --input data/points.json
  python cli.py outliers --input data/points.json --method modified_zscore
  python cli.py duplicates --input data/points.jsonl --dedupe-output unique.json
  python cli.py freshness --input data/points.json
  python cli.py ingest --url https://example.test/feed.json
        """
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Debug logging"
    )

    subparsers = parser.add_subparsers(dest="command", help="Command")

    # Validate
    sub = subparsers.add_parser("validate", help="Validate data points")
    sub.add_argument("--input", "-i", required=True, help="JSON or JSONL file")
    sub.add_argument("--strict", action="store_true", help="Warnings invalidate records")
    sub.add_argument("--min-score", type=float, default=0.7, help="Acceptance score")
    sub.add_argument("--output", "-o", help="Report output file")
    sub.set_defaults(func=cmd_validate)

    # Outliers
    sub = subparsers.add_parser("outliers", help="Detect price outliers")
    sub.add_argument("--input", "-i", required=True, help="JSON or JSONL file")
    sub.add_argument(
        "--method", "-m",
        choices=[m.value for m in OutlierMethod],
        default=OutlierMethod.IQR.value,
        help="Detection method"
    )
    sub.add_argument("--threshold", "-t", type=float, help="Method threshold")
    sub.add_argument("--category", "-c", help="Only this category")
    sub.add_argument("--output", "-o", help="Output file")
    sub.set_defaults(func=cmd_outliers)

    # Duplicates
    sub = subparsers.add_parser("duplicates", help="Find duplicate data points")
    sub.add_argument("--input", "-i", required=True, help="JSON or JSONL file")
    sub.add_argument("--time-window-hours", type=float, default=24, help="Near-duplicate window")
    sub.add_argument("--price-threshold", type=float, default=0.05, help="Relative price difference")
    sub.add_argument("--dedupe-output", help="Write exact-deduplicated points here")
    sub.set_defaults(func=cmd_duplicates)

    # Freshness
    sub = subparsers.add_parser("freshness", help="Check source freshness")
    sub.add_argument("--input", "-i", required=True, help="JSON or JSONL file")
    sub.set_defaults(func=cmd_freshness)

    # Ingest
    sub = subparsers.add_parser("ingest", help="Fetch, validate and store a feed")
    sub.add_argument("--url", "-u", required=True, help="Feed URL")
    sub.add_argument("--data-dir", "-d", default=None, help="Data directory")
    sub.add_argument("--min-score", type=float, default=None, help="Acceptance score")
    sub.set_defaults(func=cmd_ingest)

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s [%(levelname)s] %(message)s',
        datefmt='%H:%M:%S'
    )

    if not args.command:
        parser.print_help()
        return 1

    return args.func(args) or 0


if __name__ == "__main__":
    sys.exit(main())
