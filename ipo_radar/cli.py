"""
IPO Radar CLI

Runs a refresh from the command line and reports the result.

Usage:
    ipo-radar refresh                      # Summary table
    ipo-radar refresh --json               # Full result as JSON
    ipo-radar refresh --output out.json    # Write JSON to a file
    ipo-radar sources                      # Show configured sources
"""
import argparse
import asyncio
import json
import sys
from typing import List, Optional

from ipo_radar import __version__
from ipo_radar.adapters.ipowatch import default_sources
from ipo_radar.core.config import get_settings
from ipo_radar.core.logging_config import configure_logging
from ipo_radar.jobs.ipo_refresh import RefreshResult, run_ipo_refresh
from ipo_radar.services.ipo_store import InMemoryIpoStore, sync_refresh_to_store


def _print_summary(result: RefreshResult, store: InMemoryIpoStore):
    print("\n" + "=" * 60)
    print(f"IPO REFRESH {'OK' if result.success else 'FAILED'}")
    print("=" * 60)
    print(f"  Records: {len(result.records)}")
    print(f"  Duration: {result.duration_ms:.0f}ms")
    print(f"  Merges: {result.exact_merges} exact, {result.fuzzy_merges} fuzzy")

    print("\nSources:")
    for name, count in result.source_counts.items():
        print(f"  {name}: {count}")

    if result.enrichment:
        print("\nEnrichment:")
        for name, stats in result.enrichment.items():
            print(f"  {name}: {stats['enriched']}/{stats['attempted']}")

    records = store.list_ipos()
    if records:
        print("\nIPOs:")
        for record in records:
            band = (
                f"{record.price_band_low:g}-{record.price_band_high:g}"
                if record.price_band_low is not None and record.price_band_high is not None
                else "-"
            )
            gmp = f"{record.gmp:g}" if record.gmp is not None else "-"
            print(
                f"  [{record.status.value:<8}] {record.company_name} "
                f"({record.ipo_type.value}) band={band} gmp={gmp} close={record.close_date or '-'}"
            )

    if result.diagnostics:
        print(f"\nDiagnostics ({len(result.diagnostics)}):")
        for diagnostic in result.diagnostics:
            source = f" {diagnostic.source}" if diagnostic.source else ""
            print(f"  [{diagnostic.severity.value}] {diagnostic.stage.value}{source}: {diagnostic.message}")


def cmd_refresh(args) -> int:
    """Run one refresh and sync it into an in-memory store."""
    result = asyncio.run(run_ipo_refresh())
    store = InMemoryIpoStore()
    sync_refresh_to_store(store, result.records)

    if args.json or args.output:
        payload = json.dumps(result.to_dict(), indent=2)
        if args.output:
            with open(args.output, "w", encoding="utf-8") as f:
                f.write(payload)
            print(f"Wrote {len(result.records)} records to {args.output}")
        else:
            print(payload)
    else:
        _print_summary(result, store)

    return 0 if result.success else 1


def cmd_sources(args) -> int:
    """List configured sources."""
    settings = get_settings()
    stats = default_sources(settings.SHORT_RANGE_ROLLOVER_DAYS).get_stats()

    print(f"\n{stats['total_sources']} sources on {stats['pages']} pages:")
    for name, source in stats["sources"].items():
        state = "enabled" if source["enabled"] else "disabled"
        print(f"  {name} [{state}] priority={source['priority']}")
        print(f"    {source['url']}#{source['table_id']} ({source['ipo_type']})")

    print("\nGMP sources:")
    for url in settings.GMP_SOURCE_URLS:
        print(f"  {url}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ipo-radar",
        description="IPO listing reconciliation",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s refresh                     # Run a refresh, print summary
  %(prog)s refresh --json              # Print full result as JSON
  %(prog)s --log-level DEBUG refresh   # Verbose run
        """,
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    refresh_parser = subparsers.add_parser("refresh", help="Fetch, reconcile and enrich IPO listings")
    refresh_parser.add_argument("--json", action="store_true", help="Print the result as JSON")
    refresh_parser.add_argument("--output", help="Write the JSON result to FILE")
    refresh_parser.set_defaults(func=cmd_refresh)

    sources_parser = subparsers.add_parser("sources", help="Show configured sources")
    sources_parser.set_defaults(func=cmd_sources)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not getattr(args, "func", None):
        parser.print_help()
        return 1

    configure_logging(args.log_level or get_settings().LOG_LEVEL)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
