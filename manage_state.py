#!/usr/bin/env python3
"""
State Management Utility

This script provides utilities to inspect and manage stored watcher state:
- List monitored URLs and snapshots
- Show change history
- Search snapshots and history, with text reports and JSON exports
- Show statistics and export state
- Clear history or all data
"""

import asyncio
import sys
from pathlib import Path
from typing import List, Tuple

# Add project root to Python path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

from utilities.config import config
from utilities.logger import setup_logging
from watcher.bootstrap import build_service
from watcher.exceptions import WatcherError
from watcher.models import SearchOptions
from watcher.service import WatchService

USAGE = """Usage: python manage_state.py <command> [args]

Commands:
  list                    - List monitored URLs and stored snapshots
  history [url]           - Show change history
  search <query> [flags]  - Search snapshots and history
  report <query> [flags]  - Write a text search report
  export <query> [flags]  - Write a JSON search export
  stats                   - Show statistics and export state (JSON and CSV)
  clear-history           - Remove all change history
  clear-all               - Remove all stored data

Search flags:
  --regex  --case-sensitive  --snapshots-only  --history-only
  --url <url>  --days <n>

Examples:
  python manage_state.py search "price" --days 7
  python manage_state.py report "\\d+ items" --regex
"""


def parse_search_args(args: List[str]) -> Tuple[str, SearchOptions]:
    """Split a query and its flags into a query string and SearchOptions."""
    if not args:
        raise ValueError("query required")

    query = args[0]
    options = {}
    rest = iter(args[1:])
    for arg in rest:
        if arg == "--regex":
            options["use_regex"] = True
        elif arg == "--case-sensitive":
            options["case_sensitive"] = True
        elif arg == "--snapshots-only":
            options["include_history"] = False
        elif arg == "--history-only":
            options["include_snapshots"] = False
        elif arg == "--url":
            options["url_filter"] = next(rest, None)
        elif arg == "--days":
            options["max_age_days"] = int(next(rest, "0"))
        else:
            raise ValueError(f"unknown flag {arg}")

    return query, SearchOptions(**options)


def list_state(service: WatchService) -> None:
    print("\n" + "=" * 80)
    print("📋 MONITORED URLS")
    print("=" * 80)

    if not service.monitored_urls:
        print("❌ No URLs are currently being monitored")
    for i, url in enumerate(service.monitored_urls, 1):
        print(f"{i:3d}. {url}")

    print("\n" + "=" * 80)
    print("📸 SNAPSHOTS")
    print("=" * 80)

    snapshots = service.snapshot_store.items()
    if not snapshots:
        print("❌ No snapshots stored")
    for url, snapshot in snapshots:
        print(f"   {url}")
        print(f"     Fingerprint: {snapshot.fingerprint} | Content Length: {len(snapshot.normalized_content)}")


def show_history(service: WatchService, url: str = None) -> None:
    history = service.get_history(url)

    print("\n" + "=" * 80)
    print("🕑 CHANGE HISTORY")
    print("=" * 80)

    if not history:
        print("❌ No changes have been detected yet")
        return

    for history_url, records in history.items():
        print(f"\n{history_url}")
        print(f"   {len(records)} changes detected:")
        for record in records:
            print(
                f"   - {record.timestamp.isoformat()} "
                f"({len(record.old_content)} -> {len(record.new_content)} chars)"
            )


def run_search(service: WatchService, query: str, options: SearchOptions) -> None:
    results = service.search(query, options)
    total_matches = sum(result.match_count for result in results)

    print(f"\n🔍 {total_matches} matches in {len(results)} results for \"{query}\"")
    for result in results:
        print(f"\n{result.url} [{result.source_kind.value}] {result.match_count} matches ({result.timestamp.isoformat()})")
        for context in result.contexts[:3]:
            print(f"   {context.render()}")


def show_statistics(service: WatchService) -> None:
    stats = service.get_statistics()
    state = service.get_all_state()
    builder = service.report_builder

    print("\n" + "=" * 80)
    print("📊 STATE STATISTICS")
    print("=" * 80)
    print(f"🔗 Monitored URLs: {stats.monitored_urls}")
    print(f"📸 Stored Snapshots: {stats.stored_snapshots}")
    print(f"🕑 Total Changes: {stats.total_changes}")
    print(f"📅 Last Change: {stats.last_change_at.isoformat() if stats.last_change_at else 'None'}")

    json_path = builder.export_state_json(state)
    csv_path = builder.export_history_csv(state)
    print(f"\n💾 State exported to {json_path}")
    print(f"💾 History exported to {csv_path}")


async def main():
    """Main function."""
    if len(sys.argv) < 2:
        print(USAGE)
        sys.exit(1)

    command = sys.argv[1].lower()
    args = sys.argv[2:]

    setup_logging(
        log_level=config.log_level,
        log_format=config.log_format,
        log_file=config.log_file,
        debug=config.debug
    )

    service = build_service(config)

    try:
        await service.start()

        if command == "list":
            list_state(service)
        elif command == "history":
            show_history(service, args[0] if args else None)
        elif command in ("search", "report", "export"):
            try:
                query, options = parse_search_args(args)
            except ValueError as e:
                print(f"❌ Error: {e}")
                print(USAGE)
                sys.exit(1)

            if command == "search":
                run_search(service, query, options)
            elif command == "report":
                path = service.report_builder.write_report(service.build_report(query, options))
                print(f"📝 Report written to {path}")
            else:
                path = service.report_builder.write_export(service.build_export(query, options))
                print(f"📦 Export written to {path}")
        elif command == "stats":
            show_statistics(service)
        elif command == "clear-history":
            await service.clear_history()
            print("✅ History cleared")
        elif command == "clear-all":
            await service.clear_all_state()
            print("✅ All data cleared")
        else:
            print(f"❌ Unknown command: {command}")
            print("Available commands: list, history, search, report, export, stats, clear-history, clear-all")
            sys.exit(1)

    except WatcherError as e:
        print(f"❌ {e}")
        sys.exit(1)
    finally:
        await service.stop()


if __name__ == "__main__":
    asyncio.run(main())
