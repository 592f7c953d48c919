#!/usr/bin/env python3
"""
Print aggregate statistics for the grant catalogue, optionally exporting
them to Excel.

Scans every grant once, so run it offline (cron or by hand), never from a
request handler.

Usage:
    python scripts/analyze_grant_data.py [--db PATH | --postgres] [--output FILE]

Examples:
    python scripts/analyze_grant_data.py                      # Local SQLite (GRANTS_DB_PATH)
    python scripts/analyze_grant_data.py --postgres           # Production (DATABASE_URL)
    python scripts/analyze_grant_data.py --output stats.xlsx  # Also write a workbook
"""

import sys
import argparse
import logging
from pathlib import Path

from dotenv import load_dotenv
from tqdm import tqdm

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from grantfinder.analysis.statistics import (
    DEFAULT_TOP_FIELDS,
    GrantStatistics,
    StatisticsSnapshot,
    snapshot_to_frames,
)
from grantfinder.config import GRANTS_DB_PATH, LOG_LEVEL
from grantfinder.core.exceptions import GrantFinderError
from grantfinder.core.money import format_usd_amount

load_dotenv()

# Configure logging
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def open_store(args):
    """Open the record store selected on the command line."""
    if args.postgres or args.dsn:
        from grantfinder.storage.postgres_store import PostgresGrantStore
        return PostgresGrantStore(args.dsn)

    from grantfinder.storage.grant_store import GrantStore
    return GrantStore(args.db)


def print_report(snapshot: StatisticsSnapshot):
    """Print the snapshot in the console report layout."""
    print()
    print("=" * 60)
    print("GRANT DATA ANALYSIS")
    print("=" * 60)
    print(f"Total grants: {snapshot.total_count}")

    if snapshot.null_counts:
        print()
        print("Missing values:")
        for nc in snapshot.null_counts.values():
            print(f"  {nc.field}: {nc.count} ({nc.percentage}%)")

    for field_name, entries in snapshot.top_values.items():
        print()
        print(f"Top {field_name}:")
        if not entries:
            print("  (no values)")
        for i, entry in enumerate(entries, 1):
            print(f"  {i}. {entry.name}: {entry.count} ({entry.percentage}%)")

    for field_name, summary in snapshot.numeric.items():
        print()
        print(f"{field_name} ({summary.count} grants with a value):")
        if summary.count:
            print(f"  Min:    {format_usd_amount(summary.min)}")
            print(f"  Median: {format_usd_amount(summary.median)}")
            print(f"  Max:    {format_usd_amount(summary.max)}")
        print("  Distribution:")
        for r in summary.ranges:
            print(f"    {r.name}: {r.count} ({r.percentage}%)")

    if snapshot.errors:
        print()
        print("Failed metrics:")
        for name, message in snapshot.errors.items():
            print(f"  {name}: {message}")
    print()


def export_to_excel(snapshot: StatisticsSnapshot, filename: str):
    """
    Write one sheet per metric table.

    Args:
        snapshot: Computed statistics
        filename: Output .xlsx path
    """
    import pandas as pd
    from openpyxl.styles import Font, PatternFill
    from openpyxl.utils import get_column_letter

    header_font = Font(bold=True, color="FFFFFF")
    header_fill = PatternFill(start_color="1F4E79", end_color="1F4E79", fill_type="solid")

    with pd.ExcelWriter(filename, engine="openpyxl") as writer:
        for sheet_name, frame in snapshot_to_frames(snapshot).items():
            # Excel caps sheet names at 31 characters
            sheet_name = sheet_name[:31]
            frame.to_excel(writer, sheet_name=sheet_name, index=False)

            ws = writer.sheets[sheet_name]
            for col_idx, header in enumerate(frame.columns, 1):
                cell = ws.cell(row=1, column=col_idx)
                cell.font = header_font
                cell.fill = header_fill
                ws.column_dimensions[get_column_letter(col_idx)].width = max(12, len(str(header)) + 4)
            ws.freeze_panes = 'A2'

    logger.info(f"Excel file saved: {filename}")


def main():
    parser = argparse.ArgumentParser(description='Aggregate statistics over the grant catalogue')
    parser.add_argument('--db', type=str, default=GRANTS_DB_PATH,
                        help=f'Path to SQLite database (default: {GRANTS_DB_PATH})')
    parser.add_argument('--postgres', action='store_true',
                        help='Read from PostgreSQL using DATABASE_URL')
    parser.add_argument('--dsn', type=str, default=None,
                        help='PostgreSQL connection string (implies --postgres)')
    parser.add_argument('--top', type=int, default=None,
                        help='Override N for every top-values table')
    parser.add_argument('--output', type=str, default=None,
                        help='Also export the statistics to this .xlsx file')
    args = parser.parse_args()

    top_fields = DEFAULT_TOP_FIELDS
    if args.top is not None:
        top_fields = {field_name: args.top for field_name in DEFAULT_TOP_FIELDS}

    try:
        store = open_store(args)
        stats = GrantStatistics(store)
        rows = tqdm(store.scan(), desc="Scanning grants", unit="grant")
        snapshot = stats.compute(top_fields=top_fields, rows=rows)
    except (GrantFinderError, ValueError) as e:
        logger.error(f"Analysis failed: {e}")
        return 1

    print_report(snapshot)

    if args.output:
        export_to_excel(snapshot, args.output)

    return 1 if snapshot.errors else 0


if __name__ == "__main__":
    sys.exit(main())
