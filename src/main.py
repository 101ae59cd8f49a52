"""
Group Timetable Extractor — CLI Entry Point
============================================
Loads the timetable workbook (local file or published URL), extracts the
week-indexed schedule and writes JSON + a validation report.
"""

import argparse
import json
import logging
import os
import sys
from datetime import date
from typing import List, Optional

from extractor import index_to_json
from validator import validate_schedule
from week_clock import ScheduleView
from workbook import DEFAULT_SOURCE_URL, FetchError, fetch_document, load_path, load_schedule

logger = logging.getLogger(__name__)


# ─────────────────────────────────────────────────────────────
# Helpers
# ─────────────────────────────────────────────────────────────

def print_weeks(view: ScheduleView) -> None:
    options = view.week_options()
    if not options:
        print("   (no weeks found)")
        return
    for option in options:
        print(f"   {option.label}")


def print_week(view: ScheduleView) -> None:
    days = view.index.get(view.current_week)
    if not days:
        print(f"\n📭 Week {view.current_week}: no schedule.")
        return
    print(f"\n📅 Week {view.current_week}:")
    for day in days:
        subjects = [e.subject for e in day.schedule]
        print(f"   {day.day}: {len(subjects)} entr{'y' if len(subjects) == 1 else 'ies'} — {', '.join(subjects)}")


# ─────────────────────────────────────────────────────────────
# CLI
# ─────────────────────────────────────────────────────────────

def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        description="Extract a week-indexed group timetable from a spreadsheet (or PDF) to JSON.",
    )
    parser.add_argument(
        "-i", "--input",
        default=None,
        help="Local .xlsx/.xls/.ods/.pdf file. If omitted the document is downloaded from --url.",
    )
    parser.add_argument(
        "--url",
        default=DEFAULT_SOURCE_URL,
        help="Spreadsheet export URL used when no --input is given.",
    )
    parser.add_argument(
        "-o", "--output-dir",
        default="output",
        help="Directory for schedule.json + validation_report.md. Default: ./output",
    )
    parser.add_argument(
        "--week",
        type=int,
        default=None,
        help="Week to display. Default: the current academic week.",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose (DEBUG-level) logging.",
    )
    return parser


def main(argv: Optional[List[str]] = None, today: Optional[date] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    log_level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )

    print("🚀 Group Timetable Extractor\n")

    try:
        if args.input:
            if not os.path.isfile(args.input):
                print(f"❌ Input file not found: {args.input}")
                return 1
            print(f"📄 Reading {args.input}")
            index, skipped = load_path(args.input)
        else:
            print("🌐 Downloading timetable...")
            content = fetch_document(args.url)
            index, skipped = load_schedule(content)
    except FetchError as e:
        logger.error("%s", e)
        print("❌ Could not load the timetable. Check the connection and try again.")
        return 1
    except Exception as e:
        logger.exception("Extraction failed")
        print(f"❌ Error during extraction: {e}")
        return 1

    os.makedirs(args.output_dir, exist_ok=True)

    json_path = os.path.join(args.output_dir, "schedule.json")
    with open(json_path, "w", encoding="utf-8") as f:
        json.dump(index_to_json(index), f, indent=4, ensure_ascii=False)
    print(f"💾 Data saved: {json_path}")

    result = validate_schedule(index, skipped)
    report_path = os.path.join(args.output_dir, "validation_report.md")
    with open(report_path, "w", encoding="utf-8") as f:
        f.write(result.report)
    print(f"📝 Report saved: {report_path}")

    view = ScheduleView(index, today)
    print(f"\n🗓  Weeks ({len(index)}):")
    print_weeks(view)

    if args.week is not None:
        view.select_week(args.week)
    print_week(view)

    if result.success:
        print("\n✨ PASSED: All checks passed.")
    else:
        print("\n⚠️  WARNING: Issues found. See report.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
