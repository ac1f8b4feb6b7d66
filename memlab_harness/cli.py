"""Command-line interface for memlab-harness."""

import argparse
import logging
import os
import sys
from typing import Optional

from .analyzer import MemlabAnalyzer
from .models import LeakRecord
from .orchestrator import FILE_EXTENSIONS, analyze_memory_leaks
from .renderer import REPORT_MODES

DEFAULT_DIRECTORY = "./memlab-snapshots"
DEFAULT_REPORT_BASE = "memlab-report"


def main(argv: Optional[list] = None) -> int:
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(
        prog="memlab-harness",
        description="Capture heap snapshots and report memory leaks with memlab",
        epilog="""
Examples:
  memlab-harness analyze                         Console report for ./memlab-snapshots
  memlab-harness analyze snaps json report       Write report.json
  memlab-harness capture https://example.com --selector "a.nav"
  memlab-harness help                            Show detailed help
""",
        formatter_class=argparse.RawDescriptionHelpFormatter
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Debug logging"
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # analyze command
    analyze_parser = subparsers.add_parser(
        "analyze",
        help="Find leaks in a captured snapshot directory"
    )
    analyze_parser.add_argument(
        "directory",
        nargs="?",
        help=f"Snapshot directory (default: $MEMLAB_HARNESS_OUTPUT or {DEFAULT_DIRECTORY})"
    )
    analyze_parser.add_argument(
        "format",
        nargs="?",
        default="console",
        choices=REPORT_MODES,
        help="Report format (default: console)"
    )
    analyze_parser.add_argument(
        "output",
        nargs="?",
        default=DEFAULT_REPORT_BASE,
        help=f"Report file name without extension (default: {DEFAULT_REPORT_BASE})"
    )

    # capture command
    capture_parser = subparsers.add_parser(
        "capture",
        help="Snapshot a page before, during and after an interaction"
    )
    capture_parser.add_argument("url", help="Page to load for the baseline snapshot")
    capture_parser.add_argument(
        "--selector",
        required=True,
        metavar="CSS",
        help="Element to click for the target snapshot"
    )
    capture_parser.add_argument(
        "--out",
        metavar="DIR",
        help=f"Snapshot directory (default: $MEMLAB_HARNESS_OUTPUT or {DEFAULT_DIRECTORY})"
    )
    capture_parser.add_argument(
        "--test-name",
        default="memory-leak-test",
        help="Test name recorded in run-meta.json"
    )
    capture_parser.add_argument(
        "--action-name",
        help="Name of the target step in snap-seq.json"
    )
    capture_parser.add_argument(
        "--wait-ms",
        type=int,
        default=0,
        help="Extra wait after each step, in milliseconds"
    )
    capture_parser.add_argument(
        "--headed",
        action="store_true",
        help="Show the browser window"
    )
    capture_parser.add_argument(
        "--strict-gc",
        action="store_true",
        help="Fail if garbage collection cannot run before a snapshot"
    )
    capture_parser.add_argument(
        "--analyze",
        metavar="FORMAT",
        choices=REPORT_MODES,
        help="Analyze right after capture (console, json or text)"
    )
    capture_parser.add_argument(
        "--report-base",
        default=DEFAULT_REPORT_BASE,
        help=f"Report file name without extension (default: {DEFAULT_REPORT_BASE})"
    )

    # help command
    subparsers.add_parser(
        "help",
        help="Show detailed help"
    )

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    # Handle subcommands
    if args.command == "analyze":
        return cmd_analyze(args)
    elif args.command == "capture":
        return cmd_capture(args)
    elif args.command == "help":
        return cmd_help()
    else:
        parser.print_help()
        return 0


def default_directory() -> str:
    return os.environ.get("MEMLAB_HARNESS_OUTPUT") or DEFAULT_DIRECTORY


def cmd_analyze(args) -> int:
    """Analyze a snapshot directory."""
    directory = args.directory or default_directory()

    print("Starting analysis with:", file=sys.stderr)
    print(f"  Directory: {directory}", file=sys.stderr)
    print(f"  Format:    {args.format}", file=sys.stderr)
    if args.format in FILE_EXTENSIONS:
        print(f"  Output File: {args.output}{FILE_EXTENSIONS[args.format]}", file=sys.stderr)

    try:
        leaks = analyze_memory_leaks(directory, args.format, args.output, analyzer=MemlabAnalyzer())
    except Exception as e:
        print(f"Analysis failed: {e}", file=sys.stderr)
        return 1

    print_summary(leaks, args.format)
    return 0


def cmd_capture(args) -> int:
    """Capture snapshots with Playwright, optionally analyzing them."""
    from .browser import run_memory_leak_test

    directory = args.out or default_directory()
    try:
        harness = run_memory_leak_test(
            args.url,
            args.selector,
            output_dir=directory,
            test_name=args.test_name,
            action_name=args.action_name,
            wait_ms=args.wait_ms,
            headless=not args.headed,
            strict_gc=args.strict_gc,
        )
        print(f"Snapshots written to {harness.output_dir}", file=sys.stderr)

        if args.analyze:
            harness.analyzer = MemlabAnalyzer()
            leaks = harness.analyze(args.analyze, args.report_base)
            print_summary(leaks, args.analyze)
    except Exception as e:
        print(f"Capture failed: {e}", file=sys.stderr)
        return 1

    return 0


def print_summary(leaks: list, output_format: str) -> None:
    """Print the leak count, noting when leak details look missing."""
    print("\nAnalysis process finished.", file=sys.stderr)
    if not leaks:
        print("No leaks detected.", file=sys.stderr)
        return

    records = [LeakRecord.from_raw(leak) for leak in leaks]
    print(f"Found {len(records)} potential memory leak(s). Review details.", file=sys.stderr)
    details_found = any(
        (isinstance(leak.retained_size, (int, float)) and leak.retained_size > 0)
        or leak.node_count
        for leak in records
    )
    if not details_found and output_format != "json":
        print(
            "  (Note: Leak details like size/trace seem missing. Check raw data or memlab version/config)",
            file=sys.stderr,
        )


def cmd_help() -> int:
    """Show detailed help."""
    help_text = """
MEMLAB-HARNESS - Heap snapshot capture and memlab leak reports

COMMANDS
  memlab-harness analyze [DIR] [FORMAT] [OUTPUT]   Report leaks in a snapshot directory
  memlab-harness capture URL --selector CSS        Capture baseline/target/final snapshots
  memlab-harness help                              Show this help

ANALYZE ARGUMENTS
  DIR        Snapshot directory (default: ./memlab-snapshots)
  FORMAT     console, json or text (default: console)
  OUTPUT     Report file name without extension (default: memlab-report)

CAPTURE OPTIONS
  --selector CSS       Element clicked for the target snapshot
  --out DIR            Snapshot directory (default: ./memlab-snapshots)
  --test-name NAME     Test name in run-meta.json
  --action-name NAME   Target step name in snap-seq.json
  --wait-ms N          Extra wait after each step
  --headed             Show the browser window
  --strict-gc          Fail if garbage collection cannot run
  --analyze FORMAT     Analyze right after capture
  --report-base NAME   Report file name without extension

LAYOUT
  DIR/data/cur/s1.heapsnapshot    baseline (page load)
  DIR/data/cur/s2.heapsnapshot    target (after the action)
  DIR/data/cur/s3.heapsnapshot    final (after going back)
  DIR/data/cur/snap-seq.json      interaction sequence
  DIR/data/cur/run-meta.json      browser and run details

OUTPUT
  json        OUTPUT.json
  text        OUTPUT.txt
  console     stdout
  On analysis failure in json/text mode, details go to OUTPUT-error.log.

ENVIRONMENT
  MEMLAB_NODE              Node executable (default: node). @memlab/api must be installed.
  MEMLAB_HARNESS_OUTPUT    Default snapshot directory.
"""
    print(help_text)
    return 0


if __name__ == "__main__":
    sys.exit(main())
