#!/usr/bin/env python3

import argparse
from collections.abc import Callable, Sequence
from pathlib import Path

from canasta.runtime.paths import reset_paths


def _coerce_exit_code(code: object) -> int:
    if code is None:
        return 0
    if isinstance(code, int):
        return code
    return 1


def _run_legacy_command(command: Callable[[argparse.Namespace], None], args: argparse.Namespace) -> int:
    """
    Normalize command handlers that call sys.exit().

    This keeps process termination centralized in this module's entrypoint.
    """
    try:
        command(args)
    except SystemExit as exc:
        return _coerce_exit_code(exc.code)
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(
        description="Colombian grocery ticket scanner",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Commands:
  stores                     List stores with a dedicated parser
  detect <file>              Rank store detections for a ticket text
  parse <file> [--store]     Parse a ticket text (use - for stdin)
  scan <image> --user        OCR a ticket image and register it for review
  list --user                List a user's tickets
  show <ticket> --user       Show a ticket with its items and suggestions
  serve [--host --port]      Start the ticket server

Notes:
  Data lives under $CANASTA_HOME (default: current directory):
  config/ for matching and category rules, data/ for the database and images.
""",
    )
    parser.add_argument("--home", default=None, help="Project root (overrides CANASTA_HOME)")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    subparsers.add_parser("stores", help="List stores with a dedicated parser")

    detect_parser = subparsers.add_parser("detect", help="Rank store detections for a ticket text")
    detect_parser.add_argument("text_file", help="Ticket text file (- for stdin)")

    parse_parser = subparsers.add_parser("parse", help="Parse a ticket text")
    parse_parser.add_argument("text_file", help="Ticket text file (- for stdin)")
    parse_parser.add_argument("--store", default=None, help="Force a parser by store key")
    parse_parser.add_argument("--json", action="store_true", help="Print the parsed ticket as JSON")

    scan_parser = subparsers.add_parser("scan", help="OCR a ticket image and register it for review")
    scan_parser.add_argument("image", help="Path to ticket image")
    scan_parser.add_argument("--user", required=True, help="Owner of the ticket")
    scan_parser.add_argument("--store", default=None, help="Force a parser by store key")
    scan_parser.add_argument("--ocr-url", default=None, help="OCR service URL (default: $OCR_SERVICE_URL)")

    list_parser = subparsers.add_parser("list", help="List a user's tickets")
    list_parser.add_argument("--user", required=True, help="Ticket owner")
    list_parser.add_argument("--page", type=int, default=1, help="Page number (default: 1)")
    list_parser.add_argument("--limit", type=int, default=20, help="Tickets per page (default: 20)")

    show_parser = subparsers.add_parser("show", help="Show a ticket")
    show_parser.add_argument("ticket_id", help="Ticket id")
    show_parser.add_argument("--user", required=True, help="Ticket owner")

    serve_parser = subparsers.add_parser("serve", help="Start the ticket server")
    serve_parser.add_argument("--host", default="0.0.0.0", help="Host to bind to (default: 0.0.0.0)")
    serve_parser.add_argument("--port", type=int, default=8000, help="Port to bind to (default: 8000)")
    serve_parser.add_argument("--ocr-url", default=None, help="OCR service URL (default: $OCR_SERVICE_URL)")

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 1

    if args.home:
        reset_paths(Path(args.home))

    from canasta.cli import tickets

    commands: dict[str, Callable[[argparse.Namespace], None]] = {
        "stores": tickets.cmd_stores,
        "detect": tickets.cmd_detect,
        "parse": tickets.cmd_parse,
        "scan": tickets.cmd_scan,
        "list": tickets.cmd_list,
        "show": tickets.cmd_show,
        "serve": tickets.cmd_serve,
    }
    command = commands.get(args.command)
    if command is None:
        return 1
    return _run_legacy_command(command, args)


if __name__ == "__main__":
    raise SystemExit(main())
