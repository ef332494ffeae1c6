"""Command line runner for the RowSync bridge."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Iterable, Optional, Tuple

from rowsync import deps_bootstrap
from rowsync.app import build_reconciler
from rowsync.event_worker import EventWorker
from rowsync.logging_config import configure_logging, get_log_path
from rowsync.reconciler import EventOutcome, RowReconciler, resolve_event

logger = logging.getLogger(__name__)


def _settings_path(args: argparse.Namespace) -> Optional[Path]:
    return Path(args.settings).expanduser() if args.settings else None


def _format_outcome(outcome: EventOutcome) -> str:
    text = f"{outcome.event.value}: {outcome.status.value}"
    if outcome.plan is not None:
        text += f" {outcome.plan.range}"
    if outcome.updated_cells is not None:
        text += f" ({outcome.updated_cells} cells)"
    if outcome.error is not None:
        text += f" - {outcome.error}"
    return text


def parse_event_line(line: str) -> Optional[Tuple[str, str]]:
    """Split ``"Event Name: payload"``; ``None`` for blank or malformed lines."""

    text = line.rstrip("\r\n")
    if not text.strip() or ":" not in text:
        return None
    event_name, payload = text.split(":", 1)
    if payload.startswith(" "):
        payload = payload[1:]
    return event_name.strip(), payload


def command_fire(args: argparse.Namespace, reconciler: Optional[RowReconciler] = None) -> int:
    try:
        kind = resolve_event(args.event)
    except ValueError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2
    reconciler = reconciler or build_reconciler(_settings_path(args))
    outcome = reconciler.run(kind, args.payload)
    print(_format_outcome(outcome))
    return 0 if outcome.ok else 1


def command_listen(
    args: argparse.Namespace,
    reconciler: Optional[RowReconciler] = None,
    lines: Optional[Iterable[str]] = None,
) -> int:
    reconciler = reconciler or build_reconciler(_settings_path(args))
    worker = EventWorker(reconciler, outcome_callback=lambda outcome: print(_format_outcome(outcome), flush=True))
    for line in lines if lines is not None else sys.stdin:
        parsed = parse_event_line(line)
        if parsed is None:
            if line.strip():
                logger.warning("Ignoring malformed event line: %r", line)
            continue
        worker.submit(*parsed)
    worker.wait()
    return 0


def command_status(args: argparse.Namespace, reconciler: Optional[RowReconciler] = None) -> int:
    reconciler = reconciler or build_reconciler(_settings_path(args))
    missing = deps_bootstrap.check_google_deps()
    print(f"Connection : {reconciler.connection_status()}")
    print(f"Google deps: {'missing ' + ', '.join(missing) if missing else 'ready'}")
    print(f"Log file   : {get_log_path()}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Append or merge event rows into a Google Sheets tab")
    parser.add_argument("--settings", help="Path to sync_settings.json")
    parser.add_argument("--verbose", action="store_true", help="Echo log output to stderr")
    subparsers = parser.add_subparsers(dest="command", required=True)

    fire_parser = subparsers.add_parser("fire", help="Handle a single event")
    fire_parser.add_argument("event", help='Event name, e.g. "Append Row"')
    fire_parser.add_argument("payload", help="Comma separated row payload")
    fire_parser.set_defaults(func=command_fire)

    listen_parser = subparsers.add_parser(
        "listen",
        help='Read "Event Name: payload" lines from stdin',
    )
    listen_parser.set_defaults(func=command_listen)

    status_parser = subparsers.add_parser("status", help="Show configuration and dependency status")
    status_parser.set_defaults(func=command_status)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(logging.DEBUG if args.verbose else logging.INFO, console=args.verbose)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
