"""error-dedup: stream JSON-lines error signals through the deduplication cache."""

import json
import logging
import os
import signal
import sys
import threading
from argparse import ArgumentParser

from error_dedup.config import load_config, load_config_file
from error_dedup.dedup import DeduplicationService
from error_dedup.models import Signal
from error_dedup.stats import format_stats_json, format_stats_text

logger = logging.getLogger(__name__)

SEVERITY_LEVELS = {
    "critical": logging.ERROR,
    "high": logging.WARNING,
    "medium": logging.INFO,
    "low": logging.INFO,
}


def build_parser() -> ArgumentParser:
    """Build the CLI argument parser."""
    parser = ArgumentParser(
        prog="error-dedup",
        description="Deduplicate a stream of JSON-lines error signals.",
    )
    parser.add_argument(
        "files",
        nargs="*",
        default=["-"],
        help="JSON-lines signal file(s); '-' or nothing reads stdin",
    )
    parser.add_argument(
        "--config",
        help="YAML config file with a 'dedup' section",
    )
    parser.add_argument(
        "--output",
        choices=["text", "json"],
        default="text",
        help="Summary format (default: text)",
    )
    parser.add_argument(
        "--top",
        type=int,
        default=5,
        help="Show the N most frequent errors in the summary (default: 5)",
    )
    parser.add_argument(
        "--dashboard-port",
        type=int,
        help="Serve the JSON dashboard on this port until interrupted",
    )
    return parser


def iter_lines(paths):
    """Yield (line, source) pairs from files, '-' meaning stdin."""
    for path in paths:
        if path == "-":
            for line in sys.stdin:
                yield line, "<stdin>"
            continue
        with open(path, "r", encoding="utf-8") as f:
            for line in f:
                yield line, path


def parse_signal(line: str, source: str):
    """Parse one JSON line into a Signal; None for blank or malformed lines."""
    line = line.strip()
    if not line:
        return None
    try:
        return Signal.from_dict(json.loads(line))
    except (ValueError, KeyError, TypeError, AttributeError, RecursionError) as exc:
        logger.warning("Skipping malformed signal in %s: %s", source, exc)
        return None


def report(sig: Signal, result) -> None:
    if result.should_log:
        count = result.entry.count if result.entry else 1
        logger.log(
            SEVERITY_LEVELS[sig.severity],
            "[%s] %s (x%d)", sig.code, sig.message, count,
        )
    if result.should_alert:
        logger.warning("ALERT [%s] %s: %s", sig.severity, sig.code, sig.message)


def run_pipeline(args, service: DeduplicationService) -> int:
    """Feed every signal through *service* and print the summary."""
    processed = 0
    try:
        for line, source in iter_lines(args.files):
            sig = parse_signal(line, source)
            if sig is None:
                continue
            report(sig, service.process(sig))
            processed += 1
    except OSError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    logger.info("Processed %d signals", processed)
    stats = service.get_stats()
    top = service.get_most_frequent_errors(args.top)
    if args.output == "json":
        print(format_stats_json(stats, top))
    else:
        print(format_stats_text(stats, top))
    return 0


def main():
    logging.basicConfig(
        level=os.environ.get("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s [%(levelname)s] %(name)s — %(message)s",
        stream=sys.stderr,
    )

    args = build_parser().parse_args()
    config = load_config_file(args.config) if args.config else load_config()
    service = DeduplicationService(config)
    shutdown_event = threading.Event()

    def signal_handler(signum, frame):
        logger.info("Received signal %d, shutting down...", signum)
        shutdown_event.set()

    try:
        if args.dashboard_port:
            from error_dedup.dashboard import create_dashboard_app, run_dashboard

            signal.signal(signal.SIGINT, signal_handler)
            signal.signal(signal.SIGTERM, signal_handler)
            app = create_dashboard_app(service)
            dash_thread = threading.Thread(
                target=run_dashboard, args=(app, args.dashboard_port), daemon=True
            )
            dash_thread.start()
            logger.info("Dashboard running on port %d", args.dashboard_port)

        code = run_pipeline(args, service)
        if args.dashboard_port and code == 0:
            shutdown_event.wait()
    finally:
        service.shutdown()
    sys.exit(code)


if __name__ == "__main__":
    try:
        main()
    except KeyboardInterrupt:
        sys.exit(0)
    except BrokenPipeError:
        sys.exit(0)
