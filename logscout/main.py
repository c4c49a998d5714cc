#!/usr/bin/env python3
"""logscout: follow several log files and commands through one regex filter."""

import logging
import os
import sys
from argparse import ArgumentParser, BooleanOptionalAction

from logscout.config import load_config, resolve_config_path
from logscout.errors import ConfigError, ShutdownTimeout
from logscout.filters import FilterSet
from logscout.monitor import LogMonitor
from logscout.stats import format_stats_json, format_stats_text

logger = logging.getLogger("logscout")

EXIT_OK = 0
EXIT_CONFIG_ERROR = 1
EXIT_SHUTDOWN_TIMEOUT = 2


def build_parser() -> ArgumentParser:
    """Build the CLI argument parser."""
    parser = ArgumentParser(
        prog="logscout",
        description="Follow log files and command output, filtered by include/exclude regexes.",
    )
    parser.add_argument(
        "config",
        nargs="?",
        help="Path to the YAML config (default: $LOGSCOUT_CONFIG or config.yaml)",
    )
    parser.add_argument(
        "--follow",
        action=BooleanOptionalAction,
        default=None,
        help="Override the config's follow flag",
    )
    parser.add_argument(
        "--per-source",
        action="store_true",
        help="Include the per-source breakdown in the summary",
    )
    parser.add_argument(
        "--summary",
        choices=["text", "json"],
        default="text",
        help="Summary format (default: text)",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Diagnostic log level on stderr (default: INFO)",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        stream=sys.stderr,
    )

    try:
        config = load_config(resolve_config_path(args.config), follow=args.follow)
        filters = FilterSet.from_patterns(config.include, config.exclude)
    except ConfigError as e:
        print(f"logscout: error: {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    logger.info("follow=%s include=%d exclude=%d",
                config.follow, len(config.include), len(config.exclude))

    monitor = LogMonitor(config, filters)
    monitor.controller.install_signal_handlers()

    exit_code = EXIT_OK
    try:
        monitor.start()
        monitor.wait()
        stats = monitor.stop()
    except ShutdownTimeout as e:
        logger.error("%s", e)
        stats = monitor.stats.snapshot()
        exit_code = EXIT_SHUTDOWN_TIMEOUT

    if args.summary == "json":
        summary = format_stats_json(stats)
    else:
        summary = format_stats_text(stats, per_source=args.per_source)
    try:
        print(summary)
        sys.stdout.flush()
    except BrokenPipeError:
        logger.error("Output stream closed, summary not written")
        # point fd 1 at devnull so the exit-time flush of stdout doesn't raise again
        devnull = os.open(os.devnull, os.O_WRONLY)
        os.dup2(devnull, sys.stdout.fileno())
    return exit_code


if __name__ == "__main__":
    sys.exit(main())
