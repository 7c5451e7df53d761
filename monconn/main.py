#!/usr/bin/env python3
"""
monconn - live session table for a streaming server access log

Usage:
    # Follow the configured access log
    python -m monconn

    # Show the first video of each session instead of its client id
    python -m monconn --target

    # Wider display column and diagnostic logs
    python -m monconn -c 24 --debug --config config.yaml
"""

import argparse
import sys
from typing import List, Optional

from .config import MonitorConfig, load_config
from .errors import ConfigError, MonitorError
from .monitor import Monitor
from .session_logger import create_session_logger
from .tail import follow, open_log_source


def _parse_cli_args(argv: List[str]):
    """Parse CLI arguments. Unknown options are returned, not rejected."""
    parser = argparse.ArgumentParser(
        prog="monconn",
        description="Live table of client sessions from a streaming server access log",
    )
    parser.add_argument(
        "-c", "--connect_width",
        nargs="?",
        const="",
        metavar="WIDTH",
        help='Set the width of the "connect" column (default: 15)',
    )
    parser.add_argument(
        "-t", "--target",
        action="store_true",
        help="Enable target mode (show truncated video name instead of client-id)",
    )
    parser.add_argument(
        "-d", "--debug",
        action="store_true",
        help="Enable debug mode (write diagnostic logs and session store dumps)",
    )
    parser.add_argument(
        "--config",
        metavar="FILE",
        help="YAML configuration file (default: $MONCONN_CONFIG or ./config.yaml)",
    )
    parser.add_argument(
        "--log-file",
        dest="log_file",
        metavar="FILE",
        help="Access log to follow (overrides the configuration)",
    )
    return parser.parse_known_args(argv)


def _positive_int(value: str) -> int:
    if value.isdigit() and int(value) > 0:
        return int(value)
    raise ConfigError("--connect_width requires a positive integer argument.")


def build_config(args) -> MonitorConfig:
    """Load the config file and apply command-line overrides."""
    config = load_config(args.config)
    if args.connect_width is not None:
        config.display.connect_width = _positive_int(args.connect_width)
    if args.target:
        config.display.target_mode = True
    if args.debug:
        config.diagnostics.enabled = True
    if args.log_file:
        config.log_file = args.log_file
    return config


def main(argv: Optional[List[str]] = None) -> int:
    """Run the monitor until interrupted. Returns the process exit status."""
    args, unknown = _parse_cli_args(sys.argv[1:] if argv is None else argv)
    for option in unknown:
        print(f"Warning: Unknown option {option}", file=sys.stderr)

    try:
        config = build_config(args)
        log_path = open_log_source(config.log_file)
    except MonitorError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    session_logger = create_session_logger(config.diagnostics)
    monitor = Monitor(config, sys.stdout, session_logger=session_logger)
    lines = follow(
        log_path,
        poll_interval=config.tail_poll_interval,
        initial_lines=config.tail_initial_lines,
    )
    try:
        monitor.run(lines)
    except KeyboardInterrupt:
        print()
    log_file = session_logger.get_log_file_path()
    if log_file:
        print(f"Diagnostic log: {log_file}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
