#!/usr/bin/env python3
"""Main entry point for shellfan."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from .config import Settings, TargetConfig, load_script, load_settings, load_targets
from .errors import ConfigError
from .executor import Executor

logger = logging.getLogger("shellfan")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="shellfan",
        description="Run a shell script on many SSH targets in parallel",
    )
    parser.add_argument(
        "--config",
        type=Path,
        help="YAML settings file; command-line flags override its values",
    )
    parser.add_argument(
        "--target",
        type=Path,
        help="Path to the JSON file with targets (default: target.json)",
    )
    parser.add_argument(
        "--script",
        type=Path,
        help="Path to the shell script file (default: script.sh)",
    )
    parser.add_argument(
        "--stdout",
        action="store_true",
        default=None,
        help="Stream remote shell output to local stdout",
    )
    parser.add_argument(
        "--max-parallel",
        type=int,
        help="Maximum number of targets deployed at once (default: all)",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        help="Per-target deadline in seconds (default: none)",
    )
    parser.add_argument(
        "--connect-timeout",
        type=float,
        help="SSH connect timeout in seconds (default: 30)",
    )
    parser.add_argument(
        "--known-hosts",
        type=Path,
        help="known_hosts file for host key checking (default: no checking)",
    )
    parser.add_argument(
        "--dashboard",
        action="store_true",
        help="Run with the TUI dashboard",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Log debug details",
    )
    return parser


def configure_logging(verbose: bool = False) -> None:
    """Send status lines to stderr, one timestamped line each."""
    level = logging.DEBUG if verbose else logging.INFO
    logger.setLevel(level)
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter("%(asctime)s %(message)s", "%Y/%m/%d %H:%M:%S"))
    logger.addHandler(handler)


def resolve_settings(args: argparse.Namespace) -> Settings:
    """Merge the optional settings file with command-line overrides."""
    settings = load_settings(args.config) if args.config else Settings()

    if args.target is not None:
        settings.targets = args.target.expanduser()
    if args.script is not None:
        settings.script = args.script.expanduser()
    if args.stdout is not None:
        settings.stream_output = args.stdout
    if args.max_parallel is not None:
        if args.max_parallel <= 0:
            raise ConfigError("--max-parallel must be positive")
        settings.max_parallel = args.max_parallel
    if args.timeout is not None:
        if args.timeout <= 0:
            raise ConfigError("--timeout must be positive")
        settings.task_timeout = args.timeout
    if args.connect_timeout is not None:
        if args.connect_timeout <= 0:
            raise ConfigError("--connect-timeout must be positive")
        settings.connect_timeout = args.connect_timeout
    if args.known_hosts is not None:
        settings.known_hosts = args.known_hosts.expanduser()

    return settings


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)

    if not args.dashboard:
        configure_logging(args.verbose)

    # Everything is loaded once, before any task starts
    try:
        settings = resolve_settings(args)
        targets = load_targets(settings.targets)
        script = load_script(settings.script)
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1
    except OSError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if not targets:
        logger.warning("No targets defined in %s", settings.targets)
        return 0

    if not args.dashboard:
        return _run_headless(targets, script, settings)

    from .dashboard import Dashboard

    app = Dashboard(targets, script, settings)
    app.run()
    return 0


def _run_headless(targets: list[TargetConfig], script: bytes, settings: Settings) -> int:
    """Run executor without TUI dashboard. Status lines go through logging."""
    # ANSI colors for different tasks
    colors = [
        "\033[36m",  # Cyan
        "\033[33m",  # Yellow
        "\033[35m",  # Magenta
        "\033[32m",  # Green
        "\033[34m",  # Blue
        "\033[91m",  # Light Red
        "\033[96m",  # Light Cyan
        "\033[93m",  # Light Yellow
    ]
    reset = "\033[0m"

    executor: Executor

    def on_output(index: int, line: str) -> None:
        color = colors[index % len(colors)]
        label = executor.tasks[index].target.label
        print(f"{color}[#{index} {label}]{reset} {line}", flush=True)

    executor = Executor(targets, script, settings, on_output=on_output)

    try:
        asyncio.run(executor.run_all())
    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        return 130

    # Per-target failures are reported, not escalated
    return 0


if __name__ == "__main__":
    sys.exit(main())
