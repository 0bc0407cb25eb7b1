"""
Command-line interface for the countermon counter polling application.

Subcommands:
- run: poll every configured target until interrupted
- resolve: print the concrete instance a specifier resolves to
- sample: take ad-hoc samples of one counter
- list-instances: print the live instances of a category
"""

import argparse
import logging
import signal
import sys
import time
from pathlib import Path
from typing import List, Optional, Tuple

from ..channels import create_channel
from ..config import get_config, set_config_path
from ..counters import (
    CounterBinding,
    InstanceResolver,
    PsutilCounterProvider,
    TargetListener,
)
from ..counters.base import AbstractCounterProvider
from ..models.config import MonitorConfig
from ..monitoring import PollingMonitor
from ..system.processes import ProcessDirectory
from ..validation import (
    CounterError,
    ResolutionError,
    ValidationError,
    handle_cli_error,
    validate_positive_float,
    validate_positive_integer,
)

# --- Logging Setup ---
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)-5.5s] %(name)s:%(filename)s:%(lineno)d\t %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
    stream=sys.stdout,
)
logger = logging.getLogger(__name__)


def create_components(
    monitor_config: MonitorConfig,
    provider: Optional[AbstractCounterProvider] = None,
) -> Tuple[AbstractCounterProvider, ProcessDirectory, InstanceResolver]:
    """Wire a counter provider, process directory and resolver from settings."""
    provider = provider or PsutilCounterProvider()
    directory = ProcessDirectory(
        provider,
        listing_command=monitor_config.listing_command,
        default_timeout=monitor_config.listing_timeout,
    )
    resolver = InstanceResolver(
        provider,
        directory=directory,
        pid_suffixed_categories=monitor_config.pid_suffixed_categories,
    )
    return provider, directory, resolver


def _monitor_config(args: argparse.Namespace) -> MonitorConfig:
    """Monitor settings from --config when given, defaults otherwise."""
    if args.config is None:
        return MonitorConfig()
    try:
        return get_config().monitor
    except (FileNotFoundError, KeyError, ValidationError) as e:
        handle_cli_error(error=e, context="configuration loading", exit_code=1, logger=logger)


def cmd_run(args: argparse.Namespace) -> int:
    """Poll all configured targets until SIGINT/SIGTERM or --iterations polls."""
    try:
        app_config = get_config()
    except (FileNotFoundError, KeyError, ValidationError) as e:
        handle_cli_error(error=e, context="configuration loading", exit_code=1, logger=logger)

    provider, directory, resolver = create_components(app_config.monitor)
    channel = create_channel(app_config.output)
    monitor = PollingMonitor(
        app_config.targets, channel, directory, provider, resolver, app_config.monitor
    )

    def signal_handler(signum, frame):
        logger.info(f"Signal {signal.strsignal(signum)} received. Initiating graceful shutdown...")
        monitor.request_shutdown()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    with monitor:
        monitor.run(max_iterations=args.iterations)
    return 0


def cmd_resolve(args: argparse.Namespace) -> int:
    """Print the concrete instance name a specifier resolves to."""
    _, _, resolver = create_components(_monitor_config(args))
    instance = resolver.resolve(args.category, args.specifier)
    if instance is None:
        logger.warning(f"'{args.specifier}' does not resolve in category '{args.category}'")
        return 1
    print(instance)
    return 0


def cmd_list_instances(args: argparse.Namespace) -> int:
    """Print the live instances of a category, one per line."""
    provider, _, _ = create_components(_monitor_config(args))
    try:
        instances: List[str] = provider.instance_names(args.category)
    except CounterError as e:
        logger.error(str(e))
        return 1
    for instance in instances:
        print(instance)
    return 0


def cmd_sample(args: argparse.Namespace) -> int:
    """Take --count samples of one counter, --interval seconds apart."""
    monitor_config = _monitor_config(args)
    try:
        count = validate_positive_integer(args.count, min_value=1, field_name="--count")
        interval = validate_positive_float(args.interval, min_value=0.01, field_name="--interval")
    except ValidationError as e:
        handle_cli_error(error=e, context="argument validation", exit_code=2, logger=logger)

    provider, directory, resolver = create_components(monitor_config)
    if args.app_pool:
        sampler = TargetListener(
            args.app_pool,
            args.category,
            args.counter,
            directory,
            provider,
            resolver,
            worker_process_name=monitor_config.worker_process_name,
            listing_timeout=monitor_config.listing_timeout,
            revalidate_interval=monitor_config.revalidate_interval,
        )
        take_sample = sampler.report
    else:
        if not args.specifier:
            logger.error("Either an instance specifier or --app-pool is required")
            return 2
        sampler = CounterBinding(args.category, args.counter, args.specifier, provider, resolver)
        try:
            sampler.open()
        except ResolutionError as e:
            logger.error(str(e))
            return 1
        take_sample = sampler.sample

    label = args.app_pool or args.specifier
    reported = 0
    with sampler:
        for _ in range(count):
            time.sleep(interval)
            value = take_sample()
            if value is None:
                logger.info(f"{args.category}/{args.counter} [{label}]: unavailable")
                continue
            reported += 1
            print(f"{args.category}/{args.counter} [{label}] {value:.6g}")
    return 0 if reported else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="countermon",
        description="Poll performance counters whose instance names change as processes restart.",
    )
    parser.add_argument(
        "-c", "--config", type=Path, help="Path to config.toml (required by 'run' unless the default exists)."
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser("run", help="Poll all configured targets.")
    run_parser.add_argument(
        "--iterations", type=int, default=None, help="Stop after this many polls (default: run until interrupted)."
    )
    run_parser.set_defaults(func=cmd_run)

    resolve_parser = subparsers.add_parser("resolve", help="Resolve an instance specifier.")
    resolve_parser.add_argument("category")
    resolve_parser.add_argument("specifier", help="Instance name, 'a|b|c' alternatives, or process name.")
    resolve_parser.set_defaults(func=cmd_resolve)

    list_parser = subparsers.add_parser("list-instances", help="List live instances of a category.")
    list_parser.add_argument("category")
    list_parser.set_defaults(func=cmd_list_instances)

    sample_parser = subparsers.add_parser("sample", help="Take ad-hoc samples of one counter.")
    sample_parser.add_argument("category")
    sample_parser.add_argument("counter")
    sample_parser.add_argument("specifier", nargs="?", help="Instance specifier (omit with --app-pool).")
    sample_parser.add_argument("--app-pool", help="Follow the worker process of this application pool.")
    sample_parser.add_argument("--count", type=int, default=1, help="Number of samples (default: 1).")
    sample_parser.add_argument("--interval", type=float, default=1.0, help="Seconds between samples (default: 1).")
    sample_parser.set_defaults(func=cmd_sample)

    return parser


def main_cli(argv: Optional[List[str]] = None) -> int:
    """
    Main command-line interface for countermon.

    Returns:
        Process exit code.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)
    if args.config is not None:
        set_config_path(args.config)

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main_cli())
