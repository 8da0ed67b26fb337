#!/usr/bin/env python3
"""
E2E Test Runner

Discovers server and client implementations, runs every scenario that
matches the filters, and exits non-zero if any of them fails.

Usage:
    x402-e2e                              # Run all scenarios
    x402-e2e --discover                   # Discover implementations only
    x402-e2e -d -py                       # Dev mode, Python implementations only
    x402-e2e --network=base --prod=true   # Base mainnet only
"""

import argparse
import asyncio
import signal
import sys
from pathlib import Path
from typing import Optional

from e2e.framework.discovery import discover, print_discovery_summary
from e2e.framework.env import EnvConfig, load_env_config, print_env_status
from e2e.framework.exceptions import ConfigError
from e2e.framework.logger import close, configure, error_log, log, verbose_log
from e2e.framework.manager import ScenarioRunner
from e2e.framework.proxy import DEFAULT_CALL_TIMEOUT
from e2e.framework.report import RunSummary
from e2e.framework.scenarios import (
    TESTNET_NETWORK,
    ScenarioFilter,
    filter_scenarios,
    generate_registry_scenarios,
)
from e2e.framework.types import ScenarioResult

EXIT_INTERRUPTED = 130

LANGUAGE_FLAGS = (
    ("-ts", "--typescript", "typescript"),
    ("-py", "--python", "python"),
    ("-go", "--go", "go"),
)

EXAMPLES = """\
Examples:
  x402-e2e                                # Run all tests
  x402-e2e -d                             # Run tests in development mode
  x402-e2e -py -go                        # Test Python and Go implementations
  x402-e2e -ts --client=axios             # Test TypeScript axios client
  x402-e2e -d -py                         # Dev mode, Python implementations only
  x402-e2e --network=base --prod=true     # Base mainnet only

Environment:
  SERVER_ADDRESS       Payment recipient address (required)
  CLIENT_PRIVATE_KEY   Private key used by clients (required)
  SERVER_PORT          Port servers listen on (default: 4021)
"""


def _parse_bool(value: str) -> bool:
    lowered = value.lower()
    if lowered in ("true", "1", "yes"):
        return True
    if lowered in ("false", "0", "no"):
        return False
    raise argparse.ArgumentTypeError(f"expected true or false, got {value!r}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="x402-e2e",
        description="X402 cross-implementation E2E test runner",
        epilog=EXAMPLES,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "-d",
        "--dev",
        action="store_true",
        help="Development mode (base-sepolia, no CDP)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    for short, long, language in LANGUAGE_FLAGS:
        parser.add_argument(
            short,
            long,
            dest="languages",
            action="append_const",
            const=language,
            help=f"Include {language.capitalize()} implementations",
        )
    parser.add_argument("--client", help="Filter by client name (e.g., httpx, axios)")
    parser.add_argument("--server", help="Filter by server name (e.g., express, fastapi)")
    parser.add_argument("--network", help="Filter by network (base, base-sepolia)")
    parser.add_argument(
        "--prod",
        type=_parse_bool,
        metavar="{true,false}",
        help="Filter by production vs testnet scenarios",
    )
    parser.add_argument("--log-file", help="Save verbose output to file")
    parser.add_argument(
        "--root",
        type=Path,
        default=Path.cwd(),
        help="Directory containing servers/ and clients/ (default: current directory)",
    )
    parser.add_argument(
        "--call-timeout",
        type=float,
        default=DEFAULT_CALL_TIMEOUT,
        help=f"Seconds before a client call is killed (default: {DEFAULT_CALL_TIMEOUT:g})",
    )
    parser.add_argument(
        "--discover",
        action="store_true",
        help="Discover implementations and list scenarios, don't run them",
    )
    return parser


def build_filter(args: argparse.Namespace) -> ScenarioFilter:
    """Dev mode overrides --network and --prod"""
    return ScenarioFilter(
        languages=tuple(dict.fromkeys(args.languages or ())),
        client=args.client,
        server=args.server,
        network=TESTNET_NETWORK if args.dev else args.network,
        prod=False if args.dev else args.prod,
    )


async def run(args: argparse.Namespace, runner: Optional[ScenarioRunner] = None) -> int:
    """
    Run the suite.

    Returns:
        Process exit code
    """
    log("🚀 Starting X402 E2E Test Suite")
    log("===============================")

    env_config = EnvConfig()
    try:
        env_config = load_env_config()
        if not args.discover:
            env_config.require()
    except ConfigError as e:
        error_log("❌ Missing required environment variables:")
        error_log(f"   {e}")
        return 1

    if args.verbose or args.discover:
        print_env_status(env_config)

    registry = discover(args.root)
    print_discovery_summary(registry)

    scenarios = generate_registry_scenarios(registry)
    if not scenarios:
        log("❌ No test scenarios found")
        return 1

    criteria = build_filter(args)
    active_filters = criteria.describe()

    log("📊 Test Scenarios")
    log("===============")
    log(f"Total unfiltered scenarios: {len(scenarios)}")
    if active_filters:
        log(f"Active filters ({len(active_filters)}):")
        for name, value in active_filters:
            log(f"   - {name}: {value}")
    else:
        log("No active filters")

    selected = filter_scenarios(scenarios, criteria)
    if not selected:
        log("❌ No scenarios match the active filters")
        return 1

    log(f"Scenarios to run: {len(selected)}")
    log("")

    if args.discover:
        for number, scenario in enumerate(selected, 1):
            log(f"{number}. {scenario.name}")
        return 0

    runner = runner or ScenarioRunner(call_timeout=args.call_timeout)
    summary = RunSummary()

    for number, scenario in enumerate(selected, 1):
        log(f"🧪 Testing #{number}: {scenario.name}")
        try:
            result = await runner.run(scenario, env_config)
        except Exception as e:
            verbose_log(f"  🔍 Exception details: {e!r}")
            result = ScenarioResult(success=False, error=str(e) or e.__class__.__name__)
        summary.record(number, scenario, result)

    summary.print_summary()
    return summary.exit_code


async def _run_interruptible(args: argparse.Namespace) -> int:
    # SIGINT cancels the suite so the running scenario's cleanup still executes
    loop = asyncio.get_running_loop()
    task = asyncio.current_task()
    handle_sigint = sys.platform != "win32" and task is not None
    if handle_sigint:
        loop.add_signal_handler(signal.SIGINT, task.cancel)

    try:
        return await run(args)
    except asyncio.CancelledError:
        error_log("⚠️  Interrupted, stopped processes of the running scenario")
        return EXIT_INTERRUPTED
    finally:
        if handle_sigint:
            loop.remove_signal_handler(signal.SIGINT)


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure(log_file=args.log_file, verbose=args.verbose)

    try:
        return asyncio.run(_run_interruptible(args))
    except KeyboardInterrupt:
        error_log("⚠️  Interrupted")
        return EXIT_INTERRUPTED
    finally:
        close()


if __name__ == "__main__":
    sys.exit(main())
