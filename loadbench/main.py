from __future__ import annotations

import argparse
import logging
import os
import sys

from .config import MODES, ConfigurationError, RunConfig, resolve_config
from .load import plan_batches
from .report import ConsoleReporter
from .runner import run_benchmark

LOGGER = logging.getLogger("loadbench")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="HTTP load-testing harness")
    parser.add_argument(
        "-c",
        "--concurrency",
        type=int,
        help="Maximum simultaneously outstanding requests per batch",
    )
    parser.add_argument(
        "-t",
        "--timeout",
        dest="timeout_ms",
        type=int,
        help="Per-request timeout in milliseconds",
    )
    parser.add_argument(
        "-n",
        "--total-requests",
        type=int,
        help="Request budget per run (random mode)",
    )
    parser.add_argument(
        "-r",
        "--repeat",
        type=int,
        help="Number of independent runs merged into the final summary",
    )
    parser.add_argument(
        "-e",
        "--endpoints",
        help="Comma-separated endpoint pool overriding the default one",
    )
    parser.add_argument(
        "-u",
        "--base-url",
        default=os.environ.get("LOADBENCH_BASE_URL"),
        help="Base URL of the service under test",
    )
    parser.add_argument(
        "--mode",
        choices=MODES,
        default=os.environ.get("LOADBENCH_MODE"),
        help="random: mixed traffic over the pool; sequential: one batch per endpoint",
    )
    parser.add_argument("--seed", type=int, help="Seed for random endpoint selection")
    parser.add_argument(
        "--exact-merge",
        action="store_true",
        help="Merge runs from raw latency samples instead of per-run averages",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Only print the resolved configuration and batch plan",
    )
    parser.add_argument(
        "--log-level",
        default=os.environ.get("LOADBENCH_LOG_LEVEL", "INFO"),
        help="Logging level",
    )
    return parser.parse_args(argv)


def setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    setup_logging(args.log_level)

    try:
        config = resolve_config(
            concurrency=args.concurrency,
            timeout_ms=args.timeout_ms,
            total_requests=args.total_requests,
            repeat=args.repeat,
            endpoints=args.endpoints,
            base_url=args.base_url,
            mode=args.mode,
            seed=args.seed,
        )
    except ConfigurationError as exc:
        LOGGER.error("Invalid configuration: %s", exc)
        return 2

    LOGGER.info("Target: %s", config.base_url)
    LOGGER.info("Endpoints: %s", ", ".join(config.endpoints))

    if args.dry_run:
        _print_plan(config)
        return 0

    try:
        run_benchmark(config, exact_merge=args.exact_merge, reporter=ConsoleReporter())
    except KeyboardInterrupt:
        LOGGER.warning("Benchmark interrupted")
        return 130

    print("\nBenchmark finished")
    return 0


def _print_plan(config: RunConfig) -> None:
    print(
        f"concurrency={config.concurrency} timeout={config.timeout_ms}ms "
        f"repeat={config.repeat} mode={config.mode} seed={config.seed}"
    )
    if config.mode == "sequential":
        for endpoint in config.endpoints:
            print(f"  - {endpoint}: 1 batch of {config.concurrency}")
        return
    batches = plan_batches(config.total_requests, config.concurrency)
    print(f"  {config.total_requests} requests per run in {len(batches)} batch(es): {batches}")
    print(f"  pool: {', '.join(config.endpoints)}")


if __name__ == "__main__":
    sys.exit(main())
