from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass

import httpx

from .config import RunConfig
from .load import LoadGenerator
from .merge import GlobalSummary, merge
from .metrics import RunSummary, summarize_batches, summarize_run
from .report import ConsoleReporter

LOGGER = logging.getLogger("loadbench.runner")


@dataclass(frozen=True)
class BenchmarkResult:
    runs: tuple[RunSummary, ...]
    summary: GlobalSummary


async def run_benchmark_async(
    config: RunConfig,
    transport: httpx.AsyncBaseTransport | None = None,
    rng: random.Random | None = None,
    exact_merge: bool = False,
    reporter: ConsoleReporter | None = None,
) -> BenchmarkResult:
    """Execute ``config.repeat`` independent runs and merge their summaries."""
    if rng is None:
        rng = random.Random(config.seed)
    generator = LoadGenerator(config, transport=transport, rng=rng)

    if reporter is not None:
        reporter.print_header(config)

    runs: list[RunSummary] = []
    for run_index in range(1, config.repeat + 1):
        LOGGER.info("Run %d/%d (%s mode)", run_index, config.repeat, config.mode)
        if config.mode == "sequential":
            batches = await generator.run_sequential()
            summary = summarize_batches(
                run_index,
                [(batch.endpoint, batch.outcomes, batch.duration_ms) for batch in batches],
            )
        else:
            stats = await generator.run_random()
            summary = summarize_run(run_index, stats.outcomes, stats.duration_ms, config.endpoints)
        runs.append(summary)

        failures = sum(metrics.failures for metrics in summary.metrics)
        LOGGER.info(
            "Run %d/%d finished in %dms (%d failed requests)",
            run_index,
            config.repeat,
            summary.duration_ms,
            failures,
        )
        if reporter is not None:
            reporter.print_run(summary, config.repeat)

    merged = merge(
        runs,
        endpoints=config.endpoints,
        exact=exact_merge,
        per_endpoint_durations=config.mode == "sequential",
    )
    if reporter is not None:
        reporter.print_global(merged)
    return BenchmarkResult(runs=tuple(runs), summary=merged)


def run_benchmark(
    config: RunConfig,
    transport: httpx.AsyncBaseTransport | None = None,
    rng: random.Random | None = None,
    exact_merge: bool = False,
    reporter: ConsoleReporter | None = None,
) -> BenchmarkResult:
    return asyncio.run(
        run_benchmark_async(
            config,
            transport=transport,
            rng=rng,
            exact_merge=exact_merge,
            reporter=reporter,
        )
    )


__all__ = [
    "BenchmarkResult",
    "run_benchmark",
    "run_benchmark_async",
]
