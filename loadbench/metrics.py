from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Iterable, Sequence

import numpy as np
import pandas as pd

from .recorder import RequestOutcome

OUTCOME_COLUMNS = [
    "endpoint",
    "success",
    "http_status",
    "latency_ms",
    "error_kind",
]


@dataclass(frozen=True)
class LatencyStats:
    min: float = 0
    max: float = 0
    avg: float = 0
    p50: float = 0
    p90: float = 0
    p99: float = 0


@dataclass(frozen=True)
class EndpointMetrics:
    endpoint: str
    total_requests: int = 0
    successes: int = 0
    failures: int = 0
    run_duration_ms: int = 0
    throughput_req_per_sec: float = 0.0
    latency: LatencyStats = field(default_factory=LatencyStats)


@dataclass(frozen=True)
class RunSummary:
    run_index: int
    duration_ms: int
    metrics: tuple[EndpointMetrics, ...]
    # Raw latency sample per endpoint, kept for exact cross-run merging.
    samples: dict[str, tuple[int, ...]] = field(default_factory=dict)


def percentile(values: Sequence[float], p: float) -> float:
    """Nearest-rank percentile; 0 for an empty sample."""
    n = len(values)
    if n == 0:
        return 0
    ordered = np.sort(np.asarray(values))
    index = math.ceil(p / 100 * n) - 1
    index = max(0, min(index, n - 1))
    return ordered[index].item()


def latency_stats(values: Sequence[float]) -> LatencyStats:
    if len(values) == 0:
        return LatencyStats()
    ordered = np.sort(np.asarray(values))
    return LatencyStats(
        min=ordered[0].item(),
        max=ordered[-1].item(),
        avg=round(float(ordered.mean()), 2),
        p50=percentile(ordered, 50),
        p90=percentile(ordered, 90),
        p99=percentile(ordered, 99),
    )


def throughput(successes: int, duration_ms: float) -> float:
    if duration_ms <= 0:
        return 0.0
    return round(successes / (duration_ms / 1000), 2)


def outcomes_frame(outcomes: Iterable[RequestOutcome]) -> pd.DataFrame:
    rows = [
        {
            "endpoint": outcome.endpoint,
            "success": outcome.success,
            "http_status": outcome.http_status,
            "latency_ms": outcome.latency_ms,
            "error_kind": outcome.error_kind.value if outcome.error_kind else None,
        }
        for outcome in outcomes
    ]
    if not rows:
        return pd.DataFrame(columns=OUTCOME_COLUMNS)
    return pd.DataFrame(rows, columns=OUTCOME_COLUMNS)


def group_latencies(
    outcomes: Iterable[RequestOutcome],
    endpoints: Iterable[str] = (),
) -> dict[str, tuple[int, ...]]:
    """Latency samples keyed by endpoint, with empty samples for unobserved pool entries."""
    samples: dict[str, tuple[int, ...]] = {endpoint: () for endpoint in endpoints}
    df = outcomes_frame(outcomes)
    for endpoint, group in df.groupby("endpoint", sort=False):
        samples[endpoint] = tuple(int(value) for value in group["latency_ms"])
    return samples


def aggregate(
    outcomes: Sequence[RequestOutcome],
    run_duration_ms: int,
    endpoints: Iterable[str] = (),
) -> tuple[EndpointMetrics, ...]:
    """Per-endpoint metrics for one run, sorted by endpoint.

    Throughput divides by the whole-run duration for every endpoint, not by
    the time each endpoint was actually busy. Pool endpoints that saw no
    traffic are reported with every field zero, duration included.
    """
    df = outcomes_frame(outcomes)
    metrics: dict[str, EndpointMetrics] = {}
    for endpoint, group in df.groupby("endpoint", sort=False):
        total = len(group)
        successes = int(group["success"].astype(bool).sum())
        metrics[endpoint] = EndpointMetrics(
            endpoint=endpoint,
            total_requests=total,
            successes=successes,
            failures=total - successes,
            run_duration_ms=run_duration_ms,
            throughput_req_per_sec=throughput(successes, run_duration_ms),
            latency=latency_stats(group["latency_ms"].to_numpy()),
        )

    for endpoint in endpoints:
        if endpoint not in metrics:
            metrics[endpoint] = EndpointMetrics(endpoint=endpoint)

    return tuple(metrics[endpoint] for endpoint in sorted(metrics))


def summarize_run(
    run_index: int,
    outcomes: Sequence[RequestOutcome],
    duration_ms: int,
    endpoints: Iterable[str] = (),
) -> RunSummary:
    endpoints = tuple(endpoints)
    return RunSummary(
        run_index=run_index,
        duration_ms=duration_ms,
        metrics=aggregate(outcomes, duration_ms, endpoints),
        samples=group_latencies(outcomes, endpoints),
    )


def summarize_batches(
    run_index: int,
    batches: Iterable[tuple[str, Sequence[RequestOutcome], int]],
) -> RunSummary:
    """Run summary for sequential mode, where each endpoint owns its own batch timing.

    ``batches`` yields ``(endpoint, outcomes, duration_ms)``; an endpoint
    listed twice has its outcomes and durations combined.
    """
    outcomes_by_endpoint: dict[str, list[RequestOutcome]] = {}
    duration_by_endpoint: dict[str, int] = {}
    for endpoint, outcomes, duration_ms in batches:
        outcomes_by_endpoint.setdefault(endpoint, []).extend(outcomes)
        duration_by_endpoint[endpoint] = duration_by_endpoint.get(endpoint, 0) + duration_ms

    metrics: list[EndpointMetrics] = []
    samples: dict[str, tuple[int, ...]] = {}
    for endpoint, outcomes in outcomes_by_endpoint.items():
        metrics.extend(aggregate(outcomes, duration_by_endpoint[endpoint], [endpoint]))
        samples.update(group_latencies(outcomes, [endpoint]))

    return RunSummary(
        run_index=run_index,
        duration_ms=sum(duration_by_endpoint.values()),
        metrics=tuple(sorted(metrics, key=lambda m: m.endpoint)),
        samples=samples,
    )


__all__ = [
    "EndpointMetrics",
    "LatencyStats",
    "RunSummary",
    "aggregate",
    "group_latencies",
    "latency_stats",
    "outcomes_frame",
    "percentile",
    "summarize_batches",
    "summarize_run",
    "throughput",
]
