from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Sequence

import numpy as np
import pandas as pd

from .metrics import EndpointMetrics, RunSummary, latency_stats, throughput

LOGGER = logging.getLogger("loadbench.merge")

_COUNT_COLUMNS = ["total_requests", "successes", "failures", "run_duration_ms"]


@dataclass(frozen=True)
class GlobalSummary:
    """Per-endpoint metrics merged across every run of a benchmark."""

    runs: int
    duration_ms: int
    metrics: tuple[EndpointMetrics, ...]
    exact: bool = False


def merge(
    summaries: Sequence[RunSummary],
    endpoints: Iterable[str] | None = None,
    exact: bool = False,
    per_endpoint_durations: bool = False,
) -> GlobalSummary:
    """Combine run summaries into one row per endpoint.

    Counts are summed and throughput recomputed from the sums. The duration
    of a merged row is the sum of run durations, since every endpoint of a
    random run shares its clock. With ``per_endpoint_durations=True``
    (sequential runs, where each endpoint owns its batch) the per-endpoint
    durations are summed instead.

    By default the merged latency sample is rebuilt from each run's average
    repeated ``total_requests`` times, so min/max/percentiles are only
    approximations. With ``exact=True`` the raw per-run samples are
    concatenated instead.
    """
    frame = _metrics_frame(summaries)
    if endpoints is None:
        pool = sorted(set(frame["endpoint"]))
    else:
        pool = sorted(set(endpoints))

    run_total_ms = sum(summary.duration_ms for summary in summaries)
    totals = frame.groupby("endpoint")[_COUNT_COLUMNS].sum() if not frame.empty else None

    merged: list[EndpointMetrics] = []
    for endpoint in pool:
        if totals is None or endpoint not in totals.index or totals.loc[endpoint, "total_requests"] == 0:
            merged.append(EndpointMetrics(endpoint=endpoint))
            continue
        row = totals.loc[endpoint]
        successes = int(row["successes"])
        duration_ms = int(row["run_duration_ms"]) if per_endpoint_durations else run_total_ms
        if exact:
            sample = _raw_sample(summaries, endpoint)
        else:
            sample = _reconstructed_sample(frame[frame["endpoint"] == endpoint])
        merged.append(
            EndpointMetrics(
                endpoint=endpoint,
                total_requests=int(row["total_requests"]),
                successes=successes,
                failures=int(row["failures"]),
                run_duration_ms=duration_ms,
                throughput_req_per_sec=throughput(successes, duration_ms),
                latency=latency_stats(sample),
            )
        )

    LOGGER.debug("Merged %d run(s) into %d endpoint rows", len(summaries), len(merged))
    return GlobalSummary(
        runs=len(summaries),
        duration_ms=run_total_ms,
        metrics=tuple(merged),
        exact=exact,
    )


def _metrics_frame(summaries: Sequence[RunSummary]) -> pd.DataFrame:
    rows = [
        {
            "run_index": summary.run_index,
            "endpoint": metrics.endpoint,
            "total_requests": metrics.total_requests,
            "successes": metrics.successes,
            "failures": metrics.failures,
            "run_duration_ms": metrics.run_duration_ms,
            "avg_latency": metrics.latency.avg,
        }
        for summary in summaries
        for metrics in summary.metrics
    ]
    columns = ["run_index", "endpoint", *_COUNT_COLUMNS, "avg_latency"]
    if not rows:
        return pd.DataFrame(columns=columns)
    return pd.DataFrame(rows, columns=columns)


def _reconstructed_sample(rows: pd.DataFrame) -> np.ndarray:
    return np.repeat(
        rows["avg_latency"].to_numpy(dtype=float),
        rows["total_requests"].to_numpy(dtype=int),
    )


def _raw_sample(summaries: Sequence[RunSummary], endpoint: str) -> np.ndarray:
    parts = [np.asarray(summary.samples.get(endpoint, ()), dtype=int) for summary in summaries]
    if not parts:
        return np.asarray([], dtype=int)
    return np.concatenate(parts)


__all__ = [
    "GlobalSummary",
    "merge",
]
