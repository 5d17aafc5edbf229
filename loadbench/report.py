from __future__ import annotations

import sys
from typing import Iterable, TextIO

from .config import RunConfig
from .merge import GlobalSummary
from .metrics import EndpointMetrics, RunSummary

COLUMNS: tuple[tuple[str, int], ...] = (
    ("endpoint", 20),
    ("total", 8),
    ("succ", 8),
    ("fail", 8),
    ("time(ms)", 12),
    ("thr/s", 12),
    ("avgLat(ms)", 12),
    ("p90(ms)", 12),
    ("p99(ms)", 12),
)


def format_number(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return f"{value:.2f}"


def format_header() -> str:
    return "".join(name.ljust(width) for name, width in COLUMNS).rstrip()


def format_row(metrics: EndpointMetrics) -> str:
    cells = (
        metrics.endpoint,
        metrics.total_requests,
        metrics.successes,
        metrics.failures,
        metrics.run_duration_ms,
        f"{metrics.throughput_req_per_sec:.2f}",
        f"{metrics.latency.avg:.2f}",
        format_number(metrics.latency.p90),
        format_number(metrics.latency.p99),
    )
    # A value wider than its column still gets one separating space.
    return "".join(
        str(cell).ljust(width) if len(str(cell)) < width else f"{cell} "
        for cell, (_, width) in zip(cells, COLUMNS)
    ).rstrip()


class ConsoleReporter:
    """Prints fixed-width benchmark tables to a text stream."""

    def __init__(self, stream: TextIO | None = None) -> None:
        self._stream = stream

    @property
    def stream(self) -> TextIO:
        return self._stream if self._stream is not None else sys.stdout

    def print_header(self, config: RunConfig) -> None:
        self._print("\n=== Benchmark report ===")
        self._print(
            f"Concurrency: {config.concurrency}, Timeout: {config.timeout_ms}ms, "
            f"Repeat: {config.repeat}, Mode: {config.mode}"
        )
        if config.mode == "random":
            self._print(f"Requests per run: {config.total_requests}")
        self._print(f"Target: {config.base_url}")
        self._print(f"Endpoints: {', '.join(config.endpoints)}")
        self._print("========================\n")

    def print_run(self, summary: RunSummary, repeat: int) -> None:
        self._print(f"--- Run {summary.run_index}/{repeat} ({summary.duration_ms}ms) ---")
        self._print_table(summary.metrics)

    def print_global(self, summary: GlobalSummary) -> None:
        title = "=== Final summary ==="
        if summary.exact:
            title = "=== Final summary (exact latencies) ==="
        self._print(f"\n{title}")
        self._print(f"Runs: {summary.runs}, total time: {summary.duration_ms}ms")
        self._print_table(summary.metrics)

    def _print_table(self, rows: Iterable[EndpointMetrics]) -> None:
        self._print(format_header())
        for metrics in rows:
            self._print(format_row(metrics))

    def _print(self, line: str) -> None:
        print(line, file=self.stream)


__all__ = [
    "COLUMNS",
    "ConsoleReporter",
    "format_header",
    "format_number",
    "format_row",
]
