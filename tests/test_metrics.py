import random

import pytest

from conftest import outcome
from loadbench.metrics import (
    EndpointMetrics,
    LatencyStats,
    aggregate,
    group_latencies,
    latency_stats,
    outcomes_frame,
    percentile,
    summarize_batches,
    summarize_run,
    throughput,
)


class TestPercentile:
    def test_empty_sample_is_zero(self) -> None:
        assert percentile([], 50) == 0

    @pytest.mark.parametrize(
        "p,expected",
        [(0, 10), (10, 10), (20, 10), (21, 20), (50, 30), (90, 50), (99, 50), (100, 50)],
    )
    def test_nearest_rank(self, p: float, expected: int) -> None:
        assert percentile([50, 10, 40, 20, 30], p) == expected

    def test_extremes_match_min_and_max(self) -> None:
        rng = random.Random(4)
        for size in range(1, 30):
            values = [rng.randint(0, 1000) for _ in range(size)]
            assert percentile(values, 100) == max(values)
            assert percentile(values, 0) == min(values)

    def test_returns_python_scalars(self) -> None:
        assert isinstance(percentile([3, 1, 2], 50), int)


class TestLatencyStats:
    def test_reference_sample(self) -> None:
        assert latency_stats([10, 20, 30, 40, 50]) == LatencyStats(
            min=10, max=50, avg=30, p50=30, p90=50, p99=50
        )

    def test_average_rounded_to_two_places(self) -> None:
        assert latency_stats([1, 2, 2]).avg == 1.67

    def test_empty(self) -> None:
        assert latency_stats([]) == LatencyStats(0, 0, 0, 0, 0, 0)


class TestThroughput:
    def test_successes_per_second(self) -> None:
        assert throughput(5, 1000) == 5.0
        assert throughput(1, 3000) == 0.33

    def test_zero_duration(self) -> None:
        assert throughput(10, 0) == 0


class TestAggregate:
    def test_groups_and_counts_per_endpoint(self) -> None:
        outcomes = [
            outcome("/b", 10),
            outcome("/a", 20),
            outcome("/b", 30, success=False, status=500),
            outcome("/b", 50),
        ]
        result = aggregate(outcomes, 2000, ["/a", "/b"])

        assert [m.endpoint for m in result] == ["/a", "/b"]
        a, b = result
        assert (a.total_requests, a.successes, a.failures) == (1, 1, 0)
        assert (b.total_requests, b.successes, b.failures) == (3, 2, 1)
        assert b.throughput_req_per_sec == 1.0
        assert b.run_duration_ms == 2000
        assert b.latency == LatencyStats(min=10, max=50, avg=30, p50=30, p90=50, p99=50)

    def test_failed_requests_count_towards_latency(self) -> None:
        result = aggregate([outcome("/a", 100, success=False, status=None)], 1000, ["/a"])
        assert result[0].latency.max == 100
        assert result[0].throughput_req_per_sec == 0

    def test_unobserved_pool_endpoint_reported_with_zeros(self) -> None:
        result = aggregate([outcome("/a", 10)], 1000, ["/a", "/b"])
        assert result[0].run_duration_ms == 1000
        assert result[1] == EndpointMetrics(endpoint="/b")
        assert result[1].run_duration_ms == 0

    def test_empty_outcomes_return_whole_pool(self) -> None:
        result = aggregate([], 0, ["/z", "/a"])
        assert [m.endpoint for m in result] == ["/a", "/z"]
        assert all(m.total_requests == 0 for m in result)

    def test_shared_run_duration_denominator(self) -> None:
        outcomes = [outcome("/a", 10)] * 4 + [outcome("/b", 900)]
        a, b = aggregate(outcomes, 2000, ["/a", "/b"])
        assert a.throughput_req_per_sec == 2.0
        assert b.throughput_req_per_sec == 0.5

    def test_sorted_by_codepoint(self) -> None:
        outcomes = [outcome(path, 1) for path in ("/b", "/B", "/a", "/_")]
        assert [m.endpoint for m in aggregate(outcomes, 10)] == ["/B", "/_", "/a", "/b"]

    def test_is_idempotent(self) -> None:
        outcomes = [outcome("/a", 12), outcome("/b", 7, success=False, status=404)]
        assert aggregate(outcomes, 100, ["/a", "/b", "/c"]) == aggregate(outcomes, 100, ["/a", "/b", "/c"])

    def test_counts_are_consistent(self) -> None:
        rng = random.Random(9)
        outcomes = [
            outcome(rng.choice(["/a", "/b", "/c"]), rng.randint(0, 300), success=rng.random() < 0.7)
            for _ in range(200)
        ]
        result = aggregate(outcomes, 1234, ["/a", "/b", "/c", "/d"])
        assert sum(m.total_requests for m in result) == 200
        for metrics in result:
            assert metrics.successes + metrics.failures == metrics.total_requests


class TestRunSummaries:
    def test_summarize_run_keeps_raw_samples(self) -> None:
        summary = summarize_run(1, [outcome("/a", 5), outcome("/a", 7)], 100, ["/a", "/b"])
        assert summary.run_index == 1
        assert summary.duration_ms == 100
        assert summary.samples == {"/a": (5, 7), "/b": ()}
        assert summary.metrics[1] == EndpointMetrics(endpoint="/b")

    def test_summarize_batches_uses_per_endpoint_duration(self) -> None:
        summary = summarize_batches(
            2,
            [
                ("/slow", [outcome("/slow", 400), outcome("/slow", 500)], 500),
                ("/fast", [outcome("/fast", 10), outcome("/fast", 20)], 20),
            ],
        )
        fast, slow = summary.metrics
        assert summary.duration_ms == 520
        assert fast.endpoint == "/fast"
        assert fast.throughput_req_per_sec == 100.0
        assert slow.throughput_req_per_sec == 4.0
        assert summary.samples["/slow"] == (400, 500)

    def test_summarize_batches_combines_repeated_endpoint(self) -> None:
        summary = summarize_batches(
            1,
            [("/a", [outcome("/a", 10)], 100), ("/a", [outcome("/a", 30)], 100)],
        )
        (a,) = summary.metrics
        assert a.total_requests == 2
        assert a.run_duration_ms == 200


class TestFrames:
    def test_empty_frame_has_columns(self) -> None:
        df = outcomes_frame([])
        assert df.empty
        assert "latency_ms" in df.columns

    def test_group_latencies(self) -> None:
        samples = group_latencies([outcome("/a", 3), outcome("/b", 1), outcome("/a", 2)], ["/c"])
        assert samples == {"/a": (3, 2), "/b": (1,), "/c": ()}
