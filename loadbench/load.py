from __future__ import annotations

import asyncio
import logging
import random
import time
from dataclasses import dataclass, field

import httpx

from .config import RunConfig
from .endpoints import RandomSelector, SequentialSelector
from .recorder import RequestOutcome, record_request

LOGGER = logging.getLogger("loadbench.load")


@dataclass
class LoadStatistics:
    outcomes: list[RequestOutcome] = field(default_factory=list)
    batch_sizes: list[int] = field(default_factory=list)
    started_at: float = 0.0
    finished_at: float = 0.0

    @property
    def dispatched(self) -> int:
        return len(self.outcomes)

    @property
    def duration_ms(self) -> int:
        if not self.batch_sizes:
            return 0
        return max(int(round((self.finished_at - self.started_at) * 1000)), 0)


@dataclass
class EndpointBatch:
    """Single concurrent batch aimed at one endpoint (sequential mode)."""

    endpoint: str
    outcomes: list[RequestOutcome]
    duration_ms: int


def plan_batches(total_requests: int, concurrency: int) -> list[int]:
    """Partition a request budget into concurrency-bounded batch sizes."""
    if concurrency <= 0:
        raise ValueError("concurrency must be > 0")
    sizes: list[int] = []
    dispatched = 0
    while dispatched < total_requests:
        size = min(concurrency, total_requests - dispatched)
        sizes.append(size)
        dispatched += size
    return sizes


class LoadGenerator:
    """Batched load generator: each batch must fully settle before the next starts.

    A slow request therefore holds back the whole following batch. This is the
    intended model, not a sliding window.
    """

    def __init__(
        self,
        config: RunConfig,
        transport: httpx.AsyncBaseTransport | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self._config = config
        self._transport = transport
        self._rng = rng if rng is not None else random.Random(config.seed)

    async def run_random(self) -> LoadStatistics:
        config = self._config
        selector = RandomSelector(config.endpoints, self._rng)
        stats = LoadStatistics()
        batches = plan_batches(config.total_requests, config.concurrency)
        if not batches:
            LOGGER.info("Empty request budget; nothing to dispatch")
            return stats

        async with self._create_client() as client:
            stats.started_at = time.perf_counter()
            for index, size in enumerate(batches, start=1):
                endpoints = selector.pick_many(size)
                outcomes = await self._dispatch_batch(client, endpoints)
                stats.outcomes.extend(outcomes)
                stats.batch_sizes.append(size)
                LOGGER.debug(
                    "Batch %d/%d settled (%d requests, %d failed)",
                    index,
                    len(batches),
                    size,
                    sum(1 for outcome in outcomes if not outcome.success),
                )
            stats.finished_at = time.perf_counter()

        LOGGER.info(
            "Dispatched %d requests in %d batches over %dms",
            stats.dispatched,
            len(stats.batch_sizes),
            stats.duration_ms,
        )
        return stats

    async def run_sequential(self) -> list[EndpointBatch]:
        config = self._config
        results: list[EndpointBatch] = []
        async with self._create_client() as client:
            for endpoint in SequentialSelector(config.endpoints):
                LOGGER.info("Benchmarking %s with %d concurrent requests", endpoint, config.concurrency)
                started = time.perf_counter()
                outcomes = await self._dispatch_batch(client, [endpoint] * config.concurrency)
                duration_ms = max(int(round((time.perf_counter() - started) * 1000)), 0)
                results.append(EndpointBatch(endpoint, outcomes, duration_ms))
        return results

    async def _dispatch_batch(
        self,
        client: httpx.AsyncClient,
        endpoints: list[str],
    ) -> list[RequestOutcome]:
        tasks = [
            record_request(client, endpoint, self._config.timeout_ms)
            for endpoint in endpoints
        ]
        return list(await asyncio.gather(*tasks))

    def _create_client(self) -> httpx.AsyncClient:
        config = self._config
        limits = httpx.Limits(
            max_connections=config.concurrency,
            max_keepalive_connections=config.concurrency,
        )
        return httpx.AsyncClient(
            base_url=config.base_url,
            timeout=httpx.Timeout(config.timeout_s),
            limits=limits,
            transport=self._transport,
        )


def run_load(
    config: RunConfig,
    transport: httpx.AsyncBaseTransport | None = None,
    rng: random.Random | None = None,
) -> tuple[list[RequestOutcome], int]:
    """Blocking helper running one random-mode run; returns outcomes and duration."""
    stats = asyncio.run(LoadGenerator(config, transport=transport, rng=rng).run_random())
    return stats.outcomes, stats.duration_ms


__all__ = [
    "EndpointBatch",
    "LoadGenerator",
    "LoadStatistics",
    "plan_batches",
    "run_load",
]
