from __future__ import annotations

import asyncio
import threading
from typing import Iterator

import httpx
import pytest

from loadbench.demo_server import DemoServer, create_server
from loadbench.recorder import RequestOutcome


class InFlightTracker:
    """Counts concurrently open requests and the peak reached by each burst."""

    def __init__(self, delay_s: float = 0.01) -> None:
        self.delay_s = delay_s
        self.in_flight = 0
        self.max_in_flight = 0
        self.burst_peaks: list[int] = []
        self.paths: list[str] = []
        self.methods: dict[str, set[str]] = {}
        self.bodies: dict[str, list[bytes]] = {}

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        self.paths.append(path)
        self.methods.setdefault(path, set()).add(request.method)
        self.bodies.setdefault(path, []).append(request.content)

        if self.in_flight == 0:
            self.burst_peaks.append(0)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        self.burst_peaks[-1] = max(self.burst_peaks[-1], self.in_flight)
        try:
            await asyncio.sleep(self.delay_s)
        finally:
            self.in_flight -= 1
        return httpx.Response(200, json={"ok": True})


@pytest.fixture
def tracker() -> InFlightTracker:
    return InFlightTracker()


@pytest.fixture
def tracking_transport(tracker: InFlightTracker) -> httpx.MockTransport:
    return httpx.MockTransport(tracker)


def outcome(
    endpoint: str,
    latency_ms: int,
    success: bool = True,
    status: int | None = 200,
) -> RequestOutcome:
    return RequestOutcome(
        endpoint=endpoint,
        success=success,
        latency_ms=latency_ms,
        http_status=status,
    )


@pytest.fixture
def demo_server() -> Iterator[DemoServer]:
    server = create_server(host="127.0.0.1", port=0, latency_scale=0.0)
    thread = threading.Thread(target=server.serve_forever, name="demo-server", daemon=True)
    thread.start()
    try:
        yield server
    finally:
        server.shutdown()
        server.server_close()
        thread.join(timeout=5.0)
