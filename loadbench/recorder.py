from __future__ import annotations

import asyncio
import enum
import logging
import time
from dataclasses import dataclass

import httpx

from .endpoints import request_spec

LOGGER = logging.getLogger("loadbench.recorder")


class ErrorKind(str, enum.Enum):
    TIMEOUT = "Timeout"
    CONNECTION_ERROR = "ConnectionError"
    HTTP_ERROR = "HTTPError"
    UNKNOWN_ERROR = "UnknownError"


@dataclass(frozen=True)
class RequestOutcome:
    endpoint: str
    success: bool
    latency_ms: int
    http_status: int | None = None
    error_kind: ErrorKind | None = None
    error: str | None = None

    @property
    def label(self) -> str:
        if self.success:
            return "ok"
        if self.error_kind is ErrorKind.HTTP_ERROR:
            return f"{self.error_kind.value}({self.http_status})"
        return self.error_kind.value if self.error_kind else "unknown"


async def record_request(
    client: httpx.AsyncClient,
    endpoint: str,
    timeout_ms: int,
) -> RequestOutcome:
    """Send one request to ``endpoint`` and classify how it settled.

    Never raises for request-level failures: timeouts, transport errors,
    non-2xx statuses and anything unexpected all become a failed outcome.
    """
    spec = request_spec(endpoint)
    started = time.perf_counter()
    try:
        response = await asyncio.wait_for(
            client.request(spec.method, endpoint, json=spec.json),
            timeout=timeout_ms / 1000.0,
        )
    except (asyncio.TimeoutError, httpx.TimeoutException) as exc:
        return _failure(endpoint, started, ErrorKind.TIMEOUT, exc)
    except httpx.TransportError as exc:
        return _failure(endpoint, started, ErrorKind.CONNECTION_ERROR, exc)
    except Exception as exc:  # noqa: BLE001
        return _failure(endpoint, started, ErrorKind.UNKNOWN_ERROR, exc)

    latency_ms = _elapsed_ms(started)
    status = response.status_code
    if 200 <= status < 300:
        return RequestOutcome(
            endpoint=endpoint,
            success=True,
            latency_ms=latency_ms,
            http_status=status,
        )

    outcome = RequestOutcome(
        endpoint=endpoint,
        success=False,
        latency_ms=latency_ms,
        http_status=status,
        error_kind=ErrorKind.HTTP_ERROR,
        error=f"HTTP {status}",
    )
    LOGGER.debug("%s %s failed with %s after %dms", spec.method, endpoint, outcome.label, latency_ms)
    return outcome


def _failure(
    endpoint: str,
    started: float,
    kind: ErrorKind,
    exc: BaseException,
) -> RequestOutcome:
    latency_ms = _elapsed_ms(started)
    message = str(exc) or exc.__class__.__name__
    outcome = RequestOutcome(
        endpoint=endpoint,
        success=False,
        latency_ms=latency_ms,
        error_kind=kind,
        error=message,
    )
    LOGGER.debug("%s failed with %s after %dms: %s", endpoint, outcome.label, latency_ms, message)
    return outcome


def _elapsed_ms(started: float) -> int:
    return max(int(round((time.perf_counter() - started) * 1000)), 0)


__all__ = [
    "ErrorKind",
    "RequestOutcome",
    "record_request",
]
