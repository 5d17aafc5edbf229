from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Sequence

from .endpoints import DEFAULT_ENDPOINTS

MODES: tuple[str, ...] = ("random", "sequential")

DEFAULT_BASE_URL = "http://localhost:3000"
DEFAULT_CONCURRENCY = 10
DEFAULT_TIMEOUT_MS = 5_000
DEFAULT_TOTAL_REQUESTS = 100
DEFAULT_REPEAT = 1


class ConfigurationError(ValueError):
    """Raised when run parameters cannot be resolved into a valid RunConfig."""


@dataclass(frozen=True)
class RunConfig:
    """Resolved parameters for a benchmark; shared by every run of it."""

    concurrency: int = DEFAULT_CONCURRENCY
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    total_requests: int = DEFAULT_TOTAL_REQUESTS
    endpoints: tuple[str, ...] = DEFAULT_ENDPOINTS
    repeat: int = DEFAULT_REPEAT
    base_url: str = DEFAULT_BASE_URL
    mode: str = "random"
    seed: int | None = None

    def __post_init__(self) -> None:
        # Lists are accepted for convenience but stored as a tuple.
        object.__setattr__(self, "endpoints", tuple(self.endpoints))

        if self.concurrency <= 0:
            raise ConfigurationError(f"concurrency must be > 0, got {self.concurrency}")
        if self.timeout_ms <= 0:
            raise ConfigurationError(f"timeout must be > 0 ms, got {self.timeout_ms}")
        if self.total_requests < 0:
            raise ConfigurationError(
                f"total requests must be >= 0, got {self.total_requests}"
            )
        if self.repeat <= 0:
            raise ConfigurationError(f"repeat must be > 0, got {self.repeat}")
        if not self.endpoints:
            raise ConfigurationError("endpoint pool must not be empty")
        if any(not endpoint for endpoint in self.endpoints):
            raise ConfigurationError("endpoint identifiers must be non-empty strings")
        if self.mode not in MODES:
            raise ConfigurationError(
                f"unknown mode {self.mode!r}; expected one of {', '.join(MODES)}"
            )

    @property
    def timeout_s(self) -> float:
        return self.timeout_ms / 1000.0


def parse_endpoints(value: str | None) -> tuple[str, ...]:
    """Split a comma-separated endpoint list, falling back to the default pool."""
    if not value:
        return DEFAULT_ENDPOINTS
    endpoints = tuple(item.strip() for item in value.split(",") if item.strip())
    if not endpoints:
        raise ConfigurationError(f"no endpoints found in {value!r}")
    return endpoints


def resolve_config(
    *,
    concurrency: int | None = None,
    timeout_ms: int | None = None,
    total_requests: int | None = None,
    repeat: int | None = None,
    endpoints: str | Sequence[str] | None = None,
    base_url: str | None = None,
    mode: str | None = None,
    seed: int | None = None,
    env: Mapping[str, str] | None = None,
) -> RunConfig:
    """Build a RunConfig from explicit values, then environment, then defaults."""
    env = os.environ if env is None else env

    if endpoints is None:
        endpoints = env.get("LOADBENCH_ENDPOINTS")
    if endpoints is None or isinstance(endpoints, str):
        endpoint_pool = parse_endpoints(endpoints)
    else:
        endpoint_pool = tuple(endpoints)

    if seed is None:
        seed = _env_int(env, "LOADBENCH_SEED", None)

    return RunConfig(
        concurrency=_pick(concurrency, env, "LOADBENCH_CONCURRENCY", DEFAULT_CONCURRENCY),
        timeout_ms=_pick(timeout_ms, env, "LOADBENCH_TIMEOUT_MS", DEFAULT_TIMEOUT_MS),
        total_requests=_pick(
            total_requests, env, "LOADBENCH_TOTAL_REQUESTS", DEFAULT_TOTAL_REQUESTS
        ),
        repeat=_pick(repeat, env, "LOADBENCH_REPEAT", DEFAULT_REPEAT),
        endpoints=endpoint_pool,
        base_url=base_url or env.get("LOADBENCH_BASE_URL", DEFAULT_BASE_URL),
        mode=mode or env.get("LOADBENCH_MODE", "random"),
        seed=seed,
    )


def _pick(value: int | None, env: Mapping[str, str], name: str, default: int) -> int:
    if value is not None:
        return value
    return _env_int(env, name, default)


def _env_int(env: Mapping[str, str], name: str, default: int | None) -> int | None:
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigurationError(f"invalid {name} value {raw!r}; expected an integer") from exc


__all__ = [
    "ConfigurationError",
    "DEFAULT_BASE_URL",
    "MODES",
    "RunConfig",
    "parse_endpoints",
    "resolve_config",
]
