from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Iterator, Sequence

DEFAULT_ENDPOINTS: tuple[str, ...] = (
    "/compute",
    "/counter",
    "/slow",
    "/factorial/10",
    "/fibonacci/10",
    "/deposit",
    "/withdraw",
    "/account",
)

MUTATION_PAYLOAD: dict[str, object] = {"amount": 1}


@dataclass(frozen=True)
class RequestSpec:
    method: str
    json: dict[str, object] | None = None


READ_REQUEST = RequestSpec(method="GET")

# Endpoints that change SUT state and need a request body.
MUTATING_ENDPOINTS: dict[str, RequestSpec] = {
    "/deposit": RequestSpec(method="POST", json=MUTATION_PAYLOAD),
    "/withdraw": RequestSpec(method="POST", json=MUTATION_PAYLOAD),
}


def request_spec(endpoint: str) -> RequestSpec:
    """Return the HTTP method and body used to call ``endpoint``."""
    return MUTATING_ENDPOINTS.get(endpoint, READ_REQUEST)


def register_mutating(endpoint: str, payload: dict[str, object] | None = None) -> None:
    MUTATING_ENDPOINTS[endpoint] = RequestSpec(
        method="POST",
        json=dict(payload) if payload is not None else MUTATION_PAYLOAD,
    )


class RandomSelector:
    """Uniform pick with replacement from the endpoint pool."""

    def __init__(self, pool: Sequence[str], rng: random.Random | None = None) -> None:
        if not pool:
            raise ValueError("endpoint pool must not be empty")
        self._pool = tuple(pool)
        self._rng = rng or random.Random()

    def pick(self) -> str:
        return self._rng.choice(self._pool)

    def pick_many(self, count: int) -> list[str]:
        return [self.pick() for _ in range(count)]


class SequentialSelector:
    """Walks the endpoint pool in configured order, one endpoint per batch."""

    def __init__(self, pool: Sequence[str]) -> None:
        if not pool:
            raise ValueError("endpoint pool must not be empty")
        self._pool = tuple(pool)

    def __iter__(self) -> Iterator[str]:
        return iter(self._pool)


__all__ = [
    "DEFAULT_ENDPOINTS",
    "MUTATING_ENDPOINTS",
    "MUTATION_PAYLOAD",
    "RandomSelector",
    "RequestSpec",
    "SequentialSelector",
    "register_mutating",
    "request_spec",
]
