"""
Demo service under test with injected latency and a shared account balance.

Every endpoint sleeps to simulate slow work; the sleeps are multiplied by
``latency_scale`` so the server can also run instantly inside tests. Work that
would outlast ``request_timeout_ms`` is cut short with a 503.
"""

from __future__ import annotations

import argparse
import http.server
import json
import logging
import math
import os
import re
import sys
import threading
import time
from http import HTTPStatus
from typing import Any

LOGGER = logging.getLogger("loadbench.demo_server")

DEFAULT_PORT = 3000
DEFAULT_REQUEST_TIMEOUT_MS = 2_000
DEFAULT_BALANCE = 1_000

STEP_DELAY_S = 0.2
COUNTER_DELAY_S = 5.0
SLOW_DELAY_S = 20.0
DEPOSIT_DELAY_S = 0.5
WITHDRAW_DELAY_S = 0.2
COMPUTE_ITERATIONS = 10_000_000

FACTORIAL_MAX = 15
FIBONACCI_MAX = 25

_FACTORIAL_PATH = re.compile(r"^/factorial/([^/]+)$")
_FIBONACCI_PATH = re.compile(r"^/fibonacci/([^/]+)$")


class InsufficientFunds(Exception):
    """Raised when a withdrawal exceeds the current balance."""


class RequestTimedOut(Exception):
    """Raised when simulated work would exceed the server-side request timeout."""


class Account:
    """Shared balance; every update happens under the account lock."""

    def __init__(self, balance: int = DEFAULT_BALANCE) -> None:
        self._balance = balance
        self._lock = threading.Lock()

    @property
    def balance(self) -> int:
        with self._lock:
            return self._balance

    def deposit(self, amount: int) -> int:
        with self._lock:
            self._balance += amount
            return self._balance

    def withdraw(self, amount: int) -> int:
        with self._lock:
            if self._balance < amount:
                raise InsufficientFunds(f"balance {self._balance} < {amount}")
            self._balance -= amount
            return self._balance


class Counter:
    def __init__(self) -> None:
        self._value = 0
        self._lock = threading.Lock()

    def increment(self) -> int:
        with self._lock:
            self._value += 1
            return self._value


class DemoState:
    def __init__(
        self,
        latency_scale: float = 1.0,
        request_timeout_ms: int = DEFAULT_REQUEST_TIMEOUT_MS,
        balance: int = DEFAULT_BALANCE,
    ) -> None:
        if latency_scale < 0:
            raise ValueError("latency_scale must be >= 0")
        self.latency_scale = latency_scale
        self.request_timeout_s = request_timeout_ms / 1000.0
        self.account = Account(balance)
        self.counter = Counter()

    def work(self, delay_s: float) -> None:
        """Sleep for the scaled delay, or until the request timeout if that comes first."""
        scaled = delay_s * self.latency_scale
        if scaled > self.request_timeout_s:
            time.sleep(self.request_timeout_s)
            raise RequestTimedOut(f"work of {scaled:.2f}s exceeds request timeout")
        if scaled > 0:
            time.sleep(scaled)


def factorial_steps(n: int) -> int:
    return max(n - 1, 0)


def fibonacci_steps(n: int) -> int:
    """Number of delayed calls made by the naive recursive Fibonacci."""
    steps = [0, 0]
    for i in range(2, n + 1):
        steps.append(1 + steps[i - 1] + steps[i - 2])
    return steps[n] if n >= 0 else 0


def fibonacci(n: int) -> int:
    a, b = 0, 1
    for _ in range(n):
        a, b = b, a + b
    return a


class DemoRequestHandler(http.server.BaseHTTPRequestHandler):
    server: "DemoServer"

    def log_message(self, format: str, *args: Any) -> None:
        LOGGER.debug("%s - %s", self.address_string(), format % args)

    @property
    def state(self) -> DemoState:
        return self.server.state

    def do_GET(self) -> None:
        path = self.path.split("?", 1)[0]
        try:
            if path == "/health":
                self._send_json({"status": "ok"})
            elif path == "/account":
                self._send_json({"balance": self.state.account.balance})
            elif path == "/compute":
                self._send_json({"result": self._compute()})
            elif path == "/counter":
                self.state.work(COUNTER_DELAY_S)
                self._send_json({"counter": self.state.counter.increment()})
            elif path == "/slow":
                self.state.work(SLOW_DELAY_S)
                self._send_empty(HTTPStatus.OK)
            elif match := _FACTORIAL_PATH.match(path):
                self._factorial(match.group(1))
            elif match := _FIBONACCI_PATH.match(path):
                self._fibonacci(match.group(1))
            else:
                self._send_error(HTTPStatus.NOT_FOUND, "not found")
        except RequestTimedOut:
            self._send_error(HTTPStatus.SERVICE_UNAVAILABLE, "Service unavailable. Please retry.")

    def do_POST(self) -> None:
        path = self.path.split("?", 1)[0]
        if path not in ("/deposit", "/withdraw"):
            self._send_error(HTTPStatus.NOT_FOUND, "not found")
            return

        amount = self._read_amount()
        if amount is None:
            self._send_error(HTTPStatus.BAD_REQUEST, "invalid amount")
            return

        try:
            if path == "/deposit":
                self.state.work(DEPOSIT_DELAY_S)
                balance = self.state.account.deposit(amount)
            else:
                self.state.work(WITHDRAW_DELAY_S)
                balance = self.state.account.withdraw(amount)
        except RequestTimedOut:
            self._send_error(HTTPStatus.SERVICE_UNAVAILABLE, "Service unavailable. Please retry.")
            return
        except InsufficientFunds:
            self._send_error(HTTPStatus.BAD_REQUEST, "insufficient funds")
            return
        self._send_json({"balance": balance})

    def _compute(self) -> float:
        iterations = int(COMPUTE_ITERATIONS * self.state.latency_scale)
        return sum(math.sqrt(i % 1000) for i in range(iterations))

    def _factorial(self, raw: str) -> None:
        n = _parse_int(raw)
        if n is None or not 0 <= n <= FACTORIAL_MAX:
            self._send_error(HTTPStatus.BAD_REQUEST, f"invalid parameter (0 <= n <= {FACTORIAL_MAX})")
            return
        self.state.work(STEP_DELAY_S * factorial_steps(n))
        self._send_json({"n": n, "factorial": math.factorial(n)})

    def _fibonacci(self, raw: str) -> None:
        n = _parse_int(raw)
        if n is None or not 0 <= n <= FIBONACCI_MAX:
            self._send_error(HTTPStatus.BAD_REQUEST, f"invalid parameter (0 <= n <= {FIBONACCI_MAX})")
            return
        self.state.work(STEP_DELAY_S * fibonacci_steps(n))
        self._send_json({"n": n, "fibonacci": fibonacci(n)})

    def _read_amount(self) -> int | None:
        length = _parse_int(self.headers.get("Content-Length") or "0")
        if length is None or length < 0:
            # Unframed body: close after replying.
            self.close_connection = True
            return None
        body = self.rfile.read(length) if length else b""
        try:
            data = json.loads(body or b"{}")
            amount = data.get("amount") if isinstance(data, dict) else None
        except json.JSONDecodeError:
            return None
        if isinstance(amount, bool) or not isinstance(amount, (int, float)):
            return None
        if amount <= 0 or not float(amount).is_integer():
            return None
        return int(amount)

    def _send_json(self, data: dict[str, Any], status: HTTPStatus = HTTPStatus.OK) -> None:
        body = json.dumps(data).encode()
        self.send_response(status)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def _send_empty(self, status: HTTPStatus) -> None:
        self.send_response(status)
        self.send_header("Content-Length", "0")
        self.end_headers()

    def _send_error(self, status: HTTPStatus, message: str) -> None:
        self._send_json({"error": message}, status=status)


class DemoServer(http.server.ThreadingHTTPServer):
    daemon_threads = True

    def __init__(self, address: tuple[str, int], state: DemoState) -> None:
        self.state = state
        super().__init__(address, DemoRequestHandler)

    @property
    def base_url(self) -> str:
        host, port = self.server_address[:2]
        return f"http://{host}:{port}"


def create_server(
    host: str = "127.0.0.1",
    port: int = DEFAULT_PORT,
    latency_scale: float = 1.0,
    request_timeout_ms: int = DEFAULT_REQUEST_TIMEOUT_MS,
    balance: int = DEFAULT_BALANCE,
) -> DemoServer:
    state = DemoState(
        latency_scale=latency_scale,
        request_timeout_ms=request_timeout_ms,
        balance=balance,
    )
    return DemoServer((host, port), state)


def _parse_int(raw: str) -> int | None:
    try:
        return int(raw, 10)
    except ValueError:
        return None


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Demo service under test for loadbench")
    parser.add_argument("--host", default=os.environ.get("DEMO_SERVER_HOST", "127.0.0.1"))
    parser.add_argument(
        "--port", type=int, default=int(os.environ.get("DEMO_SERVER_PORT", DEFAULT_PORT))
    )
    parser.add_argument(
        "--latency-scale",
        type=float,
        default=1.0,
        help="Multiplier applied to every simulated delay (0 disables them)",
    )
    parser.add_argument(
        "--request-timeout-ms",
        type=int,
        default=DEFAULT_REQUEST_TIMEOUT_MS,
        help="Server-side timeout after which a 503 is returned",
    )
    parser.add_argument("--log-level", default="INFO", help="Logging level")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    server = create_server(
        host=args.host,
        port=args.port,
        latency_scale=args.latency_scale,
        request_timeout_ms=args.request_timeout_ms,
    )
    LOGGER.info("Demo server listening on %s", server.base_url)
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        LOGGER.info("Stopping demo server")
    finally:
        server.server_close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
