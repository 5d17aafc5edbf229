"""
Load-testing harness for HTTP services.

This package drives a target service with batched, concurrency-bounded request
loads, records per-request outcomes, and summarises latency and throughput per
endpoint for each run and across repeated runs.
"""

from .main import main

__all__ = ["main"]
