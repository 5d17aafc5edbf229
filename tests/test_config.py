import pytest

from loadbench.config import (
    DEFAULT_BASE_URL,
    ConfigurationError,
    RunConfig,
    parse_endpoints,
    resolve_config,
)
from loadbench.endpoints import DEFAULT_ENDPOINTS


class TestRunConfig:
    def test_defaults(self) -> None:
        config = RunConfig()
        assert config.concurrency == 10
        assert config.timeout_ms == 5000
        assert config.repeat == 1
        assert config.endpoints == DEFAULT_ENDPOINTS
        assert config.base_url == DEFAULT_BASE_URL
        assert config.mode == "random"

    def test_endpoints_stored_as_tuple(self) -> None:
        config = RunConfig(endpoints=["/a", "/b"])
        assert config.endpoints == ("/a", "/b")

    def test_is_immutable(self) -> None:
        config = RunConfig()
        with pytest.raises(AttributeError):
            config.concurrency = 3  # type: ignore[misc]

    def test_zero_total_requests_allowed(self) -> None:
        assert RunConfig(total_requests=0).total_requests == 0

    @pytest.mark.parametrize(
        "kwargs,message",
        [
            ({"concurrency": 0}, "concurrency"),
            ({"concurrency": -2}, "concurrency"),
            ({"timeout_ms": 0}, "timeout"),
            ({"total_requests": -1}, "total requests"),
            ({"repeat": 0}, "repeat"),
            ({"endpoints": ()}, "empty"),
            ({"endpoints": ("/a", "")}, "non-empty"),
            ({"mode": "burst"}, "unknown mode"),
        ],
    )
    def test_invalid_values_raise(self, kwargs: dict, message: str) -> None:
        with pytest.raises(ConfigurationError, match=message):
            RunConfig(**kwargs)

    def test_configuration_error_is_value_error(self) -> None:
        assert issubclass(ConfigurationError, ValueError)

    def test_timeout_seconds(self) -> None:
        assert RunConfig(timeout_ms=1500).timeout_s == 1.5


class TestParseEndpoints:
    def test_empty_falls_back_to_default_pool(self) -> None:
        assert parse_endpoints(None) == DEFAULT_ENDPOINTS
        assert parse_endpoints("") == DEFAULT_ENDPOINTS

    def test_splits_and_strips(self) -> None:
        assert parse_endpoints(" /a, /b ,/c/1") == ("/a", "/b", "/c/1")

    def test_only_separators_raises(self) -> None:
        with pytest.raises(ConfigurationError):
            parse_endpoints(" , ,")


class TestResolveConfig:
    def test_explicit_values_win_over_env(self) -> None:
        env = {"LOADBENCH_CONCURRENCY": "7", "LOADBENCH_REPEAT": "4"}
        config = resolve_config(concurrency=2, env=env)
        assert config.concurrency == 2
        assert config.repeat == 4

    def test_reads_environment(self) -> None:
        env = {
            "LOADBENCH_CONCURRENCY": "3",
            "LOADBENCH_TIMEOUT_MS": "250",
            "LOADBENCH_TOTAL_REQUESTS": "12",
            "LOADBENCH_REPEAT": "2",
            "LOADBENCH_ENDPOINTS": "/x,/y",
            "LOADBENCH_BASE_URL": "http://sut:8080",
            "LOADBENCH_MODE": "sequential",
            "LOADBENCH_SEED": "42",
        }
        config = resolve_config(env=env)
        assert config == RunConfig(
            concurrency=3,
            timeout_ms=250,
            total_requests=12,
            repeat=2,
            endpoints=("/x", "/y"),
            base_url="http://sut:8080",
            mode="sequential",
            seed=42,
        )

    def test_sequence_endpoints_accepted(self) -> None:
        assert resolve_config(endpoints=["/a"], env={}).endpoints == ("/a",)

    def test_non_integer_env_raises(self) -> None:
        with pytest.raises(ConfigurationError, match="LOADBENCH_CONCURRENCY"):
            resolve_config(env={"LOADBENCH_CONCURRENCY": "many"})

    def test_invalid_resolved_value_raises(self) -> None:
        with pytest.raises(ConfigurationError):
            resolve_config(timeout_ms=-5, env={})
