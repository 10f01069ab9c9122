"""Tests for LogAnalyticsScaler caching and error semantics."""

import logging
from datetime import timezone
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from core.auth.credentials import AuthMode
from core.errors.exceptions import AuthError, QueryError, ValidationError
from core.http.client import HttpResponse
from log_analytics_scaler.config import ScalerConfig, ScalerMetadata
from log_analytics_scaler.scaler import (
    ExternalMetricSpec,
    LogAnalyticsScaler,
    SessionCache,
    normalize_string,
)
from log_analytics_scaler.validation import NO_THRESHOLD, MetricSample


@pytest.fixture
def config():
    return ScalerConfig(
        name="orders",
        namespace="prod",
        metadata=ScalerMetadata(
            auth_mode=AuthMode.SERVICE_PRINCIPAL,
            workspace_id="ws-1",
            query="Orders | count",
            threshold=5,
            tenant_id="tenant-1",
            client_id="client-1",
            client_secret="secret-1",
        ),
    )


@pytest.fixture
def scaler(config, token_store):
    """Scaler with the query executor replaced by a mock."""
    scaler = LogAnalyticsScaler(config, token_store=token_store, session=MagicMock())
    scaler.executor.run = AsyncMock(return_value=MetricSample(value=12, threshold=100))
    return scaler


class TestNormalizeString:
    def test_replaces_unsafe_characters(self):
        assert normalize_string('a/b.c:d%e(f)g"h i') == "a-b-c-d-e-f-g-h-i"

    def test_metric_name(self, scaler):
        assert scaler.metric_name == "azure-log-analytics-ws-1"


class TestSessionCache:
    def test_starts_unfetched(self):
        cache = SessionCache()
        assert (cache.metric_value, cache.metric_threshold) == (-1, -1)

    def test_reset(self):
        cache = SessionCache(metric_value=3, metric_threshold=4)
        cache.reset()
        assert (cache.metric_value, cache.metric_threshold) == (-1, -1)


class TestIsActive:
    """Tests for is_active."""

    @pytest.mark.asyncio
    async def test_positive_value_is_active(self, scaler):
        assert await scaler.is_active() is True

    @pytest.mark.asyncio
    async def test_zero_value_is_inactive(self, scaler):
        scaler.executor.run.return_value = MetricSample(value=0, threshold=10)
        assert await scaler.is_active() is False

    @pytest.mark.asyncio
    async def test_two_calls_run_one_query(self, scaler):
        await scaler.is_active()
        await scaler.is_active()

        assert scaler.executor.run.await_count == 1

    @pytest.mark.asyncio
    async def test_invalidate_forces_new_query(self, scaler):
        await scaler.is_active()
        scaler.invalidate()
        await scaler.is_active()

        assert scaler.executor.run.await_count == 2

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error",
        [
            AuthError("no token", status_code=401),
            QueryError("bad query", status_code=400),
            ValidationError("no_rows", "no rows"),
        ],
    )
    async def test_errors_propagate_unchanged(self, scaler, error):
        scaler.executor.run.side_effect = error

        with pytest.raises(type(error)) as exc_info:
            await scaler.is_active()

        assert exc_info.value is error
        assert scaler.cache.metric_value == -1

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error,level",
        [
            (AuthError("no token", status_code=401), logging.WARNING),
            (QueryError("unavailable", status_code=503), logging.WARNING),
            (QueryError("bad query", status_code=400), logging.ERROR),
            (ValidationError("no_rows", "no rows"), logging.ERROR),
        ],
    )
    async def test_failure_logged_by_retryability(self, scaler, caplog, error, level):
        """Retryable failures log a warning, permanent ones an error."""
        scaler.executor.run.side_effect = error

        with caplog.at_level(logging.DEBUG), pytest.raises(type(error)):
            await scaler.is_active()

        message = "Failed to check whether scaler is active"
        failed = [r for r in caplog.records if message in r.getMessage()]
        assert len(failed) == 1
        assert failed[0].levelno == level


class TestGetMetricSpec:
    """Tests for get_metric_spec."""

    @pytest.mark.asyncio
    async def test_uses_query_threshold(self, scaler):
        specs = await scaler.get_metric_spec()

        assert specs == [
            ExternalMetricSpec(metric_name="azure-log-analytics-ws-1", target_average_value=100)
        ]
        assert specs[0].to_dict() == {
            "type": "External",
            "external": {
                "metric": {"name": "azure-log-analytics-ws-1"},
                "target": {"type": "AverageValue", "averageValue": 100},
            },
        }

    @pytest.mark.asyncio
    @pytest.mark.parametrize("threshold", [NO_THRESHOLD, 0])
    async def test_falls_back_to_configured_threshold(self, scaler, threshold):
        scaler.executor.run.return_value = MetricSample(value=5, threshold=threshold)

        specs = await scaler.get_metric_spec()

        assert specs[0].target_average_value == 5

    @pytest.mark.asyncio
    async def test_shares_cache_with_is_active(self, scaler):
        await scaler.is_active()
        await scaler.get_metric_spec()

        assert scaler.executor.run.await_count == 1

    @pytest.mark.asyncio
    async def test_error_returns_empty_list(self, scaler):
        scaler.executor.run.side_effect = AuthError("identity provider down", status_code=503)

        assert await scaler.get_metric_spec() == []

    @pytest.mark.asyncio
    async def test_unexpected_error_not_swallowed(self, scaler):
        scaler.executor.run.side_effect = RuntimeError("bug")

        with pytest.raises(RuntimeError):
            await scaler.get_metric_spec()


class TestGetMetrics:
    """Tests for get_metrics."""

    @pytest.mark.asyncio
    async def test_returns_current_value(self, scaler):
        values = await scaler.get_metrics("azure-log-analytics-ws-1")

        assert len(values) == 1
        assert values[0].metric_name == "azure-log-analytics-ws-1"
        assert values[0].value == 12
        assert values[0].timestamp.tzinfo == timezone.utc

    @pytest.mark.asyncio
    async def test_always_queries(self, scaler):
        await scaler.is_active()
        await scaler.get_metrics("m")
        await scaler.get_metrics("m")

        assert scaler.executor.run.await_count == 3

    @pytest.mark.asyncio
    async def test_does_not_touch_cycle_cache(self, scaler):
        await scaler.is_active()
        scaler.executor.run.return_value = MetricSample(value=0)

        await scaler.get_metrics("m")

        assert scaler.cache.metric_value == 12

    @pytest.mark.asyncio
    async def test_errors_propagate(self, scaler):
        scaler.executor.run.side_effect = QueryError("server error", status_code=500)

        with pytest.raises(QueryError):
            await scaler.get_metrics("m")

    @pytest.mark.asyncio
    async def test_permanent_failure_logged_as_error(self, scaler, caplog):
        scaler.executor.run.side_effect = ValidationError("too_many_rows", "too many rows")

        with caplog.at_level(logging.DEBUG), pytest.raises(ValidationError):
            await scaler.get_metrics("m")

        failed = [r for r in caplog.records if "Failed to get metrics" in r.getMessage()]
        assert [r.levelno for r in failed] == [logging.ERROR]

    @pytest.mark.asyncio
    async def test_to_dict(self, scaler):
        values = await scaler.get_metrics("m")
        data = values[0].to_dict()

        assert data["metricName"] == "m"
        assert data["value"] == 12
        assert data["timestamp"].endswith("+00:00")


class TestSessionOwnership:
    """close() only closes sessions the scaler created."""

    @pytest.mark.asyncio
    async def test_injected_session_left_open(self, config, token_store):
        session = MagicMock()
        session.close = AsyncMock()

        async with LogAnalyticsScaler(config, token_store=token_store, session=session):
            pass

        session.close.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_created_session_closed(self, config, token_store):
        created = MagicMock()
        created.close = AsyncMock()

        with patch("log_analytics_scaler.scaler.create_session", return_value=created) as factory:
            scaler = LogAnalyticsScaler(config, token_store=token_store)
            scaler.executor.run = AsyncMock(return_value=MetricSample(value=1))
            await scaler.is_active()
            await scaler.close()

        factory.assert_called_once_with(timeout_seconds=30)
        created.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_close_without_session_is_noop(self, config, token_store):
        scaler = LogAnalyticsScaler(config, token_store=token_store)
        await scaler.close()


class TestEndToEnd:
    """Scaler wired to a mocked HTTP layer."""

    @pytest.mark.asyncio
    async def test_full_fetch(self, config, token_store, token_body, query_body, clock):
        token_send = AsyncMock(return_value=HttpResponse(token_body(), 200))
        query_send = AsyncMock(
            return_value=HttpResponse(query_body(rows=[[7, None]], types=("long", "long")), 200)
        )

        with patch("core.auth.providers.send_request", token_send), patch(
            "log_analytics_scaler.query.send_request", query_send
        ):
            scaler = LogAnalyticsScaler(
                config, token_store=token_store, session=MagicMock(), clock=clock
            )
            with pytest.raises(ValidationError, match="threshold value is empty"):
                await scaler.is_active()

            query_send.return_value = HttpResponse(
                query_body(rows=[[7]], types=("long",)), 200
            )
            assert await scaler.is_active() is True
            specs = await scaler.get_metric_spec()

        assert specs[0].target_average_value == 5
        assert token_send.await_count == 1
        assert query_send.await_count == 2

    @pytest.mark.asyncio
    async def test_oversized_integer_degrades_metric_spec(
        self, config, token_store, token_body, query_body, clock
    ):
        """An integer cell too large for a float becomes a ValidationError."""
        token_send = AsyncMock(return_value=HttpResponse(token_body(), 200))
        query_send = AsyncMock(
            return_value=HttpResponse(query_body(rows=[[10**400]], types=("long",)), 200)
        )

        with patch("core.auth.providers.send_request", token_send), patch(
            "log_analytics_scaler.query.send_request", query_send
        ):
            scaler = LogAnalyticsScaler(
                config, token_store=token_store, session=MagicMock(), clock=clock
            )
            assert await scaler.get_metric_spec() == []

            with pytest.raises(ValidationError) as exc_info:
                await scaler.is_active()

        assert exc_info.value.reason == "value_not_numeric"
