"""
Azure Log Analytics scaler.

LogAnalyticsScaler answers the three questions an autoscaler asks each
cycle for one scaled object:

    is_active()        -> should the target be scaled up from zero?
    get_metric_spec()  -> which external metric, with what target value?
    get_metrics(name)  -> what is the current value of that metric?

is_active() and get_metric_spec() share one query per cycle through a
SessionCache; get_metrics() always runs a new query.

Usage:
    async with LogAnalyticsScaler(config) as scaler:
        if await scaler.is_active():
            values = await scaler.get_metrics(metric_name)
"""

import asyncio
import logging
import re
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional

import aiohttp

from core import metrics
from core.auth.lifecycle import TokenLifecycleManager
from core.auth.providers import create_auth_provider
from core.auth.token_store import TokenStore
from core.errors.exceptions import ScalerError
from core.http.client import create_session
from core.logging.utilities import LoggedClass
from log_analytics_scaler.config import ScalerConfig
from log_analytics_scaler.query import QueryExecutor
from log_analytics_scaler.validation import NO_THRESHOLD, MetricSample

METRIC_NAME_PREFIX = "azure-log-analytics"

_UNSAFE_METRIC_CHARS = re.compile(r'[/.:%()" ]')


def normalize_string(value: str) -> str:
    """Replace characters not allowed in external metric names with '-'."""
    return _UNSAFE_METRIC_CHARS.sub("-", value)


@dataclass(frozen=True)
class ExternalMetricSpec:
    """External metric the autoscaler should watch for this scaler."""

    metric_name: str
    target_average_value: int
    type: str = "External"
    target_type: str = "AverageValue"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "external": {
                "metric": {"name": self.metric_name},
                "target": {
                    "type": self.target_type,
                    "averageValue": self.target_average_value,
                },
            },
        }


@dataclass(frozen=True)
class ExternalMetricValue:
    metric_name: str
    value: int
    timestamp: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "metricName": self.metric_name,
            "value": self.value,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass
class SessionCache:
    """Per-cycle memo; negative values mean not fetched yet."""

    metric_value: int = -1
    metric_threshold: int = -1

    def reset(self) -> None:
        self.metric_value = -1
        self.metric_threshold = -1


class LogAnalyticsScaler(LoggedClass):
    """
    Scaler for one scaled object backed by a Log Analytics query.

    Args:
        config: Validated scaler configuration
        token_store: Shared token store (default: process-wide store)
        session: aiohttp session to use; one is created (and closed by
            close()) when omitted
        clock: Returns current epoch seconds
        sleep: Awaitable sleep used for the not-before wait
    """

    log_component = "scaler"

    def __init__(
        self,
        config: ScalerConfig,
        token_store: Optional[TokenStore] = None,
        session: Optional[aiohttp.ClientSession] = None,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.config = config
        self.scaled_object = config.name
        self.namespace = config.namespace
        self.workspace_id = config.metadata.workspace_id
        self.metric_name = normalize_string(f"{METRIC_NAME_PREFIX}-{self.workspace_id}")

        self.token_manager = TokenLifecycleManager(
            create_auth_provider(config.metadata.credentials()),
            store=token_store,
            clock=clock,
            sleep=sleep,
        )
        self.executor = QueryExecutor(self.workspace_id, self.token_manager)
        self.cache = SessionCache()

        self._session = session
        self._owns_session = session is None
        super().__init__()

    async def __aenter__(self) -> "LogAnalyticsScaler":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            self._session = create_session(timeout_seconds=self.config.timeout_seconds)
        return self._session

    async def _fetch(self) -> MetricSample:
        sample = await self.executor.run(self._get_session(), self.config.metadata.query)
        metrics.metric_value.labels(workspace=self.workspace_id).set(sample.value)
        return sample

    def _target_threshold(self, sample: MetricSample) -> int:
        if sample.threshold > 0:
            return sample.threshold
        return self.config.metadata.threshold

    async def ensure_fresh(self) -> None:
        """Run the query unless this cycle already has a value."""
        if self.cache.metric_value >= 0:
            return

        sample = await self._fetch()
        self.cache.metric_value = sample.value
        self.cache.metric_threshold = self._target_threshold(sample)

        self._log(
            logging.DEBUG,
            "Metric refreshed",
            metric_value=self.cache.metric_value,
            metric_threshold=self.cache.metric_threshold,
        )

    async def is_active(self) -> bool:
        """
        Whether the query currently reports a positive value.

        Raises:
            ScalerError: AuthError, QueryError or ValidationError from the fetch
        """
        try:
            await self.ensure_fresh()
        except ScalerError as e:
            self._log_exception(
                e,
                "Failed to check whether scaler is active",
                level=logging.WARNING if e.is_retryable else logging.ERROR,
            )
            raise
        return self.cache.metric_value > 0

    async def get_metric_spec(self) -> List[ExternalMetricSpec]:
        """
        Describe the external metric for this scaler.

        Returns an empty list when the metric cannot be read, so metric
        registration does not fail on a transient error.
        """
        try:
            await self.ensure_fresh()
        except ScalerError as e:
            self._log(
                logging.DEBUG,
                "Failed to get metric spec, returning empty list",
                error_category=e.category.value,
                error_message=str(e),
            )
            return []

        return [
            ExternalMetricSpec(
                metric_name=self.metric_name,
                target_average_value=self.cache.metric_threshold,
            )
        ]

    async def get_metrics(self, metric_name: str) -> List[ExternalMetricValue]:
        """
        Read the current metric value, bypassing the cycle cache.

        Raises:
            ScalerError: AuthError, QueryError or ValidationError from the fetch
        """
        try:
            sample = await self._fetch()
        except ScalerError as e:
            self._log_exception(
                e,
                "Failed to get metrics",
                level=logging.WARNING if e.is_retryable else logging.ERROR,
                metric_name=metric_name,
            )
            raise

        self._log(
            logging.DEBUG,
            "Metric read",
            metric_name=metric_name,
            metric_value=sample.value,
            metric_threshold=sample.threshold if sample.threshold != NO_THRESHOLD else None,
        )
        return [
            ExternalMetricValue(
                metric_name=metric_name,
                value=sample.value,
                timestamp=datetime.now(timezone.utc),
            )
        ]

    def invalidate(self) -> None:
        """Forget this cycle's value so the next is_active() queries again."""
        self.cache.reset()

    async def close(self) -> None:
        """Close the HTTP session if this scaler created it."""
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None
