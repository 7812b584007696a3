"""
One scrape: resolve, reconcile, fetch, collect, serialize.
"""

import asyncio
import time
from typing import Callable, FrozenSet, Iterable, Optional

from shared.errors import ScrapeTimeoutError
from shared.logging import get_logger
from shared.metrics import MetricsCollector

from .catalog import SonarMetric, list_supported_metrics
from .collector import MeasureCollector
from .enablement import ConfigurationSource, resolve_enabled
from .registry import RegistryManager
from .topology import TopologyFetcher


class ScrapePipeline:
    """Runs the scrape state machine under the registry lock.

    Nothing survives between scrapes except the gauge identities, which the
    next scrape rebuilds anyway. A failed scrape clears the registry before
    the error propagates.
    """

    def __init__(
        self,
        config: ConfigurationSource,
        registry: RegistryManager,
        topology: TopologyFetcher,
        collector: MeasureCollector,
        timeout_seconds: float = 60.0,
        catalog: Callable[[], Iterable[SonarMetric]] = list_supported_metrics,
        metrics: Optional[MetricsCollector] = None
    ):
        self.config = config
        self.registry = registry
        self.topology = topology
        self.collector = collector
        self.timeout_seconds = timeout_seconds
        self.catalog = catalog
        self.metrics = metrics
        self.logger = get_logger("exporter.pipeline")

    def resolve(self) -> FrozenSet[SonarMetric]:
        return resolve_enabled(self.catalog(), self.config)

    def prime(self) -> FrozenSet[SonarMetric]:
        """Register gauges for the currently enabled metrics without fetching."""
        enabled = self.resolve()
        self.registry.reconcile(enabled)
        self.logger.info("Registry primed", enabled=sorted(m.key for m in enabled))
        return enabled

    async def scrape(self) -> bytes:
        """Run one full scrape and return the exposition body."""
        start_time = time.time()
        try:
            body = await asyncio.wait_for(self._run_locked(), timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            self._observe_duration("timeout", start_time)
            self.logger.error("Scrape timed out", timeout_seconds=self.timeout_seconds)
            raise ScrapeTimeoutError(self.timeout_seconds)
        except Exception:
            self._observe_duration("error", start_time)
            raise

        self._observe_duration("success", start_time)
        return body

    async def _run_locked(self) -> bytes:
        """Wait for the registry lock, then run; the wait counts against the timeout."""
        async with self.registry.lock:
            try:
                return await self._run()
            except BaseException:
                # Only the lock holder may touch the registry.
                self.registry.clear()
                raise

    async def _run(self) -> bytes:
        enabled = self.resolve()
        self.registry.reconcile(enabled)
        if self.metrics is not None:
            self.metrics.set_gauge("enabled_metrics", len(enabled))

        if not enabled:
            self.logger.info("No metrics enabled, skipping upstream queries")
            return self.registry.serialize()

        pairs = await self.topology.list_topology()
        samples = await self.collector.collect_all(enabled, pairs)

        self.logger.info(
            "Scrape completed",
            enabled=len(enabled),
            branches=len(pairs),
            samples=samples
        )
        return self.registry.serialize()

    def _observe_duration(self, outcome: str, start_time: float):
        if self.metrics is not None:
            self.metrics.observe_histogram("scrape_duration_seconds", time.time() - start_time, outcome=outcome)
