"""
Fetches measures and writes them into the exported gauges.
"""

import asyncio
import math
from typing import Iterable, List, Optional, Sequence, Tuple

from shared.errors import MeasureParseError
from shared.logging import get_logger
from shared.metrics import MetricsCollector

from .adapters.sonarqube_client import SonarQubeClient
from .catalog import SonarMetric
from .fanout import gather_all
from .models import Branch, Measure, Project
from .registry import RegistryManager


def parse_measure_value(measure: Measure) -> float:
    """Parse a non-empty measure value as a float."""
    try:
        value = float(measure.value.strip())
    except (AttributeError, ValueError) as e:
        raise MeasureParseError(measure.metric, str(measure.value)) from e
    if math.isnan(value):
        raise MeasureParseError(measure.metric, str(measure.value))
    return value


class MeasureCollector:
    """Collects measures of enabled metrics for project branches."""

    def __init__(
        self,
        client: SonarQubeClient,
        registry: RegistryManager,
        concurrency: int = 5,
        metrics: Optional[MetricsCollector] = None
    ):
        self.client = client
        self.registry = registry
        self.concurrency = concurrency
        self.metrics = metrics
        self.logger = get_logger("exporter.collector")

    async def collect(self, enabled: Iterable[SonarMetric], project: Project, branch: Branch) -> List[Measure]:
        """Fetch measures for the enabled metric keys only."""
        metric_keys = sorted(metric.key for metric in enabled)
        return await self.client.component_measures(project, branch, metric_keys)

    def apply(self, measures: Iterable[Measure], project: Project, branch: Branch) -> int:
        """Write measures into their gauges and return how many samples were set."""
        written = 0
        for measure in measures:
            if measure.metric not in self.registry.keys:
                self.logger.debug("Ignoring measure of a metric that is not enabled", metric=measure.metric)
                continue

            if measure.is_empty:
                self._skipped("empty")
                continue

            try:
                value = parse_measure_value(measure)
            except MeasureParseError as e:
                self.logger.warning(
                    "Skipping non-numeric measure",
                    metric=e.metric,
                    value=e.value,
                    project=project.key,
                    branch=branch.name
                )
                self._skipped("parse_error")
                continue

            if self.registry.observe(measure.metric, project, branch, value):
                written += 1
        return written

    async def collect_all(
        self,
        enabled: Iterable[SonarMetric],
        pairs: Sequence[Tuple[Project, Branch]]
    ) -> int:
        """Collect and apply measures for every (project, branch) pair.

        Fetches run concurrently; gauges are written on the event loop as each
        fetch completes.
        """
        enabled = frozenset(enabled)
        semaphore = asyncio.Semaphore(self.concurrency)

        async def collect_pair(project: Project, branch: Branch) -> int:
            async with semaphore:
                measures = await self.collect(enabled, project, branch)
            return self.apply(measures, project, branch)

        results = await gather_all(collect_pair(p, b) for p, b in pairs)
        return sum(results)

    def _skipped(self, reason: str):
        if self.metrics is not None:
            self.metrics.increment_counter("measures_skipped_total", reason=reason)
