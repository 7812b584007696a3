"""
Owns the exported gauges and keeps them in step with the enabled metrics.
"""

import asyncio
import io
from typing import Dict, Iterable, Mapping, Optional

from prometheus_client import CollectorRegistry, Gauge

from shared.errors import CatalogRegistrationConflict
from shared.logging import get_logger

from .catalog import SonarMetric
from .exposition import write_exposition
from .models import Branch, Project

METRIC_PREFIX = "sonarqube_"
LABEL_NAMES = ("key", "name", "branch")


def gauge_name(metric: SonarMetric) -> str:
    return METRIC_PREFIX + metric.key


class RegistryManager:
    """Exported gauge registry, rebuilt from scratch on every reconcile.

    ``reconcile``, ``observe``, ``clear`` and ``serialize`` are the only
    mutation and read points. Callers hold ``lock`` for the duration of a
    scrape so that rebuild, population and serialization are not interleaved
    with another scrape.
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self.registry = registry if registry is not None else CollectorRegistry()
        self.lock = asyncio.Lock()
        self._gauges: Dict[str, Gauge] = {}
        self.logger = get_logger("exporter.registry")

    @property
    def keys(self):
        return frozenset(self._gauges)

    def reconcile(self, enabled: Iterable[SonarMetric]) -> Mapping[str, Gauge]:
        """Drop every gauge and register one per enabled metric."""
        self.clear()

        for metric in sorted(enabled, key=lambda m: m.key):
            name = gauge_name(metric)
            try:
                gauge = Gauge(
                    name,
                    metric.description,
                    LABEL_NAMES,
                    registry=self.registry
                )
            except ValueError as e:
                self.logger.error("Gauge registration conflict", gauge=name, error=str(e))
                raise CatalogRegistrationConflict(name, {"metric": metric.key}) from e
            self._gauges[metric.key] = gauge

        self.logger.debug("Registry reconciled", gauges=sorted(self._gauges))
        return dict(self._gauges)

    def observe(self, metric_key: str, project: Project, branch: Branch, value: float) -> bool:
        """Set one sample; False when no gauge is registered for the key."""
        gauge = self._gauges.get(metric_key)
        if gauge is None:
            return False
        gauge.labels(project.key, project.name, branch.name).set(value)
        return True

    def clear(self):
        """Unregister every gauge this manager registered."""
        for gauge in self._gauges.values():
            self.registry.unregister(gauge)
        self._gauges.clear()

    def serialize(self) -> bytes:
        """Write the exposition into a buffer and return its contents."""
        buffer = io.BytesIO()
        write_exposition(self.registry, buffer)
        return buffer.getvalue()
