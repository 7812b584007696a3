"""
Catalog of SonarQube metrics the exporter can publish.
"""

from dataclasses import dataclass
from enum import Enum
from typing import FrozenSet, Optional


@dataclass(frozen=True)
class MetricDefinition:
    """Upstream metric key and its human readable description."""
    key: str
    description: str


class SonarMetric(Enum):
    """Supported SonarQube core metrics."""
    BUGS = MetricDefinition("bugs", "Bugs")
    VULNERABILITIES = MetricDefinition("vulnerabilities", "Vulnerabilities")
    VIOLATIONS = MetricDefinition("violations", "Issues")
    CODE_SMELLS = MetricDefinition("code_smells", "Code Smells")
    DUPLICATED_LINES_DENSITY = MetricDefinition(
        "duplicated_lines_density", "Duplicated lines balanced by statements"
    )
    TECHNICAL_DEBT = MetricDefinition(
        "sqale_index",
        "Total effort (in minutes) to fix all the issues on the component "
        "and therefore to comply to all the requirements."
    )
    NEW_BUGS = MetricDefinition("new_bugs", "New Bugs")
    NEW_VULNERABILITIES = MetricDefinition("new_vulnerabilities", "New Vulnerabilities")
    NEW_VIOLATIONS = MetricDefinition("new_violations", "New Issues")
    NEW_CODE_SMELLS = MetricDefinition("new_code_smells", "New Code Smells")
    NEW_DUPLICATED_LINES_DENSITY = MetricDefinition(
        "new_duplicated_lines_density", "Duplicated lines on new code balanced by statements"
    )
    NEW_SECURITY_RATING = MetricDefinition("new_security_rating", "Security rating on new code")
    NEW_TECHNICAL_DEBT = MetricDefinition("new_technical_debt", "Added technical debt")
    LINES = MetricDefinition("lines", "Lines")

    @property
    def key(self) -> str:
        return self.value.key

    @property
    def description(self) -> str:
        return self.value.description

    @classmethod
    def from_key(cls, key: str) -> Optional["SonarMetric"]:
        """Resolve an upstream metric key, or None if it is not supported."""
        for metric in cls:
            if metric.key == key:
                return metric
        return None


_SUPPORTED_METRICS: FrozenSet[SonarMetric] = frozenset(SonarMetric)


def list_supported_metrics() -> FrozenSet[SonarMetric]:
    """Return every metric the exporter is able to publish."""
    return _SUPPORTED_METRICS
