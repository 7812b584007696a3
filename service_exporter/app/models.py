"""
Upstream entities handled by the exporter.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class Project:
    """A SonarQube project."""
    key: str
    name: str

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "Project":
        return cls(key=data["key"], name=data.get("name", data["key"]))


@dataclass(frozen=True)
class Branch:
    """A branch of one project."""
    name: str

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "Branch":
        return cls(name=data["name"])


@dataclass(frozen=True)
class Measure:
    """Current value of one metric on one project branch.

    Metrics on new code carry their value in a leak period rather than in
    ``value``; the period value is used when ``value`` is absent.
    """
    metric: str
    value: Optional[str] = None

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "Measure":
        value = data.get("value")
        if value is None:
            period = data.get("period")
            if not period and data.get("periods"):
                period = data["periods"][0]
            if period:
                value = period.get("value")
        return cls(metric=data["metric"], value=value)

    @property
    def is_empty(self) -> bool:
        return self.value is None or self.value.strip() == ""
