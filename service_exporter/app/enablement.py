"""
Resolves which catalog metrics are enabled for export.

Each metric is switched on by a boolean property named
``prometheus.export.<metric key>``. Anything that is missing, unreadable or
not a recognizable boolean leaves the metric disabled.
"""

import os
from typing import Dict, FrozenSet, Iterable, Mapping, Optional

from shared.errors import ConfigReadError
from shared.logging import get_logger

from .catalog import SonarMetric

CONFIG_PREFIX = "prometheus.export."

_TRUE_VALUES = {"true", "yes", "on", "1"}
_FALSE_VALUES = {"false", "no", "off", "0"}

logger = get_logger("exporter.enablement")


class ConfigurationSource:
    """Key/value lookup consulted once per scrape."""

    def get(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def snapshot(self) -> "ConfigurationSource":
        """Return a consistent view for one resolution pass."""
        return self


class MappingConfiguration(ConfigurationSource):
    """Configuration backed by an in-memory mapping."""

    def __init__(self, values: Optional[Mapping[str, str]] = None):
        self.values: Dict[str, str] = dict(values or {})

    def get(self, key: str) -> Optional[str]:
        return self.values.get(key)


class EnvironmentConfiguration(ConfigurationSource):
    """Configuration read from the process environment.

    ``prometheus.export.bugs`` is looked up as ``PROMETHEUS_EXPORT_BUGS``.
    """

    def __init__(self, environ: Optional[Mapping[str, str]] = None):
        self.environ = environ if environ is not None else os.environ

    @staticmethod
    def env_name(key: str) -> str:
        return key.replace(".", "_").upper()

    def get(self, key: str) -> Optional[str]:
        return self.environ.get(self.env_name(key))


class PropertiesFileConfiguration(ConfigurationSource):
    """Configuration read from a ``key=value`` properties file.

    The file is re-read for every snapshot so edits apply on the next scrape.
    A missing file is treated as empty.
    """

    def __init__(self, path: str):
        self.path = path

    def get(self, key: str) -> Optional[str]:
        return self._read().get(key)

    def snapshot(self) -> ConfigurationSource:
        return MappingConfiguration(self._read())

    def _read(self) -> Dict[str, str]:
        try:
            with open(self.path, "r", encoding="utf-8") as handle:
                return parse_properties(handle)
        except FileNotFoundError:
            return {}
        except OSError as e:
            raise ConfigReadError(self.path, str(e))


def parse_properties(lines: Iterable[str]) -> Dict[str, str]:
    """Parse ``key=value`` (or ``key: value``) lines, skipping comments."""
    values: Dict[str, str] = {}
    for raw in lines:
        line = raw.strip()
        if not line or line[0] in "#!":
            continue
        separators = [i for i in (line.find("="), line.find(":")) if i >= 0]
        if not separators:
            values[line] = ""
            continue
        index = min(separators)
        values[line[:index].strip()] = line[index + 1:].strip()
    return values


def parse_boolean(value: Optional[str]) -> Optional[bool]:
    """Parse a configuration boolean; None if absent or unrecognized."""
    if value is None:
        return None
    normalized = value.strip().lower()
    if normalized in _TRUE_VALUES:
        return True
    if normalized in _FALSE_VALUES:
        return False
    return None


def config_key(metric: SonarMetric) -> str:
    return CONFIG_PREFIX + metric.key


def is_enabled(metric: SonarMetric, config: ConfigurationSource) -> bool:
    key = config_key(metric)
    try:
        raw = config.get(key)
    except ConfigReadError as e:
        logger.warning("Configuration read failed, metric disabled", key=key, error=e.message)
        return False

    parsed = parse_boolean(raw)
    if parsed is None and raw is not None:
        logger.warning("Unrecognized boolean, metric disabled", key=key, value=raw)
    return bool(parsed)


def resolve_enabled(catalog: Iterable[SonarMetric], config: ConfigurationSource) -> FrozenSet[SonarMetric]:
    """Return the catalog metrics whose export switch is set to true."""
    try:
        view = config.snapshot()
    except ConfigReadError as e:
        logger.warning("Configuration unavailable, all metrics disabled", error=e.message)
        return frozenset()

    return frozenset(metric for metric in catalog if is_enabled(metric, view))
