"""
Unit tests for the scrape pipeline.
"""

import asyncio

import pytest
from unittest.mock import AsyncMock, MagicMock
from prometheus_client import CollectorRegistry
from prometheus_client.parser import text_string_to_metric_families

from service_exporter.app.catalog import SonarMetric
from service_exporter.app.collector import MeasureCollector
from service_exporter.app.enablement import CONFIG_PREFIX, MappingConfiguration
from service_exporter.app.models import Branch, Measure, Project
from service_exporter.app.pipeline import ScrapePipeline
from service_exporter.app.registry import RegistryManager
from service_exporter.app.topology import TopologyFetcher
from shared.errors import ScrapeTimeoutError, UpstreamTransportError
from shared.metrics import MetricsCollector


def parse(body):
    return {family.name: family for family in text_string_to_metric_families(body.decode("utf-8"))}


class TestScrapePipeline:
    """Test cases for ScrapePipeline."""

    @pytest.fixture
    def sonar_client(self):
        """Mock SonarQube client with one project and one branch."""
        client = MagicMock()
        client.search_projects = AsyncMock(return_value=[Project("p1", "Proj")])
        client.list_branches = AsyncMock(return_value=[Branch("main")])
        client.component_measures = AsyncMock(return_value=[Measure("bugs", "3")])
        return client

    @pytest.fixture
    def config(self):
        return MappingConfiguration({CONFIG_PREFIX + "bugs": "true"})

    @pytest.fixture
    def metrics(self):
        return MetricsCollector("exporter")

    @pytest.fixture
    def pipeline(self, sonar_client, config, metrics):
        """Pipeline over the catalog {BUGS, CODE_SMELLS}."""
        registry = RegistryManager(CollectorRegistry())
        return ScrapePipeline(
            config=config,
            registry=registry,
            topology=TopologyFetcher(sonar_client),
            collector=MeasureCollector(sonar_client, registry),
            timeout_seconds=5.0,
            catalog=lambda: {SonarMetric.BUGS, SonarMetric.CODE_SMELLS},
            metrics=metrics
        )

    @pytest.mark.asyncio
    async def test_scrape_exports_enabled_metric(self, pipeline):
        """Only the enabled family is exported, with the fetched sample."""
        families = parse(await pipeline.scrape())

        assert set(families) == {"sonarqube_bugs"}
        samples = families["sonarqube_bugs"].samples
        assert len(samples) == 1
        assert samples[0].labels == {"key": "p1", "name": "Proj", "branch": "main"}
        assert samples[0].value == 3.0

    @pytest.mark.asyncio
    async def test_scrape_with_nothing_enabled(self, pipeline, config, sonar_client):
        """No upstream calls are made and the body is empty."""
        config.values.clear()

        body = await pipeline.scrape()

        assert body == b""
        sonar_client.search_projects.assert_not_awaited()
        sonar_client.list_branches.assert_not_awaited()
        sonar_client.component_measures.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_enabled_set_change_between_scrapes(self, pipeline, config, sonar_client):
        """Switching metrics between scrapes replaces the exported families."""
        await pipeline.scrape()

        config.values[CONFIG_PREFIX + "bugs"] = "false"
        config.values[CONFIG_PREFIX + "code_smells"] = "true"
        sonar_client.component_measures.return_value = [Measure("code_smells", "12")]

        families = parse(await pipeline.scrape())

        assert set(families) == {"sonarqube_code_smells"}
        assert pipeline.registry.keys == {"code_smells"}
        sonar_client.component_measures.assert_awaited_with(Project("p1", "Proj"), Branch("main"), ["code_smells"])

    @pytest.mark.asyncio
    async def test_vanished_project_is_not_exported(self, pipeline, sonar_client):
        """Series of projects gone upstream disappear on the next scrape."""
        await pipeline.scrape()
        sonar_client.search_projects.return_value = [Project("p2", "Other")]

        families = parse(await pipeline.scrape())

        keys = [sample.labels["key"] for sample in families["sonarqube_bugs"].samples]
        assert keys == ["p2"]

    @pytest.mark.asyncio
    async def test_topology_failure_aborts_scrape(self, pipeline, sonar_client, metrics):
        """An upstream failure propagates and leaves a clean registry."""
        sonar_client.search_projects.side_effect = UpstreamTransportError("sonarqube", "down")

        with pytest.raises(UpstreamTransportError):
            await pipeline.scrape()

        assert pipeline.registry.keys == frozenset()
        assert metrics.registry.get_sample_value(
            "exporter_scrape_duration_seconds_count", {"outcome": "error"}
        ) == 1.0

    @pytest.mark.asyncio
    async def test_scrape_timeout(self, pipeline, sonar_client):
        """A scrape exceeding its budget fails with ScrapeTimeoutError."""

        async def hang(page_size):
            await asyncio.sleep(10)

        sonar_client.search_projects.side_effect = hang
        pipeline.timeout_seconds = 0.05

        with pytest.raises(ScrapeTimeoutError) as exc_info:
            await pipeline.scrape()

        assert exc_info.value.status_code == 504
        assert pipeline.registry.keys == frozenset()

    @pytest.mark.asyncio
    async def test_concurrent_scrapes_are_serialized(self, pipeline, sonar_client):
        """Overlapping scrapes never interleave their pipelines."""
        active = []
        overlaps = []

        async def slow_projects(page_size):
            active.append(1)
            if len(active) > 1:
                overlaps.append(True)
            await asyncio.sleep(0.01)
            active.pop()
            return [Project("p1", "Proj")]

        sonar_client.search_projects.side_effect = slow_projects

        bodies = await asyncio.gather(pipeline.scrape(), pipeline.scrape())

        assert overlaps == []
        assert bodies[0] == bodies[1]

    @pytest.mark.asyncio
    async def test_failed_scrape_leaves_no_late_writes(self, pipeline, sonar_client):
        """Fetches still in flight when a scrape fails never reach the next scrape."""
        projects = {"current": [Project("fail", "Failing"), Project("gone", "Gone")]}
        sonar_client.search_projects.side_effect = lambda page_size: projects["current"]

        async def measures(project, branch, keys):
            if project.key == "fail":
                raise UpstreamTransportError("sonarqube", "down")
            if project.key == "gone":
                await asyncio.sleep(0.1)
                return [Measure("bugs", "99")]
            await asyncio.sleep(0.3)
            return [Measure("bugs", "1")]

        sonar_client.component_measures.side_effect = measures

        with pytest.raises(UpstreamTransportError):
            await pipeline.scrape()

        projects["current"] = [Project("p2", "Other")]
        families = parse(await pipeline.scrape())

        keys = [sample.labels["key"] for sample in families["sonarqube_bugs"].samples]
        assert keys == ["p2"]

    @pytest.mark.asyncio
    async def test_waiting_for_lock_counts_against_timeout(self, pipeline, sonar_client):
        """Queued scrapes time out instead of waiting indefinitely."""

        async def slow_projects(page_size):
            await asyncio.sleep(0.15)
            return [Project("p1", "Proj")]

        sonar_client.search_projects.side_effect = slow_projects
        pipeline.timeout_seconds = 0.2

        results = await asyncio.gather(
            pipeline.scrape(),
            pipeline.scrape(),
            pipeline.scrape(),
            return_exceptions=True
        )

        assert isinstance(results[0], bytes)
        assert all(isinstance(result, ScrapeTimeoutError) for result in results[1:])

    @pytest.mark.asyncio
    async def test_timed_out_waiter_keeps_holder_registry(self, pipeline, sonar_client):
        """A scrape timing out while queued does not clear the running scrape's gauges."""

        async def slow_projects(page_size):
            await asyncio.sleep(0.15)
            return [Project("p1", "Proj")]

        sonar_client.search_projects.side_effect = slow_projects
        pipeline.timeout_seconds = 0.3

        async def queued_scrape():
            await asyncio.sleep(0.01)
            pipeline.timeout_seconds = 0.05
            return await pipeline.scrape()

        results = await asyncio.gather(pipeline.scrape(), queued_scrape(), return_exceptions=True)

        assert isinstance(results[1], ScrapeTimeoutError)
        families = parse(results[0])
        assert [s.value for s in families["sonarqube_bugs"].samples] == [3.0]

    def test_prime_registers_families(self, pipeline, sonar_client):
        """Priming registers gauges without querying upstream."""
        enabled = pipeline.prime()

        assert enabled == {SonarMetric.BUGS}
        assert pipeline.registry.keys == {"bugs"}
        sonar_client.search_projects.assert_not_called()

    @pytest.mark.asyncio
    async def test_enabled_metrics_gauge(self, pipeline, metrics):
        """The number of enabled metrics is recorded."""
        await pipeline.scrape()
        assert metrics.registry.get_sample_value("exporter_enabled_metrics") == 1.0
