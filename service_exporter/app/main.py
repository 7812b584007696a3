"""
SonarQube Prometheus exporter service.
"""

from typing import Optional

from fastapi import Response
import httpx

from shared.base_service import BaseService
from shared.config import ServiceConfig

from .adapters.sonarqube_client import SonarQubeClient
from .catalog import list_supported_metrics
from .collector import MeasureCollector
from .enablement import (
    ConfigurationSource,
    EnvironmentConfiguration,
    PropertiesFileConfiguration,
)
from .exposition import CONTENT_TYPE
from .pipeline import ScrapePipeline
from .registry import RegistryManager
from .topology import TopologyFetcher


class ExporterService(BaseService):
    """Exporter service implementation."""

    def __init__(
        self,
        config: Optional[ServiceConfig] = None,
        export_config: Optional[ConfigurationSource] = None,
        http_client: Optional[httpx.AsyncClient] = None
    ):
        super().__init__("exporter", config=config)

        self.export_config = export_config or self._build_export_config()
        self.client = SonarQubeClient(
            self.config.sonarqube_url,
            timeout=self.config.upstream_timeout_seconds,
            client=http_client,
            metrics=self.metrics
        )
        self.registry = RegistryManager()
        self.pipeline = ScrapePipeline(
            config=self.export_config,
            registry=self.registry,
            topology=TopologyFetcher(
                self.client,
                page_size=self.config.project_page_size,
                concurrency=self.config.fetch_concurrency
            ),
            collector=MeasureCollector(
                self.client,
                self.registry,
                concurrency=self.config.fetch_concurrency,
                metrics=self.metrics
            ),
            timeout_seconds=self.config.scrape_timeout_seconds,
            metrics=self.metrics
        )

        self.pipeline.prime()
        self._setup_exporter_routes()

    def _build_export_config(self) -> ConfigurationSource:
        if self.config.export_config_file:
            self.logger.info("Reading export switches from file", path=self.config.export_config_file)
            return PropertiesFileConfiguration(self.config.export_config_file)
        return EnvironmentConfiguration()

    def _setup_exporter_routes(self):
        """Set up exporter-specific routes."""

        @self.app.get("/")
        async def root():
            """Root endpoint."""
            return {
                "service": "exporter",
                "message": "SonarQube Prometheus Exporter",
                "version": "1.0.0",
                "supported_metrics": sorted(m.key for m in list_supported_metrics()),
                "enabled_metrics": sorted(m.key for m in self.pipeline.resolve())
            }

        @self.app.get("/api/prometheus/metrics")
        async def prometheus_metrics():
            """Scrape SonarQube and return the exposition."""
            body = await self.pipeline.scrape()
            return Response(content=body, media_type=CONTENT_TYPE)

    async def _check_dependencies(self):
        """Report the configured upstream."""
        return {"sonarqube": self.config.sonarqube_url}

    async def stop(self):
        """Close the upstream client."""
        await self.client.aclose()
        self.logger.info("Exporter service stopped")


def create_app():
    """Create exporter service application."""
    service = ExporterService()
    return service.app


if __name__ == "__main__":
    service = ExporterService()
    service.run()
