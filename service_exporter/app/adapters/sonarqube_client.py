"""
SonarQube web API client for the exporter.
"""

from typing import Any, Callable, Dict, List, Optional, Sequence, TypeVar

import httpx

from shared.errors import UpstreamTransportError
from shared.logging import get_logger
from shared.metrics import MetricsCollector

from ..models import Branch, Measure, Project

PROJECT_QUALIFIER = "TRK"
MAX_PAGE_SIZE = 500

T = TypeVar("T")


class SonarQubeClient:
    """Client for the three read-only SonarQube queries the exporter needs.

    The underlying ``httpx.AsyncClient`` can be injected; otherwise one is
    created for the configured base URL and closed by ``aclose``.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
        metrics: Optional[MetricsCollector] = None
    ):
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.metrics = metrics
        self.logger = get_logger("exporter.sonarqube_client")
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(base_url=self.base_url, timeout=timeout)

    async def search_projects(self, page_size: int = MAX_PAGE_SIZE) -> List[Project]:
        """List projects, capped at one page of ``page_size``."""
        params = {"qualifiers": PROJECT_QUALIFIER, "ps": str(min(page_size, MAX_PAGE_SIZE))}
        data = await self._get("/api/components/search", params)
        return self._parse_items("/api/components/search", data, "components", Project.from_json)

    async def list_branches(self, project: Project) -> List[Branch]:
        """List branches of a project."""
        data = await self._get("/api/project_branches/list", {"project": project.key})
        return self._parse_items("/api/project_branches/list", data, "branches", Branch.from_json)

    async def component_measures(
        self,
        project: Project,
        branch: Branch,
        metric_keys: Sequence[str]
    ) -> List[Measure]:
        """Fetch current measures of a project branch for the given metric keys."""
        params = {
            "component": project.key,
            "branch": branch.name,
            "metricKeys": ",".join(metric_keys)
        }
        data = await self._get("/api/measures/component", params)
        component = data.get("component") or {}
        return self._parse_items("/api/measures/component", component, "measures", Measure.from_json)

    async def _get(self, path: str, params: Dict[str, Any]) -> Dict[str, Any]:
        """Execute a GET and translate every failure into UpstreamTransportError."""
        try:
            response = await self._client.get(f"{self.base_url}{path}", params=params)
        except httpx.HTTPError as exc:
            self._record(path, "transport_error")
            self.logger.error("SonarQube request failed", path=path, params=params, error=str(exc))
            raise UpstreamTransportError(
                service="sonarqube",
                message=str(exc) or exc.__class__.__name__,
                details={"path": path, "params": params}
            ) from exc

        self._record(path, str(response.status_code))

        if response.status_code != 200:
            self.logger.error(
                "SonarQube request returned an error",
                path=path,
                params=params,
                status_code=response.status_code,
                response=response.text
            )
            raise UpstreamTransportError(
                service="sonarqube",
                message=f"Unexpected status {response.status_code}",
                details={"path": path, "status_code": response.status_code, "body": response.text}
            )

        try:
            data = response.json()
        except ValueError as exc:
            self.logger.error("SonarQube returned invalid JSON", path=path, params=params)
            raise UpstreamTransportError(
                service="sonarqube",
                message="Invalid JSON response",
                details={"path": path}
            ) from exc

        if not isinstance(data, dict):
            self.logger.error("SonarQube returned an unexpected body", path=path, params=params)
            raise UpstreamTransportError(
                service="sonarqube",
                message="Response body is not a JSON object",
                details={"path": path}
            )

        self.logger.debug("SonarQube response received", path=path, params=params)
        return data

    def _parse_items(self, path: str, container: Any, field: str, parse: Callable[[Dict[str, Any]], T]) -> List[T]:
        """Parse a list of entities, rejecting responses of the wrong shape."""
        try:
            return [parse(item) for item in container.get(field) or []]
        except (AttributeError, IndexError, KeyError, TypeError) as exc:
            self.logger.error("SonarQube returned a malformed response", path=path, field=field, error=repr(exc))
            raise UpstreamTransportError(
                service="sonarqube",
                message=f"Malformed {field} in response",
                details={"path": path, "field": field}
            ) from exc

    def _record(self, path: str, status: str):
        if self.metrics is not None:
            self.metrics.increment_counter("upstream_requests_total", endpoint=path, status=status)

    async def aclose(self):
        if self._owns_client:
            await self._client.aclose()
