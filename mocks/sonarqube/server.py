"""
Mock SonarQube server serving the web API queries used by the exporter.
"""

from typing import Dict, Any, Optional, List
from dataclasses import dataclass, field
from fastapi import FastAPI, HTTPException, Query
from fastapi.responses import JSONResponse

from shared.logging import get_logger


@dataclass
class MockBranch:
    """Mock project branch with its measures."""
    name: str
    is_main: bool = False
    measures: Dict[str, Any] = field(default_factory=dict)


@dataclass
class MockProject:
    """Mock SonarQube project."""
    key: str
    name: str
    qualifier: str = "TRK"
    branches: List[MockBranch] = field(default_factory=list)


class MockSonarQubeServer:
    """Mock SonarQube server implementation.

    Measure values are stored as given: a string becomes ``value``, a dict is
    copied verbatim (e.g. ``{"period": {"value": "2"}}``).
    """

    def __init__(self, port: int = 9000, with_sample_data: bool = True):
        self.port = port
        self.logger = get_logger("mock.sonarqube")
        self.app = FastAPI(title="Mock SonarQube", version="1.0.0")

        # In-memory storage
        self.projects: Dict[str, MockProject] = {}
        self.requests: List[Dict[str, Any]] = []
        self.fail_paths: Dict[str, int] = {}
        self.raw_bodies: Dict[str, Any] = {}

        if with_sample_data:
            self._create_sample_projects()

        self._setup_routes()

    def _create_sample_projects(self):
        """Create sample projects with branches and measures."""
        self.add_project("billing", "Billing Service", [
            MockBranch("main", is_main=True, measures={
                "bugs": "3",
                "vulnerabilities": "0",
                "violations": "42",
                "code_smells": "39",
                "duplicated_lines_density": "4.7",
                "sqale_index": "180",
                "lines": "12840",
                "new_bugs": {"period": {"index": 1, "value": "1"}},
            }),
            MockBranch("release-2.x", measures={
                "bugs": "5",
                "code_smells": "51",
                "lines": "11980",
            }),
        ])
        self.add_project("gateway", "Edge Gateway", [
            MockBranch("main", is_main=True, measures={
                "bugs": "0",
                "code_smells": "12",
                "duplicated_lines_density": "",
                "lines": "3412",
            }),
        ])

    def add_project(self, key: str, name: str, branches: Optional[List[MockBranch]] = None) -> MockProject:
        project = MockProject(key=key, name=name, branches=branches or [MockBranch("main", is_main=True)])
        self.projects[key] = project
        return project

    def _record(self, path: str, params: Dict[str, Any]):
        self.requests.append({"path": path, "params": params})
        status = self.fail_paths.get(path)
        if status:
            raise HTTPException(status_code=status, detail=f"Mock failure for {path}")

    def _raw_body(self, path: str) -> Optional[JSONResponse]:
        """Canned body replacing the normal answer for a path, if one is set."""
        if path in self.raw_bodies:
            return JSONResponse(content=self.raw_bodies[path])
        return None

    def _setup_routes(self):
        """Set up SonarQube web API routes."""

        @self.app.get("/api/components/search")
        async def search_components(
            qualifiers: str = Query(...),
            ps: int = Query(100, le=500)
        ):
            """Search components by qualifier."""
            self._record("/api/components/search", {"qualifiers": qualifiers, "ps": ps})
            raw = self._raw_body("/api/components/search")
            if raw is not None:
                return raw
            wanted = qualifiers.split(",")
            components = [
                {"key": p.key, "name": p.name, "qualifier": p.qualifier}
                for p in self.projects.values()
                if p.qualifier in wanted
            ]
            return {
                "paging": {"pageIndex": 1, "pageSize": ps, "total": len(components)},
                "components": components[:ps]
            }

        @self.app.get("/api/project_branches/list")
        async def list_branches(project: str = Query(...)):
            """List branches of a project."""
            self._record("/api/project_branches/list", {"project": project})
            raw = self._raw_body("/api/project_branches/list")
            if raw is not None:
                return raw
            if project not in self.projects:
                raise HTTPException(status_code=404, detail=f"Project '{project}' not found")
            return {
                "branches": [
                    {"name": b.name, "isMain": b.is_main, "type": "BRANCH"}
                    for b in self.projects[project].branches
                ]
            }

        @self.app.get("/api/measures/component")
        async def component_measures(
            component: str = Query(...),
            metricKeys: str = Query(...),
            branch: Optional[str] = Query(None)
        ):
            """Measures of one component branch."""
            self._record(
                "/api/measures/component",
                {"component": component, "branch": branch, "metricKeys": metricKeys}
            )
            raw = self._raw_body("/api/measures/component")
            if raw is not None:
                return raw
            project = self.projects.get(component)
            if project is None:
                raise HTTPException(status_code=404, detail=f"Component key '{component}' not found")

            matches = [b for b in project.branches if b.name == branch or (branch is None and b.is_main)]
            if not matches:
                raise HTTPException(status_code=404, detail=f"Branch '{branch}' not found")

            measures = []
            for key in metricKeys.split(","):
                if key not in matches[0].measures:
                    continue
                stored = matches[0].measures[key]
                if isinstance(stored, dict):
                    measures.append({"metric": key, **stored})
                else:
                    measures.append({"metric": key, "value": stored})

            return {
                "component": {
                    "key": project.key,
                    "name": project.name,
                    "qualifier": project.qualifier,
                    "measures": measures
                }
            }


def create_app():
    """Create mock SonarQube application."""
    server = MockSonarQubeServer()
    return server.app


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(create_app(), host="0.0.0.0", port=9000)
