"""
Enumerates the projects and branches to scrape.
"""

import asyncio
from typing import List, Tuple

from shared.logging import get_logger

from .adapters.sonarqube_client import SonarQubeClient
from .fanout import gather_all
from .models import Branch, Project


class TopologyFetcher:
    """Lists projects, then the branches of each project.

    Project listing is bounded to one page of ``page_size`` projects; servers
    with more projects export only the first page.
    """

    def __init__(self, client: SonarQubeClient, page_size: int = 500, concurrency: int = 5):
        self.client = client
        self.page_size = page_size
        self.concurrency = concurrency
        self.logger = get_logger("exporter.topology")

    async def list_projects(self) -> List[Project]:
        projects = await self.client.search_projects(self.page_size)
        if len(projects) >= self.page_size:
            self.logger.warning(
                "Project listing reached the page size cap, further projects are not exported",
                page_size=self.page_size
            )
        return projects

    async def list_branches(self, project: Project) -> List[Branch]:
        return await self.client.list_branches(project)

    async def list_topology(self) -> List[Tuple[Project, Branch]]:
        """Return every (project, branch) pair, in project listing order."""
        projects = await self.list_projects()
        semaphore = asyncio.Semaphore(self.concurrency)

        async def branches_of(project: Project) -> List[Branch]:
            async with semaphore:
                return await self.list_branches(project)

        branch_lists = await gather_all(branches_of(p) for p in projects)

        pairs = [
            (project, branch)
            for project, branches in zip(projects, branch_lists)
            for branch in branches
        ]
        self.logger.debug("Topology fetched", projects=len(projects), pairs=len(pairs))
        return pairs
