"""Repository discovery from a Projects-v2 board or an explicit list.

A board is resolved through GraphQL (organization first, then user) and
reduced to the distinct repositories its items live in, in sorted order.
"""

import logging
import re
from dataclasses import dataclass

from gh_project_summary.config import TargetConfig
from gh_project_summary.github.graphql import GraphQLClient, GraphQLError
from gh_project_summary.models import ProjectInfo, parse_timestamp

logger = logging.getLogger(__name__)

PROJECT_URL_PATTERN = re.compile(
    r"^https?://github\.com/(?P<kind>orgs|users)/(?P<owner>[^/]+)"
    r"/projects/(?P<number>\d+)/?(?:[?#].*)?$"
)
OWNER_NUMBER_PATTERN = re.compile(r"^(?P<owner>[A-Za-z0-9][A-Za-z0-9-]*)/(?P<number>\d+)$")
NODE_ID_PATTERN = re.compile(r"^PVT_[A-Za-z0-9_-]+$")

OWNER_TYPES = ("organization", "user")


class DiscoveryError(Exception):
    """Raised when repository discovery fails."""


class ProjectNotFoundError(DiscoveryError):
    """Raised when a board does not exist or is not visible to the token."""


@dataclass(frozen=True)
class ProjectReference:
    """Parsed board reference: a node id, or owner plus number."""

    owner: str | None = None
    number: int | None = None
    owner_type: str | None = None
    node_id: str | None = None

    def __str__(self) -> str:
        if self.node_id:
            return self.node_id
        return f"{self.owner}/{self.number}"


def parse_project_reference(text: str) -> ProjectReference:
    """Parse a board reference.

    Accepted forms:
    - ``https://github.com/orgs/ORG/projects/N``
    - ``https://github.com/users/USER/projects/N``
    - ``OWNER/N``
    - ``PVT_...`` node id

    Raises:
        DiscoveryError: If the text matches none of the forms.
    """
    value = text.strip()

    if match := PROJECT_URL_PATTERN.match(value):
        owner_type = "organization" if match["kind"] == "orgs" else "user"
        return ProjectReference(match["owner"], int(match["number"]), owner_type)
    if match := OWNER_NUMBER_PATTERN.match(value):
        return ProjectReference(match["owner"], int(match["number"]))
    if NODE_ID_PATTERN.match(value):
        return ProjectReference(node_id=value)

    msg = (
        f"Invalid project reference '{text}': expected a project URL, "
        "OWNER/NUMBER or a PVT_ node id"
    )
    raise DiscoveryError(msg)


class ProjectResolver:
    """Resolves board references to board metadata and repositories."""

    def __init__(self, graphql: GraphQLClient) -> None:
        """Initialize resolver.

        Args:
            graphql: GraphQL client of the run.
        """
        self._graphql = graphql

    async def resolve(self, reference: ProjectReference) -> ProjectInfo:
        """Look up a board and list the repositories of its items.

        Args:
            reference: Parsed board reference.

        Returns:
            ProjectInfo with the distinct ``owner/name`` repositories sorted.

        Raises:
            ProjectNotFoundError: If no board matches.
            DiscoveryError: On GraphQL errors other than not-found.
        """
        node, owner_type = await self._lookup(reference)
        if node is None:
            msg = f"Project not found or not accessible: {reference}"
            raise ProjectNotFoundError(msg)

        repositories: set[str] = set()
        item_count = 0
        try:
            async for item in self._graphql.paginate_project_items(node["id"]):
                item_count += 1
                repository = ((item.get("content") or {}).get("repository") or {}).get(
                    "nameWithOwner"
                )
                # Draft issues have no repository
                if repository:
                    repositories.add(repository)
        except GraphQLError as e:
            msg = f"Failed to list items of project {reference}: {e}"
            raise DiscoveryError(msg) from e

        owner = node.get("owner") or {}
        info = ProjectInfo(
            id=node["id"],
            title=node.get("title") or "",
            number=node.get("number"),
            url=node.get("url"),
            owner=owner.get("login"),
            owner_type=owner_type or (owner.get("__typename") or "").lower() or None,
            description=node.get("shortDescription"),
            public=node.get("public"),
            closed=node.get("closed"),
            item_count=(node.get("items") or {}).get("totalCount", item_count),
            created_at=parse_timestamp(node.get("createdAt")),
            updated_at=parse_timestamp(node.get("updatedAt")),
            repositories=sorted(repositories),
        )
        logger.info(
            "Project '%s' has %d items across %d repositories",
            info.title,
            info.item_count,
            len(info.repositories),
        )
        return info

    async def _lookup(self, reference: ProjectReference) -> tuple[dict | None, str | None]:
        if reference.node_id:
            try:
                return await self._graphql.get_project_by_id(reference.node_id), None
            except GraphQLError as e:
                if e.is_not_found:
                    return None, None
                msg = f"Failed to look up project {reference}: {e}"
                raise DiscoveryError(msg) from e

        assert reference.owner is not None and reference.number is not None
        owner_types = (reference.owner_type,) if reference.owner_type else OWNER_TYPES
        for owner_type in owner_types:
            try:
                node = await self._graphql.get_project_by_number(
                    reference.owner, reference.number, owner_type
                )
            except GraphQLError as e:
                if not e.is_not_found:
                    msg = f"Failed to look up project {reference}: {e}"
                    raise DiscoveryError(msg) from e
                logger.debug("No %s project for %s: %s", owner_type, reference, e)
                continue
            if node:
                return node, owner_type
        return None, None


async def discover_repositories(
    target: TargetConfig,
    resolver: ProjectResolver,
) -> tuple[ProjectInfo | None, list[str]]:
    """Determine the repositories of a run.

    Explicit repositories take precedence and skip project resolution; they
    keep their given order with duplicates removed. GitHub names are
    case-insensitive, so the first spelling of a repository wins.

    Returns:
        Tuple of (board metadata or None, repository ``owner/name`` list).
    """
    if target.repositories:
        unique: dict[str, str] = {}
        for repo in target.repositories:
            unique.setdefault(repo.lower(), repo)
        repositories = list(unique.values())
        logger.info("Using %d explicit repositories", len(repositories))
        return None, repositories

    assert target.project is not None
    project = await resolver.resolve(parse_project_reference(target.project))
    return project, list(project.repositories)
