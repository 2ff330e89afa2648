"""GitHub GraphQL API client.

Used for Projects-v2 lookups, which have no REST equivalent.
"""

import logging
from collections.abc import AsyncIterator
from typing import Any, cast

from gh_project_summary.github.http import GitHubClient

logger = logging.getLogger(__name__)


class GraphQLError(Exception):
    """Raised when GraphQL query returns errors."""

    def __init__(self, errors: list[dict[str, Any]]) -> None:
        self.errors = errors
        messages = [err.get("message", "Unknown error") for err in errors]
        super().__init__(f"GraphQL errors: {'; '.join(messages)}")

    @property
    def is_not_found(self) -> bool:
        """True when every error is a NOT_FOUND resolution error."""
        return bool(self.errors) and all(err.get("type") == "NOT_FOUND" for err in self.errors)


PROJECT_FIELDS_FRAGMENT = """
fragment ProjectFields on ProjectV2 {
  id
  number
  title
  url
  shortDescription
  public
  closed
  createdAt
  updatedAt
  owner {
    __typename
    ... on User { login }
    ... on Organization { login }
  }
  items {
    totalCount
  }
}
"""

ORGANIZATION_PROJECT_QUERY = (
    """
query($login: String!, $number: Int!) {
  organization(login: $login) {
    projectV2(number: $number) {
      ...ProjectFields
    }
  }
}
"""
    + PROJECT_FIELDS_FRAGMENT
)

USER_PROJECT_QUERY = (
    """
query($login: String!, $number: Int!) {
  user(login: $login) {
    projectV2(number: $number) {
      ...ProjectFields
    }
  }
}
"""
    + PROJECT_FIELDS_FRAGMENT
)

PROJECT_NODE_QUERY = (
    """
query($projectId: ID!) {
  node(id: $projectId) {
    ...ProjectFields
  }
}
"""
    + PROJECT_FIELDS_FRAGMENT
)

PROJECT_ITEMS_QUERY = """
query($projectId: ID!, $after: String, $first: Int = 100) {
  node(id: $projectId) {
    ... on ProjectV2 {
      items(first: $first, after: $after) {
        pageInfo {
          hasNextPage
          endCursor
        }
        nodes {
          id
          type
          content {
            __typename
            ... on Issue {
              number
              repository { nameWithOwner }
            }
            ... on PullRequest {
              number
              repository { nameWithOwner }
            }
          }
        }
      }
    }
  }
}
"""


class GraphQLClient:
    """GitHub GraphQL API client sharing the REST client's transport."""

    GRAPHQL_ENDPOINT = "/graphql"

    def __init__(self, http_client: GitHubClient) -> None:
        """Initialize GraphQL client.

        Args:
            http_client: GitHubClient instance for HTTP requests.
        """
        self._http = http_client

    async def execute(
        self,
        query: str,
        variables: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Execute a GraphQL query.

        Args:
            query: GraphQL query string.
            variables: Optional query variables.

        Returns:
            GraphQL response data payload.

        Raises:
            GraphQLError: If response contains GraphQL errors.
            GitHubHTTPError: If the request itself fails.
        """
        payload: dict[str, Any] = {"query": query}
        if variables:
            payload["variables"] = variables

        response = await self._http.post(self.GRAPHQL_ENDPOINT, json=payload)

        if not isinstance(response.data, dict):
            raise GraphQLError([{"message": "Invalid GraphQL response format"}])

        if response.data.get("errors"):
            errors = response.data["errors"]
            logger.debug("GraphQL errors: %s", errors)
            raise GraphQLError(errors)

        data = response.data.get("data")
        if data is None:
            raise GraphQLError([{"message": "Missing data in GraphQL response"}])

        return cast("dict[str, Any]", data)

    async def paginate(
        self,
        query: str,
        variables: dict[str, Any],
        path_to_connection: list[str],
        page_size: int = 100,
    ) -> AsyncIterator[dict[str, Any]]:
        """Auto-paginate through a GraphQL connection.

        Args:
            query: GraphQL query with $after and $first variables.
            variables: Base variables (without after/first).
            path_to_connection: Path to connection object in response.
            page_size: Number of items per page.

        Yields:
            Individual nodes from the connection.
        """
        has_next_page = True
        after_cursor: str | None = None

        while has_next_page:
            page_vars = {**variables, "after": after_cursor, "first": page_size}
            data = await self.execute(query, page_vars)

            connection: dict[str, Any] = data
            for key in path_to_connection:
                connection = connection.get(key) or {}

            if "nodes" in connection:
                nodes = connection.get("nodes") or []
            else:
                nodes = [edge.get("node") for edge in connection.get("edges") or []]

            for node in nodes:
                if node:
                    yield node

            page_info = connection.get("pageInfo") or {}
            has_next_page = bool(page_info.get("hasNextPage")) and bool(nodes)
            after_cursor = page_info.get("endCursor")

            logger.debug("Paginated %d nodes, hasNextPage=%s", len(nodes), has_next_page)

    async def get_project_by_number(
        self,
        owner: str,
        number: int,
        owner_type: str,
    ) -> dict[str, Any] | None:
        """Look up a board by owner login and number.

        Args:
            owner: Organization or user login.
            number: Project number shown in its URL.
            owner_type: ``organization`` or ``user``.

        Returns:
            Project fields, or None if the owner has no such board.
        """
        query = ORGANIZATION_PROJECT_QUERY if owner_type == "organization" else USER_PROJECT_QUERY
        data = await self.execute(query, {"login": owner, "number": number})
        owner_node = data.get(owner_type) or {}
        return owner_node.get("projectV2")

    async def get_project_by_id(self, project_id: str) -> dict[str, Any] | None:
        """Look up a board by its node id (``PVT_...``)."""
        data = await self.execute(PROJECT_NODE_QUERY, {"projectId": project_id})
        node = data.get("node")
        # Non-project nodes resolve to an empty object through the fragment
        if not node or "title" not in node:
            return None
        return cast("dict[str, Any]", node)

    async def paginate_project_items(
        self,
        project_id: str,
        page_size: int = 100,
    ) -> AsyncIterator[dict[str, Any]]:
        """Yield every item on a board."""
        async for item in self.paginate(
            PROJECT_ITEMS_QUERY,
            {"projectId": project_id},
            ["node", "items"],
            page_size,
        ):
            yield item
