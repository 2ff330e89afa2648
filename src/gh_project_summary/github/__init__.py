"""GitHub API clients and utilities."""

from gh_project_summary.github.auth import AuthenticationError, GitHubAuth
from gh_project_summary.github.graphql import GraphQLClient, GraphQLError
from gh_project_summary.github.http import (
    GitHubAuthError,
    GitHubClient,
    GitHubHTTPError,
    GitHubResponse,
    RateLimitExceeded,
)
from gh_project_summary.github.ratelimit import APIType, QuotaState, QuotaTracker
from gh_project_summary.github.rest import RestClient

__all__ = [
    "APIType",
    # Auth
    "AuthenticationError",
    "GitHubAuth",
    # HTTP Client
    "GitHubAuthError",
    "GitHubClient",
    "GitHubHTTPError",
    "GitHubResponse",
    # GraphQL Client
    "GraphQLClient",
    "GraphQLError",
    # Quota
    "QuotaState",
    "QuotaTracker",
    "RateLimitExceeded",
    # REST API Client
    "RestClient",
]
