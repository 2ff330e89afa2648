"""GitHub token loading.

Tokens come from an explicit value, an environment variable, or the GitHub
CLI, in that order.
"""

import logging
import os
import re
import subprocess

logger = logging.getLogger(__name__)

GH_CLI_TIMEOUT = 5


class AuthenticationError(Exception):
    """Raised when no usable token exists or GitHub rejects it."""


def _token_from_gh_cli() -> str | None:
    """Ask the GitHub CLI for its stored token.

    Returns:
        Token printed by `gh auth token`, or None when the CLI is absent,
        unauthenticated or slow.
    """
    try:
        result = subprocess.run(
            ["gh", "auth", "token"],
            capture_output=True,
            text=True,
            timeout=GH_CLI_TIMEOUT,
            check=False,
        )
    except FileNotFoundError:
        logger.debug("gh CLI not installed")
        return None
    except subprocess.TimeoutExpired:
        logger.debug("gh CLI did not answer within %d seconds", GH_CLI_TIMEOUT)
        return None

    if result.returncode != 0:
        logger.debug("gh auth token exited with %d", result.returncode)
        return None
    return result.stdout.strip() or None


class GitHubAuth:
    """Validated GitHub credential.

    Accepted formats:
    - ghp_, gho_, ghu_, ghs_, ghr_ prefixed tokens
    - github_pat_ fine-grained personal access tokens
    - 40 character hex classic tokens
    """

    VALID_PREFIXES = ("ghp_", "gho_", "ghu_", "ghs_", "ghr_", "github_pat_")
    CLASSIC_TOKEN_PATTERN = re.compile(r"^[a-f0-9]{40}$")
    MIN_PREFIXED_LENGTH = 20

    def __init__(self, token: str | None = None, token_env: str = "GITHUB_TOKEN") -> None:
        """Load and validate a token.

        Args:
            token: Explicit token, takes precedence over every other source.
            token_env: Environment variable consulted when no token is given.

        Raises:
            AuthenticationError: If no token is found or its format is invalid.
        """
        source = "explicit parameter"
        loaded = token
        if not loaded and os.environ.get(token_env):
            loaded = os.environ[token_env]
            source = f"{token_env} environment variable"
        if not loaded:
            loaded = _token_from_gh_cli()
            source = "gh CLI"

        if not loaded:
            msg = (
                f"GitHub token not found. Set {token_env}, pass a token explicitly, "
                "or authenticate with `gh auth login`."
            )
            raise AuthenticationError(msg)

        logger.info("Using GitHub token from %s", source)
        self._token = loaded.strip()
        self._validate_token()

    def _validate_token(self) -> None:
        token = self._token
        has_prefix = token.startswith(self.VALID_PREFIXES)
        if has_prefix:
            if len(token) < self.MIN_PREFIXED_LENGTH:
                msg = "Token appears too short to be valid"
                raise AuthenticationError(msg)
            return
        if not self.CLASSIC_TOKEN_PATTERN.match(token):
            msg = (
                f"Invalid token format. Expected prefix {self.VALID_PREFIXES} "
                "or a 40-character hex classic token"
            )
            raise AuthenticationError(msg)

    @property
    def token(self) -> str:
        """The validated token."""
        return self._token

    def get_authorization_header(self) -> dict[str, str]:
        """Authorization header for REST and GraphQL requests."""
        return {"Authorization": f"Bearer {self._token}"}
