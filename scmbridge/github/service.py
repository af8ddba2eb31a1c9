"""Single entry point bundling every GitHub integration component.

Usage
-----
>>> async with GitHubSCM.from_env() as scm:
...     level = await scm.org_access(user, "octo", timeout=5.0)

"""

from __future__ import annotations

import os
import typing as typ

from scmbridge.logging import configure_logging, get_logger, log_info, log_warning

from .access import AccessResolver
from .auth import OAuthSessionHandler
from .client import GitHubProvider
from .config import GitHubProviderConfig
from .deployment import DeploymentManager
from .repo import RepoManager
from .webhook import (
    process_webhook,
    redeliver_webhook,
    seed_hook,
    verify_webhook,
)

if typ.TYPE_CHECKING:
    import types

    import falcon.asgi
    import httpx

    from scmbridge.models import AccessLevel, Build, Deployment, Hook, Repo, User

    from .backoff import BackoffPolicy
    from .repo import BranchHead, PullRequestRefs
    from .webhook import WebhookDelivery, WebhookResult

logger = get_logger(__name__)


class GitHubSCM:
    """GitHub implementation of the platform's source-control boundary.

    Components are also reachable directly (``scm.auth``, ``scm.access``,
    ``scm.repos``, ``scm.deployments``) for callers that only need one.
    """

    def __init__(
        self,
        config: GitHubProviderConfig,
        *,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Create every component over one shared provider."""
        self.provider = GitHubProvider(config, http_client=http_client)
        self.auth = OAuthSessionHandler(self.provider)
        self.access = AccessResolver(self.provider)
        self.repos = RepoManager(self.provider)
        self.deployments = DeploymentManager(self.provider)
        log_info(logger, "GitHub SCM configured for %s", config.address)

    @classmethod
    def from_env(cls) -> GitHubSCM:
        """Create the service from ``SCMBRIDGE_*`` environment variables.

        ``SCMBRIDGE_LOG_LEVEL`` configures femtologging before the provider
        configuration is read; unknown levels fall back to ``INFO``.
        """
        log_level_str = os.environ.get("SCMBRIDGE_LOG_LEVEL", "INFO")
        normalized_level, invalid_level = configure_logging(log_level_str)
        if invalid_level:
            log_warning(
                logger,
                "Invalid SCMBRIDGE_LOG_LEVEL %r, falling back to %s",
                log_level_str,
                normalized_level,
            )
        return cls(GitHubProviderConfig.from_env())

    async def aclose(self) -> None:
        """Release the pooled HTTP client."""
        await self.provider.aclose()

    async def __aenter__(self) -> GitHubSCM:
        """Return the service for use in ``async with`` blocks."""
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: types.TracebackType | None,
    ) -> None:
        """Close the service when leaving an ``async with`` block."""
        await self.aclose()

    # Authentication

    def login(self, req: falcon.asgi.Request, resp: falcon.asgi.Response) -> str:
        """Redirect to GitHub's authorize page and return the OAuth state."""
        return self.auth.login(req, resp)

    async def authenticate(
        self,
        req: falcon.asgi.Request,
        expected_state: str,
        *,
        timeout: float | None = None,
    ) -> User | None:
        """Complete the OAuth callback."""
        return await self.auth.authenticate(req, expected_state, timeout=timeout)

    async def login_cli(
        self,
        username: str,
        password: str,
        otp: str = "",
        *,
        timeout: float | None = None,
    ) -> User:
        """Authenticate with Basic credentials and a one-time password."""
        return await self.auth.login_cli(username, password, otp, timeout=timeout)

    async def authorize(self, token: str, *, timeout: float | None = None) -> str:
        """Return the login name that ``token`` belongs to."""
        return await self.auth.authorize(token, timeout=timeout)

    async def authenticate_token(
        self, token: str, *, timeout: float | None = None
    ) -> User:
        """Authenticate a personal access token."""
        return await self.auth.authenticate_token(token, timeout=timeout)

    # Webhooks

    def process_webhook(
        self, delivery: WebhookDelivery, *, secret: str
    ) -> WebhookResult:
        """Verify and normalize one delivery."""
        return process_webhook(delivery, secret=secret)

    def verify_webhook(self, delivery: WebhookDelivery, *, secret: str) -> None:
        """Check only the signature of a delivery."""
        verify_webhook(delivery, secret=secret, hook=seed_hook(delivery))

    async def redeliver_webhook(
        self, user: User, repo: Repo, hook: Hook, *, timeout: float | None = None
    ) -> None:
        """Ask GitHub to redeliver a recent delivery."""
        await redeliver_webhook(
            self.provider.for_token(user.token), repo, hook, timeout=timeout
        )

    # Access

    async def org_access(
        self, user: User, org: str, *, timeout: float | None = None
    ) -> AccessLevel:
        """Return the user's role in ``org``."""
        return await self.access.org_access(user, org, timeout=timeout)

    async def repo_access(  # noqa: PLR0913
        self,
        user: User,
        token: str,
        org: str,
        repo: str,
        *,
        timeout: float | None = None,
    ) -> AccessLevel:
        """Return the user's permission on ``org/repo``."""
        return await self.access.repo_access(user, token, org, repo, timeout=timeout)

    async def team_access(
        self, user: User, org: str, team: str, *, timeout: float | None = None
    ) -> AccessLevel:
        """Return ``admin`` when the user belongs to ``org/team``."""
        return await self.access.team_access(user, org, team, timeout=timeout)

    async def list_users_teams_for_org(
        self, user: User, org: str, *, timeout: float | None = None
    ) -> list[str]:
        """Return the user's team names in ``org``."""
        return await self.access.list_users_teams_for_org(user, org, timeout=timeout)

    # Repositories

    async def config(
        self, user: User, repo: Repo, ref: str, *, timeout: float | None = None
    ) -> bytes:
        """Return the pipeline configuration at ``ref``."""
        return await self.repos.config(user, repo, ref, timeout=timeout)

    async def config_backoff(
        self,
        user: User,
        repo: Repo,
        ref: str,
        *,
        policy: BackoffPolicy | None = None,
        timeout: float | None = None,
    ) -> bytes:
        """Return the pipeline configuration, retrying transient misses."""
        return await self.repos.config_backoff(
            user, repo, ref, policy=policy, timeout=timeout
        )

    async def enable(  # noqa: PLR0913
        self,
        user: User,
        org: str,
        name: str,
        secret: str,
        *,
        timeout: float | None = None,
    ) -> str:
        """Register the platform webhook on ``org/name``."""
        return await self.repos.enable(user, org, name, secret, timeout=timeout)

    async def disable(
        self, user: User, org: str, name: str, *, timeout: float | None = None
    ) -> int:
        """Remove the platform webhook from ``org/name``."""
        return await self.repos.disable(user, org, name, timeout=timeout)

    async def status(  # noqa: PLR0913
        self,
        user: User,
        build: Build,
        org: str,
        name: str,
        *,
        timeout: float | None = None,
    ) -> None:
        """Publish the build's status to GitHub."""
        await self.repos.status(user, build, org, name, timeout=timeout)

    async def changeset(
        self, user: User, repo: Repo, sha: str, *, timeout: float | None = None
    ) -> list[str]:
        """Return the filenames touched by a commit."""
        return await self.repos.changeset(user, repo, sha, timeout=timeout)

    async def changeset_pr(
        self, user: User, repo: Repo, number: int, *, timeout: float | None = None
    ) -> list[str]:
        """Return the filenames touched by a pull request."""
        return await self.repos.changeset_pr(user, repo, number, timeout=timeout)

    async def list_user_repos(
        self, user: User, *, timeout: float | None = None
    ) -> list[Repo]:
        """Return the user's active repositories."""
        return await self.repos.list_user_repos(user, timeout=timeout)

    async def get_repo(
        self, user: User, repo: Repo, *, timeout: float | None = None
    ) -> Repo:
        """Return fresh repository details."""
        return await self.repos.get_repo(user, repo, timeout=timeout)

    async def get_pull_request(
        self, user: User, repo: Repo, number: int, *, timeout: float | None = None
    ) -> PullRequestRefs:
        """Return the head commit and refs of a pull request."""
        return await self.repos.get_pull_request(user, repo, number, timeout=timeout)

    async def get_branch(
        self, user: User, repo: Repo, branch: str, *, timeout: float | None = None
    ) -> BranchHead:
        """Return a branch and its head commit."""
        return await self.repos.get_branch(user, repo, branch, timeout=timeout)

    async def get_html_url(  # noqa: PLR0913
        self,
        user: User,
        org: str,
        repo: str,
        path: str,
        ref: str,
        *,
        timeout: float | None = None,
    ) -> str:
        """Return the browser URL of a file at ``ref``."""
        return await self.repos.get_html_url(
            user, org, repo, path, ref, timeout=timeout
        )

    # Deployments

    async def get_deployment(
        self,
        user: User,
        repo: Repo,
        deployment_id: int,
        *,
        timeout: float | None = None,
    ) -> Deployment:
        """Return one deployment."""
        return await self.deployments.get_deployment(
            user, repo, deployment_id, timeout=timeout
        )

    async def get_deployment_count(
        self, user: User, repo: Repo, *, timeout: float | None = None
    ) -> int:
        """Return the number of deployments."""
        return await self.deployments.get_deployment_count(user, repo, timeout=timeout)

    async def get_deployment_list(  # noqa: PLR0913
        self,
        user: User,
        repo: Repo,
        page: int = 1,
        per_page: int = 10,
        *,
        timeout: float | None = None,
    ) -> list[Deployment]:
        """Return one page of deployments."""
        return await self.deployments.get_deployment_list(
            user, repo, page, per_page, timeout=timeout
        )

    async def create_deployment(  # noqa: PLR0913
        self,
        user: User,
        repo: Repo,
        *,
        ref: str,
        target: str,
        task: str = "deploy",
        description: str = "",
        payload: dict[str, typ.Any] | None = None,
        timeout: float | None = None,
    ) -> Deployment:
        """Create a deployment."""
        return await self.deployments.create_deployment(
            user,
            repo,
            ref=ref,
            target=target,
            task=task,
            description=description,
            payload=payload,
            timeout=timeout,
        )


__all__ = ["GitHubSCM"]
