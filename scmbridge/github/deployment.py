"""Read and create GitHub deployments."""

from __future__ import annotations

import asyncio
import typing as typ

from scmbridge.logging import get_logger, log_debug, log_info
from scmbridge.models import Deployment

from .client import api_path, get_str

if typ.TYPE_CHECKING:
    from scmbridge.models import Repo, User

    from .client import GitHubProvider, GitHubRestClient, JSONObject

logger = get_logger(__name__)

_DEFAULT_TASK = "deploy"


def deployment_from_api(data: JSONObject) -> Deployment:
    """Convert a REST deployment object into a platform deployment.

    Payloads that are not JSON objects are dropped.
    """
    raw_id = data.get("id")
    payload = data.get("payload")
    if not isinstance(payload, dict):
        log_debug(logger, "Unable to read payload for deployment id %s", raw_id)
        payload = None
    return Deployment(
        id=raw_id if isinstance(raw_id, int) else 0,
        url=get_str(data, "url"),
        user=get_str(data, "creator", "login"),
        commit=get_str(data, "sha"),
        ref=get_str(data, "ref"),
        task=get_str(data, "task"),
        target=get_str(data, "environment"),
        description=get_str(data, "description"),
        payload=payload or None,
    )


class DeploymentManager:
    """Deployment lookups and creation for authenticated users."""

    def __init__(self, provider: GitHubProvider) -> None:
        """Bind the manager to a provider."""
        self._provider = provider

    def _client(self, user: User) -> GitHubRestClient:
        return self._provider.for_token(user.token)

    async def get_deployment(
        self,
        user: User,
        repo: Repo,
        deployment_id: int,
        *,
        timeout: float | None = None,
    ) -> Deployment:
        """Return one deployment by id."""
        path = api_path("repos", repo.org, repo.name, "deployments", deployment_id)
        async with asyncio.timeout(timeout):
            data = await self._client(user).get_object(path)
        return deployment_from_api(data)

    async def get_deployment_count(
        self, user: User, repo: Repo, *, timeout: float | None = None
    ) -> int:
        """Return the number of deployments, reading every page."""
        path = api_path("repos", repo.org, repo.name, "deployments")
        async with asyncio.timeout(timeout):
            deployments = await self._client(user).get_all(path)
        return len(deployments)

    async def get_deployment_list(  # noqa: PLR0913
        self,
        user: User,
        repo: Repo,
        page: int = 1,
        per_page: int = 10,
        *,
        timeout: float | None = None,
    ) -> list[Deployment]:
        """Return one page of deployments, newest first."""
        path = api_path("repos", repo.org, repo.name, "deployments")
        async with asyncio.timeout(timeout):
            items, _next_page = await self._client(user).get_page(
                path, page, per_page=per_page
            )
        return [deployment_from_api(item) for item in items]

    async def create_deployment(  # noqa: PLR0913
        self,
        user: User,
        repo: Repo,
        *,
        ref: str,
        target: str,
        task: str = _DEFAULT_TASK,
        description: str = "",
        payload: dict[str, typ.Any] | None = None,
        timeout: float | None = None,
    ) -> Deployment:
        """Create a deployment of ``ref`` to the ``target`` environment.

        GitHub's merge and required-status checks are disabled so the
        platform alone decides whether the deployment runs.
        """
        request = {
            "ref": ref,
            "task": task,
            "auto_merge": False,
            "required_contexts": [],
            "payload": payload or {},
            "environment": target,
            "description": description,
        }
        path = api_path("repos", repo.org, repo.name, "deployments")
        async with asyncio.timeout(timeout):
            data = await self._client(user).post_object(path, request)
        deployment = deployment_from_api(data)
        log_info(
            logger,
            "Created deployment %d of %s to %s for %s",
            deployment.id,
            ref,
            target,
            repo.full_name,
        )
        return deployment


__all__ = ["DeploymentManager", "deployment_from_api"]
