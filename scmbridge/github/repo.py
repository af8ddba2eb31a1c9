"""Repository integration lifecycle on GitHub.

:class:`RepoManager` provisions and removes the platform webhook, discovers
pipeline configuration files, publishes commit and deployment statuses, and
answers changeset and repository lookups for authenticated users.
"""

from __future__ import annotations

import asyncio
import base64
import binascii
import dataclasses
import typing as typ
import urllib.parse

from scmbridge.common.slug import repo_slug
from scmbridge.logging import get_logger, log_debug
from scmbridge.models import Repo

from .backoff import BackoffPolicy
from .client import api_path, as_object_list, get_str
from .errors import (
    DeploymentSourceError,
    GitHubResponseShapeError,
    PipelineConfigNotFoundError,
    RepoAlreadyEnabledError,
    RepoNotFoundError,
    SCMError,
)
from .observability import WebhookEventLogger

if typ.TYPE_CHECKING:
    from scmbridge.models import Build, User

    from .client import GitHubProvider, GitHubRestClient, JSONObject

logger = get_logger(__name__)

PIPELINE_FILES: tuple[str, ...] = (".vela.yml", ".vela.yaml")
# deployment and issue_comment deliveries are subscribed so that the hook log
# records them. process_webhook returns them as unsupported, hook-only results.
WEBHOOK_EVENTS: tuple[str, ...] = (
    "push",
    "pull_request",
    "deployment",
    "issue_comment",
)

_HTTP_NOT_FOUND = 404
_HTTP_UNPROCESSABLE_ENTITY = 422
_DEPLOYMENTS_MARKER = "/deployments/"

_STATUS_STATES: dict[str, tuple[str, str]] = {
    "running": ("pending", "the build is running"),
    "pending": ("pending", "the build is pending"),
    "success": ("success", "the build was successful"),
    "failure": ("failure", "the build has failed"),
    "canceled": ("failure", "the build was canceled"),
    "killed": ("failure", "the build was killed"),
    "skipped": ("success", "build was skipped as no steps/stages found"),
}
_ERROR_STATE = ("error", "there was an error")


def status_state(status: str) -> tuple[str, str]:
    """Map a platform build status to a GitHub ``(state, description)`` pair.

    >>> status_state("killed")
    ('failure', 'the build was killed')
    >>> status_state("exploded")
    ('error', 'there was an error')

    """
    return _STATUS_STATES.get(status, _ERROR_STATE)


def parse_deployment_id(source: str) -> int:
    """Return the deployment id referenced by a deployment build's source URL.

    The id normally follows ``/deployments/``; otherwise the trailing numeric
    path segment is used.

    >>> parse_deployment_id("https://api.github.com/repos/octo/reef/deployments/42")
    42
    >>> parse_deployment_id("https://example.com/octo/reef/7")
    7

    Raises
    ------
    DeploymentSourceError
        If neither strategy yields a number.

    """
    if _DEPLOYMENTS_MARKER in source:
        candidate = source.split(_DEPLOYMENTS_MARKER, 1)[1].split("/", 1)[0]
        if candidate.isascii() and candidate.isdigit():
            return int(candidate)

    segments = [part for part in urllib.parse.urlsplit(source).path.split("/") if part]
    if segments and segments[-1].isascii() and segments[-1].isdigit():
        return int(segments[-1])
    raise DeploymentSourceError(source)


def repo_from_api(data: JSONObject) -> Repo:
    """Convert a REST repository object into a platform repo."""
    topics = data.get("topics")
    return Repo(
        org=get_str(data, "owner", "login"),
        name=get_str(data, "name"),
        full_name=get_str(data, "full_name"),
        link=get_str(data, "html_url"),
        clone=get_str(data, "clone_url"),
        branch=get_str(data, "default_branch"),
        private=bool(data.get("private", False)),
        topics=tuple(t for t in topics if isinstance(t, str))
        if isinstance(topics, list)
        else (),
    )


@dataclasses.dataclass(frozen=True, slots=True)
class PullRequestRefs:
    """Refs needed to rebuild a pull request."""

    commit: str
    branch: str
    base_ref: str
    head_ref: str


@dataclasses.dataclass(frozen=True, slots=True)
class BranchHead:
    """A branch and the commit at its tip."""

    name: str
    commit: str


class RepoManager:
    """Manage platform integration state on GitHub repositories."""

    def __init__(
        self,
        provider: GitHubProvider,
        *,
        event_logger: WebhookEventLogger | None = None,
    ) -> None:
        """Bind the manager to a provider."""
        self._provider = provider
        self._events = event_logger or WebhookEventLogger()

    def _client(self, user: User) -> GitHubRestClient:
        return self._provider.for_token(user.token)

    async def _find_config(self, user: User, repo: Repo, ref: str) -> bytes:
        client = self._client(user)
        for filename in PIPELINE_FILES:
            path = api_path("repos", repo.org, repo.name, "contents", filename)
            response = await client.send(
                "GET", path, params={"ref": ref}, allow_status={_HTTP_NOT_FOUND}
            )
            if response.status_code == _HTTP_NOT_FOUND:
                log_debug(logger, "%s not found in %s@%s", filename, repo.slug, ref)
                continue
            data = client.decode(response, path=path)
            if not isinstance(data, dict):
                log_debug(logger, "%s is not a file in %s@%s", filename, repo.slug, ref)
                continue
            try:
                return base64.b64decode(get_str(data, "content"))
            except binascii.Error as exc:
                raise GitHubResponseShapeError.missing(
                    f"{filename} content"
                ) from exc
        raise PipelineConfigNotFoundError(repo.slug, ref, PIPELINE_FILES)

    async def config(
        self, user: User, repo: Repo, ref: str, *, timeout: float | None = None
    ) -> bytes:
        """Return the pipeline configuration at ``ref``.

        ``.vela.yml`` is preferred over ``.vela.yaml``; a missing file is not
        an error until both are absent.

        Raises
        ------
        PipelineConfigNotFoundError
            If neither file exists at ``ref``.

        """
        async with asyncio.timeout(timeout):
            return await self._find_config(user, repo, ref)

    async def config_backoff(
        self,
        user: User,
        repo: Repo,
        ref: str,
        *,
        policy: BackoffPolicy | None = None,
        timeout: float | None = None,
    ) -> bytes:
        """Return the pipeline configuration, retrying the whole lookup.

        GitHub may briefly answer 404 for a ref it has just announced, so the
        lookup is retried according to ``policy`` (five attempts with a
        linearly increasing delay by default). The last error is raised once
        attempts are exhausted.
        """
        active = policy or BackoffPolicy()
        async with asyncio.timeout(timeout):
            return await active.run(
                lambda: self._find_config(user, repo, ref),
                retry_on=(SCMError,),
                description=f"config lookup for {repo.slug}@{ref}",
            )

    async def enable(
        self,
        user: User,
        org: str,
        name: str,
        secret: str,
        *,
        timeout: float | None = None,
    ) -> str:
        """Register the platform webhook on ``org/name`` and return its web URL.

        Raises
        ------
        RepoAlreadyEnabledError
            If GitHub rejects the hook as a duplicate (422).
        RepoNotFoundError
            If the repository does not exist or is not visible (404).

        """
        slug = repo_slug(org, name)
        payload = {
            "events": list(WEBHOOK_EVENTS),
            "config": {
                "url": self._provider.config.webhook_url,
                "content_type": "form",
                "secret": secret,
            },
            "active": True,
        }
        async with asyncio.timeout(timeout):
            response = await self._client(user).send(
                "POST",
                api_path("repos", org, name, "hooks"),
                json=payload,
                allow_status={_HTTP_NOT_FOUND, _HTTP_UNPROCESSABLE_ENTITY},
            )
        if response.status_code == _HTTP_UNPROCESSABLE_ENTITY:
            raise RepoAlreadyEnabledError(slug)
        if response.status_code == _HTTP_NOT_FOUND:
            raise RepoNotFoundError(slug)

        link = f"{self._provider.config.address}/{org}/{name}"
        self._events.log_repo_enabled(repo_slug=slug, link=link)
        return link

    async def disable(
        self, user: User, org: str, name: str, *, timeout: float | None = None
    ) -> int:
        """Delete every hook pointing at the platform webhook URL.

        Returns the number of hooks deleted; zero matches is not an error.
        """
        client = self._client(user)
        hooks_path = api_path("repos", org, name, "hooks")
        webhook_url = self._provider.config.webhook_url
        async with asyncio.timeout(timeout):
            hooks = await client.get_all(hooks_path)
            matching = [
                hook["id"]
                for hook in hooks
                if isinstance(hook.get("id"), int)
                and hook["id"] != 0
                and get_str(hook, "config", "url") == webhook_url
            ]
            for hook_id in matching:
                await client.send("DELETE", f"{hooks_path}/{hook_id}")

        self._events.log_repo_disabled(
            repo_slug=repo_slug(org, name), hooks_deleted=len(matching)
        )
        return len(matching)

    async def status(
        self,
        user: User,
        build: Build,
        org: str,
        name: str,
        *,
        timeout: float | None = None,
    ) -> None:
        """Publish the build's status to GitHub.

        Deployment builds update the deployment referenced by ``build.source``
        through the deployment-status API; every other build sets a commit
        status on ``build.commit``.

        Raises
        ------
        DeploymentSourceError
            If a deployment build's source does not reference a deployment.

        """
        state, description = status_state(build.status)
        web_ui = self._provider.config.web_ui_address
        target_url = f"{web_ui}/{org}/{name}/{build.number}" if web_ui else ""
        client = self._client(user)

        if build.event.lower() == "deployment":
            deployment_id = parse_deployment_id(build.source)
            payload: dict[str, typ.Any] = {
                "state": state,
                "description": description,
                "environment": build.deploy,
            }
            if target_url:
                payload["log_url"] = target_url
            path = api_path(
                "repos", org, name, "deployments", deployment_id, "statuses"
            )
            target = f"deployment:{deployment_id}"
        else:
            payload = {
                "state": state,
                "description": description,
                "context": f"{self._provider.config.status_context}/{build.event}",
            }
            if target_url and build.status != "skipped":
                payload["target_url"] = target_url
            path = api_path("repos", org, name, "statuses", build.commit)
            target = f"commit:{build.commit}"

        async with asyncio.timeout(timeout):
            await client.send("POST", path, json=payload)
        self._events.log_status_published(
            repo_slug=repo_slug(org, name), state=state, target=target
        )

    async def changeset(
        self, user: User, repo: Repo, sha: str, *, timeout: float | None = None
    ) -> list[str]:
        """Return the filenames touched by commit ``sha``."""
        path = api_path("repos", repo.org, repo.name, "commits", sha)
        async with asyncio.timeout(timeout):
            data = await self._client(user).get_object(path)
        files = as_object_list(data.get("files", []), field="files")
        return [get_str(entry, "filename") for entry in files]

    async def changeset_pr(
        self, user: User, repo: Repo, number: int, *, timeout: float | None = None
    ) -> list[str]:
        """Return the filenames touched by pull request ``number``."""
        path = api_path("repos", repo.org, repo.name, "pulls", number, "files")
        async with asyncio.timeout(timeout):
            files = await self._client(user).get_all(path)
        return [get_str(entry, "filename") for entry in files]

    async def list_user_repos(
        self, user: User, *, timeout: float | None = None
    ) -> list[Repo]:
        """Return every repository visible to the user, skipping archived ones.

        Disabled repositories are skipped as well.
        """
        async with asyncio.timeout(timeout):
            repos = await self._client(user).get_all("user/repos")
        return [
            repo_from_api(entry)
            for entry in repos
            if not entry.get("archived") and not entry.get("disabled")
        ]

    async def get_repo(
        self, user: User, repo: Repo, *, timeout: float | None = None
    ) -> Repo:
        """Return fresh repository details from GitHub."""
        async with asyncio.timeout(timeout):
            data = await self._client(user).get_object(
                api_path("repos", repo.org, repo.name)
            )
        return repo_from_api(data)

    async def get_pull_request(
        self, user: User, repo: Repo, number: int, *, timeout: float | None = None
    ) -> PullRequestRefs:
        """Return the head commit and refs of pull request ``number``."""
        async with asyncio.timeout(timeout):
            data = await self._client(user).get_object(
                api_path("repos", repo.org, repo.name, "pulls", number)
            )
        return PullRequestRefs(
            commit=get_str(data, "head", "sha"),
            branch=get_str(data, "base", "ref"),
            base_ref=get_str(data, "base", "ref"),
            head_ref=get_str(data, "head", "ref"),
        )

    async def get_branch(
        self, user: User, repo: Repo, branch: str, *, timeout: float | None = None
    ) -> BranchHead:
        """Return ``branch`` and the commit at its tip."""
        async with asyncio.timeout(timeout):
            data = await self._client(user).get_object(
                api_path("repos", repo.org, repo.name, "branches", branch)
            )
        return BranchHead(
            name=get_str(data, "name"), commit=get_str(data, "commit", "sha")
        )

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
        """Return the browser URL of ``path`` at ``ref``.

        Raises
        ------
        GitHubResponseShapeError
            If GitHub returns no ``html_url`` for the path.

        """
        quoted = urllib.parse.quote(path.lstrip("/"), safe="/")
        base = api_path("repos", org, repo, "contents")
        content_path = f"{base}/{quoted}"
        async with asyncio.timeout(timeout):
            data = await self._client(user).get_object(
                content_path, params={"ref": ref}
            )
        html_url = get_str(data, "html_url")
        if not html_url:
            raise GitHubResponseShapeError.missing("html_url")
        return html_url


__all__ = [
    "PIPELINE_FILES",
    "WEBHOOK_EVENTS",
    "BranchHead",
    "PullRequestRefs",
    "RepoManager",
    "parse_deployment_id",
    "repo_from_api",
    "status_state",
]
