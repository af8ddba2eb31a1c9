"""Resolve a user's access level on GitHub organisations, repositories and teams.

Access levels are the provider's own vocabulary (``admin``, ``member``,
``write`` and so on). An empty string means "authorized to ask, but no
access" and is ordinary data, not an error; only transport and provider
failures raise.
"""

from __future__ import annotations

import asyncio
import typing as typ

from scmbridge.logging import get_logger, log_debug
from scmbridge.models import ADMIN_ACCESS, NO_ACCESS, AccessLevel

from .client import api_path, get_str

if typ.TYPE_CHECKING:
    from scmbridge.models import User

    from .client import GitHubProvider, JSONObject

logger = get_logger(__name__)

_ACTIVE_MEMBERSHIP = "active"


class AccessResolver:
    """Answer permission queries for authenticated users."""

    def __init__(self, provider: GitHubProvider) -> None:
        """Bind the resolver to a provider."""
        self._provider = provider

    async def org_access(
        self, user: User, org: str, *, timeout: float | None = None
    ) -> AccessLevel:
        """Return the user's role in ``org``.

        A user's personal namespace has no membership concept, so ``org``
        matching the user's login (case-insensitively) is ``admin`` without
        any request. Pending or inactive memberships yield ``""``.
        """
        if org.lower() == user.name.lower():
            return ADMIN_ACCESS

        client = self._provider.for_token(user.token)
        async with asyncio.timeout(timeout):
            membership = await client.get_object(
                api_path("user", "memberships", "orgs", org)
            )
        if get_str(membership, "state") != _ACTIVE_MEMBERSHIP:
            log_debug(logger, "%s has no active membership in %s", user.name, org)
            return NO_ACCESS
        return AccessLevel(get_str(membership, "role"))

    async def repo_access(
        self,
        user: User,
        token: str,
        org: str,
        repo: str,
        *,
        timeout: float | None = None,
    ) -> AccessLevel:
        """Return ``user``'s permission on ``org/repo``, asked with ``token``."""
        client = self._provider.for_token(token)
        path = api_path(
            "repos", org, repo, "collaborators", user.name, "permission"
        )
        async with asyncio.timeout(timeout):
            data = await client.get_object(path)
        return AccessLevel(get_str(data, "permission"))

    async def _user_teams(self, user: User) -> list[JSONObject]:
        return await self._provider.for_token(user.token).get_all("user/teams")

    async def team_access(
        self, user: User, org: str, team: str, *, timeout: float | None = None
    ) -> AccessLevel:
        """Return ``admin`` when the user belongs to ``team`` in ``org``.

        Every page of the user's teams is read before matching; both names
        compare case-insensitively.
        """
        async with asyncio.timeout(timeout):
            teams = await self._user_teams(user)
        for entry in teams:
            if get_str(entry, "name").lower() != team.lower():
                continue
            if get_str(entry, "organization", "login").lower() != org.lower():
                continue
            return ADMIN_ACCESS
        return NO_ACCESS

    async def list_users_teams_for_org(
        self, user: User, org: str, *, timeout: float | None = None
    ) -> list[str]:
        """Return the names of the user's teams in ``org``."""
        async with asyncio.timeout(timeout):
            teams = await self._user_teams(user)
        return [
            get_str(entry, "name")
            for entry in teams
            if get_str(entry, "organization", "login").lower() == org.lower()
        ]


__all__ = ["AccessResolver"]
