"""Platform records exchanged with the SCM boundary.

Every record is immutable and created fresh per call. Downstream
collaborators persist them; nothing here holds credentials beyond the call
that received them.
"""

from __future__ import annotations

import dataclasses
import typing as typ

from scmbridge.common.slug import repo_slug

AccessLevel = typ.NewType("AccessLevel", str)
"""Provider-defined permission string; ``""`` means no access."""

NO_ACCESS = AccessLevel("")
ADMIN_ACCESS = AccessLevel("admin")

# Org roles, repository permissions and team roles use different words for
# similar grants, so ranks are only compared at the boundary.
_ACCESS_RANKS: dict[str, int] = {
    "read": 1,
    "pull": 1,
    "member": 1,
    "triage": 2,
    "write": 3,
    "push": 3,
    "maintain": 4,
    "maintainer": 4,
    "admin": 5,
}

STATUS_SUCCESS = "success"


def access_rank(level: str) -> int:
    """Return a comparable rank for a provider access level.

    Unknown or empty levels rank as no access (``0``).

    >>> access_rank("Admin") > access_rank("write")
    True

    """
    return _ACCESS_RANKS.get(level.strip().lower(), 0)


def has_access(level: str, required: str) -> bool:
    """Return True when ``level`` grants at least ``required``."""
    needed = access_rank(required)
    return needed > 0 and access_rank(level) >= needed


@dataclasses.dataclass(frozen=True, slots=True)
class User:
    """Authenticated platform user; the token authorizes every provider call."""

    name: str
    token: str = dataclasses.field(repr=False)


@dataclasses.dataclass(frozen=True, slots=True)
class Repo:
    """Repository details, always populated together from one provider record."""

    org: str
    name: str
    full_name: str
    link: str
    clone: str
    branch: str
    private: bool
    topics: tuple[str, ...] = ()

    @property
    def slug(self) -> str:
        """Return ``org/name``."""
        return repo_slug(self.org, self.name)


@dataclasses.dataclass(frozen=True, slots=True)
class Hook:
    """Auditable record of one webhook delivery."""

    source_id: str
    event: str
    host: str
    created: int
    number: int = 1
    webhook_id: int | None = None
    event_action: str = ""
    status: str = STATUS_SUCCESS
    branch: str = ""
    link: str = ""
    error: str = ""


@dataclasses.dataclass(frozen=True, slots=True)
class Build:
    """Canonical build trigger derived from a delivery.

    ``ref`` is always the concrete provider ref under test, such as
    ``refs/heads/main``, ``refs/tags/v1`` or ``refs/pull/7/head``.
    """

    event: str
    clone: str = ""
    source: str = ""
    title: str = ""
    message: str = ""
    commit: str = ""
    sender: str = ""
    author: str = ""
    email: str = ""
    branch: str = ""
    ref: str = ""
    base_ref: str = ""
    head_ref: str = ""
    event_action: str = ""
    deploy: str = ""
    status: str = ""
    number: int = 0


@dataclasses.dataclass(frozen=True, slots=True)
class Deployment:
    """Deployment record as reported by the provider."""

    id: int
    url: str
    user: str
    commit: str
    ref: str
    task: str
    target: str
    description: str
    payload: dict[str, typ.Any] | None = None


__all__ = [
    "ADMIN_ACCESS",
    "NO_ACCESS",
    "STATUS_SUCCESS",
    "AccessLevel",
    "Build",
    "Deployment",
    "Hook",
    "Repo",
    "User",
    "access_rank",
    "has_access",
]
