"""Typed GitHub webhook payloads.

Only the fields the normalizers read are declared; msgspec ignores the rest.
GitHub sends ``null`` for many optional values, so those are typed as
``X | None`` and coerced to empty strings when building platform records.
"""

from __future__ import annotations

import msgspec


class Account(msgspec.Struct, kw_only=True):
    """User or organisation reference (``sender``, ``owner``, ``pusher``)."""

    login: str | None = None
    name: str | None = None
    email: str | None = None


class CommitIdentity(msgspec.Struct, kw_only=True):
    """Git author or committer embedded in a push commit.

    ``username`` is the GitHub login when GitHub could match the email.
    """

    name: str | None = None
    email: str | None = None
    username: str | None = None


class HeadCommit(msgspec.Struct, kw_only=True):
    """Most recent commit of a push."""

    id: str = ""
    url: str = ""
    message: str = ""
    author: CommitIdentity | None = None
    committer: CommitIdentity | None = None


class Repository(msgspec.Struct, kw_only=True):
    """Repository block embedded in every repository-scoped event.

    Attributes
    ----------
    owner : Account | None
        Owning user or organisation; ``owner.login`` becomes the platform org.
    default_branch : str
        Branch GitHub treats as the repository default.
    topics : list[str]
        Repository topics, empty when none are set.

    """

    name: str = ""
    full_name: str = ""
    html_url: str = ""
    clone_url: str = ""
    default_branch: str = ""
    private: bool = False
    archived: bool = False
    disabled: bool = False
    topics: list[str] = msgspec.field(default_factory=list)
    owner: Account | None = None


class PushEvent(msgspec.Struct, kw_only=True):
    """Payload of a ``push`` delivery for a branch or tag."""

    ref: str = ""
    base_ref: str | None = None
    repository: Repository = msgspec.field(default_factory=Repository)
    head_commit: HeadCommit | None = None
    pusher: Account | None = None
    sender: Account | None = None


class PullRequestBranch(msgspec.Struct, kw_only=True):
    """``head`` or ``base`` side of a pull request."""

    ref: str = ""
    sha: str = ""
    user: Account | None = None


class PullRequest(msgspec.Struct, kw_only=True):
    """Pull request object embedded in ``pull_request`` deliveries."""

    number: int = 0
    state: str = ""
    title: str = ""
    html_url: str = ""
    merged: bool | None = None
    user: Account | None = None
    head: PullRequestBranch = msgspec.field(default_factory=PullRequestBranch)
    base: PullRequestBranch = msgspec.field(default_factory=PullRequestBranch)


class PullRequestEvent(msgspec.Struct, kw_only=True):
    """Payload of a ``pull_request`` delivery."""

    action: str = ""
    number: int = 0
    pull_request: PullRequest = msgspec.field(default_factory=PullRequest)
    repository: Repository = msgspec.field(default_factory=Repository)
    sender: Account | None = None


WebhookEvent = PushEvent | PullRequestEvent

EVENT_PAYLOAD_TYPES: dict[str, type[WebhookEvent]] = {
    "push": PushEvent,
    "pull_request": PullRequestEvent,
}


def decode_event(event: str, body: bytes) -> WebhookEvent | None:
    """Decode ``body`` into the typed payload for ``event``.

    Returns ``None`` for event types without a typed payload.

    Raises
    ------
    msgspec.DecodeError
        If the body is not JSON or does not match the payload type.

    """
    payload_type = EVENT_PAYLOAD_TYPES.get(event)
    if payload_type is None:
        return None
    return msgspec.json.decode(body, type=payload_type)


__all__ = [
    "EVENT_PAYLOAD_TYPES",
    "Account",
    "CommitIdentity",
    "HeadCommit",
    "PullRequest",
    "PullRequestBranch",
    "PullRequestEvent",
    "PushEvent",
    "Repository",
    "WebhookEvent",
    "decode_event",
]
