"""Verify GitHub webhook deliveries and normalize them into platform records.

Every delivery first yields a :class:`~scmbridge.models.Hook` seeded from
headers alone so that malformed or forged deliveries still leave an auditable
record. The signature is then checked, the payload decoded into its typed
event, and the delivery classified into exactly one :class:`DeliveryKind`,
each handled by its own normalizer.

Only signature and payload failures raise. Every other outcome, including
event types this module does not handle, is a hook-only
:class:`WebhookResult`.

Usage
-----
>>> delivery = WebhookDelivery(headers=request_headers, body=raw_body)
>>> result = process_webhook(delivery, secret=repo_secret)
>>> result.kind
<DeliveryKind.PUSH_TO_BRANCH: 'push_to_branch'>

"""

from __future__ import annotations

import asyncio
import collections.abc as cabc
import dataclasses
import enum
import hashlib
import hmac
import typing as typ
import urllib.parse

import msgspec

from scmbridge.common.slug import hook_settings_link
from scmbridge.common.time import unix_now
from scmbridge.logging import get_logger, log_debug
from scmbridge.models import Build, Hook, Repo

from .client import api_path, as_object_list
from .errors import (
    GitHubAPIError,
    WebhookPayloadError,
    WebhookRedeliveryError,
    WebhookSignatureError,
)
from .events import (
    EVENT_PAYLOAD_TYPES,
    PullRequestEvent,
    PushEvent,
    Repository,
    WebhookEvent,
    decode_event,
)
from .observability import WebhookEventLogger

if typ.TYPE_CHECKING:
    import falcon.asgi

    from .client import GitHubRestClient

logger = get_logger(__name__)

DEFAULT_HOST = "github.com"
_BRANCH_PREFIX = "refs/heads/"
_TAG_PREFIX = "refs/tags/"
_FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"
_JSON_CONTENT_TYPE = "application/json"
_RECENT_DELIVERIES = 100
_HTTP_UNSUPPORTED_MEDIA_TYPE = 415

_SIGNATURE_HEADERS: tuple[tuple[str, str], ...] = (
    ("X-Hub-Signature-256", "sha256"),
    ("X-Hub-Signature", "sha1"),
)
_DIGESTS: dict[str, typ.Callable[[], typ.Any]] = {
    "sha256": hashlib.sha256,
    "sha1": hashlib.sha1,
}

_events = WebhookEventLogger()


class DeliveryKind(enum.StrEnum):
    """Classification of a delivery; each kind has exactly one normalizer."""

    PUSH_TO_BRANCH = "push_to_branch"
    PUSH_TO_TAG = "push_to_tag"
    PULL_REQUEST_OPENED = "pull_request_opened"
    PULL_REQUEST_SYNCHRONIZED = "pull_request_synchronized"
    IGNORED = "ignored"
    UNSUPPORTED = "unsupported"


@dataclasses.dataclass(frozen=True, slots=True)
class WebhookDelivery:
    """Raw webhook request: headers plus the unparsed body."""

    headers: cabc.Mapping[str, str]
    body: bytes

    def header(self, name: str) -> str:
        """Return a header value by case-insensitive name, or ``""``."""
        wanted = name.lower()
        for key, value in self.headers.items():
            if key.lower() == wanted:
                return value
        return ""

    @classmethod
    async def from_request(cls, req: falcon.asgi.Request) -> WebhookDelivery:
        """Read the headers and full body of a Falcon ASGI request."""
        body = await req.stream.read()
        return cls(headers=dict(req.headers), body=body)


@dataclasses.dataclass(frozen=True, slots=True)
class WebhookResult:
    """Canonical outcome of one delivery.

    ``repo`` and ``build`` are only set for actionable deliveries;
    ``pr_number`` is only set for actionable pull requests.
    """

    kind: DeliveryKind
    hook: Hook
    repo: Repo | None = None
    build: Build | None = None
    pr_number: int = 0

    @property
    def actionable(self) -> bool:
        """Return True when the delivery produced a build."""
        return self.build is not None


def seed_hook(delivery: WebhookDelivery, *, received_at: int | None = None) -> Hook:
    """Build the hook record from delivery headers alone."""
    raw_hook_id = delivery.header("X-GitHub-Hook-ID").strip()
    numeric = raw_hook_id.isascii() and raw_hook_id.isdigit()
    return Hook(
        source_id=delivery.header("X-GitHub-Delivery"),
        webhook_id=int(raw_hook_id) if numeric else None,
        event=delivery.header("X-GitHub-Event"),
        host=delivery.header("X-GitHub-Enterprise-Host") or DEFAULT_HOST,
        created=unix_now() if received_at is None else received_at,
    )


def compute_signature(body: bytes, secret: str, *, algorithm: str = "sha256") -> str:
    """Return the ``<algorithm>=<hexdigest>`` signature GitHub sends for ``body``.

    >>> compute_signature(b"{}", "s3cret")[:7]
    'sha256='

    """
    digest = hmac.new(secret.encode("utf-8"), body, _DIGESTS[algorithm]).hexdigest()
    return f"{algorithm}={digest}"


def verify_webhook(delivery: WebhookDelivery, *, secret: str, hook: Hook) -> None:
    """Check the delivery signature against ``secret``.

    The SHA-256 signature header is preferred; the legacy SHA-1 header is used
    only when it is the sole signature present.

    Raises
    ------
    WebhookSignatureError
        If no secret is configured, the signature is missing, it names an
        unknown algorithm, or it does not match the body.

    """
    if not secret:
        raise WebhookSignatureError.no_secret(hook)

    signature = ""
    for header, _algorithm in _SIGNATURE_HEADERS:
        signature = delivery.header(header).strip()
        if signature:
            break
    if not signature:
        raise WebhookSignatureError.missing_signature(hook)

    algorithm, _, _digest = signature.partition("=")
    if algorithm not in _DIGESTS:
        raise WebhookSignatureError.unsupported_algorithm(hook, algorithm)

    expected = compute_signature(delivery.body, secret, algorithm=algorithm)
    if not hmac.compare_digest(expected.encode(), signature.encode()):
        raise WebhookSignatureError.mismatch(hook)


def _payload_bytes(delivery: WebhookDelivery, hook: Hook) -> bytes:
    media_type = delivery.header("Content-Type").split(";", 1)[0].strip().lower()
    if media_type in {"", _JSON_CONTENT_TYPE}:
        return delivery.body
    if media_type != _FORM_CONTENT_TYPE:
        raise WebhookPayloadError.unsupported_content_type(hook, media_type)

    form = urllib.parse.parse_qs(delivery.body.decode("utf-8", errors="replace"))
    values = form.get("payload")
    if not values:
        raise WebhookPayloadError.undecodable(hook, "form body has no payload field")
    return values[0].encode("utf-8")


def decode_payload(delivery: WebhookDelivery, hook: Hook) -> WebhookEvent | None:
    """Decode the delivery body into the typed event for ``hook.event``.

    Returns ``None`` without reading the body for event types that have no
    typed payload.
    """
    if hook.event not in EVENT_PAYLOAD_TYPES:
        return None
    body = _payload_bytes(delivery, hook)
    try:
        return decode_event(hook.event, body)
    except msgspec.DecodeError as exc:
        raise WebhookPayloadError.undecodable(hook, str(exc)) from exc


def classify(payload: WebhookEvent | None) -> DeliveryKind:
    """Return the delivery kind for a decoded payload."""
    match payload:
        case PushEvent(ref=ref) if ref.startswith(_TAG_PREFIX):
            return DeliveryKind.PUSH_TO_TAG
        case PushEvent():
            return DeliveryKind.PUSH_TO_BRANCH
        case PullRequestEvent() if payload.pull_request.state != "open":
            return DeliveryKind.IGNORED
        case PullRequestEvent(action=action) if action.lower() == "opened":
            return DeliveryKind.PULL_REQUEST_OPENED
        case PullRequestEvent(action=action) if action.lower() == "synchronize":
            return DeliveryKind.PULL_REQUEST_SYNCHRONIZED
        case PullRequestEvent():
            return DeliveryKind.IGNORED
        case _:
            return DeliveryKind.UNSUPPORTED


def repo_from_payload(repository: Repository) -> Repo:
    """Convert an embedded repository block into a platform repo."""
    owner = repository.owner
    return Repo(
        org=(owner.login or "") if owner else "",
        name=repository.name,
        full_name=repository.full_name,
        link=repository.html_url,
        clone=repository.clone_url,
        branch=repository.default_branch,
        private=repository.private,
        topics=tuple(repository.topics),
    )


def _first(*values: str | None) -> str:
    """Return the first non-empty value, or ``""``."""
    return next((value for value in values if value), "")


def _push_result(hook: Hook, payload: PushEvent, kind: DeliveryKind) -> WebhookResult:
    repo = repo_from_payload(payload.repository)
    commit = payload.head_commit
    author = commit.author if commit else None
    committer = commit.committer if commit else None
    event = "tag" if kind is DeliveryKind.PUSH_TO_TAG else "push"
    base_ref = payload.base_ref or ""

    branch = payload.ref.removeprefix(_BRANCH_PREFIX)
    if kind is DeliveryKind.PUSH_TO_TAG and base_ref.startswith(_BRANCH_PREFIX):
        branch = base_ref.removeprefix(_BRANCH_PREFIX)

    build = Build(
        event=event,
        clone=payload.repository.clone_url,
        source=commit.url if commit else "",
        title=f"push received from {payload.repository.html_url}",
        message=commit.message if commit else "",
        commit=commit.id if commit else "",
        sender=_first(
            payload.sender.login if payload.sender else None,
            payload.pusher.name if payload.pusher else None,
        ),
        author=_first(
            author.username if author else None,
            committer.name if committer else None,
        ),
        email=_first(
            author.email if author else None,
            committer.email if committer else None,
        ),
        branch=branch,
        ref=payload.ref,
        base_ref=base_ref,
    )
    seeded = dataclasses.replace(
        hook,
        event=event,
        branch=branch,
        link=hook_settings_link(hook.host, repo.full_name),
    )
    return WebhookResult(kind=kind, hook=seeded, repo=repo, build=build)


def _normalize_push_to_branch(
    hook: Hook, payload: WebhookEvent | None
) -> WebhookResult:
    return _push_result(
        hook, typ.cast("PushEvent", payload), DeliveryKind.PUSH_TO_BRANCH
    )


def _normalize_push_to_tag(hook: Hook, payload: WebhookEvent | None) -> WebhookResult:
    return _push_result(hook, typ.cast("PushEvent", payload), DeliveryKind.PUSH_TO_TAG)


def _pull_request_hook(hook: Hook, payload: PullRequestEvent) -> Hook:
    return dataclasses.replace(
        hook,
        event="pull_request",
        event_action=payload.action,
        branch=payload.pull_request.base.ref,
        link=hook_settings_link(hook.host, payload.repository.full_name),
    )


def _pull_request_result(
    hook: Hook, payload: PullRequestEvent, kind: DeliveryKind
) -> WebhookResult:
    pull = payload.pull_request
    number = payload.number or pull.number
    repo = repo_from_payload(payload.repository)
    suffix = "merge" if pull.merged else "head"
    build = Build(
        event="pull_request",
        event_action=payload.action,
        clone=payload.repository.clone_url,
        source=pull.html_url,
        title=f"pull_request received from {payload.repository.html_url}",
        message=pull.title,
        commit=pull.head.sha,
        sender=_first(
            payload.sender.login if payload.sender else None,
            pull.user.login if pull.user else None,
        ),
        author=_first(
            pull.user.login if pull.user else None,
            pull.head.user.login if pull.head.user else None,
        ),
        email=_first(
            pull.user.email if pull.user else None,
            pull.head.user.email if pull.head.user else None,
        ),
        branch=pull.base.ref,
        ref=f"refs/pull/{number}/{suffix}",
        base_ref=pull.base.ref,
        head_ref=pull.head.ref,
    )
    return WebhookResult(
        kind=kind,
        hook=_pull_request_hook(hook, payload),
        repo=repo,
        build=build,
        pr_number=number,
    )


def _normalize_pull_request_opened(
    hook: Hook, payload: WebhookEvent | None
) -> WebhookResult:
    return _pull_request_result(
        hook,
        typ.cast("PullRequestEvent", payload),
        DeliveryKind.PULL_REQUEST_OPENED,
    )


def _normalize_pull_request_synchronized(
    hook: Hook, payload: WebhookEvent | None
) -> WebhookResult:
    return _pull_request_result(
        hook,
        typ.cast("PullRequestEvent", payload),
        DeliveryKind.PULL_REQUEST_SYNCHRONIZED,
    )


def _normalize_ignored(hook: Hook, payload: WebhookEvent | None) -> WebhookResult:
    pull_request = typ.cast("PullRequestEvent", payload)
    return WebhookResult(
        kind=DeliveryKind.IGNORED, hook=_pull_request_hook(hook, pull_request)
    )


def _normalize_unsupported(hook: Hook, payload: WebhookEvent | None) -> WebhookResult:
    del payload
    return WebhookResult(kind=DeliveryKind.UNSUPPORTED, hook=hook)


Normalizer = cabc.Callable[[Hook, WebhookEvent | None], WebhookResult]

_NORMALIZERS: dict[DeliveryKind, Normalizer] = {
    DeliveryKind.PUSH_TO_BRANCH: _normalize_push_to_branch,
    DeliveryKind.PUSH_TO_TAG: _normalize_push_to_tag,
    DeliveryKind.PULL_REQUEST_OPENED: _normalize_pull_request_opened,
    DeliveryKind.PULL_REQUEST_SYNCHRONIZED: _normalize_pull_request_synchronized,
    DeliveryKind.IGNORED: _normalize_ignored,
    DeliveryKind.UNSUPPORTED: _normalize_unsupported,
}


def process_webhook(
    delivery: WebhookDelivery,
    *,
    secret: str,
    received_at: int | None = None,
) -> WebhookResult:
    """Verify, decode and normalize one webhook delivery.

    Parameters
    ----------
    delivery
        Raw headers and body as received by the webhook endpoint.
    secret
        Secret registered on the repository webhook. An empty secret never
        verifies.
    received_at
        Receipt time in unix seconds; defaults to now.

    Returns
    -------
    WebhookResult
        The classified delivery. ``repo`` and ``build`` are ``None`` for
        ignored and unsupported deliveries.

    Raises
    ------
    WebhookSignatureError
        If the signature is missing or invalid. ``exc.hook`` holds the
        seeded hook.
    WebhookPayloadError
        If the payload cannot be decoded. ``exc.hook`` holds the seeded hook.

    """
    hook = seed_hook(delivery, received_at=received_at)
    _events.log_delivery_received(
        source_id=hook.source_id, event=hook.event, host=hook.host
    )
    try:
        verify_webhook(delivery, secret=secret, hook=hook)
        payload = decode_payload(delivery, hook)
    except (WebhookSignatureError, WebhookPayloadError) as exc:
        _events.log_delivery_rejected(hook, exc)
        raise

    kind = classify(payload)
    result = _NORMALIZERS[kind](hook, payload)
    if result.repo is not None:
        _events.log_delivery_normalized(
            result.hook, kind=kind, repo_slug=result.repo.full_name
        )
    else:
        _events.log_delivery_skipped(result.hook, kind=kind)
    return result


async def _find_delivery_id(
    client: GitHubRestClient, repo: Repo, hook: Hook, hook_id: int
) -> int:
    path = api_path("repos", repo.org, repo.name, "hooks", hook_id)
    response = await client.send(
        "GET",
        f"{path}/deliveries",
        params={"per_page": _RECENT_DELIVERIES},
        allow_status={_HTTP_UNSUPPORTED_MEDIA_TYPE},
    )
    if response.status_code == _HTTP_UNSUPPORTED_MEDIA_TYPE:
        raise GitHubAPIError.unsupported_version()

    deliveries = as_object_list(client.decode(response, path=path), field="deliveries")
    for summary in deliveries:
        if summary.get("guid") == hook.source_id and isinstance(summary.get("id"), int):
            return summary["id"]
    raise WebhookRedeliveryError(hook.source_id)


async def redeliver_webhook(
    client: GitHubRestClient,
    repo: Repo,
    hook: Hook,
    *,
    timeout: float | None = None,
) -> None:
    """Ask GitHub to redeliver a recent delivery.

    The delivery is located by its GUID (``hook.source_id``) among the last
    100 deliveries of ``hook.webhook_id``. GitHub answers ``202 Accepted``
    once the redelivery is queued.

    Raises
    ------
    WebhookRedeliveryError
        If the delivery is no longer among the recent deliveries
        or the hook was recorded without a hook id.
    GitHubAPIError
        If GitHub predates the deliveries API or the request fails.

    """
    hook_id = hook.webhook_id
    if hook_id is None:
        raise WebhookRedeliveryError.missing_hook_id(hook.source_id)
    async with asyncio.timeout(timeout):
        delivery_id = await _find_delivery_id(client, repo, hook, hook_id)
        path = api_path(
            "repos",
            repo.org,
            repo.name,
            "hooks",
            hook_id,
            "deliveries",
            delivery_id,
            "attempts",
        )
        await client.send("POST", path)
        log_debug(
            logger, "Redelivery of %s queued for %s", hook.source_id, repo.full_name
        )


__all__ = [
    "DEFAULT_HOST",
    "DeliveryKind",
    "WebhookDelivery",
    "WebhookResult",
    "classify",
    "compute_signature",
    "decode_payload",
    "process_webhook",
    "redeliver_webhook",
    "repo_from_payload",
    "seed_hook",
    "verify_webhook",
]
