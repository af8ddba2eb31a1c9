"""Deterministic GitHub webhook payloads and deliveries for tests."""

from __future__ import annotations

import json
import typing as typ
import urllib.parse

from scmbridge.github.webhook import WebhookDelivery, compute_signature

SECRET = "webhook-secret"  # noqa: S105
DELIVERY_ID = "7bd4c5a0-1c7e-11ef-9f27-3a8d2a0b6f10"
HOOK_ID = "123456"
RECEIVED_AT = 1_717_000_000


def repository_block(org: str = "octo", name: str = "reef") -> dict[str, typ.Any]:
    """Return the ``repository`` block GitHub embeds in repository events."""
    return {
        "id": 1296269,
        "name": name,
        "full_name": f"{org}/{name}",
        "html_url": f"https://github.com/{org}/{name}",
        "clone_url": f"https://github.com/{org}/{name}.git",
        "default_branch": "main",
        "private": False,
        "topics": ["ci", "reef"],
        "owner": {"login": org, "type": "Organization"},
    }


def push_payload(
    *,
    ref: str = "refs/heads/main",
    base_ref: str | None = None,
    author_username: str | None = "coral",
    author_email: str | None = "coral@example.com",
    sender_login: str | None = "octocat",
) -> dict[str, typ.Any]:
    """Return a ``push`` payload with a populated head commit."""
    return {
        "ref": ref,
        "base_ref": base_ref,
        "before": "0" * 40,
        "after": "6dcb09b5b57875f334f61aebed695e2e4193db5e",
        "repository": repository_block(),
        "head_commit": {
            "id": "6dcb09b5b57875f334f61aebed695e2e4193db5e",
            "url": "https://github.com/octo/reef/commit/6dcb09b5",
            "message": "Add tide tables",
            "author": {
                "name": "Coral Reef",
                "email": author_email,
                "username": author_username,
            },
            "committer": {
                "name": "Web Flow",
                "email": "noreply@github.com",
                "username": "web-flow",
            },
        },
        "pusher": {"name": "pusher-name", "email": "pusher@example.com"},
        "sender": {"login": sender_login} if sender_login else None,
    }


def pull_request_payload(
    *,
    action: str = "opened",
    state: str = "open",
    number: int = 7,
    merged: bool = False,
    user_login: str | None = "coral",
    user_email: str | None = None,
) -> dict[str, typ.Any]:
    """Return a ``pull_request`` payload."""
    return {
        "action": action,
        "number": number,
        "pull_request": {
            "number": number,
            "state": state,
            "title": "Teach the fish to swim",
            "html_url": f"https://github.com/octo/reef/pull/{number}",
            "merged": merged,
            "user": {"login": user_login, "email": user_email}
            if user_login
            else None,
            "head": {
                "ref": "feature/fins",
                "sha": "9fceb02d0ae598e95dc970b74767f19372d61af8",
                "user": {"login": "head-owner", "email": "head@example.com"},
            },
            "base": {
                "ref": "main",
                "sha": "7638417db6d59f3c431d3e1f261cc637155684cd",
                "user": {"login": "octo"},
            },
        },
        "repository": repository_block(),
        "sender": {"login": "octocat"},
    }


def make_delivery(
    event: str,
    payload: dict[str, typ.Any],
    *,
    secret: str = SECRET,
    form: bool = False,
    extra_headers: dict[str, str] | None = None,
) -> WebhookDelivery:
    """Return a signed delivery for ``payload``.

    ``form=True`` encodes the payload the way a hook registered with
    ``content_type: form`` delivers it.
    """
    raw = json.dumps(payload)
    if form:
        body = urllib.parse.urlencode({"payload": raw}).encode("utf-8")
        content_type = "application/x-www-form-urlencoded"
    else:
        body = raw.encode("utf-8")
        content_type = "application/json"
    headers = {
        "X-GitHub-Delivery": DELIVERY_ID,
        "X-GitHub-Hook-ID": HOOK_ID,
        "X-GitHub-Event": event,
        "Content-Type": content_type,
        "X-Hub-Signature-256": compute_signature(body, secret),
    }
    headers.update(extra_headers or {})
    return WebhookDelivery(headers=headers, body=body)
