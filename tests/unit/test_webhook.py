"""Unit tests for webhook verification and normalization."""

from __future__ import annotations

import json

import falcon.asgi
import falcon.testing
import pytest

from scmbridge.github.errors import WebhookPayloadError, WebhookSignatureError
from scmbridge.github.webhook import (
    DeliveryKind,
    WebhookDelivery,
    WebhookResult,
    classify,
    compute_signature,
    process_webhook,
    seed_hook,
)
from tests.helpers.github_payloads import (
    DELIVERY_ID,
    RECEIVED_AT,
    SECRET,
    make_delivery,
    pull_request_payload,
    push_payload,
)


def _process(delivery: WebhookDelivery) -> WebhookResult:
    return process_webhook(delivery, secret=SECRET, received_at=RECEIVED_AT)


class TestSeedHook:
    """Tests for the header-only hook record."""

    def test_seeds_identity_from_headers(self) -> None:
        """Delivery id, hook id, event and host come from headers."""
        hook = seed_hook(make_delivery("push", push_payload()), received_at=5)

        assert hook.source_id == DELIVERY_ID
        assert hook.webhook_id == 123456
        assert hook.event == "push"
        assert hook.host == "github.com"
        assert hook.created == 5
        assert hook.number == 1
        assert hook.status == "success"

    def test_created_defaults_to_receipt_time(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Without an explicit time the hook is stamped with the current time."""
        monkeypatch.setattr("scmbridge.github.webhook.unix_now", lambda: 42)

        assert seed_hook(make_delivery("push", push_payload())).created == 42

    def test_enterprise_host_header_wins(self) -> None:
        """Enterprise deliveries report their own host."""
        delivery = make_delivery(
            "push",
            push_payload(),
            extra_headers={"X-GitHub-Enterprise-Host": "git.example.com"},
        )

        assert seed_hook(delivery).host == "git.example.com"

    @pytest.mark.parametrize("hook_id", ["abc", "\u00b2", "-3"])
    def test_non_numeric_hook_id_is_dropped(self, hook_id: str) -> None:
        """Hook ids that are not ASCII integers leave webhook_id unset."""
        delivery = make_delivery(
            "push", push_payload(), extra_headers={"X-GitHub-Hook-ID": hook_id}
        )

        assert seed_hook(delivery).webhook_id is None

    def test_superscript_hook_id_still_normalizes(self) -> None:
        """A digit-like but non-ASCII hook id does not stop processing."""
        delivery = make_delivery(
            "push", push_payload(), extra_headers={"X-GitHub-Hook-ID": "\u00b2"}
        )

        result = _process(delivery)

        assert result.kind is DeliveryKind.PUSH_TO_BRANCH
        assert result.hook.webhook_id is None

    def test_header_lookup_is_case_insensitive(self) -> None:
        """Lower-cased header names from ASGI servers still resolve."""
        delivery = WebhookDelivery(
            headers={"x-github-event": "ping", "x-github-delivery": "d-1"}, body=b"{}"
        )

        hook = seed_hook(delivery)

        assert (hook.event, hook.source_id) == ("ping", "d-1")


class TestSignatures:
    """Tests for signature verification failures."""

    def test_bad_signature_rejected_with_hook(self) -> None:
        """A wrong secret raises and still carries the seeded hook."""
        delivery = make_delivery("push", push_payload(), secret="other-secret")

        with pytest.raises(WebhookSignatureError, match="signature check") as excinfo:
            _process(delivery)

        assert excinfo.value.hook.source_id == DELIVERY_ID
        assert excinfo.value.hook.event == "push"
        assert excinfo.value.hook.created == RECEIVED_AT

    def test_missing_signature_rejected(self) -> None:
        """Deliveries without any signature header are rejected."""
        delivery = make_delivery("push", push_payload())
        headers = {
            key: value
            for key, value in delivery.headers.items()
            if not key.startswith("X-Hub-Signature")
        }

        with pytest.raises(WebhookSignatureError, match="missing"):
            _process(WebhookDelivery(headers=headers, body=delivery.body))

    def test_empty_secret_fails_closed(self) -> None:
        """An empty secret never verifies, even for a matching signature."""
        delivery = make_delivery("push", push_payload(), secret="")

        with pytest.raises(WebhookSignatureError, match="no webhook secret"):
            process_webhook(delivery, secret="")

    def test_legacy_sha1_signature_accepted(self) -> None:
        """The SHA-1 header verifies when it is the only signature."""
        delivery = make_delivery("push", push_payload())
        headers = dict(delivery.headers)
        del headers["X-Hub-Signature-256"]
        headers["X-Hub-Signature"] = compute_signature(
            delivery.body, SECRET, algorithm="sha1"
        )

        result = _process(WebhookDelivery(headers=headers, body=delivery.body))

        assert result.kind is DeliveryKind.PUSH_TO_BRANCH

    def test_unknown_algorithm_rejected(self) -> None:
        """Signatures naming an unknown digest are rejected."""
        delivery = make_delivery(
            "push", push_payload(), extra_headers={"X-Hub-Signature-256": "md5=00"}
        )

        with pytest.raises(WebhookSignatureError, match="unsupported"):
            _process(delivery)

    def test_signature_checked_before_payload(self) -> None:
        """A forged delivery with a broken body fails on the signature."""
        delivery = WebhookDelivery(
            headers={
                "X-GitHub-Event": "push",
                "Content-Type": "application/json",
                "X-Hub-Signature-256": "sha256=" + "0" * 64,
            },
            body=b"not json",
        )

        with pytest.raises(WebhookSignatureError):
            _process(delivery)


class TestPayloadErrors:
    """Tests for payload decoding failures."""

    def test_undecodable_payload_rejected(self) -> None:
        """A correctly signed but malformed body raises WebhookPayloadError."""
        body = b"{not json"
        delivery = WebhookDelivery(
            headers={
                "X-GitHub-Delivery": DELIVERY_ID,
                "X-GitHub-Event": "push",
                "Content-Type": "application/json",
                "X-Hub-Signature-256": compute_signature(body, SECRET),
            },
            body=body,
        )

        with pytest.raises(WebhookPayloadError, match="unable to parse") as excinfo:
            _process(delivery)

        assert excinfo.value.hook.source_id == DELIVERY_ID

    def test_wrongly_typed_field_rejected(self) -> None:
        """Fields with the wrong JSON type fail decoding."""
        payload = push_payload()
        payload["ref"] = 42
        delivery = make_delivery("push", payload)

        with pytest.raises(WebhookPayloadError):
            _process(delivery)

    def test_unknown_content_type_rejected(self) -> None:
        """Bodies that are neither JSON nor form encoded are rejected."""
        delivery = make_delivery(
            "push", push_payload(), extra_headers={"Content-Type": "text/plain"}
        )

        with pytest.raises(WebhookPayloadError, match="content type"):
            _process(delivery)


class TestPushNormalization:
    """Tests for push deliveries."""

    def test_push_to_branch(self) -> None:
        """Branch pushes produce a push build for the pushed branch."""
        result = _process(make_delivery("push", push_payload()))

        assert result.kind is DeliveryKind.PUSH_TO_BRANCH
        assert result.actionable
        assert result.hook.event == "push"
        assert result.hook.branch == "main"
        assert result.hook.link == "https://github.com/octo/reef/settings/hooks"
        build = result.build
        assert build is not None
        assert build.event == "push"
        assert build.branch == "main"
        assert build.ref == "refs/heads/main"
        assert build.base_ref == ""
        assert build.commit == "6dcb09b5b57875f334f61aebed695e2e4193db5e"
        assert build.message == "Add tide tables"
        assert build.sender == "octocat"
        assert build.author == "coral"
        assert build.email == "coral@example.com"
        assert build.title == "push received from https://github.com/octo/reef"
        assert result.pr_number == 0

    def test_push_repo_fields(self) -> None:
        """The embedded repository becomes the platform repo."""
        result = _process(make_delivery("push", push_payload()))

        repo = result.repo
        assert repo is not None
        assert (repo.org, repo.name, repo.full_name) == ("octo", "reef", "octo/reef")
        assert repo.clone == "https://github.com/octo/reef.git"
        assert repo.branch == "main"
        assert repo.topics == ("ci", "reef")
        assert repo.private is False

    def test_tag_push_uses_base_branch(self) -> None:
        """Tag pushes report the branch the tag was cut from."""
        payload = push_payload(ref="refs/tags/v1.0.0", base_ref="refs/heads/release")

        result = _process(make_delivery("push", payload))

        assert result.kind is DeliveryKind.PUSH_TO_TAG
        assert result.hook.event == "tag"
        build = result.build
        assert build is not None
        assert build.event == "tag"
        assert build.branch == "release"
        assert build.ref == "refs/tags/v1.0.0"
        assert build.base_ref == "refs/heads/release"

    def test_tag_push_without_base_ref_keeps_tag_ref(self) -> None:
        """Without a base ref the tag ref stands in for the branch."""
        payload = push_payload(ref="refs/tags/v1.0.0")

        result = _process(make_delivery("push", payload))

        assert result.build is not None
        assert result.build.branch == "refs/tags/v1.0.0"

    def test_identity_fallbacks(self) -> None:
        """Missing sender, username and email fall back to pusher and committer."""
        payload = push_payload(
            author_username=None, author_email=None, sender_login=None
        )

        result = _process(make_delivery("push", payload))

        build = result.build
        assert build is not None
        assert build.sender == "pusher-name"
        assert build.author == "Web Flow"
        assert build.email == "noreply@github.com"

    def test_form_encoded_delivery(self) -> None:
        """Form-encoded deliveries decode the ``payload`` field."""
        result = _process(make_delivery("push", push_payload(), form=True))

        assert result.kind is DeliveryKind.PUSH_TO_BRANCH
        assert result.build is not None
        assert result.build.branch == "main"


class TestPullRequestNormalization:
    """Tests for pull request deliveries."""

    @pytest.mark.parametrize(
        ("action", "kind"),
        [
            ("opened", DeliveryKind.PULL_REQUEST_OPENED),
            ("synchronize", DeliveryKind.PULL_REQUEST_SYNCHRONIZED),
            ("Synchronize", DeliveryKind.PULL_REQUEST_SYNCHRONIZED),
        ],
    )
    def test_actionable_actions(self, action: str, kind: DeliveryKind) -> None:
        """Opened and synchronized pull requests produce builds."""
        payload = pull_request_payload(action=action)

        result = _process(make_delivery("pull_request", payload))

        assert result.kind is kind
        assert result.pr_number == 7
        build = result.build
        assert build is not None
        assert build.event == "pull_request"
        assert build.event_action == action
        assert build.ref == "refs/pull/7/head"
        assert build.branch == "main"
        assert build.base_ref == "main"
        assert build.head_ref == "feature/fins"
        assert build.commit == "9fceb02d0ae598e95dc970b74767f19372d61af8"
        assert build.number == 0

    def test_pull_request_hook_fields(self) -> None:
        """The hook records the action and the base branch."""
        result = _process(make_delivery("pull_request", pull_request_payload()))

        assert result.hook.event == "pull_request"
        assert result.hook.event_action == "opened"
        assert result.hook.branch == "main"

    def test_merged_pull_request_uses_merge_ref(self) -> None:
        """Merged pull requests build the merge ref."""
        payload = pull_request_payload(action="synchronize", merged=True)

        result = _process(make_delivery("pull_request", payload))

        assert result.build is not None
        assert result.build.ref == "refs/pull/7/merge"

    @pytest.mark.parametrize(
        ("action", "state"),
        [("opened", "closed"), ("labeled", "open"), ("closed", "closed")],
    )
    def test_ignored_pull_requests(self, action: str, state: str) -> None:
        """Closed or non-build actions yield a hook-only result."""
        payload = pull_request_payload(action=action, state=state)

        result = _process(make_delivery("pull_request", payload))

        assert result.kind is DeliveryKind.IGNORED
        assert not result.actionable
        assert result.repo is None
        assert result.pr_number == 0
        assert result.hook.event_action == action

    def test_author_and_email_fallbacks(self) -> None:
        """Missing pull request author details come from the head owner."""
        payload = pull_request_payload(user_login=None)
        payload["sender"] = None

        result = _process(make_delivery("pull_request", payload))

        build = result.build
        assert build is not None
        assert build.sender == ""
        assert build.author == "head-owner"
        assert build.email == "head@example.com"

    def test_user_email_preferred(self) -> None:
        """The pull request author's email wins when present."""
        payload = pull_request_payload(user_email="coral@example.com")

        result = _process(make_delivery("pull_request", payload))

        assert result.build is not None
        assert result.build.email == "coral@example.com"


class TestUnsupportedEvents:
    """Tests for event types without a normalizer."""

    @pytest.mark.parametrize("event", ["issue_comment", "deployment", "ping"])
    def test_unsupported_event_returns_seeded_hook(self, event: str) -> None:
        """Unsupported events return the seeded hook without a build."""
        delivery = make_delivery(event, {"zen": "Keep it logically awesome."})

        result = _process(delivery)

        assert result.kind is DeliveryKind.UNSUPPORTED
        assert result.hook == seed_hook(delivery, received_at=RECEIVED_AT)
        assert result.build is None
        assert result.repo is None

    def test_classify_none_is_unsupported(self) -> None:
        """A missing payload classifies as unsupported."""
        assert classify(None) is DeliveryKind.UNSUPPORTED


def test_delivery_from_falcon_request() -> None:
    """Deliveries read the body and headers of an ASGI request."""
    captured: list[WebhookDelivery] = []

    class _Resource:
        async def on_post(
            self, req: falcon.asgi.Request, resp: falcon.asgi.Response
        ) -> None:
            captured.append(await WebhookDelivery.from_request(req))
            resp.media = {"ok": True}

    app = falcon.asgi.App()
    app.add_route("/webhook", _Resource())
    body = json.dumps(push_payload()).encode("utf-8")

    falcon.testing.TestClient(app).simulate_post(
        "/webhook",
        body=body,
        headers={
            "X-GitHub-Event": "push",
            "Content-Type": "application/json",
            "X-Hub-Signature-256": compute_signature(body, SECRET),
        },
    )

    (delivery,) = captured
    assert delivery.body == body
    assert _process(delivery).kind is DeliveryKind.PUSH_TO_BRANCH
