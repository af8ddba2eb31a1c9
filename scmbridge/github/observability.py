"""Structured events for webhook processing and repository integration.

Events are emitted as ``[<event-type>] key=value`` log lines through
femtologging so log aggregators can parse them. Tokens and secrets are never
included; only identifiers such as delivery ids and repository slugs are.

Usage
-----
>>> events = WebhookEventLogger()
>>> events.log_delivery_received(source_id="72d3162e", event="push", host="github.com")

"""

from __future__ import annotations

import enum
import typing as typ

from scmbridge.logging import (
    format_log_message,
    get_logger,
    log_exception,
    log_info,
    log_warning,
)

from .errors import (
    GitHubAPIError,
    GitHubConfigError,
    GitHubResponseShapeError,
    OAuthStateMismatchError,
    WebhookPayloadError,
    WebhookSignatureError,
)

if typ.TYPE_CHECKING:
    from scmbridge.models import Hook

logger = get_logger(__name__)

_HTTP_SERVER_ERROR_THRESHOLD = 500


class WebhookEventType(enum.StrEnum):
    """Structured log event types for SCM integration."""

    DELIVERY_RECEIVED = "webhook.delivery.received"
    DELIVERY_NORMALIZED = "webhook.delivery.normalized"
    DELIVERY_SKIPPED = "webhook.delivery.skipped"
    DELIVERY_REJECTED = "webhook.delivery.rejected"
    REPO_ENABLED = "repo.webhook.enabled"
    REPO_DISABLED = "repo.webhook.disabled"
    STATUS_PUBLISHED = "repo.status.published"


class ErrorCategory(enum.StrEnum):
    """Categories for error classification in alerts."""

    TRANSIENT = "transient"
    CLIENT_ERROR = "client_error"
    SCHEMA_DRIFT = "schema_drift"
    CONFIGURATION = "configuration"
    SECURITY = "security"
    UNKNOWN = "unknown"


_EXCEPTION_CATEGORY_MAP: tuple[tuple[type[BaseException], ErrorCategory], ...] = (
    (WebhookSignatureError, ErrorCategory.SECURITY),
    (OAuthStateMismatchError, ErrorCategory.SECURITY),
    (WebhookPayloadError, ErrorCategory.SCHEMA_DRIFT),
    (GitHubResponseShapeError, ErrorCategory.SCHEMA_DRIFT),
    (GitHubConfigError, ErrorCategory.CONFIGURATION),
)


def categorize_error(exc: BaseException) -> ErrorCategory:
    """Categorize an exception for alerting purposes.

    Returns:
        ErrorCategory indicating the type of failure for alert routing.

    """
    if isinstance(exc, GitHubAPIError):
        # Transport failures carry no status code and are worth retrying.
        if exc.status_code is None or exc.status_code >= _HTTP_SERVER_ERROR_THRESHOLD:
            return ErrorCategory.TRANSIENT
        return ErrorCategory.CLIENT_ERROR

    for exc_type, category in _EXCEPTION_CATEGORY_MAP:
        if isinstance(exc, exc_type):
            return category

    return ErrorCategory.UNKNOWN


class WebhookEventLogger:
    """Emit structured SCM events via femtologging.

    Successful steps log at INFO, skipped deliveries at INFO, and rejected
    deliveries at WARNING or ERROR depending on the category.
    """

    def log_delivery_received(self, *, source_id: str, event: str, host: str) -> None:
        """Log receipt of a webhook delivery."""
        log_info(
            logger,
            "[%s] source_id=%s event=%s host=%s",
            WebhookEventType.DELIVERY_RECEIVED,
            source_id,
            event,
            host,
        )

    def log_delivery_normalized(self, hook: Hook, *, kind: str, repo_slug: str) -> None:
        """Log a delivery that produced a build."""
        log_info(
            logger,
            "[%s] source_id=%s kind=%s repo_slug=%s branch=%s",
            WebhookEventType.DELIVERY_NORMALIZED,
            hook.source_id,
            kind,
            repo_slug,
            hook.branch,
        )

    def log_delivery_skipped(self, hook: Hook, *, kind: str) -> None:
        """Log a delivery that produced only a hook record."""
        log_info(
            logger,
            "[%s] source_id=%s kind=%s event=%s event_action=%s",
            WebhookEventType.DELIVERY_SKIPPED,
            hook.source_id,
            kind,
            hook.event,
            hook.event_action,
        )

    def log_delivery_rejected(self, hook: Hook, error: BaseException) -> None:
        """Log a delivery that failed verification or decoding."""
        category = categorize_error(error)
        template = (
            "[%s] source_id=%s event=%s error_type=%s error_category=%s "
            "error_message=%s"
        )
        args = (
            WebhookEventType.DELIVERY_REJECTED,
            hook.source_id,
            hook.event,
            type(error).__name__,
            category,
            str(error),
        )
        if category is ErrorCategory.SECURITY:
            log_warning(logger, template, *args)
        else:
            log_exception(logger, format_log_message(template, *args), error)

    def log_repo_enabled(self, *, repo_slug: str, link: str) -> None:
        """Log webhook provisioning for a repository."""
        log_info(
            logger,
            "[%s] repo_slug=%s link=%s",
            WebhookEventType.REPO_ENABLED,
            repo_slug,
            link,
        )

    def log_repo_disabled(self, *, repo_slug: str, hooks_deleted: int) -> None:
        """Log webhook removal for a repository."""
        log_info(
            logger,
            "[%s] repo_slug=%s hooks_deleted=%d",
            WebhookEventType.REPO_DISABLED,
            repo_slug,
            hooks_deleted,
        )

    def log_status_published(
        self, *, repo_slug: str, state: str, target: str
    ) -> None:
        """Log a commit or deployment status update."""
        log_info(
            logger,
            "[%s] repo_slug=%s state=%s target=%s",
            WebhookEventType.STATUS_PUBLISHED,
            repo_slug,
            state,
            target,
        )


__all__ = [
    "ErrorCategory",
    "WebhookEventLogger",
    "WebhookEventType",
    "categorize_error",
]
