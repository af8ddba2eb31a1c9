"""GitHub source-control integration for the CI platform."""

from __future__ import annotations

from .access import AccessResolver
from .auth import OAuthSessionHandler
from .backoff import BackoffPolicy, linear_delay
from .client import GitHubProvider, GitHubRestClient
from .config import GitHubProviderConfig
from .deployment import DeploymentManager
from .errors import (
    DeploymentSourceError,
    GitHubAPIError,
    GitHubConfigError,
    GitHubResponseShapeError,
    OAuthError,
    OAuthExchangeError,
    OAuthStateMismatchError,
    OAuthTokenError,
    PipelineConfigNotFoundError,
    RepoAlreadyEnabledError,
    RepoNotFoundError,
    SCMError,
    WebhookError,
    WebhookPayloadError,
    WebhookRedeliveryError,
    WebhookSignatureError,
)
from .observability import (
    ErrorCategory,
    WebhookEventLogger,
    WebhookEventType,
    categorize_error,
)
from .pagination import collect_all_pages
from .repo import BranchHead, PullRequestRefs, RepoManager
from .service import GitHubSCM
from .webhook import (
    DeliveryKind,
    WebhookDelivery,
    WebhookResult,
    process_webhook,
    redeliver_webhook,
    verify_webhook,
)

__all__ = [
    "AccessResolver",
    "BackoffPolicy",
    "BranchHead",
    "DeliveryKind",
    "DeploymentManager",
    "DeploymentSourceError",
    "ErrorCategory",
    "GitHubAPIError",
    "GitHubConfigError",
    "GitHubProvider",
    "GitHubProviderConfig",
    "GitHubResponseShapeError",
    "GitHubRestClient",
    "GitHubSCM",
    "OAuthError",
    "OAuthExchangeError",
    "OAuthSessionHandler",
    "OAuthStateMismatchError",
    "OAuthTokenError",
    "PipelineConfigNotFoundError",
    "PullRequestRefs",
    "RepoAlreadyEnabledError",
    "RepoManager",
    "RepoNotFoundError",
    "SCMError",
    "WebhookDelivery",
    "WebhookError",
    "WebhookEventLogger",
    "WebhookEventType",
    "WebhookPayloadError",
    "WebhookRedeliveryError",
    "WebhookResult",
    "WebhookSignatureError",
    "categorize_error",
    "collect_all_pages",
    "linear_delay",
    "process_webhook",
    "redeliver_webhook",
    "verify_webhook",
]
