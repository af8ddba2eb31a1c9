"""Errors raised at the GitHub boundary."""

from __future__ import annotations

import typing as typ

if typ.TYPE_CHECKING:
    from scmbridge.models import Hook


class SCMError(RuntimeError):
    """Base class for every scmbridge error."""


class GitHubAPIError(SCMError):
    """Raised when GitHub returns an error response or cannot be reached."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        """Initialise with a message and optional HTTP status code."""
        self.status_code = status_code
        super().__init__(message)

    @classmethod
    def http_error(
        cls, status_code: int, *, method: str = "", path: str = ""
    ) -> GitHubAPIError:
        """Return an error for non-2xx HTTP responses."""
        target = f" for {method} {path}" if method else ""
        return cls(f"GitHub API HTTP {status_code}{target}", status_code=status_code)

    @classmethod
    def network_error(cls, detail: str) -> GitHubAPIError:
        """Return an error for transport failures."""
        return cls(f"GitHub API unreachable: {detail}")

    @classmethod
    def timeout(cls) -> GitHubAPIError:
        """Return an error for requests that exceeded the client timeout."""
        return cls("GitHub API request timed out")

    @classmethod
    def unsupported_version(cls) -> GitHubAPIError:
        """Return an error for enterprise instances older than API 3.2."""
        return cls("requires GitHub version 3.2 or later", status_code=415)


class GitHubResponseShapeError(SCMError):
    """Raised when GitHub responses are missing expected fields."""

    @classmethod
    def missing(cls, field: str) -> GitHubResponseShapeError:
        """Return an error for a missing response field."""
        return cls(f"GitHub response missing expected field: {field}")

    @classmethod
    def invalid_json(cls, path: str) -> GitHubResponseShapeError:
        """Return an error for a body that is not JSON."""
        return cls(f"GitHub response for {path} is not valid JSON")


class GitHubConfigError(SCMError):
    """Raised when GitHub client configuration is invalid."""

    @classmethod
    def missing(cls, option: str) -> GitHubConfigError:
        """Return an error when a required option is empty."""
        return cls(f"no GitHub {option} provided")

    @classmethod
    def invalid_url(cls, option: str, value: str) -> GitHubConfigError:
        """Return an error when an address option is not an absolute URL."""
        return cls(f"invalid {option}: {value!r} is not an absolute http(s) URL")

    @classmethod
    def invalid_number(cls, option: str, value: str) -> GitHubConfigError:
        """Return an error when a numeric option cannot be parsed."""
        return cls(f"invalid {option}: {value!r} is not a positive number")


class RepoAlreadyEnabledError(SCMError):
    """Raised when a platform webhook already exists for the repository."""

    def __init__(self, slug: str) -> None:
        """Initialise with the repository slug."""
        self.slug = slug
        super().__init__(f"repo {slug} already enabled")


class RepoNotFoundError(SCMError):
    """Raised when the provider reports the repository does not exist."""

    def __init__(self, slug: str) -> None:
        """Initialise with the repository slug."""
        self.slug = slug
        super().__init__(f"repo {slug} not found")


class PipelineConfigNotFoundError(SCMError):
    """Raised when none of the pipeline configuration files exist at a ref."""

    def __init__(self, slug: str, ref: str, files: typ.Sequence[str]) -> None:
        """Initialise with the repository, ref and the file names tried."""
        self.slug = slug
        self.ref = ref
        self.files = tuple(files)
        super().__init__(
            f"no valid pipeline configuration file ({','.join(files)}) "
            f"found for {slug}@{ref}"
        )


class DeploymentSourceError(SCMError):
    """Raised when a deployment id cannot be parsed from a build source URL."""

    def __init__(self, source: str) -> None:
        """Initialise with the unparseable source URL."""
        self.source = source
        super().__init__(f"unable to parse deployment id from source {source!r}")


class OAuthError(SCMError):
    """Base class for OAuth workflow failures."""


class OAuthStateMismatchError(OAuthError):
    """Raised when the callback state differs from the one issued at login."""

    def __init__(self) -> None:
        """Initialise without echoing either state value."""
        super().__init__("unexpected oauth state")


class OAuthExchangeError(OAuthError):
    """Raised when GitHub refuses to exchange a code or credentials for a token."""

    @classmethod
    def rejected(cls, reason: str) -> OAuthExchangeError:
        """Return an error for an exchange answered with an OAuth error."""
        return cls(f"oauth token exchange rejected: {reason}")

    @classmethod
    def missing_token(cls) -> OAuthExchangeError:
        """Return an error for an exchange response without a token."""
        return cls("oauth token exchange returned no access token")


class OAuthTokenError(OAuthError):
    """Raised when a supplied personal access token is unusable."""

    @classmethod
    def empty(cls) -> OAuthTokenError:
        """Return an error for an empty token."""
        return cls("no token provided")

    @classmethod
    def issued_by_app(cls) -> OAuthTokenError:
        """Return an error for tokens minted by this OAuth application."""
        return cls("token must not be created by the OAuth application")


class WebhookError(SCMError):
    """Base class for fatal webhook failures.

    The seeded :class:`~scmbridge.models.Hook` is attached so callers can still
    record the delivery.
    """

    def __init__(self, message: str, *, hook: Hook) -> None:
        """Initialise with a message and the seeded hook."""
        self.hook = hook
        super().__init__(message)


class WebhookSignatureError(WebhookError):
    """Raised when a delivery's signature is missing or does not verify."""

    @classmethod
    def no_secret(cls, hook: Hook) -> WebhookSignatureError:
        """Return an error when no secret is available to verify against."""
        return cls("no webhook secret configured for verification", hook=hook)

    @classmethod
    def missing_signature(cls, hook: Hook) -> WebhookSignatureError:
        """Return an error for deliveries without a signature header."""
        return cls("missing webhook signature", hook=hook)

    @classmethod
    def unsupported_algorithm(
        cls, hook: Hook, algorithm: str
    ) -> WebhookSignatureError:
        """Return an error for signatures using an unknown digest."""
        return cls(f"unsupported webhook signature type {algorithm!r}", hook=hook)

    @classmethod
    def mismatch(cls, hook: Hook) -> WebhookSignatureError:
        """Return an error for signatures that do not match the body."""
        return cls("payload signature check failed", hook=hook)


class WebhookPayloadError(WebhookError):
    """Raised when a delivery body cannot be decoded into its typed event."""

    @classmethod
    def undecodable(cls, hook: Hook, detail: str) -> WebhookPayloadError:
        """Return an error for malformed payloads."""
        event = hook.event or "webhook"
        return cls(f"unable to parse {event} payload: {detail}", hook=hook)

    @classmethod
    def unsupported_content_type(
        cls, hook: Hook, content_type: str
    ) -> WebhookPayloadError:
        """Return an error for bodies in an unknown media type."""
        return cls(f"webhook has unexpected content type {content_type!r}", hook=hook)


class WebhookRedeliveryError(SCMError):
    """Raised when a delivery can no longer be redelivered."""

    def __init__(self, source_id: str, message: str | None = None) -> None:
        """Initialise with the delivery GUID that cannot be redelivered."""
        self.source_id = source_id
        super().__init__(
            message or f"webhook {source_id} no longer available to be redelivered"
        )

    @classmethod
    def missing_hook_id(cls, source_id: str) -> WebhookRedeliveryError:
        """Return an error for deliveries recorded without a hook id."""
        return cls(source_id, f"webhook {source_id} has no hook id to redeliver")
