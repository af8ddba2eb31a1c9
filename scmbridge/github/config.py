"""Configuration for the GitHub provider client.

Each construction option is validated by its own function so a bad value
fails construction with a message naming that option.

Usage
-----
Build a configuration explicitly:

>>> config = GitHubProviderConfig.create(
...     client_id="abc",
...     client_secret="shh",
...     server_address="https://ci.example.com",
...     status_context="continuous-integration/vela",
... )
>>> config.api
'https://api.github.com/'

Or load it from ``SCMBRIDGE_*`` environment variables with
:meth:`GitHubProviderConfig.from_env`.

"""

from __future__ import annotations

import dataclasses
import os
import typing as typ
import urllib.parse

from .errors import GitHubConfigError

DEFAULT_ADDRESS = "https://github.com"
DEFAULT_API = "https://api.github.com/"
DEFAULT_SCOPES: tuple[str, ...] = (
    "repo",
    "repo:status",
    "user:email",
    "read:user",
    "read:org",
)
_DEFAULT_TIMEOUT_S = 20.0
_DEFAULT_USER_AGENT = "scmbridge/0.1"


def _require_absolute_url(option: str, value: str) -> str:
    parsed = urllib.parse.urlsplit(value)
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        raise GitHubConfigError.invalid_url(option, value)
    return value


def resolve_address(address: str) -> tuple[str, str]:
    """Return the ``(web address, API address)`` pair for a GitHub address.

    An empty address or the public GitHub address keeps the public defaults.
    Any other address is treated as GitHub Enterprise, whose API lives under
    ``/api/v3/``.

    >>> resolve_address("https://git.example.com/")
    ('https://git.example.com', 'https://git.example.com/api/v3/')

    """
    if not address or address.rstrip("/").lower() == DEFAULT_ADDRESS:
        return (DEFAULT_ADDRESS, DEFAULT_API)

    trimmed = _require_absolute_url("GitHub address", address.rstrip("/"))
    if DEFAULT_ADDRESS in trimmed:
        return (trimmed, DEFAULT_API)
    return (trimmed, f"{trimmed}/api/v3/")


def validate_client_id(client_id: str) -> str:
    """Return the OAuth client ID or raise when it is empty."""
    if not client_id.strip():
        raise GitHubConfigError.missing("OAuth client ID")
    return client_id.strip()


def validate_client_secret(client_secret: str) -> str:
    """Return the OAuth client secret or raise when it is empty."""
    if not client_secret.strip():
        raise GitHubConfigError.missing("OAuth client secret")
    return client_secret.strip()


def validate_server_address(address: str) -> str:
    """Return the platform server address or raise when it is unusable."""
    if not address.strip():
        raise GitHubConfigError.missing("server address")
    return _require_absolute_url("server address", address.strip().rstrip("/"))


def validate_webhook_address(address: str, *, server_address: str) -> str:
    """Return the address GitHub should deliver webhooks to.

    Falls back to the server address when none is configured.
    """
    if not address.strip():
        return server_address
    return _require_absolute_url("server webhook address", address.strip().rstrip("/"))


def validate_status_context(context: str) -> str:
    """Return the commit status context or raise when it is empty."""
    if not context.strip():
        raise GitHubConfigError.missing("context for commit statuses")
    return context.strip()


def validate_scopes(scopes: typ.Sequence[str]) -> tuple[str, ...]:
    """Return the OAuth scopes or raise when none are configured."""
    cleaned = tuple(scope.strip() for scope in scopes if scope.strip())
    if not cleaned:
        raise GitHubConfigError.missing("OAuth scopes")
    return cleaned


def validate_timeout(timeout_s: float) -> float:
    """Return a positive request timeout in seconds."""
    if timeout_s <= 0:
        raise GitHubConfigError.invalid_number("timeout", str(timeout_s))
    return timeout_s


@dataclasses.dataclass(frozen=True, slots=True)
class GitHubProviderConfig:
    """Static configuration shared by every call to one GitHub instance.

    Attributes
    ----------
    client_id
        OAuth application client ID.
    client_secret
        OAuth application client secret.
    server_address
        Public address of the platform server.
    server_webhook_address
        Address GitHub delivers webhooks to; ``<address>/webhook`` is the
        registered hook URL.
    status_context
        Prefix for commit status contexts, e.g. ``continuous-integration/vela``.
    address
        GitHub web address (``https://github.com`` or an enterprise host).
    api
        GitHub REST API base URL, always ending in ``/``.
    web_ui_address
        Platform web UI address used for status "Details" links; may be empty.
    scopes
        OAuth scopes requested at login.
    timeout_s
        Per-request timeout in seconds.
    user_agent
        ``User-Agent`` header sent on every request.

    """

    client_id: str
    client_secret: str = dataclasses.field(repr=False)
    server_address: str
    server_webhook_address: str
    status_context: str
    address: str = DEFAULT_ADDRESS
    api: str = DEFAULT_API
    web_ui_address: str = ""
    scopes: tuple[str, ...] = DEFAULT_SCOPES
    timeout_s: float = _DEFAULT_TIMEOUT_S
    user_agent: str = _DEFAULT_USER_AGENT

    @property
    def webhook_url(self) -> str:
        """Return the URL registered on repository webhooks."""
        return f"{self.server_webhook_address}/webhook"

    @classmethod
    def create(  # noqa: PLR0913
        cls,
        *,
        client_id: str,
        client_secret: str,
        server_address: str,
        status_context: str,
        address: str = "",
        server_webhook_address: str = "",
        web_ui_address: str = "",
        scopes: typ.Sequence[str] = DEFAULT_SCOPES,
        timeout_s: float = _DEFAULT_TIMEOUT_S,
    ) -> GitHubProviderConfig:
        """Validate every option and build the configuration.

        Raises
        ------
        GitHubConfigError
            If any option is structurally invalid.

        """
        web_address, api = resolve_address(address)
        server = validate_server_address(server_address)
        return cls(
            client_id=validate_client_id(client_id),
            client_secret=validate_client_secret(client_secret),
            server_address=server,
            server_webhook_address=validate_webhook_address(
                server_webhook_address, server_address=server
            ),
            status_context=validate_status_context(status_context),
            address=web_address,
            api=api,
            web_ui_address=web_ui_address.strip().rstrip("/"),
            scopes=validate_scopes(scopes),
            timeout_s=validate_timeout(timeout_s),
        )

    @staticmethod
    def _parse_timeout_from_env() -> float:
        raw = os.environ.get("SCMBRIDGE_GITHUB_TIMEOUT_S", "").strip()
        if not raw:
            return _DEFAULT_TIMEOUT_S
        try:
            return float(raw)
        except ValueError as exc:
            raise GitHubConfigError.invalid_number("timeout", raw) from exc

    @classmethod
    def from_env(cls) -> GitHubProviderConfig:
        """Build configuration from environment variables.

        Reads the following environment variables:

        - ``SCMBRIDGE_GITHUB_ADDRESS``: GitHub or GitHub Enterprise address
        - ``SCMBRIDGE_GITHUB_CLIENT_ID``: Required OAuth client ID
        - ``SCMBRIDGE_GITHUB_CLIENT_SECRET``: Required OAuth client secret
        - ``SCMBRIDGE_SERVER_ADDRESS``: Required platform server address
        - ``SCMBRIDGE_SERVER_WEBHOOK_ADDRESS``: Optional webhook address
        - ``SCMBRIDGE_GITHUB_STATUS_CONTEXT``: Optional status context
        - ``SCMBRIDGE_WEBUI_ADDRESS``: Optional web UI address
        - ``SCMBRIDGE_GITHUB_SCOPES``: Optional comma separated scopes
        - ``SCMBRIDGE_GITHUB_TIMEOUT_S``: Optional request timeout

        Raises
        ------
        GitHubConfigError
            If a required variable is missing or a value is invalid.

        """
        raw_scopes = os.environ.get("SCMBRIDGE_GITHUB_SCOPES", "")
        scopes = raw_scopes.split(",") if raw_scopes.strip() else DEFAULT_SCOPES
        return cls.create(
            address=os.environ.get("SCMBRIDGE_GITHUB_ADDRESS", ""),
            client_id=os.environ.get("SCMBRIDGE_GITHUB_CLIENT_ID", ""),
            client_secret=os.environ.get("SCMBRIDGE_GITHUB_CLIENT_SECRET", ""),
            server_address=os.environ.get("SCMBRIDGE_SERVER_ADDRESS", ""),
            server_webhook_address=os.environ.get(
                "SCMBRIDGE_SERVER_WEBHOOK_ADDRESS", ""
            ),
            status_context=os.environ.get(
                "SCMBRIDGE_GITHUB_STATUS_CONTEXT", "continuous-integration/vela"
            ),
            web_ui_address=os.environ.get("SCMBRIDGE_WEBUI_ADDRESS", ""),
            scopes=scopes,
            timeout_s=cls._parse_timeout_from_env(),
        )
