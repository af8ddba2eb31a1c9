"""GitHub provider client.

:class:`GitHubProvider` holds the static configuration for one GitHub (or
GitHub Enterprise) instance and mints a :class:`GitHubRestClient` bound to a
single user's credentials for each call. Construction performs no network I/O.
"""

from __future__ import annotations

import typing as typ
import urllib.parse

import httpx
import msgspec

from scmbridge.logging import get_logger, log_debug

from .errors import GitHubAPIError, GitHubConfigError, GitHubResponseShapeError
from .pagination import MAX_PER_PAGE, collect_all_pages, next_page_from_link

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from .config import GitHubProviderConfig

logger = get_logger(__name__)

_HTTP_ERROR_STATUS_THRESHOLD = 400
_GITHUB_MEDIA_TYPE = "application/vnd.github+json"

JSONObject = dict[str, typ.Any]


def api_path(*segments: str | int) -> str:
    """Join URL path segments, quoting each one.

    >>> api_path("repos", "octo", "reef", "contents", ".vela.yml")
    'repos/octo/reef/contents/.vela.yml'

    """
    return "/".join(urllib.parse.quote(str(segment), safe="") for segment in segments)


def as_object(value: object, *, field: str) -> JSONObject:
    """Return ``value`` as a JSON object or raise a shape error."""
    if not isinstance(value, dict):
        raise GitHubResponseShapeError.missing(field)
    return typ.cast("JSONObject", value)


def as_object_list(value: object, *, field: str) -> list[JSONObject]:
    """Return the JSON objects in a list, raising if ``value`` is not a list."""
    if not isinstance(value, list):
        raise GitHubResponseShapeError.missing(field)
    return [item for item in value if isinstance(item, dict)]


def get_str(data: JSONObject, *keys: str) -> str:
    """Traverse nested keys, returning ``""`` when any step is missing."""
    current: object = data
    for key in keys:
        if not isinstance(current, dict):
            return ""
        current = current.get(key)
    return current if isinstance(current, str) else ""


class GitHubRestClient:
    """REST client bound to one set of credentials.

    Instances are cheap and short-lived; they share the provider's pooled
    :class:`httpx.AsyncClient` and only add the per-user authentication.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        *,
        api: str,
        headers: dict[str, str] | None = None,
        auth: httpx.Auth | None = None,
    ) -> None:
        """Bind the shared HTTP client to an API base and credentials."""
        self._client = http_client
        self._api = api if api.endswith("/") else f"{api}/"
        self._headers = headers or {}
        self._auth = auth

    def url(self, path: str) -> str:
        """Return the absolute API URL for ``path``."""
        return urllib.parse.urljoin(self._api, path.lstrip("/"))

    async def send(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, typ.Any] | None = None,
        json: object | None = None,
        allow_status: cabc.Container[int] = (),
    ) -> httpx.Response:
        """Send a request and return the response.

        Responses with a status of 400 or above raise :class:`GitHubAPIError`
        unless listed in ``allow_status``, in which case the caller inspects
        them.
        """
        request_kwargs: dict[str, typ.Any] = {
            "params": params,
            "headers": self._headers,
        }
        if json is not None:
            request_kwargs["json"] = json
        if self._auth is not None:
            request_kwargs["auth"] = self._auth
        try:
            response = await self._client.request(
                method, self.url(path), **request_kwargs
            )
        except httpx.TimeoutException as exc:
            raise GitHubAPIError.timeout() from exc
        except httpx.RequestError as exc:
            raise GitHubAPIError.network_error(str(exc)) from exc

        log_debug(logger, "GitHub API %s %s -> %d", method, path, response.status_code)
        if (
            response.status_code >= _HTTP_ERROR_STATUS_THRESHOLD
            and response.status_code not in allow_status
        ):
            raise GitHubAPIError.http_error(
                response.status_code, method=method, path=path
            )
        return response

    @staticmethod
    def decode(response: httpx.Response, *, path: str) -> object:
        """Decode a JSON response body."""
        try:
            return msgspec.json.decode(response.content)
        except msgspec.DecodeError as exc:
            raise GitHubResponseShapeError.invalid_json(path) from exc

    async def get_object(
        self, path: str, *, params: dict[str, typ.Any] | None = None
    ) -> JSONObject:
        """GET ``path`` and return the JSON object it answers with."""
        response = await self.send("GET", path, params=params)
        return as_object(self.decode(response, path=path), field=path)

    async def post_object(self, path: str, payload: JSONObject) -> JSONObject:
        """POST a JSON payload and return the JSON object it answers with."""
        response = await self.send("POST", path, json=payload)
        return as_object(self.decode(response, path=path), field=path)

    async def get_page(
        self,
        path: str,
        page: int,
        *,
        params: dict[str, typ.Any] | None = None,
        per_page: int = MAX_PER_PAGE,
    ) -> tuple[list[JSONObject], int | None]:
        """GET one page of a list endpoint and the next page number."""
        query = {**(params or {}), "per_page": per_page, "page": page}
        response = await self.send("GET", path, params=query)
        items = as_object_list(self.decode(response, path=path), field=path)
        return items, next_page_from_link(response.headers.get("Link"))

    async def get_all(
        self, path: str, *, params: dict[str, typ.Any] | None = None
    ) -> list[JSONObject]:
        """GET every page of a list endpoint."""

        async def _fetch(page: int) -> tuple[list[JSONObject], int | None]:
            return await self.get_page(path, page, params=params)

        return await collect_all_pages(_fetch)


class GitHubProvider:
    """Static provider configuration plus a pooled HTTP client."""

    def __init__(
        self,
        config: GitHubProviderConfig,
        *,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialise the provider; no requests are sent."""
        if not config.api.startswith(("http://", "https://")):
            raise GitHubConfigError.invalid_url("GitHub API address", config.api)

        self._config = config
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            timeout=config.timeout_s,
            headers={
                "User-Agent": config.user_agent,
                "Accept": _GITHUB_MEDIA_TYPE,
            },
        )

    @property
    def config(self) -> GitHubProviderConfig:
        """Return the provider configuration."""
        return self._config

    @property
    def http_client(self) -> httpx.AsyncClient:
        """Return the pooled HTTP client, for non-API endpoints such as OAuth."""
        return self._client

    async def aclose(self) -> None:
        """Close any owned HTTP resources."""
        if self._owns_client:
            await self._client.aclose()

    def for_token(self, token: str) -> GitHubRestClient:
        """Return a client authenticated with an OAuth or personal token."""
        return GitHubRestClient(
            self._client,
            api=self._config.api,
            headers={"Authorization": f"Bearer {token}"},
        )

    def for_basic_auth(
        self, username: str, password: str, otp: str = ""
    ) -> GitHubRestClient:
        """Return a client using Basic auth, with an optional one-time password."""
        headers = {"X-GitHub-OTP": otp} if otp else {}
        return GitHubRestClient(
            self._client,
            api=self._config.api,
            headers=headers,
            auth=httpx.BasicAuth(username, password),
        )


__all__ = [
    "GitHubProvider",
    "GitHubRestClient",
    "JSONObject",
    "api_path",
    "as_object",
    "as_object_list",
    "get_str",
]
