"""OAuth login flows against GitHub.

The browser flow moves through ``Unauthenticated -> PendingCallback ->
Authenticated``: :meth:`OAuthSessionHandler.login` redirects to GitHub and
returns a state token the caller stores, and
:meth:`OAuthSessionHandler.authenticate` consumes the callback. The headless
:meth:`OAuthSessionHandler.login_cli` exchanges Basic credentials directly.
Every path resolves the login name through :meth:`authorize`.
"""

from __future__ import annotations

import asyncio
import hmac
import secrets
import typing as typ
import urllib.parse

import falcon
import httpx
import msgspec

from scmbridge.logging import get_logger, log_debug, log_info
from scmbridge.models import User

from .client import api_path, get_str
from .errors import (
    GitHubAPIError,
    GitHubResponseShapeError,
    OAuthExchangeError,
    OAuthStateMismatchError,
    OAuthTokenError,
)

if typ.TYPE_CHECKING:
    import falcon.asgi

    from .client import GitHubProvider
    from .config import GitHubProviderConfig

logger = get_logger(__name__)

_HTTP_ERROR_STATUS_THRESHOLD = 400
_HTTP_NOT_FOUND = 404
_STATE_BYTES = 32


class _AccessTokenResponse(msgspec.Struct, kw_only=True):
    """Body of the ``/login/oauth/access_token`` exchange."""

    access_token: str = ""
    error: str = ""
    error_description: str = ""


class OAuthSessionHandler:
    """Complete user authentication for one GitHub provider."""

    def __init__(self, provider: GitHubProvider) -> None:
        """Bind the handler to a provider."""
        self._provider = provider

    @property
    def _config(self) -> GitHubProviderConfig:
        return self._provider.config

    def authorize_url(self, state: str, *, redirect_uri: str = "") -> str:
        """Return the GitHub authorize URL carrying ``state``."""
        query = {
            "client_id": self._config.client_id,
            "scope": " ".join(self._config.scopes),
            "state": state,
        }
        if redirect_uri:
            query["redirect_uri"] = redirect_uri
        return (
            f"{self._config.address}/login/oauth/authorize?"
            f"{urllib.parse.urlencode(query)}"
        )

    def login(self, req: falcon.asgi.Request, resp: falcon.asgi.Response) -> str:
        """Redirect the browser to GitHub and return the issued state.

        The caller stores the returned state and passes it back to
        :meth:`authenticate` when GitHub redirects to the callback.
        """
        state = secrets.token_urlsafe(_STATE_BYTES)
        redirect_uri = req.get_param("redirect_uri") or ""
        resp.status = falcon.HTTP_307
        resp.location = self.authorize_url(state, redirect_uri=redirect_uri)
        log_debug(logger, "Redirecting login to %s", self._config.address)
        return state

    async def authenticate(
        self,
        req: falcon.asgi.Request,
        expected_state: str,
        *,
        timeout: float | None = None,
    ) -> User | None:
        """Complete the browser flow from GitHub's callback request.

        Parameters
        ----------
        req
            Callback request carrying ``code`` and ``state`` parameters.
        expected_state
            State returned by :meth:`login` for this browser session.
        timeout
            Optional overall deadline in seconds.

        Returns
        -------
        User | None
            The authenticated user, or ``None`` when the request carries no
            ``code`` (the flow has not completed yet).

        Raises
        ------
        OAuthStateMismatchError
            If ``state`` differs from ``expected_state``.
        OAuthExchangeError
            If GitHub refuses to exchange the code.

        """
        code = req.get_param("code") or ""
        if not code:
            return None

        state = req.get_param("state") or ""
        if not expected_state or not hmac.compare_digest(
            state.encode(), expected_state.encode()
        ):
            raise OAuthStateMismatchError()

        async with asyncio.timeout(timeout):
            token = await self._exchange_code(
                code, redirect_uri=req.get_param("redirect_uri") or ""
            )
            name = await self.authorize(token)
        log_info(logger, "Authenticated %s via OAuth callback", name)
        return User(name=name, token=token)

    async def _exchange_code(self, code: str, *, redirect_uri: str) -> str:
        form = {
            "client_id": self._config.client_id,
            "client_secret": self._config.client_secret,
            "code": code,
        }
        if redirect_uri:
            form["redirect_uri"] = redirect_uri
        url = f"{self._config.address}/login/oauth/access_token"
        try:
            response = await self._provider.http_client.post(
                url, data=form, headers={"Accept": "application/json"}
            )
        except httpx.TimeoutException as exc:
            raise GitHubAPIError.timeout() from exc
        except httpx.RequestError as exc:
            raise GitHubAPIError.network_error(str(exc)) from exc

        if response.status_code >= _HTTP_ERROR_STATUS_THRESHOLD:
            raise GitHubAPIError.http_error(
                response.status_code, method="POST", path="login/oauth/access_token"
            )
        try:
            body = msgspec.json.decode(response.content, type=_AccessTokenResponse)
        except msgspec.DecodeError as exc:
            raise GitHubResponseShapeError.invalid_json(
                "login/oauth/access_token"
            ) from exc

        if body.error:
            raise OAuthExchangeError.rejected(body.error_description or body.error)
        if not body.access_token:
            raise OAuthExchangeError.missing_token()
        return body.access_token

    async def login_cli(
        self,
        username: str,
        password: str,
        otp: str = "",
        *,
        timeout: float | None = None,
    ) -> User:
        """Exchange Basic credentials and a one-time password for a token.

        Raises
        ------
        OAuthExchangeError
            If GitHub answers without a token.

        """
        client = self._provider.for_basic_auth(username, password, otp)
        payload = {
            "scopes": list(self._config.scopes),
            "note": f"scmbridge-{secrets.token_hex(5)}",
            "client_id": self._config.client_id,
            "client_secret": self._config.client_secret,
        }
        async with asyncio.timeout(timeout):
            data = await client.post_object("authorizations", payload)
            token = get_str(data, "token")
            if not token:
                raise OAuthExchangeError.missing_token()
            name = await self.authorize(token)
        log_info(logger, "Authenticated %s via CLI credentials", name)
        return User(name=name, token=token)

    async def authorize(self, token: str, *, timeout: float | None = None) -> str:
        """Return the login name that ``token`` belongs to."""
        async with asyncio.timeout(timeout):
            data = await self._provider.for_token(token).get_object("user")
        login = get_str(data, "login")
        if not login:
            raise GitHubResponseShapeError.missing("login")
        return login

    async def authenticate_token(
        self, token: str, *, timeout: float | None = None
    ) -> User:
        """Authenticate a caller presenting a personal access token.

        Tokens minted by this OAuth application are refused so that a token
        handed out by the platform cannot be replayed as a personal token.

        Raises
        ------
        OAuthTokenError
            If the token is empty or was issued by this application.

        """
        if not token.strip():
            raise OAuthTokenError.empty()

        app = self._provider.for_basic_auth(
            self._config.client_id, self._config.client_secret
        )
        async with asyncio.timeout(timeout):
            check = await app.send(
                "POST",
                api_path("applications", self._config.client_id, "token"),
                json={"access_token": token},
                allow_status={_HTTP_NOT_FOUND},
            )
            if check.status_code != _HTTP_NOT_FOUND:
                raise OAuthTokenError.issued_by_app()
            name = await self.authorize(token)
        return User(name=name, token=token)


__all__ = ["OAuthSessionHandler"]
