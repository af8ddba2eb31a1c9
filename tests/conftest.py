"""Shared fixtures for unit and feature tests."""

from __future__ import annotations

import typing as typ

import pytest
import pytest_asyncio

from tests.helpers.github_api import FakeGitHubAPI, make_provider, make_user

if typ.TYPE_CHECKING:
    from scmbridge.github.client import GitHubProvider
    from scmbridge.models import User


@pytest.fixture
def github_api() -> FakeGitHubAPI:
    """Return an empty in-memory GitHub API."""
    return FakeGitHubAPI()


@pytest_asyncio.fixture
async def provider(github_api: FakeGitHubAPI) -> typ.AsyncIterator[GitHubProvider]:
    """Yield a provider wired to ``github_api`` and close its client afterwards."""
    github_provider = make_provider(github_api)
    yield github_provider
    await github_provider.http_client.aclose()


@pytest.fixture
def user() -> User:
    """Return the authenticated user most tests act as."""
    return make_user()


@pytest.fixture(autouse=True)
def _clear_scmbridge_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep developer ``SCMBRIDGE_*`` variables out of configuration tests."""
    for name in (
        "SCMBRIDGE_GITHUB_ADDRESS",
        "SCMBRIDGE_GITHUB_CLIENT_ID",
        "SCMBRIDGE_GITHUB_CLIENT_SECRET",
        "SCMBRIDGE_SERVER_ADDRESS",
        "SCMBRIDGE_SERVER_WEBHOOK_ADDRESS",
        "SCMBRIDGE_GITHUB_STATUS_CONTEXT",
        "SCMBRIDGE_WEBUI_ADDRESS",
        "SCMBRIDGE_GITHUB_SCOPES",
        "SCMBRIDGE_GITHUB_TIMEOUT_S",
        "SCMBRIDGE_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)
