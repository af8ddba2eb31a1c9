"""Unit tests for GitHub provider configuration."""

from __future__ import annotations

import pytest

from scmbridge.github.config import (
    DEFAULT_API,
    DEFAULT_SCOPES,
    GitHubProviderConfig,
    resolve_address,
)
from scmbridge.github.errors import GitHubConfigError
from tests.helpers.github_api import make_config


class TestCreate:
    """Tests for GitHubProviderConfig.create."""

    def test_defaults_target_public_github(self) -> None:
        """Without an address the public GitHub endpoints are used."""
        config = make_config()

        assert config.address == "https://github.com"
        assert config.api == DEFAULT_API
        assert config.scopes == DEFAULT_SCOPES

    def test_enterprise_address_derives_api_v3(self) -> None:
        """Enterprise addresses host their API under /api/v3/."""
        config = make_config(address="https://git.example.com/")

        assert config.address == "https://git.example.com"
        assert config.api == "https://git.example.com/api/v3/"

    def test_webhook_address_falls_back_to_server(self) -> None:
        """The registered hook URL uses the server address when unset."""
        config = make_config()

        assert config.webhook_url == "https://ci.example.com/webhook"

    def test_explicit_webhook_address_wins(self) -> None:
        """A dedicated webhook address replaces the server address."""
        config = make_config(server_webhook_address="https://hooks.example.com/")

        assert config.webhook_url == "https://hooks.example.com/webhook"

    @pytest.mark.parametrize(
        ("option", "message"),
        [
            ("client_id", "no GitHub OAuth client ID provided"),
            ("client_secret", "no GitHub OAuth client secret provided"),
            ("server_address", "no GitHub server address provided"),
            ("status_context", "no GitHub context for commit statuses provided"),
        ],
    )
    def test_missing_required_option_raises(self, option: str, message: str) -> None:
        """Each required option fails construction with its own message."""
        with pytest.raises(GitHubConfigError, match=message):
            make_config(**{option: "  "})

    def test_empty_scopes_rejected(self) -> None:
        """At least one OAuth scope is required."""
        with pytest.raises(GitHubConfigError, match="OAuth scopes"):
            make_config(scopes=["", " "])

    def test_relative_server_address_rejected(self) -> None:
        """Addresses must be absolute http(s) URLs."""
        with pytest.raises(GitHubConfigError, match="server address"):
            make_config(server_address="ci.example.com")

    def test_non_positive_timeout_rejected(self) -> None:
        """Timeouts must be positive."""
        with pytest.raises(GitHubConfigError, match="timeout"):
            make_config(timeout_s=0)

    def test_client_secret_hidden_from_repr(self) -> None:
        """The client secret never appears in the configuration repr."""
        assert "client-secret" not in repr(make_config())


def test_resolve_address_treats_public_github_case_insensitively() -> None:
    """Any spelling of the public address keeps the public API."""
    assert resolve_address("HTTPS://GITHUB.COM/") == ("https://github.com", DEFAULT_API)


class TestFromEnv:
    """Tests for GitHubProviderConfig.from_env."""

    @pytest.fixture
    def required_env(self, monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
        """Set the required variables."""
        monkeypatch.setenv("SCMBRIDGE_GITHUB_CLIENT_ID", "env-client")
        monkeypatch.setenv("SCMBRIDGE_GITHUB_CLIENT_SECRET", "env-secret")
        monkeypatch.setenv("SCMBRIDGE_SERVER_ADDRESS", "https://ci.example.com")
        return monkeypatch

    def test_reads_required_variables(self, required_env: pytest.MonkeyPatch) -> None:
        """Required variables populate the configuration."""
        config = GitHubProviderConfig.from_env()

        assert config.client_id == "env-client"
        assert config.status_context == "continuous-integration/vela"
        assert config.timeout_s == pytest.approx(20.0)

    def test_reads_optional_variables(self, required_env: pytest.MonkeyPatch) -> None:
        """Optional variables override the defaults."""
        required_env.setenv("SCMBRIDGE_GITHUB_ADDRESS", "https://git.example.com")
        required_env.setenv("SCMBRIDGE_GITHUB_SCOPES", "repo, read:org")
        required_env.setenv("SCMBRIDGE_GITHUB_TIMEOUT_S", "5.5")

        config = GitHubProviderConfig.from_env()

        assert config.api == "https://git.example.com/api/v3/"
        assert config.scopes == ("repo", "read:org")
        assert config.timeout_s == pytest.approx(5.5)

    def test_invalid_timeout_raises(self, required_env: pytest.MonkeyPatch) -> None:
        """A non-numeric timeout raises GitHubConfigError."""
        required_env.setenv("SCMBRIDGE_GITHUB_TIMEOUT_S", "soon")

        with pytest.raises(GitHubConfigError, match="timeout"):
            GitHubProviderConfig.from_env()

    def test_missing_required_variables_raise(self) -> None:
        """Without variables construction fails on a required option."""
        with pytest.raises(GitHubConfigError, match="no GitHub"):
            GitHubProviderConfig.from_env()
