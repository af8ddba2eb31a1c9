"""Unit tests for repository slug helpers."""

from __future__ import annotations

from scmbridge.common.slug import hook_settings_link, repo_slug


def test_repo_slug_joins_org_and_name() -> None:
    """Slugs use ``org/name`` format."""
    assert repo_slug("octo", "reef") == "octo/reef"


def test_hook_settings_link_uses_delivery_host() -> None:
    """Enterprise hosts appear in the settings link."""
    assert (
        hook_settings_link("git.example.com", "octo/reef")
        == "https://git.example.com/octo/reef/settings/hooks"
    )
