"""Repository slug utilities.

Repository slugs are GitHub identifiers in ``org/name`` format. They are not
filesystem paths, even though they use ``/`` as a separator, so they are built
with these helpers rather than ``pathlib``.
"""

from __future__ import annotations


def repo_slug(org: str, name: str) -> str:
    """Build a repository slug from org and name.

    Parameters
    ----------
    org:
        GitHub repository owner (organisation or user).
    name:
        GitHub repository name.

    Returns
    -------
    str
        Slug in ``org/name`` format.

    Examples
    --------
    >>> repo_slug("octo", "reef")
    'octo/reef'

    """
    return f"{org}/{name}"


def hook_settings_link(host: str, full_name: str) -> str:
    """Return the provider page listing a repository's webhooks.

    >>> hook_settings_link("github.com", "octo/reef")
    'https://github.com/octo/reef/settings/hooks'

    """
    return f"https://{host}/{full_name}/settings/hooks"
