"""
Normalization utilities for account identity matching.

An account restored from a backup is matched against local accounts by the
pair (server host, username). Hosts compare case-insensitively, usernames
compare exactly.
"""

from __future__ import annotations

import unicodedata
from urllib.parse import urlsplit


def normalize_host(server_url: str) -> str:
    """
    Extract the normalized host of a server URL.

    Scheme, port, path, query and credentials are ignored. URLs written
    without a scheme ("dav.example.com/remote.php") are accepted.

    Args:
        server_url: Server URL as entered by the user

    Returns:
        Lowercase host name, or an empty string if none can be found
    """
    if not server_url:
        return ""

    value = unicodedata.normalize("NFKC", server_url.strip())

    # urlsplit only finds a netloc after "//"
    if "//" not in value:
        value = f"//{value}"

    try:
        host = urlsplit(value).hostname
    except ValueError:
        host = None

    return (host or "").rstrip(".").lower()


def account_identity(server_url: str, username: str) -> tuple[str, str]:
    """
    Build the identity key used to match accounts across devices.

    Args:
        server_url: Account server URL
        username: Account username (compared case-sensitively)

    Returns:
        Tuple of (normalized host, username)
    """
    return (normalize_host(server_url), username)


def describe_identity(server_url: str, username: str) -> str:
    """Render an account identity as ``username@host`` for logs."""
    host, user = account_identity(server_url, username)
    return f"{user}@{host}"
