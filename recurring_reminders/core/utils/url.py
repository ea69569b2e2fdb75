# recurring_reminders/core/utils/url.py
"""Masking helpers for safe logging of URLs and credentials."""

from __future__ import annotations

from urllib.parse import urlparse, urlunparse


def mask_database_url(url: str) -> str:
    """Mask password in a database URL for secure logging.

    Uses ``urlparse`` for robust handling; falls back to string
    manipulation if the URL cannot be parsed.
    """
    try:
        parsed = urlparse(url)
        if parsed.password:
            netloc = parsed.netloc.replace(f':{parsed.password}@', ':***@')
            return urlunparse(parsed._replace(netloc=netloc))
        return url
    except Exception:
        if '@' not in url:
            return url
        pre, post = url.split('@', 1)
        scheme_user = pre.rsplit(':', 1)[0]
        return f'{scheme_user}:***@{post}'


def mask_secret(secret: str | None, visible: int = 4) -> str:
    """Keep the last few characters of a secret, star out the rest."""
    if not secret:
        return '<unset>'
    if len(secret) <= visible * 2:
        return '***'
    return f'***{secret[-visible:]}'
