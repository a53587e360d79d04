"""Helpers for parsing OAuth redirect URLs."""

from __future__ import annotations

from collections.abc import Mapping
from urllib.parse import parse_qs, urlsplit


def _first(params: Mapping[str, list[str]], name: str) -> str | None:
    values = params.get(name) or []
    for value in values:
        if value:
            return value
    return None


def redirect_params(url: str) -> dict[str, str]:
    """Return the first non-empty value of each query parameter in ``url``.

    Args:
        url: A full redirect URL as pasted from the browser address bar.

    Returns:
        dict[str, str]: Parameter name to value.
    """
    parsed = parse_qs(urlsplit(url.strip()).query)
    result: dict[str, str] = {}
    for name in parsed:
        value = _first(parsed, name)
        if value is not None:
            result[name] = value
    return result


def authorization_code(url: str) -> str | None:
    """Extract the ``code`` parameter from a redirect URL, if present."""
    return redirect_params(url).get("code")
