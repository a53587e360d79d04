"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import asyncio
from typing import Any, Optional
from urllib.parse import parse_qs, urlencode, urlsplit

import pytest


class StubExchangeClient:
    """Stand-in for the Google token exchange, bound to one redirect URI."""

    def __init__(
        self,
        redirect_uri: str,
        tokens: Optional[dict[str, Any]] = None,
        error: Optional[Exception] = None,
        delay: float = 0.0,
    ) -> None:
        self.redirect_uri = redirect_uri
        self.tokens = tokens if tokens is not None else {}
        self.error = error
        self.delay = delay
        self.codes: list[str] = []

    def authorization_url(self) -> str:
        query = urlencode({"redirect_uri": self.redirect_uri, "access_type": "offline"})
        return f"https://accounts.google.test/o/oauth2/auth?{query}"

    async def exchange_code_for_tokens(self, code: str) -> dict[str, Any]:
        self.codes.append(code)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.tokens


class StubExchangeFactory:
    """Records every exchange client built, one per session."""

    def __init__(
        self,
        tokens: Optional[dict[str, Any]] = None,
        error: Optional[Exception] = None,
        delay: float = 0.0,
    ) -> None:
        self.tokens = tokens
        self.error = error
        self.delay = delay
        self.clients: list[StubExchangeClient] = []

    def __call__(self, credentials: Any, redirect_uri: str, settings: Any) -> StubExchangeClient:
        client = StubExchangeClient(
            redirect_uri, tokens=self.tokens, error=self.error, delay=self.delay
        )
        self.clients.append(client)
        return client


def redirect_uri_from(auth_url: str) -> str:
    """Pull the redirect URI back out of a stub authorization URL."""
    return parse_qs(urlsplit(auth_url).query)["redirect_uri"][0]


@pytest.fixture
def settings():
    """Provide settings isolated from the environment and any .env file."""
    from gmail_oauth_flow.config import Settings

    return Settings(
        _env_file=None,
        client_id="test-client-id.apps.googleusercontent.com",
        client_secret="test-client-secret",
        timeout_seconds=5,
        open_browser=False,
        redirect_host="127.0.0.1",
        log_level="DEBUG",
    )


@pytest.fixture
def credentials(settings):
    """Provide client credentials matching the test settings."""
    return settings.client_credentials()


@pytest.fixture
def exchange_factory() -> StubExchangeFactory:
    """Provide an exchange factory that returns a refresh token."""
    return StubExchangeFactory(tokens={"access_token": "AT1", "refresh_token": "RT1"})


@pytest.fixture
def client_secrets_file(tmp_path):
    """Write a Desktop app client secrets JSON like the one Google Cloud Console hands out."""
    path = tmp_path / "credentials.json"
    path.write_text(
        '{"installed": {"client_id": "file-client-id", "client_secret": "file-secret",'
        ' "auth_uri": "https://accounts.google.com/o/oauth2/auth",'
        ' "token_uri": "https://oauth2.googleapis.com/token",'
        ' "redirect_uris": ["http://localhost"]}}',
        encoding="utf-8",
    )
    return path
