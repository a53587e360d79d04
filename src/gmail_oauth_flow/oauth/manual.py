"""Paste-the-URL authorization flow.

For machines where the browser cannot reach a local listener (SSH sessions,
containers). The authorization URL uses a redirect URI nothing listens on;
after consenting, the user copies the URL of the page that failed to load
and pastes it back. There is no timeout: the prompt blocks until a line is
read.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable

import structlog

from gmail_oauth_flow.config import Settings
from gmail_oauth_flow.models import AuthResult, ClientCredentials, FailureReason
from gmail_oauth_flow.oauth.client import ExchangeClientFactory
from gmail_oauth_flow.oauth.parsing import authorization_code

logger = structlog.get_logger()

LineReader = Callable[[str], Awaitable[str]]


async def read_line(prompt: str) -> str:
    """Read one line from stdin without blocking the event loop. EOF reads as ''."""

    def _read() -> str:
        try:
            return input(prompt)
        except EOFError:
            return ""

    return await asyncio.to_thread(_read)


class ManualSession:
    """One manual authorization attempt."""

    def __init__(
        self,
        credentials: ClientCredentials,
        settings: Settings,
        exchange_factory: ExchangeClientFactory,
        line_reader: LineReader = read_line,
    ) -> None:
        self.credentials = credentials
        self.settings = settings
        self.exchange_factory = exchange_factory
        self.line_reader = line_reader

    async def run(self) -> AuthResult:
        redirect_uri = self.settings.manual_redirect_uri
        exchange = self.exchange_factory(self.credentials, redirect_uri, self.settings)
        auth_url = exchange.authorization_url()
        logger.info("manual_authorization_started", redirect_uri=redirect_uri)

        print("Visit this URL to authorize:")
        print(auth_url)
        print("")
        print("After authorizing, you'll be redirected to a page that won't load.")
        print("Copy the URL from your browser's address bar and paste it here.")
        print("")

        pasted = await self.line_reader("Paste redirect URL: ")
        code = authorization_code(pasted)
        if not code:
            logger.warning("authorization_code_missing", mode="manual")
            return AuthResult.failed(FailureReason.MISSING_CODE, "No authorization code found in URL")

        try:
            tokens = await exchange.exchange_code_for_tokens(code)
        except Exception as exc:  # noqa: BLE001
            message = str(exc) or exc.__class__.__name__
            logger.exception("token_exchange_failed", error=message, mode="manual")
            return AuthResult.failed(FailureReason.TOKEN_EXCHANGE_FAILED, message)

        return AuthResult.succeeded(tokens.get("refresh_token"))
