"""Authorization session controller.

``GmailOAuthFlow.authorize()`` drives exactly one authorization attempt,
automated or manual, and turns its ``AuthResult`` into either a refresh
token or an ``AuthorizationError``. Nothing is retried; a failed attempt
must be started again by the caller.
"""

from __future__ import annotations

from typing import Callable, Optional

import structlog
from pydantic import ValidationError

from gmail_oauth_flow.config import Settings
from gmail_oauth_flow.exceptions import (
    AuthorizationInProgressError,
    ConfigurationError,
    MissingTokenError,
    error_for_reason,
)
from gmail_oauth_flow.models import AuthResult, ClientCredentials
from gmail_oauth_flow.oauth.browser import open_browser
from gmail_oauth_flow.oauth.client import ExchangeClientFactory, build_google_exchange_client
from gmail_oauth_flow.oauth.listener import CallbackSession
from gmail_oauth_flow.oauth.manual import LineReader, ManualSession, read_line

logger = structlog.get_logger()


class GmailOAuthFlow:
    """Obtain a Gmail refresh token through the OAuth2 authorization code flow.

    One attempt at a time: a second ``authorize()`` while one is running
    raises ``AuthorizationInProgressError``.
    """

    def __init__(
        self,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        *,
        settings: Optional[Settings] = None,
        exchange_factory: Optional[ExchangeClientFactory] = None,
        line_reader: Optional[LineReader] = None,
        browser_opener: Optional[Callable[[str], None]] = None,
    ) -> None:
        """Initialize the flow.

        Args:
            client_id: OAuth client ID. If omitted, resolved from settings.
            client_secret: OAuth client secret. If omitted, resolved from settings.
            settings: Application settings. If None, uses default settings.
            exchange_factory: Builds the per-session token exchange client.
            line_reader: Reads the pasted redirect URL in manual mode.
            browser_opener: Opens the authorization URL. Defaults to the
                platform browser when ``settings.open_browser`` is set.

        Raises:
            ConfigurationError: If no valid client credentials are available.
        """
        from gmail_oauth_flow.config import get_settings

        self.settings = settings or get_settings()
        if client_id is None and client_secret is None:
            self.credentials = self.settings.client_credentials()
        else:
            try:
                self.credentials = ClientCredentials(
                    client_id=client_id or "",
                    client_secret=client_secret or "",
                )
            except ValidationError as exc:
                raise ConfigurationError("Both client ID and client secret are required.") from exc

        self.exchange_factory = exchange_factory or build_google_exchange_client
        self.line_reader = line_reader or read_line
        if browser_opener is None and self.settings.open_browser:
            browser_opener = open_browser
        self.browser_opener = browser_opener
        self._in_flight = False

        logger.info("gmail_oauth_flow_initialized", client_id=self.credentials.client_id)

    async def authorize(self, manual: bool = False) -> str:
        """Run one authorization attempt.

        Args:
            manual: Use the paste-the-URL flow instead of the local listener.

        Returns:
            The refresh token.

        Raises:
            AuthorizationError: If the attempt failed. The concrete subclass
                tells why (cancelled, timed out, exchange failed, ...).
            MissingTokenError: If Google granted access without a refresh token.
            AuthorizationInProgressError: If an attempt is already running.
        """
        if self._in_flight:
            raise AuthorizationInProgressError("Authorization already in progress")

        mode = "manual" if manual else "automated"
        logger.info("authorization_started", mode=mode)

        self._in_flight = True
        try:
            result = await (self._run_manual() if manual else self._run_automated())
        finally:
            self._in_flight = False

        if not result.success:
            message = result.error or "Authorization failed"
            logger.warning(
                "authorization_failed",
                mode=mode,
                reason=result.reason.value if result.reason else None,
                error=message,
            )
            raise error_for_reason(result.reason, message)

        if not result.refresh_token:
            logger.warning("refresh_token_missing", mode=mode)
            raise MissingTokenError("No refresh token received")

        logger.info("authorization_completed", mode=mode)
        return result.refresh_token

    async def _run_automated(self) -> AuthResult:
        session = CallbackSession(
            self.credentials,
            self.settings,
            self.exchange_factory,
            browser_opener=self.browser_opener,
        )
        return await session.run()

    async def _run_manual(self) -> AuthResult:
        session = ManualSession(
            self.credentials,
            self.settings,
            self.exchange_factory,
            line_reader=self.line_reader,
        )
        return await session.run()
