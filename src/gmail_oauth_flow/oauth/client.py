"""Token exchange client implementation.

This module wraps ``google_auth_oauthlib`` so the authorization strategies
only deal with two operations: building the consent URL and redeeming an
authorization code.

Notes:
    ``Flow.fetch_token`` is synchronous (requests-oauthlib). It is wrapped with
    `asyncio.to_thread` so the callback listener keeps serving while the token
    request is in flight.
"""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Mapping, Protocol

import structlog

from gmail_oauth_flow.config import Settings
from gmail_oauth_flow.models import ClientCredentials

logger = structlog.get_logger()


class TokenExchangeClient(Protocol):
    """One session's view of the OAuth provider, bound to a redirect URI."""

    def authorization_url(self) -> str: ...

    async def exchange_code_for_tokens(self, code: str) -> Mapping[str, Any]: ...


ExchangeClientFactory = Callable[[ClientCredentials, str, Settings], TokenExchangeClient]


class GoogleTokenExchangeClient:
    """Google OAuth2 client for a single authorization attempt.

    The redirect URI is part of the exchange configuration, so a new
    instance is built for every session. The same instance must build the
    authorization URL and redeem the code because it holds the PKCE verifier.
    """

    def __init__(self, credentials: ClientCredentials, redirect_uri: str, settings: Settings) -> None:
        """Initialize the exchange client.

        Args:
            credentials: OAuth client id and secret.
            redirect_uri: Redirect URI registered for this session.
            settings: Application settings (endpoints, scopes, prompt).
        """
        # Imported lazily to keep import-time cost low and tests fast.
        from google_auth_oauthlib.flow import Flow

        self.redirect_uri = redirect_uri
        self.settings = settings
        client_config = {
            "installed": {
                "client_id": credentials.client_id,
                "client_secret": credentials.client_secret,
                "auth_uri": settings.auth_uri,
                "token_uri": settings.token_uri,
                "redirect_uris": [redirect_uri],
            }
        }
        self._flow = Flow.from_client_config(
            client_config,
            scopes=list(settings.scopes),
            redirect_uri=redirect_uri,
        )

    def authorization_url(self) -> str:
        """Build the consent URL, requesting offline access for a refresh token."""
        params: dict[str, str] = {"access_type": "offline"}
        if self.settings.prompt:
            params["prompt"] = self.settings.prompt
        url, _state = self._flow.authorization_url(**params)
        return url

    async def exchange_code_for_tokens(self, code: str) -> Mapping[str, Any]:
        """Redeem an authorization code.

        Returns:
            The token response. ``refresh_token`` may be absent.

        Raises:
            Exception: Whatever oauthlib/requests raise on a failed exchange.
        """
        logger.info("token_exchange_started", redirect_uri=self.redirect_uri)
        token = await asyncio.to_thread(self._flow.fetch_token, code=code)
        logger.info("token_exchange_completed", has_refresh_token=bool(token.get("refresh_token")))
        return token


def build_google_exchange_client(
    credentials: ClientCredentials,
    redirect_uri: str,
    settings: Settings,
) -> TokenExchangeClient:
    return GoogleTokenExchangeClient(credentials, redirect_uri, settings)
