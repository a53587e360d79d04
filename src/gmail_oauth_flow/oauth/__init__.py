"""OAuth2 authorization code flow for Gmail."""

from .client import GoogleTokenExchangeClient, TokenExchangeClient
from .flow import GmailOAuthFlow

__all__ = ["GmailOAuthFlow", "GoogleTokenExchangeClient", "TokenExchangeClient"]
