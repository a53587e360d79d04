"""Gmail OAuth Flow - obtain a long-lived Gmail refresh token.

This package runs the interactive OAuth2 authorization code handshake
against Google, either through a short-lived local callback listener or by
having the user paste the redirect URL by hand.
"""

__version__ = "0.1.0"
__author__ = "Trickl"

from gmail_oauth_flow.config import Settings, get_settings
from gmail_oauth_flow.exceptions import AuthorizationError, GmailOAuthError, MissingTokenError
from gmail_oauth_flow.oauth.flow import GmailOAuthFlow

__all__ = [
    "AuthorizationError",
    "GmailOAuthError",
    "GmailOAuthFlow",
    "MissingTokenError",
    "Settings",
    "get_settings",
    "__version__",
    "__author__",
]
