"""Custom exceptions for Gmail OAuth Flow."""

from __future__ import annotations

from gmail_oauth_flow.models import FailureReason


class GmailOAuthError(Exception):
    """Base exception for all Gmail OAuth Flow errors."""


class ConfigurationError(GmailOAuthError):
    """Exception raised for configuration related errors."""


class AuthorizationError(GmailOAuthError):
    """Exception raised when an authorization attempt does not succeed.

    Attributes:
        reason: Machine-readable failure kind, if known.
    """

    def __init__(self, message: str, reason: FailureReason | None = None) -> None:
        super().__init__(message)
        self.reason = reason


class UserCancelledError(AuthorizationError):
    """The provider redirected back with an ``error`` parameter."""


class MissingAuthorizationCodeError(AuthorizationError):
    """The redirect carried neither a code nor an error."""


class TokenExchangeError(AuthorizationError):
    """Exchanging the authorization code for tokens failed."""


class ListenerBindError(AuthorizationError):
    """The local callback listener could not be started."""


class SessionTimeoutError(AuthorizationError):
    """No callback arrived before the session timed out."""


class MissingTokenError(AuthorizationError):
    """The exchange succeeded but Google returned no refresh token.

    Usually means the account already granted consent. Revoke access or
    force the consent prompt and try again.
    """


class AuthorizationInProgressError(AuthorizationError):
    """Another authorization attempt is already running on this flow."""


_ERRORS_BY_REASON: dict[FailureReason, type[AuthorizationError]] = {
    FailureReason.USER_CANCELLED: UserCancelledError,
    FailureReason.MISSING_CODE: MissingAuthorizationCodeError,
    FailureReason.TOKEN_EXCHANGE_FAILED: TokenExchangeError,
    FailureReason.LISTENER_BIND_FAILED: ListenerBindError,
    FailureReason.TIMED_OUT: SessionTimeoutError,
}


def error_for_reason(reason: FailureReason | None, message: str) -> AuthorizationError:
    """Build the exception matching a failed result's reason."""
    error_cls = _ERRORS_BY_REASON.get(reason, AuthorizationError) if reason else AuthorizationError
    return error_cls(message, reason=reason)
