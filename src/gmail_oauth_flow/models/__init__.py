"""Data models for Gmail OAuth Flow.

This module contains the Pydantic models and enumerations shared by the
authorization strategies and the controller.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from gmail_oauth_flow.models.credentials import ClientCredentials


class FailureReason(str, Enum):
    """Why an authorization session ended without a token."""

    USER_CANCELLED = "user_cancelled"
    MISSING_CODE = "missing_code"
    TOKEN_EXCHANGE_FAILED = "token_exchange_failed"
    LISTENER_BIND_FAILED = "listener_bind_failed"
    TIMED_OUT = "timed_out"


class SessionState(str, Enum):
    """Lifecycle of a callback listener session."""

    STARTING = "starting"
    LISTENING = "listening"
    COMPLETED = "completed"
    TIMED_OUT = "timed_out"
    BIND_FAILED = "bind_failed"

    @property
    def is_terminal(self) -> bool:
        return self not in (SessionState.STARTING, SessionState.LISTENING)


class AuthResult(BaseModel):
    """Terminal outcome of a single authorization session.

    A successful result may still lack a refresh token; the controller, not
    the strategy, turns that into an error.
    """

    success: bool = Field(description="Whether the code exchange succeeded")
    refresh_token: Optional[str] = Field(default=None, description="Refresh token, if granted")
    error: Optional[str] = Field(default=None, description="Error message if failed")
    reason: Optional[FailureReason] = Field(default=None, description="Failure kind if failed")

    @classmethod
    def succeeded(cls, refresh_token: Optional[str]) -> "AuthResult":
        return cls(success=True, refresh_token=refresh_token or None)

    @classmethod
    def failed(cls, reason: FailureReason, error: str) -> "AuthResult":
        return cls(success=False, error=error, reason=reason)


__all__ = ["AuthResult", "ClientCredentials", "FailureReason", "SessionState"]
