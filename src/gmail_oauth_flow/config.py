"""Configuration management for Gmail OAuth Flow.

This module handles application configuration using Pydantic settings.
Configuration can be loaded from environment variables or .env files.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from gmail_oauth_flow.exceptions import ConfigurationError
from gmail_oauth_flow.models import ClientCredentials

GMAIL_SCOPE_FULL = "https://mail.google.com/"


class Settings(BaseSettings):
    """Application settings with environment variable support.

    All settings can be overridden via environment variables with
    the GMAIL_OAUTH_ prefix (e.g., GMAIL_OAUTH_CLIENT_ID).
    """

    model_config = SettingsConfigDict(
        env_prefix="GMAIL_OAUTH_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # OAuth client
    client_id: str | None = Field(
        default=None,
        description="OAuth client ID (takes precedence over credentials_path)",
    )
    client_secret: str | None = Field(
        default=None,
        description="OAuth client secret",
    )
    credentials_path: Path = Field(
        default=Path("credentials.json"),
        description="Client secrets JSON downloaded from Google Cloud Console",
    )
    auth_uri: str = Field(
        default="https://accounts.google.com/o/oauth2/auth",
        description="Google authorization endpoint",
    )
    token_uri: str = Field(
        default="https://oauth2.googleapis.com/token",
        description="Google token endpoint",
    )
    scopes: list[str] = Field(
        default_factory=lambda: [GMAIL_SCOPE_FULL],
        description="OAuth scopes to request. Full mail access by default.",
    )
    prompt: str | None = Field(
        default=None,
        description=(
            "Optional OAuth prompt parameter. Use 'consent' to force Google to "
            "issue a new refresh token for an account that already granted access."
        ),
    )

    # Callback listener
    timeout_seconds: float = Field(
        default=120.0,
        gt=0,
        description="How long the local listener waits for the redirect",
    )
    listen_host: str = Field(
        default="127.0.0.1",
        description="Loopback address the callback listener binds to",
    )
    redirect_host: str = Field(
        default="localhost",
        description="Host name used in the redirect URI",
    )
    manual_redirect_uri: str = Field(
        default="http://localhost:1",
        description="Non-routable redirect URI used by the paste-the-URL flow",
    )
    open_browser: bool = Field(
        default=True,
        description="Try to open the authorization URL in the default browser",
    )

    # Application Configuration
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    debug: bool = Field(
        default=False,
        description="Enable debug mode",
    )

    def client_credentials(self) -> ClientCredentials:
        """Resolve the OAuth client credentials.

        Explicit ``client_id``/``client_secret`` win; otherwise the client
        secrets file at ``credentials_path`` is read.

        Returns:
            ClientCredentials: The resolved credentials.

        Raises:
            ConfigurationError: If no usable credentials are configured.
        """
        if self.client_id or self.client_secret:
            if not (self.client_id and self.client_secret):
                raise ConfigurationError(
                    "Both GMAIL_OAUTH_CLIENT_ID and GMAIL_OAUTH_CLIENT_SECRET must be set."
                )
            return ClientCredentials(client_id=self.client_id, client_secret=self.client_secret)

        path = Path(self.credentials_path)
        if not path.exists():
            raise ConfigurationError(
                f"OAuth client credentials not found: {path}. "
                "Set GMAIL_OAUTH_CLIENT_ID/GMAIL_OAUTH_CLIENT_SECRET or download "
                "the Desktop app client JSON from Google Cloud Console."
            )
        try:
            return ClientCredentials.from_client_secrets_file(path)
        except (ValueError, ValidationError) as exc:
            raise ConfigurationError(f"Invalid client secrets file {path}: {exc}") from exc


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings.

    Returns:
        Settings: Application settings instance.
    """
    return Settings()
