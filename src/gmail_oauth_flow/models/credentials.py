"""OAuth client credentials model.

Google Cloud Console hands out client secrets as a JSON document with either
an ``installed`` (Desktop app) or ``web`` section. Only the id and secret are
needed here; the redirect URI is chosen per session.
"""

from __future__ import annotations

import json
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field


class ClientCredentials(BaseModel):
    """OAuth client id and secret, immutable for the lifetime of a flow."""

    model_config = ConfigDict(frozen=True)

    client_id: str = Field(min_length=1, description="OAuth client ID")
    client_secret: str = Field(min_length=1, description="OAuth client secret")

    @classmethod
    def from_client_secrets_file(cls, path: Path) -> ClientCredentials:
        """Load credentials from a downloaded ``credentials.json``.

        Raises:
            FileNotFoundError: If the file does not exist.
            ValueError: If the file has no ``installed`` or ``web`` section.
        """
        data = json.loads(Path(path).read_text(encoding="utf-8"))
        section = data.get("installed") or data.get("web")
        if not isinstance(section, dict):
            raise ValueError(f"{path} has no 'installed' or 'web' client section")
        return cls(
            client_id=section.get("client_id") or "",
            client_secret=section.get("client_secret") or "",
        )
