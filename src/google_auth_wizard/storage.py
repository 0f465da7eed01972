"""Token cache for Google Auth Wizard.

The last token obtained by a handshake is stored, together with the scopes
it was granted for, in ``~/.google-auth-wizard/token.json``:

    {
      "token": {"access_token": "...", "token_type": "Bearer",
                "refresh_token": "...", "expiry": "2026-01-01T00:00:00Z"},
      "scopes": ["https://www.googleapis.com/auth/gmail.readonly"],
      "saved_at": "2026-01-01T00:00:00Z",
      "expires_at": "2026-01-01T00:00:00Z"
    }

The file is readable only by its owner and is overwritten by every new
handshake.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any

from pydantic import (
    BaseModel,
    Field,
    ValidationError,
    field_serializer,
    field_validator,
)

from google_auth_wizard.exceptions import (
    TokenDeleteError,
    TokenNotFoundError,
    TokenParseError,
    TokenWriteError,
)
from google_auth_wizard.token import (
    OAuthToken,
    normalize_timestamp,
    serialize_timestamp,
    utcnow,
)

logger = logging.getLogger(__name__)

TOKEN_DIR_NAME = ".google-auth-wizard"
TOKEN_FILE_NAME = "token.json"
FALLBACK_TOKEN_FILE = ".google-auth-wizard-token.json"

# A token expiring within this margin is treated as already expired.
EXPIRY_MARGIN = timedelta(minutes=5)


def get_default_token_path() -> Path:
    """Get the per-user token cache path (~/.google-auth-wizard/token.json)."""
    try:
        home = Path.home()
    except RuntimeError:
        return Path(FALLBACK_TOKEN_FILE)
    return home / TOKEN_DIR_NAME / TOKEN_FILE_NAME


class StoredToken(BaseModel):
    """A cached token and the scopes it was granted for."""

    token: OAuthToken | None = None
    scopes: list[str] = Field(default_factory=list)
    saved_at: datetime | None = None
    expires_at: datetime | None = None

    @field_validator("saved_at", "expires_at", mode="before")
    @classmethod
    def _normalize_before(cls, value: Any) -> Any:
        return normalize_timestamp(value)

    @field_validator("saved_at", "expires_at")
    @classmethod
    def _normalize_after(cls, value: datetime | None) -> datetime | None:
        return normalize_timestamp(value)

    @field_serializer("saved_at", "expires_at")
    def _serialize_timestamps(self, value: datetime | None) -> str:
        return serialize_timestamp(value)

    def is_valid(self, now: datetime | None = None) -> bool:
        """False without a token, or when it expires within EXPIRY_MARGIN."""
        if self.token is None:
            return False
        expiry = self.token.expiry
        if expiry is not None and (now or utcnow()) + EXPIRY_MARGIN >= expiry:
            return False
        return True

    def has_scopes(self, required: Iterable[str]) -> bool:
        """True if every required scope was granted (exact string match)."""
        return set(required).issubset(self.scopes)

    def summary(self, now: datetime | None = None) -> str:
        if self.token is None:
            return "Invalid token"
        status = "Valid" if self.is_valid(now) else "Expired"
        return (
            f"Token saved: {_format_time(self.saved_at)} | Status: {status} | "
            f"Scopes: {len(self.scopes)} | Expires: {_format_time(self.expires_at)}"
        )


def _format_time(value: datetime | None) -> str:
    if value is None:
        return "never"
    return value.astimezone().strftime("%Y-%m-%d %H:%M:%S")


class TokenStorage:
    """Reads and writes the token cache file."""

    def __init__(self, path: str | Path | None = None):
        self.path = Path(path) if path is not None else get_default_token_path()

    def save(self, token: OAuthToken, scopes: Iterable[str]) -> StoredToken:
        """Write the token and its scopes, replacing any previous cache.

        Raises:
            TokenWriteError: If the directory or file cannot be written.
        """
        stored = StoredToken(
            token=token,
            scopes=list(scopes),
            saved_at=utcnow(),
            expires_at=token.expiry,
        )

        directory = self.path.parent
        try:
            directory.mkdir(parents=True, exist_ok=True, mode=0o700)
        except OSError as e:
            raise TokenWriteError(
                f"failed to create directory {directory}: {e}"
            ) from e

        try:
            # Owner-only (0600) from creation; chmod covers an older, wider file
            fd = os.open(self.path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
            with os.fdopen(fd, "w") as f:
                f.write(stored.model_dump_json(indent=2))
            os.chmod(self.path, 0o600)
        except OSError as e:
            raise TokenWriteError(f"failed to write token file: {e}") from e

        logger.debug(f"Token cache written to {self.path}")
        return stored

    def load(self) -> StoredToken:
        """Read the cached token.

        Raises:
            TokenNotFoundError: If there is no cache file.
            TokenParseError: If the file cannot be read or is malformed.
        """
        try:
            data = self.path.read_bytes()
        except FileNotFoundError as e:
            raise TokenNotFoundError(f"token file not found: {self.path}") from e
        except OSError as e:
            raise TokenParseError(f"failed to read token file: {e}") from e

        try:
            return StoredToken.model_validate_json(data)
        except ValidationError as e:
            raise TokenParseError(f"failed to parse token file: {e}") from e

    def exists(self) -> bool:
        return self.path.exists()

    def delete(self) -> bool:
        """Remove the cache file.

        Returns:
            True if a file was removed, False if there was none.

        Raises:
            TokenDeleteError: If the file exists but cannot be removed.
        """
        try:
            self.path.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            raise TokenDeleteError(f"failed to delete token file: {e}") from e
        return True
