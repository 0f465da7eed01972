"""OAuth token model shared by the handshake and the token cache."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

from pydantic import BaseModel, field_serializer, field_validator

# Timestamp written for "no expiry", matching the zero time of Go's
# golang.org/x/oauth2 token files.
ZERO_TIME = datetime(1, 1, 1, tzinfo=timezone.utc)
ZERO_TIME_TEXT = "0001-01-01T00:00:00Z"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def normalize_timestamp(value: Any) -> Any:
    """Map the zero time to None and make naive datetimes UTC."""
    if value is None or value == "" or value == ZERO_TIME_TEXT:
        return None
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        if value.year == 1:
            return None
    return value


def serialize_timestamp(value: datetime | None) -> str:
    if value is None:
        return ZERO_TIME_TEXT
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


class OAuthToken(BaseModel):
    """Access/refresh token pair as returned by the token endpoint.

    Attributes:
        access_token: Bearer token for API calls.
        token_type: Usually "Bearer".
        refresh_token: Long-lived token for refresh (offline access only).
        expiry: Absolute expiry time, or None when the provider sent none.
        scope: Space separated scopes granted by the provider, if reported.
    """

    access_token: str
    token_type: str = "Bearer"
    refresh_token: str | None = None
    expiry: datetime | None = None
    scope: str | None = None

    @field_validator("expiry", mode="before")
    @classmethod
    def _normalize_expiry(cls, value: Any) -> Any:
        return normalize_timestamp(value)

    @field_validator("expiry")
    @classmethod
    def _expiry_is_utc(cls, value: datetime | None) -> datetime | None:
        return normalize_timestamp(value)

    @field_serializer("expiry")
    def _serialize_expiry(self, value: datetime | None) -> str:
        return serialize_timestamp(value)

    @classmethod
    def from_token_response(
        cls,
        data: dict[str, Any],
        now: datetime | None = None,
        previous_refresh_token: str | None = None,
    ) -> OAuthToken:
        """Build a token from a token endpoint JSON response.

        ``expires_in`` (seconds) is converted to an absolute expiry. When the
        provider does not rotate the refresh token, ``previous_refresh_token``
        is kept.
        """
        now = now or utcnow()
        expiry = None
        expires_in = data.get("expires_in")
        if expires_in:
            expiry = now + timedelta(seconds=int(expires_in))
        return cls(
            access_token=data["access_token"],
            token_type=data.get("token_type") or "Bearer",
            refresh_token=data.get("refresh_token") or previous_refresh_token,
            expiry=expiry,
            scope=data.get("scope"),
        )

    def is_expired(self, now: datetime | None = None) -> bool:
        if self.expiry is None:
            return False
        return (now or utcnow()) >= self.expiry

    def masked(self, visible: int = 10) -> str:
        """The first characters of the access token, for display."""
        return self.access_token[:visible] + "..."
