import json
from datetime import datetime, timedelta, timezone

from google_auth_wizard.token import ZERO_TIME_TEXT, OAuthToken

NOW = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


class TestFromTokenResponse:
    def test_expires_in_becomes_absolute_expiry(self):
        token = OAuthToken.from_token_response(
            {
                "access_token": "ya29.access",
                "token_type": "Bearer",
                "refresh_token": "1//refresh",
                "expires_in": 3599,
                "scope": "https://www.googleapis.com/auth/drive",
            },
            now=NOW,
        )

        assert token.access_token == "ya29.access"
        assert token.refresh_token == "1//refresh"
        assert token.expiry == NOW + timedelta(seconds=3599)
        assert token.scope == "https://www.googleapis.com/auth/drive"

    def test_without_expires_in_has_no_expiry(self):
        token = OAuthToken.from_token_response({"access_token": "abc"}, now=NOW)

        assert token.expiry is None
        assert token.token_type == "Bearer"
        assert token.is_expired(NOW) is False

    def test_keeps_previous_refresh_token_when_not_rotated(self):
        token = OAuthToken.from_token_response(
            {"access_token": "new", "expires_in": 60},
            now=NOW,
            previous_refresh_token="1//old",
        )

        assert token.refresh_token == "1//old"


def test_zero_time_expiry_means_no_expiry():
    token = OAuthToken.model_validate(
        {"access_token": "abc", "expiry": ZERO_TIME_TEXT}
    )
    assert token.expiry is None


def test_naive_expiry_is_read_as_utc():
    token = OAuthToken(access_token="abc", expiry=datetime(2026, 3, 1, 12, 0, 0))
    assert token.expiry == NOW


def test_serialized_expiry_uses_utc_z_suffix():
    token = OAuthToken(access_token="abc", expiry=NOW)
    data = json.loads(token.model_dump_json())
    assert data["expiry"] == "2026-03-01T12:00:00Z"


def test_missing_expiry_serializes_as_zero_time():
    data = json.loads(OAuthToken(access_token="abc").model_dump_json())
    assert data["expiry"] == ZERO_TIME_TEXT


def test_is_expired():
    token = OAuthToken(access_token="abc", expiry=NOW)
    assert token.is_expired(NOW)
    assert not token.is_expired(NOW - timedelta(seconds=1))


def test_masked_shows_ten_characters():
    token = OAuthToken(access_token="ya29.a0AfH6SMBxyz")
    assert token.masked() == "ya29.a0AfH..."
