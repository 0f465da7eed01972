import json
import stat
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from unittest import mock

import pytest

from google_auth_wizard.exceptions import (
    TokenDeleteError,
    TokenNotFoundError,
    TokenParseError,
    TokenWriteError,
)
from google_auth_wizard.storage import (
    StoredToken,
    TokenStorage,
    get_default_token_path,
)
from google_auth_wizard.token import OAuthToken

from .conftest import DRIVE, GMAIL_READONLY, GMAIL_SEND

NOW = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)

posix_only = pytest.mark.skipif(
    sys.platform == "win32", reason="POSIX file permissions"
)


def _stored(expiry: datetime | None, scopes=(GMAIL_READONLY,)) -> StoredToken:
    return StoredToken(
        token=OAuthToken(access_token="abc", refresh_token="r", expiry=expiry),
        scopes=list(scopes),
        saved_at=NOW,
        expires_at=expiry,
    )


def test_default_token_path():
    with mock.patch("pathlib.Path.home", return_value=Path("/home/user")):
        assert get_default_token_path() == Path(
            "/home/user/.google-auth-wizard/token.json"
        )


class TestSaveLoad:
    def test_round_trip(self, token_storage: TokenStorage):
        token = OAuthToken(
            access_token="ya29.access",
            refresh_token="1//refresh",
            expiry=NOW + timedelta(hours=1),
        )
        token_storage.save(token, [GMAIL_READONLY, DRIVE])

        loaded = token_storage.load()
        assert loaded.token == token
        assert loaded.scopes == [GMAIL_READONLY, DRIVE]
        assert loaded.expires_at == token.expiry
        assert loaded.saved_at is not None

    def test_file_layout(self, token_storage: TokenStorage):
        token_storage.save(OAuthToken(access_token="abc"), [DRIVE])

        text = token_storage.path.read_text()
        data = json.loads(text)
        assert set(data) == {"token", "scopes", "saved_at", "expires_at"}
        assert data["token"]["access_token"] == "abc"
        assert data["token"]["expiry"] == "0001-01-01T00:00:00Z"
        assert data["expires_at"] == "0001-01-01T00:00:00Z"
        # pretty-printed
        assert "\n  " in text

    @posix_only
    def test_permissions(self, token_storage: TokenStorage):
        token_storage.save(OAuthToken(access_token="abc"), [])

        assert stat.S_IMODE(token_storage.path.stat().st_mode) == 0o600
        assert stat.S_IMODE(token_storage.path.parent.stat().st_mode) == 0o700

    @posix_only
    def test_new_file_is_created_owner_only(self, token_storage: TokenStorage):
        with mock.patch("os.chmod"):
            token_storage.save(OAuthToken(access_token="abc"), [])

        assert stat.S_IMODE(token_storage.path.stat().st_mode) == 0o600

    @posix_only
    def test_wider_existing_file_is_narrowed(self, token_storage: TokenStorage):
        token_storage.path.parent.mkdir(parents=True)
        token_storage.path.write_text("{}")
        token_storage.path.chmod(0o644)

        token_storage.save(OAuthToken(access_token="abc"), [])

        assert stat.S_IMODE(token_storage.path.stat().st_mode) == 0o600

    def test_save_overwrites(self, token_storage: TokenStorage):
        token_storage.save(OAuthToken(access_token="first"), [DRIVE])
        token_storage.save(OAuthToken(access_token="second"), [GMAIL_SEND])

        loaded = token_storage.load()
        assert loaded.token is not None
        assert loaded.token.access_token == "second"
        assert loaded.scopes == [GMAIL_SEND]

    def test_save_into_unwritable_location(self, tmp_path: Path):
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")
        storage = TokenStorage(blocker / "token.json")

        with pytest.raises(TokenWriteError):
            storage.save(OAuthToken(access_token="abc"), [])

    def test_load_missing(self, token_storage: TokenStorage):
        assert token_storage.exists() is False
        with pytest.raises(TokenNotFoundError):
            token_storage.load()

    def test_load_malformed(self, token_storage: TokenStorage):
        token_storage.path.parent.mkdir(parents=True)
        token_storage.path.write_text("{not json")

        with pytest.raises(TokenParseError):
            token_storage.load()

    def test_load_go_zero_time(self, token_storage: TokenStorage):
        token_storage.path.parent.mkdir(parents=True)
        token_storage.path.write_text(
            json.dumps(
                {
                    "token": {
                        "access_token": "abc",
                        "token_type": "Bearer",
                        "refresh_token": "r",
                        "expiry": "0001-01-01T00:00:00Z",
                    },
                    "scopes": [DRIVE],
                    "saved_at": "2026-03-01T12:00:00Z",
                    "expires_at": "0001-01-01T00:00:00Z",
                }
            )
        )

        loaded = token_storage.load()
        assert loaded.token is not None
        assert loaded.token.expiry is None
        assert loaded.expires_at is None
        assert loaded.saved_at == NOW
        assert loaded.is_valid(NOW)


class TestDelete:
    def test_delete_existing(self, token_storage: TokenStorage):
        token_storage.save(OAuthToken(access_token="abc"), [])

        assert token_storage.delete() is True
        assert token_storage.exists() is False

    def test_delete_missing_is_noop(self, token_storage: TokenStorage):
        assert token_storage.delete() is False

    def test_delete_failure(self, token_storage: TokenStorage):
        with mock.patch.object(Path, "unlink", side_effect=PermissionError("denied")):
            with pytest.raises(TokenDeleteError):
                token_storage.delete()


class TestIsValid:
    def test_no_token(self):
        assert StoredToken(scopes=[DRIVE]).is_valid(NOW) is False

    def test_no_expiry(self):
        assert _stored(None).is_valid(NOW) is True

    def test_far_from_expiry(self):
        assert _stored(NOW + timedelta(hours=1)).is_valid(NOW) is True

    def test_expires_within_margin(self):
        assert _stored(NOW + timedelta(minutes=4)).is_valid(NOW) is False

    def test_expires_exactly_at_margin(self):
        assert _stored(NOW + timedelta(minutes=5)).is_valid(NOW) is False

    def test_just_outside_margin(self):
        expiry = NOW + timedelta(minutes=5, seconds=1)
        assert _stored(expiry).is_valid(NOW) is True

    def test_already_expired(self):
        assert _stored(NOW - timedelta(minutes=1)).is_valid(NOW) is False


class TestHasScopes:
    def test_empty_request_is_covered(self):
        assert _stored(None, scopes=()).has_scopes([]) is True

    def test_subset(self):
        stored = _stored(None, scopes=(GMAIL_READONLY, DRIVE))
        assert stored.has_scopes([DRIVE]) is True
        assert stored.has_scopes([DRIVE, GMAIL_READONLY]) is True

    def test_missing_scope(self):
        stored = _stored(None, scopes=(GMAIL_READONLY,))
        assert stored.has_scopes([GMAIL_READONLY, DRIVE]) is False

    def test_exact_match_only(self):
        stored = _stored(None, scopes=("https://www.googleapis.com/auth/gmail",))
        assert stored.has_scopes([GMAIL_READONLY]) is False


def test_summary():
    stored = _stored(NOW + timedelta(hours=1), scopes=(DRIVE, GMAIL_SEND))
    summary = stored.summary(NOW)

    assert "Status: Valid" in summary
    assert "Scopes: 2" in summary
    assert _stored(NOW).summary(NOW).count("Expired") == 1
    assert StoredToken().summary() == "Invalid token"
