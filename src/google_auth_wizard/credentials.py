"""OAuth client credentials for Google Auth Wizard.

Reads the client secret JSON downloaded from the Google Cloud Console. Both
the "installed" (desktop) and "web" layouts are accepted:

    {"installed": {"client_id": "...", "client_secret": "...",
                   "auth_uri": "...", "token_uri": "...", ...}}
"""

import json
from pathlib import Path

from pydantic import BaseModel, ConfigDict, ValidationError

from google_auth_wizard.exceptions import CredentialsError

GOOGLE_AUTH_URI = "https://accounts.google.com/o/oauth2/auth"
GOOGLE_TOKEN_URI = "https://oauth2.googleapis.com/token"

CLIENT_TYPES = ("installed", "web")


class ClientConfig(BaseModel):
    """OAuth client identity and provider endpoints."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    client_id: str
    client_secret: str
    auth_uri: str = GOOGLE_AUTH_URI
    token_uri: str = GOOGLE_TOKEN_URI
    redirect_uris: tuple[str, ...] = ()

    @classmethod
    def from_json(cls, data: bytes | str) -> "ClientConfig":
        """Parse a Google client secret document.

        Raises:
            CredentialsError: If the document is not JSON, has neither an
                "installed" nor a "web" section, or lacks client id/secret.
        """
        try:
            document = json.loads(data)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise CredentialsError(f"invalid client secret JSON: {e}") from e

        if not isinstance(document, dict):
            raise CredentialsError("invalid client secret JSON: expected an object")

        section = next(
            (document[key] for key in CLIENT_TYPES if key in document), None
        )
        if not isinstance(section, dict):
            raise CredentialsError(
                "client secret JSON must contain an 'installed' or 'web' section"
            )

        try:
            return cls.model_validate(section)
        except ValidationError as e:
            missing = ", ".join(
                str(err["loc"][0]) for err in e.errors() if err.get("loc")
            )
            raise CredentialsError(
                f"client secret JSON is missing required fields: {missing}"
            ) from e


def read_credentials(path: str | Path) -> bytes:
    """Read the raw client secret file.

    Raises:
        CredentialsError: If the file cannot be read.
    """
    try:
        return Path(path).read_bytes()
    except OSError as e:
        raise CredentialsError(f"unable to read client secret file: {e}") from e


def load_client_config(path: str | Path) -> ClientConfig:
    """Read and parse the client secret file."""
    return ClientConfig.from_json(read_credentials(path))
