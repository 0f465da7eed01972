import logging
import typing
from pathlib import Path

import pytest

from google_auth_wizard.credentials import ClientConfig
from google_auth_wizard.log import LOGGER_NAME
from google_auth_wizard.scopes import ScopeCatalog, ScopeEntry
from google_auth_wizard.storage import TokenStorage
from google_auth_wizard.testing import cleared_wizard_env_vars

GMAIL_READONLY = "https://www.googleapis.com/auth/gmail.readonly"
GMAIL_SEND = "https://www.googleapis.com/auth/gmail.send"
DRIVE = "https://www.googleapis.com/auth/drive"


@pytest.fixture(scope="function", autouse=True)
def cleared_google_auth_wizard_env_vars() -> typing.Generator[None, None, None]:
    """Clear GOOGLE_AUTH_WIZARD_* environment variables during the test."""
    with cleared_wizard_env_vars():
        yield


@pytest.fixture(scope="function", autouse=True)
def reset_package_logger() -> typing.Generator[None, None, None]:
    """Undo handlers and propagation set by configure_logging."""
    logger = logging.getLogger(LOGGER_NAME)
    yield
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)
    logger.propagate = True


@pytest.fixture
def client_config() -> ClientConfig:
    return ClientConfig(
        client_id="test-client-id.apps.googleusercontent.com",
        client_secret="test-client-secret",
        auth_uri="https://accounts.example.com/o/oauth2/auth",
        token_uri="https://oauth2.example.com/token",
    )


@pytest.fixture
def token_storage(tmp_path: Path) -> TokenStorage:
    return TokenStorage(tmp_path / ".google-auth-wizard" / "token.json")


@pytest.fixture
def sample_catalog() -> ScopeCatalog:
    return ScopeCatalog(
        {
            "Gmail": [
                ScopeEntry(url=GMAIL_SEND, description="Send email on your behalf"),
                ScopeEntry(url=GMAIL_READONLY, description="Read"),
            ],
            "Drive": [ScopeEntry(url=DRIVE, description="Full access")],
            "Empty": [],
        }
    )
