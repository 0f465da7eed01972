"""Google Auth Wizard: pick Google API scopes in the terminal and obtain an
OAuth 2.0 token through a local redirect."""

from google_auth_wizard.config import WizardConfig, load_config_with_defaults
from google_auth_wizard.credentials import ClientConfig, load_client_config
from google_auth_wizard.exceptions import WizardError
from google_auth_wizard.oauth import TokenExchanger, get_token_from_local_server
from google_auth_wizard.scopes import ScopeCatalog, ScopeClient, ScopeEntry
from google_auth_wizard.session import Session, SessionResult
from google_auth_wizard.storage import StoredToken, TokenStorage
from google_auth_wizard.token import OAuthToken

__all__ = [
    "ClientConfig",
    "OAuthToken",
    "ScopeCatalog",
    "ScopeClient",
    "ScopeEntry",
    "Session",
    "SessionResult",
    "StoredToken",
    "TokenExchanger",
    "TokenStorage",
    "WizardConfig",
    "WizardError",
    "get_token_from_local_server",
    "load_client_config",
    "load_config_with_defaults",
]
