"""One wizard session: catalog, selection, cache check, handshake, save.

    session = Session(config, client)
    result = session.run()
    result.token.access_token
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field

from google_auth_wizard.config import WizardConfig
from google_auth_wizard.credentials import ClientConfig
from google_auth_wizard.exceptions import (
    CacheError,
    NoScopesSelectedError,
    TokenRefreshError,
)
from google_auth_wizard.oauth import TokenExchanger, get_token_from_local_server
from google_auth_wizard.scopes import ScopeCatalog, ScopeClient
from google_auth_wizard.storage import StoredToken, TokenStorage
from google_auth_wizard.terminal.app import Terminal
from google_auth_wizard.terminal.items import SelectionItem
from google_auth_wizard.terminal.selector import SelectionResult
from google_auth_wizard.token import OAuthToken

logger = logging.getLogger(__name__)

SELECTOR_TITLE = "Select Google Scopes OAuth 2.0"

SelectorFn = Callable[[str, Sequence[SelectionItem]], SelectionResult]
HandshakeFn = Callable[[WizardConfig, ClientConfig, Sequence[str]], OAuthToken]


@dataclass(frozen=True)
class SessionResult:
    """Token handed back to the user.

    Attributes:
        token: The token, cached or freshly obtained.
        scopes: The scopes the user selected, in selection order.
        reused: True if the cached token was returned as-is.
        refreshed: True if the cached refresh token was redeemed.
    """

    token: OAuthToken
    scopes: list[str] = field(default_factory=list)
    reused: bool = False
    refreshed: bool = False


class Session:
    """Sequences the wizard components for one run."""

    def __init__(
        self,
        config: WizardConfig,
        client: ClientConfig,
        storage: TokenStorage | None = None,
        scope_client: ScopeClient | None = None,
        selector: SelectorFn | None = None,
        handshake: HandshakeFn | None = None,
        exchanger: TokenExchanger | None = None,
        force_new: bool = False,
    ):
        self.config = config
        self.client = client
        self.storage = storage or TokenStorage()
        self.scope_client = scope_client or ScopeClient.from_config(config.oauth)
        self.selector = selector or Terminal(height=config.terminal.height).run
        self.exchanger = exchanger or TokenExchanger(client)
        self.handshake = handshake or self._local_server_handshake
        self.force_new = force_new

    def run(self) -> SessionResult:
        """Run the whole session.

        Raises:
            ScopeFetchError: If the scope catalog cannot be fetched.
            SelectorError: If the selector cannot run.
            NoScopesSelectedError: If the user quit or confirmed nothing.
            PortAllocationError: If no callback port is free.
            HandshakeError: If the handshake fails or times out.
        """
        catalog = self.fetch_catalog()
        scopes = self.select_scopes(catalog)
        return self.obtain_token(scopes)

    def fetch_catalog(self) -> ScopeCatalog:
        logger.debug(f"Fetching Google scopes from {self.scope_client.url}")
        return self.scope_client.fetch_scopes()

    def select_scopes(self, catalog: ScopeCatalog) -> list[str]:
        items = catalog.to_selection_items()
        logger.info("Starting scope selection interface...")
        result = self.selector(SELECTOR_TITLE, items)
        if not result.validated or not result.scopes:
            raise NoScopesSelectedError()
        return list(result.scopes)

    def obtain_token(self, scopes: Sequence[str]) -> SessionResult:
        """Reuse, refresh or newly obtain a token covering ``scopes``."""
        scopes = list(scopes)
        cached = None
        if self.force_new:
            logger.debug("Force new token requested, ignoring saved tokens")
        else:
            cached = self.load_cached()

        if cached is not None and cached.token is not None:
            if cached.is_valid() and cached.has_scopes(scopes):
                logger.info("Using existing valid token")
                return SessionResult(token=cached.token, scopes=scopes, reused=True)
            logger.debug("Stored token is invalid or missing required scopes")

            refresh_token = cached.token.refresh_token
            if refresh_token and self._should_refresh(cached, scopes):
                token = self._try_refresh(refresh_token)
                if token is not None:
                    self._save(token, cached.scopes)
                    return SessionResult(token=token, scopes=scopes, refreshed=True)

        logger.info("Obtaining new OAuth token...")
        token = self.handshake(self.config, self.client, scopes)
        self._save(token, scopes)
        return SessionResult(token=token, scopes=scopes)

    def load_cached(self) -> StoredToken | None:
        if not self.storage.exists():
            return None
        logger.debug("Found existing token file, checking validity...")
        try:
            return self.storage.load()
        except CacheError as e:
            logger.debug(f"Failed to load stored token: {e}")
            return None

    def _should_refresh(self, cached: StoredToken, scopes: Sequence[str]) -> bool:
        return self.config.oauth.refresh_expired and cached.has_scopes(scopes)

    def _try_refresh(self, refresh_token: str) -> OAuthToken | None:
        logger.info("Refreshing expiring token...")
        try:
            return self.exchanger.refresh(refresh_token)
        except TokenRefreshError as e:
            logger.info(f"Token refresh failed ({e}), starting a new authorization")
            return None

    def _save(self, token: OAuthToken, scopes: Sequence[str]) -> None:
        try:
            self.storage.save(token, scopes)
        except CacheError as e:
            logger.error(f"Failed to save token: {e}")
            return
        logger.info(f"Token saved to {self.storage.path}")

    def _local_server_handshake(
        self, config: WizardConfig, client: ClientConfig, scopes: Sequence[str]
    ) -> OAuthToken:
        logger.info("Starting OAuth flow...")
        return get_token_from_local_server(
            config, client, scopes, exchanger=self.exchanger
        )


def refresh_stored_token(
    storage: TokenStorage, exchanger: TokenExchanger
) -> StoredToken:
    """Redeem the cached refresh token and overwrite the cache.

    Raises:
        CacheError: If the cache cannot be read or written.
        TokenRefreshError: If there is no refresh token or the provider
            refuses it.
    """
    stored = storage.load()
    if stored.token is None or not stored.token.refresh_token:
        raise TokenRefreshError("no refresh token in the token cache")
    token = exchanger.refresh(stored.token.refresh_token)
    return storage.save(token, stored.scopes)
