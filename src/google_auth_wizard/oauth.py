"""OAuth 2.0 authorization-code handshake over a temporary local redirect.

One handshake:
1. Bind an HTTP listener on a free local port and serve ``callback_path``
2. Open the browser at the provider's authorization URL
3. Wait until the callback delivers a token, the callback fails, or the
   deadline passes; whichever happens first decides the outcome
4. Shut the listener down, on every path, exactly once

The callback handler runs on the listener's threads and talks to the waiting
coordinator only through two one-shot futures (token, error).
"""

from __future__ import annotations

import http.server
import logging
import socketserver
import threading
import urllib.parse
import webbrowser
from collections.abc import Callable, Sequence
from concurrent.futures import FIRST_COMPLETED, Future, wait
from dataclasses import dataclass
from typing import Any, Union

import click
import httpx

from google_auth_wizard.config import WizardConfig
from google_auth_wizard.credentials import ClientConfig
from google_auth_wizard.exceptions import (
    CodeExchangeError,
    HandshakeError,
    HandshakeTimeoutError,
    MissingAuthorizationCodeError,
    ServerBindError,
    TokenRefreshError,
)
from google_auth_wizard.log import VERBOSE
from google_auth_wizard.ports import find_available_port
from google_auth_wizard.token import OAuthToken

logger = logging.getLogger(__name__)

STATE_TOKEN = "state-token"
TOKEN_REQUEST_TIMEOUT = 30.0
SERVE_POLL_INTERVAL = 0.1

SUCCESS_HTML = """<!DOCTYPE html>
<html>
<head>
    <title>Authorization Successful</title>
    <style>
        body { font-family: Arial, sans-serif; text-align: center; padding: 50px; }
        .success { color: green; font-size: 24px; margin-bottom: 20px; }
        .info { color: #666; }
    </style>
</head>
<body>
    <div class="success">&#9989; Authorization Successful!</div>
    <div class="info">You can close this window and return to the terminal.</div>
</body>
</html>"""

MISSING_CODE_BODY = "Missing authorization code"
EXCHANGE_FAILED_BODY = "Code exchange failed"
ALREADY_HANDLED_BODY = "Authorization already processed"


@dataclass(frozen=True)
class AuthorizationRequest:
    """What to ask the provider for, and where it should redirect."""

    client: ClientConfig
    scopes: tuple[str, ...]
    redirect_url: str

    @property
    def port(self) -> int:
        port = urllib.parse.urlsplit(self.redirect_url).port
        if port is None:
            raise ValueError(f"redirect URL has no port: {self.redirect_url}")
        return port

    @property
    def callback_path(self) -> str:
        return urllib.parse.urlsplit(self.redirect_url).path or "/"

    def authorization_url(self, state: str = STATE_TOKEN) -> str:
        """Provider authorization URL requesting offline access."""
        params = {
            "access_type": "offline",
            "client_id": self.client.client_id,
            "redirect_uri": self.redirect_url,
            "response_type": "code",
            "scope": " ".join(self.scopes),
            "state": state,
        }
        separator = "&" if "?" in self.client.auth_uri else "?"
        return f"{self.client.auth_uri}{separator}{urllib.parse.urlencode(params)}"


class TokenExchanger:
    """Talks to the provider's token endpoint."""

    def __init__(
        self,
        client: ClientConfig,
        http_client: httpx.Client | None = None,
        timeout: float = TOKEN_REQUEST_TIMEOUT,
    ):
        self.client = client
        self.timeout = timeout
        self._http_client = http_client

    def exchange(self, code: str, redirect_url: str) -> OAuthToken:
        """Exchange an authorization code for a token.

        Raises:
            CodeExchangeError: If the endpoint is unreachable or rejects the code.
        """
        data = {
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": redirect_url,
            "client_id": self.client.client_id,
            "client_secret": self.client.client_secret,
        }
        logger.debug(f"Exchanging authorization code at {self.client.token_uri}")
        return OAuthToken.from_token_response(self._post(data, CodeExchangeError))

    def refresh(self, refresh_token: str) -> OAuthToken:
        """Redeem a refresh token for a new access token.

        Raises:
            TokenRefreshError: If the endpoint is unreachable or refuses.
        """
        data = {
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
            "client_id": self.client.client_id,
            "client_secret": self.client.client_secret,
        }
        logger.debug(f"Refreshing access token at {self.client.token_uri}")
        return OAuthToken.from_token_response(
            self._post(data, TokenRefreshError),
            previous_refresh_token=refresh_token,
        )

    def _post(
        self,
        data: dict[str, str],
        error_cls: type[CodeExchangeError] | type[TokenRefreshError],
    ) -> dict[str, Any]:
        headers = {"Accept": "application/json"}
        try:
            if self._http_client is not None:
                response = self._http_client.post(
                    self.client.token_uri,
                    data=data,
                    headers=headers,
                    timeout=self.timeout,
                )
            else:
                with httpx.Client(timeout=self.timeout) as client:
                    response = client.post(
                        self.client.token_uri, data=data, headers=headers
                    )
        except httpx.HTTPError as e:
            raise error_cls(f"network error: {e}") from e

        try:
            payload = response.json()
        except ValueError:
            payload = None

        if response.status_code >= 400:
            detail = None
            if isinstance(payload, dict):
                detail = payload.get("error_description") or payload.get("error")
            raise error_cls(
                detail or response.text[:200] or None,
                status_code=response.status_code,
            )

        if not isinstance(payload, dict) or not payload.get("access_token"):
            raise error_cls("token endpoint response has no access_token")
        return payload


# --- Handshake outcome ---


@dataclass(frozen=True)
class TokenReceived:
    token: OAuthToken


@dataclass(frozen=True)
class HandshakeFailed:
    error: HandshakeError

    @property
    def kind(self) -> str:
        return self.error.kind


@dataclass(frozen=True)
class HandshakeTimedOut:
    timeout: float


HandshakeOutcome = Union[TokenReceived, HandshakeFailed, HandshakeTimedOut]


def token_from_outcome(outcome: HandshakeOutcome) -> OAuthToken:
    """Unwrap a successful outcome.

    Raises:
        HandshakeError: The failure carried by a failed or timed out outcome.
    """
    if isinstance(outcome, TokenReceived):
        return outcome.token
    if isinstance(outcome, HandshakeFailed):
        raise outcome.error
    raise HandshakeTimeoutError(outcome.timeout)


# --- Callback listener ---


class CallbackState:
    """One-shot signalling between the callback handler and the coordinator.

    At most one callback is accepted, and at most one outcome is decided:
    either by the handler (token or error) or by the coordinator (timeout).
    The timeout cannot be claimed once a callback has been accepted.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._accepted = False
        self._decided = False
        self.token: Future[OAuthToken] = Future()
        self.error: Future[HandshakeError] = Future()

    def accept_callback(self) -> bool:
        with self._lock:
            if self._accepted or self._decided:
                return False
            self._accepted = True
            return True

    def decide(self) -> bool:
        with self._lock:
            if self._decided:
                return False
            self._decided = True
            return True

    def claim_timeout(self) -> bool:
        """Decide on a timeout, unless a callback is already being handled."""
        with self._lock:
            if self._accepted or self._decided:
                return False
            self._decided = True
            return True

    def signal_token(self, token: OAuthToken) -> bool:
        if not self.decide():
            return False
        self.token.set_result(token)
        return True

    def signal_error(self, error: HandshakeError) -> bool:
        if not self.decide():
            return False
        self.error.set_result(error)
        return True


class CallbackServer(http.server.ThreadingHTTPServer):
    """Loopback listener carrying the state its handler needs."""

    def __init__(
        self,
        port: int,
        callback_path: str,
        redirect_url: str,
        exchanger: TokenExchanger,
        host: str = "",
    ):
        self.callback_path = callback_path
        self.redirect_url = redirect_url
        self.exchanger = exchanger
        self.state = CallbackState()
        super().__init__((host, port), CallbackHandler)

    def server_bind(self) -> None:
        # Skip HTTPServer.server_bind, which resolves the FQDN of the address.
        socketserver.TCPServer.server_bind(self)
        self.server_name = "localhost"
        self.server_port = self.server_address[1]


class CallbackHandler(http.server.BaseHTTPRequestHandler):
    """HTTP handler for the OAuth redirect."""

    server: CallbackServer

    def do_GET(self) -> None:
        parsed = urllib.parse.urlsplit(self.path)
        if parsed.path != self.server.callback_path:
            self._respond(404, "404 page not found")
            return

        state = self.server.state
        if not state.accept_callback():
            logger.debug("Ignoring callback received after the handshake was decided")
            self._respond(409, ALREADY_HANDLED_BODY)
            return

        params = urllib.parse.parse_qs(parsed.query)
        code = params.get("code", [""])[0]
        if not code:
            provider_error = params.get("error", [None])[0]
            self._respond(400, MISSING_CODE_BODY)
            state.signal_error(MissingAuthorizationCodeError(provider_error))
            return

        try:
            token = self.server.exchanger.exchange(code, self.server.redirect_url)
        except Exception as e:
            error = e if isinstance(e, CodeExchangeError) else CodeExchangeError(str(e))
            logger.debug(f"Code exchange failed: {error}")
            self._respond(500, EXCHANGE_FAILED_BODY)
            state.signal_error(error)
            return

        self._respond(200, SUCCESS_HTML, content_type="text/html; charset=utf-8")
        state.signal_token(token)

    def _respond(
        self,
        status: int,
        body: str,
        content_type: str = "text/plain; charset=utf-8",
    ) -> None:
        if not content_type.startswith("text/html"):
            body = body + "\n"
        content = body.encode("utf-8")
        try:
            self.send_response(status)
            self.send_header("Content-Type", content_type)
            self.send_header("Content-Length", str(len(content)))
            self.send_header("Connection", "close")
            self.end_headers()
            self.wfile.write(content)
            self.wfile.flush()
        except OSError as e:
            logger.debug(f"Could not write callback response: {e}")

    def log_message(self, format: str, *args: Any) -> None:
        logger.log(VERBOSE, "Callback server: " + format, *args)


def _echo_manual_url(url: str) -> None:
    click.echo(
        f"Unable to open browser automatically. Please open manually: {url}",
        err=True,
    )


class CallbackCoordinator:
    """Runs exactly one authorization-code handshake with a deadline."""

    def __init__(
        self,
        request: AuthorizationRequest,
        exchanger: TokenExchanger,
        timeout: float,
        open_browser: Callable[[str], bool] = webbrowser.open,
        show_url: Callable[[str], None] = _echo_manual_url,
        host: str = "",
    ):
        self.request = request
        self.exchanger = exchanger
        self.timeout = timeout
        self.open_browser = open_browser
        self.show_url = show_url
        self.host = host
        self.server: CallbackServer | None = None
        self._thread: threading.Thread | None = None

    def run(self) -> HandshakeOutcome:
        """Run the handshake and report how it ended.

        Raises:
            ServerBindError: If the listener cannot be started (before any
                browser is opened).
        """
        server = self._start_server()
        try:
            self._launch_browser(self.request.authorization_url())
            outcome = self._wait_for_outcome(server.state)
        finally:
            self._shutdown(server)

        if isinstance(outcome, TokenReceived):
            logger.info("Authorization successful!")
        elif isinstance(outcome, HandshakeFailed):
            logger.debug(f"Authorization failed: {outcome.error}")
        else:
            logger.debug(f"No authorization received within {self.timeout:g}s")
        return outcome

    def _start_server(self) -> CallbackServer:
        port = self.request.port
        try:
            server = CallbackServer(
                port,
                self.request.callback_path,
                self.request.redirect_url,
                self.exchanger,
                host=self.host,
            )
        except OSError as e:
            raise ServerBindError(port, str(e)) from e

        logger.debug(f"Starting OAuth callback server on port {port}...")
        self.server = server
        self._thread = threading.Thread(
            target=server.serve_forever,
            kwargs={"poll_interval": SERVE_POLL_INTERVAL},
            name="oauth-callback-server",
            daemon=True,
        )
        self._thread.start()
        return server

    def _launch_browser(self, url: str) -> None:
        logger.info(f"Opening browser to: {url}")
        try:
            opened = self.open_browser(url)
        except webbrowser.Error as e:
            logger.debug(f"Browser launch failed: {e}")
            opened = False
        if not opened:
            self.show_url(url)

    def _wait_for_outcome(self, state: CallbackState) -> HandshakeOutcome:
        signals = [state.token, state.error]
        done, _ = wait(signals, timeout=self.timeout, return_when=FIRST_COMPLETED)
        if not done:
            if state.claim_timeout():
                return HandshakeTimedOut(self.timeout)
            # A callback was accepted before the deadline; its exchange decides.
            logger.debug("Deadline passed during the code exchange, waiting for it")
            wait(signals, return_when=FIRST_COMPLETED)

        if state.token.done():
            return TokenReceived(state.token.result())
        return HandshakeFailed(state.error.result())

    def _shutdown(self, server: CallbackServer) -> None:
        try:
            server.shutdown()
            server.server_close()
        except Exception as e:
            logger.debug(f"Error shutting down server: {e}")
        if self._thread is not None:
            self._thread.join(timeout=1.0)


def get_token_from_local_server(
    config: WizardConfig,
    client: ClientConfig,
    scopes: Sequence[str],
    exchanger: TokenExchanger | None = None,
    open_browser: Callable[[str], bool] = webbrowser.open,
) -> OAuthToken:
    """Allocate a port, run one handshake and return its token.

    Raises:
        PortAllocationError: If no port in the configured window is free.
        HandshakeError: If the handshake fails or times out.
    """
    port = find_available_port(
        config.server.default_port, config.server.max_port_tries
    )
    redirect_url = f"http://localhost:{port}{config.oauth.callback_path}"
    logger.info(f"Using port {port} for OAuth callback")
    logger.debug(f"Redirect URL: {redirect_url}")

    request = AuthorizationRequest(
        client=client, scopes=tuple(scopes), redirect_url=redirect_url
    )
    coordinator = CallbackCoordinator(
        request,
        exchanger or TokenExchanger(client),
        timeout=config.server.server_timeout.total_seconds(),
        open_browser=open_browser,
    )
    return token_from_outcome(coordinator.run())
