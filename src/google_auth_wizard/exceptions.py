"""Google Auth Wizard exceptions.

This module provides the error taxonomy shared by all components, with clear
error messages that can be propagated to CLI output.
"""


class WizardError(Exception):
    """Base exception for all Google Auth Wizard errors."""

    pass


class ConfigurationError(WizardError):
    """Configuration file or value is invalid."""

    pass


class CredentialsError(WizardError):
    """OAuth client credentials could not be read or parsed."""

    pass


class ScopeFetchError(WizardError):
    """The remote scope catalog is unreachable or malformed.

    Attributes:
        status_code: HTTP status code (if available)
    """

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        if status_code:
            message = f"{message} (HTTP {status_code})"
        super().__init__(message)


class PortAllocationError(WizardError):
    """No free local port was found in the search window."""

    def __init__(self, start: int, max_tries: int):
        self.start = start
        self.max_tries = max_tries
        super().__init__(
            f"no available port found in range {start}-{start + max_tries - 1}"
        )


# --- Handshake ---


class HandshakeError(WizardError):
    """An authorization-code handshake failed.

    Attributes:
        kind: Short machine-readable failure kind.
        detail: Optional detail (provider error, underlying cause).
    """

    kind = "handshake_failed"

    def __init__(self, message: str, detail: str | None = None):
        self.detail = detail
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class MissingAuthorizationCodeError(HandshakeError):
    """The callback request carried no authorization code."""

    kind = "missing_authorization_code"

    def __init__(self, detail: str | None = None):
        super().__init__("missing authorization code", detail)


class CodeExchangeError(HandshakeError):
    """The token endpoint rejected the authorization code.

    Attributes:
        status_code: HTTP status code of the token endpoint (if available)
    """

    kind = "code_exchange_failed"

    def __init__(self, detail: str | None = None, status_code: int | None = None):
        self.status_code = status_code
        super().__init__("code exchange failed", detail)


class TokenRefreshError(HandshakeError):
    """The token endpoint refused to redeem the refresh token.

    Attributes:
        status_code: HTTP status code of the token endpoint (if available)
    """

    kind = "refresh_failed"

    def __init__(self, detail: str | None = None, status_code: int | None = None):
        self.status_code = status_code
        super().__init__("token refresh failed", detail)


class HandshakeTimeoutError(HandshakeError):
    """No callback arrived before the deadline."""

    kind = "timeout"

    def __init__(self, timeout: float):
        self.timeout = timeout
        super().__init__(
            f"timeout: authorization not received within {timeout:g}s"
        )


class ServerBindError(HandshakeError):
    """The local callback listener could not be started."""

    kind = "server_bind_failed"

    def __init__(self, port: int, detail: str | None = None):
        self.port = port
        super().__init__(f"could not start callback server on port {port}", detail)


# --- Token cache ---


class CacheError(WizardError):
    """Token cache operation failed."""

    pass


class TokenNotFoundError(CacheError):
    """No token cache file exists."""

    pass


class TokenParseError(CacheError):
    """The token cache file is unreadable or malformed."""

    pass


class TokenWriteError(CacheError):
    """The token cache file could not be written."""

    pass


class TokenDeleteError(CacheError):
    """The token cache file could not be deleted."""

    pass


# --- Selection ---


class SelectorError(WizardError):
    """The terminal selector could not run."""

    pass


class NoScopesSelectedError(WizardError):
    """The user finished the selector without confirming any scope."""

    def __init__(self) -> None:
        super().__init__(
            "no OAuth scopes selected. Please run the application again and "
            "select at least one scope to proceed with authentication"
        )
