"""Configuration for Google Auth Wizard.

Configuration is loaded from the following sources, highest priority first:
1. Environment variables (GOOGLE_AUTH_WIZARD_*)
2. YAML config file (config.yaml in the working directory by default)
3. Defaults

A missing config file is created with commented defaults. A config file that
cannot be read or parsed is reported and replaced by the defaults; invalid
environment values are ignored.

Usage:
    from google_auth_wizard.config import load_config_with_defaults

    config = load_config_with_defaults("config.yaml")
    print(config.server.default_port)
"""

from __future__ import annotations

import logging
import re
from datetime import timedelta
from pathlib import Path
from typing import Annotated, Any

import yaml
from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    PlainSerializer,
    TypeAdapter,
    ValidationError,
)
from pydantic.alias_generators import to_camel
from pydantic_settings import BaseSettings, SettingsConfigDict

from google_auth_wizard.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

# --- Constants ---

ENV_PREFIX = "GOOGLE_AUTH_WIZARD_"
DEFAULT_CONFIG_FILE = "config.yaml"

DEFAULT_PORT = 8080
DEFAULT_MAX_PORT_TRIES = 10
DEFAULT_SERVER_TIMEOUT = timedelta(minutes=5)
DEFAULT_CALLBACK_PATH = "/callback"
DEFAULT_PLAYGROUND_URL = "https://developers.google.com/oauthplayground"
DEFAULT_SCOPE_ENDPOINT = "getScopes"
DEFAULT_SCOPE_TIMEOUT = timedelta(seconds=60)
DEFAULT_TERMINAL_HEIGHT = 20

DEFAULT_CONFIG_TEMPLATE = """\
# Google Auth Wizard Configuration
# This file contains the configuration settings for the Google Auth Wizard application

server:
  # Default port for the OAuth callback server
  defaultPort: 8080

  # Maximum number of ports to try if the default port is busy
  maxPortTries: 10

  # Timeout for the OAuth callback server (format: 5m, 300s, etc.)
  serverTimeout: 5m0s

oauth:
  # OAuth callback path
  callbackPath: /callback

  # Google OAuth playground URL for fetching scopes
  oauthPlaygroundURL: https://developers.google.com/oauthplayground

  # Endpoint for fetching scopes
  scopeEndpoint: getScopes

  # Timeout for scope fetching requests (format: 60s, 1m, etc.)
  scopeTimeout: 1m0s

  # Redeem the cached refresh token instead of a new handshake when the
  # cached access token is about to expire
  refreshExpired: false

terminal:
  # Terminal interface height (number of lines available to the list)
  height: 20
"""


# --- Durations ---

_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ns|us|µs|ms|s|m|h)")
_DURATION_STRING = re.compile(r"(?:\d+(?:\.\d+)?(?:ns|us|µs|ms|s|m|h))+")
_NUMBER = re.compile(r"\d+(?:\.\d+)?")
_DURATION_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}


def parse_duration(value: Any) -> Any:
    """Parse Go-style duration strings ("5m", "1m30s", "100ms") into timedelta.

    Numbers are taken as seconds. Anything else is handed to pydantic's own
    timedelta parsing (e.g. ISO-8601 "PT5M").
    """
    if isinstance(value, timedelta):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return timedelta(seconds=value)
    if isinstance(value, str):
        text = value.strip()
        if _NUMBER.fullmatch(text):
            return timedelta(seconds=float(text))
        if _DURATION_STRING.fullmatch(text):
            seconds = sum(
                float(number) * _DURATION_UNITS[unit]
                for number, unit in _DURATION_PART.findall(text)
            )
            return timedelta(seconds=seconds)
    return value


def format_duration(value: timedelta) -> str:
    """Format a timedelta the way the config file writes durations ("5m0s")."""
    total = value.total_seconds()
    if total < 1 and total > 0:
        return f"{total * 1000:g}ms"
    hours, rest = divmod(int(total), 3600)
    minutes, seconds = divmod(rest, 60)
    if hours:
        return f"{hours}h{minutes}m{seconds}s"
    if minutes:
        return f"{minutes}m{seconds}s"
    return f"{seconds}s"


Duration = Annotated[
    timedelta,
    BeforeValidator(parse_duration),
    PlainSerializer(format_duration, return_type=str),
]


# --- Pydantic Config Models ---


class _Section(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="ignore"
    )


class ServerConfig(_Section):
    """Callback server settings.

    Attributes:
        default_port: First port tried for the OAuth callback listener.
        max_port_tries: Size of the port search window.
        server_timeout: Deadline for one authorization handshake.
    """

    default_port: int = DEFAULT_PORT
    max_port_tries: int = DEFAULT_MAX_PORT_TRIES
    server_timeout: Duration = DEFAULT_SERVER_TIMEOUT


class OAuthConfig(_Section):
    """OAuth and scope catalog settings.

    Attributes:
        callback_path: Path of the local redirect endpoint.
        oauth_playground_url: Base URL of the scope catalog.
        scope_endpoint: Catalog endpoint relative to the base URL.
        scope_timeout: Timeout for fetching the catalog.
        refresh_expired: Redeem the cached refresh token when the cached
            access token covers the scopes but is about to expire.
    """

    callback_path: str = DEFAULT_CALLBACK_PATH
    oauth_playground_url: str = Field(
        default=DEFAULT_PLAYGROUND_URL, alias="oauthPlaygroundURL"
    )
    scope_endpoint: str = DEFAULT_SCOPE_ENDPOINT
    scope_timeout: Duration = DEFAULT_SCOPE_TIMEOUT
    refresh_expired: bool = False


class TerminalConfig(_Section):
    """Terminal UI settings."""

    height: int = DEFAULT_TERMINAL_HEIGHT


class WizardConfig(_Section):
    """Unified Google Auth Wizard configuration."""

    server: ServerConfig = Field(default_factory=ServerConfig)
    oauth: OAuthConfig = Field(default_factory=OAuthConfig)
    terminal: TerminalConfig = Field(default_factory=TerminalConfig)


class WizardSettings(BaseSettings):
    """Raw environment overrides read from GOOGLE_AUTH_WIZARD_* variables.

    Values are kept as strings so that an invalid override can be ignored
    instead of failing the whole load.
    """

    port: str | None = None
    max_port_tries: str | None = None
    server_timeout: str | None = None
    callback_path: str | None = None
    playground_url: str | None = None
    scope_endpoint: str | None = None
    scope_timeout: str | None = None
    terminal_height: str | None = None
    refresh_expired: str | None = None

    debug: str | None = None
    verbose: str | None = None
    silent: str | None = None
    force_new: str | None = None

    model_config = SettingsConfigDict(env_prefix=ENV_PREFIX, extra="ignore")

    @staticmethod
    def is_enabled(value: str | None) -> bool:
        return (value or "").strip().lower() in ("true", "1")


# --- Config loading ---


def get_default_config() -> WizardConfig:
    """Get a config holding only the defaults."""
    return WizardConfig()


def create_default_config_file(path: str | Path) -> None:
    """Write the commented default config file.

    Raises:
        ConfigurationError: If the file cannot be written.
    """
    try:
        Path(path).write_text(DEFAULT_CONFIG_TEMPLATE)
    except OSError as e:
        raise ConfigurationError(f"error writing config file: {e}") from e


def config_exists(path: str | Path) -> bool:
    return Path(path).exists()


def load_config(path: str | Path) -> WizardConfig:
    """Load the YAML config file, without defaults fallback or env overrides.

    Raises:
        ConfigurationError: If the file cannot be read or parsed.
    """
    try:
        text = Path(path).read_text()
    except OSError as e:
        raise ConfigurationError(f"error reading config file: {e}") from e

    try:
        data = yaml.safe_load(text) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"error parsing config file: {e}") from e

    if not isinstance(data, dict):
        raise ConfigurationError("error parsing config file: expected a mapping")

    try:
        return WizardConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"error parsing config file: {e}") from e


def load_config_with_defaults(
    path: str | Path = DEFAULT_CONFIG_FILE,
    settings: WizardSettings | None = None,
) -> WizardConfig:
    """Load configuration, falling back to defaults on any file problem.

    Args:
        path: YAML config file. Created with defaults when missing.
        settings: Environment overrides. Read from the environment if None.

    Returns:
        Fully resolved WizardConfig.
    """
    path = Path(path)
    if not path.exists():
        logger.info(f"Config file '{path}' not found, creating default configuration")
        try:
            create_default_config_file(path)
        except ConfigurationError as e:
            logger.warning(
                f"Could not create config file ({e}), using in-memory defaults"
            )
            return apply_environment_overrides(get_default_config(), settings)
        logger.info(f"Default config file created at '{path}'")

    try:
        config = load_config(path)
    except ConfigurationError as e:
        logger.warning(f"Could not load config file ({e}), using defaults")
        config = get_default_config()

    return apply_environment_overrides(config, settings)


def validate_config(config: WizardConfig) -> None:
    """Check value ranges.

    Raises:
        ConfigurationError: On the first invalid value.
    """
    if config.server.default_port <= 0 or config.server.default_port > 65535:
        raise ConfigurationError(
            f"invalid default port: {config.server.default_port} "
            "(must be between 1 and 65535)"
        )
    if config.server.max_port_tries <= 0:
        raise ConfigurationError(
            f"invalid maxPortTries: {config.server.max_port_tries} "
            "(must be greater than 0)"
        )
    if config.server.server_timeout <= timedelta(0):
        raise ConfigurationError(
            f"invalid serverTimeout: {config.server.server_timeout} "
            "(must be greater than 0)"
        )
    if config.oauth.scope_timeout <= timedelta(0):
        raise ConfigurationError(
            f"invalid scopeTimeout: {config.oauth.scope_timeout} "
            "(must be greater than 0)"
        )
    if not config.oauth.callback_path:
        raise ConfigurationError("callbackPath cannot be empty")
    if not config.oauth.oauth_playground_url:
        raise ConfigurationError("oauthPlaygroundURL cannot be empty")
    if not config.oauth.scope_endpoint:
        raise ConfigurationError("scopeEndpoint cannot be empty")


def load_config_with_validation(
    path: str | Path = DEFAULT_CONFIG_FILE,
    settings: WizardSettings | None = None,
) -> WizardConfig:
    """Load configuration with defaults, then validate it.

    Raises:
        ConfigurationError: If the resolved configuration is invalid.
    """
    config = load_config_with_defaults(path, settings)
    try:
        validate_config(config)
    except ConfigurationError as e:
        raise ConfigurationError(f"config validation failed: {e}") from e
    return config


def _parse_positive_int(value: str, upper: int | None = None) -> int | None:
    try:
        number = int(value)
    except ValueError:
        return None
    if number <= 0 or (upper is not None and number > upper):
        return None
    return number


_DURATION_ADAPTER: TypeAdapter[timedelta] = TypeAdapter(Duration)


def _parse_env_duration(value: str) -> timedelta | None:
    try:
        return _DURATION_ADAPTER.validate_python(value)
    except ValidationError:
        return None


def apply_environment_overrides(
    config: WizardConfig, settings: WizardSettings | None = None
) -> WizardConfig:
    """Return a copy of ``config`` with valid GOOGLE_AUTH_WIZARD_* overrides applied."""
    settings = settings or WizardSettings()
    server = config.server.model_copy()
    oauth = config.oauth.model_copy()
    terminal = config.terminal.model_copy()

    def ignored(name: str, value: str) -> None:
        logger.debug(f"Ignoring invalid {ENV_PREFIX}{name}={value!r}")

    if settings.port:
        port = _parse_positive_int(settings.port, upper=65535)
        if port is None:
            ignored("PORT", settings.port)
        else:
            server.default_port = port

    if settings.max_port_tries:
        tries = _parse_positive_int(settings.max_port_tries)
        if tries is None:
            ignored("MAX_PORT_TRIES", settings.max_port_tries)
        else:
            server.max_port_tries = tries

    if settings.server_timeout:
        timeout = _parse_env_duration(settings.server_timeout)
        if timeout is None:
            ignored("SERVER_TIMEOUT", settings.server_timeout)
        else:
            server.server_timeout = timeout

    if settings.callback_path:
        if settings.callback_path.startswith("/"):
            oauth.callback_path = settings.callback_path
        else:
            ignored("CALLBACK_PATH", settings.callback_path)

    if settings.playground_url:
        if settings.playground_url.startswith("http"):
            oauth.oauth_playground_url = settings.playground_url
        else:
            ignored("PLAYGROUND_URL", settings.playground_url)

    if settings.scope_endpoint:
        oauth.scope_endpoint = settings.scope_endpoint

    if settings.scope_timeout:
        timeout = _parse_env_duration(settings.scope_timeout)
        if timeout is None:
            ignored("SCOPE_TIMEOUT", settings.scope_timeout)
        else:
            oauth.scope_timeout = timeout

    if settings.terminal_height:
        height = _parse_positive_int(settings.terminal_height)
        if height is None:
            ignored("TERMINAL_HEIGHT", settings.terminal_height)
        else:
            terminal.height = height

    if settings.refresh_expired:
        oauth.refresh_expired = WizardSettings.is_enabled(settings.refresh_expired)

    return WizardConfig(server=server, oauth=oauth, terminal=terminal)
