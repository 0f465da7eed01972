"""Google Auth Wizard CLI.

Usage:
    google-auth-wizard login -f <client_secret.json> [-n] [--config config.yaml]
    google-auth-wizard status
    google-auth-wizard clear-tokens
    google-auth-wizard refresh -f <client_secret.json>
    google-auth-wizard version

Environment:
    GOOGLE_AUTH_WIZARD_DEBUG=true       Enable debug logging
    GOOGLE_AUTH_WIZARD_VERBOSE=true     Enable verbose logging
    GOOGLE_AUTH_WIZARD_SILENT=true      Silent mode
    GOOGLE_AUTH_WIZARD_FORCE_NEW=true   Ignore the saved token
"""

import logging
from collections.abc import Sequence
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from google_auth_wizard.config import (
    DEFAULT_CONFIG_FILE,
    WizardConfig,
    WizardSettings,
    apply_environment_overrides,
    get_default_config,
    load_config_with_defaults,
    validate_config,
)
from google_auth_wizard.credentials import load_client_config
from google_auth_wizard.exceptions import (
    CacheError,
    ConfigurationError,
    TokenNotFoundError,
    WizardError,
)
from google_auth_wizard.log import configure_logging, is_debug, resolve_log_level
from google_auth_wizard.oauth import TokenExchanger
from google_auth_wizard.session import Session, refresh_stored_token
from google_auth_wizard.storage import TokenStorage
from google_auth_wizard.token import OAuthToken

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="google-auth-wizard",
    help="Google Auth Wizard - pick Google API scopes and obtain an OAuth token",
    no_args_is_help=True,
)

console = Console()


def _setup_logging(
    settings: WizardSettings, debug: bool, verbose: bool, silent: bool
) -> None:
    level = resolve_log_level(
        debug=debug or WizardSettings.is_enabled(settings.debug),
        verbose=verbose or WizardSettings.is_enabled(settings.verbose),
        silent=silent or WizardSettings.is_enabled(settings.silent),
    )
    configure_logging(level)


def _load_config(path: Path, settings: WizardSettings) -> WizardConfig:
    config = load_config_with_defaults(path, settings)
    try:
        validate_config(config)
    except ConfigurationError as e:
        logger.warning(f"Config validation failed ({e}), using defaults")
        config = apply_environment_overrides(get_default_config(), settings)
    return config


def _fail(error: Exception) -> typer.Exit:
    typer.echo(f"Error: {error}", err=True)
    return typer.Exit(1)


def _print_selected_scopes(scopes: Sequence[str]) -> None:
    typer.echo(f"\nSelected scopes ({len(scopes)}):")
    for scope in scopes:
        typer.echo(f"- {scope}")


def _print_token(token: OAuthToken) -> None:
    if is_debug():
        console.print_json(token.model_dump_json())
    else:
        typer.echo(f"Access token: {token.masked()}")


@app.command()
def login(
    file: Path = typer.Option(
        ...,
        "--file",
        "-f",
        help="Path to the client secret JSON file",
    ),
    force_new: bool = typer.Option(
        False,
        "--force-new",
        "-n",
        help="Force getting a new token (ignore saved tokens)",
    ),
    config_path: Path = typer.Option(
        Path(DEFAULT_CONFIG_FILE),
        "--config",
        help="Path to the YAML config file (created with defaults if missing)",
    ),
    token_file: Optional[Path] = typer.Option(
        None,
        "--token-file",
        help="Token cache file (default: ~/.google-auth-wizard/token.json)",
    ),
    debug: bool = typer.Option(False, "--debug", help="Enable debug logging"),
    verbose: bool = typer.Option(False, "--verbose", help="Enable verbose logging"),
    silent: bool = typer.Option(False, "--silent", help="Only print results"),
) -> None:
    """Select scopes and obtain an OAuth token.

    Reuses the saved token when it is still valid and covers the selected
    scopes; otherwise opens the browser for a new authorization.
    """
    settings = WizardSettings()
    _setup_logging(settings, debug, verbose, silent)
    logger.debug("Starting Google Auth Wizard")

    try:
        config = _load_config(config_path, settings)
        logger.debug(f"Configuration loaded: {config.model_dump(mode='json')}")
        logger.debug(f"Using credentials file: {file}")
        client = load_client_config(file)

        session = Session(
            config,
            client,
            storage=TokenStorage(token_file),
            force_new=force_new or WizardSettings.is_enabled(settings.force_new),
        )
        catalog = session.fetch_catalog()
        scopes = session.select_scopes(catalog)
        _print_selected_scopes(scopes)
        result = session.obtain_token(scopes)
    except WizardError as e:
        raise _fail(e)

    logger.info("OAuth token received successfully!")
    _print_token(result.token)


@app.command()
def status(
    token_file: Optional[Path] = typer.Option(
        None,
        "--token-file",
        help="Token cache file (default: ~/.google-auth-wizard/token.json)",
    ),
) -> None:
    """Show the saved token."""
    storage = TokenStorage(token_file)
    try:
        stored = storage.load()
    except TokenNotFoundError:
        typer.echo("No saved tokens found.")
        return
    except CacheError as e:
        raise _fail(e)

    typer.echo(f"Token file: {storage.path}")
    typer.echo(stored.summary())
    for scope in stored.scopes:
        typer.echo(f"- {scope}")


@app.command("clear-tokens")
def clear_tokens(
    token_file: Optional[Path] = typer.Option(
        None,
        "--token-file",
        help="Token cache file (default: ~/.google-auth-wizard/token.json)",
    ),
) -> None:
    """Delete the saved token."""
    try:
        removed = TokenStorage(token_file).delete()
    except CacheError as e:
        raise _fail(e)

    if removed:
        typer.echo("Saved tokens cleared successfully.")
    else:
        typer.echo("No saved tokens found.")


@app.command()
def refresh(
    file: Path = typer.Option(
        ...,
        "--file",
        "-f",
        help="Path to the client secret JSON file",
    ),
    token_file: Optional[Path] = typer.Option(
        None,
        "--token-file",
        help="Token cache file (default: ~/.google-auth-wizard/token.json)",
    ),
    debug: bool = typer.Option(False, "--debug", help="Enable debug logging"),
) -> None:
    """Redeem the saved refresh token for a new access token."""
    settings = WizardSettings()
    _setup_logging(settings, debug, verbose=False, silent=False)

    storage = TokenStorage(token_file)
    try:
        client = load_client_config(file)
        stored = refresh_stored_token(storage, TokenExchanger(client))
    except WizardError as e:
        raise _fail(e)

    typer.echo("Token refreshed successfully!")
    typer.echo(f"Token saved to {storage.path}")
    if stored.token is not None:
        _print_token(stored.token)


@app.command()
def version() -> None:
    """Show the Google Auth Wizard version."""
    try:
        from importlib.metadata import version as get_version

        ver = get_version("google-auth-wizard")
    except Exception:
        ver = "unknown"

    typer.echo(f"google-auth-wizard {ver}")


@app.callback()
def main() -> None:
    """Google Auth Wizard - pick Google API scopes and obtain an OAuth token.

    Use 'google-auth-wizard login -f client_secret.json' to start.
    Set GOOGLE_AUTH_WIZARD_* environment variables to override config.yaml.
    """
    pass


if __name__ == "__main__":
    app()
