from datetime import timedelta
from pathlib import Path

import pytest
from pydantic import ValidationError

from google_auth_wizard.config import (
    DEFAULT_CONFIG_TEMPLATE,
    WizardConfig,
    WizardSettings,
    apply_environment_overrides,
    format_duration,
    get_default_config,
    load_config,
    load_config_with_defaults,
    load_config_with_validation,
    parse_duration,
    validate_config,
)
from google_auth_wizard.exceptions import ConfigurationError
from google_auth_wizard.testing import temp_env_vars


@pytest.mark.parametrize(
    "value, expected",
    [
        ("5m", timedelta(minutes=5)),
        ("300s", timedelta(seconds=300)),
        ("1m30s", timedelta(seconds=90)),
        ("5m0s", timedelta(minutes=5)),
        ("100ms", timedelta(milliseconds=100)),
        ("1h", timedelta(hours=1)),
        ("45", timedelta(seconds=45)),
        (30, timedelta(seconds=30)),
    ],
)
def test_parse_duration(value, expected):
    assert parse_duration(value) == expected


def test_parse_duration_passes_unknown_values_through():
    assert parse_duration("PT5M") == "PT5M"
    assert parse_duration("soon") == "soon"


@pytest.mark.parametrize(
    "value, expected",
    [
        (timedelta(minutes=5), "5m0s"),
        (timedelta(seconds=60), "1m0s"),
        (timedelta(seconds=45), "45s"),
        (timedelta(hours=1, minutes=2, seconds=3), "1h2m3s"),
        (timedelta(milliseconds=100), "100ms"),
    ],
)
def test_format_duration(value, expected):
    assert format_duration(value) == expected


def test_defaults():
    config = get_default_config()

    assert config.server.default_port == 8080
    assert config.server.max_port_tries == 10
    assert config.server.server_timeout == timedelta(minutes=5)
    assert config.oauth.callback_path == "/callback"
    assert (
        config.oauth.oauth_playground_url
        == "https://developers.google.com/oauthplayground"
    )
    assert config.oauth.scope_endpoint == "getScopes"
    assert config.oauth.scope_timeout == timedelta(seconds=60)
    assert config.oauth.refresh_expired is False
    assert config.terminal.height == 20


def test_template_matches_defaults(tmp_path: Path):
    path = tmp_path / "config.yaml"
    path.write_text(DEFAULT_CONFIG_TEMPLATE)

    assert load_config(path) == get_default_config()


def test_load_config_camel_case_keys(tmp_path: Path):
    path = tmp_path / "config.yaml"
    path.write_text(
        "server:\n"
        "  defaultPort: 9090\n"
        "  serverTimeout: 2m\n"
        "oauth:\n"
        "  oauthPlaygroundURL: http://localhost:1234\n"
        "  refreshExpired: true\n"
        "terminal:\n"
        "  height: 30\n"
    )

    config = load_config(path)
    assert config.server.default_port == 9090
    assert config.server.max_port_tries == 10
    assert config.server.server_timeout == timedelta(minutes=2)
    assert config.oauth.oauth_playground_url == "http://localhost:1234"
    assert config.oauth.refresh_expired is True
    assert config.terminal.height == 30


def test_load_config_invalid_yaml(tmp_path: Path):
    path = tmp_path / "config.yaml"
    path.write_text("server: [unclosed")

    with pytest.raises(ConfigurationError, match="error parsing config file"):
        load_config(path)


def test_load_config_missing_file(tmp_path: Path):
    with pytest.raises(ConfigurationError, match="error reading config file"):
        load_config(tmp_path / "missing.yaml")


def test_load_with_defaults_creates_file(tmp_path: Path):
    path = tmp_path / "config.yaml"

    config = load_config_with_defaults(path, WizardSettings())

    assert path.exists()
    assert path.read_text() == DEFAULT_CONFIG_TEMPLATE
    assert config == get_default_config()


def test_load_with_defaults_falls_back_on_bad_file(tmp_path: Path):
    path = tmp_path / "config.yaml"
    path.write_text("server:\n  defaultPort: not-a-number\n")

    assert load_config_with_defaults(path, WizardSettings()) == get_default_config()


def test_load_with_defaults_unwritable_location(tmp_path: Path):
    blocker = tmp_path / "blocker"
    blocker.write_text("")

    config = load_config_with_defaults(blocker / "config.yaml", WizardSettings())
    assert config == get_default_config()


def test_load_with_defaults_applies_environment(tmp_path: Path):
    path = tmp_path / "config.yaml"
    with temp_env_vars(
        {
            "GOOGLE_AUTH_WIZARD_PORT": "9999",
            "GOOGLE_AUTH_WIZARD_SERVER_TIMEOUT": "30s",
        }
    ):
        config = load_config_with_defaults(path)

    assert config.server.default_port == 9999
    assert config.server.server_timeout == timedelta(seconds=30)


class TestEnvironmentOverrides:
    def test_valid_overrides(self):
        settings = WizardSettings(
            port="9000",
            max_port_tries="3",
            server_timeout="1m",
            callback_path="/oauth2callback",
            playground_url="http://localhost:8000",
            scope_endpoint="scopes",
            scope_timeout="10s",
            terminal_height="40",
            refresh_expired="true",
        )

        config = apply_environment_overrides(get_default_config(), settings)

        assert config.server.default_port == 9000
        assert config.server.max_port_tries == 3
        assert config.server.server_timeout == timedelta(minutes=1)
        assert config.oauth.callback_path == "/oauth2callback"
        assert config.oauth.oauth_playground_url == "http://localhost:8000"
        assert config.oauth.scope_endpoint == "scopes"
        assert config.oauth.scope_timeout == timedelta(seconds=10)
        assert config.terminal.height == 40
        assert config.oauth.refresh_expired is True

    def test_invalid_overrides_are_ignored(self):
        settings = WizardSettings(
            port="70000",
            max_port_tries="0",
            server_timeout="forever",
            callback_path="callback",
            playground_url="ftp://example.com",
            terminal_height="-1",
        )

        config = apply_environment_overrides(get_default_config(), settings)

        assert config == get_default_config()

    def test_original_config_is_not_mutated(self):
        original = get_default_config()
        apply_environment_overrides(original, WizardSettings(port="9000"))

        assert original.server.default_port == 8080

    def test_settings_read_from_environment(self):
        with temp_env_vars(
            {
                "GOOGLE_AUTH_WIZARD_TERMINAL_HEIGHT": "12",
                "GOOGLE_AUTH_WIZARD_FORCE_NEW": "true",
            }
        ):
            settings = WizardSettings()

        assert settings.terminal_height == "12"
        assert WizardSettings.is_enabled(settings.force_new)
        assert not WizardSettings.is_enabled(settings.debug)


class TestValidateConfig:
    def test_defaults_are_valid(self):
        validate_config(get_default_config())

    @pytest.mark.parametrize(
        "data, message",
        [
            ({"server": {"defaultPort": 0}}, "invalid default port"),
            ({"server": {"defaultPort": 70000}}, "invalid default port"),
            ({"server": {"maxPortTries": 0}}, "invalid maxPortTries"),
            ({"server": {"serverTimeout": "0s"}}, "invalid serverTimeout"),
            ({"oauth": {"scopeTimeout": "0s"}}, "invalid scopeTimeout"),
            ({"oauth": {"callbackPath": ""}}, "callbackPath cannot be empty"),
            ({"oauth": {"scopeEndpoint": ""}}, "scopeEndpoint cannot be empty"),
        ],
    )
    def test_invalid_values(self, data, message):
        config = WizardConfig.model_validate(data)
        with pytest.raises(ConfigurationError, match=message):
            validate_config(config)

    def test_load_with_validation(self, tmp_path: Path):
        path = tmp_path / "config.yaml"
        path.write_text("server:\n  maxPortTries: -1\n")

        with pytest.raises(ConfigurationError, match="config validation failed"):
            load_config_with_validation(path, WizardSettings())


def test_invalid_duration_in_model():
    with pytest.raises(ValidationError):
        WizardConfig.model_validate({"server": {"serverTimeout": "eventually"}})
