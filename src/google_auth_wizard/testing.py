"""Test helpers."""

import os
import typing
from contextlib import contextmanager

from google_auth_wizard.config import ENV_PREFIX

__all__ = [
    "temp_env_vars",
    "cleared_wizard_env_vars",
]


@contextmanager
def temp_env_vars(
    env_vars: dict[str, str | None],
) -> typing.Generator[None, None, None]:
    """Temporarily set (or, for None values, unset) environment variables."""
    original = {key: os.environ.get(key) for key in env_vars}
    try:
        for key, value in env_vars.items():
            if value is None:
                os.environ.pop(key, None)
            else:
                os.environ[key] = value
        yield
    finally:
        for key, value in original.items():
            if value is None:
                os.environ.pop(key, None)
            else:
                os.environ[key] = value


@contextmanager
def cleared_wizard_env_vars() -> typing.Generator[None, None, None]:
    """Unset every GOOGLE_AUTH_WIZARD_* variable for the duration."""
    wizard_vars = [var for var in os.environ if var.startswith(ENV_PREFIX)]
    with temp_env_vars({var: None for var in wizard_vars}):
        yield
