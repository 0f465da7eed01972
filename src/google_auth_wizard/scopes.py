"""Google OAuth scope catalog.

Fetches the catalog of available scopes from the OAuth Playground
``getScopes`` endpoint and reorganizes it into a ``ScopeCatalog``: a mapping
of service name to that service's scopes, sorted by url.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator, Mapping, Sequence
from datetime import timedelta

import httpx
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from google_auth_wizard.config import (
    DEFAULT_PLAYGROUND_URL,
    DEFAULT_SCOPE_ENDPOINT,
    OAuthConfig,
)
from google_auth_wizard.exceptions import ScopeFetchError
from google_auth_wizard.terminal.items import ServiceHeader, build_service_items

logger = logging.getLogger(__name__)

DEFAULT_FETCH_TIMEOUT = 30.0


class ScopeEntry(BaseModel):
    """A single scope: its url (identifier) and human description."""

    model_config = ConfigDict(frozen=True)

    url: str
    description: str = ""


class ScopeCatalog(Mapping[str, tuple[ScopeEntry, ...]]):
    """Read-only mapping of service name to its scopes (sorted by url)."""

    def __init__(self, services: Mapping[str, Sequence[ScopeEntry]] | None = None):
        self._services: dict[str, tuple[ScopeEntry, ...]] = {
            name: tuple(sorted(scopes, key=lambda s: s.url))
            for name, scopes in (services or {}).items()
        }

    def __getitem__(self, service: str) -> tuple[ScopeEntry, ...]:
        return self._services[service]

    def __iter__(self) -> Iterator[str]:
        return iter(self._services)

    def __len__(self) -> int:
        return len(self._services)

    def __repr__(self) -> str:
        return (
            f"ScopeCatalog(services={self.service_count}, "
            f"scopes={self.total_scope_count})"
        )

    def scopes_for(self, service: str) -> tuple[ScopeEntry, ...] | None:
        return self._services.get(service)

    def services(self) -> list[str]:
        """Service names, sorted."""
        return sorted(self._services)

    def has_service(self, service: str) -> bool:
        return service in self._services

    def is_empty(self) -> bool:
        return not self._services

    @property
    def service_count(self) -> int:
        return len(self._services)

    @property
    def total_scope_count(self) -> int:
        return sum(len(scopes) for scopes in self._services.values())

    def find_by_url(self, url: str) -> dict[str, list[ScopeEntry]]:
        """All services exposing a scope with exactly this url."""
        results: dict[str, list[ScopeEntry]] = {}
        for service, scopes in self._services.items():
            for scope in scopes:
                if scope.url == url:
                    results.setdefault(service, []).append(scope)
        return results

    def find_by_description(self, term: str) -> dict[str, list[ScopeEntry]]:
        """Case-insensitive substring search over scope descriptions."""
        term = term.lower()
        results: dict[str, list[ScopeEntry]] = {}
        for service, scopes in self._services.items():
            for scope in scopes:
                if term in scope.description.lower():
                    results.setdefault(service, []).append(scope)
        return results

    def get_scope_by_url(self, url: str) -> tuple[ScopeEntry, str] | None:
        """First scope with this url, with the service that owns it."""
        for service, scopes in self._services.items():
            for scope in scopes:
                if scope.url == url:
                    return scope, service
        return None

    def to_selection_items(self) -> list[ServiceHeader]:
        """Selector headers, sorted by service name, skipping empty services."""
        return build_service_items(self._services)

    def to_json(self) -> str:
        return json.dumps(
            {
                service: [scope.model_dump() for scope in scopes]
                for service, scopes in self._services.items()
            },
            indent=2,
        )

    @classmethod
    def from_json(cls, data: str | bytes) -> ScopeCatalog:
        """Rebuild a catalog written by ``to_json``.

        Raises:
            ValueError: If the document is not a valid catalog.
        """
        adapter = TypeAdapter(dict[str, list[ScopeEntry]])
        try:
            return cls(adapter.validate_json(data))
        except ValidationError as e:
            raise ValueError(f"error unmarshaling JSON: {e}") from e


# --- getScopes response ---


class _ScopeInfo(BaseModel):
    description: str = ""


class _ApiInfo(BaseModel):
    icon_url: str = Field(default="", alias="iconUrl")
    scopes: list[dict[str, _ScopeInfo]] = Field(default_factory=list)


class _GetScopesResponse(BaseModel):
    success: bool = False
    apis: dict[str, _ApiInfo] = Field(default_factory=dict)


def reorganize_scopes(apis: Mapping[str, _ApiInfo]) -> ScopeCatalog:
    services: dict[str, list[ScopeEntry]] = {}
    for api_name, api_info in apis.items():
        entries = services.setdefault(api_name, [])
        for scope_map in api_info.scopes:
            for url, info in scope_map.items():
                entries.append(ScopeEntry(url=url, description=info.description))
    return ScopeCatalog(services)


class ScopeClient:
    """HTTP client for the scope catalog endpoint."""

    def __init__(
        self,
        base_url: str = DEFAULT_PLAYGROUND_URL,
        scope_endpoint: str = DEFAULT_SCOPE_ENDPOINT,
        timeout: float = DEFAULT_FETCH_TIMEOUT,
        http_client: httpx.Client | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.scope_endpoint = scope_endpoint.lstrip("/")
        self.timeout = timeout
        self._http_client = http_client

    @classmethod
    def from_config(
        cls, oauth: OAuthConfig, http_client: httpx.Client | None = None
    ) -> ScopeClient:
        timeout: timedelta = oauth.scope_timeout
        return cls(
            base_url=oauth.oauth_playground_url,
            scope_endpoint=oauth.scope_endpoint,
            timeout=timeout.total_seconds(),
            http_client=http_client,
        )

    @property
    def url(self) -> str:
        return f"{self.base_url}/{self.scope_endpoint}"

    def fetch_scopes(self) -> ScopeCatalog:
        """Fetch and reorganize the scope catalog.

        Raises:
            ScopeFetchError: On network errors, non-200 responses, malformed
                JSON, or a response reporting ``success: false``.
        """
        logger.debug(f"Fetching Google scopes from {self.url}")
        try:
            if self._http_client is not None:
                response = self._http_client.get(
                    self.url,
                    headers={"Accept": "application/json"},
                    timeout=self.timeout,
                )
            else:
                with httpx.Client(timeout=self.timeout) as client:
                    response = client.get(
                        self.url, headers={"Accept": "application/json"}
                    )
        except httpx.HTTPError as e:
            raise ScopeFetchError(f"error making GET request: {e}") from e

        if response.status_code != 200:
            raise ScopeFetchError(
                f"HTTP error: {response.reason_phrase or 'unexpected status'}",
                status_code=response.status_code,
            )

        try:
            payload = _GetScopesResponse.model_validate_json(response.content)
        except ValidationError as e:
            raise ScopeFetchError(f"error parsing JSON: {e}") from e

        if not payload.success:
            raise ScopeFetchError("API returned success=false")

        catalog = reorganize_scopes(payload.apis)
        logger.debug(
            f"Fetched {catalog.service_count} Google services with "
            f"{catalog.total_scope_count} total scopes"
        )
        return catalog
