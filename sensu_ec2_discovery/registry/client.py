"""REST client for registering entities with one or more Sensu Go API backends."""

from __future__ import annotations

import logging
import random
import ssl
import threading
import time
from collections.abc import Sequence
from typing import Any
from urllib.parse import quote

import requests
from requests.adapters import HTTPAdapter
from requests.auth import AuthBase

from ..config import RegistryConfig
from ..exceptions import (
    ConfigurationError,
    RegistryAuthError,
    RegistryConflict,
    RegistryNotFoundError,
    RegistryTransientError,
)
from .auth import APIKeyAuth, BearerTokenAuth, RegistryEndpoint
from .entity import Entity
from .models import RegistrationOutcome

logger = logging.getLogger(__name__)

# Re-login this many seconds before the issued token actually expires.
TOKEN_EXPIRY_MARGIN_SECONDS = 10


class TrustStoreAdapter(HTTPAdapter):
    """HTTPAdapter verifying against the platform trust store plus an extra CA bundle."""

    def __init__(self, ssl_context: ssl.SSLContext, **kwargs: Any):
        self._ssl_context = ssl_context
        super().__init__(**kwargs)

    def init_poolmanager(self, *args: Any, **kwargs: Any) -> None:
        kwargs["ssl_context"] = self._ssl_context
        super().init_poolmanager(*args, **kwargs)


def build_ssl_context(trusted_ca_file: str) -> ssl.SSLContext:
    """Default trust store with the PEM bundle at ``trusted_ca_file`` appended."""
    context = ssl.create_default_context()
    try:
        context.load_verify_locations(cafile=trusted_ca_file)
    except (OSError, ssl.SSLError) as exc:
        raise ConfigurationError(f"Could not load trusted CA file {trusted_ca_file}: {exc}") from exc
    return context


def credential_method(config: RegistryConfig, endpoints: Sequence[RegistryEndpoint]) -> str | None:
    """Return which credential will be used: "token", "api_key", "login", or None if none is usable."""
    if config.access_token:
        return "token"
    if config.api_key:
        return "api_key"
    has_configured_login = bool(config.username and config.password)
    if endpoints and all(has_configured_login or ep.has_credentials for ep in endpoints):
        return "login"
    return None


class RegistryClient:
    """Idempotent entity upserts against randomly chosen Sensu API endpoints."""

    def __init__(self, config: RegistryConfig, rng: random.Random | None = None):
        self._config = config
        self._endpoints = [RegistryEndpoint.parse(url) for url in config.api_urls]
        if not self._endpoints:
            raise ConfigurationError("At least one Sensu API URL is required")
        self._rng = rng or random.Random()
        self._timeout = config.timeout

        self._tokens: dict[str, tuple[str, float]] = {}
        self._token_lock = threading.Lock()

        self._session = requests.Session()
        self._session.headers["Content-Type"] = "application/json"
        # Passed per request: a session-level False loses to REQUESTS_CA_BUNDLE / CURL_CA_BUNDLE.
        self._verify = not config.insecure_skip_tls_verify
        if config.insecure_skip_tls_verify:
            logger.warning("TLS certificate verification for the Sensu API is disabled")
            self._session.verify = False
        elif config.trusted_ca_file:
            self._session.mount("https://", TrustStoreAdapter(build_ssl_context(config.trusted_ca_file)))

    @property
    def endpoints(self) -> list[RegistryEndpoint]:
        return list(self._endpoints)

    @property
    def session(self) -> requests.Session:
        return self._session

    # ── Entities ────────────────────────────────────────────────────

    def upsert_entity(self, entity: Entity) -> RegistrationOutcome:
        """Create ``entity`` on one endpoint; an existing entity counts as success.

        Raises RegistryAuthError (401) and RegistryNotFoundError (404); every
        other failure is returned as a failed outcome. There is no retry on a
        different endpoint.
        """
        endpoint = self.choose_endpoint()
        path = f"/api/core/v2/namespaces/{quote(entity.namespace, safe='')}/entities"

        try:
            resp = self._request(endpoint, "POST", path, json=entity.to_api())
        except RegistryConflict:
            logger.info(
                'Entity "%s" already exists', entity.name,
                extra={"entity": entity.name, "endpoint": str(endpoint), "outcome": "already_exists"},
            )
            return RegistrationOutcome.already_exists(entity.name, str(endpoint))
        except RegistryTransientError as exc:
            logger.warning(
                'Failed to register entity "%s": %s', entity.name, exc,
                extra={"entity": entity.name, "endpoint": str(endpoint), "outcome": "failed"},
            )
            return RegistrationOutcome.failed(entity.name, str(endpoint), str(exc), exc.status_code)

        logger.info(
            'Registered entity for EC2 instance "%s"', entity.name,
            extra={"entity": entity.name, "endpoint": str(endpoint), "outcome": "created"},
        )
        return RegistrationOutcome.created(entity.name, str(endpoint), resp.status_code)

    def choose_endpoint(self) -> RegistryEndpoint:
        """Uniform random choice over the configured endpoints."""
        return self._rng.choice(self._endpoints)

    # ── Authentication ──────────────────────────────────────────────

    def _auth_for(self, endpoint: RegistryEndpoint) -> AuthBase:
        if self._config.access_token:
            return BearerTokenAuth(self._config.access_token)
        if self._config.api_key:
            return APIKeyAuth(self._config.api_key)
        return BearerTokenAuth(self._access_token(endpoint))

    def _access_token(self, endpoint: RegistryEndpoint) -> str:
        with self._token_lock:
            cached = self._tokens.get(endpoint.base_url)
            if cached is not None and time.time() < cached[1] - TOKEN_EXPIRY_MARGIN_SECONDS:
                return cached[0]
            token, expires_at = self.login(endpoint)
            self._tokens[endpoint.base_url] = (token, expires_at)
            return token

    def login(self, endpoint: RegistryEndpoint) -> tuple[str, float]:
        """Exchange username/password for a short-lived access token via GET /auth."""
        if endpoint.has_credentials:
            username, password = endpoint.username, endpoint.password
        elif self._config.username and self._config.password:
            username, password = self._config.username, self._config.password
        else:
            raise ConfigurationError(f"No Sensu API credentials available for {endpoint}")

        resp = self._request(endpoint, "GET", "/auth", auth=(username, password))
        try:
            body = resp.json()
            token = body["access_token"]
        except (ValueError, KeyError, TypeError) as exc:
            raise RegistryTransientError(
                f"Malformed /auth response from {endpoint}", status_code=resp.status_code,
                response_body=resp.text, endpoint=str(endpoint),
            ) from exc

        expires_at = float(body.get("expires_at") or 0)
        logger.debug("Obtained Sensu access token from %s", endpoint)
        return token, expires_at

    # ── Internal HTTP helpers ───────────────────────────────────────

    def _request(
        self, endpoint: RegistryEndpoint, method: str, path: str,
        auth: AuthBase | tuple[str, str] | None = None, **kwargs: Any,
    ) -> requests.Response:
        url = f"{endpoint.base_url}{path}"
        kwargs.setdefault("timeout", self._timeout)
        kwargs.setdefault("verify", self._verify)
        if auth is None:
            auth = self._auth_for(endpoint)
        logger.debug("%s %s", method, url)

        try:
            resp = self._session.request(method, url, auth=auth, **kwargs)
        except requests.RequestException as exc:
            raise RegistryTransientError(
                f"Request to {endpoint} failed: {exc}", endpoint=str(endpoint)
            ) from exc

        status = resp.status_code
        if status == 401:
            raise RegistryAuthError(
                f"Sensu API authentication failure ({method} {url})",
                status_code=status, response_body=resp.text, endpoint=str(endpoint),
            )
        if status == 404:
            raise RegistryNotFoundError(
                f"HTTP 404 Not Found ({method} {url})",
                status_code=status, response_body=resp.text, endpoint=str(endpoint),
            )
        if status == 409:
            raise RegistryConflict(response_body=resp.text, endpoint=str(endpoint))
        if status >= 300:
            raise RegistryTransientError(
                f"HTTP {status} on {method} {path}: {resp.text}",
                status_code=status, response_body=resp.text, endpoint=str(endpoint),
            )

        return resp
