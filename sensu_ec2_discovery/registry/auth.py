"""Sensu API credentials: endpoint URL parsing and requests auth handlers."""

from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import unquote, urlsplit, urlunsplit

import requests
from requests.auth import AuthBase

from ..exceptions import ConfigurationError


class BearerTokenAuth(AuthBase):
    """``Authorization: Bearer <token>`` for access tokens."""

    def __init__(self, token: str):
        self.token = token

    def __call__(self, r: requests.PreparedRequest) -> requests.PreparedRequest:
        r.headers["Authorization"] = f"Bearer {self.token}"
        return r


class APIKeyAuth(AuthBase):
    """``Authorization: Key <key>`` for Sensu API keys."""

    def __init__(self, key: str):
        self.key = key

    def __call__(self, r: requests.PreparedRequest) -> requests.PreparedRequest:
        r.headers["Authorization"] = f"Key {self.key}"
        return r


@dataclass(frozen=True)
class RegistryEndpoint:
    """One Sensu API backend. Credentials embedded in the URL are split out."""

    base_url: str
    username: str = ""
    password: str = ""

    @classmethod
    def parse(cls, url: str) -> RegistryEndpoint:
        parts = urlsplit(url.strip())
        try:
            port = parts.port
        except ValueError as exc:
            raise ConfigurationError(f"Invalid Sensu API URL '{url}': {exc}") from exc
        netloc = parts.hostname or ""
        if ":" in netloc:  # IPv6 literal
            netloc = f"[{netloc}]"
        if port is not None:
            netloc = f"{netloc}:{port}"
        base_url = urlunsplit((parts.scheme, netloc, parts.path.rstrip("/"), "", ""))
        return cls(
            base_url=base_url,
            username=unquote(parts.username or ""),
            password=unquote(parts.password or ""),
        )

    @property
    def has_credentials(self) -> bool:
        return bool(self.username and self.password)

    def __str__(self) -> str:
        return self.base_url
