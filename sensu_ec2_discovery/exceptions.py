"""Custom exception hierarchy for the EC2 discovery job."""

from __future__ import annotations


class EC2DiscoveryError(Exception):
    """Base exception for all discovery job errors."""


class ConfigurationError(EC2DiscoveryError):
    """Invalid or missing configuration, detected before any network call."""


class DiscoveryError(EC2DiscoveryError):
    """Region enumeration or instance listing failed at the cloud provider."""

    def __init__(self, message: str, region: str | None = None):
        super().__init__(message)
        self.region = region


class RegistryAPIError(EC2DiscoveryError):
    """Error communicating with the Sensu API."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response_body: str | None = None,
        endpoint: str | None = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body
        self.endpoint = endpoint


class RegistryAuthError(RegistryAPIError):
    """HTTP 401: the configured credential was rejected."""


class RegistryNotFoundError(RegistryAPIError):
    """HTTP 404: wrong namespace or wrong API endpoint."""


class RegistryConflict(RegistryAPIError):
    """HTTP 409 — the entity already exists."""

    def __init__(self, message: str = "Entity already exists", response_body: str | None = None,
                 endpoint: str | None = None):
        super().__init__(message, status_code=409, response_body=response_body, endpoint=endpoint)


class RegistryTransientError(RegistryAPIError):
    """Any other non-success response, or a network failure (status_code is None)."""
