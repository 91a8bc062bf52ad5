from __future__ import annotations


class DashboardError(Exception):
    """Base class for errors raised by the dashboard services."""


class ConfigError(DashboardError):
    """Required configuration (calendar id, credentials) is missing."""


class AuthError(DashboardError):
    """Calendar credentials are present but cannot be used."""


class CredentialsMissingError(AuthError, ConfigError):
    """No service-account payload in the environment and no credentials file."""


class FetchError(DashboardError):
    """An upstream HTTP request failed or returned an unusable payload."""


class InvalidTimezoneError(DashboardError):
    def __init__(self, timezone: str) -> None:
        super().__init__(f"Unrecognized timezone: {timezone!r}")
        self.timezone = timezone


class ValidationError(DashboardError):
    """A request parameter is missing or malformed."""
