"""Errors raised by the client, the crawler and the ingestion service."""
from typing import Optional


class OpenSeaError(Exception):
    """Base class for every error raised by this package."""


class ConfigurationError(OpenSeaError):
    """A required setting is missing or an endpoint is unknown."""


class RequestError(OpenSeaError):
    """The remote API answered with something we cannot use."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        body: Optional[str] = None,
        url: Optional[str] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.body = body
        self.url = url


class BlockedRequestError(RequestError):
    """The response looks like an anti-bot "Access denied" page."""

    def __init__(self, message: str, proxy_enabled: bool, **kwargs):
        super().__init__(f"{message} (proxy enabled: {proxy_enabled})", **kwargs)
        self.proxy_enabled = proxy_enabled


class DomainInconsistencyError(OpenSeaError):
    """Input or payload contradicts what the endpoint is known to return."""
