"""Exception taxonomy shared by negotiation, dispatch and providers."""

from __future__ import annotations


class GatewayError(Exception):
    """Base class for failures reported back to the remote peer."""


class ValidationError(GatewayError):
    """Raised when a request is missing required fields or has the wrong shape."""


class UnsupportedCapability(GatewayError):
    """Raised when a codec or language is not in the allowed set."""


class UnknownRequestKind(GatewayError):
    """Raised when a request names a kind the dispatcher does not handle."""


class ProviderStreamError(GatewayError):
    """Raised when the upstream recognition stream fails or cannot be started."""


class ProviderUnavailableError(GatewayError):
    """Raised when a provider's optional dependency is not installed."""


class UnsupportedProviderError(GatewayError):
    """Raised when no provider is registered under the requested name."""
