"""Speech-recognition providers and the name-based provider registry."""

from __future__ import annotations

from collections.abc import Callable

from speech_gateway.errors import UnsupportedProviderError

from .base import (
    DEFAULT_MAX_RESULTS,
    DEFAULT_RESTART_SECONDS,
    ProviderConfig,
    ProviderState,
    RecognitionResult,
    ResultBuffer,
    SpeechProvider,
    StreamConfig,
)
from .google import GoogleProvider
from .mock import MockProvider

_PROVIDERS: dict[str, Callable[..., SpeechProvider]] = {
    GoogleProvider.name: GoogleProvider,
    MockProvider.name: MockProvider,
}


def provider_names() -> list[str]:
    return sorted(_PROVIDERS)


def get_provider(name: str, **options) -> SpeechProvider:
    """Build a provider instance by registry name."""
    factory = _PROVIDERS.get(name.strip().lower())
    if factory is None:
        raise UnsupportedProviderError(f"Unsupported speech provider '{name}'")
    return factory(**options)


__all__ = [
    "DEFAULT_MAX_RESULTS",
    "DEFAULT_RESTART_SECONDS",
    "GoogleProvider",
    "MockProvider",
    "ProviderConfig",
    "ProviderState",
    "RecognitionResult",
    "ResultBuffer",
    "SpeechProvider",
    "StreamConfig",
    "get_provider",
    "provider_names",
]
