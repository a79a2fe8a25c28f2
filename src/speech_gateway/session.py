"""Per-connection session wiring: one transport, one provider, two negotiators."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from uuid import uuid4

from speech_gateway.capabilities import Codec, Negotiator, codec_negotiator, language_negotiator
from speech_gateway.config import Settings
from speech_gateway.dispatcher import Dispatcher
from speech_gateway.providers import SpeechProvider, get_provider
from speech_gateway.transport import Transport


@dataclass(slots=True)
class Session:
    """Everything owned by a single connection. Lives until the transport closes."""

    codecs: Negotiator[Codec]
    languages: Negotiator[str]
    transport: Transport
    provider: SpeechProvider
    id: str = field(default_factory=lambda: uuid4().hex)

    async def run(self) -> None:
        await Dispatcher(self).run()


class SessionFactory:
    """Builds sessions for accepted connections from runtime settings."""

    def __init__(
        self,
        settings: Settings,
        *,
        provider_factory: Callable[..., SpeechProvider] = get_provider,
        logger: logging.Logger | None = None,
    ) -> None:
        self._settings = settings
        self._provider_factory = provider_factory
        self._logger = logger or logging.getLogger("speech_gateway.session")

    def __call__(self, transport: Transport) -> Session:
        settings = self._settings
        provider = self._provider_factory(
            settings.provider,
            restart_seconds=settings.restart_seconds,
            max_results=settings.max_results,
        )
        session = Session(
            codecs=codec_negotiator(settings.codecs),
            languages=language_negotiator(settings.languages),
            transport=transport,
            provider=provider,
        )
        self._logger.info(
            "session_created",
            extra={
                "session_id": session.id,
                "provider": provider.name,
                "codecs": [codec.name for codec in session.codecs.allowed],
                "languages": list(session.languages.allowed),
            },
        )
        return session
