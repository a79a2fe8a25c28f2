"""In-process provider that fabricates transcripts from the amount of audio received."""

from __future__ import annotations

from speech_gateway.capabilities import SUPPORTED_CODECS, SUPPORTED_LANGUAGES

from .base import ProviderConfig, SpeechProvider


class MockProvider(SpeechProvider):
    """Emits ``(mock) simulated transcript N.`` every ``bytes_per_result`` bytes of audio.

    Used for local demos and tests where no upstream recognition service is reachable.
    """

    name = "mock"
    encodings = {codec.name: codec.name.upper() for codec in SUPPORTED_CODECS}
    languages = SUPPORTED_LANGUAGES

    def __init__(self, *, bytes_per_result: int = 8_000, confidence: float = 0.9, **options) -> None:
        super().__init__(**options)
        self._bytes_per_result = max(1, bytes_per_result)
        self._confidence = confidence
        self._stream_generation = 0
        self._pending_bytes = 0
        self._counter = 0
        self.audio_bytes_received = 0
        self.opened_configs: list[ProviderConfig] = []

    async def _open_stream(self, config: ProviderConfig, generation: int) -> None:
        self._stream_generation = generation
        self._pending_bytes = 0
        self.opened_configs.append(ProviderConfig(codec=config.codec, encoding=config.encoding, language=config.language))

    async def _close_stream(self) -> None:
        self._pending_bytes = 0

    async def _send_audio(self, chunk: bytes) -> None:
        self.audio_bytes_received += len(chunk)
        self._pending_bytes += len(chunk)
        while self._pending_bytes >= self._bytes_per_result:
            self._pending_bytes -= self._bytes_per_result
            self._counter += 1
            self._emit_transcript(
                f"(mock) simulated transcript {self._counter}.",
                self._confidence,
                self._stream_generation,
            )
