"""Streaming recognition backed by Google Cloud Speech-to-Text.

The upstream session expires on its own after a few minutes, which is why the
base class re-opens the stream every ``restart_seconds``.
"""

from __future__ import annotations

import asyncio
import importlib
from collections.abc import AsyncIterator
from typing import Any

from speech_gateway.errors import ProviderUnavailableError

from .base import ProviderConfig, SpeechProvider

CLOSE_TIMEOUT_SECONDS = 2.0


def _load_speech_module() -> Any:
    try:
        return importlib.import_module("google.cloud.speech")
    except ImportError as exc:  # pragma: no cover - import guard
        raise ProviderUnavailableError(
            "Google speech provider unavailable. Install extras with: pip install 'speech-gateway[google]'"
        ) from exc


class GoogleProvider(SpeechProvider):
    """Google ``streaming_recognize`` session with interim results."""

    name = "google"
    encodings = {
        "ulaw": "MULAW",
        "slin16": "LINEAR16",
        "opus": "OGG_OPUS",
    }
    languages = ("en-US",)

    def __init__(self, *, client: Any | None = None, interim_results: bool = True, **options) -> None:
        super().__init__(**options)
        self._speech = _load_speech_module()
        self._client = client if client is not None else self._speech.SpeechAsyncClient()
        self._interim_results = interim_results
        self._audio: asyncio.Queue[bytes | None] | None = None
        self._stream_task: asyncio.Task[None] | None = None

    async def _open_stream(self, config: ProviderConfig, generation: int) -> None:
        speech = self._speech
        streaming_config = speech.StreamingRecognitionConfig(
            config=speech.RecognitionConfig(
                encoding=speech.RecognitionConfig.AudioEncoding[config.encoding],
                sample_rate_hertz=config.sample_rate,
                language_code=config.language,
            ),
            interim_results=self._interim_results,
        )

        audio: asyncio.Queue[bytes | None] = asyncio.Queue()
        self._audio = audio
        self._stream_task = asyncio.create_task(
            self._consume(streaming_config, audio, generation),
            name=f"google-stream-{generation}",
        )

    async def _close_stream(self) -> None:
        audio, self._audio = self._audio, None
        task, self._stream_task = self._stream_task, None

        if audio is not None:
            audio.put_nowait(None)
        if task is None or task is asyncio.current_task():
            return

        done, _ = await asyncio.wait({task}, timeout=CLOSE_TIMEOUT_SECONDS)
        if not done:
            self._logger.warning("google_stream_close_timeout", extra={"timeout_seconds": CLOSE_TIMEOUT_SECONDS})
            task.cancel()

    async def _send_audio(self, chunk: bytes) -> None:
        if self._audio is not None:
            self._audio.put_nowait(bytes(chunk))

    async def _release(self) -> None:
        await self._client.transport.close()

    async def _requests(self, streaming_config: Any, audio: asyncio.Queue[bytes | None]) -> AsyncIterator[Any]:
        yield self._speech.StreamingRecognizeRequest(streaming_config=streaming_config)
        while True:
            chunk = await audio.get()
            if chunk is None:
                return
            yield self._speech.StreamingRecognizeRequest(audio_content=chunk)

    async def _consume(self, streaming_config: Any, audio: asyncio.Queue[bytes | None], generation: int) -> None:
        try:
            responses = await self._client.streaming_recognize(requests=self._requests(streaming_config, audio))
            async for response in responses:
                self._handle_response(response, generation)
        except asyncio.CancelledError:
            raise
        except Exception as exc:  # noqa: BLE001 - any upstream failure ends this provider.
            if self._stream_task is asyncio.current_task():
                self._stream_task = None
                self._audio = None
            await self._stream_failed(exc, generation)

    def _handle_response(self, response: Any, generation: int) -> None:
        if not response.results or not response.results[0].alternatives:
            self._logger.debug("google_response_without_result", extra={"generation": generation})
            return

        alternative = response.results[0].alternatives[0]
        self._emit_transcript(alternative.transcript, alternative.confidence, generation)
