"""Lifecycle contract every streaming speech-recognition backend implements.

A provider instance belongs to exactly one session and moves through three states::

    IDLE --start--> STREAMING --stop--> IDLE --end--> ENDED

``restart`` is ``stop`` followed by ``start`` under the same lock, so a restart
requested by the remote peer cannot interleave with the provider's own
auto-restart task. Each ``start`` bumps :attr:`SpeechProvider.generation`; results
produced by an older stream are discarded.

Concrete providers only implement the upstream hooks (``_open_stream``,
``_close_stream``, ``_send_audio`` and optionally ``_release``) and report
transcripts through :meth:`SpeechProvider._emit_transcript`.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from collections import deque
from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import ClassVar

from speech_gateway.capabilities import SUPPORTED_CODECS, ULAW, Codec
from speech_gateway.errors import ProviderStreamError, UnsupportedCapability

DEFAULT_LANGUAGE = "en-US"
DEFAULT_RESTART_SECONDS = 10.0
DEFAULT_MAX_RESULTS = 100


class ProviderState(str, Enum):
    """Recognition stream lifecycle states."""

    IDLE = "idle"
    STREAMING = "streaming"
    ENDED = "ended"


@dataclass(slots=True, frozen=True)
class StreamConfig:
    """Partial configuration requested by the dispatcher; ``None`` keeps the current value."""

    codec: Codec | None = None
    language: str | None = None


@dataclass(slots=True)
class ProviderConfig:
    """Effective configuration used when opening an upstream stream."""

    codec: Codec
    encoding: str
    language: str

    @property
    def sample_rate(self) -> int:
        return self.codec.sample_rate


@dataclass(slots=True, frozen=True)
class RecognitionResult:
    """A confident transcription; ``score`` is a 0-100 percentage."""

    text: str
    score: int

    @classmethod
    def from_confidence(cls, text: str, confidence: float) -> RecognitionResult:
        return cls(text=text, score=max(0, min(100, round(confidence * 100))))

    def to_dict(self) -> dict[str, object]:
        return {"text": self.text, "score": self.score}


class ResultBuffer:
    """Bounded FIFO of recent results. The oldest result is evicted first."""

    def __init__(self, max_results: int = DEFAULT_MAX_RESULTS) -> None:
        if max_results < 1:
            raise ValueError("max_results must be at least 1")
        self._results: deque[RecognitionResult] = deque(maxlen=max_results)

    @property
    def max_results(self) -> int:
        return self._results.maxlen or 0

    def append(self, result: RecognitionResult) -> None:
        self._results.append(result)

    def drain(self) -> list[RecognitionResult]:
        """Return every buffered result, oldest first, and empty the buffer."""
        drained = list(self._results)
        self._results.clear()
        return drained

    def __len__(self) -> int:
        return len(self._results)

    def __iter__(self) -> Iterator[RecognitionResult]:
        return iter(list(self._results))


ResultCallback = Callable[[RecognitionResult, int], None]


class SpeechProvider(ABC):
    """Base class implementing the provider state machine and result fan-out."""

    name: ClassVar[str] = "base"
    # codec name -> provider specific encoding
    encodings: ClassVar[Mapping[str, str]] = {}
    languages: ClassVar[tuple[str, ...]] = (DEFAULT_LANGUAGE,)

    def __init__(
        self,
        *,
        restart_seconds: float | None = DEFAULT_RESTART_SECONDS,
        max_results: int = DEFAULT_MAX_RESULTS,
        logger: logging.Logger | None = None,
    ) -> None:
        self._restart_seconds = restart_seconds or None
        self._results = ResultBuffer(max_results)
        self._logger = logger or logging.getLogger(f"speech_gateway.providers.{self.name}")

        codec = next((codec for codec in SUPPORTED_CODECS if codec.name in self.encodings), ULAW)
        self.config = ProviderConfig(
            codec=codec,
            encoding=self.encodings.get(codec.name, ""),
            language=DEFAULT_LANGUAGE if DEFAULT_LANGUAGE in self.languages else self.languages[0],
        )

        self._state = ProviderState.IDLE
        self._generation = 0
        self._lock = asyncio.Lock()
        self._restart_task: asyncio.Task[None] | None = None
        self._subscribers: list[ResultCallback] = []

    @property
    def state(self) -> ProviderState:
        return self._state

    @property
    def generation(self) -> int:
        """Counter bumped on every stream start."""
        return self._generation

    @property
    def results(self) -> ResultBuffer:
        return self._results

    @property
    def restart_seconds(self) -> float | None:
        return self._restart_seconds

    def subscribe(self, callback: ResultCallback) -> Callable[[], None]:
        """Register a result listener and return the matching unsubscribe callable."""
        self._subscribers.append(callback)

        def _unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return _unsubscribe

    def check_config(self, config: StreamConfig | None) -> None:
        """Validate ``config`` against what this provider can recognize."""
        if config is None:
            return
        if config.codec is not None and config.codec.name not in self.encodings:
            raise UnsupportedCapability(f"Codec '{config.codec.name}' not supported by provider '{self.name}'")
        if config.language is not None and config.language not in self.languages:
            raise UnsupportedCapability(f"Language '{config.language}' not supported by provider '{self.name}'")

    def set_config(self, config: StreamConfig | None) -> None:
        """Merge ``config`` into the configuration used by the next stream."""
        if config is None:
            return
        self.check_config(config)

        if config.codec is not None:
            self.config.codec = config.codec
            self.config.encoding = self.encodings[config.codec.name]
        if config.language is not None:
            self.config.language = config.language

    async def start(self, config: StreamConfig | None = None) -> None:
        """Open the upstream recognition stream unless one is already running."""
        async with self._lock:
            await self._start_locked(config)

    async def stop(self) -> None:
        """Close the upstream stream, if any, and go idle."""
        async with self._lock:
            await self._stop_locked()

    async def restart(self, config: StreamConfig | None = None) -> None:
        """Stop then start; starts the stream when the provider is idle."""
        async with self._lock:
            await self._stop_locked()
            await self._start_locked(config)

    async def end(self) -> None:
        """Stop streaming and release every provider resource. Idempotent."""
        async with self._lock:
            if self._state is ProviderState.ENDED:
                return
            await self._stop_locked()
            self._state = ProviderState.ENDED
            self._subscribers.clear()
            await self._release()
            self._logger.info("provider_ended", extra={"provider": self.name})

    async def write(self, chunk: bytes) -> None:
        """Forward raw audio to the active stream; dropped unless streaming."""
        if self._state is not ProviderState.STREAMING:
            return
        await self._send_audio(chunk)

    async def _start_locked(self, config: StreamConfig | None) -> None:
        if self._state is ProviderState.ENDED:
            raise ProviderStreamError(f"Provider '{self.name}' has ended")
        if self._state is ProviderState.STREAMING:
            return

        self.set_config(config)
        self._generation += 1
        await self._open_stream(self.config, self._generation)
        self._state = ProviderState.STREAMING

        if self._restart_seconds:
            self._restart_task = asyncio.create_task(
                self._auto_restart(self._generation),
                name=f"{self.name}-auto-restart",
            )

        self._logger.info(
            "provider_started",
            extra={
                "provider": self.name,
                "generation": self._generation,
                "encoding": self.config.encoding,
                "sample_rate": self.config.sample_rate,
                "language": self.config.language,
            },
        )

    async def _stop_locked(self) -> None:
        self._cancel_restart_timer()
        if self._state is not ProviderState.STREAMING:
            return

        self._state = ProviderState.IDLE
        await self._close_stream()
        self._logger.info("provider_stopped", extra={"provider": self.name, "generation": self._generation})

    def _cancel_restart_timer(self) -> None:
        task, self._restart_task = self._restart_task, None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    async def _auto_restart(self, generation: int) -> None:
        if not self._restart_seconds:
            return
        await asyncio.sleep(self._restart_seconds)

        # From here on a concurrent stop() must not cancel us half way through a restart.
        if self._restart_task is asyncio.current_task():
            self._restart_task = None

        failure: Exception | None = None
        async with self._lock:
            if self._state is not ProviderState.STREAMING or self._generation != generation:
                return
            self._logger.info("provider_auto_restart", extra={"provider": self.name, "generation": generation})
            try:
                await self._stop_locked()
                await self._start_locked(None)
            except Exception as exc:  # noqa: BLE001 - nobody awaits this task, so the failure ends the provider.
                failure = exc

        if failure is not None:
            await self._end_after_failure(failure, self._generation)

    def _emit_transcript(self, text: str, confidence: float, generation: int) -> RecognitionResult | None:
        """Buffer and publish a transcript produced by stream ``generation``."""
        if generation != self._generation or self._state is not ProviderState.STREAMING:
            self._logger.debug("provider_stale_result", extra={"provider": self.name, "generation": generation})
            return None
        if confidence <= 0:
            return None

        result = RecognitionResult.from_confidence(text, confidence)
        self._logger.debug("provider_result", extra={"provider": self.name, "text": result.text, "score": result.score})
        self._results.append(result)
        for callback in list(self._subscribers):
            callback(result, generation)
        return result

    async def _stream_failed(self, exc: BaseException, generation: int) -> None:
        """Treat an upstream failure as fatal to the provider, not to the session."""
        if generation != self._generation or self._state is not ProviderState.STREAMING:
            return
        await self._end_after_failure(exc, generation)

    async def _end_after_failure(self, exc: BaseException, generation: int) -> None:
        error = exc if isinstance(exc, ProviderStreamError) else ProviderStreamError(str(exc))
        self._logger.error(
            "provider_stream_failed",
            extra={"provider": self.name, "generation": generation, "error": f"{type(exc).__name__}: {error}"},
        )
        await self.end()

    @abstractmethod
    async def _open_stream(self, config: ProviderConfig, generation: int) -> None:
        """Open the upstream recognition session for ``generation``."""

    @abstractmethod
    async def _close_stream(self) -> None:
        """Signal end-of-stream to the upstream session."""

    @abstractmethod
    async def _send_audio(self, chunk: bytes) -> None:
        """Append audio to the upstream session."""

    async def _release(self) -> None:
        """Release clients or other long-lived resources."""
        return None
