from __future__ import annotations

import asyncio
import logging

import pytest

from fakes import RecordingProvider, wait_until
from speech_gateway.capabilities import OPUS, SLIN16, Codec
from speech_gateway.errors import ProviderStreamError, UnsupportedCapability, UnsupportedProviderError
from speech_gateway.providers import (
    GoogleProvider,
    MockProvider,
    ProviderState,
    RecognitionResult,
    ResultBuffer,
    StreamConfig,
    get_provider,
    provider_names,
)


def test_result_buffer_evicts_oldest() -> None:
    buffer = ResultBuffer(max_results=3)
    for index in range(4):
        buffer.append(RecognitionResult(text=f"r{index}", score=50))

    assert len(buffer) == 3
    assert [result.text for result in buffer] == ["r1", "r2", "r3"]


def test_result_buffer_drain_empties() -> None:
    buffer = ResultBuffer()
    buffer.append(RecognitionResult(text="a", score=10))

    assert buffer.drain() == [RecognitionResult(text="a", score=10)]
    assert buffer.drain() == []


def test_provider_keeps_at_most_max_results() -> None:
    async def _run() -> RecordingProvider:
        provider = RecordingProvider(max_results=100)
        await provider.start()
        for index in range(1, 102):
            provider.emit(f"result {index}", 0.5)
        return provider

    provider = asyncio.run(_run())
    texts = [result.text for result in provider.results]

    assert len(texts) == 100
    assert "result 1" not in texts
    assert texts[-1] == "result 101"


def test_zero_confidence_results_are_suppressed() -> None:
    async def _run() -> tuple[RecordingProvider, list]:
        provider = RecordingProvider()
        seen: list = []
        provider.subscribe(lambda result, generation: seen.append((result, generation)))
        await provider.start()
        provider.emit("ignored", 0.0)
        provider.emit("kept", 0.876)
        return provider, seen

    provider, seen = asyncio.run(_run())

    assert [result.text for result in provider.results] == ["kept"]
    assert seen == [(RecognitionResult(text="kept", score=88), 1)]


def test_unsubscribe_stops_delivery() -> None:
    async def _run() -> list:
        provider = RecordingProvider()
        seen: list = []
        unsubscribe = provider.subscribe(lambda result, generation: seen.append(result))
        await provider.start()
        unsubscribe()
        unsubscribe()
        provider.emit("after", 0.9)
        return seen

    assert asyncio.run(_run()) == []


def test_lifecycle_transitions_are_idempotent() -> None:
    async def _run() -> RecordingProvider:
        provider = RecordingProvider()
        await provider.stop()
        assert provider.state is ProviderState.IDLE

        await provider.start(StreamConfig(codec=SLIN16))
        await provider.start()
        assert provider.state is ProviderState.STREAMING
        assert len(provider.opened) == 1

        await provider.stop()
        await provider.stop()
        assert provider.state is ProviderState.IDLE
        assert provider.closed_streams == 1

        await provider.restart(StreamConfig(language="fr-FR"))
        assert provider.state is ProviderState.STREAMING
        assert provider.generation == 2

        await provider.end()
        await provider.end()
        assert provider.state is ProviderState.ENDED
        assert provider.released == 1
        assert provider.closed_streams == 2

        with pytest.raises(ProviderStreamError):
            await provider.start()
        return provider

    provider = asyncio.run(_run())

    assert provider.opened[0].codec == SLIN16
    assert provider.opened[0].encoding == "SLIN16"
    assert provider.opened[1].codec == SLIN16
    assert provider.opened[1].language == "fr-FR"


def test_write_is_dropped_unless_streaming() -> None:
    async def _run() -> MockProvider:
        provider = MockProvider(restart_seconds=None, bytes_per_result=4)
        await provider.write(b"1234")
        await provider.start()
        await provider.write(b"12345678")
        await provider.end()
        await provider.write(b"1234")
        return provider

    provider = asyncio.run(_run())

    assert provider.audio_bytes_received == 8
    assert [result.text for result in provider.results] == [
        "(mock) simulated transcript 1.",
        "(mock) simulated transcript 2.",
    ]


def test_results_from_a_stale_stream_are_dropped() -> None:
    async def _run() -> RecordingProvider:
        provider = RecordingProvider()
        await provider.start()
        old_generation = provider.generation
        await provider.restart()
        provider._emit_transcript("stale", 0.9, old_generation)
        provider.emit("fresh", 0.9)
        return provider

    provider = asyncio.run(_run())

    assert [result.text for result in provider.results] == ["fresh"]


def test_auto_restart_reopens_stream_until_stopped() -> None:
    async def _run() -> tuple[int, int]:
        provider = RecordingProvider(restart_seconds=0.01)
        await provider.start()
        await asyncio.sleep(0.1)
        restarted = provider.generation
        await provider.stop()
        await asyncio.sleep(0.05)
        return restarted, provider.generation

    restarted, after_stop = asyncio.run(_run())

    assert restarted > 1
    assert after_stop == restarted


def test_auto_restart_is_disarmed_by_end() -> None:
    async def _run() -> RecordingProvider:
        provider = RecordingProvider(restart_seconds=0.02)
        await provider.start()
        await provider.end()
        await asyncio.sleep(0.05)
        return provider

    provider = asyncio.run(_run())

    assert provider.generation == 1
    assert provider.state is ProviderState.ENDED


def test_concurrent_restarts_do_not_double_close() -> None:
    async def _run() -> RecordingProvider:
        provider = RecordingProvider()
        await asyncio.gather(provider.restart(), provider.restart(), provider.stop())
        return provider

    provider = asyncio.run(_run())

    assert provider.closed_streams == len(provider.opened) - (1 if provider.state is ProviderState.STREAMING else 0)


def test_set_config_validates_against_provider_support() -> None:
    provider = RecordingProvider()

    with pytest.raises(UnsupportedCapability):
        provider.set_config(StreamConfig(codec=Codec(name="g722")))
    with pytest.raises(UnsupportedCapability):
        provider.set_config(StreamConfig(language="xx-XX"))

    provider.set_config(StreamConfig(codec=OPUS, language="de-DE"))
    assert provider.config.encoding == "OPUS"
    assert provider.config.sample_rate == 48_000
    assert provider.config.language == "de-DE"


def test_stream_failure_ends_the_provider() -> None:
    async def _run() -> RecordingProvider:
        provider = RecordingProvider()
        await provider.start()
        await provider._stream_failed(RuntimeError("upstream went away"), provider.generation)
        return provider

    provider = asyncio.run(_run())

    assert provider.state is ProviderState.ENDED
    assert provider.released == 1


class _RefusingRestartProvider(RecordingProvider):
    async def _open_stream(self, config, generation: int) -> None:
        if generation > 1:
            raise RuntimeError("upstream refused")
        await super()._open_stream(config, generation)


def test_failed_auto_restart_ends_the_provider(caplog: pytest.LogCaptureFixture) -> None:
    async def _run() -> _RefusingRestartProvider:
        provider = _RefusingRestartProvider(restart_seconds=0.01)
        await provider.start()
        await wait_until(lambda: provider.state is ProviderState.ENDED)
        return provider

    with caplog.at_level(logging.ERROR, logger="speech_gateway.providers.recording"):
        provider = asyncio.run(_run())

    assert provider.state is ProviderState.ENDED
    assert provider.released == 1
    assert len(provider.opened) == 1
    failures = [record for record in caplog.records if record.getMessage() == "provider_stream_failed"]
    assert len(failures) == 1
    assert failures[0].levelno == logging.ERROR
    assert failures[0].error == "RuntimeError: upstream refused"


def test_registry() -> None:
    assert provider_names() == ["google", "mock"]
    assert isinstance(get_provider("mock", restart_seconds=None), MockProvider)
    assert GoogleProvider.encodings["ulaw"] == "MULAW"

    with pytest.raises(UnsupportedProviderError, match="Unsupported speech provider 'azure'"):
        get_provider("azure")
