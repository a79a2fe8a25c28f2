import asyncio

from fakes import FakeTransport, RecordingProvider
from speech_gateway.capabilities import SLIN16, ULAW
from speech_gateway.config import Settings
from speech_gateway.providers import ProviderState
from speech_gateway.session import SessionFactory


class StubProviderFactory:
    def __init__(self) -> None:
        self.calls: list[tuple[str, dict]] = []

    def __call__(self, name: str, **options) -> RecordingProvider:
        self.calls.append((name, options))
        return RecordingProvider(**options)


def test_factory_builds_session_from_settings() -> None:
    provider_factory = StubProviderFactory()
    settings = Settings(provider="mock", codecs=["slin16", "ulaw"], languages=["fr-FR"], restart_seconds=0, max_results=5)
    factory = SessionFactory(settings, provider_factory=provider_factory)

    session = factory(FakeTransport())

    assert session.codecs.allowed == (ULAW, SLIN16)
    assert session.languages.allowed == ("fr-FR",)
    assert session.languages.selected == "fr-FR"
    assert provider_factory.calls == [("mock", {"restart_seconds": 0, "max_results": 5})]
    assert session.provider.results.max_results == 5


def test_each_connection_gets_its_own_session() -> None:
    factory = SessionFactory(Settings(provider="mock"), provider_factory=StubProviderFactory())

    first = factory(FakeTransport())
    second = factory(FakeTransport())

    assert first.id != second.id
    assert first.provider is not second.provider
    assert first.codecs is not second.codecs


def test_session_ends_provider_when_transport_closes() -> None:
    factory = SessionFactory(Settings(provider="mock"), provider_factory=StubProviderFactory())
    transport = FakeTransport()
    session = factory(transport)

    async def _run() -> None:
        await session.provider.start()
        transport.hang_up()
        await asyncio.wait_for(session.run(), timeout=1)

    asyncio.run(_run())

    assert session.provider.state is ProviderState.ENDED
    assert session.provider._subscribers == []
