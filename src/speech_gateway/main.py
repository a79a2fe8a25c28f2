"""CLI startup entrypoint for the speech gateway."""

from __future__ import annotations

import asyncio

import typer
from rich import print

from speech_gateway.capabilities import codec_negotiator, language_negotiator
from speech_gateway.config import Settings, settings
from speech_gateway.errors import UnsupportedCapability
from speech_gateway.providers import provider_names
from speech_gateway.session import SessionFactory
from speech_gateway.telemetry.logging import configure_logging
from speech_gateway.transport import GatewayServer

app = typer.Typer(help="Speech gateway service entrypoint")


def _split(value: str | None) -> list[str] | None:
    if value is None:
        return None
    items = [item.strip() for item in value.split(",") if item.strip()]
    return items or None


def _effective_settings(**overrides) -> Settings:
    changes = {key: value for key, value in overrides.items() if value is not None}
    return settings.model_copy(update=changes)


def _describe(runtime: Settings) -> dict:
    codecs = codec_negotiator(runtime.codecs)
    languages = language_negotiator(runtime.languages)
    return {
        "app_name": runtime.app_name,
        "host": runtime.host,
        "port": runtime.port,
        "provider": runtime.provider,
        "codecs": [codec.name for codec in codecs.allowed],
        "languages": list(languages.allowed),
        "restart_seconds": runtime.restart_seconds,
        "max_results": runtime.max_results,
    }


@app.command()
def start() -> None:
    """Show runtime configuration."""
    try:
        print(_describe(settings))
    except UnsupportedCapability as exc:
        print({"error": str(exc)})
        raise typer.Exit(code=1)


@app.command()
def capabilities(
    codecs: str = typer.Option(None, help="Comma separated codec names to allow"),
    languages: str = typer.Option(None, help="Comma separated language tags to allow"),
) -> None:
    """List supported and allowed codecs, languages and providers."""
    try:
        codec_set = codec_negotiator(_split(codecs) or settings.codecs)
        language_set = language_negotiator(_split(languages) or settings.languages)
    except UnsupportedCapability as exc:
        print({"error": str(exc)})
        raise typer.Exit(code=1)

    print(
        {
            "codecs": {
                "supported": [codec.to_descriptor() for codec in codec_set.universal],
                "allowed": [codec.name for codec in codec_set.allowed],
            },
            "languages": {
                "supported": list(language_set.universal),
                "allowed": list(language_set.allowed),
            },
            "providers": provider_names(),
        }
    )


@app.command()
def serve(
    host: str = typer.Option(None, help="Interface to listen on"),
    port: int = typer.Option(None, help="Port to listen on"),
    provider: str = typer.Option(None, help="Speech provider name"),
    codecs: str = typer.Option(None, help="Comma separated codec names to allow"),
    languages: str = typer.Option(None, help="Comma separated language tags to allow"),
    restart_seconds: float = typer.Option(None, help="Auto-restart interval for upstream streams; 0 disables"),
    max_results: int = typer.Option(None, help="Results buffered per session"),
    log_level: str = typer.Option(None, help="Logging level"),
) -> None:
    """Run the WebSocket speech gateway until interrupted."""
    runtime = _effective_settings(
        host=host,
        port=port,
        provider=provider,
        codecs=_split(codecs),
        languages=_split(languages),
        restart_seconds=restart_seconds,
        max_results=max_results,
        log_level=log_level,
    )

    if runtime.provider.strip().lower() not in provider_names():
        raise typer.BadParameter(
            f"Unsupported speech provider '{runtime.provider}' (expected one of: {', '.join(provider_names())})"
        )

    try:
        description = _describe(runtime)
    except UnsupportedCapability as exc:
        print({"error": str(exc)})
        raise typer.Exit(code=1)

    configure_logging(runtime.log_level)
    print({"speech_gateway": "starting", **description})

    server = GatewayServer(SessionFactory(runtime), host=runtime.host, port=runtime.port)
    try:
        asyncio.run(server.serve_forever())
    except KeyboardInterrupt:
        print({"speech_gateway": "stopped"})


if __name__ == "__main__":
    app()
