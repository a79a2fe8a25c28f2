"""WebSocket transport and server built on ``websockets``."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Callable
from typing import Protocol

from websockets.asyncio.server import ServerConnection, serve
from websockets.exceptions import ConnectionClosed

from .interfaces import Frame, Transport

DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 9099


class WebSocketTransport:
    """:class:`Transport` over one accepted WebSocket connection."""

    def __init__(self, connection: ServerConnection, *, logger: logging.Logger | None = None) -> None:
        self._connection = connection
        self._logger = logger or logging.getLogger("speech_gateway.transport")

    @property
    def remote_address(self) -> str:
        address = self._connection.remote_address
        if isinstance(address, tuple) and len(address) >= 2:
            return f"{address[0]}:{address[1]}"
        return str(address)

    async def frames(self) -> AsyncIterator[Frame]:
        try:
            async for message in self._connection:
                yield Frame(data=message, is_binary=isinstance(message, bytes))
        except ConnectionClosed as exc:
            self._logger.info(
                "transport_closed_abnormally",
                extra={"remote": self.remote_address, "code": exc.rcvd.code if exc.rcvd else None},
            )

    async def send(self, data: str | bytes, *, binary: bool = False) -> None:
        if binary and isinstance(data, str):
            data = data.encode("utf-8")
        try:
            await self._connection.send(data)
        except ConnectionClosed:
            self._logger.warning("transport_send_on_closed", extra={"remote": self.remote_address, "binary": binary})

    async def close(self) -> None:
        await self._connection.close()


class SessionRunner(Protocol):
    async def run(self) -> None:
        """Serve the connection until it closes."""


class GatewayServer:
    """Accepts WebSocket clients and runs one session per connection."""

    def __init__(
        self,
        session_factory: Callable[[Transport], SessionRunner],
        *,
        host: str = DEFAULT_HOST,
        port: int = DEFAULT_PORT,
        logger: logging.Logger | None = None,
    ) -> None:
        self._session_factory = session_factory
        self.host = host
        self.port = port
        self._logger = logger or logging.getLogger("speech_gateway.server")

    async def handler(self, connection: ServerConnection) -> None:
        transport = WebSocketTransport(connection)
        self._logger.info("client_connected", extra={"port": self.port, "remote": transport.remote_address})
        try:
            session = self._session_factory(transport)
            await session.run()
        except Exception:  # noqa: BLE001 - one broken session must not stop the server.
            self._logger.exception("session_failed", extra={"remote": transport.remote_address})
            await transport.close()
        finally:
            self._logger.info("client_disconnected", extra={"port": self.port, "remote": transport.remote_address})

    async def serve_forever(self, ready: asyncio.Event | None = None) -> None:
        """Listen until cancelled; leaving closes every client connection."""
        async with serve(self.handler, self.host, self.port, max_size=None) as server:
            sockets = server.sockets
            if sockets:
                self.port = sockets[0].getsockname()[1]
            self._logger.info("server_listening", extra={"host": self.host, "port": self.port})
            if ready is not None:
                ready.set()
            try:
                await asyncio.Future()
            finally:
                self._logger.info("server_stopped", extra={"host": self.host, "port": self.port})
