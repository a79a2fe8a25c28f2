"""Transports carrying the negotiation protocol and audio."""

from .interfaces import Frame, Transport
from .websocket import DEFAULT_HOST, DEFAULT_PORT, GatewayServer, WebSocketTransport

__all__ = [
    "DEFAULT_HOST",
    "DEFAULT_PORT",
    "Frame",
    "GatewayServer",
    "Transport",
    "WebSocketTransport",
]
