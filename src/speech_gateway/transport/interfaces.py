"""Boundary between the dispatcher and the connection carrying the protocol."""

from __future__ import annotations

from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Protocol


@dataclass(slots=True, frozen=True)
class Frame:
    """One inbound transport message."""

    data: str | bytes
    is_binary: bool


class Transport(Protocol):
    """Interface to the remote peer (typically a WebSocket opened by the PBX)."""

    def frames(self) -> AsyncIterator[Frame]:
        """Yield inbound frames in arrival order; the iterator ends when the peer closes."""

    async def send(self, data: str | bytes, *, binary: bool = False) -> None:
        """Send a text or binary frame to the peer."""

    async def close(self) -> None:
        """Close the connection."""
