"""Channels — the sending end of one open streaming connection.

Learn: the broadcaster only needs ``send(text)``. A closed channel raises
ChannelClosedError, which the broadcaster treats as "drop this
subscriber". QueueChannel is the production implementation: sends are
non-blocking puts, and the connection's producer drains the queue in
order, so frames reach each subscriber in the order they were sent.
"""

import asyncio
from typing import Optional, Protocol


class ChannelClosedError(Exception):
    """Raised when sending to a channel whose connection has gone away."""


class Channel(Protocol):
    def send(self, text: str) -> None: ...


class QueueChannel:
    """asyncio.Queue-backed channel owned by a single streaming response."""

    def __init__(self) -> None:
        self._queue: asyncio.Queue[str] = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def send(self, text: str) -> None:
        if self._closed:
            raise ChannelClosedError("channel is closed")
        self._queue.put_nowait(text)

    async def receive(self, timeout: Optional[float] = None) -> Optional[str]:
        """Next queued frame, or None if nothing arrived within timeout."""
        try:
            return await asyncio.wait_for(self._queue.get(), timeout=timeout)
        except asyncio.TimeoutError:
            return None

    def pending(self) -> int:
        return self._queue.qsize()

    def close(self) -> None:
        self._closed = True
