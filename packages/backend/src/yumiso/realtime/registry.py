"""Subscriber registry — which channels are listening to which list.

Invariant: a list id with no subscribers is never kept as a key.
All methods are plain synchronous code — under a single event loop they
run without interleaving, so no locking is needed.
"""

from typing import Hashable

from yumiso.realtime.channel import Channel


class SubscriberRegistry:
    def __init__(self) -> None:
        self._subscribers: dict[int, set[Channel]] = {}

    def subscribe(self, list_id: int, channel: Channel) -> None:
        self._subscribers.setdefault(list_id, set()).add(channel)

    def unsubscribe(self, list_id: int, channel: Channel) -> None:
        """Remove channel from list_id. Unknown lists/channels are ignored."""
        channels = self._subscribers.get(list_id)
        if channels is None:
            return
        channels.discard(channel)
        if not channels:
            del self._subscribers[list_id]

    def count_subscribers(self, list_id: int) -> int:
        return len(self._subscribers.get(list_id, ()))

    def subscribers(self, list_id: int) -> tuple[Channel, ...]:
        """Snapshot of the channels of a list, safe to iterate while mutating."""
        return tuple(self._subscribers.get(list_id, ()))

    def list_ids(self) -> list[int]:
        return list(self._subscribers)

    def __contains__(self, list_id: Hashable) -> bool:
        return list_id in self._subscribers

    def __len__(self) -> int:
        return len(self._subscribers)
