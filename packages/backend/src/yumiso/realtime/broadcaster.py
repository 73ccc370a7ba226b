"""Event broadcaster — fan-out of one event to every channel of a list.

Learn: the wire format is plain server-sent events. An event is one
``data: <json>`` frame; a heartbeat is a comment frame that browsers
ignore but proxies count as traffic:

    data: {"type": "item_added", ...}\\n\\n
    : heartbeat\\n\\n

The event is serialized once per broadcast, not once per subscriber.
A channel that fails is collected during the loop and unsubscribed after
it, so one dead connection never stops delivery to the others and never
surfaces to the request that triggered the broadcast.
"""

import json
from typing import Any

import structlog

from yumiso.realtime.channel import Channel
from yumiso.realtime.registry import SubscriberRegistry

logger = structlog.get_logger()

HEARTBEAT_FRAME = ": heartbeat\n\n"


def format_event(event: dict[str, Any]) -> str:
    """Encode an event as a single SSE data frame."""
    payload = json.dumps(event, ensure_ascii=False, default=str)
    return f"data: {payload}\n\n"


class EventBroadcaster:
    def __init__(self, registry: SubscriberRegistry) -> None:
        self.registry = registry

    def broadcast(self, list_id: int, event: dict[str, Any]) -> int:
        """Send event to every subscriber of list_id.

        Returns the number of channels that accepted the frame.
        """
        channels = self.registry.subscribers(list_id)
        if not channels:
            return 0
        delivered = self._send_all(list_id, channels, format_event(event))
        logger.debug(
            "realtime.broadcast",
            list_id=list_id,
            event_type=event.get("type"),
            delivered=delivered,
        )
        return delivered

    def _send_all(self, list_id: int, channels: tuple[Channel, ...], frame: str) -> int:
        dead: list[Channel] = []
        for channel in channels:
            try:
                channel.send(frame)
            except Exception as e:
                dead.append(channel)
                logger.debug(
                    "realtime.subscriber_dropped", list_id=list_id, error=str(e)
                )

        for channel in dead:
            self.registry.unsubscribe(list_id, channel)
        return len(channels) - len(dead)


class ListBroadcasters:
    """One registry + broadcaster per kind of list.

    Meal plans and standalone lists number their ids independently, so
    plan 42 and list 42 are unrelated lists, usually of different users.
    Each kind gets its own registry; an event for one can never reach a
    subscriber of the other.
    """

    def __init__(self, kinds: tuple[str, ...]) -> None:
        self._by_kind = {kind: EventBroadcaster(SubscriberRegistry()) for kind in kinds}

    def for_kind(self, kind: str) -> EventBroadcaster:
        return self._by_kind[kind]

    def registry(self, kind: str) -> SubscriberRegistry:
        return self._by_kind[kind].registry

    def live_lists(self) -> dict[str, int]:
        """Number of lists with at least one subscriber, per kind."""
        return {kind: len(b.registry) for kind, b in self._by_kind.items()}
