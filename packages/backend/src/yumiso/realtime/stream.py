"""Per-connection live event producer.

Learn: one async generator per open HTTP stream. It owns a QueueChannel
for its whole life:

    subscribe → connected → initial snapshot → queued frames / heartbeats
                                                        ↓ (disconnect)
                                               unsubscribe + close

Starlette cancels the generator when the client goes away; the
``finally`` block is the only cleanup path, so a subscriber can never
outlive its connection. Heartbeats go out on a fixed schedule, every
``heartbeat_seconds`` from the moment the stream opens, whether or not
events were delivered in between.
"""

import asyncio
from typing import AsyncIterator, Awaitable, Callable

import structlog

from yumiso.realtime import events
from yumiso.realtime.broadcaster import HEARTBEAT_FRAME, EventBroadcaster, format_event
from yumiso.realtime.channel import QueueChannel

logger = structlog.get_logger()

SnapshotLoader = Callable[[], Awaitable[list[dict]]]


async def live_event_stream(
    list_id: int,
    broadcaster: EventBroadcaster,
    load_snapshot: SnapshotLoader,
    heartbeat_seconds: float = 30.0,
) -> AsyncIterator[str]:
    registry = broadcaster.registry
    channel = QueueChannel()
    registry.subscribe(list_id, channel)
    logger.info(
        "realtime.subscribed",
        list_id=list_id,
        subscribers=registry.count_subscribers(list_id),
    )

    try:
        channel.send(format_event(events.connected(list_id)))
        items = await load_snapshot()
        channel.send(format_event(events.initial(items)))

        loop = asyncio.get_running_loop()
        next_heartbeat = loop.time() + heartbeat_seconds
        while True:
            now = loop.time()
            if now >= next_heartbeat:
                next_heartbeat = now + heartbeat_seconds
                yield HEARTBEAT_FRAME
                continue
            frame = await channel.receive(timeout=next_heartbeat - now)
            if frame is not None:
                yield frame
    finally:
        registry.unsubscribe(list_id, channel)
        channel.close()
        logger.info(
            "realtime.unsubscribed",
            list_id=list_id,
            subscribers=registry.count_subscribers(list_id),
        )
