"""Real-time shopping-list collaboration — server-sent events.

Learn: Events flow through three pieces:
1. SubscriberRegistry — list id → set of open channels
2. EventBroadcaster — serializes an event once, writes it to every channel
3. live_event_stream — one producer per HTTP connection, owns its channel

Everything is in-process. Subscribers connected to another instance of
the app never see a broadcast from this one; clients recover by
reconnecting, which always starts with a fresh `initial` snapshot.
"""
