"""Message queueing utilities for the lobbyd hub."""

from __future__ import annotations

from typing import TYPE_CHECKING

from .codec import encode
from .envelope import make_error, make_lobby_list

if TYPE_CHECKING:
    from .service import HubService
    from .session import Sink

Outgoing = list[tuple["Sink", bytes]]


class MessageHelper:
    """
    Helper methods for queueing outbound messages.

    Handlers run with the hub state lock held and never send directly: they
    append ``(sink, payload)`` pairs to an outgoing list which the hub flushes
    after releasing the lock.
    """

    def __init__(self, hub: HubService) -> None:
        self.hub = hub

    def queue_payload(self, outgoing: Outgoing, sink: Sink, payload: bytes) -> None:
        """Add a raw payload to the outgoing queue."""
        outgoing.append((sink, payload))

    def queue_env(self, outgoing: Outgoing, client_id: str, env: dict) -> bool:
        """Encode and queue a message for one client.

        Returns False (and queues nothing) if the client has no sink.
        """
        sink = self.hub.session_manager.lookup(client_id)
        if sink is None:
            return False
        self.queue_payload(outgoing, sink, encode(env))
        return True

    def emit_error(self, outgoing: Outgoing, client_id: str, text: str) -> None:
        self.hub.stats_manager.inc("errors_sent")
        self.queue_env(outgoing, client_id, make_error(text))

    def queue_lobby_list(self, outgoing: Outgoing) -> None:
        """Queue the current lobby list for every registered client.

        The list is encoded once; all recipients get the same snapshot.
        """
        payload = encode(make_lobby_list(self.hub.lobby_store.list()))
        sinks = self.hub.session_manager.all()
        for sink in sinks:
            self.queue_payload(outgoing, sink, payload)
        self.hub.stats_manager.inc("broadcasts")
