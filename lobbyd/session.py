from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Protocol


class Sink(Protocol):
    """Outbound channel to exactly one connected client."""

    def send(self, payload: bytes) -> None: ...

    def close(self) -> None: ...


@dataclass
class Session:
    client_id: str
    sink: Sink
    connected_at: float
    current_lobby_id: str | None = None


class SessionManager:
    """
    Connection registry for the lobbyd hub.

    Maps each ephemeral client id to its sink and keeps the one piece of
    per-connection protocol state, the lobby the client is currently in.
    Lobbies refer to clients by id only; an id missing here means the peer is
    unreachable and sends to it are dropped.

    All methods must be called with the hub state lock held.
    """

    def __init__(self) -> None:
        self.log = logging.getLogger("lobbyd.session")
        self.sessions: dict[str, Session] = {}

    def register(self, client_id: str, sink: Sink) -> Session:
        sess = Session(client_id=client_id, sink=sink, connected_at=time.monotonic())
        self.sessions[client_id] = sess
        self.log.info("Session created client_id=%s", client_id)
        return sess

    def unregister(self, client_id: str) -> Session | None:
        return self.sessions.pop(client_id, None)

    def lookup(self, client_id: str) -> Sink | None:
        sess = self.sessions.get(client_id)
        return sess.sink if sess is not None else None

    def get_session(self, client_id: str) -> Session | None:
        return self.sessions.get(client_id)

    def all(self) -> list[Sink]:
        return [sess.sink for sess in self.sessions.values()]

    def is_connected(self, client_id: str) -> bool:
        return client_id in self.sessions

    def detach(self, client_id: str, lobby_id: str) -> None:
        """Forget ``current_lobby_id`` if it still points at ``lobby_id``."""
        sess = self.sessions.get(client_id)
        if sess is not None and sess.current_lobby_id == lobby_id:
            sess.current_lobby_id = None

    def clear_all(self) -> list[Sink]:
        """Drop every session and return their sinks for teardown."""
        sinks = self.all()
        self.sessions.clear()
        return sinks

    def get_stats(self) -> dict[str, Any]:
        total = len(self.sessions)
        in_lobby = sum(1 for s in self.sessions.values() if s.current_lobby_id)
        return {"total": total, "in_lobby": in_lobby}
