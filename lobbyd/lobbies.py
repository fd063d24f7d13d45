"""Lobby management for the lobbyd hub.

This module handles all lobby-related state:
- Lobby creation with an auto-joined creator
- Membership and per-member presence timestamps
- Deletion of lobbies left without members
- Staleness sweeps driven by the presence reaper
- Lobby list snapshots for broadcasting

None of the methods take a lock; callers hold the hub state lock.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable

from .constants import LOBBY_ID_PREFIX
from .envelope import lobby_summary, now_ms
from .util import new_id


class LobbyError(Exception):
    """Base class for errors reported back to the requesting client."""


class LobbyNotFound(LobbyError):
    pass


class NotMember(LobbyError):
    pass


@dataclass
class Lobby:
    lobby_id: str
    display_name: str
    game_version: str
    created_at: int
    host_client_id: str
    members: set[str] = field(default_factory=set)
    last_seen: dict[str, float] = field(default_factory=dict)


class LobbyStore:
    """Owns every lobby record, keyed by lobby id."""

    def __init__(self, *, clock: Callable[[], float] = time.monotonic) -> None:
        self.log = logging.getLogger("lobbyd.lobbies")
        self.clock = clock
        self.lobbies: dict[str, Lobby] = {}

    def create(self, display_name: str, game_version: str, creator_id: str) -> str:
        lobby_id = new_id(LOBBY_ID_PREFIX)
        while lobby_id in self.lobbies:
            lobby_id = new_id(LOBBY_ID_PREFIX)

        self.lobbies[lobby_id] = Lobby(
            lobby_id=lobby_id,
            display_name=display_name,
            game_version=game_version,
            created_at=now_ms(),
            host_client_id=creator_id,
            members={creator_id},
            last_seen={creator_id: self.clock()},
        )
        self.log.info(
            "Lobby created lobby_id=%s name=%r version=%r host=%s",
            lobby_id,
            display_name,
            game_version,
            creator_id,
        )
        return lobby_id

    def get(self, lobby_id: str) -> Lobby | None:
        return self.lobbies.get(lobby_id)

    def join(self, lobby_id: str, client_id: str) -> Lobby:
        """Add a member; joining a lobby twice is a no-op apart from the touch."""
        lobby = self.lobbies.get(lobby_id)
        if lobby is None:
            raise LobbyNotFound(lobby_id)
        lobby.members.add(client_id)
        lobby.last_seen[client_id] = self.clock()
        return lobby

    def leave(self, lobby_id: str, client_id: str) -> bool:
        """Remove a member. Returns True if the member was present.

        Callers follow up with :meth:`remove_empty` before the next lobby list.
        """
        lobby = self.lobbies.get(lobby_id)
        if lobby is None:
            return False
        was_member = client_id in lobby.members
        lobby.members.discard(client_id)
        lobby.last_seen.pop(client_id, None)
        return was_member

    def touch(self, lobby_id: str, client_id: str) -> None:
        lobby = self.lobbies.get(lobby_id)
        if lobby is None:
            return
        lobby.last_seen[client_id] = self.clock()

    def require_member(self, lobby_id: str, client_id: str) -> Lobby:
        lobby = self.lobbies.get(lobby_id)
        if lobby is None:
            raise LobbyNotFound(lobby_id)
        if client_id not in lobby.members:
            raise NotMember(lobby_id)
        return lobby

    def list(self) -> list[dict[str, Any]]:
        return [lobby_summary(lobby) for lobby in self.lobbies.values()]

    def snapshot_members(self, lobby_id: str) -> set[str]:
        lobby = self.lobbies.get(lobby_id)
        if lobby is None:
            return set()
        return set(lobby.members)

    def remove_empty(self) -> list[str]:
        """Delete every lobby with no members. Returns the deleted ids."""
        removed = [lid for lid, lobby in self.lobbies.items() if not lobby.members]
        for lid in removed:
            self.lobbies.pop(lid, None)
            self.log.info("Lobby removed lobby_id=%s (empty)", lid)
        return removed

    def reap(
        self,
        is_alive: Callable[[str], bool],
        stale_after_s: float,
        now: float | None = None,
    ) -> list[tuple[str, str]]:
        """Drop members that are disconnected or have not been seen recently.

        A member is dead if ``is_alive`` rejects it or if its last presence
        stamp is older than ``stale_after_s``. A member with no stamp at all
        counts as never seen. Returns ``(lobby_id, client_id)`` pairs removed.
        """
        if now is None:
            now = self.clock()

        removed: list[tuple[str, str]] = []
        for lobby in self.lobbies.values():
            for cid in list(lobby.members):
                last = lobby.last_seen.get(cid)
                stale = last is None or (now - last) > stale_after_s
                if stale or not is_alive(cid):
                    lobby.members.discard(cid)
                    lobby.last_seen.pop(cid, None)
                    removed.append((lobby.lobby_id, cid))

            # Presence stamps without a matching member are leftovers.
            for cid in [c for c in lobby.last_seen if c not in lobby.members]:
                lobby.last_seen.pop(cid, None)
        return removed

    def clear_all(self) -> None:
        self.lobbies.clear()

    def get_stats(self) -> dict[str, Any]:
        memberships = sum(len(lobby.members) for lobby in self.lobbies.values())
        top_lobbies = sorted(
            (
                (lobby.display_name, len(lobby.members))
                for lobby in self.lobbies.values()
            ),
            key=lambda x: (-x[1], x[0]),
        )[:5]
        return {
            "lobbies_total": len(self.lobbies),
            "memberships": memberships,
            "top_lobbies": top_lobbies,
        }
