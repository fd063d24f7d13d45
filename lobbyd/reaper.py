"""Presence reaper: evicts stale lobby members and empty lobbies."""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .messages import Outgoing
    from .service import HubService


class PresenceReaper:
    """
    Periodic sweep over the lobby store.

    Each tick drops members whose connection is gone or whose last heartbeat
    is older than ``stale_after_s``, then deletes lobbies left empty. One
    lobby list broadcast is sent per tick if anything changed, however many
    members expired.
    """

    def __init__(self, hub: HubService) -> None:
        self.hub = hub
        self.log = logging.getLogger("lobbyd.reaper")
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._loop, name="lobbyd-reaper", daemon=True
        )
        self._thread.start()

    def stop(self, timeout: float | None = 1.0) -> None:
        self._stop.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
        self._thread = None

    def _loop(self) -> None:
        while not self._stop.is_set():
            interval = float(self.hub.config.reap_interval_s)
            if interval <= 0:
                self._stop.wait(1.0)
                continue

            if self._stop.wait(interval):
                break
            try:
                self.sweep()
            except Exception:
                self.log.exception("Reaper sweep failed")

    def sweep(self, now: float | None = None) -> bool:
        """Run one reaper tick. Returns True if a lobby list was broadcast."""
        outgoing: Outgoing = []

        with self.hub._state_lock:
            changed = self.sweep_locked(outgoing, now=now)

        self.hub.flush(outgoing)
        return changed

    def sweep_locked(self, outgoing: Outgoing, now: float | None = None) -> bool:
        store = self.hub.lobby_store
        sessions = self.hub.session_manager

        reaped = store.reap(
            sessions.is_connected, float(self.hub.config.stale_after_s), now=now
        )
        for lobby_id, client_id in reaped:
            sessions.detach(client_id, lobby_id)
            self.log.info(
                "Reaped member client_id=%s lobby_id=%s connected=%s",
                client_id,
                lobby_id,
                sessions.is_connected(client_id),
            )

        deleted = store.remove_empty()

        if reaped:
            self.hub.stats_manager.inc("members_reaped", len(reaped))
        if deleted:
            self.hub.stats_manager.inc("lobbies_deleted", len(deleted))

        changed = bool(reaped) or bool(deleted)
        if changed:
            self.log.info(
                "Reaper tick members_removed=%s lobbies_removed=%s lobbies_left=%s",
                len(reaped),
                len(deleted),
                len(store.lobbies),
            )
            self.hub.message_helper.queue_lobby_list(outgoing)
        return changed
