from __future__ import annotations

import logging
import signal
import threading
import time
from typing import TYPE_CHECKING, Callable

from .config import HubRuntimeConfig
from .constants import CLIENT_ID_PREFIX
from .envelope import make_hello
from .lobbies import LobbyStore
from .messages import MessageHelper, Outgoing
from .reaper import PresenceReaper
from .router import MessageRouter
from .session import SessionManager, Sink
from .stats import StatsManager
from .util import new_id

if TYPE_CHECKING:
    from .transport import ReticulumTransport


class HubService:
    """Lobby relay hub core.

    The transport calls :meth:`on_connect`, :meth:`on_message` and
    :meth:`on_disconnect`; everything else is internal. State changes happen
    under ``_state_lock`` and replies are sent after it is released.
    """

    def __init__(
        self,
        config: HubRuntimeConfig,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.config = config
        self.log = logging.getLogger("lobbyd.hub")

        # Sessions and lobbies are touched from transport callbacks and the
        # reaper thread. Guard them with a single re-entrant lock.
        self._state_lock = threading.RLock()

        self._shutdown = threading.Event()

        self.stats_manager = StatsManager(self)
        self.session_manager = SessionManager()
        self.lobby_store = LobbyStore(clock=clock)
        self.message_helper = MessageHelper(self)
        self.router = MessageRouter(self)
        self.reaper = PresenceReaper(self)

        self.transport: ReticulumTransport | None = None

    def start(self) -> None:
        self.stats_manager.set_start_time()
        if self.transport is not None:
            self.transport.start()
        self.reaper.start()
        self.log.info(
            "Hub running hub_name=%s reap_interval_s=%s stale_after_s=%s",
            self.config.hub_name,
            self.config.reap_interval_s,
            self.config.stale_after_s,
        )

    def run_forever(self) -> None:
        if self.stats_manager.started_monotonic is None:
            self.start()

        signal.signal(signal.SIGINT, lambda *_: self.stop())
        signal.signal(signal.SIGTERM, lambda *_: self.stop())

        while not self._shutdown.is_set():
            self._shutdown.wait(0.25)

    def stop(self) -> None:
        if self._shutdown.is_set():
            return
        self._shutdown.set()
        self.reaper.stop()

        with self._state_lock:
            sinks = self.session_manager.clear_all()
            self.lobby_store.clear_all()

        for sink in sinks:
            try:
                sink.close()
            except Exception:
                self.log.debug("Sink close failed", exc_info=True)

        if self.transport is not None:
            self.transport.stop()

        self.log.info("Hub stopped\n%s", self.stats_manager.format_stats())

    def on_connect(self, sink: Sink) -> str:
        """Register a new connection and greet it. Returns the client id."""
        outgoing: Outgoing = []
        with self._state_lock:
            client_id = new_id(CLIENT_ID_PREFIX)
            while self.session_manager.is_connected(client_id):
                client_id = new_id(CLIENT_ID_PREFIX)
            self.session_manager.register(client_id, sink)
            self.stats_manager.inc("connects")
            self.message_helper.queue_env(outgoing, client_id, make_hello(client_id))

        self.flush(outgoing)
        return client_id

    def on_message(self, client_id: str, data: bytes) -> None:
        outgoing: Outgoing = []
        with self._state_lock:
            self.router.route_packet(client_id, data, outgoing)

        if self.log.isEnabledFor(logging.DEBUG) and outgoing:
            self.log.debug(
                "Sending %d message(s) for client_id=%s", len(outgoing), client_id
            )
        self.flush(outgoing)

    def on_disconnect(self, client_id: str) -> None:
        outgoing: Outgoing = []
        lobby_id = None
        with self._state_lock:
            sess = self.session_manager.unregister(client_id)
            if sess is not None:
                self.stats_manager.inc("disconnects")
                lobby_id = sess.current_lobby_id
                if lobby_id:
                    self.router.leave_lobby(sess, lobby_id)

            removed = self.lobby_store.remove_empty()
            if removed:
                self.stats_manager.inc("lobbies_deleted", len(removed))

            # Disconnects always refresh the lobby list, changed or not.
            self.message_helper.queue_lobby_list(outgoing)

        self.log.info("Session closed client_id=%s lobby_id=%s", client_id, lobby_id)
        self.flush(outgoing)

    def flush(self, outgoing: Outgoing) -> None:
        """Send queued payloads. A failing sink never stops the others."""
        for sink, payload in outgoing:
            self.stats_manager.inc("bytes_out", len(payload))
            try:
                sink.send(payload)
            except OSError as e:
                self.log.warning("Send failed bytes=%s err=%s", len(payload), e)
            except Exception:
                self.log.debug("Send failed bytes=%s", len(payload), exc_info=True)

    def format_stats(self) -> str:
        return self.stats_manager.format_stats()
