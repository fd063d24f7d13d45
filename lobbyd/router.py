from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .codec import DecodeError, decode, encode
from .commands import (
    Command,
    CreateLobby,
    Heartbeat,
    Hello,
    JoinLobby,
    LeaveLobby,
    ListLobbies,
    Relay,
    parse_command,
)
from .constants import E_LOBBY_NOT_FOUND, E_NOT_MEMBER
from .envelope import make_hello, make_joined_lobby, make_relay
from .lobbies import LobbyError, LobbyNotFound, NotMember

if TYPE_CHECKING:
    from .messages import Outgoing
    from .service import HubService
    from .session import Session


_ERROR_TEXT: dict[type[LobbyError], str] = {
    LobbyNotFound: E_LOBBY_NOT_FOUND,
    NotMember: E_NOT_MEMBER,
}


class MessageRouter:
    """
    Handles message routing and dispatching for the lobbyd hub.

    This class is responsible for:
    - Decoding inbound packets and parsing them into typed commands
    - Dispatching commands (hello, lobby lifecycle, heartbeat, relay)
    - Fanning relayed payloads out to the other lobby members
    - Turning lobby errors into unicast error replies

    Every method expects the hub state lock to be held.
    """

    def __init__(self, hub: HubService) -> None:
        self.hub = hub
        self.log = logging.getLogger("lobbyd.router")

    def route_packet(self, client_id: str, data: bytes, outgoing: Outgoing) -> None:
        """Main entry point for an inbound packet from ``client_id``."""
        sess = self.hub.session_manager.get_session(client_id)
        if sess is None:
            return

        self.hub.stats_manager.inc("pkts_in")
        self.hub.stats_manager.inc("bytes_in", len(data))

        try:
            msg = decode(data)
        except (DecodeError, ValueError, TypeError, EOFError) as e:
            self.hub.stats_manager.inc("pkts_bad")
            self.log.debug(
                "Bad packet client_id=%s bytes=%s err=%s", client_id, len(data), e
            )
            return

        cmd = parse_command(
            msg,
            default_display_name=self.hub.config.default_display_name,
            default_game_version=self.hub.config.default_game_version,
        )
        if cmd is None:
            self.hub.stats_manager.inc("pkts_bad")
            self.log.debug(
                "Ignored message client_id=%s bytes=%s", client_id, len(data)
            )
            return

        if self.log.isEnabledFor(logging.DEBUG):
            self.log.debug(
                "RX client_id=%s cmd=%s bytes=%s",
                client_id,
                type(cmd).__name__,
                len(data),
            )

        try:
            self.dispatch(sess, cmd, outgoing)
        except LobbyError as e:
            self.hub.message_helper.emit_error(
                outgoing, client_id, _ERROR_TEXT.get(type(e), E_LOBBY_NOT_FOUND)
            )

    def dispatch(self, sess: Session, cmd: Command, outgoing: Outgoing) -> None:
        if isinstance(cmd, Hello):
            self._handle_hello(sess, outgoing)
        elif isinstance(cmd, ListLobbies):
            self.hub.message_helper.queue_lobby_list(outgoing)
        elif isinstance(cmd, CreateLobby):
            self._handle_create(sess, cmd, outgoing)
        elif isinstance(cmd, JoinLobby):
            self._handle_join(sess, cmd, outgoing)
        elif isinstance(cmd, LeaveLobby):
            self._handle_leave(sess, cmd, outgoing)
        elif isinstance(cmd, Heartbeat):
            self._handle_heartbeat(sess)
        elif isinstance(cmd, Relay):
            self._handle_relay(sess, cmd, outgoing)

    def leave_lobby(self, sess: Session, lobby_id: str) -> bool:
        """Remove a client from a lobby and delete lobbies left empty.

        Returns True if membership or the lobby count changed.
        """
        store = self.hub.lobby_store
        was_member = store.leave(lobby_id, sess.client_id)
        if sess.current_lobby_id == lobby_id:
            sess.current_lobby_id = None

        removed = store.remove_empty()

        if was_member:
            self.hub.stats_manager.inc("leaves")
            self.log.info("LEAVE client_id=%s lobby_id=%s", sess.client_id, lobby_id)
        if removed:
            self.hub.stats_manager.inc("lobbies_deleted", len(removed))
        return was_member or bool(removed)

    def _handle_hello(self, sess: Session, outgoing: Outgoing) -> None:
        self.hub.message_helper.queue_env(
            outgoing, sess.client_id, make_hello(sess.client_id)
        )

    def _handle_create(
        self, sess: Session, cmd: CreateLobby, outgoing: Outgoing
    ) -> None:
        if sess.current_lobby_id:
            self.leave_lobby(sess, sess.current_lobby_id)

        store = self.hub.lobby_store
        lobby_id = store.create(cmd.display_name, cmd.game_version, sess.client_id)
        sess.current_lobby_id = lobby_id
        self.hub.stats_manager.inc("lobbies_created")

        lobby = store.get(lobby_id)
        if lobby is not None:
            self.hub.message_helper.queue_env(
                outgoing, sess.client_id, make_joined_lobby(lobby)
            )
        self.hub.message_helper.queue_lobby_list(outgoing)

    def _handle_join(self, sess: Session, cmd: JoinLobby, outgoing: Outgoing) -> None:
        store = self.hub.lobby_store
        if store.get(cmd.lobby_id) is None:
            raise LobbyNotFound(cmd.lobby_id)

        if sess.current_lobby_id and sess.current_lobby_id != cmd.lobby_id:
            self.leave_lobby(sess, sess.current_lobby_id)

        lobby = store.join(cmd.lobby_id, sess.client_id)
        sess.current_lobby_id = cmd.lobby_id
        self.hub.stats_manager.inc("joins")

        self.log.info(
            "JOIN client_id=%s lobby_id=%s members=%s",
            sess.client_id,
            cmd.lobby_id,
            len(lobby.members),
        )

        self.hub.message_helper.queue_env(
            outgoing, sess.client_id, make_joined_lobby(lobby)
        )
        self.hub.message_helper.queue_lobby_list(outgoing)

    def _handle_leave(self, sess: Session, cmd: LeaveLobby, outgoing: Outgoing) -> None:
        lobby_id = cmd.lobby_id or sess.current_lobby_id or ""
        if not lobby_id:
            return
        if self.leave_lobby(sess, lobby_id):
            self.hub.message_helper.queue_lobby_list(outgoing)

    def _handle_heartbeat(self, sess: Session) -> None:
        if sess.current_lobby_id:
            self.hub.lobby_store.touch(sess.current_lobby_id, sess.client_id)

    def _handle_relay(self, sess: Session, cmd: Relay, outgoing: Outgoing) -> None:
        store = self.hub.lobby_store
        store.require_member(cmd.lobby_id, sess.client_id)
        store.touch(cmd.lobby_id, sess.client_id)

        payload = encode(make_relay(cmd.payload, has_payload=cmd.has_payload))
        delivered = 0
        for cid in store.snapshot_members(cmd.lobby_id):
            if cid == sess.client_id:
                continue
            sink = self.hub.session_manager.lookup(cid)
            if sink is None:
                continue
            self.hub.message_helper.queue_payload(outgoing, sink, payload)
            delivered += 1

        self.hub.stats_manager.inc("relays_forwarded", delivered)
        if self.log.isEnabledFor(logging.DEBUG):
            self.log.debug(
                "RELAY client_id=%s lobby_id=%s recipients=%s bytes=%s",
                sess.client_id,
                cmd.lobby_id,
                delivered,
                len(payload),
            )
