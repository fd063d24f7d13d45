"""Typed inbound commands.

``parse_command`` turns a decoded message map into one of the command
dataclasses below. Missing or empty fields map to fixed defaults rather than
failing; an unknown ``type`` yields ``None``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Union

from .constants import (
    DEFAULT_DISPLAY_NAME,
    DEFAULT_GAME_VERSION,
    F_DISPLAY_NAME,
    F_GAME_VERSION,
    F_LOBBY_ID,
    F_PAYLOAD,
    F_TYPE,
    T_CREATE_LOBBY,
    T_HEARTBEAT,
    T_HELLO,
    T_JOIN_LOBBY,
    T_LEAVE_LOBBY,
    T_LIST_LOBBIES,
    T_RELAY,
)
from .util import coerce_str


@dataclass(frozen=True)
class Hello:
    pass


@dataclass(frozen=True)
class ListLobbies:
    pass


@dataclass(frozen=True)
class CreateLobby:
    display_name: str = DEFAULT_DISPLAY_NAME
    game_version: str = DEFAULT_GAME_VERSION


@dataclass(frozen=True)
class JoinLobby:
    lobby_id: str = ""


@dataclass(frozen=True)
class LeaveLobby:
    # None means "the lobby this session is currently in".
    lobby_id: str | None = None


@dataclass(frozen=True)
class Heartbeat:
    pass


@dataclass(frozen=True)
class Relay:
    lobby_id: str = ""
    payload: Any = None
    # False when the inbound map had no payload key at all.
    has_payload: bool = False


Command = Union[Hello, ListLobbies, CreateLobby, JoinLobby, LeaveLobby, Heartbeat, Relay]


def parse_command(
    msg: Any,
    *,
    default_display_name: str = DEFAULT_DISPLAY_NAME,
    default_game_version: str = DEFAULT_GAME_VERSION,
) -> Command | None:
    if not isinstance(msg, dict):
        return None

    t = msg.get(F_TYPE)

    if t == T_HELLO:
        return Hello()
    if t == T_LIST_LOBBIES:
        return ListLobbies()
    if t == T_CREATE_LOBBY:
        return CreateLobby(
            display_name=coerce_str(msg.get(F_DISPLAY_NAME), default_display_name),
            game_version=coerce_str(msg.get(F_GAME_VERSION), default_game_version),
        )
    if t == T_JOIN_LOBBY:
        return JoinLobby(lobby_id=coerce_str(msg.get(F_LOBBY_ID), ""))
    if t == T_LEAVE_LOBBY:
        raw = msg.get(F_LOBBY_ID)
        return LeaveLobby(lobby_id=coerce_str(raw, "") if raw else None)
    if t == T_HEARTBEAT:
        return Heartbeat()
    if t == T_RELAY:
        return Relay(
            lobby_id=coerce_str(msg.get(F_LOBBY_ID), ""),
            payload=msg.get(F_PAYLOAD),
            has_payload=F_PAYLOAD in msg,
        )

    return None
