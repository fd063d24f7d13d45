"""Outbound message construction.

Every message is a map with string keys and a ``type`` discriminator. The
builders here are the only place outbound shapes are defined.
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Any

from .constants import (
    F_CLIENT_ID,
    F_CREATED_AT,
    F_DISPLAY_NAME,
    F_GAME_VERSION,
    F_LOBBIES,
    F_LOBBY,
    F_LOBBY_ID,
    F_MEMBERS,
    F_MESSAGE,
    F_PAYLOAD,
    F_TYPE,
    T_ERROR,
    T_HELLO,
    T_JOINED_LOBBY,
    T_LOBBY_LIST,
    T_RELAY,
)

if TYPE_CHECKING:
    from .lobbies import Lobby


def now_ms() -> int:
    return int(time.time() * 1000)


def make_hello(client_id: str) -> dict:
    return {F_TYPE: T_HELLO, F_CLIENT_ID: client_id}


def lobby_summary(lobby: Lobby) -> dict[str, Any]:
    """Entry used in ``lobby_list``; ``members`` is a count."""
    return {
        F_LOBBY_ID: lobby.lobby_id,
        F_DISPLAY_NAME: lobby.display_name,
        F_GAME_VERSION: lobby.game_version,
        F_MEMBERS: len(lobby.members),
        F_CREATED_AT: lobby.created_at,
    }


def make_lobby_list(summaries: list[dict[str, Any]]) -> dict:
    return {F_TYPE: T_LOBBY_LIST, F_LOBBIES: list(summaries)}


def make_joined_lobby(lobby: Lobby) -> dict:
    return {
        F_TYPE: T_JOINED_LOBBY,
        F_LOBBY: {
            F_LOBBY_ID: lobby.lobby_id,
            F_DISPLAY_NAME: lobby.display_name,
            F_GAME_VERSION: lobby.game_version,
            F_MEMBERS: len(lobby.members),
        },
    }


def make_error(message: str) -> dict:
    return {F_TYPE: T_ERROR, F_MESSAGE: str(message)}


def make_relay(payload: Any, *, has_payload: bool = True) -> dict:
    env: dict[str, Any] = {F_TYPE: T_RELAY}
    # A relay without a payload key is forwarded as a bare relay message.
    if has_payload:
        env[F_PAYLOAD] = payload
    return env
