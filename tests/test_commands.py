from lobbyd.commands import (
    CreateLobby,
    Heartbeat,
    Hello,
    JoinLobby,
    LeaveLobby,
    ListLobbies,
    Relay,
    parse_command,
)


def test_simple_commands() -> None:
    assert parse_command({"type": "hello"}) == Hello()
    assert parse_command({"type": "list_lobbies"}) == ListLobbies()
    assert parse_command({"type": "heartbeat", "extra": 1}) == Heartbeat()


def test_create_lobby_defaults() -> None:
    assert parse_command({"type": "create_lobby"}) == CreateLobby("Lobby", "unknown")
    assert parse_command(
        {"type": "create_lobby", "display_name": "", "game_version": None}
    ) == CreateLobby("Lobby", "unknown")


def test_create_lobby_coerces_to_str() -> None:
    cmd = parse_command({"type": "create_lobby", "display_name": 42, "game_version": 1.5})
    assert cmd == CreateLobby("42", "1.5")


def test_create_lobby_configured_defaults() -> None:
    cmd = parse_command(
        {"type": "create_lobby"},
        default_display_name="Room",
        default_game_version="0.0",
    )
    assert cmd == CreateLobby("Room", "0.0")


def test_join_lobby_missing_id_is_empty_string() -> None:
    assert parse_command({"type": "join_lobby"}) == JoinLobby("")
    assert parse_command({"type": "join_lobby", "lobby_id": "l_1"}) == JoinLobby("l_1")


def test_leave_lobby_without_id_defers_to_session() -> None:
    assert parse_command({"type": "leave_lobby"}) == LeaveLobby(None)
    assert parse_command({"type": "leave_lobby", "lobby_id": ""}) == LeaveLobby(None)
    assert parse_command({"type": "leave_lobby", "lobby_id": "l_1"}) == LeaveLobby("l_1")


def test_relay_keeps_payload() -> None:
    payload = {"pos": [1, 2], "blob": b"\x01"}
    cmd = parse_command({"type": "relay", "lobby_id": "l_1", "payload": payload})
    assert isinstance(cmd, Relay)
    assert cmd.lobby_id == "l_1"
    assert cmd.payload == payload
    assert cmd.has_payload is True


def test_relay_tells_null_payload_from_missing() -> None:
    null = parse_command({"type": "relay", "lobby_id": "l_1", "payload": None})
    missing = parse_command({"type": "relay", "lobby_id": "l_1"})
    assert null == Relay("l_1", None, has_payload=True)
    assert missing == Relay("l_1", None, has_payload=False)


def test_unknown_or_malformed_is_none() -> None:
    assert parse_command({"type": "nope"}) is None
    assert parse_command({}) is None
    assert parse_command({"type": None}) is None
    assert parse_command(["hello"]) is None
    assert parse_command("hello") is None
    assert parse_command(None) is None
