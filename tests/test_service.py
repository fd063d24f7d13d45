from conftest import BrokenSink, RecordingSink

from lobbyd.service import HubService


def test_disconnect_leaves_lobby_and_refreshes_list(connect, hub: HubService) -> None:
    a = connect()
    b = connect()
    lid = a.create()
    b.send(type="join_lobby", lobby_id=lid)
    a.sink.clear()

    b.disconnect()
    assert not hub.session_manager.is_connected(b.client_id)
    assert hub.lobby_store.snapshot_members(lid) == {a.client_id}
    assert a.sink.of_type("lobby_list")[-1]["lobbies"][0]["members"] == 1


def test_last_member_disconnect_deletes_lobby(connect, hub: HubService) -> None:
    a = connect()
    b = connect()
    lid = a.create()
    b.sink.clear()

    a.disconnect()
    assert hub.lobby_store.get(lid) is None
    assert b.sink.messages == [{"type": "lobby_list", "lobbies": []}]


def test_disconnect_always_broadcasts(connect) -> None:
    a = connect()
    b = connect()
    a.sink.clear()
    b.disconnect()
    assert a.sink.messages == [{"type": "lobby_list", "lobbies": []}]


def test_broken_sink_does_not_block_others(connect, hub: HubService) -> None:
    a = connect()
    broken = connect(BrokenSink())
    c = connect()
    lid = a.create()
    broken.send(type="join_lobby", lobby_id=lid)
    c.send(type="join_lobby", lobby_id=lid)
    c.sink.clear()

    a.send(type="relay", lobby_id=lid, payload=b"\x01\x02")
    assert c.sink.messages == [{"type": "relay", "payload": b"\x01\x02"}]
    assert a.sink.of_type("error") == []


def test_relay_skips_members_without_sink(connect, hub: HubService) -> None:
    a = connect()
    b = connect()
    lid = a.create()
    b.send(type="join_lobby", lobby_id=lid)
    hub.session_manager.unregister(b.client_id)
    b.sink.clear()

    a.send(type="relay", lobby_id=lid, payload="x")
    assert b.sink.messages == []
    assert hub.stats_manager.get("relays_forwarded") == 0


def test_stop_closes_sinks(connect, hub: HubService) -> None:
    a = connect()
    b = connect(RecordingSink())
    a.create()
    hub.stop()
    assert a.sink.closed and b.sink.closed
    assert hub.session_manager.get_stats()["total"] == 0
    assert hub.lobby_store.get_stats()["lobbies_total"] == 0


def test_format_stats(connect, hub: HubService) -> None:
    hub.stats_manager.set_start_time()
    a = connect()
    a.create("Arena")
    text = hub.format_stats()
    assert "clients_total=1 clients_in_lobby=1" in text
    assert "lobbies=1 memberships=1" in text
    assert "top_lobbies=Arena:1" in text
    assert "created=1" in text
