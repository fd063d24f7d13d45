import threading
from contextlib import contextmanager
from typing import Iterator

from lobbyd.service import HubService


@contextmanager
def _lock_held_elsewhere(hub: HubService) -> Iterator[None]:
    """Hold the hub state lock on another thread for the duration."""
    held = threading.Event()
    release = threading.Event()

    def holder() -> None:
        with hub._state_lock:
            held.set()
            release.wait(5.0)

    t = threading.Thread(target=holder, daemon=True)
    t.start()
    assert held.wait(5.0)
    try:
        yield
    finally:
        release.set()
        t.join(5.0)


def test_sweep_without_changes_is_silent(connect, hub: HubService, clock) -> None:
    a = connect()
    a.create()
    a.sink.clear()
    clock.advance(20.0)
    assert hub.reaper.sweep() is False
    assert a.sink.messages == []


def test_stale_member_is_removed(connect, hub: HubService, clock) -> None:
    a = connect()
    b = connect()
    lid = a.create()
    b.send(type="join_lobby", lobby_id=lid)

    clock.advance(30.0)
    a.send(type="heartbeat")
    clock.advance(20.0)  # b is now 50s silent, a 20s

    a.sink.clear()
    assert hub.reaper.sweep() is True
    assert hub.lobby_store.snapshot_members(lid) == {a.client_id}
    assert hub.session_manager.get_session(b.client_id).current_lobby_id is None
    assert a.sink.of_type("lobby_list")[-1]["lobbies"][0]["members"] == 1


def test_lobby_emptied_by_reaper_disappears(connect, hub: HubService, clock) -> None:
    a = connect()
    watcher = connect()
    lid = a.create()
    clock.advance(46.0)
    watcher.sink.clear()

    hub.reaper.sweep()
    assert hub.lobby_store.get(lid) is None
    assert watcher.sink.of_type("lobby_list")[-1]["lobbies"] == []


def test_disconnected_member_is_removed(connect, hub: HubService) -> None:
    a = connect()
    b = connect()
    lid = a.create()
    b.send(type="join_lobby", lobby_id=lid)

    # Connection dropped without the close path reaching the lobby.
    hub.session_manager.unregister(b.client_id)

    a.sink.clear()
    assert hub.reaper.sweep() is True
    assert hub.lobby_store.snapshot_members(lid) == {a.client_id}
    assert len(a.sink.of_type("lobby_list")) == 1


def test_one_broadcast_per_tick(connect, hub: HubService, clock) -> None:
    host = connect()
    lid = host.create()
    others = [connect() for _ in range(5)]
    for c in others:
        c.send(type="join_lobby", lobby_id=lid)
    second = others[0].create("other")
    others[1].send(type="join_lobby", lobby_id=second)

    clock.advance(30.0)
    host.send(type="heartbeat")
    clock.advance(30.0)

    host.sink.clear()
    hub.reaper.sweep()

    assert len(host.sink.of_type("lobby_list")) == 1
    assert host.sink.last()["lobbies"] == [
        {
            "lobby_id": lid,
            "display_name": "X",
            "game_version": "1.0",
            "members": 1,
            "created_at": hub.lobby_store.get(lid).created_at,
        }
    ]
    assert hub.stats_manager.get("members_reaped") == 5


def test_reaper_thread_lifecycle(hub: HubService) -> None:
    hub.reaper.start()
    hub.reaper.start()
    hub.reaper.stop()
    assert hub.reaper._thread is None


def test_sweep_waits_for_state_lock(connect, hub: HubService, clock) -> None:
    a = connect()
    lid = a.create()
    clock.advance(46.0)

    results: list[bool] = []
    worker = threading.Thread(target=lambda: results.append(hub.reaper.sweep()))
    with _lock_held_elsewhere(hub):
        worker.start()
        worker.join(0.2)
        assert worker.is_alive()
        assert hub.lobby_store.get(lid) is not None
    worker.join(5.0)

    assert results == [True]
    assert hub.lobby_store.get(lid) is None


def test_join_waits_for_state_lock(connect, hub: HubService) -> None:
    a = connect()
    b = connect()
    lid = a.create()

    worker = threading.Thread(
        target=b.send, kwargs={"type": "join_lobby", "lobby_id": lid}
    )
    with _lock_held_elsewhere(hub):
        worker.start()
        worker.join(0.2)
        assert worker.is_alive()
        assert b.client_id not in hub.lobby_store.get(lid).members
    worker.join(5.0)

    lobby = hub.lobby_store.get(lid)
    assert lobby.members == {a.client_id, b.client_id}
    assert set(lobby.last_seen) == lobby.members


def test_concurrent_joins_and_sweeps_keep_presence_consistent(
    connect, hub: HubService, clock
) -> None:
    host = connect()
    lid = host.create()
    clients = [connect() for _ in range(8)]
    clock.advance(46.0)

    def join_all() -> None:
        for c in clients:
            c.send(type="join_lobby", lobby_id=lid)

    def sweep_many() -> None:
        for _ in range(20):
            hub.reaper.sweep()

    threads = [threading.Thread(target=join_all), threading.Thread(target=sweep_many)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(5.0)

    for lobby in hub.lobby_store.lobbies.values():
        assert set(lobby.last_seen) == lobby.members
    for c in clients:
        sess = hub.session_manager.get_session(c.client_id)
        lobby = hub.lobby_store.get(sess.current_lobby_id or "")
        if lobby is not None:
            assert c.client_id in lobby.members
