"""Statistics tracking and reporting for the lobbyd hub."""

from __future__ import annotations

import time
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .service import HubService


class StatsManager:
    """
    Manages hub statistics collection and reporting.

    Tracks counters for:
    - Bytes and packets in/out
    - Connects and disconnects
    - Lobby creation, deletion, joins and leaves
    - Relayed payloads and error replies
    - Lobby list broadcasts and reaped members
    - Announces
    """

    def __init__(self, hub: HubService) -> None:
        self.hub = hub

        self.started_wall_time: float | None = None
        self.started_monotonic: float | None = None

        self._counters: dict[str, int] = {
            "bytes_in": 0,
            "bytes_out": 0,
            "pkts_in": 0,
            "pkts_bad": 0,
            "connects": 0,
            "disconnects": 0,
            "lobbies_created": 0,
            "lobbies_deleted": 0,
            "joins": 0,
            "leaves": 0,
            "relays_forwarded": 0,
            "errors_sent": 0,
            "broadcasts": 0,
            "members_reaped": 0,
            "announces": 0,
        }

    def set_start_time(self) -> None:
        """Set the start time for uptime calculations."""
        self.started_wall_time = time.time()
        self.started_monotonic = time.monotonic()

    def inc(self, key: str, delta: int = 1) -> None:
        """Increment a counter by the given delta."""
        with self.hub._state_lock:
            self._counters[key] = int(self._counters.get(key, 0)) + int(delta)

    def get(self, key: str) -> int:
        with self.hub._state_lock:
            return int(self._counters.get(key, 0))

    def format_stats(self) -> str:
        """Format current statistics as a human-readable string."""
        from . import __version__

        started_mono = self.started_monotonic
        uptime_s = (time.monotonic() - started_mono) if started_mono is not None else 0.0

        with self.hub._state_lock:
            session_stats = self.hub.session_manager.get_stats()
            lobby_stats = self.hub.lobby_store.get_stats()
            c = dict(self._counters)

        lines: list[str] = []
        lines.append(f"lobbyd {__version__} stats")
        lines.append(f"uptime_s={uptime_s:.1f}")
        lines.append(
            f"clients_total={session_stats['total']} "
            f"clients_in_lobby={session_stats['in_lobby']}"
        )
        lines.append(
            f"lobbies={lobby_stats['lobbies_total']} "
            f"memberships={lobby_stats['memberships']}"
        )

        top_lobbies = lobby_stats["top_lobbies"]
        if top_lobbies:
            lines.append(
                "top_lobbies=" + ", ".join(f"{n}:{m}" for n, m in top_lobbies)
            )

        lines.append(
            f"presence: reap_interval_s={self.hub.config.reap_interval_s} "
            f"stale_after_s={self.hub.config.stale_after_s}"
        )
        lines.append(
            "io: pkts_in={} pkts_bad={} bytes_in={} bytes_out={}".format(
                c.get("pkts_in", 0),
                c.get("pkts_bad", 0),
                c.get("bytes_in", 0),
                c.get("bytes_out", 0),
            )
        )
        lines.append(
            "sessions: connects={} disconnects={}".format(
                c.get("connects", 0),
                c.get("disconnects", 0),
            )
        )
        lines.append(
            "lobbies: created={} deleted={} joins={} leaves={} reaped={}".format(
                c.get("lobbies_created", 0),
                c.get("lobbies_deleted", 0),
                c.get("joins", 0),
                c.get("leaves", 0),
                c.get("members_reaped", 0),
            )
        )
        lines.append(
            "events: relays_fwd={} broadcasts={} errors_sent={} announces={}".format(
                c.get("relays_forwarded", 0),
                c.get("broadcasts", 0),
                c.get("errors_sent", 0),
                c.get("announces", 0),
            )
        )

        return "\n".join(lines)
