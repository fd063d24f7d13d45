"""Reticulum transport for the lobbyd hub.

Hosts an inbound destination, turns every established ``RNS.Link`` into a hub
connection and feeds link packets (and inbound resources) to the hub.
"""

from __future__ import annotations

import logging
import os
import threading
from typing import TYPE_CHECKING, Any

import RNS

from .codec import encode
from .constants import PROTO_NAME, PROTO_VERSION
from .util import expand_path

if TYPE_CHECKING:
    from .service import HubService


def fmt_link_id(link: RNS.Link) -> str:
    lid = getattr(link, "link_id", None)
    if isinstance(lid, (bytes, bytearray)):
        return bytes(lid).hex()
    h = getattr(link, "hash", None)
    if isinstance(h, (bytes, bytearray)):
        return bytes(h).hex()
    return "-"


class LinkSink:
    """Sink writing to one Reticulum link.

    Payloads that fit the link MDU go out as a single packet; larger ones are
    sent as an ``RNS.Resource``.
    """

    def __init__(self, link: RNS.Link, *, max_resource_bytes: int) -> None:
        self.link = link
        self.max_resource_bytes = max_resource_bytes

    def _fits(self, payload: bytes) -> bool:
        mdu = getattr(self.link, "MDU", None)
        if mdu is not None:
            return len(payload) <= mdu
        try:
            RNS.Packet(self.link, payload).pack()
            return True
        except Exception:
            return False

    def send(self, payload: bytes) -> None:
        if self._fits(payload):
            RNS.Packet(self.link, payload).send()
            return
        if len(payload) > self.max_resource_bytes:
            raise OSError(
                f"payload too large: {len(payload)} > {self.max_resource_bytes}"
            )
        RNS.Resource(payload, self.link, advertise=True, auto_compress=False)

    def close(self) -> None:
        self.link.teardown()

    def __repr__(self) -> str:
        return f"LinkSink(link_id={fmt_link_id(self.link)})"


class ReticulumTransport:
    def __init__(self, hub: HubService) -> None:
        self.hub = hub
        self.config = hub.config
        self.log = logging.getLogger("lobbyd.transport")

        self.identity: RNS.Identity | None = None
        self.destination: RNS.Destination | None = None

        # link -> client id; written from RNS callback threads.
        self._clients: dict[RNS.Link, str] = {}
        self._lock = threading.Lock()
        self._shutdown = threading.Event()
        self._announce_thread: threading.Thread | None = None

    def start(self) -> None:
        self.log.info("Starting Reticulum")
        RNS.Reticulum(configdir=self.config.configdir, require_shared_instance=False)

        if not self.config.identity_path:
            raise RuntimeError("identity_path is not set")
        self.identity = self._load_identity(self.config.identity_path)

        parts = [p for p in str(self.config.dest_name).split(".") if p]
        if not parts:
            raise ValueError("dest_name must not be empty")
        app_name, aspects = parts[0], parts[1:]

        self.destination = RNS.Destination(
            self.identity,
            RNS.Destination.IN,
            RNS.Destination.SINGLE,
            app_name,
            *aspects,
        )
        self.destination.set_link_established_callback(self._on_link)

        if self.config.announce_on_start:
            self._announce_once()

        if self.config.announce_period_s and self.config.announce_period_s > 0:
            self._announce_thread = threading.Thread(
                target=self._announce_loop,
                name="lobbyd-announce",
                daemon=True,
            )
            self._announce_thread.start()

        self.log.info(
            "Listening dest_name=%s dest_hash=%s",
            self.config.dest_name,
            self.destination.hash.hex(),
        )

    def stop(self) -> None:
        self._shutdown.set()
        with self._lock:
            links = list(self._clients.keys())
            self._clients.clear()
        for link in links:
            try:
                link.teardown()
            except Exception:
                pass

    def _load_identity(self, path: str) -> RNS.Identity:
        p = expand_path(path)
        if not os.path.exists(p):
            raise RuntimeError(f"Identity not found at {p}")
        ident = RNS.Identity.from_file(p)
        if ident is None:
            raise RuntimeError(f"Failed to load identity from {p}")
        return ident

    def _announce_once(self) -> None:
        if self.destination is None:
            return
        try:
            self.destination.announce(
                app_data=encode(
                    {"proto": PROTO_NAME, "v": PROTO_VERSION, "hub": self.config.hub_name}
                )
            )
            self.hub.stats_manager.inc("announces")
        except Exception:
            self.log.exception("Announce failed")

    def _announce_loop(self) -> None:
        while not self._shutdown.is_set():
            period = float(self.config.announce_period_s)
            if period <= 0:
                self._shutdown.wait(1.0)
                continue
            if self._shutdown.wait(period):
                break
            self._announce_once()

    def _on_link(self, link: RNS.Link) -> None:
        sink = LinkSink(link, max_resource_bytes=int(self.config.max_resource_bytes))

        client_id = self.hub.on_connect(sink)
        with self._lock:
            self._clients[link] = client_id

        link.set_packet_callback(lambda data, pkt: self._on_packet(link, data))
        link.set_link_closed_callback(lambda closed_link: self._on_close(closed_link))
        self._configure_resources(link)

        self.log.info(
            "Link established link_id=%s client_id=%s", fmt_link_id(link), client_id
        )

    def _configure_resources(self, link: RNS.Link) -> None:
        try:
            link.set_resource_strategy(RNS.Link.ACCEPT_APP)
            link.set_resource_callback(self._resource_advertised)
            link.set_resource_concluded_callback(self._resource_concluded)
        except Exception as e:
            self.log.warning(
                "Failed to set resource callbacks link_id=%s: %s", fmt_link_id(link), e
            )

    def _client_for(self, link: RNS.Link) -> str | None:
        with self._lock:
            return self._clients.get(link)

    def _on_packet(self, link: RNS.Link, data: bytes) -> None:
        client_id = self._client_for(link)
        if client_id is None:
            return
        self.hub.on_message(client_id, data)

    def _on_close(self, link: RNS.Link) -> None:
        with self._lock:
            client_id = self._clients.pop(link, None)
        if client_id is None:
            return
        self.log.info("Link closed link_id=%s client_id=%s", fmt_link_id(link), client_id)
        self.hub.on_disconnect(client_id)

    def _resource_advertised(self, resource: Any) -> bool:
        link = resource.link
        size = resource.total_size if hasattr(resource, "total_size") else resource.size
        if size > int(self.config.max_resource_bytes):
            self.log.warning(
                "Rejecting resource (too large: %s > %s) link_id=%s",
                size,
                self.config.max_resource_bytes,
                fmt_link_id(link),
            )
            return False
        return self._client_for(link) is not None

    def _resource_concluded(self, resource: Any) -> None:
        link = resource.link
        if getattr(resource, "initiator", False):
            # Our own outbound resource finishing.
            return
        if resource.status != RNS.Resource.COMPLETE:
            self.log.warning(
                "Resource transfer failed link_id=%s status=%s",
                fmt_link_id(link),
                resource.status,
            )
            return

        client_id = self._client_for(link)
        if client_id is None:
            return

        try:
            payload = resource.data.read() if hasattr(resource.data, "read") else resource.data
        except Exception as e:
            self.log.error("Failed to read resource data link_id=%s: %s", fmt_link_id(link), e)
            return
        if payload is None:
            return

        self.hub.on_message(client_id, bytes(payload))
