"""Callback catchers: listeners that observe the lookup a payload triggers."""

import queue
import re
import socket
import socketserver
import threading
import time
from typing import Iterator, Optional, Tuple
from urllib.parse import urlsplit

from log4scan.core.errors import CatcherError
from log4scan.core.models import CallbackEvent

_CLOSED = object()


class TCPServer(socketserver.ThreadingTCPServer):
    allow_reuse_address = True
    daemon_threads = True


class UDPServer(socketserver.ThreadingUDPServer):
    allow_reuse_address = True
    daemon_threads = True


def split_addr(caddr: str, default_port: int) -> Tuple[str, int]:
    """'host:port', '[v6]:port' or bare host → (host, port)."""
    try:
        parts = urlsplit(f"//{caddr}")
        host = parts.hostname
        port = parts.port if parts.port is not None else default_port
    except ValueError as exc:
        raise CatcherError(f"Invalid catcher address {caddr!r}: {exc}") from exc
    if not host:
        raise CatcherError(f"Invalid catcher address {caddr!r}")
    return host, port


class Catcher:
    """Base catcher. ``events()`` yields CallbackEvents until ``stop()``."""

    kind = "none"
    active = False
    default_port = 0

    def __init__(self, caddr: str = "", resource: str = "l4s", log=None):
        self.caddr = caddr
        self.resource = resource
        self.log = log
        self._events: "queue.Queue" = queue.Queue()
        self._stopped = threading.Event()
        self._marker_rx = re.compile(
            rf"(?<![0-9a-f])([0-9a-f]{{32}})\.{re.escape(resource)}(?![a-z0-9-])", re.I)

    # ── lifecycle ───────────────────────────────────────────────

    def start(self) -> "Catcher":
        return self

    def stop(self) -> None:
        if not self._stopped.is_set():
            self._stopped.set()
            self._events.put(_CLOSED)

    def events(self) -> Iterator[CallbackEvent]:
        while True:
            item = self._events.get()
            if item is _CLOSED:
                return
            yield item

    # ── used by listeners ───────────────────────────────────────

    def find_marker(self, text: str) -> Optional[str]:
        m = self._marker_rx.search(text)
        return m.group(1).lower() if m else None

    def emit(self, marker: str, remote_addr: str = "") -> None:
        if self._stopped.is_set():
            return
        if self.log:
            self.log.debug(f"{self.kind} callback for {marker} from {remote_addr}")
        self._events.put(CallbackEvent(marker=marker, observed_at=time.time(),
                                       catcher_kind=self.kind, remote_addr=remote_addr))


class ServerCatcher(Catcher):
    """A catcher backed by a socketserver running on a daemon thread."""

    active = True
    server_class = TCPServer
    handler_class = socketserver.BaseRequestHandler

    def __init__(self, caddr: str, resource: str = "l4s", log=None):
        super().__init__(caddr, resource, log)
        self.host, self.port = split_addr(caddr, self.default_port)
        self.server: Optional[socketserver.BaseServer] = None
        self._thread: Optional[threading.Thread] = None

    @property
    def address(self) -> Tuple[str, int]:
        """Actual bound address (port 0 binds an ephemeral port)."""
        if self.server is None:
            return self.host, self.port
        return self.server.server_address[:2]

    def start(self) -> "ServerCatcher":
        server_class = self.server_class
        if ":" in self.host:
            server_class = type(server_class.__name__, (server_class,),
                                {"address_family": socket.AF_INET6})
        try:
            self.server = server_class((self.host, self.port), self.handler_class)
        except OSError as exc:
            raise CatcherError(
                f"Cannot start {self.kind} catcher on {self.host}:{self.port}: {exc}") from exc
        self.server.catcher = self
        self._thread = threading.Thread(target=self.server.serve_forever,
                                        name=f"{self.kind}-catcher", daemon=True)
        self._thread.start()
        if self.log:
            host, port = self.address
            self.log.info(f"{self.kind.upper()} catcher listening on {host}:{port}")
        return self

    def stop(self) -> None:
        if self.server is not None:
            self.server.shutdown()
            self.server.server_close()
            self.server = None
        super().stop()
