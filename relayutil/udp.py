"""Per-peer virtual connections on top of a single UDP socket."""

from __future__ import annotations

import socket
import threading
import time
from collections import deque
from dataclasses import dataclass
from typing import Any

from .listener import ListenerClosedError

_READ_BUFFER_SIZE = 1450
_PACKET_BACKLOG = 20
_WRITE_BACKLOG = 1000
_POLL_INTERVAL = 0.2


@dataclass
class UDPPacket:
    """A datagram together with the addresses it travels between."""

    buf: bytes
    local_addr: Any = None
    remote_addr: Any = None


class _Channel:
    """A bounded, closable FIFO shared between threads."""

    def __init__(self, capacity: int) -> None:
        self._capacity = capacity
        self._items: deque[Any] = deque()
        self._closed = False
        self._cond = threading.Condition()

    def put(self, item: Any, block: bool = True) -> bool:
        """Add ``item``; return False if it was dropped because the channel is full.

        Raises ListenerClosedError when the channel is closed.
        """
        with self._cond:
            if block:
                self._cond.wait_for(
                    lambda: self._closed or len(self._items) < self._capacity
                )
            if self._closed:
                raise ListenerClosedError("channel closed")
            if len(self._items) >= self._capacity:
                return False
            self._items.append(item)
            self._cond.notify_all()
            return True

    def get(self) -> Any:
        """Return the next item; raise ListenerClosedError once closed and drained."""
        with self._cond:
            self._cond.wait_for(lambda: self._items or self._closed)
            if self._items:
                item = self._items.popleft()
                self._cond.notify_all()
                return item
            raise ListenerClosedError("channel closed")

    def close(self) -> bool:
        """Close the channel; return True if this call closed it."""
        with self._cond:
            if self._closed:
                return False
            self._closed = True
            self._cond.notify_all()
            return True

    @property
    def closed(self) -> bool:
        with self._cond:
            return self._closed


class FakeUDPConn:
    """A connection-like view of the datagrams exchanged with one peer.

    It closes itself when it has seen no reads or writes for longer than
    ``idle_timeout`` seconds, checked every ``idle_check_interval`` seconds.
    """

    def __init__(
        self,
        listener: Any,
        local_addr: Any,
        remote_addr: Any,
        idle_check_interval: float = 5.0,
        idle_timeout: float = 10.0,
    ) -> None:
        self.listener = listener
        self.local_addr = local_addr
        self.remote_addr = remote_addr
        self._packets = _Channel(_PACKET_BACKLOG)
        self._lock = threading.Lock()
        self._closed = threading.Event()
        self._last_active: float | None = None
        self._idle_timeout = idle_timeout
        threading.Thread(
            target=self._reap_when_idle, args=(idle_check_interval,), daemon=True
        ).start()

    def _reap_when_idle(self, interval: float) -> None:
        while not self._closed.wait(interval):
            with self._lock:
                last = self._last_active
            if last is None or time.monotonic() - last > self._idle_timeout:
                self.close()
                return

    def _touch(self) -> None:
        with self._lock:
            self._last_active = time.monotonic()

    def _put_packet(self, content: bytes) -> None:
        """Queue an incoming datagram; drop it when full or closed."""
        try:
            self._packets.put(content, block=False)
        except ListenerClosedError:
            pass

    def read(self, size: int) -> bytes:
        """Return the next datagram, cut to ``size`` bytes; b"" once closed."""
        try:
            content = self._packets.get()
        except ListenerClosedError:
            return b""
        self._touch()
        return content[:size]

    def write(self, data: bytes) -> int:
        """Send ``data`` to the peer; raise BrokenPipeError if closed."""
        if self.is_closed():
            raise BrokenPipeError("io: read/write on closed pipe")
        packet = UDPPacket(
            buf=bytes(data), local_addr=self.local_addr, remote_addr=self.remote_addr
        )
        try:
            self.listener._write_udp_packet(packet)
        except OSError:
            pass
        self._touch()
        return len(data)

    def close(self) -> None:
        """Close the connection; safe to call more than once."""
        with self._lock:
            if self._closed.is_set():
                return
            self._closed.set()
        self._packets.close()

    def is_closed(self) -> bool:
        """Return True once the connection is closed."""
        return self._closed.is_set()

    def __enter__(self) -> FakeUDPConn:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()


class UDPListener:
    """Hands out a FakeUDPConn for each datagram received on a UDP socket."""

    def __init__(self, sock: socket.socket) -> None:
        self._sock = sock
        self._addr = sock.getsockname()
        self._accept_ch = _Channel(1)
        self._write_ch = _Channel(_WRITE_BACKLOG)
        self._fake_conns: dict[Any, FakeUDPConn] = {}
        self._closed = threading.Event()
        sock.settimeout(_POLL_INTERVAL)
        threading.Thread(target=self._read_loop, daemon=True).start()
        threading.Thread(target=self._write_loop, daemon=True).start()

    def _read_loop(self) -> None:
        try:
            while True:
                try:
                    data, remote = self._sock.recvfrom(_READ_BUFFER_SIZE)
                except TimeoutError:
                    if self._closed.is_set():
                        return
                    continue
                except OSError:
                    return
                conn = self._fake_conns.get(remote)
                if conn is None or conn.is_closed():
                    conn = FakeUDPConn(self, self._addr, remote)
                    self._fake_conns[remote] = conn
                conn._put_packet(data)
                try:
                    self._accept_ch.put(conn)
                except ListenerClosedError:
                    return
        finally:
            self._accept_ch.close()
            self._write_ch.close()
            self._sock.close()

    def _write_loop(self) -> None:
        while True:
            try:
                packet = self._write_ch.get()
            except ListenerClosedError:
                return
            if isinstance(packet.remote_addr, tuple):
                try:
                    self._sock.sendto(packet.buf, packet.remote_addr)
                except OSError:
                    pass

    def _write_udp_packet(self, packet: UDPPacket) -> None:
        try:
            self._write_ch.put(packet)
        except ListenerClosedError:
            raise ListenerClosedError("udp write closed listener") from None

    def write_msg(self, buf: bytes, remote_addr: Any) -> None:
        """Send ``buf`` to ``remote_addr``; raise ListenerClosedError once closed."""
        self._write_udp_packet(UDPPacket(buf=bytes(buf), remote_addr=remote_addr))

    def accept(self) -> FakeUDPConn:
        """Return the connection of the next received datagram."""
        try:
            return self._accept_ch.get()
        except ListenerClosedError:
            raise ListenerClosedError("channel for udp listener closed") from None

    def close(self) -> None:
        """Stop receiving and sending; safe to call more than once."""
        self._closed.set()
        self._accept_ch.close()
        self._write_ch.close()

    def addr(self) -> Any:
        """Return the bound socket address."""
        return self._addr

    def __enter__(self) -> UDPListener:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()


def listen_udp(bind_addr: str, bind_port: int) -> UDPListener:
    """Bind a UDP socket to the address and port and listen on it."""
    infos = socket.getaddrinfo(
        bind_addr or None, bind_port, type=socket.SOCK_DGRAM, flags=socket.AI_PASSIVE
    )
    family, socktype, proto, _, sockaddr = infos[0]
    sock = socket.socket(family, socktype, proto)
    try:
        sock.bind(sockaddr)
    except OSError:
        sock.close()
        raise
    return UDPListener(sock)