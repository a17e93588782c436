"""Route TLS connections by the server name in their ClientHello."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .conn import SharedConn
from .vhost import Muxer

_RECORD_HANDSHAKE = 0x16
_RECORD_ALERT = 0x15
_HANDSHAKE_CLIENT_HELLO = 1
_EXT_SERVER_NAME = 0
_EXT_ALPN = 16
_MAX_RECORD = 16384 + 2048
_MAX_HANDSHAKE = 65536
_ALERT_FATAL = 2
_ALERT_UNRECOGNIZED_NAME = 112


@dataclass
class ClientHello:
    """The fields of a TLS ClientHello that matter for routing."""

    version: int
    random: bytes
    session_id: bytes
    cipher_suites: list[int] = field(default_factory=list)
    compression_methods: bytes = b""
    server_name: str = ""
    supported_protos: list[str] = field(default_factory=list)


class _Cursor:
    def __init__(self, data: bytes) -> None:
        self._data = data
        self._pos = 0

    def remaining(self) -> int:
        return len(self._data) - self._pos

    def take(self, n: int) -> bytes:
        if n > self.remaining():
            raise ValueError("tls: malformed client hello")
        chunk = self._data[self._pos : self._pos + n]
        self._pos += n
        return chunk

    def uint(self, size: int) -> int:
        return int.from_bytes(self.take(size), "big")

    def vector(self, length_size: int) -> _Cursor:
        return _Cursor(self.take(self.uint(length_size)))

    def rest(self) -> bytes:
        return self.take(self.remaining())


def _read_exact(reader: Any, n: int) -> bytes:
    buf = bytearray()
    while len(buf) < n:
        data = reader.read(n - len(buf))
        if not data:
            raise ConnectionError("unexpected EOF while reading TLS client hello")
        buf += data
    return bytes(buf)


def _read_handshake_message(reader: Any) -> bytes:
    buf = bytearray()
    needed = 4
    while True:
        header = _read_exact(reader, 5)
        if header[0] != _RECORD_HANDSHAKE:
            raise ValueError("tls: first record does not look like a TLS handshake")
        length = int.from_bytes(header[3:5], "big")
        if length == 0 or length > _MAX_RECORD:
            raise ValueError(f"tls: invalid record length {length}")
        buf += _read_exact(reader, length)
        if len(buf) >= 4:
            needed = 4 + int.from_bytes(buf[1:4], "big")
            if needed > _MAX_HANDSHAKE + 4:
                raise ValueError("tls: handshake message too large")
        if len(buf) >= needed:
            return bytes(buf[:needed])


def _parse_server_name(ext: _Cursor) -> str:
    names = ext.vector(2)
    server_name = ""
    while names.remaining():
        name_type = names.uint(1)
        name = names.vector(2).rest()
        if name_type != 0:
            continue
        if server_name:
            raise ValueError("tls: multiple server names in client hello")
        server_name = name.decode("ascii", errors="strict")
        if server_name.endswith("."):
            raise ValueError("tls: server name ends with a dot")
    return server_name


def _parse_alpn(ext: _Cursor) -> list[str]:
    protos = ext.vector(2)
    result = []
    while protos.remaining():
        proto = protos.vector(1).rest()
        if not proto:
            raise ValueError("tls: empty ALPN protocol")
        result.append(proto.decode("latin-1"))
    return result


def read_client_hello(reader: Any) -> ClientHello:
    """Read and parse a TLS ClientHello from a stream with ``read``.

    Raises ValueError when the data is not a well-formed ClientHello and
    ConnectionError when the stream ends first.
    """
    message = _Cursor(_read_handshake_message(reader))
    if message.uint(1) != _HANDSHAKE_CLIENT_HELLO:
        raise ValueError("tls: unexpected handshake message, expected client hello")
    body = _Cursor(message.take(message.uint(3)))

    hello = ClientHello(
        version=body.uint(2),
        random=body.take(32),
        session_id=body.vector(1).rest(),
    )
    suites = body.vector(2)
    if suites.remaining() % 2:
        raise ValueError("tls: malformed cipher suites")
    while suites.remaining():
        hello.cipher_suites.append(suites.uint(2))
    hello.compression_methods = body.vector(1).rest()

    if not body.remaining():
        return hello
    extensions = body.vector(2)
    if body.remaining():
        raise ValueError("tls: trailing data after client hello")
    seen: set[int] = set()
    while extensions.remaining():
        ext_type = extensions.uint(2)
        ext = extensions.vector(2)
        if ext_type in seen:
            raise ValueError(f"tls: duplicate extension {ext_type}")
        seen.add(ext_type)
        if ext_type == _EXT_SERVER_NAME:
            hello.server_name = _parse_server_name(ext)
        elif ext_type == _EXT_ALPN:
            hello.supported_protos = _parse_alpn(ext)
    return hello


def get_https_hostname(conn: Any) -> tuple[SharedConn, dict[str, str]]:
    """Read the ClientHello of ``conn`` and return the routing information.

    The returned connection replays the bytes that were read.
    """
    shared = SharedConn(conn)
    hello = read_client_hello(shared.reader())
    return shared, {"Host": hello.server_name, "Scheme": "https"}


def vhost_failed(conn: Any) -> None:
    """Refuse the connection with a TLS unrecognized-name alert and close it."""
    alert = bytes([_RECORD_ALERT, 0x03, 0x01, 0x00, 0x02, _ALERT_FATAL, _ALERT_UNRECOGNIZED_NAME])
    try:
        conn.sendall(alert)
    except OSError:
        pass
    finally:
        try:
            conn.close()
        except OSError:
            pass


class HTTPSMuxer(Muxer):
    """A Muxer that routes TLS connections by their server name."""

    def __init__(self, listener: Any, timeout: float | None) -> None:
        super().__init__(listener, get_https_hostname, timeout, fail_hook=vhost_failed)