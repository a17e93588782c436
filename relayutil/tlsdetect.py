"""Detect whether a new server connection speaks TLS and wrap it if so."""

from __future__ import annotations

import socket
import ssl
from dataclasses import dataclass
from typing import Any

FRP_TLS_HEAD_BYTE = 0x17
_TLS_HANDSHAKE_BYTE = 0x16


@dataclass
class TLSCheckResult:
    """The connection to use and what kind of connection it turned out to be."""

    conn: Any
    is_tls: bool
    custom: bool = False


def _wrap(conn: socket.socket, ssl_context: ssl.SSLContext) -> ssl.SSLSocket:
    return ssl_context.wrap_socket(conn, server_side=True, do_handshake_on_connect=False)


def check_and_enable_tls_server_conn(
    conn: socket.socket,
    ssl_context: ssl.SSLContext,
    tls_only: bool,
    timeout: float | None,
) -> TLSCheckResult:
    """Look at the first byte of ``conn`` to decide how to serve it.

    A leading custom head byte is consumed and the rest served over TLS; a TLS
    handshake byte is served over TLS as is; anything else is returned plain
    with nothing consumed, unless ``tls_only`` is set, which raises
    ConnectionError. Waiting longer than ``timeout`` raises TimeoutError.
    """
    previous = conn.gettimeout()
    conn.settimeout(timeout)
    try:
        head = conn.recv(1, socket.MSG_PEEK)
    finally:
        conn.settimeout(previous)
    if not head:
        raise ConnectionError("connection closed before any data was received")

    if head[0] == FRP_TLS_HEAD_BYTE:
        conn.recv(1)
        return TLSCheckResult(_wrap(conn, ssl_context), is_tls=True, custom=True)
    if head[0] == _TLS_HANDSHAKE_BYTE:
        return TLSCheckResult(_wrap(conn, ssl_context), is_tls=True, custom=False)
    if tls_only:
        raise ConnectionError("non-TLS connection received on a TlsOnly server")
    return TLSCheckResult(conn, is_tls=False, custom=False)