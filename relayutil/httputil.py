"""HTTP helpers: canned responses, host canonicalisation and basic auth."""

from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass, field

_SEP = ":"


def _canonical_header_key(key: str) -> str:
    return "-".join(part[:1].upper() + part[1:].lower() for part in key.split("-"))


@dataclass
class Response:
    """A minimal HTTP/1.1 response that can be written to a connection."""

    status_code: int
    status: str
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    proto: str = "HTTP/1.1"

    def to_bytes(self) -> bytes:
        """Serialise the response: status line, headers, blank line, body."""
        lines = [f"{self.proto} {self.status_code:03d} {self.status}"]
        lines.append(f"Content-Length: {len(self.body)}")
        canonical = {
            _canonical_header_key(key): value
            for key, value in self.headers.items()
            if key.lower() != "content-length"
        }
        lines.extend(f"{key}: {canonical[key]}" for key in sorted(canonical))
        head = "\r\n".join(lines) + "\r\n\r\n"
        return head.encode("utf-8") + self.body


def ok_response() -> Response:
    """Return a bare ``200 OK`` response."""
    return Response(status_code=200, status="OK")


def proxy_unauthorized_response() -> Response:
    """Return a ``407`` response asking for basic proxy authentication."""
    return Response(
        status_code=407,
        status="Proxy Authentication Required",
        headers={"Proxy-Authenticate": 'Basic realm="Restricted"'},
    )


def _has_port(host: str) -> bool:
    colons = host.count(":")
    if colons == 0:
        return False
    if colons == 1:
        return True
    return host[0] == "[" and "]:" in host


def _split_host_port(hostport: str) -> tuple[str, str]:
    i = hostport.rfind(":")
    if i < 0:
        raise ValueError(f"address {hostport}: missing port in address")
    if hostport.startswith("["):
        end = hostport.find("]")
        if end < 0:
            raise ValueError(f"address {hostport}: missing ']' in address")
        if end + 1 == len(hostport):
            raise ValueError(f"address {hostport}: missing port in address")
        if end + 1 != i:
            if hostport[end + 1] == ":":
                raise ValueError(f"address {hostport}: too many colons in address")
            raise ValueError(f"address {hostport}: missing port in address")
        host = hostport[1:end]
        open_from, close_from = 1, end + 1
    else:
        host = hostport[:i]
        if ":" in host:
            raise ValueError(f"address {hostport}: too many colons in address")
        open_from, close_from = 0, 0
    if "[" in hostport[open_from:]:
        raise ValueError(f"address {hostport}: unexpected '[' in address")
    if "]" in hostport[close_from:]:
        raise ValueError(f"address {hostport}: unexpected ']' in address")
    return host, hostport[i + 1 :]


def canonical_host(host: str) -> str:
    """Lower-case ``host``, strip any port and a trailing dot.

    Raises ValueError when the host:port form is malformed.
    """
    host = host.lower()
    if _has_port(host):
        host, _ = _split_host_port(host)
    return host.removesuffix(".")


def parse_basic_auth(auth: str) -> tuple[str, str] | None:
    """Parse a ``Basic`` authorization value into ``(username, password)``.

    Returns None when the value is not valid basic auth.
    """
    prefix = "Basic "
    if len(auth) < len(prefix) or auth[: len(prefix)].lower() != prefix.lower():
        return None
    try:
        decoded = base64.b64decode(auth[len(prefix) :], validate=True)
    except (binascii.Error, ValueError):
        return None
    text = decoded.decode("utf-8", errors="surrogateescape")
    name, sep, rest = text.partition(_SEP)
    if not sep:
        return None
    return name, rest


def basic_auth(username: str, passwd: str) -> str:
    """Return the ``Basic`` authorization value for the credentials."""
    joined = _SEP.join((username, passwd)).encode()
    return "Basic " + base64.b64encode(joined).decode("ascii")