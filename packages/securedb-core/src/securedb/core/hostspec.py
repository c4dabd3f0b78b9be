"""Host specification parsing.

A single ``DB_HOST`` string encodes one of:

    db.example.com              host only (driver default port)
    db.example.com:3307         host + port
    localhost:/run/mysqld.sock  host + unix socket
    /run/mysqld.sock            unix socket on localhost
    [fe80::1]:3307              IPv6 literal + port
    fe80::1                     IPv6 literal
    fe80::1%eth0                IPv6 link-local literal with zone id

When both a socket and a host:port are present the socket wins.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Optional

log = logging.getLogger("securedb.core.hostspec")

_IPV6_RE = re.compile(r"^(?:\[)?(?P<host>[0-9a-fA-F:.]+(?:%[\w.-]+)?)(?:\](?::(?P<port>\d+))?)?")
_HOST_RE = re.compile(r"^(?P<host>[^:/]*)(?::(?P<port>\d+))?")

MAX_PORT = 65535


@dataclass(frozen=True)
class HostSpec:
    host: str
    port: Optional[int] = None
    socket_path: Optional[str] = None
    is_ipv6: bool = False

    @property
    def uses_socket(self) -> bool:
        return bool(self.socket_path)

    def connect_host(self, *, brackets: bool = False) -> str:
        """Host string to hand to the driver; IPv6 literals are wrapped when the backend wants it."""
        if self.is_ipv6 and brackets:
            return f"[{self.host}]"
        return self.host

    def connect_args(self, *, brackets: bool = False) -> tuple[str, Optional[int], Optional[str]]:
        """(host, port, socket) for the connect call. A socket suppresses the port."""
        if self.uses_socket:
            return self.connect_host(brackets=brackets), None, self.socket_path
        return self.connect_host(brackets=brackets), self.port, None


def _port(raw: str | None) -> Optional[int]:
    if not raw:
        return None
    port = int(raw)
    if port < 1 or port > MAX_PORT:
        log.debug("ignoring out-of-range port in host spec: %s", raw)
        return None
    return port


def parse_db_host(raw: str) -> Optional[HostSpec]:
    """Parse ``raw`` into a HostSpec; None means "use the raw string as-is"."""
    text = (raw or "").strip()
    if not text:
        return None

    socket_path: Optional[str] = None
    host = text
    if text.startswith("/"):
        return HostSpec(host="localhost", socket_path=text)

    pos = text.find(":/")
    if pos != -1:
        socket_path = text[pos + 1:]
        host = text[:pos]

    if host.count(":") > 1:
        m = _IPV6_RE.match(host)
        is_ipv6 = True
    else:
        m = _HOST_RE.match(host)
        is_ipv6 = False
    if m is None:
        return None

    return HostSpec(
        host=m.group("host") or "",
        port=_port(m.group("port")),
        socket_path=socket_path or None,
        is_ipv6=is_ipv6,
    )


def resolve_host(raw: str) -> HostSpec:
    """Best-effort HostSpec; never fails."""
    spec = parse_db_host(raw)
    if spec is None:
        log.debug("host spec not recognized; using it verbatim: %r", raw)
        return HostSpec(host=(raw or "").strip())
    return spec
