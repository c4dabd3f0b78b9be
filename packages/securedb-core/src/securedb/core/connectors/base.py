from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional, Protocol, runtime_checkable

# libmysqlclient error codes for failures that are not server errors.
CR_UNKNOWN_ERROR = 2000
CR_SSL_CONNECTION_ERROR = 2026


@runtime_checkable
class ClientHandle(Protocol):
    """
    Driver handle contract.

    A handle is one not-yet-connected client session. The connector owns it for
    a single connect attempt:

      - ssl_set() before real_connect(), never after
      - real_connect() records failures in connect_errno / connect_error and
        returns False instead of raising while report_errors is False
      - close() is safe to call on a failed or already closed handle

    Session helpers (set_charset, has_cap, query_sql_modes, set_sql_modes,
    select_db) are only called on a connected handle.
    """

    report_errors: bool
    connect_errno: int
    connect_error: str

    def ssl_set(
        self,
        key: Optional[str],
        cert: Optional[str],
        ca: Optional[str],
        capath: Optional[str],
        cipher: Optional[str],
    ) -> None: ...

    def real_connect(
        self,
        host: str,
        user: str,
        password: str,
        database: Optional[str],
        port: Optional[int],
        socket: Optional[str],
        flags: int,
    ) -> bool: ...

    def close(self) -> None: ...

    def server_version(self) -> str: ...
    def has_cap(self, cap: str) -> bool: ...
    def set_charset(self, charset: str, collate: Optional[str] = None) -> bool: ...
    def query_sql_modes(self) -> list[str]: ...
    def set_sql_modes(self, modes: list[str]) -> bool: ...
    def select_db(self, name: str) -> bool: ...


@runtime_checkable
class Driver(Protocol):
    """
    Factory for ClientHandle objects.

    ipv6_brackets tells the connector whether this backend expects IPv6 literals
    as ``[addr]`` (some resolvers require it, others reject it).
    """

    name: str
    ipv6_brackets: bool

    def init(self) -> ClientHandle: ...


@dataclass
class DriverInit:
    name: str
    options: dict[str, Any]
    settings: Any | None = None
