from __future__ import annotations

import logging
from typing import Any, Optional

from securedb.core.connectors import require
from securedb.core.connectors.base import CR_SSL_CONNECTION_ERROR, CR_UNKNOWN_ERROR, DriverInit
from securedb.core.flags import ClientFlag
from securedb.core.registry.drivers import register_driver

log = logging.getLogger("securedb.core.builtin.drivers")

# Bits that only steer the client side; never sent to the server.
_CLIENT_ONLY = ClientFlag.SSL | ClientFlag.SSL_VERIFY_SERVER_CERT


def _version_tuple(raw: str) -> tuple[int, ...]:
    head = raw.split("-", 1)[0]
    out = []
    for part in head.split("."):
        digits = "".join(ch for ch in part if ch.isdigit())
        out.append(int(digits) if digits else 0)
    return tuple(out)


def _server_flags(flags: int) -> int:
    return int(flags) & ~int(_CLIENT_ONLY)


class _HandleBase:
    """Shared state for the built-in handles.

    The driver connection is only built inside real_connect() so that
    ssl_set() can still change the TLS setup (init, ssl_set, real_connect).
    """

    def __init__(self, *, connect_timeout: float = 10.0, options: dict | None = None):
        self.report_errors = True
        self.connect_errno = 0
        self.connect_error = ""
        self.last_error = ""
        self._ssl: dict[str, Any] | None = None
        self._conn = None
        self._connect_timeout = connect_timeout
        self._options = options or {}

    def ssl_set(self, key, cert, ca, capath, cipher) -> None:
        # Drivers key off presence, so only present values go in.
        self._ssl = {
            k: v
            for k, v in (("key", key), ("cert", cert), ("ca", ca), ("capath", capath), ("cipher", cipher))
            if v is not None
        }

    def _fail(self, code: int, msg: str, exc: Exception) -> bool:
        self.connect_errno = int(code) or CR_UNKNOWN_ERROR
        self.connect_error = msg
        if self.report_errors:
            raise exc
        return False

    @property
    def connection(self):
        """Underlying driver connection (None until connected)."""
        return self._conn

    def close(self) -> None:
        conn, self._conn = self._conn, None
        if conn is None:
            return
        try:
            conn.close()
        except Exception:
            # already closed by the server, or never fully opened
            log.debug("driver close failed; ignoring", exc_info=True)

    def server_version(self) -> str:
        return self._conn.get_server_info() if self._conn is not None else ""

    def has_cap(self, cap: str) -> bool:
        version = _version_tuple(self.server_version())
        cap = cap.lower()
        if cap in ("collation", "group_concat", "subqueries"):
            return version >= (4, 1)
        if cap == "set_charset":
            return version >= (5, 0, 7)
        if cap == "utf8mb4":
            return version >= (5, 5, 3)
        if cap == "utf8mb4_520":
            return version >= (5, 6)
        return False

    def _errors(self) -> tuple:
        raise NotImplementedError

    def _run(self, what: str, fn) -> Any:
        try:
            return fn()
        except self._errors() as e:
            self.last_error = str(e)
            log.warning("%s failed: %s", what, e)
            return None

    def _charset(self, charset: str, collate: Optional[str]) -> None:
        raise NotImplementedError

    def _use(self, name: str) -> None:
        raise NotImplementedError

    def set_charset(self, charset: str, collate: Optional[str] = None) -> bool:
        if self._conn is None:
            return False
        return bool(self._run("set_charset", lambda: self._charset(charset, collate) or True))

    def query_sql_modes(self) -> list[str]:
        if self._conn is None:
            return []

        def q():
            cur = self._conn.cursor()
            try:
                cur.execute("SELECT @@SESSION.sql_mode")
                row = cur.fetchone()
            finally:
                cur.close()
            return [m for m in str((row or [""])[0] or "").split(",") if m]

        return self._run("query_sql_modes", q) or []

    def set_sql_modes(self, modes: list[str]) -> bool:
        if self._conn is None:
            return False

        def q():
            cur = self._conn.cursor()
            try:
                cur.execute("SET SESSION sql_mode=%s", (",".join(modes),))
            finally:
                cur.close()
            return True

        return bool(self._run("set_sql_modes", q))

    def select_db(self, name: str) -> bool:
        if self._conn is None:
            return False
        return bool(self._run("select_db", lambda: self._use(name) or True))


class PyMySQLHandle(_HandleBase):
    """ClientHandle on top of PyMySQL; supports all five TLS parameters."""

    def _errors(self) -> tuple:
        return (require("pymysql").MySQLError,)

    def ssl_set(self, key, cert, ca, capath, cipher) -> None:
        super().ssl_set(key, cert, ca, capath, cipher)
        # PyMySQL only reads the key through load_cert_chain(cert, keyfile=key).
        if key is not None and cert is None:
            log.warning("pymysql driver needs a TLS cert to use the TLS key; key ignored")

    def real_connect(self, host, user, password, database, port, socket, flags) -> bool:
        pymysql = require("pymysql")
        self.connect_errno = 0
        self.connect_error = ""

        kwargs: dict[str, Any] = dict(
            host=host or None,
            user=user or None,
            password=password or "",
            database=database or None,
            port=port or 0,
            unix_socket=socket or None,
            client_flag=_server_flags(flags),
            connect_timeout=self._connect_timeout,
            defer_connect=True,
        )
        if self._ssl is not None:
            sslp = dict(self._ssl)
            sslp.setdefault("check_hostname", bool(int(flags) & ClientFlag.SSL_VERIFY_SERVER_CERT))
            kwargs["ssl"] = sslp
        kwargs.update(self._options.get("connect_args") or {})

        try:
            conn = pymysql.connections.Connection(**kwargs)
            conn.connect()
        except pymysql.MySQLError as e:
            code = e.args[0] if e.args and isinstance(e.args[0], int) else CR_UNKNOWN_ERROR
            msg = e.args[1] if len(e.args) > 1 else str(e)
            return self._fail(code, str(msg), e)
        except OSError as e:
            # ssl.SSLError and missing/unreadable certificate files land here.
            return self._fail(CR_SSL_CONNECTION_ERROR, str(e), e)
        except Exception as e:
            # e.g. RuntimeError when caching_sha2_password needs the cryptography package
            return self._fail(CR_UNKNOWN_ERROR, str(e), e)

        self._conn = conn
        return True

    def _charset(self, charset, collate):
        self._conn.set_character_set(charset, collate)

    def _use(self, name):
        self._conn.select_db(name)


class MySQLConnectorHandle(_HandleBase):
    """ClientHandle on top of mysql-connector-python.

    The connector takes CA/cert/key files but has no CA-directory or
    cipher-list argument; those two are dropped with a warning.
    """

    def _errors(self) -> tuple:
        return (require("mysql.connector").Error,)

    def real_connect(self, host, user, password, database, port, socket, flags) -> bool:
        mysql_connector = require("mysql.connector")
        self.connect_errno = 0
        self.connect_error = ""

        bits = _server_flags(flags)
        kwargs: dict[str, Any] = dict(
            user=user or None,
            password=password or "",
            connection_timeout=self._connect_timeout,
            client_flags=[1 << i for i in range(bits.bit_length()) if bits & (1 << i)],
        )
        if socket:
            kwargs["unix_socket"] = socket
        else:
            kwargs["host"] = host or "127.0.0.1"
            kwargs["port"] = port or 3306
        if database:
            kwargs["database"] = database

        if self._ssl is None:
            kwargs["ssl_disabled"] = True
        else:
            for src, dst in (("ca", "ssl_ca"), ("cert", "ssl_cert"), ("key", "ssl_key")):
                if src in self._ssl:
                    kwargs[dst] = self._ssl[src]
            kwargs["ssl_verify_cert"] = "ca" in self._ssl
            kwargs["ssl_verify_identity"] = bool(int(flags) & ClientFlag.SSL_VERIFY_SERVER_CERT)
            for dropped in ("capath", "cipher"):
                if dropped in self._ssl:
                    log.warning("mysql-connector driver cannot apply TLS %s; ignored", dropped)
        kwargs.update(self._options.get("connect_args") or {})

        try:
            conn = mysql_connector.connect(**kwargs)
        except mysql_connector.Error as e:
            return self._fail(getattr(e, "errno", None) or CR_UNKNOWN_ERROR, getattr(e, "msg", None) or str(e), e)
        except OSError as e:
            return self._fail(CR_SSL_CONNECTION_ERROR, str(e), e)
        except Exception as e:
            return self._fail(CR_UNKNOWN_ERROR, str(e), e)

        self._conn = conn
        return True

    def _charset(self, charset, collate):
        self._conn.set_charset_collation(charset, collate)

    def _use(self, name):
        self._conn.cmd_init_db(name)


class _DriverBase:
    handle_cls: type = _HandleBase
    # Both PyMySQL and mysql-connector resolve through socket.getaddrinfo,
    # which takes IPv6 literals without brackets.
    ipv6_brackets = False

    def __init__(self, init: DriverInit):
        self.name = init.name
        self.options = init.options or {}
        self.settings = init.settings

    def init(self):
        timeout = getattr(self.settings, "connect_timeout", 10.0) if self.settings is not None else 10.0
        return self.handle_cls(connect_timeout=timeout, options=self.options)


@register_driver("pymysql")
class PyMySQLDriver(_DriverBase):
    """
    MySQL/MariaDB driver backed by PyMySQL (pure python). Default driver.

    Options:
      - connect_args: dict passed through to pymysql.connections.Connection
    """

    handle_cls = PyMySQLHandle


@register_driver("mysql-connector")
class MySQLConnectorDriver(_DriverBase):
    """
    MySQL driver backed by mysql-connector-python (optional dependency).

    Options:
      - connect_args: dict passed through to mysql.connector.connect
        (e.g. {"use_pure": true})
    """

    handle_cls = MySQLConnectorHandle
