"""Secure connector: negotiate a TLS-encrypted MySQL connection.

Usage:

    settings = load_settings()
    db = SecureConnector(settings)
    if db.connect(allow_bail=False):
        conn = db.dbh.connection

Every attempt re-derives the host spec and the TLS material from settings,
creates one fresh driver handle and either keeps it (success) or closes and
drops it (failure). Connect failures never raise; ``connect()`` returns False
or, with ``allow_bail=True``, hands over to the bail policy.
"""

from __future__ import annotations

import logging
import warnings
from dataclasses import dataclass
from typing import Any, Callable, Optional

from securedb.core.bail import bail_on_failure
from securedb.core.connectors.base import CR_UNKNOWN_ERROR, ClientHandle, Driver
from securedb.core.flags import requests_ssl
from securedb.core.hostspec import resolve_host
from securedb.core.observability import ConnectObserver, log_event
from securedb.core.plugins import load_all_plugins
from securedb.core.registry.drivers import REGISTRY
from securedb.core.runtime.secrets import resolve_password
from securedb.core.runtime.settings import Settings, load_settings
from securedb.core.tls import TLSMaterial, should_enforce_tls, tls_warnings

log = logging.getLogger("securedb.core.connector")

# Session modes that break applications written against lenient MySQL defaults.
INCOMPATIBLE_MODES = (
    "NO_ZERO_DATE",
    "ONLY_FULL_GROUP_BY",
    "STRICT_TRANS_TABLES",
    "STRICT_ALL_TABLES",
    "TRADITIONAL",
    "ANSI",
)


@dataclass(frozen=True)
class ConnectionResult:
    ok: bool
    handle: Optional[ClientHandle] = None
    reason: Optional[str] = None
    errno: int = 0
    message: str = ""

    @classmethod
    def success(cls, handle: ClientHandle) -> "ConnectionResult":
        return cls(ok=True, handle=handle)

    @classmethod
    def failure(cls, reason: str, *, errno: int = 0, message: str = "") -> "ConnectionResult":
        return cls(ok=False, reason=reason, errno=errno, message=message)


class SecureConnector:
    """Wraps a driver and exposes the connect(allow_bail) contract."""

    is_mysql = True

    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        driver: Optional[Driver] = None,
        bail: Optional[Callable[[Any, str], None]] = None,
    ):
        self.settings = settings if settings is not None else load_settings()
        self._driver = driver
        self.bail = bail or bail_on_failure
        self.dbh: Optional[ClientHandle] = None
        self.ready = False
        self.has_connected = False
        self.tls_applied = False
        self.charset: Optional[str] = None
        self.collate: Optional[str] = None
        self.last_result: Optional[ConnectionResult] = None

    @property
    def driver(self) -> Driver:
        if self._driver is None:
            load_all_plugins(settings=self.settings)
            self._driver = REGISTRY.create(
                self.settings.driver, options=self.settings.driver_options, settings=self.settings
            )
        return self._driver

    # -- connect ---------------------------------------------------------

    def connect(self, allow_bail: bool = True) -> bool:
        """Connect to and select the database.

        If allow_bail is False a failed connection must be handled by the caller.
        """
        result = self.attempt()
        self.last_result = result
        if result.ok:
            return True
        if allow_bail:
            self.bail(self, result.reason or "connect")
        return False

    def attempt(self) -> ConnectionResult:
        """One connect attempt; never raises for connect/auth/network errors."""
        self.close()
        s = self.settings
        drv = self.driver

        handle = drv.init()
        # Error surfacing is ours; the handle must record failures instead of raising.
        handle.report_errors = False

        spec = resolve_host(s.db_host)
        host, port, socket = spec.connect_args(brackets=bool(getattr(drv, "ipv6_brackets", False)))

        material = TLSMaterial.from_settings(s)
        enforce = should_enforce_tls(s.client_flags, material)
        for hint in tls_warnings(s.client_flags, material):
            log.warning(hint)
        log_event(
            log,
            settings=s,
            level=logging.DEBUG,
            event="tls_decision",
            enforce=enforce,
            ssl_flag=requests_ssl(s.client_flags),
            **{k: v is not None for k, v in material.as_dict().items()},
        )

        obs = ConnectObserver(settings=s, logger=log, driver=getattr(drv, "name", s.driver), host=s.db_host)
        obs.start(port=port, socket=socket, ipv6=spec.is_ipv6)

        if enforce:
            handle.ssl_set(*material.ssl_args())
        self.tls_applied = enforce

        try:
            ok = self._real_connect(handle, host, port, socket)
        except Exception as e:
            # Drivers are expected to record failures; a plugin that raises anyway
            # still ends as a connect failure.
            log.warning("driver %s raised during connect: %s", getattr(drv, "name", s.driver), e, exc_info=s.verbose_errors)
            handle.close()
            obs.end(status="FAILED", errno=CR_UNKNOWN_ERROR, tls=enforce)
            return ConnectionResult.failure("connect", errno=CR_UNKNOWN_ERROR, message=str(e))
        if not ok or handle.connect_errno:
            errno = int(handle.connect_errno or 0)
            message = handle.connect_error
            handle.close()
            obs.end(status="FAILED", errno=errno, tls=enforce)
            return ConnectionResult.failure("connect", errno=errno, message=message)

        self.dbh = handle
        if not self.has_connected:
            self.init_charset()
        self.has_connected = True
        self.set_charset(handle)
        self.ready = True
        self.set_sql_mode()

        if s.db_name and not self.select(s.db_name):
            message = getattr(handle, "last_error", "")
            self.close()
            obs.end(status="FAILED", tls=enforce)
            return ConnectionResult.failure("select_db", message=message)

        obs.end(status="SUCCESS", tls=enforce)
        return ConnectionResult.success(handle)

    def _real_connect(self, handle: ClientHandle, host: str, port: Optional[int], socket: Optional[str]) -> bool:
        s = self.settings
        args = (host, s.db_user, resolve_password(s), None, port, socket, s.client_flags)
        if s.verbose_errors:
            ok = handle.real_connect(*args)
        else:
            with warnings.catch_warnings():
                warnings.simplefilter("ignore")
                ok = handle.real_connect(*args)
        if not ok or handle.connect_errno:
            if s.verbose_errors:
                log.warning("connect to %s failed: [%s] %s", s.db_host, handle.connect_errno, handle.connect_error)
            else:
                log.debug("connect to %s failed: [%s] %s", s.db_host, handle.connect_errno, handle.connect_error)
            return False
        return True

    # -- session ---------------------------------------------------------

    def init_charset(self) -> None:
        """Pick charset/collate once per connector (first successful connect)."""
        charset = self.settings.charset or "utf8"
        collate = self.settings.collate
        self.charset, self.collate = self.determine_charset(charset, collate)

    def determine_charset(self, charset: str, collate: Optional[str]) -> tuple[str, Optional[str]]:
        dbh = self.dbh
        if dbh is None:
            return charset, collate

        if charset == "utf8" and dbh.has_cap("utf8mb4"):
            charset = "utf8mb4"
        if charset == "utf8mb4" and not dbh.has_cap("utf8mb4"):
            charset = "utf8"
            collate = (collate or "").replace("utf8mb4_", "utf8_") or None

        if charset == "utf8mb4":
            if not collate or collate == "utf8_general_ci":
                collate = "utf8mb4_unicode_ci"
            else:
                collate = collate.replace("utf8_", "utf8mb4_")
            if collate == "utf8mb4_unicode_ci" and dbh.has_cap("utf8mb4_520"):
                collate = "utf8mb4_unicode_520_ci"
        return charset, collate

    def set_charset(self, dbh: ClientHandle, charset: Optional[str] = None, collate: Optional[str] = None) -> None:
        charset = charset or self.charset
        collate = collate or self.collate
        if not charset or not dbh.has_cap("collation"):
            return
        if not dbh.set_charset(charset, collate):
            log.warning("could not set session charset=%s collate=%s", charset, collate)

    def set_sql_mode(self, modes: Optional[list[str]] = None) -> None:
        dbh = self.dbh
        if dbh is None:
            return
        if modes is None:
            modes = dbh.query_sql_modes()
        blocked = {m.upper() for m in INCOMPATIBLE_MODES}
        kept = [m for m in modes if m.strip().upper() not in blocked]
        dbh.set_sql_modes(kept)

    def select(self, db: str) -> bool:
        dbh = self.dbh
        if dbh is None or not dbh.select_db(db):
            self.ready = False
            log.error("cannot select database %s", db)
            return False
        return True

    # -- lifecycle -------------------------------------------------------

    def close(self) -> None:
        dbh, self.dbh = self.dbh, None
        self.ready = False
        if dbh is not None:
            dbh.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        try:
            self.close()
        except Exception:
            log.warning("non-critical connector operation failed; continuing", exc_info=True)
