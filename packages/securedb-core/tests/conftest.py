import sys
from pathlib import Path

# Allow running tests without installing the package.
sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))

import pytest
from securedb.core.runtime.settings import Settings


def _version(raw: str) -> tuple[int, ...]:
    return tuple(int(p) for p in raw.split("-")[0].split("."))


class FakeHandle:
    def __init__(self, driver: "FakeDriver"):
        self.driver = driver
        self.report_errors = True
        self.connect_errno = 0
        self.connect_error = ""
        self.last_error = ""
        self.ssl_calls: list[tuple] = []
        self.connect_calls: list[dict] = []
        self.charset_calls: list[tuple] = []
        self.sql_modes_set: list[str] | None = None
        self.selected: str | None = None
        self.closed = False

    def ssl_set(self, key, cert, ca, capath, cipher) -> None:
        self.ssl_calls.append((key, cert, ca, capath, cipher))

    def real_connect(self, host, user, password, database, port, socket, flags) -> bool:
        self.connect_calls.append(
            {"host": host, "user": user, "password": password, "database": database, "port": port, "socket": socket, "flags": flags}
        )
        if self.driver.fail_errno:
            self.connect_errno = self.driver.fail_errno
            self.connect_error = "Access denied for user"
            if self.report_errors:
                raise RuntimeError(self.connect_error)
            return False
        return True

    def close(self) -> None:
        self.closed = True

    def server_version(self) -> str:
        return self.driver.version

    def has_cap(self, cap: str) -> bool:
        v = _version(self.driver.version)
        return {
            "collation": v >= (4, 1),
            "utf8mb4": v >= (5, 5, 3),
            "utf8mb4_520": v >= (5, 6),
        }.get(cap, False)

    def set_charset(self, charset, collate=None) -> bool:
        self.charset_calls.append((charset, collate))
        return True

    def query_sql_modes(self) -> list[str]:
        return list(self.driver.sql_modes)

    def set_sql_modes(self, modes) -> bool:
        self.sql_modes_set = list(modes)
        return True

    def select_db(self, name: str) -> bool:
        self.selected = name
        if name in self.driver.missing_dbs:
            self.last_error = f"Unknown database '{name}'"
            return False
        return True


class FakeDriver:
    name = "fake"

    def __init__(
        self,
        *,
        ipv6_brackets: bool = False,
        fail_errno: int = 0,
        version: str = "8.0.36",
        sql_modes=("ONLY_FULL_GROUP_BY", "STRICT_TRANS_TABLES", "NO_ENGINE_SUBSTITUTION"),
        missing_dbs=(),
    ):
        self.ipv6_brackets = ipv6_brackets
        self.fail_errno = fail_errno
        self.version = version
        self.sql_modes = sql_modes
        self.missing_dbs = set(missing_dbs)
        self.handles: list[FakeHandle] = []

    def init(self) -> FakeHandle:
        h = FakeHandle(self)
        self.handles.append(h)
        return h


@pytest.fixture()
def fake_driver():
    return FakeDriver()


@pytest.fixture()
def make_driver():
    return FakeDriver


@pytest.fixture()
def settings():
    return Settings(
        db_host="db.internal:3307",
        db_user="app",
        db_password="s3cret",
        db_name="appdb",
        log_level="INFO",
    )


@pytest.fixture()
def tls_files(tmp_path):
    """Real files/dirs for every TLS path setting."""
    d = tmp_path / "tls"
    d.mkdir()
    out = {}
    for name in ("key", "cert", "ca"):
        p = d / f"{name}.pem"
        p.write_text(f"-----BEGIN {name.upper()}-----\n", encoding="utf-8")
        out[name] = str(p)
    capath = d / "certs"
    capath.mkdir()
    out["capath"] = str(capath)
    return out
