from __future__ import annotations

import json
import textwrap

import pytest

from securedb.core.cli import main
from securedb.core.registry.drivers import REGISTRY

_ENV_KEYS = (
    "DB_HOST", "DB_USER", "DB_PASSWORD", "DB_NAME", "MYSQL_CLIENT_FLAGS",
    "MYSQL_SSL_KEY", "MYSQL_SSL_CERT", "MYSQL_SSL_CA", "MYSQL_SSL_CA_PATH", "MYSQL_SSL_CIPHER",
    "SECUREDB_DRIVER", "SECUREDB_PLUGIN_PATHS", "SECUREDB_CONFIG_FILE", "SECUREDB_SETTINGS_MODULE",
    "SECUREDB_ENV_FILES_JSON", "SECUREDB_DB_ERROR_HANDLER", "SECUREDB_DRIVER_OPTIONS_JSON",
    "DB_PASSWORD_FILE", "MYSQL_SSL_CA_FILE",
)


@pytest.fixture()
def clean_env(monkeypatch):
    for k in _ENV_KEYS:
        monkeypatch.delenv(k, raising=False)
    return monkeypatch


def test_doctor_json_reports_tls_decision(clean_env, tls_files, capsys):
    clean_env.setenv("DB_HOST", "[2001:db8::5]:3307")
    clean_env.setenv("MYSQL_CLIENT_FLAGS", "SSL")
    clean_env.setenv("MYSQL_SSL_CA", tls_files["ca"])

    rc = main(["doctor", "--json"])
    report = json.loads(capsys.readouterr().out)
    assert rc == 0
    assert report["ok"] is True
    assert report["host"] == {"raw": "[2001:db8::5]:3307", "host": "2001:db8::5", "port": 3307, "socket": None, "is_ipv6": True}
    assert report["enforce_tls"] is True
    assert report["tls"]["ca_cert"] == {"configured": tls_files["ca"], "present": True}
    assert report["tls"]["key"] == {"configured": None, "present": False}
    assert report["client_flags"]["names"] == ["SSL"]


def test_doctor_strict_fails_on_missing_cert(clean_env, tmp_path, capsys):
    clean_env.setenv("MYSQL_CLIENT_FLAGS", "2048")
    clean_env.setenv("MYSQL_SSL_CERT", str(tmp_path / "gone.pem"))

    rc = main(["doctor", "--strict"])
    out = capsys.readouterr().out
    assert rc == 2
    assert "enforce_tls=False" in out
    assert "tls_path_missing" in out
    assert "tls_half_configured" in out


def test_connect_with_plugin_driver(clean_env, tmp_path, capsys):
    plugin_dir = tmp_path / "plugins"
    plugin_dir.mkdir()
    (plugin_dir / "refusing_driver.py").write_text(
        textwrap.dedent(
            """
            from securedb.core.api import register_driver


            class _Handle:
                report_errors = True
                connect_errno = 0
                connect_error = ""

                def ssl_set(self, key, cert, ca, capath, cipher):
                    pass

                def real_connect(self, host, user, password, database, port, socket, flags):
                    self.connect_errno = 2003
                    self.connect_error = "refused"
                    return False

                def close(self):
                    pass


            @register_driver("refusing")
            class RefusingDriver:
                ipv6_brackets = False

                def __init__(self, init):
                    self.name = init.name

                def init(self):
                    return _Handle()
            """
        ),
        encoding="utf-8",
    )
    clean_env.setenv("SECUREDB_PLUGIN_PATHS", str(plugin_dir))
    clean_env.setenv("SECUREDB_DRIVER", "refusing")
    try:
        rc = main(["connect", "--no-bail", "--json"])
    finally:
        REGISTRY._items.pop("refusing", None)
    payload = json.loads(capsys.readouterr().out)
    assert rc == 2
    assert payload["ok"] is False
    assert payload["reason"] == "connect"
    assert payload["errno"] == 2003
