from __future__ import annotations

import json
import sys
import textwrap

import pytest
from pydantic import ValidationError

from securedb.core.exception import SettingsError
from securedb.core.flags import ClientFlag
from securedb.core.runtime.envfiles import EnvFileSpec, load_env_files, parse_env_files_json
from securedb.core.runtime.settings import Settings, load_settings


def test_from_env_maps_wordpress_style_names():
    s = Settings.from_env(
        {
            "DB_HOST": "db:3307",
            "DB_USER": "app",
            "DB_PASSWORD": "pw",
            "DB_NAME": "appdb",
            "MYSQL_CLIENT_FLAGS": "SSL|COMPRESS",
            "MYSQL_SSL_CA": "/etc/ssl/ca.pem",
            "MYSQL_SSL_CIPHER": "AES256-SHA",
            "SECUREDB_DEBUG": "1",
        }
    )
    assert s.db_host == "db:3307"
    assert s.client_flags == int(ClientFlag.SSL | ClientFlag.COMPRESS)
    assert s.flags & ClientFlag.SSL
    assert s.ssl_ca == "/etc/ssl/ca.pem"
    assert s.ssl_key is None
    assert s.ssl_cipher == "AES256-SHA"
    assert s.verbose_errors is True


def test_defaults_from_empty_env():
    s = Settings.from_env({})
    assert s.db_host == "localhost"
    assert s.client_flags == 0
    assert s.verbose_errors is False
    assert s.driver == "pymysql"


def test_invalid_flags_rejected():
    with pytest.raises(ValidationError):
        Settings(client_flags="SSL|WARP")


def test_config_file_and_overrides(tmp_path):
    cfg = tmp_path / "securedb.yaml"
    cfg.write_text(
        textwrap.dedent(
            """
            securedb:
              db_host: "[::1]:3306"
              client_flags: SSL
              ssl_cipher: AES256-SHA
            """
        ),
        encoding="utf-8",
    )
    s = load_settings({"db_name": "override"}, env={"SECUREDB_CONFIG_FILE": str(cfg), "DB_NAME": "fromenv"})
    assert s.db_host == "[::1]:3306"
    assert s.client_flags == 2048
    assert s.db_name == "override"


def test_settings_module(tmp_path, monkeypatch):
    (tmp_path / "my_securedb_settings.py").write_text("SETTINGS = {'db_user': 'svc'}\n", encoding="utf-8")
    monkeypatch.syspath_prepend(str(tmp_path))
    monkeypatch.delitem(sys.modules, "my_securedb_settings", raising=False)
    s = load_settings(env={"SECUREDB_SETTINGS_MODULE": "my_securedb_settings", "DB_USER": "x"})
    assert s.db_user == "svc"


def test_env_files_json(tmp_path):
    dotenv = tmp_path / "db.env"
    dotenv.write_text(
        "# creds\nexport DB_HOST='db.internal:3310'\nDB_PASSWORD=\"p w\"\nUNRELATED_TOKEN=x\n",
        encoding="utf-8",
    )
    secrets = tmp_path / "secrets"
    secrets.mkdir()
    (secrets / "mysql_client_flags").write_text("2048\n", encoding="utf-8")
    (secrets / "mysql-ssl-ca").write_text("/etc/ssl/ca.pem\n", encoding="utf-8")
    (secrets / "..data").mkdir()
    (secrets / "other_service_token").write_text("nope", encoding="utf-8")
    specs = [
        {"type": "dotenv", "path": str(dotenv)},
        {"type": "secrets", "path": str(secrets)},
        {"type": "dotenv", "path": str(tmp_path / "absent.env"), "optional": True},
    ]
    s = load_settings(env={"SECUREDB_ENV_FILES_JSON": json.dumps(specs), "DB_HOST": "ignored"})
    assert s.db_host == "db.internal:3310"
    assert s.db_password == "p w"
    assert s.client_flags == 2048
    assert s.ssl_ca == "/etc/ssl/ca.pem"

    loaded = load_env_files([EnvFileSpec(type="secrets", path=str(secrets))])
    assert set(loaded) == {"MYSQL_CLIENT_FLAGS", "MYSQL_SSL_CA"}


def test_required_env_file_missing(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_env_files([EnvFileSpec(type="dotenv", path=str(tmp_path / "nope.env"))])


@pytest.mark.parametrize(
    "raw",
    ['{"type": "dotenv"}', '[{"type": "json", "path": "/x.json"}]', "[1]", "not json"],
)
def test_bad_env_sources_rejected(raw: str):
    with pytest.raises(SettingsError):
        parse_env_files_json(raw)


def test_file_reference_supplies_password(tmp_path):
    pw = tmp_path / "db_password"
    pw.write_text("from-secret\n", encoding="utf-8")
    s = load_settings(env={"DB_PASSWORD_FILE": str(pw), "DB_USER": "app"})
    assert s.db_password == "from-secret"


def test_file_reference_conflicts_with_value(tmp_path):
    pw = tmp_path / "db_password"
    pw.write_text("a", encoding="utf-8")
    with pytest.raises(SettingsError, match="only one of DB_PASSWORD"):
        load_settings(env={"DB_PASSWORD_FILE": str(pw), "DB_PASSWORD": "b"})
    with pytest.raises(SettingsError, match="missing file"):
        load_settings(env={"MYSQL_SSL_CA_FILE": str(tmp_path / "gone")})


@pytest.mark.parametrize("value", ["false", "0", "off", "''"])
def test_falsy_cipher_in_config_file_means_no_cipher(tmp_path, value: str):
    cfg = tmp_path / "securedb.yaml"
    cfg.write_text(f"ssl_cipher: {value}\nclient_flags: SSL\n", encoding="utf-8")
    s = load_settings(env={"SECUREDB_CONFIG_FILE": str(cfg)})
    assert s.ssl_cipher is None
    assert s.client_flags == 2048


def test_driver_options_from_env_and_config(tmp_path):
    s = load_settings(env={"SECUREDB_DRIVER_OPTIONS_JSON": '{"connect_args": {"read_timeout": 5}}'})
    assert s.driver_options == {"connect_args": {"read_timeout": 5}}

    cfg = tmp_path / "securedb.yaml"
    cfg.write_text("driver_options:\n  connect_args:\n    use_pure: true\n", encoding="utf-8")
    s = load_settings(env={"SECUREDB_CONFIG_FILE": str(cfg)})
    assert s.driver_options == {"connect_args": {"use_pure": True}}

    with pytest.raises(ValidationError):
        Settings(driver_options="[1, 2]")
