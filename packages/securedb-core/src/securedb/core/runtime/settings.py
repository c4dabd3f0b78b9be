from __future__ import annotations

import json
import os
from importlib import import_module
from pathlib import Path
from typing import Any, Dict, List

import yaml
from pydantic import BaseModel, Field, field_validator

from securedb.core.exception import SettingsError
from securedb.core.flags import ClientFlag, parse_client_flags
from securedb.core.runtime.envfiles import load_env_files, parse_env_files_json, resolve_file_refs
from securedb.core.tls import normalize_cipher


def _truthy(v: str | None, default: str = "false") -> bool:
    return (v or default).strip().lower() in ("1", "true", "yes", "on")


class Settings(BaseModel):
    # Defaults are static. Use load_settings(env=...) to read from an env snapshot.
    db_host: str = "localhost"
    db_user: str = ""
    db_password: str = ""
    db_name: str = ""
    charset: str | None = None
    collate: str | None = None

    # Driver-level client flags (MYSQL_CLIENT_FLAGS). SSL must be set for TLS to be applied.
    client_flags: int = 0

    # TLS material. Paths are existence-checked on every connect attempt.
    ssl_key: str | None = None
    ssl_cert: str | None = None
    ssl_ca: str | None = None
    ssl_ca_path: str | None = None
    ssl_cipher: str | None = None

    # Surface driver diagnostics on connect (debug mode) instead of suppressing them.
    verbose_errors: bool = False

    driver: str = "pymysql"
    # Passed to the driver factory, e.g. {"connect_args": {"read_timeout": 30}}.
    driver_options: Dict[str, Any] = Field(default_factory=dict)
    connect_timeout: float = 10.0

    # Custom bail override: module name or path to a .py file exposing handle(connector).
    db_error_handler: str | None = None

    log_level: str = "INFO"

    # Observability
    # - log_format: "text" (default) or "json". When json, securedb logs emit a single JSON
    #   object per line, suitable for log aggregation.
    log_format: str = "text"

    # Optional metrics sink module (exposes METRICS: MetricsSink)
    metrics_module: str | None = None

    plugin_paths: List[str] = Field(default_factory=list)
    plugin_strict: bool = True

    # Secrets hook: load decode(value) from module or file path (applied to db_password)
    secrets_module: str | None = None
    secrets_path: str | None = None

    @field_validator("client_flags", mode="before")
    @classmethod
    def _parse_flags(cls, v):
        return int(parse_client_flags(v))

    @field_validator("ssl_cipher", mode="before")
    @classmethod
    def _cipher_or_none(cls, v):
        # YAML and settings modules can hand over false or 0 for "no cipher list"
        return normalize_cipher(v)

    @field_validator("driver_options", mode="before")
    @classmethod
    def _parse_driver_options(cls, v):
        if v is None or v == "":
            return {}
        if isinstance(v, str):
            try:
                v = json.loads(v)
            except ValueError as e:
                raise SettingsError(f"driver options must be a JSON object: {e}") from e
        if not isinstance(v, dict):
            raise SettingsError("driver options must be a JSON object")
        return v

    @property
    def flags(self) -> ClientFlag:
        return ClientFlag(self.client_flags)

    @classmethod
    def from_env(cls, env: dict[str, str], overrides: dict | None = None) -> "Settings":
        """Build Settings from an explicit env snapshot (does not read os.environ)."""
        def g(key: str, default: str | None = None) -> str | None:
            return env.get(key, default)  # type: ignore[return-value]

        data = {
            "db_host": g("DB_HOST", "localhost"),
            "db_user": g("DB_USER", ""),
            "db_password": g("DB_PASSWORD", ""),
            "db_name": g("DB_NAME", ""),
            "charset": g("DB_CHARSET") or None,
            "collate": g("DB_COLLATE") or None,
            "client_flags": g("MYSQL_CLIENT_FLAGS", "0"),
            "ssl_key": g("MYSQL_SSL_KEY") or None,
            "ssl_cert": g("MYSQL_SSL_CERT") or None,
            "ssl_ca": g("MYSQL_SSL_CA") or None,
            "ssl_ca_path": g("MYSQL_SSL_CA_PATH") or None,
            "ssl_cipher": g("MYSQL_SSL_CIPHER") or None,
            "verbose_errors": _truthy(g("SECUREDB_DEBUG")),
            "driver": g("SECUREDB_DRIVER", "pymysql"),
            "driver_options": g("SECUREDB_DRIVER_OPTIONS_JSON"),
            "connect_timeout": float(g("SECUREDB_CONNECT_TIMEOUT", "10") or 10),
            "db_error_handler": g("SECUREDB_DB_ERROR_HANDLER") or None,
            "log_level": g("SECUREDB_LOG_LEVEL", "INFO"),
            "log_format": g("SECUREDB_LOG_FORMAT", "text"),
            "metrics_module": g("SECUREDB_METRICS_MODULE") or None,
            "plugin_paths": [p for p in (g("SECUREDB_PLUGIN_PATHS", "") or "").split(",") if p],
            "plugin_strict": _truthy(g("SECUREDB_PLUGIN_STRICT"), "true"),
            "secrets_module": g("SECUREDB_SECRETS_MODULE") or None,
            "secrets_path": g("SECUREDB_SECRETS_PATH") or None,
        }
        if overrides:
            data.update(overrides)
        return cls(**data)


def _read_config_file(path: str) -> dict:
    p = Path(path).expanduser()
    obj = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    if not isinstance(obj, dict):
        raise TypeError(f"SECUREDB_CONFIG_FILE must contain a mapping: {p}")
    # allow the settings to live under a top-level "securedb:" key
    if isinstance(obj.get("securedb"), dict):
        obj = obj["securedb"]
    return obj


def load_settings(overrides: dict | None = None, *, env: dict[str, str] | None = None) -> Settings:
    """Load settings from (1) env snapshot + env files + <KEY>_FILE references, (2) YAML config file,
    (3) optional settings module, (4) explicit overrides.

    If env is not provided, we build a snapshot from os.environ.
    """
    env2 = {k: str(v) for k, v in os.environ.items()} if env is None else dict(env)
    env_files_json = env2.get("SECUREDB_ENV_FILES_JSON")
    if env_files_json:
        env2.update(load_env_files(parse_env_files_json(env_files_json)))
    env2.update(resolve_file_refs(env2))

    layered: dict = {}
    cfg = env2.get("SECUREDB_CONFIG_FILE")
    if cfg:
        layered.update(_read_config_file(cfg))
    mod = env2.get("SECUREDB_SETTINGS_MODULE")
    if mod:
        m = import_module(mod)
        data = getattr(m, "SETTINGS", {})
        if not isinstance(data, dict):
            raise TypeError("SECUREDB_SETTINGS_MODULE must expose SETTINGS: dict")
        layered.update(data)
    if overrides:
        layered.update(overrides)
    # Re-validate so flag names in files/overrides are parsed like env values.
    return Settings.from_env(env2, layered or None)
