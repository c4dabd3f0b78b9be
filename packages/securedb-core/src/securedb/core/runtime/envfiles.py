"""Connection settings mounted as files.

Credentials and TLS paths are usually mounted (docker/k8s secrets) rather
than exported. Two ways to pick them up:

``<KEY>_FILE`` in the environment names a file whose content becomes
``<KEY>``, for any connection key below::

    DB_PASSWORD_FILE=/run/secrets/db_password

SECUREDB_ENV_FILES_JSON lists dotenv files and secrets directories (one
file per key, named ``db_password``, ``DB_PASSWORD`` or ``db-password``)::

    [{"type": "dotenv", "path": "/etc/securedb/db.env"},
     {"type": "secrets", "path": "/run/secrets", "optional": true}]

Only keys Settings.from_env reads are taken from these sources. Anything
else in a shared secrets mount (other services' tokens, k8s ``..data``
links) is left alone.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List

from securedb.core.exception import SettingsError

log = logging.getLogger("securedb.core.runtime.envfiles")

CONNECTION_KEYS = frozenset(
    {
        "DB_HOST",
        "DB_USER",
        "DB_PASSWORD",
        "DB_NAME",
        "DB_CHARSET",
        "DB_COLLATE",
        "MYSQL_CLIENT_FLAGS",
        "MYSQL_SSL_KEY",
        "MYSQL_SSL_CERT",
        "MYSQL_SSL_CA",
        "MYSQL_SSL_CA_PATH",
        "MYSQL_SSL_CIPHER",
    }
)

_SOURCE_TYPES = ("dotenv", "secrets")


def _accepts(key: str) -> bool:
    # SECUREDB_ENV_FILES_JSON itself cannot be redirected from a file it lists.
    return key in CONNECTION_KEYS or (key.startswith("SECUREDB_") and key != "SECUREDB_ENV_FILES_JSON")


def _secret_text(p: Path) -> str:
    # Mounted secrets commonly end with a newline the value never had.
    return p.read_text(encoding="utf-8").rstrip("\r\n")


@dataclass(frozen=True)
class EnvFileSpec:
    type: str
    path: str
    optional: bool = False


def _read_dotenv(p: Path) -> Dict[str, str]:
    out: Dict[str, str] = {}
    for lineno, raw in enumerate(p.read_text(encoding="utf-8").splitlines(), 1):
        line = raw.strip()
        if line.startswith("export "):
            line = line[7:].lstrip()
        if not line or line.startswith("#"):
            continue
        key, sep, value = line.partition("=")
        key, value = key.strip(), value.strip()
        if not sep or not key:
            log.debug("%s:%d: not a KEY=value line; skipped", p, lineno)
            continue
        if value[:1] in ("'", '"') and value[-1:] == value[:1] and len(value) > 1:
            value = value[1:-1]
        if _accepts(key):
            out[key] = value
    return out


def _read_secrets_dir(p: Path) -> Dict[str, str]:
    if not p.is_dir():
        raise NotADirectoryError(str(p))
    out: Dict[str, str] = {}
    for fp in sorted(p.iterdir()):
        if fp.name.startswith(".") or not fp.is_file():
            continue
        key = fp.name.upper().replace("-", "_")
        if _accepts(key):
            out[key] = _secret_text(fp)
    return out


def load_env_files(specs: Iterable[EnvFileSpec]) -> Dict[str, str]:
    """Read connection keys from each source; later sources win."""
    merged: Dict[str, str] = {}
    for s in specs:
        path = Path(s.path).expanduser()
        if not path.exists():
            if s.optional:
                log.debug("optional env source not present: %s", path)
                continue
            raise FileNotFoundError(str(path))
        if s.type == "dotenv":
            merged.update(_read_dotenv(path))
        else:
            merged.update(_read_secrets_dir(path))
    return merged


def resolve_file_refs(env: Dict[str, str]) -> Dict[str, str]:
    """Values for ``<KEY>_FILE`` references in ``env``.

    Setting both ``KEY`` and ``KEY_FILE`` is a configuration error.
    """
    out: Dict[str, str] = {}
    for key in sorted(CONNECTION_KEYS):
        ref = env.get(f"{key}_FILE")
        if not ref:
            continue
        if env.get(key):
            raise SettingsError(f"Set only one of {key} or {key}_FILE")
        p = Path(ref).expanduser()
        if not p.is_file():
            raise SettingsError(f"{key}_FILE points to a missing file: {p}")
        out[key] = _secret_text(p)
    return out


def parse_env_files_json(raw: str) -> List[EnvFileSpec]:
    """Parse SECUREDB_ENV_FILES_JSON into sources."""
    try:
        arr = json.loads(raw)
    except ValueError as e:
        raise SettingsError(f"SECUREDB_ENV_FILES_JSON is not valid JSON: {e}") from e
    if not isinstance(arr, list):
        raise SettingsError("SECUREDB_ENV_FILES_JSON must be a JSON list")
    out: List[EnvFileSpec] = []
    for it in arr:
        if not isinstance(it, dict) or not it.get("path"):
            raise SettingsError("env source must be an object with a path")
        kind = str(it.get("type") or "dotenv").lower()
        if kind not in _SOURCE_TYPES:
            raise SettingsError(f"Unsupported env source type: {kind} (expected one of {', '.join(_SOURCE_TYPES)})")
        out.append(EnvFileSpec(type=kind, path=str(it["path"]), optional=bool(it.get("optional", False))))
    return out
