"""Password decode hook.

Config:
- SECUREDB_SECRETS_MODULE: import module that exposes decode(value) -> str
- SECUREDB_SECRETS_PATH: python file path that exposes decode(value) -> str

When a hook is configured the connector calls decode(settings.db_password)
on every connect attempt; the decoded value is never stored on the settings.
"""

from __future__ import annotations

import importlib
import importlib.util
from dataclasses import dataclass
from pathlib import Path
from typing import Callable


DecodeFn = Callable[[str], str]


@dataclass
class SecretsProvider:
    decode: DecodeFn


def _provider_from(m: object, *, origin: str) -> SecretsProvider:
    dec = getattr(m, "decode", None)
    if not callable(dec):
        raise TypeError(f"Secrets hook {origin} must define callable decode(value: str) -> str")
    return SecretsProvider(decode=dec)


def _load_from_path(path: str) -> SecretsProvider:
    p = Path(path).expanduser().resolve()
    if not p.exists():
        raise FileNotFoundError(f"Secrets path not found: {p}")

    spec = importlib.util.spec_from_file_location(f"securedb_secrets_{p.stem}", p)
    if not spec or not spec.loader:
        raise RuntimeError(f"Unable to load secrets module from path: {p}")
    m = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(m)
    return _provider_from(m, origin=f"path:{p}")


def load_secrets_provider(*, secrets_module: str | None, secrets_path: str | None) -> SecretsProvider | None:
    if secrets_module:
        return _provider_from(importlib.import_module(secrets_module), origin=f"module:{secrets_module}")
    if secrets_path:
        return _load_from_path(secrets_path)
    return None


def resolve_password(settings) -> str:
    provider = load_secrets_provider(secrets_module=settings.secrets_module, secrets_path=settings.secrets_path)
    if provider is None:
        return settings.db_password
    return provider.decode(settings.db_password)
