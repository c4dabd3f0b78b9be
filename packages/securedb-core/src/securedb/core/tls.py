from __future__ import annotations

import logging
import os
from dataclasses import dataclass, fields
from typing import Any, Optional

from securedb.core.flags import ClientFlag, requests_ssl

log = logging.getLogger("securedb.core.tls")

# String values that mean "cipher not configured".
_FALSY_CIPHERS = {"", "0", "false", "no", "off", "none"}


@dataclass(frozen=True)
class TLSMaterial:
    """Resolved TLS references; a field is None when unset or missing on disk."""

    key: Optional[str] = None
    cert: Optional[str] = None
    ca_cert: Optional[str] = None
    ca_dir: Optional[str] = None
    cipher_list: Optional[str] = None

    def is_present(self) -> bool:
        return any(getattr(self, f.name) is not None for f in fields(self))

    def as_dict(self) -> dict:
        return {f.name: getattr(self, f.name) for f in fields(self)}

    def ssl_args(self) -> tuple[Optional[str], Optional[str], Optional[str], Optional[str], Optional[str]]:
        """Positional arguments for ``ClientHandle.ssl_set``."""
        return self.key, self.cert, self.ca_cert, self.ca_dir, self.cipher_list

    @classmethod
    def from_settings(cls, settings: Any) -> "TLSMaterial":
        return resolve_tls_material(
            key=settings.ssl_key,
            cert=settings.ssl_cert,
            ca_cert=settings.ssl_ca,
            ca_dir=settings.ssl_ca_path,
            cipher_list=settings.ssl_cipher,
        )


def _existing(label: str, path: Any, *, want_dir: bool) -> Optional[str]:
    if path is None or path is False or str(path).strip() == "":
        return None
    p = os.fspath(path) if not isinstance(path, str) else path
    ok = os.path.isdir(p) if want_dir else os.path.isfile(p)
    if not ok:
        log.debug("TLS %s not found, ignoring: %s", label, p)
        return None
    return p


def normalize_cipher(value: Any) -> Optional[str]:
    if value is None or value is False:
        return None
    text = str(value).strip()
    if text.lower() in _FALSY_CIPHERS:
        return None
    return text


def resolve_tls_material(
    *,
    key: Any = None,
    cert: Any = None,
    ca_cert: Any = None,
    ca_dir: Any = None,
    cipher_list: Any = None,
) -> TLSMaterial:
    """Existence-check every path and drop what is missing. Never raises for absent files."""
    return TLSMaterial(
        key=_existing("key", key, want_dir=False),
        cert=_existing("cert", cert, want_dir=False),
        ca_cert=_existing("CA cert", ca_cert, want_dir=False),
        ca_dir=_existing("CA dir", ca_dir, want_dir=True),
        cipher_list=normalize_cipher(cipher_list),
    )


def should_enforce_tls(flags: int, material: TLSMaterial) -> bool:
    """TLS is set up only when the SSL flag is requested AND some material is present."""
    return requests_ssl(flags) and material.is_present()


def tls_warnings(flags: int, material: TLSMaterial) -> list[str]:
    """Operator hints for the two half-configured combinations."""
    out: list[str] = []
    if requests_ssl(flags) and not material.is_present():
        out.append(
            "client flags request SSL but no TLS key/cert/CA/cipher was found; "
            "TLS parameters will not be applied"
        )
    if material.is_present() and not requests_ssl(flags):
        out.append(
            f"TLS material is configured but client flags lack SSL ({int(ClientFlag.SSL)}); "
            "TLS parameters will not be applied"
        )
    return out
