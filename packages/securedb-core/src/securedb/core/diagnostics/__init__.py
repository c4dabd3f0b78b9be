from __future__ import annotations

import logging
from typing import Any, Dict, List

from securedb.core.flags import ClientFlag, requests_ssl
from securedb.core.hostspec import parse_db_host, resolve_host
from securedb.core.registry.drivers import REGISTRY
from securedb.core.runtime.settings import Settings
from securedb.core.tls import TLSMaterial, should_enforce_tls, tls_warnings

log = logging.getLogger("securedb.core.diagnostics")

_TLS_FIELDS = (
    ("key", "ssl_key", "MYSQL_SSL_KEY"),
    ("cert", "ssl_cert", "MYSQL_SSL_CERT"),
    ("ca_cert", "ssl_ca", "MYSQL_SSL_CA"),
    ("ca_dir", "ssl_ca_path", "MYSQL_SSL_CA_PATH"),
    ("cipher_list", "ssl_cipher", "MYSQL_SSL_CIPHER"),
)


def _flag_names(flags: int) -> List[str]:
    return [m.name for m in ClientFlag if m.value and (flags & m.value) == m.value]


def doctor_check(settings: Settings) -> Dict[str, Any]:
    """Explain what a connect attempt would do with these settings, without connecting.

    Half-configured TLS (flag without material, material without flag, or a
    configured path that does not exist) is reported under warnings; ok is
    False when any warning is present.
    """
    spec = resolve_host(settings.db_host)
    recognized = parse_db_host(settings.db_host) is not None

    driver_known = settings.driver in REGISTRY.list()
    brackets = False
    if driver_known:
        brackets = bool(getattr(REGISTRY.get(settings.driver), "ipv6_brackets", False))
    host, port, socket = spec.connect_args(brackets=brackets)

    material = TLSMaterial.from_settings(settings)
    resolved = material.as_dict()
    warnings: List[Dict[str, str]] = []

    tls: Dict[str, Any] = {}
    for field, attr, env_key in _TLS_FIELDS:
        configured = getattr(settings, attr)
        present = resolved[field] is not None
        tls[field] = {"configured": configured, "present": present}
        if configured and not present and field != "cipher_list":
            warnings.append({"loc": env_key, "code": "tls_path_missing", "msg": f"{configured} does not exist"})

    for hint in tls_warnings(settings.client_flags, material):
        warnings.append({"loc": "MYSQL_CLIENT_FLAGS", "code": "tls_half_configured", "msg": hint})

    if not recognized:
        warnings.append({"loc": "DB_HOST", "code": "host_unrecognized", "msg": f"using {settings.db_host!r} verbatim"})
    if not driver_known:
        warnings.append({"loc": "SECUREDB_DRIVER", "code": "driver_unknown", "msg": f"{settings.driver} is not registered; loaded: {REGISTRY.list()}"})

    return {
        "ok": not warnings,
        "driver": settings.driver,
        "host": {
            "raw": settings.db_host,
            "host": spec.host,
            "port": spec.port,
            "socket": spec.socket_path,
            "is_ipv6": spec.is_ipv6,
        },
        "connect": {"host": host, "port": port, "socket": socket},
        "client_flags": {"value": int(settings.client_flags), "names": _flag_names(settings.client_flags)},
        "ssl_requested": requests_ssl(settings.client_flags),
        "tls": tls,
        "enforce_tls": should_enforce_tls(settings.client_flags, material),
        "warnings": warnings,
    }
