"""Public, stable API surface for securedb.

If you're writing driver plugins or integrating securedb into your own
codebase, import from **`securedb.core.api`**.

Everything outside this package is considered internal and may change without
notice, even in minor releases.
"""

from __future__ import annotations

# Driver contracts
from securedb.core.connectors import require, require_attr
from securedb.core.connectors.base import ClientHandle, Driver, DriverInit
# Connector
from securedb.core.connector import ConnectionResult, SecureConnector
# Common exceptions
from securedb.core.exception import ConnectorError, DriverMissingError, SettingsError
# Flags, host spec, TLS
from securedb.core.flags import ClientFlag, parse_client_flags, requests_ssl
from securedb.core.hostspec import HostSpec, parse_db_host, resolve_host
from securedb.core.registry.drivers import get_driver, list_drivers, register_driver
# Settings
from securedb.core.runtime.settings import Settings, load_settings
from securedb.core.tls import TLSMaterial, resolve_tls_material, should_enforce_tls

__all__ = [
    # connector
    "SecureConnector",
    "ConnectionResult",
    # settings
    "Settings",
    "load_settings",
    # resolution
    "HostSpec",
    "parse_db_host",
    "resolve_host",
    "TLSMaterial",
    "resolve_tls_material",
    "should_enforce_tls",
    "ClientFlag",
    "parse_client_flags",
    "requests_ssl",
    # drivers
    "ClientHandle",
    "Driver",
    "DriverInit",
    "register_driver",
    "get_driver",
    "list_drivers",
    "require",
    "require_attr",
    # errors
    "ConnectorError",
    "DriverMissingError",
    "SettingsError",
]
