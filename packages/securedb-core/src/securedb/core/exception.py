"""Centralized customized exceptions for securedb.

Connect failures are NOT exceptions: the connector reports them through
``ConnectionResult`` / the boolean returned by ``SecureConnector.connect``.
The classes below cover programmer and environment errors only.

Internal code should prefer explicit imports:

    from securedb.core.exception import ConnectorError
"""

from __future__ import annotations

__all__ = [
    "ConnectorError",
    "DriverMissingError",
    "SettingsError",
]


class ConnectorError(RuntimeError):
    """Base error for connector failures that are not plain connect errors."""


class DriverMissingError(ConnectorError):
    """Raised when a driver's optional dependency is not installed."""


class SettingsError(ValueError):
    """Raised when a configuration value cannot be interpreted (e.g. client flags)."""
