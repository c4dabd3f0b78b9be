"""securedb core package.

Public entrypoints:
- securedb.core.api: stable API surface for integrations/driver plugins
- securedb.core.connector.SecureConnector: the TLS-negotiating connector

Internal modules may change without notice.
"""

from __future__ import annotations

# Ensure built-in drivers are registered on import.
from securedb.core.builtins import drivers as _drivers  # noqa: F401

from securedb.core.connector import ConnectionResult, SecureConnector

__all__ = ["ConnectionResult", "SecureConnector"]
