"""What happens when a connect fails and the caller allowed bailing.

The connector itself only reports failure. This module is the default policy
plugged into it: run the operator's custom handler if one is configured,
otherwise log a fixed diagnostic and terminate with SystemExit.

A custom handler is a module name or a path to a ``.py`` file that defines
``handle(connector, reason)``. It is expected not to return; if it does, the
process is terminated anyway.
"""

from __future__ import annotations

import importlib
import importlib.util
import logging
from pathlib import Path
from typing import Any, Callable, Optional

log = logging.getLogger("securedb.core.bail")

BailFn = Callable[[Any, str], None]


def connect_failure_message(dbhost: str) -> str:
    return "\n".join(
        [
            "Error establishing a database connection",
            "",
            "This either means that the username and password information in your "
            "configuration is incorrect or that contact with the database server at "
            f"{dbhost} could not be established. This could mean your host's database "
            "server is down.",
            "",
            "  - Are you sure you have the correct username and password?",
            "  - Are you sure you have typed the correct hostname?",
            "  - Are you sure the database server is running?",
        ]
    )


def select_failure_message(dbname: str, dbuser: str) -> str:
    return "\n".join(
        [
            "Cannot select database",
            "",
            f"The database server could be connected to (which means your username and "
            f"password is okay) but the {dbname} database could not be selected.",
            "",
            "  - Are you sure it exists?",
            f"  - Does the user {dbuser} have permission to use the {dbname} database?",
            "  - On some systems the name of your database is prefixed with your username. "
            "Could that be the problem?",
        ]
    )


def load_error_handler(spec: str | None) -> Optional[Callable]:
    """Return the custom handle() callable, or None when not configured / not found."""
    if not spec:
        return None
    if spec.endswith(".py") or "/" in spec:
        p = Path(spec).expanduser()
        if not p.is_file():
            log.debug("custom db error handler not present: %s", p)
            return None
        mod_spec = importlib.util.spec_from_file_location(f"securedb_db_error_{p.stem}", p)
        if not mod_spec or not mod_spec.loader:
            raise RuntimeError(f"Unable to load db error handler from path: {p}")
        m = importlib.util.module_from_spec(mod_spec)
        mod_spec.loader.exec_module(m)
    else:
        m = importlib.import_module(spec)
    fn = getattr(m, "handle", None)
    if not callable(fn):
        raise TypeError(f"db error handler {spec} must define callable handle(connector, reason)")
    return fn


def bail_on_failure(connector: Any, reason: str) -> None:
    """Default bail policy. Never returns."""
    settings = connector.settings
    handler = load_error_handler(settings.db_error_handler)
    if handler is not None:
        handler(connector, reason)
        raise SystemExit(1)

    if reason == "select_db":
        message = select_failure_message(settings.db_name, settings.db_user)
    else:
        message = connect_failure_message(settings.db_host)
    log.critical(message)
    raise SystemExit(message)
