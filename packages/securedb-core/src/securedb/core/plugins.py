"""Third-party driver loading.

Drivers register themselves with ``@register_driver(name)`` on import. A
package can expose them through the ``securedb.drivers`` entry-point group,
or a directory of ``.py`` files can be listed in SECUREDB_PLUGIN_PATHS.
"""

from __future__ import annotations

import importlib.util
import logging
from importlib.metadata import entry_points
from pathlib import Path

log = logging.getLogger("securedb.core.plugins")

_LOADED_PATHS: set[str] = set()


def load_plugins_from_entrypoints(group: str = "securedb.drivers", *, strict: bool = True) -> None:
    try:
        eps = entry_points().select(group=group)
    except Exception as e:
        if strict:
            raise RuntimeError(f"Failed reading entry points for group={group}: {e}") from e
        log.warning("Failed reading entry points; continuing", exc_info=True)
        eps = []
    for ep in eps:
        try:
            obj = ep.load()
            if callable(obj) and not isinstance(obj, type):
                obj()
        except Exception as e:
            if strict:
                raise RuntimeError(f"Failed loading driver plugin {ep.name}: {e}") from e
            log.warning("Failed loading driver plugin %s; continuing", ep.name, exc_info=True)


def load_plugins_from_paths(paths: list[str], *, strict: bool = True) -> None:
    for raw in paths:
        if not raw:
            continue
        root = Path(raw).expanduser().resolve()
        if not root.exists():
            if strict:
                raise FileNotFoundError(f"Plugin path not found: {root}")
            continue
        files = [root] if root.is_file() else sorted(p for p in root.rglob("*.py") if not p.name.startswith("_"))
        for py in files:
            if str(py) in _LOADED_PATHS:
                continue
            try:
                mod_name = "securedb_user_plugin_" + "_".join(py.with_suffix("").parts[-3:])
                spec = importlib.util.spec_from_file_location(mod_name, py)
                if spec and spec.loader:
                    mod = importlib.util.module_from_spec(spec)
                    spec.loader.exec_module(mod)
                    _LOADED_PATHS.add(str(py))
            except Exception as e:
                if strict:
                    raise RuntimeError(f"Failed loading plugin file: {py}: {e}") from e
                log.warning("Failed loading plugin file: %s; continuing", py, exc_info=True)


def load_all_plugins(*, settings) -> None:
    load_plugins_from_entrypoints(strict=settings.plugin_strict)
    load_plugins_from_paths(settings.plugin_paths, strict=settings.plugin_strict)
