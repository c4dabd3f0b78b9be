from __future__ import annotations

from typing import Any, Dict, Type

from securedb.core.connectors.base import Driver, DriverInit


class DriverRegistry:
    """
    Registry + factory for client drivers.

    Supports decorator registration:
        @registry.register("pymysql")
        class PyMySQLDriver: ...

    And factory instantiation:
        driver = registry.create("pymysql", options={...}, settings=settings)
    """

    def __init__(self) -> None:
        self._items: Dict[str, Type] = {}

    def register(self, name: str):
        def deco(cls):
            self._items[name] = cls
            return cls
        return deco

    def get(self, name: str):
        if name not in self._items:
            raise KeyError(f"Unknown driver: {name}. Loaded: {self.list()}")
        return self._items[name]

    def list(self) -> list[str]:
        return sorted(self._items.keys())

    def create(self, name: str, *, options: dict | None = None, settings: Any | None = None) -> Driver:
        Cls = self.get(name)
        return Cls(DriverInit(name=name, options=options or {}, settings=settings))


# Singleton registry used by core + plugins
REGISTRY = DriverRegistry()


def register_driver(name: str):
    return REGISTRY.register(name)


def get_driver(name: str):
    return REGISTRY.get(name)


def list_drivers() -> list[str]:
    return REGISTRY.list()
