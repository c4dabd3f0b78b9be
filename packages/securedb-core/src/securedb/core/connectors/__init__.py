from __future__ import annotations

from securedb.core.exception import DriverMissingError


def require(spec: str):
    """
    spec:
      - "a.b.c" -> module
                import a.b.c -> require("a.b.c")
      - "a.b:c" -> attribute c from module a.b
            from a.b import c -> require("a.b:c")
    """
    import importlib
    if ":" in spec:
        module_name, attr = spec.split(":", 1)
        return require_attr(module_name=module_name, attr_name=attr)
    try:
        return importlib.import_module(spec)
    except ImportError as e:
        raise DriverMissingError(
            f"Optional dependency missing: Module {spec}. "
            f"Install it to use this driver."
        ) from e


def require_attr(module_name: str, attr_name: str):
    """
    spec:
        from a.b import c -> require_attr("a.b", "c")
    """
    import importlib
    try:
        mod = importlib.import_module(module_name)
        return getattr(mod, attr_name)
    except (ImportError, AttributeError) as e:
        raise DriverMissingError(
            f"Optional dependency missing: Module {module_name} Attribute {attr_name}. "
            f"Install it to use this driver."
        ) from e
