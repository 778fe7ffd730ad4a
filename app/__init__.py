"""Movie night application package.

The FastAPI app and the bundle search helpers are imported lazily so that
``import app`` stays cheap for callers that only need the pure functions.
"""

from __future__ import annotations

from importlib import import_module
from typing import Any

_EXPORTS: dict[str, str] = {
    "app": "app.main",
    "create_app": "app.main",
    "generate_combinations": "app.services.combinations",
    "generate_combinations_per_provider": "app.services.combinations",
    "find_replacement": "app.services.replacement",
    "format_runtime": "app.utils",
    "summarize": "app.utils",
}

__all__ = list(_EXPORTS)


def __getattr__(name: str) -> Any:
    module_name = _EXPORTS.get(name)
    if module_name is None:
        raise AttributeError(f"module 'app' has no attribute {name}")
    return getattr(import_module(module_name), name)
