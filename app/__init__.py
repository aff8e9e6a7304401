"""Andrate service package: catalog providers, query surfaces and the library.

``app`` and ``create_app`` are resolved lazily so importing a submodule such
as :mod:`app.rating` does not build the FastAPI application.
"""

from __future__ import annotations

from importlib import import_module
from typing import Any

__all__ = ["app", "create_app"]


def __getattr__(name: str) -> Any:
    if name not in __all__:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
    return getattr(import_module(".main", __name__), name)
