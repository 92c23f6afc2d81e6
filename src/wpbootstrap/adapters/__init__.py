"""Adapters — tool bindings for host side effects.

Public re-exports for convenient access.
"""

from wpbootstrap.adapters.base import Adapter, ExecutionContext
from wpbootstrap.adapters.mock import MockAdapter
from wpbootstrap.adapters.registry import AdapterRegistry

__all__ = [
    "Adapter",
    "AdapterRegistry",
    "ExecutionContext",
    "MockAdapter",
]
