"""
Binding module exports.

Clean interface for the gateway to import binding storage components.
"""

from bindings.base import BindingStore
from bindings.redis_store import RedisBindingStore
from bindings.stub import StubBindingStore
from bindings.types import Binding

__all__ = [
    "Binding",
    "BindingStore",
    "StubBindingStore",
    "RedisBindingStore",
]
