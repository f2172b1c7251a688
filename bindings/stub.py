"""
Stub binding store for testing and local runs.

In-memory, deterministic, no external dependencies.
"""

from typing import Dict, Optional

from bindings.base import BindingStore
from bindings.types import Binding


class StubBindingStore(BindingStore):
    """
    Dict-backed binding store.

    Properties:
    - Per-process only: bindings vanish on restart
    - No expiry
    """

    def __init__(self):
        self.storage: Dict[str, Binding] = {}

    async def get(self, user_id: str) -> Optional[Binding]:
        return self.storage.get(user_id)

    async def set(self, binding: Binding) -> None:
        self.storage[binding.user_id] = binding

    async def delete(self, user_id: str) -> bool:
        return self.storage.pop(user_id, None) is not None
