"""
Abstract binding store interface.

Bindings are a service, not state.
The gateway depends only on this interface and never caches a binding
across requests: the store is authoritative.
"""

from abc import ABC, abstractmethod
from typing import Optional

from bindings.types import Binding


class BindingStore(ABC):
    """
    Key-value boundary keyed by user id.

    Exactly one binding per user; `set` replaces whatever was there
    (last write wins).
    """

    @abstractmethod
    async def get(self, user_id: str) -> Optional[Binding]:
        """Return the user's binding, or None if unbound (or expired)."""
        raise NotImplementedError

    @abstractmethod
    async def set(self, binding: Binding) -> None:
        """Create or replace the binding for binding.user_id."""
        raise NotImplementedError

    @abstractmethod
    async def delete(self, user_id: str) -> bool:
        """Remove the user's binding. Returns True if one existed."""
        raise NotImplementedError

    async def close(self) -> None:
        """Release connections, if any."""
        return None
