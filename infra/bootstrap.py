"""
Infrastructure initialization and bootstrap.

Singleton pattern for creating the binding store and sender from configuration.
"""

from typing import Optional

from bindings import BindingStore
from transport.wechat.sender import WeChatSender

from .config import InfraConfig, get_config


class InfraBootstrap:
    """
    Bootstrap infrastructure based on configuration.

    Singleton pattern - single instance per process.
    """

    _instance: Optional["InfraBootstrap"] = None

    def __init__(
        self,
        config: Optional[InfraConfig] = None,
        binding_store: Optional[BindingStore] = None,
        sender: Optional[WeChatSender] = None,
    ):
        """Initialize bootstrap with configuration (components may be injected)."""
        self.config = config or get_config()
        self.binding_store = binding_store if binding_store is not None else self.config.create_binding_store()
        self.sender = sender if sender is not None else self.config.create_sender()

    @classmethod
    def get_instance(cls, config: Optional[InfraConfig] = None) -> "InfraBootstrap":
        """
        Get singleton instance.

        Args:
            config: Optional custom configuration (only used first time)

        Returns:
            Singleton InfraBootstrap instance
        """
        if cls._instance is None:
            cls._instance = cls(config)
        return cls._instance

    @classmethod
    def install(cls, instance: "InfraBootstrap") -> "InfraBootstrap":
        """Replace the singleton (for testing)."""
        cls._instance = instance
        return instance

    @classmethod
    def reset(cls):
        """Reset singleton (for testing)."""
        cls._instance = None

    def get_binding_store(self) -> BindingStore:
        """Get binding store."""
        return self.binding_store

    def get_sender(self) -> WeChatSender:
        """Get out-of-band sender."""
        return self.sender

    async def close(self) -> None:
        """Release connections held by the store and sender."""
        await self.sender.close()
        await self.binding_store.close()

    def __repr__(self) -> str:
        """String representation showing configured backends."""
        return (
            f"InfraBootstrap(bindings={self.config.binding_backend}, "
            f"forward_timeout={self.config.forward_timeout_seconds}s)"
        )


def bootstrap_infrastructure(config: Optional[InfraConfig] = None) -> InfraBootstrap:
    """
    Bootstrap all infrastructure backends.

    Args:
        config: Optional custom configuration

    Returns:
        InfraBootstrap instance with all backends initialized
    """
    return InfraBootstrap.get_instance(config)
