"""
Infrastructure configuration system.

Environment-based backend selection with sensible defaults.
Production defaults to Redis; tests and local runs can use the stub store.
"""

import os
from dataclasses import dataclass
from typing import Literal

from bindings import BindingStore, RedisBindingStore, StubBindingStore
from config import Config
from transport.wechat.forwarder import FORWARD_TIMEOUT_SECONDS
from transport.wechat.sender import DEFAULT_API_BASE, WeChatSender


BindingBackendType = Literal["stub", "redis"]


@dataclass
class InfraConfig:
    """Infrastructure configuration from environment."""

    # Binding store
    binding_backend: BindingBackendType
    redis_url: str
    binding_ttl_seconds: int

    # Outbound HTTP
    forward_timeout_seconds: float
    wechat_api_base: str

    @classmethod
    def from_env(cls) -> "InfraConfig":
        """
        Load configuration from environment variables.

        Defaults:
        - Bindings: redis on localhost, no expiry
        - Forward timeout: 10s
        """
        return cls(
            binding_backend=os.getenv("BINDING_BACKEND", "redis"),  # type: ignore
            redis_url=os.getenv("REDIS_URL", "redis://localhost:6379/0"),
            binding_ttl_seconds=int(os.getenv("BINDING_TTL_SECONDS", "0")),
            forward_timeout_seconds=float(
                os.getenv("FORWARD_TIMEOUT_SECONDS", str(FORWARD_TIMEOUT_SECONDS))
            ),
            wechat_api_base=os.getenv("WECHAT_API_BASE", DEFAULT_API_BASE),
        )

    def create_binding_store(self) -> BindingStore:
        """Create binding store instance based on configuration."""
        if self.binding_backend == "stub":
            return StubBindingStore()
        return RedisBindingStore.from_url(self.redis_url, ttl_seconds=self.binding_ttl_seconds)

    def create_sender(self) -> WeChatSender:
        """Create the out-of-band sender from platform credentials."""
        return WeChatSender(
            app_id=Config.WECHAT_APP_ID,
            app_secret=Config.WECHAT_APP_SECRET,
            api_base=self.wechat_api_base,
        )


def get_config() -> InfraConfig:
    """Get global infrastructure configuration."""
    return InfraConfig.from_env()
