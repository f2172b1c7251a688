"""Pytest configuration and fixtures."""

import base64
import os
import sys
from pathlib import Path

# Add project root to sys.path for imports
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

# Deterministic platform settings; must be set before config.py is imported
TEST_TOKEN = "test_token"
TEST_APP_ID = "wx_test_app_id"
TEST_AES_KEY = base64.b64encode(bytes(range(32))).decode("ascii").rstrip("=")
TEST_BASE_URL = "https://bridge.example.com"

os.environ["WECHAT_TOKEN"] = TEST_TOKEN
os.environ["WECHAT_APP_ID"] = TEST_APP_ID
os.environ["WECHAT_APP_SECRET"] = "test_secret"
os.environ["WECHAT_ENCODING_AES_KEY"] = TEST_AES_KEY
os.environ["BRIDGE_BASE_URL"] = TEST_BASE_URL
os.environ["BINDING_BACKEND"] = "stub"

import pytest

from bindings import StubBindingStore
from infra import InfraBootstrap, InfraConfig


class FakeSender:
    """Records pushes instead of calling the platform."""

    def __init__(self, succeed: bool = True):
        self.succeed = succeed
        self.sent = []

    async def send_text(self, user_id: str, text: str) -> bool:
        self.sent.append((user_id, text))
        return self.succeed

    async def close(self) -> None:
        return None


@pytest.fixture
def binding_store():
    return StubBindingStore()


@pytest.fixture
def fake_sender():
    return FakeSender()


@pytest.fixture
def bootstrap(binding_store, fake_sender):
    """Install a process bootstrap backed by the stub store and fake sender."""
    config = InfraConfig(
        binding_backend="stub",
        redis_url="redis://unused",
        binding_ttl_seconds=0,
        forward_timeout_seconds=10.0,
        wechat_api_base="https://api.weixin.qq.com",
    )
    instance = InfraBootstrap.install(
        InfraBootstrap(config=config, binding_store=binding_store, sender=fake_sender)
    )
    yield instance
    InfraBootstrap.reset()
