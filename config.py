"""
Configuration management for the WeChat bridge.

Loads environment variables from .env file and provides typed access to configuration.
"""

import os
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables from .env file
env_path = Path(__file__).parent / ".env"
load_dotenv(env_path)


class Config:
    """Configuration class for the WeChat bridge."""

    # WeChat Official Account
    WECHAT_TOKEN = os.getenv("WECHAT_TOKEN", "")
    WECHAT_APP_ID = os.getenv("WECHAT_APP_ID", "")
    WECHAT_APP_SECRET = os.getenv("WECHAT_APP_SECRET", "")
    # Only needed for secure (encrypted) mode
    WECHAT_ENCODING_AES_KEY = os.getenv("WECHAT_ENCODING_AES_KEY", "")

    # Public base URL of this bridge; callback URLs are built from it
    BRIDGE_BASE_URL = os.getenv("BRIDGE_BASE_URL", "http://localhost:3000")
    BRIDGE_PORT = int(os.getenv("BRIDGE_PORT", "3000"))

    # Environment
    ENVIRONMENT = os.getenv("ENVIRONMENT", "development")

    @classmethod
    def validate(cls) -> bool:
        """Validate that required configuration is set."""
        required = ["WECHAT_TOKEN", "WECHAT_APP_ID", "BRIDGE_BASE_URL"]
        missing = [key for key in required if not getattr(cls, key)]

        if missing:
            print(f"⚠️  Missing required environment variables: {', '.join(missing)}")
            print(f"   Please set them in .env file")
            return False

        return True


if __name__ == "__main__":
    # Test configuration loading
    print("Configuration loaded:")
    print(f"  WeChat Token: {'✓ Set' if Config.WECHAT_TOKEN else '✗ Missing'}")
    print(f"  WeChat AppID: {Config.WECHAT_APP_ID}")
    print(f"  Secure mode key: {'✓ Set' if Config.WECHAT_ENCODING_AES_KEY else '✗ Not set'}")
    print(f"  Bridge URL: {Config.BRIDGE_BASE_URL}")
    print(f"  Environment: {Config.ENVIRONMENT}")
    print(f"\n  Validation: {'✓ PASSED' if Config.validate() else '✗ FAILED'}")
