"""
Webhook module - FastAPI route handlers.

Includes:
- wechat.py: Official Account server verification and message receiver
- callback.py: Task result callbacks from remote endpoints
"""

from webhook.wechat import router as wechat_router
from webhook.callback import router as callback_router

__all__ = ["wechat_router", "callback_router"]
