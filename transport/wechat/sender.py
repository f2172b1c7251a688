"""
WeChat Out-of-Band Sender

Pushes text to a user through the customer-service message API, outside
any webhook request/response cycle.
No formatting intelligence. No retries. No logic.
"""

import asyncio
import logging
import time
from typing import Optional

import httpx

logger = logging.getLogger(__name__)

DEFAULT_API_BASE = "https://api.weixin.qq.com"
SEND_TIMEOUT_SECONDS = 10.0

# Refresh the access token this long before the platform expires it
TOKEN_EXPIRY_MARGIN_SECONDS = 300

# errcodes meaning the cached access token is no longer usable
_STALE_TOKEN_ERRCODES = {40001, 40014, 42001}


class PushError(Exception):
    """Failed to push a message to the user."""
    pass


class WeChatSender:
    """
    Customer-service text sender.

    Holds a cached access token; everything else is per call.
    """

    def __init__(
        self,
        app_id: str,
        app_secret: str,
        api_base: str = DEFAULT_API_BASE,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.app_id = app_id
        self.app_secret = app_secret
        self.api_base = api_base.rstrip("/")
        self.http_client = client
        self._owns_client = client is None
        self._access_token: Optional[str] = None
        self._token_expires_at = 0.0
        self._token_lock = asyncio.Lock()

    def _get_http_client(self) -> httpx.AsyncClient:
        if self.http_client is None:
            self.http_client = httpx.AsyncClient(timeout=SEND_TIMEOUT_SECONDS)
        return self.http_client

    def invalidate_token(self) -> None:
        self._access_token = None
        self._token_expires_at = 0.0

    async def get_access_token(self) -> str:
        """
        Return a valid access token, fetching a new one when needed.

        Concurrent callers share one refresh.

        Raises:
            PushError: Credentials missing or token endpoint failed
        """
        if self._token_is_fresh():
            return self._access_token

        async with self._token_lock:
            # Another caller may have refreshed while we waited
            if self._token_is_fresh():
                return self._access_token
            return await self._fetch_access_token()

    def _token_is_fresh(self) -> bool:
        return bool(self._access_token) and time.time() < self._token_expires_at

    async def _fetch_access_token(self) -> str:
        if not self.app_id or not self.app_secret:
            raise PushError("WECHAT_APP_ID / WECHAT_APP_SECRET not configured")

        client = self._get_http_client()
        try:
            response = await client.get(
                f"{self.api_base}/cgi-bin/token",
                params={
                    "grant_type": "client_credential",
                    "appid": self.app_id,
                    "secret": self.app_secret,
                },
                timeout=SEND_TIMEOUT_SECONDS,
            )
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise PushError(f"Access token request failed: {e!r}")

        if not isinstance(data, dict):
            raise PushError(f"Unexpected access token response: {data!r}")

        token = data.get("access_token")
        if not token:
            raise PushError(
                f"Access token request rejected: {data.get('errcode')} {data.get('errmsg')}"
            )

        try:
            expires_in = int(data.get("expires_in", 7200))
        except (TypeError, ValueError):
            raise PushError(f"Invalid expires_in: {data.get('expires_in')!r}")

        self._access_token = token
        self._token_expires_at = time.time() + max(expires_in - TOKEN_EXPIRY_MARGIN_SECONDS, 0)
        return token

    async def push_text(self, user_id: str, text: str) -> None:
        """
        Send a text message, raising on failure.

        Raises:
            PushError: Token, transport or API error
        """
        token = await self.get_access_token()
        payload = {
            "touser": user_id,
            "msgtype": "text",
            "text": {"content": text},
        }

        client = self._get_http_client()
        try:
            response = await client.post(
                f"{self.api_base}/cgi-bin/message/custom/send",
                params={"access_token": token},
                json=payload,
                timeout=SEND_TIMEOUT_SECONDS,
            )
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise PushError(f"HTTP request failed: {e!r}")

        if not isinstance(data, dict):
            raise PushError(f"Unexpected send response: {data!r}")

        errcode = data.get("errcode", 0)
        if errcode != 0:
            if isinstance(errcode, int) and errcode in _STALE_TOKEN_ERRCODES:
                # Next send fetches a fresh token; this one is not resent
                self.invalidate_token()
            raise PushError(f"WeChat API error {errcode}: {data.get('errmsg')}")

    async def send_text(self, user_id: str, text: str) -> bool:
        """
        Push text to a user. Never raises.

        Returns:
            True if the platform accepted the message
        """
        try:
            await self.push_text(user_id, text)
        except PushError as e:
            logger.error(
                f"Failed to push message to {user_id}: {e}",
                extra={"user_id": user_id},
            )
            return False

        logger.info(f"Message pushed to {user_id}", extra={"user_id": user_id})
        return True

    async def close(self) -> None:
        """Close HTTP client if this sender created it."""
        if self.http_client and self._owns_client:
            await self.http_client.aclose()
            self.http_client = None
