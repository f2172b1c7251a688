"""
Task Forwarder

Packages an inbound message as a TaskRequest and POSTs it to the user's
bound endpoint. Fire-and-forget: runs after the webhook reply has gone out.

No retries. No auth header: endpoints are reached over a private network
and the binding token stays in the store. Add authentication here if
that network assumption ever changes.
"""

import logging
from typing import Optional
from urllib.parse import quote

import httpx

from bindings.types import Binding

from .schemas import InboundMessage, MsgType, TaskMetadata, TaskRequest

logger = logging.getLogger(__name__)

FORWARD_TIMEOUT_SECONDS = 10.0

UNRECOGNIZED_VOICE_TEXT = "[语音消息，无法识别]"


class ForwardError(Exception):
    """Task could not be delivered to the bound endpoint."""
    pass


def format_task(message: InboundMessage) -> str:
    """Render the task text for a message, by type."""
    if message.msg_type == MsgType.TEXT:
        return message.content
    if message.msg_type == MsgType.VOICE:
        return message.recognition or UNRECOGNIZED_VOICE_TEXT
    if message.msg_type == MsgType.IMAGE:
        return f"[图片消息] {message.pic_url}"
    if message.msg_type == MsgType.LOCATION:
        # Location_X is latitude, Location_Y longitude
        return (
            f"[位置消息] 经度: {message.location_y}, "
            f"纬度: {message.location_x}, {message.label}"
        )
    if message.msg_type == MsgType.LINK:
        return f"[链接消息] {message.title}\n{message.description}\n{message.url}"
    return f"[{message.raw_type}消息]"


def build_callback_url(bridge_base_url: str, user_id: str) -> str:
    return f"{bridge_base_url.rstrip('/')}/callback/{quote(user_id, safe='')}"


def build_task_request(message: InboundMessage, bridge_base_url: str) -> TaskRequest:
    return TaskRequest(
        task=format_task(message),
        callback_url=build_callback_url(bridge_base_url, message.from_user),
        metadata=TaskMetadata(
            openid=message.from_user,
            msg_type=message.raw_type,
            msg_id=message.msg_id,
            timestamp=message.create_time,
        ),
    )


async def deliver_task(
    request: TaskRequest,
    endpoint_url: str,
    client: Optional[httpx.AsyncClient] = None,
    timeout: float = FORWARD_TIMEOUT_SECONDS,
) -> httpx.Response:
    """
    POST a TaskRequest as JSON. Single attempt.

    Args:
        request: Task to deliver
        endpoint_url: Bound endpoint
        client: Shared client; a short-lived one is created if omitted
        timeout: Whole-request timeout in seconds

    Returns:
        The endpoint's response (2xx)

    Raises:
        ForwardError: Transport error, timeout or non-2xx status
    """

    payload = request.model_dump(exclude_none=True)

    try:
        if client is None:
            async with httpx.AsyncClient() as own_client:
                response = await own_client.post(endpoint_url, json=payload, timeout=timeout)
        else:
            response = await client.post(endpoint_url, json=payload, timeout=timeout)
        response.raise_for_status()
    except httpx.HTTPStatusError as e:
        raise ForwardError(f"Endpoint returned {e.response.status_code}")
    except httpx.HTTPError as e:
        raise ForwardError(f"HTTP request failed: {e!r}")

    return response


async def forward_message(
    message: InboundMessage,
    binding: Binding,
    bridge_base_url: str,
    client: Optional[httpx.AsyncClient] = None,
    timeout: float = FORWARD_TIMEOUT_SECONDS,
) -> bool:
    """
    Background entry point: forward one message, log the outcome.

    Never raises. The user already has the "processing" reply; a failure
    here shows up only as a log line and a missing final answer.

    Returns:
        True if the endpoint accepted the task
    """

    request = build_task_request(message, bridge_base_url)
    logger.info(
        f"Forwarding message to {binding.endpoint_url}",
        extra={
            "user_id": message.from_user,
            "msg_type": message.raw_type,
            "endpoint_url": binding.endpoint_url,
        },
    )

    try:
        response = await deliver_task(request, binding.endpoint_url, client=client, timeout=timeout)
    except ForwardError as e:
        logger.error(
            f"Failed to forward message for {message.from_user}: {e}",
            extra={"user_id": message.from_user, "endpoint_url": binding.endpoint_url},
        )
        return False
    except Exception as e:
        logger.error(f"Unexpected error forwarding message: {e}", exc_info=True)
        return False

    logger.info(
        f"Endpoint responded with status {response.status_code}",
        extra={"user_id": message.from_user, "status_code": response.status_code},
    )
    return True
