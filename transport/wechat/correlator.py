"""
Callback Correlator

Turns a remote endpoint's result into the final message for the user and
pushes it out of band. The user id in the callback path is the
correlation key; the binding lookup is a liveness check only.
"""

import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Optional, Protocol

from bindings.base import BindingStore

from .schemas import CallbackResult, StreamChunk

logger = logging.getLogger(__name__)

NO_CONTENT_TEXT = "✅ 任务已完成（无返回内容）"
FAILURE_PREFIX = "❌ 处理失败："
UNKNOWN_ERROR_TEXT = "未知错误"
THINKING_TIME_FOOTER = "\n\n⏱️ 思考用时: {seconds}s"


class TextSender(Protocol):
    async def send_text(self, user_id: str, text: str) -> bool: ...


def format_seconds(milliseconds: float) -> str:
    """Milliseconds as seconds with one decimal, halves rounded up."""
    seconds = Decimal(str(milliseconds)) / 1000
    return str(seconds.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def build_result_text(result: CallbackResult) -> str:
    """Final user-facing text for a callback result."""
    if result.success:
        text = result.result or NO_CONTENT_TEXT
    else:
        text = FAILURE_PREFIX + (result.error or UNKNOWN_ERROR_TEXT)

    thinking_ms: Optional[float] = result.metadata.thinking_time_ms if result.metadata else None
    if thinking_ms:
        text += THINKING_TIME_FOOTER.format(seconds=format_seconds(thinking_ms))

    return text


async def handle_result(
    user_id: str,
    result: CallbackResult,
    store: BindingStore,
    sender: TextSender,
) -> bool:
    """
    Deliver a task result to the user.

    A missing binding is logged, not rejected: the endpoint may
    legitimately finish after the user unbound or rebound.

    Returns:
        True if the push succeeded
    """

    logger.info(
        f"Received callback for {user_id}",
        extra={
            "user_id": user_id,
            "success": result.success,
            "chunks": result.metadata.chunks if result.metadata else None,
        },
    )

    binding = await store.get(user_id)
    if binding is None:
        logger.warning(f"Callback received for unbound user: {user_id}", extra={"user_id": user_id})

    sent = await sender.send_text(user_id, build_result_text(result))
    if sent:
        logger.info(f"Successfully sent response to {user_id}", extra={"user_id": user_id})
    else:
        logger.error(f"Failed to send response to {user_id}", extra={"user_id": user_id})
    return sent


async def handle_stream_chunk(
    user_id: str,
    chunk: StreamChunk,
    sender: TextSender,
) -> Dict[str, Any]:
    """
    Handle one streamed chunk.

    Intermediate chunks are acknowledged and dropped. The `done` chunk's
    text is pushed as-is; earlier chunks are not prepended.
    """

    if chunk.done:
        sent = await sender.send_text(user_id, chunk.chunk)
        return {"ok": sent}

    index = chunk.chunk_index if chunk.chunk_index is not None else "?"
    logger.debug(f"Received stream chunk {index} for {user_id}", extra={"user_id": user_id})
    return {"ok": True, "buffered": True}
