"""
Task Callback Handler

Receives results from remote task endpoints and pushes them to the user.
The gateway never retries a push: a 500 here lets the endpoint decide.
"""

import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from infra.bootstrap import InfraBootstrap
from transport.wechat.correlator import handle_result, handle_stream_chunk
from transport.wechat.schemas import CallbackResult, StreamChunk

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/callback", tags=["Callback"])


@router.post("/{user_id}")
async def task_callback(user_id: str, result: CallbackResult):
    """
    Final result for a forwarded task.

    Expected payload:
    {
        "success": true,
        "result": "...",
        "metadata": {"chunks": 3, "thinking_time_ms": 1500}
    }

    Returns:
        {"ok": true} once pushed, or 500 {"ok": false, "error": ...}
    """
    bootstrap = InfraBootstrap.get_instance()
    sent = await handle_result(
        user_id,
        result,
        bootstrap.get_binding_store(),
        bootstrap.get_sender(),
    )

    if sent:
        return {"ok": True}
    return JSONResponse(
        status_code=500,
        content={"ok": False, "error": "Failed to send WeChat message"},
    )


@router.post("/{user_id}/stream")
async def task_stream_callback(user_id: str, chunk: StreamChunk):
    """
    Streamed result piece.

    Returns:
        {"ok": true, "buffered": true} for intermediate chunks,
        {"ok": <pushed>} for the final one
    """
    bootstrap = InfraBootstrap.get_instance()
    return await handle_stream_chunk(user_id, chunk, bootstrap.get_sender())
