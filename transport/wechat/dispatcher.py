"""
WeChat Command Dispatcher

Decides the single synchronous reply for each inbound message.

Per-message state is derived from the binding store, never held here:
    NoBinding --bind <url> <token>--> Bound
    Bound     --unbind-------------> NoBinding

Decision table (first match wins):
    1. event/subscribe           -> welcome text
    2. event/anything else       -> empty ack
    3. unbound + "bind URL TOK"  -> store binding, confirm (or reject bad URL)
       unbound + anything else   -> ask the user to bind
    4. bound + "unbind"          -> delete binding, confirm
       bound + anything else     -> schedule forward, reply "processing"

The real answer to a forwarded message never rides on this reply. It
arrives later through the callback path and the out-of-band sender.
"""

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from pydantic import AnyHttpUrl, TypeAdapter, ValidationError

from bindings.base import BindingStore
from bindings.types import Binding

from .schemas import InboundMessage, MsgType

logger = logging.getLogger(__name__)

BIND_PATTERN = re.compile(r"^bind\s+(\S+)\s+(\S+)$", re.IGNORECASE)
UNBIND_PATTERN = re.compile(r"^unbind$", re.IGNORECASE)

_URL_ADAPTER = TypeAdapter(AnyHttpUrl)

WELCOME_TEXT = """👋 欢迎关注！

这是一个 Agent 桥接服务。请发送以下指令绑定你的 Agent 实例：

bind <你的Agent地址> <Token>

例如：
bind https://my-agent.example.com/webhook abc123

绑定后，你可以直接发送消息与你的 Agent 对话。

其他指令：
• unbind - 解除绑定"""

BIND_PROMPT_TEXT = """👋 请先绑定你的 Agent 实例。

发送格式：
bind <你的Agent地址> <Token>

例如：
bind https://my-agent.example.com/webhook abc123"""

INVALID_URL_TEXT = "❌ 无效的 URL 格式，请检查后重试。"

BIND_SUCCESS_TEMPLATE = """✅ 绑定成功！

你的 Agent 地址：{endpoint_url}

现在可以直接发送消息与你的 Agent 对话了。

提示：发送 unbind 可以解除绑定。"""

UNBIND_SUCCESS_TEXT = """✅ 已解除绑定。

你可以随时使用 bind 指令重新绑定新的 Agent 实例。"""

PROCESSING_TEXT = "⏳ 正在处理中，请稍候..."


class DispatchAction(str, Enum):
    WELCOME = "welcome"
    ACK = "ack"
    BIND = "bind"
    BIND_REJECTED = "bind_rejected"
    PROMPT_BIND = "prompt_bind"
    UNBIND = "unbind"
    FORWARD = "forward"


@dataclass(frozen=True)
class DispatchResult:
    """Outcome of one dispatch. reply_text None means the empty platform ack."""

    action: DispatchAction
    reply_text: Optional[str]
    binding: Optional[Binding] = None


ForwardScheduler = Callable[[InboundMessage, Binding], None]


def is_valid_endpoint_url(url: str) -> bool:
    """True for syntactically valid absolute http(s) URLs."""
    try:
        _URL_ADAPTER.validate_python(url)
    except ValidationError:
        return False
    return True


def _text_of(message: InboundMessage) -> str:
    if message.msg_type != MsgType.TEXT:
        return ""
    return message.content.strip()


async def dispatch(
    message: InboundMessage,
    store: BindingStore,
    schedule_forward: ForwardScheduler,
) -> DispatchResult:
    """
    Decide the reply for one inbound message.

    Args:
        message: Parsed inbound message
        store: Authoritative binding store
        schedule_forward: Non-blocking hook that starts the forward;
            called at most once and never awaited

    Returns:
        DispatchResult with the action taken and reply text
    """

    user_id = message.from_user

    if message.msg_type == MsgType.EVENT:
        if (message.event or "").lower() == "subscribe":
            logger.info(f"New follower {user_id}", extra={"user_id": user_id})
            return DispatchResult(DispatchAction.WELCOME, WELCOME_TEXT)
        return DispatchResult(DispatchAction.ACK, None)

    binding = await store.get(user_id)
    text = _text_of(message)

    if binding is None:
        match = BIND_PATTERN.match(text)
        if not match:
            return DispatchResult(DispatchAction.PROMPT_BIND, BIND_PROMPT_TEXT)

        endpoint_url, token = match.group(1), match.group(2)
        if not is_valid_endpoint_url(endpoint_url):
            logger.info(
                f"Rejected bind with invalid URL from {user_id}",
                extra={"user_id": user_id, "endpoint_url": endpoint_url},
            )
            return DispatchResult(DispatchAction.BIND_REJECTED, INVALID_URL_TEXT)

        binding = Binding(user_id=user_id, endpoint_url=endpoint_url, token=token)
        await store.set(binding)
        logger.info(
            f"Bound {user_id} to {endpoint_url}",
            extra={"user_id": user_id, "endpoint_url": endpoint_url},
        )
        return DispatchResult(
            DispatchAction.BIND,
            BIND_SUCCESS_TEMPLATE.format(endpoint_url=endpoint_url),
            binding,
        )

    if UNBIND_PATTERN.match(text):
        await store.delete(user_id)
        logger.info(f"Unbound {user_id}", extra={"user_id": user_id})
        return DispatchResult(DispatchAction.UNBIND, UNBIND_SUCCESS_TEXT)

    schedule_forward(message, binding)
    return DispatchResult(DispatchAction.FORWARD, PROCESSING_TEXT, binding)
