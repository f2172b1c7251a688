"""WeChat Transport Layer - Module Exports"""

from .correlator import build_result_text, handle_result, handle_stream_chunk
from .crypto import (
    AESKeyError,
    AppIdMismatch,
    CryptoError,
    build_encrypted_reply,
    decrypt_message,
    encrypt_message,
    extract_encrypted_content,
)
from .dispatcher import DispatchAction, DispatchResult, dispatch
from .forwarder import ForwardError, build_task_request, format_task, forward_message
from .normalize import MalformedMessage, build_text_reply, parse_message
from .schemas import (
    CallbackMetadata,
    CallbackResult,
    EncryptedEnvelope,
    InboundMessage,
    MsgType,
    StreamChunk,
    TaskMetadata,
    TaskRequest,
)
from .security import (
    SignatureVerificationError,
    generate_msg_signature,
    generate_signature,
    verify_msg_signature,
    verify_request_signature,
    verify_webhook_request,
)
from .sender import PushError, WeChatSender

__all__ = [
    # Schemas
    "InboundMessage",
    "MsgType",
    "EncryptedEnvelope",
    "TaskRequest",
    "TaskMetadata",
    "CallbackResult",
    "CallbackMetadata",
    "StreamChunk",
    # Envelope codec
    "encrypt_message",
    "decrypt_message",
    "extract_encrypted_content",
    "build_encrypted_reply",
    "CryptoError",
    "AESKeyError",
    "AppIdMismatch",
    # Security
    "generate_signature",
    "generate_msg_signature",
    "verify_request_signature",
    "verify_msg_signature",
    "verify_webhook_request",
    "SignatureVerificationError",
    # Parsing
    "parse_message",
    "build_text_reply",
    "MalformedMessage",
    # Dispatch
    "dispatch",
    "DispatchAction",
    "DispatchResult",
    # Forwarding
    "format_task",
    "build_task_request",
    "forward_message",
    "ForwardError",
    # Sender
    "WeChatSender",
    "PushError",
    # Callback
    "build_result_text",
    "handle_result",
    "handle_stream_chunk",
]
