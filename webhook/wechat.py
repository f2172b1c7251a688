"""
WeChat Webhook Handler

Receives Official Account messages, answers within the platform's
timeout, and hands real work to the bound endpoint in the background.

Request Flow:
  signature → (decrypt) → parse → dispatch → reply (→ encrypt)
                                     └─ background forward
"""

import logging
import secrets
import time
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, HTTPException, Request, status
from fastapi.responses import PlainTextResponse, Response

from bindings.types import Binding
from config import Config
from infra.bootstrap import InfraBootstrap
from transport.wechat.crypto import (
    AESKeyError,
    AppIdMismatch,
    CryptoError,
    build_encrypted_reply,
    decrypt_message,
    encrypt_message,
    extract_encrypted_content,
)
from transport.wechat.dispatcher import dispatch
from transport.wechat.forwarder import forward_message
from transport.wechat.normalize import MalformedMessage, build_text_reply, parse_message
from transport.wechat.schemas import EncryptedEnvelope, InboundMessage
from transport.wechat.security import (
    SignatureVerificationError,
    generate_msg_signature,
    require_msg_signature,
    verify_webhook_request,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["WeChat"])

XML_MEDIA_TYPE = "text/xml"


# ============================================================================
# SERVER VERIFICATION (Setup only)
# ============================================================================

@router.get("/wechat", response_class=PlainTextResponse)
async def wechat_verify(
    signature: Optional[str] = None,
    timestamp: Optional[str] = None,
    nonce: Optional[str] = None,
    echostr: str = "",
) -> PlainTextResponse:
    """
    Answer the platform's server verification.

    Returns:
        echostr as text/plain

    Raises:
        HTTPException(400): Missing signature/timestamp/nonce
        HTTPException(403): Invalid signature
    """
    verify_webhook_request(Config.WECHAT_TOKEN, signature, timestamp, nonce)
    # A signed request without echostr is still a valid handshake: 200, empty body
    return PlainTextResponse(echostr)


# ============================================================================
# MESSAGE RECEIVER
# ============================================================================

def open_envelope(envelope: EncryptedEnvelope) -> str:
    """
    Verify and decrypt a secure-mode envelope.

    Raises:
        HTTPException(403): msg_signature invalid or AppID mismatch
        HTTPException(400): Corrupt payload
        HTTPException(500): EncodingAESKey misconfigured
    """
    try:
        require_msg_signature(
            Config.WECHAT_TOKEN,
            envelope.timestamp,
            envelope.nonce,
            envelope.encrypt,
            envelope.msg_signature,
        )
    except SignatureVerificationError as e:
        logger.warning(f"Envelope rejected: {e}")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid msg_signature"
        )

    try:
        return decrypt_message(
            envelope.encrypt,
            Config.WECHAT_ENCODING_AES_KEY,
            Config.WECHAT_APP_ID,
        )
    except AESKeyError as e:
        logger.error(f"EncodingAESKey misconfigured: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Encryption key misconfigured"
        )
    except AppIdMismatch as e:
        logger.warning(f"Possible forged envelope: {e}")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="AppID mismatch"
        )
    except CryptoError as e:
        logger.warning(f"Failed to decrypt envelope: {e}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid message"
        )


def seal_reply(plain_xml: str) -> str:
    """Encrypt a reply and wrap it in the signed envelope template."""
    encrypted = encrypt_message(plain_xml, Config.WECHAT_ENCODING_AES_KEY, Config.WECHAT_APP_ID)
    reply_timestamp = str(int(time.time()))
    reply_nonce = str(secrets.randbelow(1_000_000_000))
    reply_signature = generate_msg_signature(
        Config.WECHAT_TOKEN, reply_timestamp, reply_nonce, encrypted
    )
    return build_encrypted_reply(encrypted, reply_signature, reply_timestamp, reply_nonce)


@router.post("/wechat")
async def wechat_receive(
    request: Request,
    background_tasks: BackgroundTasks,
    signature: Optional[str] = None,
    timestamp: Optional[str] = None,
    nonce: Optional[str] = None,
    encrypt_type: Optional[str] = None,
    msg_signature: Optional[str] = None,
) -> Response:
    """
    Receive one platform message and reply synchronously.

    Flow:
    1. Verify request signature (before touching the body)
    2. In secure mode: verify msg_signature, then decrypt
    3. Parse XML into InboundMessage
    4. Dispatch: exactly one reply; forwards run as background tasks
    5. Reply as XML (encrypted again in secure mode)

    Raises:
        HTTPException(400): Missing parameters, corrupt payload, malformed XML
        HTTPException(403): Invalid signature, AppID mismatch
        HTTPException(500): Secure mode without a usable EncodingAESKey
    """

    # Step 1: Request signature (security boundary)
    verify_webhook_request(Config.WECHAT_TOKEN, signature, timestamp, nonce)

    try:
        body = (await request.body()).decode("utf-8")
    except UnicodeDecodeError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Body is not UTF-8"
        )

    # Step 2: Secure mode envelope
    is_encrypted = encrypt_type == "aes"
    if is_encrypted:
        if not Config.WECHAT_ENCODING_AES_KEY:
            logger.error("Encrypted message received but WECHAT_ENCODING_AES_KEY not configured")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Encryption key not configured"
            )

        encrypted_content = extract_encrypted_content(body)
        if not encrypted_content:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Missing encrypted content"
            )
        if not msg_signature:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Missing msg_signature"
            )

        body = open_envelope(EncryptedEnvelope(
            encrypt=encrypted_content,
            msg_signature=msg_signature,
            timestamp=timestamp,
            nonce=nonce,
        ))

    # Step 3: Parse
    try:
        message = parse_message(body)
    except MalformedMessage as e:
        logger.warning(f"Malformed message: {e}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid message"
        )

    logger.info(
        "Message received",
        extra={
            "user_id": message.from_user,
            "msg_type": message.raw_type,
            "msg_id": message.msg_id,
        }
    )

    # Step 4: Dispatch
    bootstrap = InfraBootstrap.get_instance()
    forward_timeout = bootstrap.config.forward_timeout_seconds

    def schedule_forward(inbound: InboundMessage, binding: Binding) -> None:
        # Runs after the response is sent; the handler never waits on it
        background_tasks.add_task(
            forward_message,
            inbound,
            binding,
            Config.BRIDGE_BASE_URL,
            timeout=forward_timeout,
        )

    result = await dispatch(message, bootstrap.get_binding_store(), schedule_forward)
    logger.debug(f"Dispatched as {result.action.value}", extra={"user_id": message.from_user})

    # Step 5: Reply
    if result.reply_text is None:
        return PlainTextResponse("")

    reply_xml = build_text_reply(message.from_user, message.to_user, result.reply_text)
    if is_encrypted:
        reply_xml = seal_reply(reply_xml)
    return Response(content=reply_xml, media_type=XML_MEDIA_TYPE)
