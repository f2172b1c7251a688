"""
WeChat Signature Verification

SECURITY BOUNDARY - Verify platform SHA1 signatures.
No agent imports. No retries. No logic.

The platform signs each request with sha1 over the lexicographically
sorted, concatenated [token, timestamp, nonce]. Encrypted messages carry
a second signature that also covers the encrypted payload.

Comparison is plain string equality: this mirrors the platform's published
algorithm over a shared, rotated token. Use hmac.compare_digest before
reusing these helpers for anything higher-stakes.
"""

import hashlib
from typing import Optional

from fastapi import HTTPException, status


class SignatureVerificationError(Exception):
    """Signature verification failed."""
    pass


def generate_signature(*parts: str) -> str:
    """sha1 hex digest of the sorted, concatenated parts."""
    joined = "".join(sorted(parts))
    return hashlib.sha1(joined.encode("utf-8")).hexdigest()


def verify_request_signature(token: str, signature: str, timestamp: str, nonce: str) -> bool:
    """Check the request-level `signature` query parameter."""
    return generate_signature(token, timestamp, nonce) == signature


def generate_msg_signature(token: str, timestamp: str, nonce: str, encrypted: str) -> str:
    """Signature over an encrypted payload (used for both directions)."""
    return generate_signature(token, timestamp, nonce, encrypted)


def verify_msg_signature(
    token: str,
    timestamp: str,
    nonce: str,
    encrypted: str,
    msg_signature: str,
) -> bool:
    """Check the message-level `msg_signature` of an encrypted envelope."""
    return generate_msg_signature(token, timestamp, nonce, encrypted) == msg_signature


def require_msg_signature(
    token: str,
    timestamp: str,
    nonce: str,
    encrypted: str,
    msg_signature: Optional[str],
) -> None:
    """
    Gate decryption on the message-level signature.

    Raises:
        SignatureVerificationError: Signature missing or wrong
    """
    if not msg_signature:
        raise SignatureVerificationError("Missing msg_signature")
    if not verify_msg_signature(token, timestamp, nonce, encrypted, msg_signature):
        raise SignatureVerificationError("Invalid msg_signature")


def verify_webhook_request(
    token: str,
    signature: Optional[str],
    timestamp: Optional[str],
    nonce: Optional[str],
) -> None:
    """
    Verify the request-level signature on a webhook call.

    Must run before the body is looked at.

    Args:
        token: Token configured on the platform console
        signature: `signature` query parameter
        timestamp: `timestamp` query parameter
        nonce: `nonce` query parameter

    Raises:
        HTTPException(400): Missing parameters
        HTTPException(403): Invalid signature
    """

    if not signature or not timestamp or not nonce:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing parameters"
        )

    if not verify_request_signature(token, signature, timestamp, nonce):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid signature"
        )
