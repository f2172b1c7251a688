"""
WeChat Transport Layer - Pydantic Schemas

PURE DATA MODELS - NO LOGIC
Defines the contract between WeChat, the remote task endpoint and the
callback path.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


# ============================================================================
# INBOUND MESSAGE (PARSED FROM PLATFORM XML)
# ============================================================================

class MsgType(str, Enum):
    """Message kinds the gateway distinguishes."""
    TEXT = "text"
    VOICE = "voice"
    IMAGE = "image"
    LOCATION = "location"
    LINK = "link"
    EVENT = "event"
    OTHER = "other"

    @classmethod
    def from_raw(cls, raw: str) -> "MsgType":
        try:
            return cls(raw.lower())
        except ValueError:
            return cls.OTHER


class InboundMessage(BaseModel):
    """
    A parsed platform message.

    Only from_user, to_user and msg_type are load-bearing. Every
    type-specific field defaults to empty so a missing element never
    fails the parse.
    """

    from_user: str = Field(..., min_length=1, description="Sender openid (binding key)")
    to_user: str = Field(..., min_length=1, description="Official Account id")
    msg_type: MsgType
    raw_type: str = Field(..., description="MsgType exactly as sent by the platform")
    create_time: int = Field(0, description="Epoch seconds")
    msg_id: Optional[str] = None

    content: str = ""
    event: Optional[str] = Field(None, description="Set only for event messages")
    event_key: str = ""

    # voice
    media_id: str = ""
    recognition: str = ""

    # image
    pic_url: str = ""

    # location
    location_x: str = ""
    location_y: str = ""
    scale: str = ""
    label: str = ""

    # link
    title: str = ""
    description: str = ""
    url: str = ""

    class Config:
        """Pydantic config."""
        frozen = True  # Immutable - parsed once, read everywhere


@dataclass(frozen=True)
class EncryptedEnvelope:
    """Secure-mode wire fields gathered from the query string and body."""

    encrypt: str
    msg_signature: str
    timestamp: str
    nonce: str


# ============================================================================
# TASK REQUEST (OUTPUT TO REMOTE ENDPOINT)
# ============================================================================

class TaskMetadata(BaseModel):
    openid: str
    msg_type: str
    msg_id: Optional[str] = None
    timestamp: int


class TaskRequest(BaseModel):
    """
    Job description POSTed to the bound endpoint.

    The endpoint answers later on callback_url; nothing is read from
    the POST response beyond its status.
    """

    task: str
    callback_url: str
    metadata: TaskMetadata


# ============================================================================
# CALLBACK PAYLOADS (INPUT FROM REMOTE ENDPOINT)
# ============================================================================

class CallbackMetadata(BaseModel):
    chunks: Optional[int] = None
    thinking_time_ms: Optional[float] = None

    class Config:
        extra = "allow"  # Endpoints may report more than we display


class CallbackResult(BaseModel):
    """Final result for one forwarded task."""

    success: bool
    result: Optional[str] = None
    error: Optional[str] = None
    metadata: Optional[CallbackMetadata] = None


class StreamChunk(BaseModel):
    """One piece of a streamed result. Only the `done` chunk is delivered."""

    chunk: str = ""
    done: bool = False
    chunk_index: Optional[int] = None
