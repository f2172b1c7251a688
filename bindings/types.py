"""
Binding boundary layer types.

A binding maps one platform user to the remote endpoint that handles
their tasks.
"""

from datetime import datetime, timezone

from pydantic import BaseModel, Field


class Binding(BaseModel):
    """A user's association with a remote task endpoint."""

    user_id: str = Field(..., min_length=1)           # Platform openid
    endpoint_url: str                                 # Validated absolute http(s) URL
    token: str                                        # Advisory, never sent to the endpoint
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
