"""Data models for the Symphony bridge."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class PollerState(str, Enum):
    """States of the datafeed poller."""

    IDLE = "idle"
    CONNECTING = "connecting"
    FEED_CREATING = "feed_creating"
    POLLING = "polling"
    FAILURE_BACKOFF = "failure_backoff"
    STOPPED = "stopped"


class StreamType(str, Enum):
    """Kinds of Symphony streams."""

    IM = "IM"
    MIM = "MIM"
    ROOM = "ROOM"
    POST = "POST"


class SymphonySession(BaseModel):
    """Authenticated session held for the lifetime of one run."""

    session_token: str
    key_manager_token: str
    bot_user_id: Optional[int] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class Datafeed(BaseModel):
    """Server-side polling cursor."""

    id: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def __str__(self) -> str:
        return self.id


class SymphonyUser(BaseModel):
    """A user record as returned by the pod user API."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: int
    email_address: Optional[str] = Field(default=None, alias="emailAddress")
    username: Optional[str] = None
    display_name: Optional[str] = Field(default=None, alias="displayName")
    first_name: Optional[str] = Field(default=None, alias="firstName")
    last_name: Optional[str] = Field(default=None, alias="lastName")
    title: Optional[str] = None
    company: Optional[str] = None
    location: Optional[str] = None

    @property
    def name(self) -> str:
        """Best human-readable name for the user."""
        return self.display_name or self.username or self.email_address or str(self.id)

    def __str__(self) -> str:
        return f"{self.name} ({self.id})"


class V2Message(BaseModel):
    """One inbound event decoded from a datafeed read."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str
    stream_id: str = Field(alias="streamId")
    from_user_id: int = Field(alias="fromUserId")
    message: str = ""
    timestamp: Optional[str] = None
    v2message_type: str = Field(default="V2Message", alias="v2messageType")
    attachments: list[dict[str, Any]] = Field(default_factory=list)

    @property
    def is_message(self) -> bool:
        return self.v2message_type == "V2Message"


class EnvelopeUser(BaseModel):
    """Recipient reference; any one key identifies the user."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    email_address: Optional[str] = Field(default=None, alias="emailAddress")
    id: Optional[int] = None
    username: Optional[str] = None


class Envelope(BaseModel):
    """Outbound addressing context."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    room: str
    user: Optional[EnvelopeUser] = None

    @classmethod
    def for_message(cls, message: "TextMessage") -> "Envelope":
        """Address a response to the sender of an inbound message."""
        return cls(
            room=message.room,
            user=EnvelopeUser(
                email_address=message.user.email_address,
                id=message.user.id,
                username=message.user.username,
            ),
        )


class TextMessage(BaseModel):
    """Inbound message handed to the host robot."""

    user: SymphonyUser
    text: str
    id: str
    room: str
    timestamp: Optional[str] = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    def __str__(self) -> str:
        """String representation for logging."""
        return f"[{self.room}] {self.user}: {self.text[:50]}"
