"""Symphony messaging integration for symbridge.

Architecture:
    SymphonyAdapter → DatafeedPoller → SymphonyClient → Symphony REST API
                    → IdentityResolver
                    → formatting (MessageML)

Key Components:
    - Robot: Abstract host capability receiving decoded messages
    - SymphonyAdapter: Public lifecycle and send surface
    - DatafeedPoller: Connect / create / read state machine
    - IdentityResolver: Username, email and id lookups
"""

from symbridge.platforms.adapters.symphony import AdapterOptions, SymphonyAdapter
from symbridge.platforms.exceptions import (
    ConnectAttemptsExhausted,
    HttpStatusError,
    NotFoundError,
    SymphonyError,
    TransientFeedError,
)
from symbridge.platforms.models import (
    Datafeed,
    Envelope,
    EnvelopeUser,
    PollerState,
    SymphonyUser,
    TextMessage,
    V2Message,
)
from symbridge.platforms.protocol import EventEmitter, Robot

__all__ = [
    "AdapterOptions",
    "ConnectAttemptsExhausted",
    "Datafeed",
    "Envelope",
    "EnvelopeUser",
    "EventEmitter",
    "HttpStatusError",
    "NotFoundError",
    "PollerState",
    "Robot",
    "SymphonyAdapter",
    "SymphonyError",
    "SymphonyUser",
    "TextMessage",
    "TransientFeedError",
    "V2Message",
]
