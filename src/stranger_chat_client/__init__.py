from .client import SessionClient
from .codec import StartOutcome, decode, decode_start_response
from .config import StrangerChatSettings
from .errors import (
    ChallengeTokenError,
    StrangerChatError,
    StrangerChatProtocolError,
    StrangerChatTransportError,
)
from .identity import SessionIdentity, make_random_id
from .models import (
    ChatMessage,
    Connected,
    ConnectionPhase,
    EventTag,
    Message,
    PeerDisconnected,
    PhaseTransition,
    ProtocolEvent,
    RecaptchaRequired,
    ServerError,
    SessionSnapshot,
    SiteMetadata,
    StoppedTyping,
    TransportError,
    Typing,
    Waiting,
)
from .observer import SessionObserver
from .protocol import encode_topics, parse_interests
from .state import ProtocolStateMachine
from .transport import HttpReply, HttpxTransport, Transport

__all__ = [
    "ChallengeTokenError",
    "ChatMessage",
    "Connected",
    "ConnectionPhase",
    "EventTag",
    "HttpReply",
    "HttpxTransport",
    "Message",
    "PeerDisconnected",
    "PhaseTransition",
    "ProtocolEvent",
    "ProtocolStateMachine",
    "RecaptchaRequired",
    "ServerError",
    "SessionClient",
    "SessionIdentity",
    "SessionObserver",
    "SessionSnapshot",
    "SiteMetadata",
    "StartOutcome",
    "StoppedTyping",
    "StrangerChatError",
    "StrangerChatProtocolError",
    "StrangerChatSettings",
    "StrangerChatTransportError",
    "TransportError",
    "Typing",
    "Waiting",
    "decode",
    "decode_start_response",
    "encode_topics",
    "make_random_id",
    "parse_interests",
]
