from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal, TypeAlias, Union

from pydantic import BaseModel, ConfigDict, Field


class EventTag(str, Enum):
    """Closed set of protocol event tags."""

    RECAPTCHA_REQUIRED = "recaptcha_required"
    CONNECTED = "connected"
    TYPING = "typing"
    STOPPED_TYPING = "stopped_typing"
    MESSAGE = "message"
    PEER_DISCONNECTED = "peer_disconnected"
    WAITING = "waiting"
    SERVER_ERROR = "server_error"
    TRANSPORT_ERROR = "transport_error"


class ConnectionPhase(str, Enum):
    """Coarse stage of a session. Exactly one is active at a time."""

    IDLE = "idle"
    AWAITING_MATCH = "awaiting_match"
    PAIRED = "paired"
    PEER_TYPING = "peer_typing"
    CLOSED = "closed"


#: Phases in which a peer is attached to the session.
PAIRED_PHASES = frozenset({ConnectionPhase.PAIRED, ConnectionPhase.PEER_TYPING})


class RecaptchaRequired(BaseModel):
    """Server asks the user to solve a captcha before matching continues."""

    model_config = ConfigDict(frozen=True)

    tag: Literal[EventTag.RECAPTCHA_REQUIRED] = EventTag.RECAPTCHA_REQUIRED


class Connected(BaseModel):
    """A stranger was matched.

    Attributes:
        matched_interests: Requested interests the server reports as shared.
        same_language: True when the server flagged both sides as speaking
            the same language.
    """

    model_config = ConfigDict(frozen=True)

    tag: Literal[EventTag.CONNECTED] = EventTag.CONNECTED
    matched_interests: tuple[str, ...] = ()
    same_language: bool = False


class Typing(BaseModel):
    model_config = ConfigDict(frozen=True)

    tag: Literal[EventTag.TYPING] = EventTag.TYPING


class StoppedTyping(BaseModel):
    model_config = ConfigDict(frozen=True)

    tag: Literal[EventTag.STOPPED_TYPING] = EventTag.STOPPED_TYPING


class Message(BaseModel):
    """A chat line received from the stranger."""

    model_config = ConfigDict(frozen=True)

    tag: Literal[EventTag.MESSAGE] = EventTag.MESSAGE
    text: str


class PeerDisconnected(BaseModel):
    model_config = ConfigDict(frozen=True)

    tag: Literal[EventTag.PEER_DISCONNECTED] = EventTag.PEER_DISCONNECTED


class Waiting(BaseModel):
    model_config = ConfigDict(frozen=True)

    tag: Literal[EventTag.WAITING] = EventTag.WAITING


class ServerError(BaseModel):
    model_config = ConfigDict(frozen=True)

    tag: Literal[EventTag.SERVER_ERROR] = EventTag.SERVER_ERROR


class TransportError(BaseModel):
    """Connection-level failure, reported by the server or raised locally.

    Attributes:
        detail: Optional description of the local failure.
    """

    model_config = ConfigDict(frozen=True)

    tag: Literal[EventTag.TRANSPORT_ERROR] = EventTag.TRANSPORT_ERROR
    detail: str | None = None


ProtocolEvent: TypeAlias = Union[
    RecaptchaRequired,
    Connected,
    Typing,
    StoppedTyping,
    Message,
    PeerDisconnected,
    Waiting,
    ServerError,
    TransportError,
]


class PhaseTransition(BaseModel):
    """Result of applying one event to the state machine.

    Attributes:
        previous: Phase before the event was applied.
        current: Phase after the event was applied.
        event: The applied event.
    """

    model_config = ConfigDict(frozen=True)

    previous: ConnectionPhase
    current: ConnectionPhase
    event: ProtocolEvent

    @property
    def changed(self) -> bool:
        return self.previous is not self.current


class ChatMessage(BaseModel):
    """One transcript line.

    Attributes:
        author: ``"peer"`` for received lines, ``"self"`` for sent ones.
        text: Message body.
        sent_at: UTC timestamp of when the line was recorded.
    """

    model_config = ConfigDict(frozen=True)

    author: Literal["peer", "self"]
    text: str
    sent_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class SessionSnapshot(BaseModel):
    """Read-only copy of the session state at one point in time."""

    model_config = ConfigDict(frozen=True)

    client_id: str
    peer_id: str
    phase: ConnectionPhase
    requested_interests: tuple[str, ...] = ()
    matched_interests: tuple[str, ...] = ()
    pending_interests: tuple[str, ...] = ()
    same_language: bool = False
    messages: tuple[ChatMessage, ...] = ()


@dataclass(slots=True)
class SessionState:
    """Mutable session record. Only the state machine writes to it."""

    client_id: str = ""
    peer_id: str = ""
    phase: ConnectionPhase = ConnectionPhase.IDLE
    requested_interests: list[str] = field(default_factory=list)
    matched_interests: list[str] = field(default_factory=list)
    pending_interests: list[str] = field(default_factory=list)
    same_language: bool = False
    messages: list[ChatMessage] = field(default_factory=list)


class StartResponse(BaseModel):
    """Body of the bootstrap response.

    Attributes:
        client_id: Server-issued session handle, ``"null"`` when rejected.
        events: Events bundled with the response, in wire shape.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    client_id: str | None = Field(default=None, alias="clientID")
    events: list[Any] = Field(default_factory=list)


class SiteMetadata(BaseModel):
    """Advisory server statistics from the status endpoint."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    count: int | None = None
    servers: list[str] = Field(default_factory=list)
    antinude_servers: list[str] = Field(default_factory=list, alias="antinudeservers")
    antinude_percent: float | None = Field(default=None, alias="antinudepercent")
    spy_queue_time: float | None = Field(default=None, alias="spyQueueTime")
    spyee_queue_time: float | None = Field(default=None, alias="spyeeQueueTime")
    timestamp: float | None = None
