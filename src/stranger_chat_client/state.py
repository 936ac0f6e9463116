from __future__ import annotations

from collections.abc import Sequence

from loguru import logger

from .models import (
    PAIRED_PHASES,
    ChatMessage,
    Connected,
    ConnectionPhase,
    Message,
    PeerDisconnected,
    PhaseTransition,
    ProtocolEvent,
    RecaptchaRequired,
    ServerError,
    SessionSnapshot,
    SessionState,
    StoppedTyping,
    TransportError,
    Typing,
    Waiting,
)


class ProtocolStateMachine:
    """Owns the session phase and applies decoded events to it.

    The machine is the single writer of its `SessionState`. Callers read it
    through `snapshot()` or the small read-only properties below.
    """

    def __init__(self, requested_interests: Sequence[str] = ()) -> None:
        self._state = SessionState(requested_interests=list(requested_interests))

    @property
    def phase(self) -> ConnectionPhase:
        return self._state.phase

    @property
    def client_id(self) -> str:
        """Session handle the poll loop is bound to, empty when none."""
        return self._state.client_id

    @property
    def peer_id(self) -> str:
        return self._state.peer_id

    @property
    def requested_interests(self) -> list[str]:
        return list(self._state.requested_interests)

    def set_requested_interests(self, interests: Sequence[str]) -> None:
        self._state.requested_interests = list(interests)

    def begin(self, client_id: str) -> None:
        """Bind a freshly bootstrapped session handle."""
        if not client_id:
            raise ValueError("client_id must not be empty")
        state = self._state
        state.client_id = client_id
        state.peer_id = ""
        state.phase = ConnectionPhase.IDLE
        state.matched_interests = []
        state.pending_interests = []
        state.same_language = False
        state.messages = []

    def end(self) -> None:
        """Drop the session handle after a local disconnect."""
        state = self._state
        state.client_id = ""
        state.peer_id = ""
        state.matched_interests = []
        state.same_language = False
        if state.phase is not ConnectionPhase.CLOSED:
            state.phase = ConnectionPhase.IDLE

    def record_outgoing(self, text: str) -> None:
        """Append a self-authored line to the transcript. Never changes phase."""
        self._state.messages.append(ChatMessage(author="self", text=text))

    def apply(self, event: ProtocolEvent) -> PhaseTransition | None:
        """Apply one event and return the resulting transition.

        Returns None when the event cannot be applied, which only happens for
        a `Connected` event arriving with no session handle bound.
        """
        state = self._state
        previous = state.phase

        if isinstance(event, RecaptchaRequired):
            pass
        elif isinstance(event, Connected):
            if not state.client_id:
                logger.debug("Ignoring connected event without a session handle")
                return None
            state.peer_id = state.client_id
            state.matched_interests = list(event.matched_interests)
            state.pending_interests = []
            state.same_language = event.same_language
            state.phase = ConnectionPhase.PAIRED
        elif isinstance(event, Typing):
            if previous is ConnectionPhase.PAIRED:
                state.phase = ConnectionPhase.PEER_TYPING
        elif isinstance(event, StoppedTyping):
            if previous is ConnectionPhase.PEER_TYPING:
                state.phase = ConnectionPhase.PAIRED
        elif isinstance(event, Message):
            if previous in PAIRED_PHASES:
                state.messages.append(ChatMessage(author="peer", text=event.text))
        elif isinstance(event, PeerDisconnected):
            state.client_id = ""
            state.peer_id = ""
            state.matched_interests = []
            state.same_language = False
            state.pending_interests = list(state.requested_interests)
            state.phase = ConnectionPhase.IDLE
        elif isinstance(event, Waiting):
            if previous in (ConnectionPhase.IDLE, ConnectionPhase.AWAITING_MATCH):
                state.phase = ConnectionPhase.AWAITING_MATCH
        elif isinstance(event, (ServerError, TransportError)):
            state.client_id = ""
            state.peer_id = ""
            state.matched_interests = []
            state.phase = ConnectionPhase.CLOSED

        if previous is not state.phase:
            logger.debug("Phase {} -> {} on {}", previous.value, state.phase.value, event.tag.value)
        return PhaseTransition(previous=previous, current=state.phase, event=event)

    def snapshot(self) -> SessionSnapshot:
        state = self._state
        return SessionSnapshot(
            client_id=state.client_id,
            peer_id=state.peer_id,
            phase=state.phase,
            requested_interests=tuple(state.requested_interests),
            matched_interests=tuple(state.matched_interests),
            pending_interests=tuple(state.pending_interests),
            same_language=state.same_language,
            messages=tuple(state.messages),
        )
