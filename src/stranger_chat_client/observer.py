from __future__ import annotations

from collections.abc import Sequence

from loguru import logger

from .models import (
    Connected,
    EventTag,
    Message,
    PeerDisconnected,
    ProtocolEvent,
    RecaptchaRequired,
    ServerError,
    StoppedTyping,
    TransportError,
    Typing,
    Waiting,
)


class SessionObserver:
    """Callback set notified for every applied protocol event.

    Subclass and override the callbacks you care about; the defaults do
    nothing. For each event exactly one specific callback runs, followed by
    `on_any_event`.
    """

    async def on_recaptcha_required(self) -> None:
        return None

    async def on_connected(self, matched_interests: Sequence[str]) -> None:
        return None

    async def on_typing(self) -> None:
        return None

    async def on_stopped_typing(self) -> None:
        return None

    async def on_message(self, text: str) -> None:
        return None

    async def on_peer_disconnected(self) -> None:
        return None

    async def on_waiting(self) -> None:
        return None

    async def on_server_error(self) -> None:
        return None

    async def on_transport_error(self) -> None:
        return None

    async def on_any_event(self, tag: EventTag) -> None:
        return None


async def notify(observer: SessionObserver | None, event: ProtocolEvent) -> None:
    """Deliver one event to the observer: its specific callback, then the catch-all.

    Observer failures are logged and never interrupt the caller.
    """
    if observer is None:
        return
    try:
        await _dispatch_specific(observer, event)
    except Exception as exc:
        logger.error("Observer failed handling {}: {}", event.tag.value, exc)
    try:
        await observer.on_any_event(event.tag)
    except Exception as exc:
        logger.error("Observer failed in on_any_event for {}: {}", event.tag.value, exc)


async def _dispatch_specific(observer: SessionObserver, event: ProtocolEvent) -> None:
    if isinstance(event, RecaptchaRequired):
        await observer.on_recaptcha_required()
    elif isinstance(event, Connected):
        await observer.on_connected(list(event.matched_interests))
    elif isinstance(event, Typing):
        await observer.on_typing()
    elif isinstance(event, StoppedTyping):
        await observer.on_stopped_typing()
    elif isinstance(event, Message):
        await observer.on_message(event.text)
    elif isinstance(event, PeerDisconnected):
        await observer.on_peer_disconnected()
    elif isinstance(event, Waiting):
        await observer.on_waiting()
    elif isinstance(event, ServerError):
        await observer.on_server_error()
    elif isinstance(event, TransportError):
        await observer.on_transport_error()
