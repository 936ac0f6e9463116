from __future__ import annotations

import asyncio
from collections.abc import Sequence

from stranger_chat_client.models import (
    Connected,
    EventTag,
    Message,
    PeerDisconnected,
    RecaptchaRequired,
    ServerError,
    StoppedTyping,
    TransportError,
    Typing,
    Waiting,
)
from stranger_chat_client.observer import SessionObserver, notify


class RecordingObserver(SessionObserver):
    def __init__(self) -> None:
        self.calls: list[tuple[str, object]] = []

    async def on_recaptcha_required(self) -> None:
        self.calls.append(("recaptcha", None))

    async def on_connected(self, matched_interests: Sequence[str]) -> None:
        self.calls.append(("connected", list(matched_interests)))

    async def on_typing(self) -> None:
        self.calls.append(("typing", None))

    async def on_stopped_typing(self) -> None:
        self.calls.append(("stopped_typing", None))

    async def on_message(self, text: str) -> None:
        self.calls.append(("message", text))

    async def on_peer_disconnected(self) -> None:
        self.calls.append(("peer_disconnected", None))

    async def on_waiting(self) -> None:
        self.calls.append(("waiting", None))

    async def on_server_error(self) -> None:
        self.calls.append(("server_error", None))

    async def on_transport_error(self) -> None:
        self.calls.append(("transport_error", None))

    async def on_any_event(self, tag: EventTag) -> None:
        self.calls.append(("any", tag))


class FailingObserver(RecordingObserver):
    async def on_message(self, text: str) -> None:
        raise RuntimeError("ui exploded")


def test_each_event_gets_specific_then_catch_all_callback() -> None:
    cases = [
        (RecaptchaRequired(), ("recaptcha", None)),
        (Connected(matched_interests=("music",)), ("connected", ["music"])),
        (Typing(), ("typing", None)),
        (StoppedTyping(), ("stopped_typing", None)),
        (Message(text="yo"), ("message", "yo")),
        (PeerDisconnected(), ("peer_disconnected", None)),
        (Waiting(), ("waiting", None)),
        (ServerError(), ("server_error", None)),
        (TransportError(), ("transport_error", None)),
    ]

    async def _run() -> None:
        for event, expected in cases:
            observer = RecordingObserver()
            await notify(observer, event)
            assert observer.calls == [expected, ("any", event.tag)]

    asyncio.run(_run())


def test_failing_callback_still_reaches_catch_all() -> None:
    async def _run() -> None:
        observer = FailingObserver()
        await notify(observer, Message(text="hi"))
        assert observer.calls == [("any", EventTag.MESSAGE)]

    asyncio.run(_run())


def test_notify_without_observer_is_a_no_op() -> None:
    asyncio.run(notify(None, Waiting()))
