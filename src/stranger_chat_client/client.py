from __future__ import annotations

import asyncio
import contextlib
from collections.abc import AsyncIterator, Iterable, Sequence
from typing import Any, TypeAlias

from loguru import logger
from pydantic import ValidationError

from .codec import decode_start_response
from .config import StrangerChatSettings
from .errors import StrangerChatError, StrangerChatTransportError
from .identity import SessionIdentity
from .models import ConnectionPhase, EventTag, PhaseTransition, SessionSnapshot, SiteMetadata
from .observer import SessionObserver, notify
from .poller import PollLoop
from .protocol import is_success_reply, make_start_params
from .state import ProtocolStateMachine
from .transport import HttpReply, HttpxTransport, Transport

TransitionQueue: TypeAlias = "asyncio.Queue[PhaseTransition | None]"


class SessionClient:
    """High-level async client for one anonymous chat participant."""

    def __init__(
        self,
        transport: Transport,
        *,
        settings: StrangerChatSettings | None = None,
        observer: SessionObserver | None = None,
        identity: SessionIdentity | None = None,
        interests: Sequence[str] = (),
        blocked_ids: Iterable[str] = (),
    ) -> None:
        """Create a client bound to a transport.

        Args:
            transport: Transport used for every request.
            settings: Protocol defaults; loaded from the environment if None.
            observer: Optional callback set notified of every applied event.
            identity: Optional identity, mostly for tests.
            interests: Interests requested when searching for a stranger.
            blocked_ids: Peer ids to skip; pairing with one of them moves on
                to the next stranger.
        """
        self._transport = transport
        self._settings = settings if settings is not None else StrangerChatSettings()
        self._observer = observer
        self._identity = identity if identity is not None else SessionIdentity()
        self._machine = ProtocolStateMachine(interests)
        self._blocked_ids: set[str] = set(blocked_ids)
        self._stream_readers = 0

        self._lifecycle_lock = asyncio.Lock()
        self._poll_loop: PollLoop | None = None
        self._poll_tasks: set[asyncio.Task[None]] = set()
        self._session_queue: TransitionQueue | None = None
        self._next_queue: TransitionQueue = asyncio.Queue()
        self._closed = False

    @classmethod
    def connect_http(
        cls,
        *,
        settings: StrangerChatSettings | None = None,
        observer: SessionObserver | None = None,
        interests: Sequence[str] = (),
        blocked_ids: Iterable[str] = (),
    ) -> SessionClient:
        """Create a client talking to the configured servers over httpx."""
        resolved = settings if settings is not None else StrangerChatSettings()
        transport = HttpxTransport(
            resolved.base_url,
            check_url=resolved.check_url,
            status_url=resolved.status_url,
            headers=resolved.headers(),
            request_timeout=resolved.request_timeout,
            poll_timeout=resolved.poll_timeout,
        )
        return cls(
            transport,
            settings=resolved,
            observer=observer,
            interests=interests,
            blocked_ids=blocked_ids,
        )

    async def __aenter__(self) -> SessionClient:
        return self

    async def __aexit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        await self.close()

    @property
    def identity(self) -> SessionIdentity:
        return self._identity

    @property
    def phase(self) -> ConnectionPhase:
        return self._machine.phase

    @property
    def is_polling(self) -> bool:
        """True while a poll task is still running."""
        return any(not task.done() for task in self._poll_tasks)

    @property
    def requests_issued(self) -> int:
        """Poll requests issued by the most recent session."""
        return self._poll_loop.requests_issued if self._poll_loop is not None else 0

    def snapshot(self) -> SessionSnapshot:
        return self._machine.snapshot()

    def set_observer(self, observer: SessionObserver | None) -> None:
        """Register the single observer, replacing any previous one."""
        self._observer = observer

    def set_interests(self, interests: Sequence[str]) -> None:
        """Set the interests requested by the next `start()`."""
        self._machine.set_requested_interests(interests)

    def block(self, peer_id: str) -> None:
        """Skip `peer_id` whenever the server pairs this client with it."""
        if peer_id:
            self._blocked_ids.add(peer_id)

    async def start(self) -> bool:
        """Bootstrap a session and start polling it.

        Returns True when the server issued a session handle and polling
        began (or a session was already running). Returns False when the
        bootstrap failed or the server rejected the client; no poll task is
        started in that case and calling `start()` again is safe.

        Raises:
            ChallengeTokenError: If the challenge token cannot be fetched.
            StrangerChatTransportError: If the client is closed.
        """
        if self._closed:
            raise StrangerChatTransportError("client is closed")

        async with self._lifecycle_lock:
            if self._machine.client_id:
                return True
            outcome = await self._bootstrap()
            if outcome is None:
                return False

            queue = self._open_session_queue()
            client_id, transition = outcome
            if client_id is not None and self._machine.client_id == client_id:
                self._spawn_session(client_id, transition, queue)
                return True

        # Rejected or terminated by its first event: report it and end the stream.
        if transition is not None:
            await self._publish(queue, transition)
        self._close_session_queue(queue)
        return False

    async def send_message(self, text: str) -> bool:
        """Send one chat line. Best effort: failures are logged, never raised."""
        client_id = self._machine.client_id
        self._machine.record_outgoing(text)
        return await self._best_effort("send", self._transport.send_message(client_id, text))

    async def stop_searching(self) -> bool:
        """Abandon a common-interest search. Best effort."""
        client_id = self._machine.client_id
        return await self._best_effort("stop searching", self._transport.stop_searching(client_id))

    async def disconnect(self) -> bool:
        """End the current session locally, then notify the server. Best effort."""
        async with self._lifecycle_lock:
            client_id = self._machine.client_id
            self._machine.end()
        if not client_id:
            return False
        logger.info("Disconnecting session {}", client_id)
        return await self._best_effort("disconnect", self._transport.disconnect(client_id))

    async def next_stranger(self) -> bool:
        """Leave the current stranger and search again with the requested interests."""
        await self.disconnect()
        return await self.start()

    async def site_metadata(self) -> SiteMetadata | None:
        """Query advisory server statistics, or None when unavailable."""
        try:
            payload = await self._transport.site_status(self._identity.random_id)
            return SiteMetadata.model_validate(payload)
        except (StrangerChatError, ValidationError) as exc:
            logger.warning("Site metadata unavailable: {}", exc)
            return None

    async def transitions(self) -> AsyncIterator[PhaseTransition]:
        """Yield transitions of the current (or next) session until it ends.

        Transitions are only buffered while at least one iterator is active.
        """
        queue = self._session_queue if self._session_queue is not None else self._next_queue
        self._stream_readers += 1
        try:
            while True:
                item = await queue.get()
                if item is None:
                    return
                yield item
        finally:
            self._stream_readers -= 1

    async def close(self) -> None:
        """Disconnect any active session, stop polling and close the transport."""
        if self._closed:
            return
        if self._machine.client_id:
            await self.disconnect()
        self._closed = True

        for task in list(self._poll_tasks):
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._poll_tasks.clear()

        await self._transport.close()

    async def _bootstrap(self) -> tuple[str | None, PhaseTransition | None] | None:
        token = await self._identity.ensure_challenge_token(self._transport)
        params = make_start_params(
            random_id=self._identity.random_id,
            challenge_token=token,
            interests=self._machine.requested_interests,
            language=self._settings.language,
            caps=self._settings.caps,
        )
        try:
            reply = await self._transport.start_session(params)
        except StrangerChatTransportError as exc:
            logger.warning("Bootstrap request failed: {}", exc)
            return None
        if not reply.ok:
            logger.warning("Bootstrap answered HTTP {}", reply.status_code)
            return None

        outcome = decode_start_response(reply.text)
        if outcome is None:
            logger.warning("Bootstrap answered with an unrecognized body")
            return None

        if outcome.rejected:
            logger.warning("Server rejected the client")
            return None, self._machine.apply(outcome.events[0])

        self._machine.begin(outcome.client_id)
        logger.info("Session {} started", outcome.client_id)
        transition = self._machine.apply(outcome.events[0]) if outcome.events else None
        return outcome.client_id, transition

    def _spawn_session(
        self,
        client_id: str,
        initial: PhaseTransition | None,
        queue: TransitionQueue,
    ) -> None:
        task = asyncio.create_task(
            self._run_session(client_id, initial, queue),
            name=f"stranger-chat-poll-{client_id}",
        )
        self._poll_tasks.add(task)
        task.add_done_callback(self._poll_tasks.discard)

    async def _run_session(
        self,
        client_id: str,
        initial: PhaseTransition | None,
        queue: TransitionQueue,
    ) -> None:
        async def publish(transition: PhaseTransition) -> None:
            await self._publish(queue, transition)

        poll_loop = PollLoop(self._transport, self._machine, publish)
        self._poll_loop = poll_loop
        try:
            if initial is not None:
                await publish(initial)
            await poll_loop.run(client_id)
        finally:
            self._close_session_queue(queue)

    async def _publish(self, queue: TransitionQueue, transition: PhaseTransition) -> None:
        if self._stream_readers:
            queue.put_nowait(transition)
        await notify(self._observer, transition.event)

        peer_id = self._machine.peer_id
        if self._closed or transition.event.tag is not EventTag.CONNECTED:
            return
        if peer_id not in self._blocked_ids:
            return
        logger.info("Paired with blocked peer {}; moving on", peer_id)
        try:
            await self.next_stranger()
        except StrangerChatError as exc:
            logger.warning("Could not move on from blocked peer {}: {}", peer_id, exc)

    def _open_session_queue(self) -> TransitionQueue:
        queue = self._next_queue
        self._session_queue = queue
        self._next_queue = asyncio.Queue()
        return queue

    def _close_session_queue(self, queue: TransitionQueue) -> None:
        queue.put_nowait(None)
        if self._session_queue is queue:
            self._session_queue = None

    async def _best_effort(self, action: str, request: Any) -> bool:
        try:
            reply: HttpReply = await request
        except StrangerChatTransportError as exc:
            logger.warning("{} request failed: {}", action.capitalize(), exc)
            return False
        if not is_success_reply(reply.status_code, reply.text):
            logger.warning(
                "{} answered HTTP {} with {!r}",
                action.capitalize(),
                reply.status_code,
                reply.text[:100],
            )
            return False
        return True
